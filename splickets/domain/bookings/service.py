"""Booking service - Business logic for leads and completed bookings"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import stripe
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import auth
from ...config import BASE_URL
from ...email_service import (
    add_lead_to_audience,
    move_lead_to_customers,
    send_booking_confirmation,
    send_payment_reminder,
    send_welcome_email,
)
from ...models import (
    BOOKING_CANCELLED,
    BOOKING_CONFIRMED,
    BOOKING_PENDING,
    INSTALLMENT_CANCELLED,
    INSTALLMENT_OVERDUE,
    INSTALLMENT_UNPAID,
    LEAD_CONVERTED,
    PLAN_FULL,
    PLAN_INSTALLMENTS,
    Booking,
    PaymentPlan,
    SETUP_CANCEL_PENDING,
    SETUP_CANCELLED,
    SETUP_INTENT_CREATED,
    User,
)
from ..currency.currencies import DEFAULT_CURRENCY, normalize_currency
from ..payment_plans.calculator import (
    ScheduleMismatchError,
    split_remaining,
    to_money,
    validate_schedule,
)
from ..payments.repository import PaymentSetupRepository
from ..payments.service import PaymentService
from ..payments.stripe_service import stripe_service
from ..referrals import ReferralCodeExhaustedError, ReferralService
from .repository import BookingRepository
from .schemas import BookingCompleteRequest, BookingPaymentPlan, LeadRequest
from .serializers import serialize_booking

logger = logging.getLogger(__name__)


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00")).date()


class BookingService:
    """Service layer for the booking flow"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()
        self.setups = PaymentSetupRepository()
        self.referrals = ReferralService(db)

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    def save_lead(self, data: LeadRequest) -> dict:
        """Upsert the lead by email and record this attempt's passenger data"""
        contact = data.contactDetails
        first = data.passengers[0]

        lead = self.repo.upsert_lead(
            self.db,
            contact.email,
            dialling_code=contact.diallingCode,
            phone_number=contact.phoneNumber,
            title=first.title,
            first_name=first.firstName,
            last_name=first.lastName,
            dob=first.dateOfBirth,
            passport_country=first.passportCountry,
        )
        self.repo.add_lead_attempt(
            self.db,
            lead.id,
            passenger_data=data.model_dump(mode="json", exclude={"searchId"}),
            search_id=data.searchId,
        )
        self.db.commit()
        logger.info(f"📝 Saved lead {lead.id} for {contact.email}")

        add_lead_to_audience(contact.email, first.firstName, first.lastName)
        return {"leadId": lead.id, "success": True}

    # ------------------------------------------------------------------
    # Booking completion
    # ------------------------------------------------------------------

    async def complete_booking(self, data: BookingCompleteRequest) -> dict:
        lead = self.repo.get_lead(self.db, data.leadId)
        if not lead:
            raise HTTPException(status_code=404, detail="Lead not found")

        flight_data = data.flightData
        currency = (
            normalize_currency((flight_data.get("price") or {}).get("currency")) or DEFAULT_CURRENCY
        )
        passengers = data.passengerData.passengers

        # Validate everything derived from the request before creating any account
        flight_fields = self._flight_fields(flight_data, len(passengers))
        plan_fields, installments = self._plan_fields(data.paymentPlan, currency)

        promo = None
        discount = Decimal("0")
        if data.promoCode:
            promo, discount = self.referrals.apply_promo_code(
                data.promoCode,
                plan_fields["total_amount"],
                self.repo.get_user_by_email(self.db, lead.email),
            )

        user, is_new_user = self._find_or_create_user(lead, passengers[0], currency)

        custom_token = None
        referral_code = None
        if is_new_user:
            referral_code = self._issue_referral_code(user)
            custom_token = self._provision_firebase_account(user)

        if data.searchId:
            self.repo.attach_search_to_user(self.db, data.searchId, user.id)

        flight = self.repo.create_flight(self.db, **flight_fields)
        plan = self.repo.create_payment_plan(self.db, installments, **plan_fields)

        payment_succeeded = await self._payment_succeeded(data.paymentIntentId)
        booking = self.repo.create_booking(
            self.db,
            user_id=user.id,
            flight_id=flight.id,
            payment_plan_id=plan.id,
            promo_code_id=promo.id if promo else None,
            passengers=[p.model_dump(mode="json") for p in passengers],
            status=BOOKING_CONFIRMED if payment_succeeded else BOOKING_PENDING,
            total_price=plan_fields["total_amount"],
            currency=currency,
            payment_intent_id=data.paymentIntentId,
        )

        if promo:
            self.referrals.record_usage(promo)

        if data.paymentIntentId:
            setup = self.setups.get_by_payment_intent(self.db, data.paymentIntentId)
            if setup:
                setup.payment_plan_id = plan.id

        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"🎫 Booking {booking.reference} completed for user {user.id} ({booking.status})")

        await self._send_confirmation(user, booking, plan, flight_data, data.paymentPlan, len(passengers))
        if is_new_user:
            await send_welcome_email(user.email, user.first_name)
        move_lead_to_customers(
            data.passengerData.contactDetails.email, user.first_name, user.last_name
        )

        response = {
            "bookingId": booking.id,
            "bookingReference": booking.reference,
            "flightId": flight.id,
            "paymentPlanId": plan.id,
            "status": booking.status,
            "success": True,
        }
        if promo:
            response["discountAmount"] = float(discount)
        if referral_code:
            response["referralCode"] = referral_code
        if custom_token:
            response["customToken"] = custom_token
        return response

    def _find_or_create_user(self, lead, first_passenger, currency: str) -> tuple[User, bool]:
        user = self.repo.get_user_by_email(self.db, lead.email)
        if user:
            user.preferred_currency = currency
            self.db.commit()
            return user, False

        user = self.repo.create_user(
            self.db,
            email=lead.email,
            dialling_code=lead.dialling_code,
            phone_number=lead.phone_number,
            title=first_passenger.title,
            first_name=first_passenger.firstName,
            last_name=first_passenger.lastName,
            dob=first_passenger.dateOfBirth,
            passport_number=first_passenger.passportNumber,
            passport_country=first_passenger.passportCountry,
            preferred_currency=currency,
        )
        lead.status = LEAD_CONVERTED
        self.db.commit()
        logger.info(f"🆕 Created user {user.id} from lead {lead.id}")
        return user, True

    def _issue_referral_code(self, user: User) -> Optional[str]:
        try:
            return self.referrals.create_referral_code_for_user(user)
        except ReferralCodeExhaustedError as e:
            # The booking still goes through; the backfill script can issue it later
            logger.error(f"❌ Referral code not issued for user {user.id}: {e}")
            return None

    def _provision_firebase_account(self, user: User) -> Optional[str]:
        """Create the sign-in account for a first-time booker; returns a custom token"""
        if not auth.is_firebase_configured():
            return None

        try:
            uid = auth.create_firebase_user(
                user.email,
                auth.generate_temporary_password(),
                display_name=f"{user.first_name} {user.last_name}",
            )
            user.firebase_uid = uid
            self.db.commit()
            return auth.create_custom_token(uid)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create Firebase account for {user.email}: {e}")
            return None

    def _flight_fields(self, flight_data: dict, passenger_count: int) -> dict:
        try:
            itineraries = flight_data["itineraries"]
            outbound = itineraries[0]["segments"]
            return_date = None
            if len(itineraries) > 1:
                return_date = _parse_date(itineraries[1]["segments"][0]["departure"]["at"])
            return {
                "flight_offer": flight_data,
                "origin_iata": outbound[0]["departure"]["iataCode"],
                "destination_iata": outbound[-1]["arrival"]["iataCode"],
                "departure_date": _parse_date(outbound[0]["departure"]["at"]),
                "return_date": return_date,
                "trip_type": "one_way" if flight_data.get("oneWay") or len(itineraries) == 1 else "return",
                "passenger_count": passenger_count,
                "cabin": "Economy",
            }
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"⚠️ Invalid flight data in booking request: {e}")
            raise HTTPException(status_code=400, detail="Invalid flight data") from e

    def _plan_fields(self, plan: BookingPaymentPlan, currency: str) -> tuple[dict, list]:
        """Payment plan columns and (due_date, amount) installments, checked to the cent"""
        total = to_money(plan.totalAmount)

        if plan.depositPercentage == 100:
            return (
                {"type": PLAN_FULL, "total_amount": total, "currency": currency},
                [],
            )

        deposit = to_money(
            plan.depositAmount
            if plan.depositAmount is not None
            else total * plan.depositPercentage / 100
        )

        if plan.installments:
            installments = [(i.dueDate, to_money(i.amount)) for i in plan.installments]
        elif plan.installmentDates:
            amounts = split_remaining(total - deposit, len(plan.installmentDates))
            installments = list(zip(plan.installmentDates, amounts))
        else:
            raise HTTPException(status_code=400, detail="Installment dates are required")

        try:
            validate_schedule(total, deposit, [amount for _, amount in installments])
        except ScheduleMismatchError as e:
            logger.warning(f"⚠️ Rejected unbalanced payment plan: {e}")
            raise HTTPException(status_code=400, detail=str(e)) from e

        frequency = plan.installmentType if plan.installmentType in ("weekly", "monthly") else "bi_weekly"
        return (
            {
                "type": PLAN_INSTALLMENTS,
                "deposit_amount": deposit,
                "installment_count": len(installments),
                "installment_frequency": frequency,
                "total_amount": total,
                "currency": currency,
            },
            installments,
        )

    async def _payment_succeeded(self, payment_intent_id: Optional[str]) -> bool:
        """No intent means nothing to wait for; otherwise ask Stripe (or our own record)"""
        if not payment_intent_id:
            return True

        if stripe_service.is_available():
            try:
                intent = await stripe_service.retrieve_payment_intent(payment_intent_id)
                return intent["status"] == "succeeded"
            except stripe.StripeError as e:
                logger.warning(f"⚠️ Could not check payment intent {payment_intent_id}: {e}")

        setup = self.setups.get_by_payment_intent(self.db, payment_intent_id)
        return bool(setup and setup.status != SETUP_INTENT_CREATED)

    async def _send_confirmation(
        self,
        user: User,
        booking: Booking,
        plan: PaymentPlan,
        flight_data: dict,
        requested_plan: BookingPaymentPlan,
        passenger_count: int,
    ) -> bool:
        try:
            itineraries = flight_data["itineraries"]
            first_segment = itineraries[0]["segments"][0]
            flight_details = {
                "origin": flight_data.get("origin") or first_segment["departure"]["iataCode"],
                "destination": flight_data.get("destination")
                or itineraries[0]["segments"][-1]["arrival"]["iataCode"],
                "departure_date": first_segment["departure"]["at"],
                "return_date": itineraries[-1]["segments"][0]["departure"]["at"]
                if len(itineraries) > 1
                else None,
                "flight_number": f"{first_segment.get('carrierCode', '')}{first_segment.get('number', '')}",
                "passengers": passenger_count,
            }
            installments = plan.installments
            payment_plan = {
                "total_amount": plan.total_amount,
                "deposit_amount": plan.deposit_amount if plan.deposit_amount is not None else plan.total_amount,
                "installment_amount": installments[0].amount if installments else None,
                "installment_count": len(installments),
                "frequency": requested_plan.installmentType,
            }
            return await send_booking_confirmation(
                user.email,
                f"{user.first_name} {user.last_name}",
                booking.reference,
                flight_details,
                payment_plan,
                booking.currency,
            )
        except (KeyError, IndexError) as e:
            logger.error(f"❌ Failed to send booking confirmation for {booking.reference}: {e}")
            return False

    # ------------------------------------------------------------------
    # Existing bookings
    # ------------------------------------------------------------------

    def get_user_bookings(self, email: Optional[str]) -> list[dict]:
        if not email:
            raise HTTPException(status_code=400, detail="Email is required")
        user = self.repo.get_user_by_email(self.db, email)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return [serialize_booking(b) for b in self.repo.get_user_bookings(self.db, user.id)]

    async def cancel_booking(self, booking_id: int, current_user: User) -> dict:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking or booking.user_id != current_user.id:
            raise HTTPException(status_code=404, detail="Booking not found")
        if booking.status == BOOKING_CANCELLED:
            raise HTTPException(status_code=400, detail="Booking is already cancelled")

        booking.status = BOOKING_CANCELLED
        cancelled = 0
        installments = booking.payment_plan.installments if booking.payment_plan else []
        for installment in installments:
            if installment.status in (INSTALLMENT_UNPAID, INSTALLMENT_OVERDUE):
                installment.status = INSTALLMENT_CANCELLED
                cancelled += 1

        # Committed with the booking so reconciliation never schedules it again
        setup = self._payment_setup_for(booking)
        if setup and setup.status != SETUP_CANCELLED:
            setup.status = SETUP_CANCEL_PENDING
        self.db.commit()

        billing_stopped = True
        if setup:
            billing_stopped = await PaymentService(self.db).cancel_setup(setup)
            if not billing_stopped:
                logger.warning(
                    f"⚠️ Installments for {booking.reference} still active at Stripe; "
                    f"left for reconciliation"
                )

        logger.info(f"🚫 Booking {booking.reference} cancelled ({cancelled} installments cancelled)")
        return {
            "bookingId": booking.id,
            "status": booking.status,
            "cancelledInstallments": cancelled,
            "billingStopped": billing_stopped,
            "success": True,
        }

    def _payment_setup_for(self, booking: Booking):
        if booking.payment_intent_id:
            setup = self.setups.get_by_payment_intent(self.db, booking.payment_intent_id)
            if setup:
                return setup
        return self.setups.get_by_payment_plan(self.db, booking.payment_plan_id)

    async def send_payment_reminder(self, booking_id: int) -> dict:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")

        installment = self.setups.get_earliest_unpaid_installment(self.db, booking.payment_plan_id)
        if not booking.user or not installment:
            raise HTTPException(status_code=400, detail="Invalid booking data")

        sent = await send_payment_reminder(
            booking.user.email,
            f"{booking.user.first_name} {booking.user.last_name}",
            installment.amount,
            installment.due_date,
            booking.reference,
            f"{BASE_URL}/payment/{booking.id}",
            booking.currency,
        )
        return {"success": sent, "sent": sent}
