"""Billing service - payment plan overview and processor-side payment data"""

import logging
from datetime import datetime, timezone
from typing import Optional

import stripe
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import INSTALLMENT_OVERDUE, INSTALLMENT_PAID, Booking, User
from ..bookings.serializers import serialize_installment, serialize_payment_plan
from ..payments.service import serialize_payment_method
from ..payments.stripe_service import describe_stripe_error, stripe_service
from .repository import BillingRepository

logger = logging.getLogger(__name__)


def _route(booking: Booking) -> Optional[str]:
    flight = booking.flight
    if not flight:
        return None
    return f"{flight.origin_iata}-{flight.destination_iata}"


class BillingService:
    """Service layer for the billing dashboard"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()
        self.stripe = stripe_service

    def _get_user(self, email: Optional[str]) -> User:
        if not email:
            raise HTTPException(status_code=400, detail="Email is required")
        user = self.repo.get_user_by_email(self.db, email.strip())
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    def get_payment_plans(self, email: Optional[str]) -> dict:
        user = self._get_user(email)
        plans = []
        for booking in self.repo.get_bookings_with_plans(self.db, user.id):
            plan = booking.payment_plan
            if plan is None:
                continue
            installments = sorted(plan.installments, key=lambda i: i.due_date)
            data = serialize_payment_plan(plan)
            data.update(
                {
                    "bookingId": booking.id,
                    "bookingReference": booking.reference,
                    "bookingStatus": booking.status,
                    "route": _route(booking),
                    "isRoundTrip": bool(booking.flight and booking.flight.trip_type == "return"),
                    "installments": [serialize_installment(i) for i in installments],
                    "paidInstallments": sum(1 for i in installments if i.status == INSTALLMENT_PAID),
                    "totalInstallments": len(installments),
                    "hasOverdue": any(i.status == INSTALLMENT_OVERDUE for i in installments),
                }
            )
            plans.append(data)
        return {"paymentPlans": plans}

    async def _customer_id(self, user: User) -> Optional[str]:
        """Stored customer id, or the processor's customer for the user's email"""
        if user.stripe_customer_id:
            return user.stripe_customer_id
        customer = await self.stripe.find_customer_by_email(user.email)
        if not customer:
            return None
        self.repo.set_stripe_customer_id(self.db, user, customer["id"])
        return customer["id"]

    def _require_stripe(self):
        if not self.stripe.is_available():
            raise HTTPException(status_code=503, detail="Payment processing is not configured")

    async def get_payment_methods(self, email: Optional[str]) -> dict:
        user = self._get_user(email)
        self._require_stripe()
        try:
            customer_id = await self._customer_id(user)
            if not customer_id:
                return {"paymentMethods": []}
            methods = await self.stripe.list_payment_methods(customer_id)
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to list payment methods for user {user.id}: {e}")
            raise HTTPException(status_code=400, detail=describe_stripe_error(e)) from e
        return {"paymentMethods": [serialize_payment_method(pm) for pm in methods]}

    async def get_payment_history(self, email: Optional[str]) -> dict:
        user = self._get_user(email)
        self._require_stripe()
        try:
            customer_id = await self._customer_id(user)
            if not customer_id:
                return {"payments": []}
            intents = await self.stripe.list_payment_intents(customer_id)
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to list payments for user {user.id}: {e}")
            raise HTTPException(status_code=400, detail=describe_stripe_error(e)) from e

        payments = [
            {
                "id": intent["id"],
                "amount": intent["amount"] / 100,
                "currency": (intent.get("currency") or "").upper(),
                "status": intent["status"],
                "created": datetime.fromtimestamp(intent["created"], tz=timezone.utc).isoformat(),
            }
            for intent in intents
        ]
        return {"payments": payments}
