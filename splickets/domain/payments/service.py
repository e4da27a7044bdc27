"""
Payment service - deposit intents and the installment schedule that follows

Every deposit is tracked in a payment_setups row:

    intent_created -> confirmed -> subscription_pending -> subscription_created
                                                        -> subscription_failed
    (any) -> cancel_pending -> cancelled             when the booking is cancelled

The row is committed as subscription_pending before Stripe is called, so a
crash between the deposit and the schedule leaves a record the reconciliation
job can retry. Stripe calls use idempotency keys derived from the setup id and
attempt number. When Stripe gives no usable answer (connection error, 5xx) the
setup stays subscription_pending and the retry reuses the same key; only a
definite rejection moves it to subscription_failed and bumps the attempt. Before
any retry the customer's schedules are searched for one already created for the
setup, which is adopted instead of creating another.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import stripe
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...email_service import send_installment_setup_failed
from ...models import (
    INSTALLMENT_PAID,
    PLAN_COMPLETED,
    PaymentSetup,
    SETUP_CANCEL_PENDING,
    SETUP_CANCELLED,
    SETUP_CONFIRMED,
    SETUP_INTENT_CREATED,
    SETUP_SUBSCRIPTION_CREATED,
    SETUP_SUBSCRIPTION_FAILED,
    SETUP_SUBSCRIPTION_PENDING,
)
from .repository import PaymentSetupRepository
from .schemas import CreateSubscriptionRequest, PaymentIntentRequest
from .stripe_service import (
    PaymentProviderUnavailable,
    describe_stripe_error,
    is_ambiguous_stripe_error,
    stripe_service,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_STALE_AFTER = timedelta(minutes=15)

INTERVAL_DAYS = {"week": 7, "month": 30}
CANCELLED_STATUSES = (SETUP_CANCEL_PENDING, SETUP_CANCELLED)


class PaymentSetupError(Exception):
    """Creating the installment schedule failed; the setup is left for reconciliation"""


def utcnow() -> datetime:
    """Naive UTC, matching the DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_cents(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def default_start_date(interval: str, interval_count: int) -> datetime:
    """First installment one billing interval from now"""
    return utcnow() + timedelta(days=INTERVAL_DAYS.get(interval, 7) * interval_count)


class PaymentService:
    """Service layer for payment intents and installment schedules"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentSetupRepository()
        self.stripe = stripe_service

    def _require_stripe(self):
        if not self.stripe.is_available():
            raise HTTPException(status_code=503, detail="Payment service temporarily unavailable")

    # ------------------------------------------------------------------
    # Deposit / full payment intents
    # ------------------------------------------------------------------

    async def create_payment_intent(self, data: PaymentIntentRequest) -> dict:
        self._require_stripe()

        try:
            customer_id = None
            if data.customer_email:
                customer = await self.stripe.get_or_create_customer(data.customer_email)
                customer_id = customer["id"]

            intent = await self.stripe.create_payment_intent(
                amount_cents=data.amount,
                currency=data.currency,
                customer_id=customer_id,
                receipt_email=data.customer_email,
                setup_future_usage=data.setup_future_usage,
                metadata=data.metadata,
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Error creating payment intent: {e}")
            raise HTTPException(status_code=400, detail=describe_stripe_error(e)) from e

        self.repo.create_setup(
            self.db,
            payment_intent_id=intent["id"],
            customer_id=customer_id,
            customer_email=data.customer_email,
            status=SETUP_INTENT_CREATED,
            amount_cents=data.amount,
            currency=data.currency,
            extra_metadata=data.metadata or {},
        )
        logger.info(f"💳 Created payment intent {intent['id']} for {data.amount} {data.currency}")

        return {
            "clientSecret": intent.get("client_secret"),
            "id": intent["id"],
            "customerId": customer_id,
        }

    # ------------------------------------------------------------------
    # Installment subscription schedule
    # ------------------------------------------------------------------

    async def create_installment_subscription(self, data: CreateSubscriptionRequest) -> dict:
        self._require_stripe()

        setup = await self._confirmed_setup(data)

        if setup.status == SETUP_SUBSCRIPTION_CREATED:
            logger.info(f"ℹ️ Installment schedule already exists for setup {setup.id}")
            return self._subscription_result(setup)

        if setup.status in CANCELLED_STATUSES:
            raise HTTPException(
                status_code=409, detail="Installments were cancelled with the booking"
            )

        # A pending setup already went to Stripe under its stored parameters
        if setup.status == SETUP_SUBSCRIPTION_PENDING:
            try:
                await self.create_schedule_for_setup(setup)
            except PaymentSetupError as e:
                raise HTTPException(status_code=400, detail=str(e)) from e
            return self._subscription_result(setup)

        setup.customer_email = data.customer_email
        setup.customer_name = data.customer_name or setup.customer_name
        setup.installment_amount_cents = to_cents(data.installment_amount)
        setup.currency = data.currency
        setup.installment_interval = data.interval
        setup.installment_interval_count = data.interval_count
        setup.installment_iterations = data.iterations or data.interval_count
        setup.installment_start_date = data.start_date or default_start_date(
            data.interval, data.interval_count
        )
        setup.payment_method_id = data.payment_method_id or setup.payment_method_id
        setup.extra_metadata = {**(setup.extra_metadata or {}), **(data.metadata or {})}
        setup.status = SETUP_SUBSCRIPTION_PENDING
        self.db.commit()

        try:
            await self.create_schedule_for_setup(setup)
        except PaymentSetupError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        return self._subscription_result(setup)

    async def _confirmed_setup(self, data: CreateSubscriptionRequest) -> PaymentSetup:
        """Load (or start) the setup for this request and check the deposit went through"""
        if not data.payment_intent_id:
            return self.repo.create_setup(
                self.db,
                customer_email=data.customer_email,
                customer_name=data.customer_name,
                status=SETUP_CONFIRMED,
                currency=data.currency,
                extra_metadata=data.metadata or {},
            )

        setup = self.repo.get_by_payment_intent(self.db, data.payment_intent_id)
        if setup and setup.status in (
            SETUP_SUBSCRIPTION_CREATED,
            SETUP_SUBSCRIPTION_PENDING,
            *CANCELLED_STATUSES,
        ):
            if setup.status == SETUP_SUBSCRIPTION_PENDING:
                logger.info(f"🔄 Resuming pending installment setup {setup.id}")
            return setup

        try:
            intent = await self.stripe.retrieve_payment_intent(data.payment_intent_id)
        except stripe.StripeError as e:
            raise HTTPException(status_code=400, detail=describe_stripe_error(e)) from e

        if intent["status"] != "succeeded":
            raise HTTPException(
                status_code=400,
                detail=f"Payment has not succeeded (status: {intent['status']})",
            )

        if not setup:
            setup = self.repo.create_setup(
                self.db,
                payment_intent_id=data.payment_intent_id,
                customer_id=intent.get("customer"),
                customer_email=data.customer_email,
                status=SETUP_INTENT_CREATED,
                amount_cents=intent.get("amount"),
                currency=intent.get("currency") or data.currency,
            )

        if setup.status == SETUP_INTENT_CREATED:
            setup.status = SETUP_CONFIRMED
        if not setup.payment_method_id and intent.get("payment_method"):
            setup.payment_method_id = intent["payment_method"]
        self.db.commit()
        return setup

    def _idempotency_key(self, setup: PaymentSetup, step: str) -> str:
        return f"splickets-setup-{setup.id}-{setup.attempts}-{step}"

    async def create_schedule_for_setup(self, setup: PaymentSetup):
        """
        Create price and subscription schedule for a setup in subscription_pending

        A definite rejection moves the setup to subscription_failed and bumps
        the attempt; a lost answer leaves it subscription_pending so the retry
        sends the same idempotency keys. Either way PaymentSetupError is raised.
        """
        metadata = {
            **(setup.extra_metadata or {}),
            "payment_setup_id": str(setup.id),
            "customer_email": setup.customer_email or "",
            "original_installment_amount": f"{Decimal(setup.installment_amount_cents) / 100:.2f}",
        }
        if setup.payment_intent_id:
            metadata["payment_intent_id"] = setup.payment_intent_id

        try:
            if not setup.customer_id:
                customer = await self.stripe.get_or_create_customer(
                    setup.customer_email,
                    setup.customer_name,
                    idempotency_key=self._idempotency_key(setup, "customer"),
                )
                setup.customer_id = customer["id"]

            price = await self.stripe.create_installment_price(
                amount_cents=setup.installment_amount_cents,
                currency=setup.currency or "usd",
                interval=setup.installment_interval,
                interval_count=setup.installment_interval_count,
                metadata=metadata,
                idempotency_key=self._idempotency_key(setup, "price"),
            )

            if setup.payment_method_id:
                await self.stripe.attach_payment_method(setup.payment_method_id, setup.customer_id)

            schedule = await self.stripe.create_installment_schedule(
                customer_id=setup.customer_id,
                price_id=price["id"],
                iterations=setup.installment_iterations,
                start_date=setup.installment_start_date,
                metadata=metadata,
                idempotency_key=self._idempotency_key(setup, "schedule"),
            )
        except (stripe.StripeError, PaymentProviderUnavailable) as e:
            message = describe_stripe_error(e)
            setup.last_error = message
            if is_ambiguous_stripe_error(e):
                setup.status = SETUP_SUBSCRIPTION_PENDING
                self.db.commit()
                logger.warning(
                    f"⚠️ No answer from Stripe for installment setup {setup.id}; "
                    f"will retry with the same keys: {message}"
                )
                raise PaymentSetupError(message) from e

            setup.status = SETUP_SUBSCRIPTION_FAILED
            setup.attempts = (setup.attempts or 0) + 1
            self.db.commit()
            logger.error(
                f"❌ Installment setup {setup.id} failed (attempt {setup.attempts}): {message}"
            )
            raise PaymentSetupError(message) from e

        setup.price_id = price["id"]
        self._mark_schedule_created(setup, schedule)
        logger.info(f"✅ Installment schedule {schedule['id']} created for setup {setup.id}")
        return schedule

    def _mark_schedule_created(self, setup: PaymentSetup, schedule) -> None:
        setup.subscription_schedule_id = schedule["id"]
        setup.status = SETUP_SUBSCRIPTION_CREATED
        setup.last_error = None
        self.db.commit()

    async def _adopt_existing_schedule(self, setup: PaymentSetup) -> bool:
        """Link a schedule Stripe already created for this setup instead of making another"""
        if not setup.customer_id:
            return False
        schedule = await self.stripe.find_schedule_for_setup(setup.customer_id, setup.id)
        if not schedule:
            return False
        self._mark_schedule_created(setup, schedule)
        logger.info(f"🔗 Adopted existing schedule {schedule['id']} for setup {setup.id}")
        return True

    def _subscription_result(self, setup: PaymentSetup) -> dict:
        return {
            "success": True,
            "paymentSetupId": setup.id,
            "subscriptionScheduleId": setup.subscription_schedule_id,
            "priceId": setup.price_id,
            "customerId": setup.customer_id,
            "startDate": setup.installment_start_date.isoformat()
            if setup.installment_start_date
            else None,
            "installmentAmount": setup.installment_amount_cents / 100
            if setup.installment_amount_cents
            else None,
            "totalInstallments": setup.installment_iterations,
            "paymentMethodAttached": bool(setup.payment_method_id),
        }

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile_payment_setups(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
    ) -> dict:
        """
        Retry stuck or failed installment setups, finish cancellations that
        Stripe did not confirm, and notify customers once attempts run out
        """
        summary = {"checked": 0, "created": 0, "failed": 0, "cancelled": 0, "notified": 0}

        if not self.stripe.is_available():
            logger.warning("⚠️ Stripe not configured - skipping payment setup reconciliation")
            return summary

        stale_before = utcnow() - stale_after
        for setup in self.repo.get_setups_needing_retry(self.db, stale_before, max_attempts):
            summary["checked"] += 1
            try:
                if await self._adopt_existing_schedule(setup):
                    summary["created"] += 1
                    continue
            except (stripe.StripeError, PaymentProviderUnavailable) as e:
                # Without the lookup a fresh key could duplicate the schedule
                logger.warning(f"⚠️ Could not check schedules for setup {setup.id}: {e}")
                summary["failed"] += 1
                continue

            setup.status = SETUP_SUBSCRIPTION_PENDING
            self.db.commit()
            try:
                await self.create_schedule_for_setup(setup)
                summary["created"] += 1
            except PaymentSetupError:
                summary["failed"] += 1

        for setup in self.repo.get_setups_awaiting_cancel(self.db):
            if await self._stop_schedule(setup):
                summary["cancelled"] += 1

        for setup in self.repo.get_exhausted_unnotified(self.db, max_attempts):
            sent = await send_installment_setup_failed(
                to=setup.customer_email,
                customer_name=setup.customer_name or setup.customer_email,
                installment_amount=Decimal(setup.installment_amount_cents or 0) / 100,
                currency=(setup.currency or "usd").upper(),
            )
            # Only one email per setup, even when delivery fails
            setup.failure_notified = True
            self.db.commit()
            if sent:
                summary["notified"] += 1
            logger.warning(
                f"⚠️ Installment setup {setup.id} gave up after {setup.attempts} attempts"
            )

        logger.info(f"📊 Payment setup reconciliation: {summary}")
        return summary

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def cancel_setup(self, setup: PaymentSetup) -> bool:
        """
        Stop installment billing for a cancelled booking

        The setup is committed as cancel_pending first, so it never goes back
        to reconciliation for creation. Returns True once nothing can bill;
        otherwise the cancel is retried by the reconciliation job.
        """
        if setup.status == SETUP_CANCELLED:
            return True
        setup.status = SETUP_CANCEL_PENDING
        self.db.commit()
        return await self._stop_schedule(setup)

    async def _stop_schedule(self, setup: PaymentSetup) -> bool:
        try:
            schedule_id = setup.subscription_schedule_id
            if not schedule_id and setup.customer_id and setup.installment_amount_cents:
                # A lost answer may have left a schedule we never recorded
                existing = await self.stripe.find_schedule_for_setup(setup.customer_id, setup.id)
                schedule_id = existing["id"] if existing else None
            if schedule_id:
                await self.stripe.cancel_subscription_schedule(schedule_id)
        except (stripe.StripeError, PaymentProviderUnavailable) as e:
            setup.last_error = describe_stripe_error(e)
            self.db.commit()
            logger.error(f"❌ Could not cancel installments for setup {setup.id}: {setup.last_error}")
            return False

        setup.status = SETUP_CANCELLED
        setup.last_error = None
        self.db.commit()
        logger.info(f"🛑 Installments stopped for setup {setup.id} (schedule {schedule_id})")
        return True

    # ------------------------------------------------------------------
    # Read-through lookups
    # ------------------------------------------------------------------

    async def get_payment_intent(self, payment_intent_id: str) -> dict:
        self._require_stripe()
        try:
            intent = await self.stripe.retrieve_payment_intent(payment_intent_id)
        except stripe.StripeError as e:
            raise HTTPException(status_code=400, detail=describe_stripe_error(e)) from e
        return {
            "status": intent["status"],
            "amount": intent["amount"],
            "currency": intent["currency"],
            "payment_method": intent.get("payment_method"),
            "customer": intent.get("customer"),
        }

    async def get_subscription_schedule(self, schedule_id: str) -> dict:
        self._require_stripe()
        try:
            schedule = await self.stripe.retrieve_subscription_schedule(schedule_id)
        except stripe.StripeError as e:
            raise HTTPException(status_code=400, detail=describe_stripe_error(e)) from e
        return {
            "id": schedule["id"],
            "status": schedule["status"],
            "customer": schedule.get("customer"),
            "phases": schedule.get("phases"),
            "current_phase": schedule.get("current_phase"),
        }

    async def get_customer_payment_methods(self, customer_id: str) -> dict:
        self._require_stripe()
        try:
            methods = await self.stripe.list_payment_methods(customer_id)
            customer = await self.stripe.get_customer(customer_id)
        except stripe.StripeError as e:
            raise HTTPException(status_code=400, detail=describe_stripe_error(e)) from e

        invoice_settings = customer.get("invoice_settings") or {}
        return {
            "paymentMethods": [serialize_payment_method(pm) for pm in methods],
            "defaultPaymentMethod": invoice_settings.get("default_payment_method"),
            "customerEmail": customer.get("email"),
        }

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def handle_webhook_event(self, event) -> dict:
        event_type = event["type"]
        obj = event["data"]["object"]
        logger.info(f"📥 Received Stripe webhook: {event_type}")

        if event_type == "payment_intent.succeeded":
            setup = self.repo.get_by_payment_intent(self.db, obj["id"])
            if setup and setup.status == SETUP_INTENT_CREATED:
                setup.status = SETUP_CONFIRMED
                if obj.get("payment_method"):
                    setup.payment_method_id = obj["payment_method"]
                self.db.commit()
                logger.info(f"✅ Payment intent {obj['id']} confirmed")

        elif event_type == "payment_intent.payment_failed":
            error = (obj.get("last_payment_error") or {}).get("message")
            logger.warning(f"⚠️ Payment intent {obj['id']} failed: {error}")

        elif event_type == "invoice.paid":
            self._record_installment_payment(obj)

        else:
            logger.info(f"ℹ️ Unhandled event type: {event_type}")

        return {"received": True, "event_type": event_type}

    def _record_installment_payment(self, invoice) -> None:
        details = invoice.get("subscription_details") or {}
        metadata = details.get("metadata") or {}

        setup = None
        if metadata.get("payment_setup_id"):
            setup = self.repo.get_by_id(self.db, int(metadata["payment_setup_id"]))
        elif metadata.get("payment_intent_id"):
            setup = self.repo.get_by_payment_intent(self.db, metadata["payment_intent_id"])

        if not setup or not setup.payment_plan_id:
            logger.info(f"ℹ️ Invoice {invoice.get('id')} is not linked to a payment plan")
            return

        invoice_id = invoice.get("id")
        if invoice_id and self.repo.get_installment_by_invoice(self.db, invoice_id):
            logger.info(f"ℹ️ Invoice {invoice_id} already applied")
            return

        installment = self.repo.get_earliest_unpaid_installment(self.db, setup.payment_plan_id)
        if not installment:
            logger.warning(f"⚠️ Invoice {invoice_id} paid but plan {setup.payment_plan_id} has nothing due")
            return

        installment.status = INSTALLMENT_PAID
        installment.paid_at = utcnow()
        installment.stripe_invoice_id = invoice_id
        self.db.flush()

        if self.repo.count_open_installments(self.db, setup.payment_plan_id) == 0:
            plan = self.repo.get_plan(self.db, setup.payment_plan_id)
            plan.status = PLAN_COMPLETED
            logger.info(f"🎉 Payment plan {plan.id} completed")

        self.db.commit()
        logger.info(f"✅ Installment {installment.id} marked paid from invoice {invoice.get('id')}")


def serialize_payment_method(pm) -> dict:
    card = pm.get("card")
    return {
        "id": pm["id"],
        "type": pm.get("type"),
        "card": {
            "brand": card.get("brand"),
            "last4": card.get("last4"),
            "exp_month": card.get("exp_month"),
            "exp_year": card.get("exp_year"),
        }
        if card
        else None,
    }
