"""Stripe service - thin async wrapper around the Stripe SDK"""

import logging
from datetime import datetime
from typing import Optional

import stripe
from starlette.concurrency import run_in_threadpool

from ...config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET

logger = logging.getLogger(__name__)

INSTALLMENT_PRODUCT_NAME = "Flight Payment Installment"


class PaymentProviderUnavailable(RuntimeError):
    """Stripe is not configured"""


def describe_stripe_error(error: Exception) -> str:
    """User-facing message for a Stripe failure"""
    message = getattr(error, "user_message", None) or str(error)
    if isinstance(error, stripe.CardError):
        return f"Card error: {message}"
    if isinstance(error, stripe.InvalidRequestError):
        return f"Invalid request: {message}"
    return message or "Payment processor error"


def is_ambiguous_stripe_error(error: Exception) -> bool:
    """Stripe may have applied the request even though no usable answer came back"""
    if isinstance(error, stripe.APIConnectionError):
        return True
    return isinstance(error, stripe.APIError) and (error.http_status or 500) >= 500


class StripeService:
    """Service for Stripe API operations; SDK calls run in the threadpool"""

    def __init__(self):
        self.api_key = STRIPE_SECRET_KEY
        self.webhook_secret = STRIPE_WEBHOOK_SECRET

        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not set; payment endpoints will fail until configured")
        else:
            stripe.api_key = self.api_key
            logger.info("Stripe client initialized")

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _require(self):
        if not self.is_available():
            raise PaymentProviderUnavailable("Stripe is not configured")

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def find_customer_by_email(self, email: str):
        self._require()
        existing = await run_in_threadpool(stripe.Customer.list, email=email, limit=1)
        return existing["data"][0] if existing["data"] else None

    async def get_or_create_customer(
        self, email: str, name: Optional[str] = None, idempotency_key: Optional[str] = None
    ):
        existing = await self.find_customer_by_email(email)
        if existing:
            return existing

        params = {"email": email, "name": name}
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        customer = await run_in_threadpool(stripe.Customer.create, **params)
        logger.info(f"🆕 Created Stripe customer {customer['id']} for {email}")
        return customer

    async def get_customer(self, customer_id: str):
        self._require()
        return await run_in_threadpool(stripe.Customer.retrieve, customer_id)

    async def attach_payment_method(self, payment_method_id: str, customer_id: str):
        """Attach a payment method and make it the default for invoices"""
        self._require()
        await run_in_threadpool(stripe.PaymentMethod.attach, payment_method_id, customer=customer_id)
        return await run_in_threadpool(
            stripe.Customer.modify,
            customer_id,
            invoice_settings={"default_payment_method": payment_method_id},
        )

    async def list_payment_methods(self, customer_id: str, type: str = "card") -> list:
        self._require()
        result = await run_in_threadpool(stripe.PaymentMethod.list, customer=customer_id, type=type)
        return list(result["data"])

    # ------------------------------------------------------------------
    # Payment intents
    # ------------------------------------------------------------------

    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        customer_id: Optional[str] = None,
        receipt_email: Optional[str] = None,
        setup_future_usage: Optional[str] = None,
        metadata: Optional[dict] = None,
    ):
        self._require()
        params = {
            "amount": int(amount_cents),
            "currency": currency.lower(),
            "metadata": metadata or {},
            "automatic_payment_methods": {"enabled": True},
        }
        if customer_id:
            params["customer"] = customer_id
        if receipt_email:
            params["receipt_email"] = receipt_email
        if setup_future_usage:
            params["setup_future_usage"] = setup_future_usage
        return await run_in_threadpool(stripe.PaymentIntent.create, **params)

    async def retrieve_payment_intent(self, payment_intent_id: str):
        self._require()
        return await run_in_threadpool(stripe.PaymentIntent.retrieve, payment_intent_id)

    async def list_payment_intents(self, customer_id: str, limit: int = 100) -> list:
        self._require()
        result = await run_in_threadpool(stripe.PaymentIntent.list, customer=customer_id, limit=limit)
        return list(result["data"])

    # ------------------------------------------------------------------
    # Installments (price + subscription schedule)
    # ------------------------------------------------------------------

    async def create_installment_price(
        self,
        amount_cents: int,
        currency: str,
        interval: str,
        interval_count: int,
        metadata: Optional[dict] = None,
        idempotency_key: Optional[str] = None,
    ):
        self._require()
        params = {
            "unit_amount": int(amount_cents),
            "currency": currency.lower(),
            "recurring": {"interval": interval, "interval_count": interval_count},
            "product_data": {"name": INSTALLMENT_PRODUCT_NAME},
            "metadata": metadata or {},
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        return await run_in_threadpool(stripe.Price.create, **params)

    async def create_installment_schedule(
        self,
        customer_id: str,
        price_id: str,
        iterations: int,
        start_date: datetime,
        metadata: Optional[dict] = None,
        idempotency_key: Optional[str] = None,
    ):
        """Schedule that bills `iterations` cycles of the price and then cancels itself"""
        self._require()
        params = {
            "customer": customer_id,
            "start_date": int(start_date.timestamp()),
            "end_behavior": "cancel",
            # Phase metadata is copied onto the subscription and its invoices
            "phases": [
                {
                    "iterations": iterations,
                    "items": [{"price": price_id}],
                    "metadata": metadata or {},
                }
            ],
            "metadata": metadata or {},
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        return await run_in_threadpool(stripe.SubscriptionSchedule.create, **params)

    async def find_schedule_for_setup(self, customer_id: str, payment_setup_id: int):
        """Live schedule whose metadata points at the payment setup, if Stripe has one"""
        self._require()
        result = await run_in_threadpool(
            stripe.SubscriptionSchedule.list, customer=customer_id, limit=100
        )
        for schedule in result["data"]:
            metadata = schedule.get("metadata") or {}
            if metadata.get("payment_setup_id") != str(payment_setup_id):
                continue
            if schedule.get("status") in ("canceled", "released"):
                continue
            return schedule
        return None

    async def retrieve_subscription_schedule(self, schedule_id: str):
        self._require()
        return await run_in_threadpool(stripe.SubscriptionSchedule.retrieve, schedule_id)

    async def cancel_subscription_schedule(self, schedule_id: str):
        self._require()
        return await run_in_threadpool(stripe.SubscriptionSchedule.cancel, schedule_id)

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def construct_event(self, payload: bytes, signature: Optional[str]):
        """Verify a webhook signature and parse the event"""
        if not self.webhook_secret:
            raise PaymentProviderUnavailable("STRIPE_WEBHOOK_SECRET is not configured")
        return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)


# Global instance
stripe_service = StripeService()
