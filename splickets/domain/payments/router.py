"""Payment router - Stripe intents, installment schedules and webhooks"""

import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...database import get_db
from ...rate_limiter import create_rate_limiter
from .schemas import CreateSubscriptionRequest, PaymentIntentRequest, PaymentIntentResponse
from .service import PaymentService
from .stripe_service import PaymentProviderUnavailable, stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Payments"])

rate_limit_payments = create_rate_limiter(limit=20, window_seconds=60, key_prefix="payments")


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


@router.post("/create-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    body: PaymentIntentRequest,
    service: PaymentService = Depends(get_payment_service),
    _: None = Depends(rate_limit_payments),
):
    """Create a payment intent for a deposit or full payment"""
    return await service.create_payment_intent(body)


@router.post("/create-subscription")
async def create_installment_subscription(
    body: CreateSubscriptionRequest,
    service: PaymentService = Depends(get_payment_service),
    _: None = Depends(rate_limit_payments),
):
    """Create the installment schedule once the deposit has succeeded"""
    return await service.create_installment_subscription(body)


@router.get("/intent/{payment_intent_id}")
async def get_payment_intent(
    payment_intent_id: str, service: PaymentService = Depends(get_payment_service)
):
    return await service.get_payment_intent(payment_intent_id)


@router.get("/schedule/{schedule_id}")
async def get_subscription_schedule(
    schedule_id: str, service: PaymentService = Depends(get_payment_service)
):
    return await service.get_subscription_schedule(schedule_id)


@router.get("/customer/{customer_id}/payment-methods")
async def get_customer_payment_methods(
    customer_id: str, service: PaymentService = Depends(get_payment_service)
):
    return await service.get_customer_payment_methods(customer_id)


@router.post("/webhook")
async def stripe_webhook(request: Request, service: PaymentService = Depends(get_payment_service)):
    """
    Handle Stripe webhook events

    Events handled:
    - payment_intent.succeeded - deposit confirmed
    - payment_intent.payment_failed - logged
    - invoice.paid - next installment of the linked plan marked paid
    """
    body = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        event = stripe_service.construct_event(body, signature)
    except PaymentProviderUnavailable as e:
        logger.error(f"❌ Stripe webhook received but not configured: {e}")
        raise HTTPException(status_code=503, detail="Webhook handling not configured") from e
    except ValueError as e:
        logger.error("❌ Invalid webhook payload")
        raise HTTPException(status_code=400, detail="Invalid payload") from e
    except stripe.SignatureVerificationError as e:
        logger.error("❌ Invalid webhook signature")
        raise HTTPException(status_code=400, detail="Invalid signature") from e

    return service.handle_webhook_event(event)
