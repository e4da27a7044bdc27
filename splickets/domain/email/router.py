"""
Email Routes - Sample sends for checking templates in development
"""

import logging
from datetime import date, timedelta
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr

from ... import config
from ...email_service import send_booking_confirmation, send_payment_reminder, send_welcome_email
from ...rate_limiter import create_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Email"])

rate_limit_test_email = create_rate_limiter(limit=5, window_seconds=60, key_prefix="test_email")

SAMPLE_REFERENCE = "FP000123"


class TestEmailRequest(BaseModel):
    type: Literal["welcome", "booking", "reminder"]
    email: EmailStr


@router.post("/test-email")
async def send_test_email(
    data: TestEmailRequest,
    _: None = Depends(rate_limit_test_email),
):
    """Send a sample email of the given type (development only)"""
    if config.ENVIRONMENT != "development":
        raise HTTPException(status_code=403, detail="Test emails are only available in development")

    departure = date.today() + timedelta(days=60)

    if data.type == "welcome":
        sent = await send_welcome_email(to=data.email, customer_name="Test Traveller")
    elif data.type == "booking":
        sent = await send_booking_confirmation(
            to=data.email,
            customer_name="Test Traveller",
            booking_reference=SAMPLE_REFERENCE,
            flight_details={
                "origin": "LHR",
                "destination": "JFK",
                "departure_date": departure,
                "return_date": departure + timedelta(days=14),
                "flight_number": "BA 117",
                "passengers": 1,
            },
            payment_plan={
                "total_amount": 850,
                "deposit_amount": 170,
                "installment_amount": 170,
                "installment_count": 4,
                "frequency": "monthly",
            },
            currency="GBP",
        )
    else:
        sent = await send_payment_reminder(
            to=data.email,
            customer_name="Test Traveller",
            due_amount=170,
            due_date=date.today() + timedelta(days=3),
            booking_reference=SAMPLE_REFERENCE,
            payment_url=f"{config.FRONTEND_URL}/billing",
            currency="GBP",
        )

    logger.info(f"📧 Test {data.type} email to {data.email}: sent={sent}")
    return {"success": True, "type": data.type, "sentTo": data.email, "sent": sent}
