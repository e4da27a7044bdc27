"""Payment schemas - request bodies for intents and installment schedules"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class PaymentIntentRequest(BaseModel):
    amount: int = Field(..., ge=50)  # cents, Stripe minimum is $0.50
    currency: str = "usd"
    customer_email: Optional[EmailStr] = None
    setup_future_usage: Optional[Literal["off_session", "on_session"]] = None
    metadata: Optional[dict[str, str]] = None

    @field_validator("currency")
    @classmethod
    def lower_currency(cls, v: str) -> str:
        return v.strip().lower()


class PaymentIntentResponse(BaseModel):
    clientSecret: Optional[str] = None
    id: str
    customerId: Optional[str] = None


class CreateSubscriptionRequest(BaseModel):
    payment_intent_id: Optional[str] = None
    customer_email: EmailStr
    customer_name: Optional[str] = None
    installment_amount: float = Field(..., ge=1)  # major units per installment
    currency: str = "usd"
    interval: Literal["week", "month"]
    interval_count: int = Field(..., ge=1, le=12)
    iterations: Optional[int] = Field(None, ge=1, le=104)
    start_date: Optional[datetime] = None
    payment_method_id: Optional[str] = None
    metadata: Optional[dict[str, str]] = None

    @field_validator("currency")
    @classmethod
    def lower_currency(cls, v: str) -> str:
        return v.strip().lower()
