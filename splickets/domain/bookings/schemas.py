"""Booking domain schemas - leads and booking completion"""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class ContactDetails(BaseModel):
    email: EmailStr
    diallingCode: Optional[str] = None
    phoneNumber: Optional[str] = None


class PassengerDetails(BaseModel):
    title: Optional[str] = None
    firstName: str
    lastName: str
    dateOfBirth: Optional[date] = None
    passportNumber: Optional[str] = None
    passportCountry: Optional[str] = None

    class Config:
        extra = "allow"


class LeadRequest(BaseModel):
    contactDetails: ContactDetails
    passengers: list[PassengerDetails] = Field(..., min_length=1)
    searchId: Optional[int] = None


class PassengerData(BaseModel):
    contactDetails: ContactDetails
    passengers: list[PassengerDetails] = Field(..., min_length=1)


class ScheduledInstallment(BaseModel):
    dueDate: date
    amount: float = Field(..., gt=0)


class BookingPaymentPlan(BaseModel):
    depositPercentage: int = Field(..., ge=1, le=100)
    totalAmount: float = Field(..., gt=0)
    depositAmount: Optional[float] = None
    installmentType: Optional[str] = None
    installmentCount: Optional[int] = None
    installmentAmount: Optional[float] = None
    # Either explicit (date, amount) pairs or due dates with amounts derived here
    installments: Optional[list[ScheduledInstallment]] = None
    installmentDates: Optional[list[date]] = None

    @field_validator("installmentDates", mode="before")
    @classmethod
    def strip_times(cls, v):
        if not v:
            return v
        # Clients send full ISO timestamps for due dates
        return [d[:10] if isinstance(d, str) else d for d in v]

    @field_validator("installmentType")
    @classmethod
    def normalize_type(cls, v):
        if v is None:
            return v
        return v.strip().lower().replace("-", "_")


class BookingCompleteRequest(BaseModel):
    flightData: dict[str, Any]
    passengerData: PassengerData
    paymentPlan: BookingPaymentPlan
    leadId: int
    searchId: Optional[int] = None
    paymentIntentId: Optional[str] = None
    promoCode: Optional[str] = None


class PaymentReminderRequest(BaseModel):
    bookingId: int
