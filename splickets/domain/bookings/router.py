"""Booking router - leads, booking completion, cancellation and reminders"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from .schemas import BookingCompleteRequest, LeadRequest, PaymentReminderRequest
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Bookings"])

rate_limit_leads = create_rate_limiter(limit=30, window_seconds=60, key_prefix="leads")
rate_limit_reminders = create_rate_limiter(limit=10, window_seconds=60, key_prefix="payment_reminder")


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


@router.post("/leads")
async def save_lead(
    body: LeadRequest,
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(rate_limit_leads),
):
    """Save passenger details as a lead"""
    return service.save_lead(body)


@router.post("/bookings/complete")
async def complete_booking(
    body: BookingCompleteRequest,
    service: BookingService = Depends(get_booking_service),
):
    return await service.complete_booking(body)


@router.get("/bookings/user")
async def get_user_bookings(
    email: Optional[str] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    """Bookings for a user with flight and payment plan data, newest first"""
    return service.get_user_bookings(email)


@router.post("/bookings/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return await service.cancel_booking(booking_id, current_user)


@router.post("/send-payment-reminder")
async def send_payment_reminder(
    body: PaymentReminderRequest,
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(rate_limit_reminders),
):
    return await service.send_payment_reminder(body.bookingId)
