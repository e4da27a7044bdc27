"""
Scheduled installment housekeeping
Marks unpaid installments overdue once their due date passes and
emails customers ahead of upcoming installments
"""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...config import BASE_URL
from ...email_service import send_payment_reminder
from ...models import (
    BOOKING_CANCELLED,
    INSTALLMENT_OVERDUE,
    INSTALLMENT_UNPAID,
    Booking,
    Installment,
    PaymentPlan,
)

logger = logging.getLogger(__name__)

REMINDER_DAYS_AHEAD = 3


def mark_overdue_installments(db: Session, today: Optional[date] = None) -> dict:
    """unpaid -> overdue for installments due before today"""
    today = today or date.today()
    installments = (
        db.query(Installment)
        .filter(Installment.status == INSTALLMENT_UNPAID, Installment.due_date < today)
        .all()
    )
    for installment in installments:
        installment.status = INSTALLMENT_OVERDUE
    db.commit()

    if installments:
        logger.info(f"⏰ Marked {len(installments)} installments overdue")
    return {"marked_overdue": len(installments)}


async def send_upcoming_payment_reminders(
    db: Session, days_ahead: int = REMINDER_DAYS_AHEAD, today: Optional[date] = None
) -> dict:
    """Remind customers of unpaid installments due in exactly `days_ahead` days"""
    due_date = (today or date.today()) + timedelta(days=days_ahead)
    rows = (
        db.query(Installment, Booking)
        .join(PaymentPlan, Installment.payment_plan_id == PaymentPlan.id)
        .join(Booking, Booking.payment_plan_id == PaymentPlan.id)
        .options(joinedload(Booking.user))
        .filter(
            Installment.status == INSTALLMENT_UNPAID,
            Installment.due_date == due_date,
            Booking.status != BOOKING_CANCELLED,
        )
        .all()
    )

    summary = {"checked": len(rows), "sent": 0, "failed": 0}
    for installment, booking in rows:
        user = booking.user
        sent = await send_payment_reminder(
            user.email,
            f"{user.first_name} {user.last_name}",
            installment.amount,
            installment.due_date,
            booking.reference,
            f"{BASE_URL}/payment/{booking.id}",
            installment.currency or booking.currency,
        )
        if sent:
            summary["sent"] += 1
        else:
            summary["failed"] += 1

    logger.info(f"📧 Payment reminders for {due_date}: {summary}")
    return summary
