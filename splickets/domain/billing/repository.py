"""Billing repository - Database operations for billing views"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Booking, PaymentPlan, User


class BillingRepository:
    """Repository for billing database operations"""

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email"""
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def get_bookings_with_plans(db: Session, user_id: int) -> list[Booking]:
        """Bookings with their flight and payment plan (installments included), newest first"""
        return (
            db.query(Booking)
            .options(
                joinedload(Booking.flight),
                joinedload(Booking.payment_plan).joinedload(PaymentPlan.installments),
            )
            .filter(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )

    @staticmethod
    def set_stripe_customer_id(db: Session, user: User, customer_id: str) -> User:
        user.stripe_customer_id = customer_id
        db.commit()
        return user
