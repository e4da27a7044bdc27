"""Referral repository - Database operations for promo and referral codes"""

from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Booking, PromoCode

REFERRAL_TYPE = "referral"


class ReferralRepository:
    """Repository for promo code database operations"""

    @staticmethod
    def get_by_code(db: Session, code: str) -> Optional[PromoCode]:
        return db.query(PromoCode).filter(PromoCode.code == code).first()

    @staticmethod
    def code_exists(db: Session, code: str) -> bool:
        return db.query(PromoCode.id).filter(PromoCode.code == code).first() is not None

    @staticmethod
    def get_referral_for_user(db: Session, user_id: int) -> Optional[PromoCode]:
        return (
            db.query(PromoCode)
            .filter(PromoCode.user_id == user_id, PromoCode.type == REFERRAL_TYPE)
            .first()
        )

    @staticmethod
    def add_referral_code(db: Session, user_id: int, code: str) -> PromoCode:
        """Stage a new referral code and flush so the unique constraint is checked"""
        promo = PromoCode(
            code=code,
            type=REFERRAL_TYPE,
            user_id=user_id,
            discount_percent=Decimal("10.00"),
            discount_amount=Decimal("25.00"),
            times_used=0,
            is_active=True,
        )
        db.add(promo)
        db.flush()
        return promo

    @staticmethod
    def get_bookings_with_code(db: Session, promo_code_id: int) -> list[Booking]:
        return (
            db.query(Booking)
            .filter(Booking.promo_code_id == promo_code_id)
            .order_by(Booking.created_at.desc())
            .all()
        )
