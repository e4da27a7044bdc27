"""Referral service - issuing, looking up and applying referral codes"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import PromoCode, User
from . import codes
from .repository import ReferralRepository

logger = logging.getLogger(__name__)

MAX_REFERRAL_CODE_ATTEMPTS = 10


class ReferralCodeExhaustedError(RuntimeError):
    """No unique referral code could be generated within the attempt budget"""


class ReferralService:
    """Service layer for referral codes"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ReferralRepository()

    def create_referral_code_for_user(self, user: User) -> str:
        """
        Issue a referral code for a user, or return the one they already have

        Commits on success. A collision (pre-check hit or unique constraint
        violation on flush) costs one attempt; the session is rolled back
        after a violation, so callers must commit their own work first.
        """
        existing = self.repo.get_referral_for_user(self.db, user.id)
        if existing:
            return existing.code

        for attempt in range(1, MAX_REFERRAL_CODE_ATTEMPTS + 1):
            code = codes.generate_referral_code(user.first_name, user.last_name)

            if self.repo.code_exists(self.db, code):
                logger.debug(f"Referral code collision on attempt {attempt}: {code}")
                continue

            try:
                self.repo.add_referral_code(self.db, user.id, code)
                self.db.commit()
            except IntegrityError:
                # Another writer took the code between the check and the insert
                self.db.rollback()
                logger.warning(f"⚠️ Referral code {code} taken concurrently (attempt {attempt})")
                continue

            logger.info(f"🎟️ Created referral code {code} for user {user.id}")
            return code

        logger.error(f"❌ Could not generate a unique referral code for user {user.id}")
        raise ReferralCodeExhaustedError(
            f"Failed to generate unique referral code after {MAX_REFERRAL_CODE_ATTEMPTS} attempts"
        )

    def get_user_referral_code(self, user_id: int) -> Optional[str]:
        promo = self.repo.get_referral_for_user(self.db, user_id)
        return promo.code if promo else None

    def get_referral_summary(self, email: str) -> dict:
        """Code, usage count, earned credit and the bookings made with the code"""
        user = self.db.query(User).filter(User.email == email).first()
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        promo = self.repo.get_referral_for_user(self.db, user.id)
        if not promo:
            return {"code": None, "timesUsed": 0, "credit": 0.0, "bookings": []}

        credit = Decimal(promo.times_used or 0) * Decimal(promo.discount_amount or 0)
        bookings = self.repo.get_bookings_with_code(self.db, promo.id)

        return {
            "code": promo.code,
            "timesUsed": promo.times_used,
            "discountPercent": float(promo.discount_percent or 0),
            "discountAmount": float(promo.discount_amount or 0),
            "credit": float(credit),
            "bookings": [
                {
                    "id": booking.id,
                    "reference": booking.reference,
                    "status": booking.status,
                    "createdAt": booking.created_at.isoformat() if booking.created_at else None,
                }
                for booking in bookings
            ],
        }

    def apply_promo_code(
        self, code: str, subtotal: Decimal, user: Optional[User] = None
    ) -> tuple[PromoCode, Decimal]:
        """Validate a code for a booking and return it with the discount it gives"""
        promo = self.repo.get_by_code(self.db, code.strip().upper())
        if not promo or not promo.is_active:
            raise HTTPException(status_code=400, detail="Invalid or inactive promo code")

        if user is not None and promo.user_id == user.id:
            raise HTTPException(status_code=400, detail="You cannot use your own referral code")

        percent = Decimal(promo.discount_percent or 0)
        discount = (Decimal(subtotal) * percent / 100).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
        return promo, discount

    def record_usage(self, promo: PromoCode) -> None:
        """Count a booking against the code; the caller commits"""
        promo.times_used = (promo.times_used or 0) + 1

    def backfill_referral_codes(self) -> dict:
        """Issue codes for every user that has none; one user's failure does not stop the run"""
        summary = {"created": 0, "skipped": 0, "errors": 0}
        for user in self.db.query(User).order_by(User.id).all():
            if self.repo.get_referral_for_user(self.db, user.id):
                summary["skipped"] += 1
                continue
            try:
                self.create_referral_code_for_user(user)
                summary["created"] += 1
            except ReferralCodeExhaustedError as e:
                logger.error(f"❌ Referral code for user {user.id} failed: {e}")
                summary["errors"] += 1
        return summary
