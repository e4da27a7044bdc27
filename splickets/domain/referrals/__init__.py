"""Referral domain - referral code issuance and promo code application"""

from .service import MAX_REFERRAL_CODE_ATTEMPTS, ReferralCodeExhaustedError, ReferralService

__all__ = ["MAX_REFERRAL_CODE_ATTEMPTS", "ReferralCodeExhaustedError", "ReferralService"]
