"""
Issue referral codes for existing users that don't have one yet
Usage: python generate_referral_codes.py
"""

import logging
import sys

from splickets import models  # noqa: F401
from splickets.database import SessionLocal
from splickets.domain.referrals import ReferralService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> int:
    db = SessionLocal()
    try:
        summary = ReferralService(db).backfill_referral_codes()
    finally:
        db.close()

    logger.info(
        f"✅ Referral codes: {summary['created']} created, "
        f"{summary['skipped']} skipped, {summary['errors']} errors"
    )
    return 1 if summary["errors"] else 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as e:
        logger.error(f"❌ Referral code backfill failed: {e}")
        sys.exit(1)
