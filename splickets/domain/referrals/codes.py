import secrets
from typing import Optional

REFERRAL_CODE_PREFIX = "SPLICKETS-"

# No I, O, 0 or 1 so codes survive being read aloud
REFERRAL_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_RANDOM_LENGTH = 4


def _initial(name: Optional[str]) -> str:
    initial = (name or "").strip()[:1].upper()
    return initial if "A" <= initial <= "Z" else "X"


def generate_referral_code(first_name: Optional[str], last_name: Optional[str]) -> str:
    """SPLICKETS-<initials><4 random chars>, e.g. SPLICKETS-JD7K2M"""
    suffix = "".join(
        secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_RANDOM_LENGTH)
    )
    return f"{REFERRAL_CODE_PREFIX}{_initial(first_name)}{_initial(last_name)}{suffix}"
