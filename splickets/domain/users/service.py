"""User service - account lookups and preferences"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User
from ..currency.currencies import SUPPORTED_CURRENCY_CODES, normalize_currency

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user lookups"""

    def __init__(self, db: Session):
        self.db = db

    def _get_by_email(self, email: Optional[str]) -> User:
        if not email:
            raise HTTPException(status_code=400, detail="Email is required")
        user = self.db.query(User).filter(User.email == email.strip()).first()
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    def user_exists(self, email: Optional[str]) -> bool:
        if not email:
            raise HTTPException(status_code=400, detail="Email is required")
        return self.db.query(User.id).filter(User.email == email.strip()).first() is not None

    def get_user_details(self, email: Optional[str]) -> User:
        return self._get_by_email(email)

    def get_preferred_currency(self, email: Optional[str]) -> str:
        return self._get_by_email(email).preferred_currency

    def update_preferred_currency(self, user: User, currency: str) -> str:
        normalized = normalize_currency(currency)
        if not normalized:
            raise HTTPException(
                status_code=400,
                detail=f"Unsupported currency. Choose one of: {', '.join(sorted(SUPPORTED_CURRENCY_CODES))}",
            )
        user.preferred_currency = normalized
        self.db.commit()
        logger.info(f"💱 User {user.id} currency set to {normalized}")
        return normalized
