"""User router - account existence, details, currency preference and referrals"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...schemas import UserResponse
from ..referrals import ReferralService
from .service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Users"])

rate_limit_verify_user = create_rate_limiter(limit=30, window_seconds=60, key_prefix="verify_user")


class VerifyUserRequest(BaseModel):
    email: Optional[str] = None


class CurrencyUpdateRequest(BaseModel):
    currency: str


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    """Dependency injection for UserService"""
    return UserService(db)


@router.post("/auth/verify-user")
async def verify_user(
    body: VerifyUserRequest,
    service: UserService = Depends(get_user_service),
    _: None = Depends(rate_limit_verify_user),
):
    """Whether a Splickets account exists for an email"""
    return {"exists": service.user_exists(body.email)}


@router.get("/user/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/user/details", response_model=UserResponse)
async def get_user_details(
    email: Optional[str] = Query(None), service: UserService = Depends(get_user_service)
):
    return service.get_user_details(email)


@router.get("/user/currency")
async def get_user_currency(
    email: Optional[str] = Query(None), service: UserService = Depends(get_user_service)
):
    return {"preferredCurrency": service.get_preferred_currency(email)}


@router.put("/user/currency")
async def update_user_currency(
    body: CurrencyUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return {"preferredCurrency": service.update_preferred_currency(current_user, body.currency)}


@router.get("/user/referral")
async def get_user_referral(email: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """Referral code, usage and earned credit"""
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")
    return ReferralService(db).get_referral_summary(email)
