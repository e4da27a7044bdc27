"""Currency router - resolution and supported list"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter, get_client_ip
from .currencies import SUPPORTED_CURRENCIES
from .resolver import resolve_currency

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/currency", tags=["Currency"])

rate_limit_resolve = create_rate_limiter(limit=60, window_seconds=60, key_prefix="currency_resolve")


@router.get("/supported")
async def list_supported_currencies():
    return {"currencies": SUPPORTED_CURRENCIES}


@router.get("/resolve")
async def resolve(
    request: Request,
    email: Optional[str] = Query(None),
    stored: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_resolve),
):
    """Resolve the display currency for a visitor"""
    user_preference = None
    if email:
        user = db.query(User).filter(User.email == email).first()
        if user:
            user_preference = user.preferred_currency

    currency, source = await resolve_currency(
        user_preference=user_preference,
        stored=stored,
        ip_address=get_client_ip(request),
    )
    logger.debug(f"Resolved currency {currency} from {source}")
    return {"currency": currency, "source": source}
