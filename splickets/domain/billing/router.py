"""Billing router - FastAPI endpoints for the billing dashboard"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from .service import BillingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing", tags=["Billing"])


def get_billing_service(db: Session = Depends(get_db)) -> BillingService:
    """Dependency injection for BillingService"""
    return BillingService(db)


@router.get("/payment-plans")
async def get_payment_plans(
    email: Optional[str] = Query(None), service: BillingService = Depends(get_billing_service)
):
    """Payment plans with installment progress"""
    return service.get_payment_plans(email)


@router.get("/payment-methods")
async def get_payment_methods(
    email: Optional[str] = Query(None), service: BillingService = Depends(get_billing_service)
):
    """Saved card payment methods"""
    return await service.get_payment_methods(email)


@router.get("/payment-history")
async def get_payment_history(
    email: Optional[str] = Query(None), service: BillingService = Depends(get_billing_service)
):
    """Payments made at the processor"""
    return await service.get_payment_history(email)
