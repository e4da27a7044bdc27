"""Payment plan router - price quotes for installment plans"""

import logging

from fastapi import APIRouter, HTTPException

from .calculator import ScheduleMismatchError, build_installment_plan, calculate_payment_plan
from .schemas import PaymentPlanCalculateRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payment-plan", tags=["Payment Plans"])


@router.post("/calculate")
async def calculate(data: PaymentPlanCalculateRequest):
    """Eligibility quote, plus a custom installment plan when deposit and frequency are given"""
    quote = calculate_payment_plan(data.totalAmount, data.travelDate, data.bookingDate)
    response = quote.to_dict()

    if data.depositPercentage is not None:
        try:
            plan = build_installment_plan(
                data.totalAmount,
                data.depositPercentage,
                data.frequency or "weekly",
                data.travelDate,
                data.bookingDate,
            )
        except ScheduleMismatchError as e:
            logger.warning(f"⚠️ Installment plan does not balance: {e}")
            raise HTTPException(status_code=400, detail=str(e)) from e
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        response["installmentPlan"] = plan.to_dict()

    return response
