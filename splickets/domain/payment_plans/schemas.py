"""Payment plan schemas"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class PaymentPlanCalculateRequest(BaseModel):
    totalAmount: float = Field(..., gt=0)
    travelDate: date
    bookingDate: Optional[date] = None
    # When both are present an installment plan is built as well
    depositPercentage: Optional[int] = None
    frequency: Optional[str] = None

    @field_validator("frequency")
    @classmethod
    def validate_frequency(cls, v):
        if v is None:
            return v
        normalized = v.strip().lower().replace("-", "_")
        if normalized not in ("weekly", "bi_weekly"):
            raise ValueError("frequency must be weekly or bi_weekly")
        return normalized
