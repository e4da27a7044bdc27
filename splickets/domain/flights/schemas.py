"""Flight search schemas"""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class FlightSearchParams(BaseModel):
    origin: str = Field(..., min_length=3)
    destination: str = Field(..., min_length=3)
    departureDate: date
    returnDate: Optional[date] = None
    passengers: int = Field(1, ge=1, le=9)
    tripType: Literal["return", "one_way", "multicity"] = "return"
    currency: str = Field("USD", min_length=3, max_length=3)

    @field_validator("origin", "destination", "currency")
    @classmethod
    def upper(cls, v: str) -> str:
        return v.strip().upper()
