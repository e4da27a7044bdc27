from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class UserResponse(BaseModel):
    id: int
    email: str
    firebase_uid: Optional[str] = None
    dialling_code: Optional[str] = None
    phone_number: Optional[str] = None
    title: Optional[str] = None
    first_name: str
    last_name: str
    dob: Optional[date] = None
    passport_number: Optional[str] = None
    passport_country: Optional[str] = None
    preferred_currency: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
