"""Booking repository - Database operations for leads, users, flights and bookings"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import (
    Booking,
    Flight,
    FlightSearch,
    Installment,
    Lead,
    LeadAttempt,
    PaymentPlan,
    User,
)


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_lead(db: Session, lead_id: int) -> Optional[Lead]:
        return db.query(Lead).filter(Lead.id == lead_id).first()

    @staticmethod
    def upsert_lead(db: Session, email: str, **lead_data) -> Lead:
        """Create a lead or overwrite the contact fields of the existing one"""
        lead = db.query(Lead).filter(Lead.email == email).first()
        if lead:
            for key, value in lead_data.items():
                setattr(lead, key, value)
        else:
            lead = Lead(email=email, **lead_data)
            db.add(lead)
        db.flush()
        return lead

    @staticmethod
    def add_lead_attempt(
        db: Session, lead_id: int, passenger_data: dict, search_id: Optional[int] = None
    ) -> LeadAttempt:
        attempt = LeadAttempt(lead_id=lead_id, search_id=search_id, passenger_data=passenger_data)
        db.add(attempt)
        return attempt

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def create_user(db: Session, **user_data) -> User:
        user = User(**user_data)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def attach_search_to_user(db: Session, search_id: int, user_id: int) -> None:
        db.query(FlightSearch).filter(FlightSearch.id == search_id).update(
            {FlightSearch.user_id: user_id}
        )

    @staticmethod
    def create_flight(db: Session, **flight_data) -> Flight:
        flight = Flight(**flight_data)
        db.add(flight)
        db.flush()
        return flight

    @staticmethod
    def create_payment_plan(db: Session, installments: list[tuple], **plan_data) -> PaymentPlan:
        plan = PaymentPlan(**plan_data)
        db.add(plan)
        db.flush()
        for due_date, amount in installments:
            db.add(
                Installment(
                    payment_plan_id=plan.id,
                    due_date=due_date,
                    amount=amount,
                    currency=plan.currency,
                )
            )
        db.flush()
        return plan

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        booking = Booking(**booking_data)
        db.add(booking)
        db.flush()
        return booking

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
        return (
            db.query(Booking)
            .options(joinedload(Booking.payment_plan), joinedload(Booking.user))
            .filter(Booking.id == booking_id)
            .first()
        )

    @staticmethod
    def get_user_bookings(db: Session, user_id: int) -> list[Booking]:
        return (
            db.query(Booking)
            .options(joinedload(Booking.flight), joinedload(Booking.payment_plan))
            .filter(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )
