from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Status values are stored as plain strings
BOOKING_PENDING = "PENDING"
BOOKING_CONFIRMED = "CONFIRMED"
BOOKING_CANCELLED = "CANCELLED"

LEAD_IN_PROGRESS = "in_progress"
LEAD_ABANDONED = "abandoned"
LEAD_CONVERTED = "converted"

PLAN_FULL = "full"
PLAN_INSTALLMENTS = "installments"

PLAN_IN_PROCESS = "in_process"
PLAN_COMPLETED = "completed"
PLAN_DEFAULTED = "defaulted"

INSTALLMENT_UNPAID = "unpaid"
INSTALLMENT_PAID = "paid"
INSTALLMENT_OVERDUE = "overdue"
INSTALLMENT_CANCELLED = "cancelled"

SETUP_INTENT_CREATED = "intent_created"
SETUP_CONFIRMED = "confirmed"
SETUP_SUBSCRIPTION_PENDING = "subscription_pending"
SETUP_SUBSCRIPTION_CREATED = "subscription_created"
SETUP_SUBSCRIPTION_FAILED = "subscription_failed"
SETUP_CANCEL_PENDING = "cancel_pending"
SETUP_CANCELLED = "cancelled"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=True)
    dialling_code = Column(String(10), nullable=True)
    phone_number = Column(String(20), nullable=True)
    title = Column(String(10), nullable=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    dob = Column(Date, nullable=True)
    passport_number = Column(String(50), nullable=True)
    passport_country = Column(String(3), nullable=True)
    preferred_currency = Column("currency", String(3), nullable=False, default="USD")
    # Stripe linkage (non-PCI metadata only)
    stripe_customer_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    bookings = relationship("Booking", back_populates="user")
    promo_codes = relationship("PromoCode", back_populates="user")


class FlightSearch(Base):
    __tablename__ = "flight_searches"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # null for anonymous
    session_id = Column(String(255), nullable=True)
    origin_iata = Column(String(3), nullable=False)
    destination_iata = Column(String(3), nullable=False)
    departure_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=True)  # null for one-way trips
    trip_type = Column(String(20), nullable=False)  # one_way, return, multicity
    passenger_count = Column(Integer, nullable=False)
    cabin = Column(String(50), default="Economy")
    search_timestamp = Column(DateTime, server_default=func.now())


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    dialling_code = Column(String(10), nullable=True)
    phone_number = Column(String(20), nullable=True)
    title = Column(String(10), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    dob = Column(Date, nullable=True)
    passport_country = Column(String(3), nullable=True)
    status = Column(String(20), default=LEAD_IN_PROGRESS)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    attempts = relationship("LeadAttempt", back_populates="lead")


class LeadAttempt(Base):
    __tablename__ = "lead_attempts"

    id = Column(Integer, primary_key=True, index=True)
    lead_id = Column(Integer, ForeignKey("leads.id"), nullable=False)
    search_id = Column(Integer, ForeignKey("flight_searches.id"), nullable=True)
    attempted_at = Column(DateTime, server_default=func.now())
    passenger_data = Column(JSON, nullable=False)

    lead = relationship("Lead", back_populates="attempts")


class Flight(Base):
    __tablename__ = "flights"

    id = Column(Integer, primary_key=True, index=True)
    flight_offer = Column(JSON, nullable=False)  # offer as selected on the client
    origin_iata = Column(String(3), nullable=False)
    destination_iata = Column(String(3), nullable=False)
    departure_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=True)
    trip_type = Column(String(20), nullable=False)
    passenger_count = Column(Integer, nullable=False)
    cabin = Column(String(50), default="Economy")
    created_at = Column(DateTime, server_default=func.now())


class PaymentPlan(Base):
    __tablename__ = "payment_plans"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(20), nullable=False)  # full, installments
    deposit_amount = Column(Numeric(10, 2), nullable=True)  # null when type == full
    installment_count = Column(Integer, nullable=True)
    installment_frequency = Column(String(20), nullable=True)  # weekly, bi_weekly, monthly
    total_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="USD")
    status = Column(String(20), default=PLAN_IN_PROCESS)
    created_at = Column(DateTime, server_default=func.now())

    installments = relationship(
        "Installment", back_populates="payment_plan", order_by="Installment.due_date"
    )
    booking = relationship("Booking", back_populates="payment_plan", uselist=False)


class Installment(Base):
    __tablename__ = "installments"

    id = Column(Integer, primary_key=True, index=True)
    payment_plan_id = Column(Integer, ForeignKey("payment_plans.id"), nullable=False, index=True)
    due_date = Column(Date, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="USD")
    status = Column(String(20), default=INSTALLMENT_UNPAID)
    paid_at = Column(DateTime, nullable=True)
    # Stripe delivers invoice.paid at least once; one invoice settles one installment
    stripe_invoice_id = Column(String(255), unique=True, nullable=True)

    payment_plan = relationship("PaymentPlan", back_populates="installments")


class PromoCode(Base):
    __tablename__ = "promo_codes"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False)
    type = Column(String(20), nullable=False, default="referral")  # referral, promo
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    discount_percent = Column(Numeric(5, 2), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=True)
    times_used = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="promo_codes")
    bookings = relationship("Booking", back_populates="promo_code")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    flight_id = Column(Integer, ForeignKey("flights.id"), nullable=False)
    payment_plan_id = Column(Integer, ForeignKey("payment_plans.id"), nullable=False)
    promo_code_id = Column(Integer, ForeignKey("promo_codes.id"), nullable=True)
    passengers = Column(JSON, nullable=True)
    status = Column(String(20), default=BOOKING_PENDING)
    total_price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    payment_intent_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="bookings")
    flight = relationship("Flight")
    payment_plan = relationship("PaymentPlan", back_populates="booking")
    promo_code = relationship("PromoCode", back_populates="bookings")

    @property
    def reference(self) -> str:
        return f"FP{self.id:06d}"


class PaymentSetup(Base):
    """Durable record of a deposit payment and the installment schedule that follows it.

    status: intent_created -> confirmed -> subscription_pending ->
    subscription_created | subscription_failed; a cancelled booking moves it
    to cancel_pending until any Stripe schedule is stopped, then cancelled
    """

    __tablename__ = "payment_setups"

    id = Column(Integer, primary_key=True, index=True)
    payment_intent_id = Column(String(255), unique=True, index=True, nullable=True)
    customer_id = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True, index=True)
    customer_name = Column(String(255), nullable=True)
    status = Column(String(30), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=True)
    currency = Column(String(3), nullable=True)
    installment_amount_cents = Column(Integer, nullable=True)
    installment_interval = Column(String(10), nullable=True)  # week, month
    installment_interval_count = Column(Integer, nullable=True)
    installment_iterations = Column(Integer, nullable=True)
    installment_start_date = Column(DateTime, nullable=True)
    payment_method_id = Column(String(255), nullable=True)
    price_id = Column(String(255), nullable=True)
    subscription_schedule_id = Column(String(255), nullable=True, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    failure_notified = Column(Boolean, nullable=False, default=False)
    extra_metadata = Column("metadata", JSON, nullable=True)
    payment_plan_id = Column(Integer, ForeignKey("payment_plans.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    payment_plan = relationship("PaymentPlan")
