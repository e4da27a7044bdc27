"""
Shared fixtures: in-memory SQLite database, FastAPI TestClient and
offline stand-ins for Stripe, Redis and email.
"""

import os

# Configure before any splickets import reads the environment
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "development"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
for key in (
    "STRIPE_SECRET_KEY",
    "STRIPE_SECRET_KEY_TEST",
    "STRIPE_WEBHOOK_SECRET",
    "RESEND_API_KEY",
    "FIREBASE_PRIVATE_KEY",
    "FIREBASE_CLIENT_EMAIL",
    "AMADEUS_CLIENT_ID",
    "AMADEUS_API_KEY",
    "AMADEUS_PROD_CLIENT_ID",
):
    os.environ[key] = ""

from datetime import date, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
import stripe  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from splickets import models  # noqa: E402
from splickets.cache import cache  # noqa: E402
from splickets.database import Base, get_db  # noqa: E402
from splickets.main import app  # noqa: E402


class FakeStripe:
    """
    Records calls and returns canned Stripe objects

    `fail_on` makes a step raise `error()` before doing anything; `lose_response_on`
    lets the step take effect and then raises a connection error once.
    """

    def __init__(self):
        self.calls = []
        self.fail_on = set()
        self.lose_response_on = set()
        self.error = lambda: stripe.APIConnectionError("Network error talking to Stripe")
        self.schedules = []
        self.intent_status = "succeeded"
        self.payment_methods = []
        self.payment_intents = []
        self.customer = None

    def is_available(self):
        return True

    def _record(self, name, **kwargs):
        self.calls.append((name, kwargs))
        if name in self.fail_on:
            raise self.error()

    def _answer(self, name, result):
        if name in self.lose_response_on:
            self.lose_response_on.discard(name)
            raise stripe.APIConnectionError("Connection reset while reading the response")
        return result

    def calls_named(self, name):
        return [kwargs for call, kwargs in self.calls if call == name]

    async def find_customer_by_email(self, email):
        self._record("find_customer_by_email", email=email)
        return self.customer

    async def get_or_create_customer(self, email, name=None, idempotency_key=None):
        self._record("get_or_create_customer", email=email, idempotency_key=idempotency_key)
        return {"id": "cus_test"}

    async def get_customer(self, customer_id):
        self._record("get_customer", customer_id=customer_id)
        return {"id": customer_id, "email": "jane@example.com", "invoice_settings": {}}

    async def attach_payment_method(self, payment_method_id, customer_id):
        self._record("attach_payment_method", payment_method_id=payment_method_id)
        return {"id": customer_id}

    async def list_payment_methods(self, customer_id, type="card"):
        self._record("list_payment_methods", customer_id=customer_id)
        return self.payment_methods

    async def create_payment_intent(self, amount_cents, currency, **kwargs):
        self._record("create_payment_intent", amount_cents=amount_cents, currency=currency, **kwargs)
        return {"id": "pi_test", "client_secret": "pi_test_secret", "status": "requires_payment_method"}

    async def retrieve_payment_intent(self, payment_intent_id):
        self._record("retrieve_payment_intent", payment_intent_id=payment_intent_id)
        return {
            "id": payment_intent_id,
            "status": self.intent_status,
            "amount": 20000,
            "currency": "usd",
            "customer": "cus_test",
            "payment_method": "pm_test",
        }

    async def list_payment_intents(self, customer_id, limit=100):
        self._record("list_payment_intents", customer_id=customer_id)
        return self.payment_intents

    async def create_installment_price(self, **kwargs):
        self._record("create_installment_price", **kwargs)
        return {"id": "price_test"}

    async def create_installment_schedule(self, **kwargs):
        self._record("create_installment_schedule", **kwargs)
        schedule = {
            "id": f"sub_sched_test_{len(self.schedules) + 1}" if self.schedules else "sub_sched_test",
            "customer": kwargs["customer_id"],
            "metadata": kwargs["metadata"],
            "status": "not_started",
        }
        self.schedules.append(schedule)
        return self._answer("create_installment_schedule", schedule)

    async def find_schedule_for_setup(self, customer_id, payment_setup_id):
        self._record("find_schedule_for_setup", customer_id=customer_id)
        for schedule in self.schedules:
            if (
                schedule["customer"] == customer_id
                and schedule["metadata"].get("payment_setup_id") == str(payment_setup_id)
                and schedule["status"] not in ("canceled", "released")
            ):
                return schedule
        return None

    async def retrieve_subscription_schedule(self, schedule_id):
        self._record("retrieve_subscription_schedule", schedule_id=schedule_id)
        return {"id": schedule_id, "status": "active", "customer": "cus_test", "phases": []}

    async def cancel_subscription_schedule(self, schedule_id):
        self._record("cancel_subscription_schedule", schedule_id=schedule_id)
        for schedule in self.schedules:
            if schedule["id"] == schedule_id:
                schedule["status"] = "canceled"
        return {"id": schedule_id, "status": "canceled"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    """Cache lookups miss instead of connecting to Redis"""
    monkeypatch.setattr(cache, "_get_client", lambda: None)


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture outgoing email instead of calling Resend"""
    from splickets import email_service

    sent = []

    async def fake_send_email(to, subject, mjml_content, from_address=None):
        sent.append({"to": to, "subject": subject, "mjml": mjml_content})
        return True

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return sent


@pytest.fixture
def fake_stripe(monkeypatch):
    """Replace the shared Stripe service everywhere it is imported"""
    from splickets.domain.billing import service as billing_service
    from splickets.domain.bookings import service as booking_service
    from splickets.domain.payments import service as payment_service

    fake = FakeStripe()
    monkeypatch.setattr(payment_service, "stripe_service", fake)
    monkeypatch.setattr(booking_service, "stripe_service", fake)
    monkeypatch.setattr(billing_service, "stripe_service", fake)
    return fake


@pytest.fixture
def user(db):
    user = models.User(
        email="jane@example.com",
        first_name="Jane",
        last_name="Doe",
        preferred_currency="GBP",
        firebase_uid="uid-jane",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def booking(db, user):
    """A confirmed booking with a deposit and two unpaid installments"""
    flight = models.Flight(
        flight_offer={"id": "1"},
        origin_iata="LHR",
        destination_iata="JFK",
        departure_date=date.today() + timedelta(days=90),
        return_date=date.today() + timedelta(days=100),
        trip_type="return",
        passenger_count=1,
    )
    plan = models.PaymentPlan(
        type=models.PLAN_INSTALLMENTS,
        deposit_amount=Decimal("200.00"),
        installment_count=2,
        installment_frequency="monthly",
        total_amount=Decimal("1000.00"),
        currency="GBP",
    )
    db.add_all([flight, plan])
    db.flush()
    for i, amount in enumerate((Decimal("400.00"), Decimal("400.00")), start=1):
        db.add(
            models.Installment(
                payment_plan_id=plan.id,
                due_date=date.today() + timedelta(days=30 * i),
                amount=amount,
                currency="GBP",
            )
        )
    booking = models.Booking(
        user_id=user.id,
        flight_id=flight.id,
        payment_plan_id=plan.id,
        status=models.BOOKING_CONFIRMED,
        total_price=Decimal("1000.00"),
        currency="GBP",
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking
