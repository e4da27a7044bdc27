"""
Tests for deposit intents, installment schedules, reconciliation and webhooks.

Stripe is replaced by the FakeStripe recorder from conftest, so every test
runs offline and can assert on the exact calls and idempotency keys.
"""

import hashlib
import hmac
import json
import time
from datetime import timedelta

import pytest
import stripe

from splickets import models
from splickets.domain.payments import service as payment_service
from splickets.domain.payments.service import PaymentService
from splickets.domain.payments.stripe_service import stripe_service

SUBSCRIPTION_BODY = {
    "payment_intent_id": "pi_deposit",
    "customer_email": "jane@example.com",
    "customer_name": "Jane Doe",
    "installment_amount": 133.34,
    "currency": "GBP",
    "interval": "month",
    "interval_count": 3,
}


def _setup(db, **overrides):
    values = {
        "payment_intent_id": "pi_deposit",
        "customer_email": "jane@example.com",
        "customer_name": "Jane Doe",
        "status": models.SETUP_SUBSCRIPTION_PENDING,
        "currency": "gbp",
        "installment_amount_cents": 13334,
        "installment_interval": "month",
        "installment_interval_count": 1,
        "installment_iterations": 3,
        "installment_start_date": payment_service.utcnow() + timedelta(days=30),
        "attempts": 0,
    }
    values.update(overrides)
    setup = models.PaymentSetup(**values)
    db.add(setup)
    db.commit()
    return setup


class TestCreatePaymentIntent:
    """Test the deposit intent endpoint."""

    def test_intent_is_recorded(self, client, db, fake_stripe):
        response = client.post(
            "/api/payments/create-intent",
            json={"amount": 20000, "currency": "GBP", "customer_email": "jane@example.com"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "clientSecret": "pi_test_secret",
            "id": "pi_test",
            "customerId": "cus_test",
        }
        setup = db.query(models.PaymentSetup).one()
        assert setup.status == models.SETUP_INTENT_CREATED
        assert setup.amount_cents == 20000
        assert fake_stripe.calls_named("create_payment_intent")[0]["currency"] == "gbp"

    def test_minimum_amount(self, client, fake_stripe):
        response = client.post("/api/payments/create-intent", json={"amount": 49})
        assert response.status_code == 422

    def test_unconfigured_stripe_returns_503(self, client):
        response = client.post("/api/payments/create-intent", json={"amount": 5000})
        assert response.status_code == 503


class TestCreateInstallmentSubscription:
    """Test scheduling installments after a successful deposit."""

    def test_creates_price_and_schedule(self, client, db, fake_stripe):
        response = client.post("/api/payments/create-subscription", json=SUBSCRIPTION_BODY)

        assert response.status_code == 200
        data = response.json()
        assert data["subscriptionScheduleId"] == "sub_sched_test"
        assert data["installmentAmount"] == 133.34
        # Iterations default to the interval count
        assert data["totalInstallments"] == 3

        setup = db.query(models.PaymentSetup).one()
        assert setup.status == models.SETUP_SUBSCRIPTION_CREATED
        assert setup.payment_method_id == "pm_test"

        price = fake_stripe.calls_named("create_installment_price")[0]
        assert price["amount_cents"] == 13334
        assert price["interval"] == "month"
        assert price["interval_count"] == 3
        assert price["idempotency_key"] == f"splickets-setup-{setup.id}-0-price"

        schedule = fake_stripe.calls_named("create_installment_schedule")[0]
        assert schedule["iterations"] == 3
        assert schedule["metadata"]["payment_setup_id"] == str(setup.id)
        assert schedule["metadata"]["payment_intent_id"] == "pi_deposit"

    def test_requires_succeeded_deposit(self, client, db, fake_stripe):
        fake_stripe.intent_status = "requires_payment_method"

        response = client.post("/api/payments/create-subscription", json=SUBSCRIPTION_BODY)

        assert response.status_code == 400
        assert "requires_payment_method" in response.json()["detail"]
        assert not fake_stripe.calls_named("create_installment_schedule")

    def test_repeat_request_does_not_create_second_schedule(self, client, fake_stripe):
        client.post("/api/payments/create-subscription", json=SUBSCRIPTION_BODY)
        response = client.post("/api/payments/create-subscription", json=SUBSCRIPTION_BODY)

        assert response.status_code == 200
        assert len(fake_stripe.calls_named("create_installment_schedule")) == 1

    def test_rejection_is_recorded_for_retry(self, client, db, fake_stripe):
        """A definite rejection after payment leaves a failed setup with the error."""
        fake_stripe.fail_on.add("create_installment_schedule")
        fake_stripe.error = lambda: stripe.InvalidRequestError("No such price", param="price")

        response = client.post("/api/payments/create-subscription", json=SUBSCRIPTION_BODY)

        assert response.status_code == 400
        setup = db.query(models.PaymentSetup).one()
        assert setup.status == models.SETUP_SUBSCRIPTION_FAILED
        assert setup.attempts == 1
        assert setup.last_error == "Invalid request: No such price"

    def test_connection_error_keeps_setup_pending(self, client, db, fake_stripe):
        """Without an answer the setup stays pending so the retry reuses its keys."""
        fake_stripe.fail_on.add("create_installment_schedule")

        response = client.post("/api/payments/create-subscription", json=SUBSCRIPTION_BODY)

        assert response.status_code == 400
        setup = db.query(models.PaymentSetup).one()
        assert setup.status == models.SETUP_SUBSCRIPTION_PENDING
        assert setup.attempts == 0
        assert "Network error" in setup.last_error

    def test_resuming_pending_setup_keeps_stored_parameters(self, client, db, fake_stripe):
        start = payment_service.utcnow() + timedelta(days=5)
        setup = _setup(db, customer_id="cus_1", installment_start_date=start)

        response = client.post("/api/payments/create-subscription", json=SUBSCRIPTION_BODY)

        assert response.status_code == 200
        assert setup.status == models.SETUP_SUBSCRIPTION_CREATED
        assert fake_stripe.calls_named("create_installment_price")[0]["interval_count"] == 1
        schedule = fake_stripe.calls_named("create_installment_schedule")[0]
        assert schedule["start_date"] == start
        assert schedule["iterations"] == 3
        assert schedule["idempotency_key"] == f"splickets-setup-{setup.id}-0-schedule"

    def test_cancelled_setup_is_not_scheduled(self, client, db, fake_stripe):
        _setup(db, status=models.SETUP_CANCELLED, customer_id="cus_1")

        response = client.post("/api/payments/create-subscription", json=SUBSCRIPTION_BODY)

        assert response.status_code == 409
        assert not fake_stripe.calls_named("create_installment_schedule")


class TestPaymentReads:
    """Test the processor read endpoints."""

    def test_intent_status(self, client, fake_stripe):
        data = client.get("/api/payments/intent/pi_deposit").json()
        assert data["status"] == "succeeded"
        assert data["customer"] == "cus_test"

    def test_schedule_status(self, client, fake_stripe):
        data = client.get("/api/payments/schedule/sub_sched_1").json()
        assert (data["id"], data["status"]) == ("sub_sched_1", "active")

    def test_customer_payment_methods(self, client, fake_stripe):
        fake_stripe.payment_methods = [{"id": "pm_1", "type": "card", "card": None}]

        data = client.get("/api/payments/customer/cus_test/payment-methods").json()

        assert data["paymentMethods"] == [{"id": "pm_1", "type": "card", "card": None}]
        assert data["customerEmail"] == "jane@example.com"

    def test_processor_error(self, client, fake_stripe):
        fake_stripe.fail_on.add("retrieve_payment_intent")
        assert client.get("/api/payments/intent/pi_x").status_code == 400


class TestReconcilePaymentSetups:
    """Test the reconciliation job."""

    @pytest.mark.asyncio
    async def test_lost_response_adopts_created_schedule(self, db, fake_stripe):
        """Stripe made the schedule but the answer never arrived; no second schedule."""
        setup = _setup(db, customer_id="cus_1")
        fake_stripe.lose_response_on.add("create_installment_schedule")
        service = PaymentService(db)

        with pytest.raises(payment_service.PaymentSetupError):
            await service.create_schedule_for_setup(setup)
        assert setup.status == models.SETUP_SUBSCRIPTION_PENDING

        setup.updated_at = payment_service.utcnow() - timedelta(hours=1)
        db.commit()
        summary = await service.reconcile_payment_setups()

        assert summary["created"] == 1
        assert setup.status == models.SETUP_SUBSCRIPTION_CREATED
        assert setup.subscription_schedule_id == "sub_sched_test"
        assert len(fake_stripe.calls_named("create_installment_schedule")) == 1
        assert len(fake_stripe.schedules) == 1

    @pytest.mark.asyncio
    async def test_rejected_setup_retried_with_new_key(self, db, fake_stripe):
        setup = _setup(db, status=models.SETUP_SUBSCRIPTION_FAILED, attempts=1, customer_id="cus_1")

        summary = await PaymentService(db).reconcile_payment_setups()

        assert summary["created"] == 1
        assert setup.status == models.SETUP_SUBSCRIPTION_CREATED
        assert fake_stripe.calls_named("find_schedule_for_setup") == [{"customer_id": "cus_1"}]
        key = fake_stripe.calls_named("create_installment_schedule")[0]["idempotency_key"]
        assert key == f"splickets-setup-{setup.id}-1-schedule"

    @pytest.mark.asyncio
    async def test_retry_waits_when_schedule_lookup_fails(self, db, fake_stripe):
        setup = _setup(db, status=models.SETUP_SUBSCRIPTION_FAILED, attempts=1, customer_id="cus_1")
        fake_stripe.fail_on.add("find_schedule_for_setup")

        summary = await PaymentService(db).reconcile_payment_setups()

        assert summary["failed"] == 1
        assert setup.status == models.SETUP_SUBSCRIPTION_FAILED
        assert not fake_stripe.calls_named("create_installment_schedule")

    @pytest.mark.asyncio
    async def test_stuck_pending_setup_reuses_key(self, db, fake_stripe):
        """A pending setup that never got an answer retries with the same key."""
        setup = _setup(
            db, customer_id="cus_1", updated_at=payment_service.utcnow() - timedelta(hours=1)
        )

        await PaymentService(db).reconcile_payment_setups()

        key = fake_stripe.calls_named("create_installment_schedule")[0]["idempotency_key"]
        assert key == f"splickets-setup-{setup.id}-0-schedule"

    @pytest.mark.asyncio
    async def test_recent_pending_setup_left_alone(self, db, fake_stripe):
        _setup(db, customer_id="cus_1")

        summary = await PaymentService(db).reconcile_payment_setups()

        assert summary["checked"] == 0
        assert not fake_stripe.calls

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts_and_notifies_once(self, db, fake_stripe, sent_emails):
        fake_stripe.fail_on.add("create_installment_schedule")
        fake_stripe.error = lambda: stripe.InvalidRequestError("No such customer", param="customer")
        setup = _setup(db, status=models.SETUP_SUBSCRIPTION_FAILED, attempts=4, customer_id="cus_1")
        service = PaymentService(db)

        first = await service.reconcile_payment_setups(max_attempts=5)
        second = await service.reconcile_payment_setups(max_attempts=5)

        assert first == {"checked": 1, "created": 0, "failed": 1, "cancelled": 0, "notified": 1}
        assert second == {"checked": 0, "created": 0, "failed": 0, "cancelled": 0, "notified": 0}
        assert setup.attempts == 5
        assert setup.failure_notified
        assert [e["to"] for e in sent_emails] == ["jane@example.com"]


class TestWebhooks:
    """Test Stripe webhook handling."""

    def _plan_with_setup(self, db, booking):
        return _setup(
            db,
            status=models.SETUP_SUBSCRIPTION_CREATED,
            payment_plan_id=booking.payment_plan_id,
        )

    def _invoice_paid(self, setup_id, invoice_id="in_1"):
        return {
            "type": "invoice.paid",
            "data": {
                "object": {
                    "id": invoice_id,
                    "subscription_details": {"metadata": {"payment_setup_id": str(setup_id)}},
                }
            },
        }

    def test_invoice_paid_marks_installments_in_order(self, db, booking):
        setup = self._plan_with_setup(db, booking)
        service = PaymentService(db)

        service.handle_webhook_event(self._invoice_paid(setup.id))

        installments = booking.payment_plan.installments
        db.refresh(installments[0])
        assert [i.status for i in installments] == [models.INSTALLMENT_PAID, models.INSTALLMENT_UNPAID]
        assert installments[0].paid_at is not None
        assert booking.payment_plan.status == models.PLAN_IN_PROCESS

    def test_last_installment_completes_plan(self, db, booking):
        setup = self._plan_with_setup(db, booking)
        service = PaymentService(db)

        service.handle_webhook_event(self._invoice_paid(setup.id, "in_1"))
        service.handle_webhook_event(self._invoice_paid(setup.id, "in_2"))

        db.refresh(booking.payment_plan)
        assert booking.payment_plan.status == models.PLAN_COMPLETED
        assert [i.stripe_invoice_id for i in booking.payment_plan.installments] == ["in_1", "in_2"]

    def test_redelivered_invoice_applied_once(self, db, booking):
        """Stripe retries deliveries; the same invoice never pays a second installment."""
        setup = self._plan_with_setup(db, booking)
        service = PaymentService(db)

        service.handle_webhook_event(self._invoice_paid(setup.id, "in_1"))
        service.handle_webhook_event(self._invoice_paid(setup.id, "in_1"))

        first, second = booking.payment_plan.installments
        db.refresh(second)
        assert first.status == models.INSTALLMENT_PAID
        assert second.status == models.INSTALLMENT_UNPAID
        assert booking.payment_plan.status == models.PLAN_IN_PROCESS

    def test_intent_succeeded_confirms_setup(self, db):
        setup = _setup(db, status=models.SETUP_INTENT_CREATED)

        PaymentService(db).handle_webhook_event(
            {
                "type": "payment_intent.succeeded",
                "data": {"object": {"id": "pi_deposit", "payment_method": "pm_card"}},
            }
        )

        assert setup.status == models.SETUP_CONFIRMED
        assert setup.payment_method_id == "pm_card"

    def test_endpoint_requires_configuration(self, client):
        response = client.post("/api/payments/webhook", content=b"{}")
        assert response.status_code == 503

    def test_endpoint_verifies_signature(self, client, db, monkeypatch):
        monkeypatch.setattr(stripe_service, "webhook_secret", "whsec_test")
        setup = _setup(db, status=models.SETUP_INTENT_CREATED)
        payload = json.dumps(
            {
                "id": "evt_1",
                "object": "event",
                "type": "payment_intent.succeeded",
                "data": {"object": {"id": "pi_deposit", "object": "payment_intent"}},
            }
        )
        timestamp = int(time.time())
        signature = hmac.new(
            b"whsec_test", f"{timestamp}.{payload}".encode(), hashlib.sha256
        ).hexdigest()

        bad = client.post(
            "/api/payments/webhook",
            content=payload,
            headers={"stripe-signature": f"t={timestamp},v1={'0' * 64}"},
        )
        good = client.post(
            "/api/payments/webhook",
            content=payload,
            headers={"stripe-signature": f"t={timestamp},v1={signature}"},
        )

        assert bad.status_code == 400
        assert good.json() == {"received": True, "event_type": "payment_intent.succeeded"}
        db.refresh(setup)
        assert setup.status == models.SETUP_CONFIRMED


def test_default_start_date_is_one_interval_out():
    start = payment_service.default_start_date("week", 2)
    assert timedelta(days=13) < start - payment_service.utcnow() <= timedelta(days=14)
