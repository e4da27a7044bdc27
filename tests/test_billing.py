"""
Tests for the billing dashboard endpoints.
"""

from splickets import models


class TestPaymentPlans:
    """Test /api/billing/payment-plans."""

    def test_plan_progress(self, client, db, booking, user):
        first, second = booking.payment_plan.installments
        first.status = models.INSTALLMENT_PAID
        second.status = models.INSTALLMENT_OVERDUE
        db.commit()

        data = client.get("/api/billing/payment-plans", params={"email": user.email}).json()

        plan = data["paymentPlans"][0]
        assert plan["bookingReference"] == booking.reference
        assert plan["route"] == "LHR-JFK"
        assert plan["isRoundTrip"] is True
        assert plan["paidInstallments"] == 1
        assert plan["totalInstallments"] == 2
        assert plan["hasOverdue"] is True
        assert [i["amount"] for i in plan["installments"]] == [400.0, 400.0]

    def test_user_without_bookings(self, client, user):
        data = client.get("/api/billing/payment-plans", params={"email": user.email}).json()
        assert data == {"paymentPlans": []}

    def test_email_required(self, client):
        assert client.get("/api/billing/payment-plans").status_code == 400


class TestPaymentMethods:
    """Test /api/billing/payment-methods."""

    def test_no_customer(self, client, user, fake_stripe):
        data = client.get("/api/billing/payment-methods", params={"email": user.email}).json()

        assert data == {"paymentMethods": []}
        assert not fake_stripe.calls_named("list_payment_methods")

    def test_customer_found_by_email_is_stored(self, client, db, user, fake_stripe):
        fake_stripe.customer = {"id": "cus_found"}
        fake_stripe.payment_methods = [
            {
                "id": "pm_1",
                "type": "card",
                "card": {"brand": "visa", "last4": "4242", "exp_month": 12, "exp_year": 2030},
            }
        ]

        data = client.get("/api/billing/payment-methods", params={"email": user.email}).json()

        assert data["paymentMethods"][0]["card"]["last4"] == "4242"
        db.refresh(user)
        assert user.stripe_customer_id == "cus_found"

    def test_unconfigured_stripe(self, client, user):
        response = client.get("/api/billing/payment-methods", params={"email": user.email})
        assert response.status_code == 503


class TestPaymentHistory:
    """Test /api/billing/payment-history."""

    def test_history_in_major_units(self, client, db, user, fake_stripe):
        user.stripe_customer_id = "cus_1"
        db.commit()
        fake_stripe.payment_intents = [
            {"id": "pi_1", "amount": 13334, "currency": "gbp", "status": "succeeded", "created": 0}
        ]

        data = client.get("/api/billing/payment-history", params={"email": user.email}).json()

        assert data["payments"] == [
            {
                "id": "pi_1",
                "amount": 133.34,
                "currency": "GBP",
                "status": "succeeded",
                "created": "1970-01-01T00:00:00+00:00",
            }
        ]
        assert not fake_stripe.calls_named("find_customer_by_email")

    def test_processor_error_is_400(self, client, db, user, fake_stripe):
        user.stripe_customer_id = "cus_1"
        db.commit()
        fake_stripe.fail_on.add("list_payment_intents")

        response = client.get("/api/billing/payment-history", params={"email": user.email})
        assert response.status_code == 400
