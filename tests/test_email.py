"""
Tests for email templates, the Resend wrapper and the test-email endpoint.
"""

import re
from datetime import date

import pytest

from splickets import config, email_service
from splickets.email_templates import (
    booking_confirmation_template,
    format_date,
    format_money,
    payment_reminder_template,
)


class TestTemplates:
    """Test MJML template content."""

    def test_format_helpers(self):
        assert format_money(1234.5, "GBP") == "£1,234.50"
        assert format_date(date(2026, 3, 5)) == "March 5, 2026"
        assert format_date("2026-03-05T00:00:00.000Z") == "March 5, 2026"
        assert format_date(None) == ""

    def test_booking_confirmation(self):
        mjml = booking_confirmation_template(
            customer_name="Alex <Smith>",
            booking_reference="FP000042",
            flight_details={"origin": "LHR", "destination": "JFK", "departure_date": date(2026, 3, 5)},
            payment_plan={
                "total_amount": 1000,
                "deposit_amount": 200,
                "installment_amount": 200,
                "installment_count": 4,
                "frequency": "bi_weekly",
            },
            currency="EUR",
        )

        assert "FP000042" in mjml
        assert "Alex &lt;Smith&gt;" in mjml
        assert re.search(r"4 payments of\s+€200.00 bi-weekly", mjml)
        assert "Return:" not in mjml

    def test_payment_reminder(self):
        mjml = payment_reminder_template(
            "Jane", 400, date(2026, 3, 5), "FP000001", "https://example.com/pay", "GBP"
        )
        assert "£400.00" in mjml
        assert 'href="https://example.com/pay"' in mjml


class TestSendEmail:
    """Test the Resend wrapper."""

    @pytest.mark.asyncio
    async def test_disabled_without_api_key(self):
        assert await email_service.send_email("a@example.com", "Hi", "<mjml></mjml>") is False

    @pytest.mark.asyncio
    async def test_provider_errors_reported_as_false(self, monkeypatch):
        def boom(params):
            raise RuntimeError("resend down")

        monkeypatch.setattr(email_service, "is_email_configured", lambda: True)
        monkeypatch.setattr(email_service, "compile_mjml_to_html", lambda mjml: "<html></html>")
        monkeypatch.setattr(email_service.resend.Emails, "send", boom)

        assert await email_service.send_email("a@example.com", "Hi", "<mjml></mjml>") is False


class TestTestEmailEndpoint:
    """Test /api/test-email."""

    @pytest.mark.parametrize(
        "kind, subject",
        [
            ("welcome", "Welcome to Splickets!"),
            ("booking", "Flight Booking Confirmation - FP000123"),
            ("reminder", "Payment Reminder - FP000123"),
        ],
    )
    def test_sends_sample(self, client, sent_emails, kind, subject):
        response = client.post("/api/test-email", json={"type": kind, "email": "dev@example.com"})

        assert response.json() == {
            "success": True,
            "type": kind,
            "sentTo": "dev@example.com",
            "sent": True,
        }
        assert sent_emails[0]["subject"] == subject

    def test_unknown_type(self, client):
        response = client.post("/api/test-email", json={"type": "invoice", "email": "dev@example.com"})
        assert response.status_code == 422

    def test_forbidden_outside_development(self, client, sent_emails, monkeypatch):
        monkeypatch.setattr(config, "ENVIRONMENT", "production")

        response = client.post("/api/test-email", json={"type": "welcome", "email": "dev@example.com"})

        assert response.status_code == 403
        assert sent_emails == []
