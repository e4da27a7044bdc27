"""
Tests for scheduled installment housekeeping, worker tasks and app-wide middleware.
"""

from datetime import date, timedelta

import pytest

from splickets import models, worker
from splickets.domain.payment_plans.automation import (
    mark_overdue_installments,
    send_upcoming_payment_reminders,
)
from splickets.security_headers import get_security_headers


class TestMarkOverdue:
    """Test overdue marking."""

    def test_only_past_unpaid_installments(self, db, booking):
        first, second = booking.payment_plan.installments
        after_first = first.due_date + timedelta(days=1)

        assert mark_overdue_installments(db, today=after_first) == {"marked_overdue": 1}
        assert first.status == models.INSTALLMENT_OVERDUE
        assert second.status == models.INSTALLMENT_UNPAID

    def test_paid_installments_untouched(self, db, booking):
        for installment in booking.payment_plan.installments:
            installment.status = models.INSTALLMENT_PAID
        db.commit()

        result = mark_overdue_installments(db, today=date.today() + timedelta(days=365))
        assert result == {"marked_overdue": 0}

    def test_due_today_is_not_overdue(self, db, booking):
        first = booking.payment_plan.installments[0]
        assert mark_overdue_installments(db, today=first.due_date) == {"marked_overdue": 0}


class TestPaymentReminders:
    """Test upcoming installment reminders."""

    @pytest.mark.asyncio
    async def test_reminds_three_days_ahead(self, db, booking, sent_emails):
        first = booking.payment_plan.installments[0]

        summary = await send_upcoming_payment_reminders(db, today=first.due_date - timedelta(days=3))

        assert summary == {"checked": 1, "sent": 1, "failed": 0}
        assert sent_emails[0]["to"] == "jane@example.com"
        assert f"/payment/{booking.id}" in sent_emails[0]["mjml"]

    @pytest.mark.asyncio
    async def test_cancelled_bookings_skipped(self, db, booking, sent_emails):
        booking.status = models.BOOKING_CANCELLED
        db.commit()
        first = booking.payment_plan.installments[0]

        summary = await send_upcoming_payment_reminders(db, today=first.due_date - timedelta(days=3))

        assert summary["checked"] == 0
        assert sent_emails == []

    @pytest.mark.asyncio
    async def test_other_days_skipped(self, db, booking, sent_emails):
        summary = await send_upcoming_payment_reminders(db, today=date.today())
        assert summary["checked"] == 0


class TestWorker:
    """Test worker configuration."""

    def test_redis_settings_from_url(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "rediss://:secret@cache.example.com:6380/2")

        settings = worker.get_redis_settings()

        assert settings.host == "cache.example.com"
        assert settings.port == 6380
        assert settings.password == "secret"
        assert settings.database == 2
        assert settings.ssl is True

    def test_scheduled_jobs(self):
        names = {job.name for job in worker.WorkerSettings.cron_jobs}
        assert names == {
            "cron:reconcile_payment_setups_task",
            "cron:mark_overdue_installments_task",
            "cron:send_payment_reminders_task",
        }


class TestMiddleware:
    """Test security headers and health routes."""

    def test_api_responses_carry_security_headers(self, client):
        response = client.get("/api/currency/supported")

        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Cache-Control"] == "no-store"
        assert "Strict-Transport-Security" not in response.headers

    def test_health_excluded(self, client):
        response = client.get("/health")

        assert response.json() == {"status": "healthy"}
        assert "X-Frame-Options" not in response.headers

    def test_hsts_in_production(self):
        assert "Strict-Transport-Security" in get_security_headers(production=True)
