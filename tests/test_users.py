"""
Tests for user lookup and referral endpoints.
"""

from decimal import Decimal

from splickets import models
from splickets.auth import get_current_user
from splickets.main import app


class TestVerifyUser:
    """Test /api/auth/verify-user."""

    def test_existing_and_unknown(self, client, user):
        assert client.post("/api/auth/verify-user", json={"email": user.email}).json() == {"exists": True}
        assert client.post("/api/auth/verify-user", json={"email": "nobody@example.com"}).json() == {
            "exists": False
        }

    def test_email_required(self, client):
        assert client.post("/api/auth/verify-user", json={}).status_code == 400


class TestUserDetails:
    """Test profile lookups."""

    def test_details_by_email(self, client, user):
        data = client.get("/api/user/details", params={"email": user.email}).json()

        assert data["first_name"] == "Jane"
        assert data["preferred_currency"] == "GBP"

    def test_unknown_user(self, client):
        assert client.get("/api/user/details", params={"email": "x@example.com"}).status_code == 404

    def test_me_requires_token(self, client):
        assert client.get("/api/user/me").status_code in (401, 403)

    def test_me(self, client, user):
        app.dependency_overrides[get_current_user] = lambda: user
        assert client.get("/api/user/me").json()["email"] == user.email

    def test_malformed_token_rejected(self, client):
        response = client.get("/api/user/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestUserReferral:
    """Test /api/user/referral."""

    def test_without_code(self, client, user):
        data = client.get("/api/user/referral", params={"email": user.email}).json()
        assert data == {"code": None, "timesUsed": 0, "credit": 0.0, "bookings": []}

    def test_with_code_and_bookings(self, client, db, user, booking):
        promo = models.PromoCode(
            code="SPLICKETS-JDWXYZ",
            type="referral",
            user_id=user.id,
            discount_amount=Decimal("25.00"),
            times_used=2,
        )
        db.add(promo)
        db.flush()
        booking.promo_code_id = promo.id
        db.commit()

        data = client.get("/api/user/referral", params={"email": user.email}).json()

        assert data["code"] == "SPLICKETS-JDWXYZ"
        assert data["credit"] == 50.0
        assert [b["reference"] for b in data["bookings"]] == [booking.reference]

    def test_email_required(self, client):
        assert client.get("/api/user/referral").status_code == 400
