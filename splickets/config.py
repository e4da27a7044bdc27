import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./splickets.db")

# "development" enables the test-email endpoint
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

# Frontend base URL for links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5000")
BASE_URL = os.getenv("BASE_URL", FRONTEND_URL)

# Firebase Admin (service account pieces; the private key usually arrives with escaped newlines)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "splickets")
FIREBASE_CLIENT_EMAIL = os.getenv("FIREBASE_CLIENT_EMAIL")
FIREBASE_PRIVATE_KEY = os.getenv("FIREBASE_PRIVATE_KEY")
FIREBASE_PRIVATE_KEY_ID = os.getenv("FIREBASE_PRIVATE_KEY_ID")
FIREBASE_CLIENT_ID = os.getenv("FIREBASE_CLIENT_ID")

# Stripe Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY") or os.getenv("STRIPE_SECRET_KEY_TEST")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

# Amadeus flight data - production credentials win when both are present
AMADEUS_CLIENT_ID = os.getenv("AMADEUS_CLIENT_ID") or os.getenv("AMADEUS_API_KEY")
AMADEUS_CLIENT_SECRET = os.getenv("AMADEUS_CLIENT_SECRET") or os.getenv("AMADEUS_SECRET")
AMADEUS_PROD_CLIENT_ID = os.getenv("AMADEUS_PROD_CLIENT_ID")
AMADEUS_PROD_CLIENT_SECRET = os.getenv("AMADEUS_PROD_CLIENT_SECRET")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Splickets <noreply@splickets.com>")
RESEND_LEADS_AUDIENCE_ID = os.getenv("RESEND_LEADS_AUDIENCE_ID")
RESEND_CUSTOMERS_AUDIENCE_ID = os.getenv("RESEND_CUSTOMERS_AUDIENCE_ID")

# IP geolocation used for currency detection
IPAPI_URL = os.getenv("IPAPI_URL", "https://ipapi.co")

# Rate limiting needs Redis; disable only for local development and tests
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# CORS
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", FRONTEND_URL).split(",")
    if origin.strip()
]

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
