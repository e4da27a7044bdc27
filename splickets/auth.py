import json
import logging
import secrets
from typing import Optional

import firebase_admin
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from sqlalchemy.orm import Session

from .config import (
    FIREBASE_CLIENT_EMAIL,
    FIREBASE_CLIENT_ID,
    FIREBASE_PRIVATE_KEY,
    FIREBASE_PRIVATE_KEY_ID,
    FIREBASE_PROJECT_ID,
)
from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer()

TEMPORARY_PASSWORD_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789!@#$%"


def parse_private_key(key: Optional[str]) -> str:
    """Normalize a PEM private key from env (quoted JSON string or escaped newlines)"""
    if not key:
        return ""

    parsed = key
    if parsed.startswith('"'):
        try:
            parsed = json.loads(parsed)
        except ValueError:
            pass

    parsed = parsed.replace("\\\\n", "\n").replace("\\n", "\n")

    if "-----BEGIN" not in parsed:
        logger.warning("⚠️ Firebase private key does not appear to be in PEM format")

    return parsed


def _initialize_firebase() -> Optional[firebase_admin.App]:
    """Initialize Firebase Admin SDK once; returns None when not configured"""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    private_key = parse_private_key(FIREBASE_PRIVATE_KEY)
    if not private_key or not FIREBASE_CLIENT_EMAIL:
        logger.warning("FIREBASE_PRIVATE_KEY not set - Firebase Admin features disabled")
        return None

    service_account = {
        "type": "service_account",
        "project_id": FIREBASE_PROJECT_ID,
        "private_key_id": FIREBASE_PRIVATE_KEY_ID,
        "private_key": private_key,
        "client_email": FIREBASE_CLIENT_EMAIL,
        "client_id": FIREBASE_CLIENT_ID,
        "token_uri": "https://oauth2.googleapis.com/token",
    }
    try:
        app = firebase_admin.initialize_app(
            credentials.Certificate(service_account), {"projectId": FIREBASE_PROJECT_ID}
        )
        logger.info("Firebase Admin initialized successfully")
        return app
    except Exception as e:
        logger.error(f"❌ Failed to initialize Firebase Admin: {e}")
        logger.warning("Firebase Admin features will be disabled")
        return None


firebase_app = _initialize_firebase()


def is_firebase_configured() -> bool:
    return firebase_app is not None


def _require_firebase():
    if not is_firebase_configured():
        raise HTTPException(status_code=503, detail="Firebase Admin not configured")


def verify_firebase_token(token: str) -> dict:
    """Verify a Firebase ID token and return its decoded claims"""
    _require_firebase()

    try:
        return firebase_auth.verify_id_token(token, app=firebase_app)
    except firebase_auth.ExpiredIdTokenError as e:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except (firebase_auth.InvalidIdTokenError, ValueError) as e:
        logger.warning(f"⚠️ Invalid Firebase token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token") from e
    except Exception as e:
        logger.error(f"❌ Token verification failed: {type(e).__name__}: {str(e)}")
        raise HTTPException(status_code=401, detail="Token verification failed") from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get the local user for a Firebase ID token"""
    token = credentials.credentials

    if len(token.split(".")) != 3:
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    decoded_token = verify_firebase_token(token)

    firebase_uid = decoded_token.get("uid") or decoded_token.get("sub")
    email = decoded_token.get("email")
    if not firebase_uid:
        raise HTTPException(status_code=401, detail="Invalid token claims")

    user = db.query(User).filter(User.firebase_uid == firebase_uid).first()
    if user:
        return user

    # Accounts created at booking time only know the email until first sign-in
    if email:
        user = db.query(User).filter(User.email == email).first()
        if user:
            logger.info(f"🔄 Linking user {email} to Firebase UID {firebase_uid}")
            user.firebase_uid = firebase_uid
            db.commit()
            db.refresh(user)
            return user

    logger.warning(f"⚠️ Authenticated Firebase user {email} has no Splickets account")
    raise HTTPException(status_code=404, detail="User not found")


def generate_temporary_password(length: int = 12) -> str:
    return "".join(secrets.choice(TEMPORARY_PASSWORD_CHARS) for _ in range(length))


def create_firebase_user(email: str, password: str, display_name: Optional[str] = None) -> str:
    """Create a Firebase Auth user (or reuse the existing one) and return its uid"""
    _require_firebase()

    try:
        existing = firebase_auth.get_user_by_email(email, app=firebase_app)
        return existing.uid
    except firebase_auth.UserNotFoundError:
        pass

    try:
        record = firebase_auth.create_user(
            email=email,
            password=password,
            display_name=display_name,
            email_verified=True,  # They've booked with this address
            app=firebase_app,
        )
        logger.info(f"🆕 Created Firebase user for {email}")
        return record.uid
    except firebase_auth.EmailAlreadyExistsError:
        return firebase_auth.get_user_by_email(email, app=firebase_app).uid


def create_custom_token(uid: str) -> str:
    """Custom token the client exchanges for a session (auto sign-in after booking)"""
    _require_firebase()

    token = firebase_auth.create_custom_token(uid, app=firebase_app)
    return token.decode() if isinstance(token, bytes) else token
