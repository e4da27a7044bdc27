"""
Transactional email via Resend
Templates are MJML compiled to HTML; a missing API key disables sending
"""

import logging
from decimal import Decimal
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import (
    EMAIL_FROM_ADDRESS,
    RESEND_API_KEY,
    RESEND_CUSTOMERS_AUDIENCE_ID,
    RESEND_LEADS_AUDIENCE_ID,
)
from .email_templates import (
    booking_confirmation_template,
    installment_setup_failed_template,
    payment_reminder_template,
    welcome_email_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def is_email_configured() -> bool:
    return bool(RESEND_API_KEY)


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a dict with 'html' and 'errors' keys
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise ValueError(f"Failed to compile MJML template: {str(e)}") from e


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> bool:
    """
    Send an email through Resend

    Returns True when the provider accepted the message. Delivery problems
    are logged and reported as False; callers never see provider exceptions.
    """
    if not is_email_configured():
        logger.warning(f"⚠️ Email service disabled (RESEND_API_KEY missing) - skipping '{subject}'")
        return False

    recipients = [to] if isinstance(to, str) else to

    try:
        html_content = compile_mjml_to_html(mjml_content)
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return True
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        return False


# ============================================
# Pre-built emails for booking events
# ============================================


async def send_booking_confirmation(
    to: str,
    customer_name: str,
    booking_reference: str,
    flight_details: dict,
    payment_plan: dict,
    currency: str = "USD",
) -> bool:
    mjml_content = booking_confirmation_template(
        customer_name, booking_reference, flight_details, payment_plan, currency
    )
    return await send_email(
        to=to,
        subject=f"Flight Booking Confirmation - {booking_reference}",
        mjml_content=mjml_content,
    )


async def send_payment_reminder(
    to: str,
    customer_name: str,
    due_amount: Union[Decimal, float],
    due_date,
    booking_reference: str,
    payment_url: str,
    currency: str = "USD",
) -> bool:
    mjml_content = payment_reminder_template(
        customer_name, due_amount, due_date, booking_reference, payment_url, currency
    )
    return await send_email(
        to=to,
        subject=f"Payment Reminder - {booking_reference}",
        mjml_content=mjml_content,
    )


async def send_welcome_email(to: str, customer_name: str) -> bool:
    """Send welcome email to new users"""
    return await send_email(
        to=to,
        subject="Welcome to Splickets!",
        mjml_content=welcome_email_template(customer_name),
    )


async def send_installment_setup_failed(
    to: str,
    customer_name: str,
    installment_amount: Union[Decimal, float],
    currency: str = "USD",
) -> bool:
    mjml_content = installment_setup_failed_template(customer_name, installment_amount, currency)
    return await send_email(
        to=to,
        subject="Action needed: your Splickets installment plan",
        mjml_content=mjml_content,
    )


# ============================================
# Audience lists (leads -> customers)
# ============================================


def add_lead_to_audience(
    email: str, first_name: Optional[str] = None, last_name: Optional[str] = None
) -> bool:
    """Add a contact to the leads audience"""
    return _add_contact(RESEND_LEADS_AUDIENCE_ID, email, first_name, last_name)


def move_lead_to_customers(
    email: str, first_name: Optional[str] = None, last_name: Optional[str] = None
) -> bool:
    """Remove a contact from the leads audience and add it to customers"""
    if not is_email_configured():
        return False

    if RESEND_LEADS_AUDIENCE_ID:
        try:
            resend.Contacts.remove({"audience_id": RESEND_LEADS_AUDIENCE_ID, "email": email})
        except Exception as e:
            # Contact may never have been a lead
            logger.warning(f"⚠️ Could not remove {email} from leads audience: {e}")

    return _add_contact(RESEND_CUSTOMERS_AUDIENCE_ID, email, first_name, last_name)


def _add_contact(
    audience_id: Optional[str], email: str, first_name: Optional[str], last_name: Optional[str]
) -> bool:
    if not is_email_configured() or not audience_id:
        logger.debug(f"Audience not configured - skipping contact {email}")
        return False

    try:
        resend.Contacts.create(
            {
                "audience_id": audience_id,
                "email": email,
                "first_name": first_name or "",
                "last_name": last_name or "",
                "unsubscribed": False,
            }
        )
        logger.info(f"✅ Added {email} to audience {audience_id}")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to add {email} to audience {audience_id}: {e}")
        return False
