"""
MJML Email Templates
Transactional emails for bookings and installment payments
"""

from datetime import date, datetime
from decimal import Decimal
from html import escape
from typing import Optional, Union

from .config import FRONTEND_URL
from .domain.currency.currencies import get_currency_symbol

# Splickets brand colors
THEME = {
    "primary": "#2563eb",
    "primary_dark": "#1d4ed8",
    "primary_light": "#dbeafe",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}

LOGO_URL = "https://splickets.com/splickets-logo.png"


def format_money(amount: Union[Decimal, float, int, None], currency: str = "USD") -> str:
    value = Decimal(str(amount or 0)).quantize(Decimal("0.01"))
    return f"{get_currency_symbol(currency)}{value:,.2f}"


def format_date(value: Union[str, date, datetime, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value.strftime("%B %-d, %Y")


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button href="{cta_url}" background-color="{THEME['primary']}" color="#ffffff"
              font-weight="600" border-radius="8px" padding="18px 40px" font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 20px">
          <mj-column>
            <mj-image src="{LOGO_URL}" alt="Splickets" width="140px" href="{FRONTEND_URL}" padding="0" />
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              If you have any questions, please contact our support team.
            </mj-text>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="12px 0 0 0">
              © Splickets. All rights reserved.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def booking_confirmation_template(
    customer_name: str,
    booking_reference: str,
    flight_details: dict,
    payment_plan: dict,
    currency: str = "USD",
) -> str:
    """Booking confirmation with route, passengers and payment plan summary"""
    return_line = ""
    if flight_details.get("return_date"):
        return_line = f"<strong>Return:</strong> {format_date(flight_details['return_date'])}<br/>"

    installment_line = ""
    if payment_plan.get("installment_amount") and payment_plan.get("installment_count"):
        frequency = (payment_plan.get("frequency") or "").replace("_", "-")
        installment_line = f"""
        <mj-text>
          <strong>Installments:</strong> {payment_plan['installment_count']} payments of
          {format_money(payment_plan['installment_amount'], currency)} {frequency}
        </mj-text>
        """

    content = f"""
    <mj-text>Dear {escape(customer_name)},</mj-text>
    <mj-text>Your flight booking has been confirmed. Here are your details:</mj-text>
    <mj-text background-color="{THEME['primary_light']}" padding="16px">
      <strong>Booking Reference:</strong> {booking_reference}<br/>
      <strong>Route:</strong> {escape(str(flight_details.get('origin', '')))} → {escape(str(flight_details.get('destination', '')))}<br/>
      <strong>Departure:</strong> {format_date(flight_details.get('departure_date'))}<br/>
      {return_line}
      <strong>Flight:</strong> {escape(str(flight_details.get('flight_number', '')))}<br/>
      <strong>Passengers:</strong> {flight_details.get('passengers', 1)}
    </mj-text>
    <mj-text>
      <strong>Total Amount:</strong> {format_money(payment_plan.get('total_amount'), currency)}<br/>
      <strong>Deposit Paid:</strong> {format_money(payment_plan.get('deposit_amount'), currency)}
    </mj-text>
    {installment_line}
    """

    return get_base_template(
        title="Flight Booking Confirmed!",
        preview_text=f"Booking {booking_reference} is confirmed",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/profile",
        cta_label="View My Bookings",
    )


def payment_reminder_template(
    customer_name: str,
    due_amount: Union[Decimal, float],
    due_date: Union[str, date],
    booking_reference: str,
    payment_url: str,
    currency: str = "USD",
) -> str:
    content = f"""
    <mj-text>Dear {escape(customer_name)},</mj-text>
    <mj-text>This is a friendly reminder that your next installment is due soon.</mj-text>
    <mj-text background-color="{THEME['primary_light']}" padding="16px">
      <strong>Amount:</strong> {format_money(due_amount, currency)}<br/>
      <strong>Due Date:</strong> {format_date(due_date)}<br/>
      <strong>Booking Reference:</strong> {booking_reference}
    </mj-text>
    """

    return get_base_template(
        title="Payment Reminder",
        preview_text=f"Your installment for {booking_reference} is due {format_date(due_date)}",
        content_sections=content,
        cta_url=payment_url,
        cta_label="Review Payment",
    )


def welcome_email_template(customer_name: str) -> str:
    content = f"""
    <mj-text>Dear {escape(customer_name)},</mj-text>
    <mj-text>
      Welcome to Splickets! We're excited to help you book flights with flexible payment plans.
    </mj-text>
    <mj-text padding="0 0 0 20px">
      • Search for flights with our easy-to-use interface<br/>
      • Choose a payment plan starting at 20% down<br/>
      • Manage your bookings and installments in your account
    </mj-text>
    <mj-text>Happy travels!<br/>The Splickets Team</mj-text>
    """

    return get_base_template(
        title="Welcome to Splickets!",
        preview_text="Book now, pay over time",
        content_sections=content,
        cta_url=FRONTEND_URL,
        cta_label="Search Flights",
    )


def installment_setup_failed_template(
    customer_name: str,
    installment_amount: Union[Decimal, float],
    currency: str = "USD",
) -> str:
    """Sent when the deposit went through but the installment schedule could not be created"""
    content = f"""
    <mj-text>Dear {escape(customer_name)},</mj-text>
    <mj-text>
      Your deposit was received, but we couldn't set up automatic payments for your remaining
      installments of {format_money(installment_amount, currency)}.
    </mj-text>
    <mj-text color="{THEME['danger']}">
      Please update your payment method or contact support so your booking stays on track.
    </mj-text>
    """

    return get_base_template(
        title="Action needed: installment setup",
        preview_text="We couldn't set up your installment payments",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/profile?tab=billing",
        cta_label="Update Billing",
    )
