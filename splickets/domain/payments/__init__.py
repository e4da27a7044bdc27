"""Payments domain - Stripe deposits, installment schedules and webhooks"""

from .router import router

__all__ = ["router"]
