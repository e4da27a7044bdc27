"""Billing domain - payment plans, saved cards and payment history"""

from .router import router

__all__ = ["router"]
