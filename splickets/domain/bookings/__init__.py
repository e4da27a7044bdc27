"""Bookings domain - leads, booking completion and cancellation"""

from .router import router

__all__ = ["router"]
