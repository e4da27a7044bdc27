"""Flights domain - Amadeus flight search and airport lookups"""

from .router import router

__all__ = ["router"]
