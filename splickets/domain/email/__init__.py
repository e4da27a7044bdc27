"""Email domain - development-only sample sends"""

from .router import router

__all__ = ["router"]
