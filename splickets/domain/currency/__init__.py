"""Currency domain - supported currencies and display-currency resolution"""

from .router import router

__all__ = ["router"]
