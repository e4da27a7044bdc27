"""Users domain - account lookups, currency preference and referral summary"""

from .router import router

__all__ = ["router"]
