"""Payment plan domain - eligibility quotes and installment schedules"""

from .router import router

__all__ = ["router"]
