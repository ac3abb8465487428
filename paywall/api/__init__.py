"""API layer module.

Contains FastAPI routers and response schemas.
"""

from paywall.api.health import router as health_router
from paywall.api.payments import router as payments_router
from paywall.api.redeem import router as redeem_router

__all__ = [
    "health_router",
    "payments_router",
    "redeem_router",
]
