"""API route modules."""

from .campaigns_routes import router as campaigns_router
from .certificates_routes import router as certificates_router
from .designs_routes import router as designs_router
from .health_routes import router as health_router

__all__ = [
    "campaigns_router",
    "certificates_router",
    "designs_router",
    "health_router",
]
