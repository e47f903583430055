"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from taxonomy_api.api.assignments import router as assignments_router
from taxonomy_api.api.categories import router as categories_router
from taxonomy_api.api.filters import router as filters_router
from taxonomy_api.api.health import router as health_router
from taxonomy_api.api.resolution import router as resolution_router

__all__ = [
    "assignments_router",
    "categories_router",
    "filters_router",
    "health_router",
    "resolution_router",
]
