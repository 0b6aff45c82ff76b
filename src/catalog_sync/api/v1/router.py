"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from catalog_sync.api.v1 import health, imports, queue

api_router = APIRouter()

# Include all routers
api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    queue.router,
    prefix="/queue",
    tags=["Queue"],
)

api_router.include_router(
    imports.router,
    prefix="/imports",
    tags=["Imports"],
)
