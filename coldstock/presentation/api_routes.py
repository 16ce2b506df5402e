from typing import Any, Final

from fastapi import APIRouter

from ..config import settings
from . import (
    auth_routes,
    chamber_routes,
    client_routes,
    location_routes,
    movement_routes,
    product_routes,
    report_routes,
    seed_type_routes,
    user_routes,
    withdrawal_routes,
)

api_router: Final = APIRouter(
    prefix="/api/v1",
    responses={
        400: {"description": "Bad Request - Invalid input data"},
        401: {"description": "Unauthorized - Missing or invalid bearer token"},
        403: {"description": "Forbidden - Role not allowed"},
        404: {"description": "Not Found - Resource does not exist"},
        409: {"description": "Conflict - Business rule or version conflict"},
    },
)

for module in (
    auth_routes,
    user_routes,
    chamber_routes,
    location_routes,
    seed_type_routes,
    client_routes,
    product_routes,
    withdrawal_routes,
    movement_routes,
    report_routes,
):
    api_router.include_router(module.router)

health_router: Final = APIRouter(tags=["health"])


@health_router.get("/health", summary="Liveness check")
async def health() -> dict[str, Any]:
    return {"status": "ok", "app": settings.app_name, "version": settings.version}
