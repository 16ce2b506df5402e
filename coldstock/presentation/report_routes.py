from typing import Any, Final

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from ..application.report_service import (
    capacity_report,
    dashboard,
    expiration_report,
    inventory_report,
    movement_report,
)
from ..domain.constants import EXPIRATION_WARNING_DAYS
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User
from .dependencies import get_current_user

router: Final = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/dashboard", summary="Warehouse overview")
async def api_dashboard(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
) -> dict[str, Any]:
    return dashboard(session)


@router.get("/inventory", summary="Stock by status and seed type")
async def api_inventory_report(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
) -> dict[str, Any]:
    return inventory_report(session)


@router.get("/expiration", summary="Products close to or past expiration")
async def api_expiration_report(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    days: int = Query(EXPIRATION_WARNING_DAYS, ge=0, le=3650),
) -> dict[str, Any]:
    return expiration_report(session, days)


@router.get("/capacity", summary="Occupancy and weight per chamber")
async def api_capacity_report(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
) -> dict[str, Any]:
    return capacity_report(session)


@router.get("/movements", summary="Movements per day")
async def api_movement_report(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    days: int = Query(30, ge=1, le=365),
) -> dict[str, Any]:
    return movement_report(session, days)
