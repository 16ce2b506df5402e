from typing import Any, Final

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from ..application.withdrawal_service import (
    cancel_request,
    confirm_request,
    get_request,
    get_request_stats,
    list_by_product,
    list_pending,
    list_requests,
    update_request,
)
from ..constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..domain.constants import WithdrawalStatus, WithdrawalType
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User, WithdrawalRequest
from .dependencies import get_current_user
from .schemas import (
    Page,
    WithdrawalCancel,
    WithdrawalConfirm,
    WithdrawalResponse,
    WithdrawalUpdate,
    page_of,
)

router: Final = APIRouter(prefix="/withdrawal-requests", tags=["withdrawals"])


@router.get(
    "", response_model=Page[WithdrawalResponse], summary="List withdrawal requests"
)
async def api_list_requests(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    status_filter: WithdrawalStatus | None = Query(None, alias="status"),
    withdrawal_type: WithdrawalType | None = Query(None, alias="type"),
    product_id: int | None = None,
    requested_by: int | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> Page[WithdrawalResponse]:
    requests, total = list_requests(
        session, status_filter, withdrawal_type, product_id, requested_by, page, limit
    )
    return page_of(WithdrawalResponse, requests, total, page, limit)


@router.get(
    "/by-product/{product_id}",
    response_model=list[WithdrawalResponse],
    summary="Withdrawal requests of one product",
)
async def api_requests_by_product(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    product_id: int,
) -> list[WithdrawalRequest]:
    return list(list_by_product(session, product_id))


@router.get(
    "/pending",
    response_model=list[WithdrawalResponse],
    summary="Pending requests, oldest first",
)
async def api_pending_requests(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
) -> list[WithdrawalRequest]:
    return list(list_pending(session))


@router.get(
    "/mine",
    response_model=Page[WithdrawalResponse],
    summary="Requests made by the current user",
)
async def api_my_requests(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> Page[WithdrawalResponse]:
    requests, total = list_requests(
        session, requested_by=user.id, page=page, limit=limit
    )
    return page_of(WithdrawalResponse, requests, total, page, limit)


@router.get("/stats", summary="Request counts by status, type and urgency")
async def api_request_stats(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
) -> dict[str, Any]:
    return get_request_stats(session)


@router.get(
    "/{request_id}",
    response_model=WithdrawalResponse,
    summary="Get a withdrawal request",
)
async def api_get_request(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    request_id: int,
) -> WithdrawalRequest:
    return get_request(session, request_id)


@router.put(
    "/{request_id}",
    response_model=WithdrawalResponse,
    summary="Edit a pending request",
)
async def api_update_request(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    request_id: int,
    body: WithdrawalUpdate,
) -> WithdrawalRequest:
    return update_request(
        session, request_id, user, body.reason, body.notes, body.quantity
    )


@router.post(
    "/{request_id}/confirm",
    response_model=WithdrawalResponse,
    summary="Confirm a withdrawal",
    description="""
    Operators confirm that the goods left the warehouse. A TOTAL withdrawal
    marks the product RETIRADO and frees its location; a PARCIAL one reduces
    the stored quantity and puts the product back to LOCADO.
    """,
    responses={403: {"description": "Only operators confirm withdrawals"}},
)
async def api_confirm_request(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    request_id: int,
    body: WithdrawalConfirm,
) -> WithdrawalRequest:
    return confirm_request(session, request_id, user, body.notes, body.version)


@router.post(
    "/{request_id}/cancel",
    response_model=WithdrawalResponse,
    summary="Cancel a pending request",
)
async def api_cancel_request(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    request_id: int,
    body: WithdrawalCancel,
) -> WithdrawalRequest:
    return cancel_request(session, request_id, user, body.reason, body.version)
