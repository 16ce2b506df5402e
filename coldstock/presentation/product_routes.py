"""Product endpoints: registration and every lifecycle operation.

Role checks happen in the service layer; these handlers only resolve the
current user. Mutating endpoints accept the product `version` the client read
and answer 409 when somebody else changed the product in between.
"""

from typing import Final

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from ..application.movement_service import get_product_history
from ..application.product_service import (
    add_stock,
    cancel_product,
    create_product,
    create_products_batch,
    get_product,
    list_batch,
    list_pending_location,
    list_pending_withdrawal,
    list_products,
    locate_product,
    move_product,
    partial_exit,
    partial_move,
    remove_product,
    update_product,
)
from ..application.withdrawal_service import create_request
from ..constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..domain.constants import ProductStatus
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import Movement, Product, User, WithdrawalRequest
from .dependencies import get_current_user
from .schemas import (
    BatchCreate,
    BatchResponse,
    LocateRequest,
    MoveRequest,
    MovementResponse,
    Page,
    PartialMoveRequest,
    PartialMoveResponse,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    QuantityRequest,
    ReasonRequest,
    WithdrawalCreate,
    WithdrawalResponse,
    page_of,
)

router: Final = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=Page[ProductResponse], summary="List products")
async def api_list_products(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    status_filter: ProductStatus | None = Query(None, alias="status"),
    seed_type_id: int | None = None,
    client_id: int | None = None,
    location_id: int | None = None,
    chamber_id: int | None = None,
    lot: str | None = None,
    batch_id: str | None = None,
    search: str | None = Query(None, description="Matches name or lot"),
    expiring_within_days: int | None = Query(None, ge=0),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> Page[ProductResponse]:
    products, total = list_products(
        session,
        status=status_filter,
        seed_type_id=seed_type_id,
        client_id=client_id,
        location_id=location_id,
        chamber_id=chamber_id,
        lot=lot,
        batch_id=batch_id,
        search=search,
        expiring_within_days=expiring_within_days,
        page=page,
        limit=limit,
    )
    return page_of(ProductResponse, products, total, page, limit)


@router.get(
    "/pending-location",
    response_model=list[ProductResponse],
    summary="Products waiting for a location",
)
async def api_pending_location(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
) -> list[Product]:
    return list(list_pending_location(session))


@router.get(
    "/pending-withdrawal",
    response_model=list[ProductResponse],
    summary="Products reserved by a pending withdrawal",
)
async def api_pending_withdrawal(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
) -> list[Product]:
    return list(list_pending_withdrawal(session))


@router.get(
    "/by-batch/{batch_id}",
    response_model=list[ProductResponse],
    summary="Products registered together in a batch",
)
async def api_products_by_batch(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    batch_id: str,
) -> list[Product]:
    return list(list_batch(session, batch_id))


@router.get("/{product_id}", response_model=ProductResponse, summary="Get a product")
async def api_get_product(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    product_id: int,
) -> Product:
    return get_product(session, product_id)


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a product",
    description="""
    Register a seed lot. Without `location_id` the product waits in
    AGUARDANDO_LOCACAO; with one it is stored right away (LOCADO) after the
    location's occupancy and capacity are checked, and an `entry` movement is
    recorded. Administrators only.
    """,
    responses={
        403: {"description": "Only administrators register products"},
        409: {"description": "Location occupied or capacity exceeded"},
    },
)
async def api_create_product(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    body: ProductCreate,
) -> Product:
    values = body.model_dump(exclude_none=True)
    return create_product(session, Product(**values), user)


@router.post(
    "/batch",
    response_model=BatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register several products at once",
    description="""
    All products are created in one transaction sharing a generated batch id.
    If any of them fails validation, none is created.
    """,
)
async def api_create_batch(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    body: BatchCreate,
) -> BatchResponse:
    products = [Product(**item.model_dump(exclude_none=True)) for item in body.products]
    batch_id, created = create_products_batch(session, products, user, body.client_id)
    return BatchResponse(
        batch_id=batch_id,
        products=[ProductResponse.model_validate(product) for product in created],
    )


@router.put(
    "/{product_id}", response_model=ProductResponse, summary="Update a product"
)
async def api_update_product(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    product_id: int,
    body: ProductUpdate,
) -> Product:
    changes = body.model_dump(exclude_unset=True, exclude={"version"})
    return update_product(session, product_id, changes, user, body.version)


@router.post(
    "/{product_id}/locate",
    response_model=ProductResponse,
    summary="Store a product that waits for a location",
)
async def api_locate_product(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    product_id: int,
    body: LocateRequest,
) -> Product:
    return locate_product(session, product_id, body.location_id, user, body.version)


@router.post(
    "/{product_id}/move",
    response_model=ProductResponse,
    summary="Move a stored product to another location",
)
async def api_move_product(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    product_id: int,
    body: MoveRequest,
) -> Product:
    return move_product(
        session, product_id, body.new_location_id, user, body.reason, body.version
    )


@router.post(
    "/{product_id}/partial-move",
    response_model=PartialMoveResponse,
    summary="Move part of a product into a new location",
)
async def api_partial_move(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    product_id: int,
    body: PartialMoveRequest,
) -> PartialMoveResponse:
    origin, new_product = partial_move(
        session,
        product_id,
        body.new_location_id,
        body.quantity,
        user,
        body.reason,
        body.version,
    )
    return PartialMoveResponse(
        origin=ProductResponse.model_validate(origin),
        new_product=ProductResponse.model_validate(new_product),
    )


@router.post(
    "/{product_id}/partial-exit",
    response_model=ProductResponse,
    summary="Take units out of a stored product",
)
async def api_partial_exit(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    product_id: int,
    body: QuantityRequest,
) -> Product:
    return partial_exit(
        session, product_id, body.quantity, user, body.reason, body.version
    )


@router.post(
    "/{product_id}/add-stock",
    response_model=ProductResponse,
    summary="Add units to a stored product",
)
async def api_add_stock(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    product_id: int,
    body: QuantityRequest,
) -> Product:
    return add_stock(
        session, product_id, body.quantity, user, body.reason, body.version
    )


@router.post(
    "/{product_id}/remove",
    response_model=ProductResponse,
    summary="Remove a product from stock",
)
async def api_remove_product(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    product_id: int,
    body: ReasonRequest,
) -> Product:
    return remove_product(session, product_id, user, body.reason, body.version)


@router.delete(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Remove a product from stock",
)
async def api_delete_product(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    product_id: int,
    version: int | None = Query(None, ge=0),
) -> Product:
    return remove_product(session, product_id, user, None, version)


@router.post(
    "/{product_id}/cancel",
    response_model=ProductResponse,
    summary="Cancel a registration that was never stored",
)
async def api_cancel_product(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    product_id: int,
    body: ReasonRequest,
) -> Product:
    return cancel_product(session, product_id, user, body.reason, body.version)


@router.post(
    "/{product_id}/request-withdrawal",
    response_model=WithdrawalResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ask for a stored product to be withdrawn",
)
async def api_request_withdrawal(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    product_id: int,
    body: WithdrawalCreate,
) -> WithdrawalRequest:
    return create_request(
        session,
        product_id,
        user,
        body.type,
        body.quantity,
        body.reason,
        body.notes,
        body.version,
    )


@router.get(
    "/{product_id}/movements",
    response_model=list[MovementResponse],
    summary="Movement history of a product",
)
async def api_product_movements(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    product_id: int,
) -> list[Movement]:
    return list(get_product_history(session, product_id))
