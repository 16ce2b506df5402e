from typing import Final

from fastapi import APIRouter, Depends, Query, Response, status
from sqlmodel import Session

from ..application.client_service import (
    create_client,
    delete_client,
    get_client,
    list_clients,
    set_client_active,
    update_client,
)
from ..constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..domain.constants import DocumentType
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import Client, User
from .dependencies import get_current_user, require_permission
from .schemas import ClientCreate, ClientResponse, ClientUpdate, Page, page_of

router: Final = APIRouter(prefix="/clients", tags=["clients"])


@router.get("", response_model=Page[ClientResponse], summary="List clients")
async def api_list_clients(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    is_active: bool | None = None,
    document_type: DocumentType | None = None,
    search: str | None = Query(
        None, description="Matches name, contact, email or document digits"
    ),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> Page[ClientResponse]:
    clients, total = list_clients(
        session, is_active, search, document_type, page, limit
    )
    return page_of(ClientResponse, clients, total, page, limit)


@router.get("/{client_id}", response_model=ClientResponse, summary="Get a client")
async def api_get_client(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    client_id: int,
) -> Client:
    return get_client(session, client_id)


@router.post(
    "",
    response_model=ClientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a client",
    description="""
    CPF (11 digits) and CNPJ (14 digits) are checked against their
    verification digits and stored without punctuation.
    """,
    responses={409: {"description": "Name or document already registered"}},
)
async def api_create_client(
    *,
    session: Session = Depends(get_session),
    admin: User = Depends(require_permission("manage_clients")),
    body: ClientCreate,
) -> Client:
    return create_client(session, body.model_dump(exclude_unset=True), admin.id)


@router.put("/{client_id}", response_model=ClientResponse, summary="Update a client")
async def api_update_client(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_clients")),
    client_id: int,
    body: ClientUpdate,
) -> Client:
    return update_client(session, client_id, body.model_dump(exclude_unset=True))


@router.post(
    "/{client_id}/deactivate",
    response_model=ClientResponse,
    summary="Deactivate a client",
)
async def api_deactivate_client(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_clients")),
    client_id: int,
) -> Client:
    return set_client_active(session, client_id, False)


@router.post(
    "/{client_id}/reactivate",
    response_model=ClientResponse,
    summary="Reactivate a client",
)
async def api_reactivate_client(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_clients")),
    client_id: int,
) -> Client:
    return set_client_active(session, client_id, True)


@router.delete(
    "/{client_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a client without products",
    responses={409: {"description": "Client has products"}},
)
async def api_delete_client(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_clients")),
    client_id: int,
) -> Response:
    delete_client(session, client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
