from collections.abc import Sequence
from typing import Any, Final

from sqlalchemy import or_
from sqlmodel import Session, col, select

from ..domain.constants import MAX_NAME_LENGTH, DocumentType
from ..domain.exceptions import (
    AlreadyExistsError,
    ResourceInUseError,
    ValidationError,
)
from ..domain.rules import normalize_document, title_case, utcnow, validate_document
from ..infrastructure.database.models import Client, Product
from ..logging_config import get_logger
from ..logging_utils import log_database_operation
from .queries import get_or_raise, paginate
from .validation import validate_notes, validate_text

logger: Final = get_logger(__name__)

_UPDATABLE_FIELDS: Final = {
    "name",
    "cnpj_cpf",
    "contact_person",
    "email",
    "phone",
    "street",
    "city",
    "state",
    "zip_code",
    "notes",
}


def _clean_values(values: dict[str, Any]) -> dict[str, Any]:
    """Normalize name, document, email and state of a client payload."""
    cleaned = dict(values)

    if cleaned.get("name") is not None:
        name = validate_text(cleaned["name"], "name", max_length=MAX_NAME_LENGTH)
        cleaned["name"] = title_case(name or "")

    if "cnpj_cpf" in cleaned:
        if cleaned["cnpj_cpf"]:
            digits, kind = validate_document(cleaned["cnpj_cpf"])
            cleaned["cnpj_cpf"] = digits
            cleaned["document_type"] = kind
        else:
            cleaned["cnpj_cpf"] = None
            cleaned["document_type"] = DocumentType.OUTROS

    if cleaned.get("email"):
        email = cleaned["email"].strip().lower()
        if "@" not in email:
            raise ValidationError("Invalid email address", field="email")
        cleaned["email"] = email

    if cleaned.get("state"):
        cleaned["state"] = cleaned["state"].strip().upper()

    if "notes" in cleaned:
        cleaned["notes"] = validate_notes(cleaned["notes"])

    return cleaned


def _ensure_unique(
    session: Session, name: str | None, cnpj_cpf: str | None, exclude_id: int | None
) -> None:
    if name:
        statement = select(Client).where(col(Client.name).ilike(name))
        existing = session.exec(statement).first()
        if existing and existing.id != exclude_id:
            raise AlreadyExistsError("client", "name", name)
    if cnpj_cpf:
        statement = select(Client).where(Client.cnpj_cpf == cnpj_cpf)
        existing = session.exec(statement).first()
        if existing and existing.id != exclude_id:
            raise AlreadyExistsError("client", "cnpj_cpf", cnpj_cpf)


def get_client(session: Session, client_id: int) -> Client:
    return get_or_raise(session, Client, client_id, "client")


def list_clients(
    session: Session,
    is_active: bool | None = None,
    search: str | None = None,
    document_type: DocumentType | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[Sequence[Client], int]:
    statement = select(Client)
    if is_active is not None:
        statement = statement.where(Client.is_active == is_active)
    if document_type is not None:
        statement = statement.where(Client.document_type == document_type)
    if search:
        conditions = [
            col(Client.name).ilike(f"%{search}%"),
            col(Client.contact_person).ilike(f"%{search}%"),
            col(Client.email).ilike(f"%{search}%"),
        ]
        digits = normalize_document(search)
        if digits:
            conditions.append(col(Client.cnpj_cpf).contains(digits))
        statement = statement.where(or_(*conditions))
    return paginate(session, statement.order_by(col(Client.name)), page, limit)


def create_client(
    session: Session, values: dict[str, Any], created_by: int | None = None
) -> Client:
    cleaned = _clean_values(values)
    if not cleaned.get("name"):
        raise ValidationError("name is required", field="name")
    _ensure_unique(session, cleaned["name"], cleaned.get("cnpj_cpf"), None)

    client = Client(**cleaned, created_by=created_by)
    session.add(client)
    session.commit()
    session.refresh(client)

    log_database_operation(operation="create", table="Client", client_id=client.id)
    logger.info(
        "Client created", client_id=client.id, document_type=client.document_type
    )
    return client


def update_client(session: Session, client_id: int, changes: dict[str, Any]) -> Client:
    client = get_client(session, client_id)
    cleaned = _clean_values(
        {field: value for field, value in changes.items() if field in _UPDATABLE_FIELDS}
    )
    _ensure_unique(session, cleaned.get("name"), cleaned.get("cnpj_cpf"), client.id)

    for field, value in cleaned.items():
        setattr(client, field, value)

    client.updated_at = utcnow()
    session.add(client)
    session.commit()
    session.refresh(client)

    log_database_operation(operation="update", table="Client", client_id=client.id)
    return client


def set_client_active(session: Session, client_id: int, is_active: bool) -> Client:
    client = get_client(session, client_id)
    client.is_active = is_active
    client.updated_at = utcnow()
    session.add(client)
    session.commit()
    session.refresh(client)

    operation = "reactivate" if is_active else "deactivate"
    log_database_operation(operation=operation, table="Client", client_id=client.id)
    return client


def delete_client(session: Session, client_id: int) -> None:
    client = get_client(session, client_id)

    linked = session.exec(
        select(Product.id).where(Product.client_id == client_id).limit(1)
    ).first()
    if linked is not None:
        raise ResourceInUseError(
            f"Client '{client.name}' has products; deactivate it instead"
        )

    session.delete(client)
    session.commit()
    log_database_operation(operation="delete", table="Client", client_id=client_id)
    logger.info("Client deleted", client_id=client_id)
