"""Request and response models of the REST API."""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ..domain.constants import (
    MAX_ANDARES,
    MAX_DESCRIPTION_LENGTH,
    MAX_FILAS,
    MAX_LADOS,
    MAX_LOT_LENGTH,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_PRODUCT_NAME_LENGTH,
    MAX_QUADRAS,
    MAX_REASON_LENGTH,
    MAX_STORAGE_TIME_DAYS,
    AccessLevel,
    ChamberStatus,
    DocumentType,
    MovementStatus,
    MovementType,
    ProductStatus,
    QualityGrade,
    StorageType,
    UserRole,
    WithdrawalStatus,
    WithdrawalType,
)

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a paginated listing."""

    items: list[T] = Field(description="Rows of the requested page")
    total: int = Field(description="Total number of matching rows")
    page: int = Field(description="Current page, starting at 1")
    limit: int = Field(description="Page size")
    pages: int = Field(description="Number of pages")

    @classmethod
    def build(cls, items: Any, total: int, page: int, limit: int) -> "Page[T]":
        return cls(
            items=list(items),
            total=total,
            page=page,
            limit=limit,
            pages=(total + limit - 1) // limit if limit else 0,
        )


class MessageResponse(BaseModel):
    message: str = Field(description="Result message")


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


ORMModelT = TypeVar("ORMModelT", bound=ORMModel)


def page_of(
    schema: type[ORMModelT], rows: Any, total: int, page: int, limit: int
) -> Page[ORMModelT]:
    """Wrap database rows of a listing into a typed page."""
    return Page[schema].build(  # type: ignore[valid-type]
        [schema.model_validate(row) for row in rows], total, page, limit
    )


# Auth


class LoginRequest(BaseModel):
    email: str = Field(
        ..., min_length=3, max_length=254, examples=["admin@coldstock.dev"]
    )
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class UserResponse(ORMModel):
    """User account as returned by the API. The password hash is never exposed."""

    id: int
    name: str
    email: str
    role: UserRole
    is_active: bool
    last_login_at: datetime | None
    created_at: datetime


class TokenResponse(BaseModel):
    access_token: str = Field(description="Bearer token for API requests")
    refresh_token: str = Field(description="Token to obtain a new access token")
    token_type: str = Field("bearer", description="Always 'bearer'")
    user: UserResponse | None = Field(None, description="Authenticated user")


# Users


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1)
    role: UserRole = Field(UserRole.OPERATOR, description="ADMIN or OPERATOR")


class UserUpdate(BaseModel):
    name: str | None = Field(None, max_length=MAX_NAME_LENGTH)
    email: str | None = Field(None, max_length=254)
    role: UserRole | None = None
    is_active: bool | None = None


# Chambers


class ChamberBase(BaseModel):
    description: str | None = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    current_temperature: float | None = None
    current_humidity: float | None = None
    target_temperature: float | None = None
    target_humidity: float | None = None
    temperature_min: float | None = None
    temperature_max: float | None = None
    humidity_min: float | None = None
    humidity_max: float | None = None
    last_maintenance_date: datetime | None = None
    next_maintenance_date: datetime | None = None


class ChamberCreate(ChamberBase):
    """Request model for creating a chamber."""

    name: str = Field(
        ..., min_length=1, max_length=MAX_NAME_LENGTH, examples=["Camara 01"]
    )
    quadras: int = Field(..., ge=1, le=MAX_QUADRAS, description="Blocks")
    lados: int = Field(..., ge=1, le=MAX_LADOS, description="Sides per block")
    filas: int = Field(..., ge=1, le=MAX_FILAS, description="Rows per side")
    andares: int = Field(..., ge=1, le=MAX_ANDARES, description="Levels per row")
    status: ChamberStatus = ChamberStatus.ACTIVE
    generate_locations: bool = Field(
        False, description="Create every location of the grid right away"
    )
    default_capacity_kg: float | None = Field(
        None, gt=0, description="Capacity of generated locations"
    )


class ChamberUpdate(ChamberBase):
    name: str | None = Field(None, max_length=MAX_NAME_LENGTH)
    status: ChamberStatus | None = None


class ConditionsUpdate(BaseModel):
    temperature: float | None = Field(None, description="Current temperature in C")
    humidity: float | None = Field(None, description="Current relative humidity %")


class GenerateLocationsRequest(BaseModel):
    default_capacity_kg: float | None = Field(None, gt=0)
    overwrite: bool = Field(False, description="Delete existing locations first")


class GenerateLocationsResponse(BaseModel):
    created: int
    skipped: int
    total: int


class ChamberResponse(ORMModel):
    id: int
    name: str
    description: str | None
    status: ChamberStatus
    quadras: int
    lados: int
    filas: int
    andares: int
    total_locations: int
    current_temperature: float | None
    current_humidity: float | None
    target_temperature: float | None
    target_humidity: float | None
    temperature_min: float | None
    temperature_max: float | None
    humidity_min: float | None
    humidity_max: float | None
    temperature_status: str
    humidity_status: str
    conditions_status: str
    last_maintenance_date: datetime | None
    next_maintenance_date: datetime | None
    created_at: datetime
    updated_at: datetime


# Locations


class LocationCreate(BaseModel):
    chamber_id: int
    quadra: int = Field(..., ge=1)
    lado: int = Field(..., ge=1)
    fila: int = Field(..., ge=1)
    andar: int = Field(..., ge=1)
    max_capacity_kg: float = Field(..., gt=0)
    notes: str | None = Field(None, max_length=MAX_DESCRIPTION_LENGTH)


class LocationUpdate(BaseModel):
    max_capacity_kg: float | None = Field(None, gt=0)
    notes: str | None = Field(None, max_length=MAX_DESCRIPTION_LENGTH)


class LocationResponse(ORMModel):
    id: int
    chamber_id: int
    code: str
    quadra: int
    lado: int
    fila: int
    andar: int
    is_occupied: bool
    max_capacity_kg: float
    current_weight_kg: float
    available_capacity_kg: float
    occupancy_percentage: int
    capacity_status: str
    access_level: AccessLevel
    notes: str | None


class CapacityValidationRequest(BaseModel):
    location_id: int
    weight_kg: float = Field(..., description="Weight to be stored, in kg")
    product_id: int | None = Field(
        None, description="Product already stored at the location, if adding stock"
    )


class CapacityValidationResponse(BaseModel):
    valid: bool
    location_code: str
    requested_kg: float
    reason: str | None = None
    message: str | None = None
    warnings: list[str] = []
    suggestions: list[dict[str, Any]] = []
    analysis: dict[str, Any]


# Seed types


class SeedTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH, examples=["Soja"])
    description: str | None = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    optimal_temperature: float | None = None
    optimal_humidity: float | None = Field(None, ge=0, le=100)
    max_storage_time_days: int | None = Field(None, ge=1, le=MAX_STORAGE_TIME_DAYS)


class SeedTypeUpdate(BaseModel):
    name: str | None = Field(None, max_length=MAX_NAME_LENGTH)
    description: str | None = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    optimal_temperature: float | None = None
    optimal_humidity: float | None = Field(None, ge=0, le=100)
    max_storage_time_days: int | None = Field(None, ge=1, le=MAX_STORAGE_TIME_DAYS)
    is_active: bool | None = None


class SeedTypeResponse(ORMModel):
    id: int
    name: str
    description: str | None
    optimal_temperature: float | None
    optimal_humidity: float | None
    max_storage_time_days: int | None
    is_active: bool
    created_at: datetime


# Clients


class ClientBase(BaseModel):
    cnpj_cpf: str | None = Field(None, max_length=20, examples=["11.222.333/0001-81"])
    contact_person: str | None = Field(None, max_length=MAX_NAME_LENGTH)
    email: str | None = Field(None, max_length=254)
    phone: str | None = Field(None, max_length=20)
    street: str | None = Field(None, max_length=200)
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=2)
    zip_code: str | None = Field(None, max_length=10)
    notes: str | None = Field(None, max_length=MAX_NOTES_LENGTH)


class ClientCreate(ClientBase):
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)


class ClientUpdate(ClientBase):
    name: str | None = Field(None, max_length=MAX_NAME_LENGTH)


class ClientResponse(ORMModel):
    id: int
    name: str
    cnpj_cpf: str | None
    formatted_document: str | None
    document_type: DocumentType
    contact_person: str | None
    email: str | None
    phone: str | None
    street: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    notes: str | None
    is_active: bool
    created_at: datetime


# Products


class VersionedRequest(BaseModel):
    version: int | None = Field(
        None,
        ge=0,
        description="Product version read by the client; stale versions get 409",
    )


class ProductCreate(BaseModel):
    """Request model for registering a product."""

    name: str = Field(
        ..., min_length=1, max_length=MAX_PRODUCT_NAME_LENGTH, examples=["Soja RR"]
    )
    lot: str = Field(
        ..., min_length=1, max_length=MAX_LOT_LENGTH, examples=["L-2024-01"]
    )
    seed_type_id: int
    client_id: int | None = None
    quantity: int = Field(..., ge=1, description="Number of units (bags)")
    storage_type: StorageType = StorageType.SACO
    weight_per_unit: float = Field(..., gt=0, description="Weight of one unit in kg")
    location_id: int | None = Field(
        None, description="Store immediately at this location"
    )
    entry_date: datetime | None = None
    expiration_date: datetime | None = Field(
        None, description="Defaults to entry date plus the seed type storage time"
    )
    notes: str | None = Field(None, max_length=MAX_NOTES_LENGTH)
    batch_number: str | None = Field(None, max_length=50)
    origin: str | None = Field(None, max_length=100)
    supplier: str | None = Field(None, max_length=100)
    quality_grade: QualityGrade | None = None


class BatchCreate(BaseModel):
    client_id: int | None = Field(None, description="Client owning every product")
    products: list[ProductCreate] = Field(..., min_length=1)


class ProductUpdate(VersionedRequest):
    name: str | None = Field(None, max_length=MAX_PRODUCT_NAME_LENGTH)
    lot: str | None = Field(None, max_length=MAX_LOT_LENGTH)
    client_id: int | None = None
    quantity: int | None = Field(None, ge=1)
    weight_per_unit: float | None = Field(None, gt=0)
    storage_type: StorageType | None = None
    expiration_date: datetime | None = None
    notes: str | None = Field(None, max_length=MAX_NOTES_LENGTH)
    batch_number: str | None = Field(None, max_length=50)
    origin: str | None = Field(None, max_length=100)
    supplier: str | None = Field(None, max_length=100)
    quality_grade: QualityGrade | None = None


class LocateRequest(VersionedRequest):
    location_id: int


class MoveRequest(VersionedRequest):
    new_location_id: int
    reason: str | None = Field(None, max_length=MAX_REASON_LENGTH)


class PartialMoveRequest(MoveRequest):
    quantity: int = Field(..., ge=1)


class QuantityRequest(VersionedRequest):
    quantity: int = Field(..., ge=1)
    reason: str | None = Field(None, max_length=MAX_REASON_LENGTH)


class ReasonRequest(VersionedRequest):
    reason: str | None = Field(None, max_length=MAX_REASON_LENGTH)


class ProductResponse(ORMModel):
    id: int
    name: str
    lot: str
    seed_type_id: int
    client_id: int | None
    quantity: int
    storage_type: StorageType
    weight_per_unit: float
    total_weight: float
    location_id: int | None
    entry_date: datetime
    expiration_date: datetime | None
    expiration_status: str
    storage_time_days: int
    status: ProductStatus
    version: int
    notes: str | None
    batch_number: str | None
    origin: str | None
    supplier: str | None
    quality_grade: QualityGrade | None
    batch_id: str | None
    created_by: int | None
    last_modified_by: int | None
    last_movement_date: datetime | None
    created_at: datetime
    updated_at: datetime


class BatchResponse(BaseModel):
    batch_id: str
    products: list[ProductResponse]


class PartialMoveResponse(BaseModel):
    origin: ProductResponse = Field(description="Product left at the origin")
    new_product: ProductResponse = Field(description="Product split off")


# Withdrawals


class WithdrawalCreate(VersionedRequest):
    type: WithdrawalType = WithdrawalType.TOTAL
    quantity: int | None = Field(None, ge=1, description="Required for PARCIAL")
    reason: str | None = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    notes: str | None = Field(None, max_length=MAX_NOTES_LENGTH)


class WithdrawalUpdate(BaseModel):
    quantity: int | None = Field(None, ge=1)
    reason: str | None = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    notes: str | None = Field(None, max_length=MAX_NOTES_LENGTH)


class WithdrawalConfirm(VersionedRequest):
    notes: str | None = Field(None, max_length=MAX_NOTES_LENGTH)


class WithdrawalCancel(VersionedRequest):
    reason: str | None = Field(None, max_length=MAX_DESCRIPTION_LENGTH)


class WithdrawalResponse(ORMModel):
    id: int
    product_id: int
    requested_by: int
    status: WithdrawalStatus
    type: WithdrawalType
    quantity_requested: int | None
    reason: str | None
    notes: str | None
    requested_at: datetime
    confirmed_at: datetime | None
    confirmed_by: int | None
    canceled_at: datetime | None
    canceled_by: int | None
    urgency: str | None
    product_snapshot: dict[str, Any] | None


# Movements


class MovementCreate(BaseModel):
    """A movement typed in by a user; stock is not changed."""

    product_id: int
    type: MovementType
    quantity: int = Field(..., ge=0)
    weight: float = Field(..., ge=0)
    reason: str = Field(..., min_length=1, max_length=MAX_REASON_LENGTH)
    from_location_id: int | None = None
    to_location_id: int | None = None
    notes: str | None = Field(None, max_length=MAX_NOTES_LENGTH)


class MovementVerify(BaseModel):
    notes: str | None = Field(None, max_length=MAX_DESCRIPTION_LENGTH)


class MovementResponse(ORMModel):
    id: int
    product_id: int
    type: MovementType
    from_location_id: int | None
    to_location_id: int | None
    quantity: int
    weight: float
    user_id: int
    reason: str | None
    notes: str | None
    timestamp: datetime
    status: MovementStatus
    is_automatic: bool
    batch_id: str | None
    previous_values: dict[str, Any] | None
    is_verified: bool
    verified_by: int | None
    verified_at: datetime | None
    verification_notes: str | None
