from datetime import datetime
from typing import Any

from sqlalchemy import UniqueConstraint
from sqlmodel import JSON, Column, Field, Relationship, SQLModel

from ...domain.constants import (
    DEFAULT_LOCATION_CAPACITY_KG,
    MAX_ANDARES,
    MAX_DESCRIPTION_LENGTH,
    MAX_FILAS,
    MAX_LADOS,
    MAX_LOCATION_CAPACITY_KG,
    MAX_LOT_LENGTH,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_PRODUCT_NAME_LENGTH,
    MAX_QUADRAS,
    MAX_REASON_LENGTH,
    MAX_STORAGE_TIME_DAYS,
    MIN_LOCATION_CAPACITY_KG,
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
from ...domain.entities import Capacity, Coordinates, Dimensions
from ...domain.rules import (
    expiration_status,
    format_document,
    utcnow,
    withdrawal_urgency,
)


class User(SQLModel, table=True):  # type: ignore[call-arg]
    """A person operating the warehouse."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=MAX_NAME_LENGTH)
    email: str = Field(index=True, unique=True, max_length=254)
    password_hash: str
    role: UserRole = Field(default=UserRole.OPERATOR, index=True)
    is_active: bool = Field(default=True)
    password_changed_at: datetime | None = None
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Chamber(SQLModel, table=True):  # type: ignore[call-arg]
    """A refrigerated room divided into a quadra/lado/fila/andar grid."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True, max_length=MAX_NAME_LENGTH)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    current_temperature: float | None = None
    current_humidity: float | None = None

    quadras: int = Field(ge=1, le=MAX_QUADRAS)
    lados: int = Field(ge=1, le=MAX_LADOS)
    filas: int = Field(ge=1, le=MAX_FILAS)
    andares: int = Field(ge=1, le=MAX_ANDARES)

    status: ChamberStatus = Field(default=ChamberStatus.ACTIVE, index=True)

    target_temperature: float | None = None
    target_humidity: float | None = None
    temperature_min: float | None = None
    temperature_max: float | None = None
    humidity_min: float | None = None
    humidity_max: float | None = None

    last_maintenance_date: datetime | None = None
    next_maintenance_date: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    locations: list["Location"] = Relationship(back_populates="chamber")

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.quadras, self.lados, self.filas, self.andares)

    @property
    def total_locations(self) -> int:
        return self.quadras * self.lados * self.filas * self.andares

    @property
    def temperature_status(self) -> str:
        return _reading_status(
            self.current_temperature, self.temperature_min, self.temperature_max
        )

    @property
    def humidity_status(self) -> str:
        return _reading_status(
            self.current_humidity, self.humidity_min, self.humidity_max
        )

    @property
    def conditions_status(self) -> str:
        statuses = {self.temperature_status, self.humidity_status}
        if "unknown" in statuses:
            return "unknown"
        if statuses == {"normal"}:
            return "optimal"
        return "alert"


def _reading_status(
    value: float | None, minimum: float | None, maximum: float | None
) -> str:
    if value is None or (minimum is None and maximum is None):
        return "unknown"
    if minimum is not None and value < minimum:
        return "low"
    if maximum is not None and value > maximum:
        return "high"
    return "normal"


class Location(SQLModel, table=True):  # type: ignore[call-arg]
    """A single storage slot inside a chamber."""

    __table_args__ = (
        UniqueConstraint(
            "chamber_id", "quadra", "lado", "fila", "andar", name="uq_location_coords"
        ),
        UniqueConstraint("chamber_id", "code", name="uq_location_code"),
    )

    id: int | None = Field(default=None, primary_key=True)
    chamber_id: int = Field(foreign_key="chamber.id", index=True)
    quadra: int = Field(ge=1)
    lado: int = Field(ge=1)
    fila: int = Field(ge=1)
    andar: int = Field(ge=1)
    code: str = Field(index=True, max_length=50)
    is_occupied: bool = Field(default=False, index=True)
    max_capacity_kg: float = Field(
        default=DEFAULT_LOCATION_CAPACITY_KG,
        ge=MIN_LOCATION_CAPACITY_KG,
        le=MAX_LOCATION_CAPACITY_KG,
    )
    current_weight_kg: float = Field(default=0.0, ge=0)
    access_level: AccessLevel = Field(default=AccessLevel.GROUND)
    notes: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    chamber: Chamber | None = Relationship(back_populates="locations")

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.quadra, self.lado, self.fila, self.andar)

    @property
    def capacity(self) -> Capacity:
        return Capacity(self.max_capacity_kg, self.current_weight_kg)

    @property
    def available_capacity_kg(self) -> float:
        return self.capacity.available_kg

    @property
    def occupancy_percentage(self) -> int:
        return self.capacity.occupancy_percentage

    @property
    def capacity_status(self) -> str:
        return self.capacity.status.value


class SeedType(SQLModel, table=True):  # type: ignore[call-arg]
    """A kind of seed with its storage requirements."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True, max_length=MAX_NAME_LENGTH)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    optimal_temperature: float | None = None
    optimal_humidity: float | None = Field(default=None, ge=0, le=100)
    max_storage_time_days: int | None = Field(
        default=None, ge=1, le=MAX_STORAGE_TIME_DAYS
    )
    is_active: bool = Field(default=True, index=True)
    created_by: int | None = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Client(SQLModel, table=True):  # type: ignore[call-arg]
    """Owner of stored products."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True, max_length=MAX_NAME_LENGTH)
    cnpj_cpf: str | None = Field(default=None, index=True, unique=True, max_length=20)
    document_type: DocumentType = Field(default=DocumentType.OUTROS)
    contact_person: str | None = Field(default=None, max_length=MAX_NAME_LENGTH)
    email: str | None = Field(default=None, max_length=254)
    phone: str | None = Field(default=None, max_length=20)
    street: str | None = Field(default=None, max_length=200)
    city: str | None = Field(default=None, max_length=100)
    state: str | None = Field(default=None, max_length=2)
    zip_code: str | None = Field(default=None, max_length=10)
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)
    is_active: bool = Field(default=True, index=True)
    created_by: int | None = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def formatted_document(self) -> str | None:
        return format_document(self.cnpj_cpf) if self.cnpj_cpf else None


class Product(SQLModel, table=True):  # type: ignore[call-arg]
    """A lot of seeds moving through the storage lifecycle."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, max_length=MAX_PRODUCT_NAME_LENGTH)
    lot: str = Field(index=True, max_length=MAX_LOT_LENGTH)
    seed_type_id: int = Field(foreign_key="seedtype.id", index=True)
    client_id: int | None = Field(default=None, foreign_key="client.id", index=True)
    quantity: int = Field(ge=0)
    storage_type: StorageType = Field(default=StorageType.SACO)
    weight_per_unit: float = Field(gt=0)
    total_weight: float = Field(default=0.0, ge=0)
    location_id: int | None = Field(default=None, foreign_key="location.id", index=True)
    entry_date: datetime = Field(default_factory=utcnow)
    expiration_date: datetime | None = Field(default=None, index=True)
    status: ProductStatus = Field(default=ProductStatus.CADASTRADO, index=True)
    version: int = Field(default=0)
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)

    batch_number: str | None = Field(default=None, max_length=50)
    origin: str | None = Field(default=None, max_length=100)
    supplier: str | None = Field(default=None, max_length=100)
    quality_grade: QualityGrade | None = None
    batch_id: str | None = Field(default=None, index=True, max_length=50)

    created_by: int | None = Field(default=None, foreign_key="user.id")
    last_modified_by: int | None = Field(default=None, foreign_key="user.id")
    last_movement_date: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def expiration_status(self) -> str:
        return expiration_status(self.expiration_date).value

    @property
    def storage_time_days(self) -> int:
        return (utcnow() - self.entry_date).days


class Movement(SQLModel, table=True):  # type: ignore[call-arg]
    """Audit record of a product entering, leaving or moving in the warehouse."""

    id: int | None = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    type: MovementType = Field(index=True)
    from_location_id: int | None = Field(
        default=None, foreign_key="location.id", index=True
    )
    to_location_id: int | None = Field(
        default=None, foreign_key="location.id", index=True
    )
    quantity: int = Field(ge=0)
    weight: float = Field(ge=0)
    user_id: int = Field(foreign_key="user.id", index=True)
    reason: str | None = Field(default=None, max_length=MAX_REASON_LENGTH)
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)
    timestamp: datetime = Field(default_factory=utcnow, index=True)
    status: MovementStatus = Field(default=MovementStatus.COMPLETED, index=True)
    is_automatic: bool = Field(default=False)
    batch_id: str | None = Field(default=None, max_length=50)
    previous_values: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON)
    )

    is_verified: bool = Field(default=False)
    verified_by: int | None = Field(default=None, foreign_key="user.id")
    verified_at: datetime | None = None
    verification_notes: str | None = Field(
        default=None, max_length=MAX_DESCRIPTION_LENGTH
    )


class WithdrawalRequest(SQLModel, table=True):  # type: ignore[call-arg]
    """Request to take (all or part of) a stored product out of the warehouse."""

    id: int | None = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    requested_by: int = Field(foreign_key="user.id", index=True)
    status: WithdrawalStatus = Field(default=WithdrawalStatus.PENDENTE, index=True)
    type: WithdrawalType = Field(default=WithdrawalType.TOTAL)
    quantity_requested: int | None = Field(default=None, ge=1)
    reason: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)
    requested_at: datetime = Field(default_factory=utcnow, index=True)
    confirmed_at: datetime | None = None
    confirmed_by: int | None = Field(default=None, foreign_key="user.id")
    canceled_at: datetime | None = None
    canceled_by: int | None = Field(default=None, foreign_key="user.id")
    product_snapshot: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON)
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def urgency(self) -> str | None:
        if self.status != WithdrawalStatus.PENDENTE:
            return None
        return withdrawal_urgency(self.requested_at).value
