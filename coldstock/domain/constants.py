"""Domain business rules and constants."""

from enum import StrEnum
from typing import Final


class ProductStatus(StrEnum):
    """Lifecycle states of a stored product."""

    CADASTRADO = "CADASTRADO"
    AGUARDANDO_LOCACAO = "AGUARDANDO_LOCACAO"
    LOCADO = "LOCADO"
    AGUARDANDO_RETIRADA = "AGUARDANDO_RETIRADA"
    RETIRADO = "RETIRADO"
    REMOVIDO = "REMOVIDO"
    CANCELADO = "CANCELADO"


class WithdrawalStatus(StrEnum):
    PENDENTE = "PENDENTE"
    CONFIRMADO = "CONFIRMADO"
    CANCELADO = "CANCELADO"


class WithdrawalType(StrEnum):
    TOTAL = "TOTAL"
    PARCIAL = "PARCIAL"


class MovementType(StrEnum):
    ENTRY = "entry"
    EXIT = "exit"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"


class MovementStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class UserRole(StrEnum):
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"


class StorageType(StrEnum):
    SACO = "saco"
    BAG = "bag"


class ChamberStatus(StrEnum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class ExpirationStatus(StrEnum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"
    EXPIRED = "expired"
    NO_EXPIRATION = "no-expiration"


class CapacityStatus(StrEnum):
    EMPTY = "empty"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    FULL = "full"


class AccessLevel(StrEnum):
    GROUND = "ground"
    ELEVATED = "elevated"
    HIGH = "high"


class DocumentType(StrEnum):
    CPF = "CPF"
    CNPJ = "CNPJ"
    OUTROS = "OUTROS"


class QualityGrade(StrEnum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class WithdrawalUrgency(StrEnum):
    NORMAL = "normal"
    URGENT = "urgent"
    OVERDUE = "overdue"


VALID_TRANSITIONS: Final[dict[ProductStatus, frozenset[ProductStatus]]] = {
    ProductStatus.CADASTRADO: frozenset(
        {
            ProductStatus.AGUARDANDO_LOCACAO,
            ProductStatus.LOCADO,
            ProductStatus.CANCELADO,
        }
    ),
    ProductStatus.AGUARDANDO_LOCACAO: frozenset(
        {ProductStatus.LOCADO, ProductStatus.REMOVIDO, ProductStatus.CANCELADO}
    ),
    ProductStatus.LOCADO: frozenset(
        {ProductStatus.AGUARDANDO_RETIRADA, ProductStatus.REMOVIDO}
    ),
    # LOCADO is reached again when a withdrawal request is cancelled
    ProductStatus.AGUARDANDO_RETIRADA: frozenset(
        {ProductStatus.RETIRADO, ProductStatus.LOCADO}
    ),
    ProductStatus.RETIRADO: frozenset(),
    ProductStatus.REMOVIDO: frozenset(),
    ProductStatus.CANCELADO: frozenset(),
}

# Statuses in which a product physically holds its location
OCCUPYING_STATUSES: Final = frozenset(
    {ProductStatus.LOCADO, ProductStatus.AGUARDANDO_RETIRADA}
)

# Name and text limits
MIN_NAME_LENGTH: Final = 2
MAX_PRODUCT_NAME_LENGTH: Final = 200
MAX_NAME_LENGTH: Final = 100
MAX_LOT_LENGTH: Final = 50
MAX_DESCRIPTION_LENGTH: Final = 500
MAX_NOTES_LENGTH: Final = 1000
MIN_REASON_LENGTH: Final = 3
MAX_REASON_LENGTH: Final = 200
MIN_PASSWORD_LENGTH: Final = 6

# Product weights
MIN_WEIGHT_PER_UNIT_KG: Final = 0.001
MAX_WEIGHT_PER_UNIT_KG: Final = 1000.0
WEIGHT_DECIMALS: Final = 3

# Location capacity
DEFAULT_LOCATION_CAPACITY_KG: Final = 1000.0
MIN_LOCATION_CAPACITY_KG: Final = 1.0
MAX_LOCATION_CAPACITY_KG: Final = 50000.0
CAPACITY_SAFETY_MARGIN: Final = 0.05
MAX_CAPACITY_SUGGESTIONS: Final = 5

# Chamber dimensions
MAX_QUADRAS: Final = 100
MAX_LADOS: Final = 100
MAX_FILAS: Final = 100
MAX_ANDARES: Final = 20
MAX_LOCATIONS_PER_CHAMBER: Final = 100_000
MIN_TEMPERATURE_C: Final = -50.0
MAX_TEMPERATURE_C: Final = 50.0

# Access level thresholds by floor
GROUND_MAX_ANDAR: Final = 2
ELEVATED_MAX_ANDAR: Final = 5

# Seed types
MAX_STORAGE_TIME_DAYS: Final = 3650

# Expiration windows
EXPIRATION_WARNING_DAYS: Final = 30
EXPIRATION_CRITICAL_DAYS: Final = 7

# Withdrawal urgency, in days since the request
WITHDRAWAL_URGENT_DAYS: Final = 3
WITHDRAWAL_OVERDUE_DAYS: Final = 7

# Identical manual movements inside this window are rejected
DUPLICATE_MOVEMENT_WINDOW_MINUTES: Final = 5
