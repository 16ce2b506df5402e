"""Pure domain value objects without infrastructure dependencies."""

from dataclasses import dataclass, field

from .constants import (
    CAPACITY_SAFETY_MARGIN,
    ELEVATED_MAX_ANDAR,
    GROUND_MAX_ANDAR,
    MAX_ANDARES,
    MAX_FILAS,
    MAX_LADOS,
    MAX_LOCATIONS_PER_CHAMBER,
    MAX_QUADRAS,
    WEIGHT_DECIMALS,
    AccessLevel,
    CapacityStatus,
)
from .exceptions import ValidationError


@dataclass(frozen=True)
class Dimensions:
    """Grid size of a chamber: blocks, sides, rows and floors."""

    quadras: int
    lados: int
    filas: int
    andares: int

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        limits = {
            "quadras": MAX_QUADRAS,
            "lados": MAX_LADOS,
            "filas": MAX_FILAS,
            "andares": MAX_ANDARES,
        }
        for name, maximum in limits.items():
            value = getattr(self, name)
            if value < 1 or value > maximum:
                raise ValidationError(
                    f"Chamber {name} must be between 1 and {maximum}", field=name
                )

        if self.total_locations > MAX_LOCATIONS_PER_CHAMBER:
            raise ValidationError(
                f"Total locations cannot exceed {MAX_LOCATIONS_PER_CHAMBER}",
                field="dimensions",
            )

    @property
    def total_locations(self) -> int:
        return self.quadras * self.lados * self.filas * self.andares

    def contains(self, coordinates: "Coordinates") -> bool:
        return (
            1 <= coordinates.quadra <= self.quadras
            and 1 <= coordinates.lado <= self.lados
            and 1 <= coordinates.fila <= self.filas
            and 1 <= coordinates.andar <= self.andares
        )

    def iter_coordinates(self):
        """Yield every coordinate of the grid in storage order."""
        for quadra in range(1, self.quadras + 1):
            for lado in range(1, self.lados + 1):
                for fila in range(1, self.filas + 1):
                    for andar in range(1, self.andares + 1):
                        yield Coordinates(quadra, lado, fila, andar)


@dataclass(frozen=True)
class Coordinates:
    """Position of a location inside its chamber."""

    quadra: int
    lado: int
    fila: int
    andar: int

    @property
    def code(self) -> str:
        return f"Q{self.quadra}-L{self.lado}-F{self.fila}-A{self.andar}"

    @property
    def access_level(self) -> AccessLevel:
        if self.andar <= GROUND_MAX_ANDAR:
            return AccessLevel.GROUND
        if self.andar <= ELEVATED_MAX_ANDAR:
            return AccessLevel.ELEVATED
        return AccessLevel.HIGH

    def validate_within(self, dimensions: Dimensions) -> None:
        """Raise ValidationError naming each coordinate outside the chamber."""
        invalid = [
            name
            for name, value, maximum in (
                ("quadra", self.quadra, dimensions.quadras),
                ("lado", self.lado, dimensions.lados),
                ("fila", self.fila, dimensions.filas),
                ("andar", self.andar, dimensions.andares),
            )
            if not 1 <= value <= maximum
        ]
        if invalid:
            raise ValidationError(
                f"Coordinates {self.code} outside chamber dimensions: "
                + ", ".join(invalid),
                field=invalid[0],
            )


@dataclass(frozen=True)
class Capacity:
    """Weight capacity snapshot of a location."""

    max_kg: float
    current_kg: float

    @property
    def available_kg(self) -> float:
        return round(self.max_kg - self.current_kg, WEIGHT_DECIMALS)

    @property
    def occupancy_percentage(self) -> int:
        if self.max_kg <= 0:
            return 0
        return round(self.current_kg / self.max_kg * 100)

    @property
    def status(self) -> CapacityStatus:
        percentage = self.occupancy_percentage
        if percentage == 0:
            return CapacityStatus.EMPTY
        if percentage < 50:
            return CapacityStatus.LOW
        if percentage < 80:
            return CapacityStatus.MEDIUM
        if percentage < 100:
            return CapacityStatus.HIGH
        return CapacityStatus.FULL

    def can_accommodate(self, additional_kg: float) -> bool:
        return round(self.current_kg + additional_kg, WEIGHT_DECIMALS) <= self.max_kg

    def within_safety_margin(self, additional_kg: float) -> bool:
        """True when the new total stays below max minus the safety margin."""
        limit = self.max_kg * (1 - CAPACITY_SAFETY_MARGIN)
        return self.current_kg + additional_kg <= limit


@dataclass
class CapacityCheck:
    """Outcome of validating whether a location can take a given weight."""

    valid: bool
    location_code: str
    requested_kg: float
    capacity: Capacity
    reason: str | None = None
    message: str | None = None
    warnings: list[str] = field(default_factory=list)
    suggestions: list[dict] = field(default_factory=list)

    @property
    def deficit_kg(self) -> float:
        return max(0.0, round(self.requested_kg - self.capacity.available_kg, 3))

    def analysis(self) -> dict:
        after = self.capacity.current_kg + self.requested_kg
        return {
            "current_weight_kg": self.capacity.current_kg,
            "max_capacity_kg": self.capacity.max_kg,
            "available_capacity_kg": self.capacity.available_kg,
            "requested_weight_kg": self.requested_kg,
            "weight_after_kg": round(after, 3),
            "occupancy_after_percentage": (
                round(after / self.capacity.max_kg * 100) if self.capacity.max_kg else 0
            ),
            "deficit_kg": self.deficit_kg,
        }
