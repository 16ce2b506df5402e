"""Domain-specific exceptions."""


class DomainError(Exception):
    """Base exception for domain errors."""

    pass


class ValidationError(DomainError):
    """Raised when domain validation fails."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(DomainError):
    """Raised when a referenced resource does not exist."""

    def __init__(self, resource_type: str, identifier: object):
        super().__init__(f"{resource_type.title()} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class AlreadyExistsError(DomainError):
    """Raised when attempting to create a duplicate resource."""

    def __init__(self, resource_type: str, field: str, value: object):
        super().__init__(
            f"{resource_type.title()} with {field} '{value}' already exists"
        )
        self.resource_type = resource_type
        self.field = field
        self.value = value


class InvalidTransitionError(DomainError):
    """Raised when a product status change is not allowed by the lifecycle."""

    def __init__(self, current: str, target: str, message: str | None = None):
        super().__init__(
            message or f"Invalid status transition: {current} -> {target}"
        )
        self.current = current
        self.target = target


class LocationOccupiedError(DomainError):
    """Raised when placing a product into a location that already holds one."""

    def __init__(self, location_code: str):
        super().__init__(f"Location {location_code} is already occupied")
        self.location_code = location_code


class CapacityExceededError(DomainError):
    """Raised when a location cannot take the requested weight."""

    def __init__(self, location_code: str, required_kg: float, available_kg: float):
        super().__init__(
            f"Insufficient capacity at {location_code}: required {required_kg}kg, "
            f"available {available_kg}kg"
        )
        self.location_code = location_code
        self.required_kg = required_kg
        self.available_kg = available_kg

    @property
    def deficit_kg(self) -> float:
        return round(self.required_kg - self.available_kg, 3)


class ChamberInactiveError(DomainError):
    """Raised when a chamber is not accepting products."""

    pass


class ConcurrentModificationError(DomainError):
    """Raised when an optimistic lock check fails."""

    def __init__(self, resource_type: str, identifier: object, expected_version: int):
        super().__init__(
            f"{resource_type.title()} '{identifier}' was modified concurrently "
            f"(expected version {expected_version})"
        )
        self.resource_type = resource_type
        self.identifier = identifier
        self.expected_version = expected_version


class DuplicateMovementError(DomainError):
    """Raised when an identical manual movement was just recorded."""

    pass


class ResourceInUseError(DomainError):
    """Raised when deleting a resource that is still referenced."""

    pass


class AuthenticationError(DomainError):
    """Raised when credentials or tokens are invalid."""

    pass


class PermissionDeniedError(DomainError):
    """Raised when the acting user's role does not allow the operation."""

    pass
