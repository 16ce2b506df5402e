"""Business metrics for the cold storage inventory."""

from opentelemetry import metrics

from .logging_config import get_logger

logger = get_logger(__name__)

meter = metrics.get_meter(__name__)

# HTTP Request Metrics
http_request_duration = meter.create_histogram(
    name="http_request_duration_seconds",
    description="Duration of HTTP requests in seconds",
    unit="s",
)

http_requests_total = meter.create_counter(
    name="http_requests_total",
    description="Total number of HTTP requests",
)

http_request_errors = meter.create_counter(
    name="http_request_errors_total",
    description="Total number of HTTP request errors",
)

# Business Metrics
products_registered_total = meter.create_counter(
    name="products_registered_total",
    description="Total number of products registered",
)

product_transitions_total = meter.create_counter(
    name="product_transitions_total",
    description="Product status transitions by source and target status",
)

movements_recorded_total = meter.create_counter(
    name="movements_recorded_total",
    description="Total number of movements recorded",
)

withdrawals_total = meter.create_counter(
    name="withdrawals_total",
    description="Withdrawal requests by outcome",
)

stored_weight_kg = meter.create_up_down_counter(
    name="stored_weight_kg",
    description="Weight currently stored across all locations",
    unit="kg",
)


def record_http_request(method: str, endpoint: str, status_code: int, duration: float):
    """Record HTTP request metrics."""
    labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}

    http_request_duration.record(duration, labels)
    http_requests_total.add(1, labels)

    if status_code >= 400:
        http_request_errors.add(1, labels)


def record_product_registered(initial_status: str, storage_type: str) -> None:
    products_registered_total.add(
        1, {"status": initial_status, "storage_type": storage_type}
    )


def record_product_transition(from_status: str, to_status: str) -> None:
    product_transitions_total.add(1, {"from": from_status, "to": to_status})


def record_movement(movement_type: str, is_automatic: bool) -> None:
    movements_recorded_total.add(
        1, {"type": movement_type, "automatic": str(is_automatic).lower()}
    )


def record_withdrawal(outcome: str, withdrawal_type: str) -> None:
    """Record a withdrawal request being created, confirmed or cancelled."""
    withdrawals_total.add(1, {"outcome": outcome, "type": withdrawal_type})


def record_stored_weight_change(delta_kg: float) -> None:
    stored_weight_kg.add(delta_kg)


logger.info("Business metrics instruments created")
