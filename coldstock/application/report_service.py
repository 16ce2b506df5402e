"""Read-only aggregate reports over products, locations and movements."""

from datetime import timedelta
from typing import Any, Final

from sqlalchemy import case, func
from sqlmodel import Session, col, select

from ..domain.constants import (
    EXPIRATION_WARNING_DAYS,
    OCCUPYING_STATUSES,
    ChamberStatus,
    ExpirationStatus,
    MovementStatus,
    MovementType,
    ProductStatus,
)
from ..domain.rules import days_until, expiration_status, round_weight, utcnow
from ..infrastructure.database.models import (
    Chamber,
    Location,
    Movement,
    Product,
    SeedType,
)
from ..logging_config import get_logger
from .location_service import get_location_stats
from .withdrawal_service import get_request_stats

logger: Final = get_logger(__name__)

_ACTIVE_STATUSES: Final = [
    ProductStatus.CADASTRADO,
    ProductStatus.AGUARDANDO_LOCACAO,
    *OCCUPYING_STATUSES,
]


def _count_by_status(session: Session) -> dict[str, int]:
    counts = {status.value: 0 for status in ProductStatus}
    rows = session.exec(
        select(Product.status, func.count()).group_by(Product.status)
    ).all()
    for status, amount in rows:
        counts[ProductStatus(status).value] = amount
    return counts


def _expiring_products(session: Session, within_days: int) -> list[Product]:
    limit_date = utcnow() + timedelta(days=within_days)
    statement = (
        select(Product)
        .where(
            col(Product.status).in_(_ACTIVE_STATUSES),
            col(Product.expiration_date).is_not(None),
            col(Product.expiration_date) <= limit_date,
        )
        .order_by(col(Product.expiration_date))
    )
    return list(session.exec(statement).all())


def dashboard(session: Session) -> dict[str, Any]:
    """Headline numbers for the warehouse overview."""
    by_status = _count_by_status(session)
    locations = get_location_stats(session)
    withdrawals = get_request_stats(session)
    stored_weight = session.exec(
        select(func.coalesce(func.sum(Product.total_weight), 0.0)).where(
            col(Product.status).in_(list(OCCUPYING_STATUSES))
        )
    ).one()
    chambers_active = session.exec(
        select(func.count(col(Chamber.id))).where(
            Chamber.status == ChamberStatus.ACTIVE
        )
    ).one()
    movements_today = session.exec(
        select(func.count(col(Movement.id))).where(
            Movement.timestamp >= utcnow().replace(hour=0, minute=0, second=0)
        )
    ).one()

    return {
        "products": {
            "total": sum(by_status.values()),
            "stored": sum(by_status[s.value] for s in OCCUPYING_STATUSES),
            "by_status": by_status,
            "stored_weight_kg": round_weight(stored_weight),
        },
        "locations": locations,
        "chambers_active": chambers_active,
        "withdrawals_pending": withdrawals["by_status"]["PENDENTE"],
        "withdrawals_by_urgency": withdrawals["pending_by_urgency"],
        "expiring_products": len(
            _expiring_products(session, EXPIRATION_WARNING_DAYS)
        ),
        "movements_today": movements_today,
        "generated_at": utcnow(),
    }


def inventory_report(session: Session) -> dict[str, Any]:
    rows = session.exec(
        select(
            SeedType.id,
            SeedType.name,
            func.count(col(Product.id)),
            func.coalesce(func.sum(Product.quantity), 0),
            func.coalesce(func.sum(Product.total_weight), 0.0),
        )
        .join(Product, col(Product.seed_type_id) == col(SeedType.id))
        .where(col(Product.status).in_(_ACTIVE_STATUSES))
        .group_by(SeedType.id, SeedType.name)
        .order_by(SeedType.name)
    ).all()

    by_seed_type = [
        {
            "seed_type_id": seed_type_id,
            "seed_type": name,
            "products": products,
            "quantity": quantity,
            "total_weight_kg": round_weight(weight),
        }
        for seed_type_id, name, products, quantity, weight in rows
    ]
    return {
        "by_status": _count_by_status(session),
        "by_seed_type": by_seed_type,
        "total_weight_kg": round_weight(
            sum(entry["total_weight_kg"] for entry in by_seed_type)
        ),
        "generated_at": utcnow(),
    }


def expiration_report(
    session: Session, within_days: int = EXPIRATION_WARNING_DAYS
) -> dict[str, Any]:
    """Active products expiring within the given number of days (or expired)."""
    now = utcnow()
    summary = {
        status.value: 0
        for status in (
            ExpirationStatus.EXPIRED,
            ExpirationStatus.CRITICAL,
            ExpirationStatus.WARNING,
            ExpirationStatus.GOOD,
        )
    }
    items = []
    for product in _expiring_products(session, within_days):
        assert product.expiration_date is not None
        status = expiration_status(product.expiration_date, now)
        summary[status.value] = summary.get(status.value, 0) + 1
        items.append(
            {
                "product_id": product.id,
                "name": product.name,
                "lot": product.lot,
                "status": product.status,
                "location_id": product.location_id,
                "expiration_date": product.expiration_date,
                "days_remaining": days_until(product.expiration_date, now),
                "expiration_status": status.value,
            }
        )
    return {"within_days": within_days, "summary": summary, "products": items}


def capacity_report(session: Session) -> dict[str, Any]:
    rows = session.exec(
        select(
            Chamber.id,
            Chamber.name,
            Chamber.status,
            func.count(col(Location.id)),
            func.coalesce(
                func.sum(case((col(Location.is_occupied).is_(True), 1), else_=0)), 0
            ),
            func.coalesce(func.sum(Location.max_capacity_kg), 0.0),
            func.coalesce(func.sum(Location.current_weight_kg), 0.0),
        )
        .join(Location, col(Location.chamber_id) == col(Chamber.id), isouter=True)
        .group_by(Chamber.id, Chamber.name, Chamber.status)
        .order_by(Chamber.name)
    ).all()

    chambers = []
    for chamber_id, name, status, total, occupied, capacity, used in rows:
        chambers.append(
            {
                "chamber_id": chamber_id,
                "name": name,
                "status": status,
                "locations": total,
                "occupied": occupied,
                "occupancy_rate": round(occupied / total * 100, 1) if total else 0.0,
                "total_capacity_kg": round_weight(capacity),
                "used_weight_kg": round_weight(used),
                "utilization_rate": (
                    round(used / capacity * 100, 1) if capacity else 0.0
                ),
            }
        )
    return {"chambers": chambers, "totals": get_location_stats(session)}


def movement_report(session: Session, days: int = 30) -> dict[str, Any]:
    """Movements of the last days grouped per day and type."""
    since = utcnow() - timedelta(days=days)
    day = func.date(Movement.timestamp)
    rows = session.exec(
        select(
            day,
            Movement.type,
            func.count(),
            func.coalesce(func.sum(Movement.weight), 0.0),
        )
        .where(
            Movement.timestamp >= since,
            Movement.status != MovementStatus.CANCELLED,
        )
        .group_by(day, Movement.type)
        .order_by(day)
    ).all()

    per_day: dict[str, dict[str, Any]] = {}
    for date_value, movement_type, amount, weight in rows:
        key = str(date_value)
        entry = per_day.setdefault(
            key,
            {"date": key, "total": 0, **{kind.value: 0 for kind in MovementType}},
        )
        entry[MovementType(movement_type).value] += amount
        entry["total"] += amount
        entry["weight_kg"] = round_weight(entry.get("weight_kg", 0.0) + weight)

    logger.debug("Movement report built", days=days, day_count=len(per_day))
    return {"period_days": days, "days": list(per_day.values())}
