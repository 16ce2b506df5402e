"""Chamber and location services: grids, conditions and capacity checks."""

import pytest
from sqlmodel import select

from coldstock.application.chamber_service import (
    create_chamber,
    delete_chamber,
    generate_locations,
    get_chamber_capacity,
    update_chamber,
    update_conditions,
)
from coldstock.application.location_service import (
    CHAMBER_INACTIVE,
    INSUFFICIENT_CAPACITY,
    LOCATION_OCCUPIED,
    create_location,
    get_location_stats,
    list_available_locations,
    update_location,
    validate_capacity,
)
from coldstock.application.product_service import remove_product
from coldstock.domain.constants import AccessLevel, ChamberStatus
from coldstock.domain.entities import Coordinates
from coldstock.domain.exceptions import (
    AlreadyExistsError,
    ResourceInUseError,
    ValidationError,
)
from coldstock.infrastructure.database.models import Chamber, Location


def test_create_chamber_generates_grid(session, chamber, locations):
    assert chamber.total_locations == 8
    assert len(locations) == 8
    assert {location.code for location in locations} >= {
        "Q1-L1-F1-A1",
        "Q1-L2-F2-A2",
    }
    assert all(location.max_capacity_kg == 1000.0 for location in locations)
    assert all(location.access_level == AccessLevel.GROUND for location in locations)


def test_chamber_name_is_unique(session, chamber):
    with pytest.raises(AlreadyExistsError):
        create_chamber(
            session, Chamber(name="Camara 1", quadras=1, lados=1, filas=1, andares=1)
        )


def test_chamber_grid_limit(session):
    with pytest.raises(ValidationError):
        create_chamber(
            session,
            Chamber(name="Huge", quadras=100, lados=100, filas=100, andares=1),
        )


def test_generate_locations_skips_existing(session, chamber):
    result = generate_locations(session, chamber.id)
    assert result == {"created": 0, "skipped": 8, "total": 8}


def test_generate_locations_overwrite_refused_with_stock(
    session, chamber, locations, make_product
):
    make_product(locations[0])
    with pytest.raises(ResourceInUseError):
        generate_locations(session, chamber.id, overwrite=True)


def test_update_conditions_reports_alert(session, chamber):
    update_chamber(
        session, chamber.id, {"temperature_min": 2.0, "temperature_max": 8.0}
    )

    chamber = update_conditions(session, chamber.id, temperature=12.5, humidity=40.0)

    assert chamber.current_temperature == 12.5
    assert chamber.temperature_status == "high"
    # No humidity range configured
    assert chamber.conditions_status == "unknown"


def test_delete_chamber(session):
    chamber = create_chamber(
        session,
        Chamber(name="Temp", quadras=1, lados=1, filas=1, andares=2),
        generate=True,
    )
    delete_chamber(session, chamber.id)

    assert session.get(Chamber, chamber.id) is None
    assert session.exec(select(Location)).all() == []


def test_delete_chamber_with_history_deactivates(
    session, chamber, locations, make_product, admin
):
    product = make_product(locations[0])
    with pytest.raises(ResourceInUseError):
        delete_chamber(session, chamber.id)

    # Empty again, but products have been stored here
    remove_product(session, product.id, admin)
    deactivated = delete_chamber(session, chamber.id)

    assert deactivated is not None
    assert deactivated.status == ChamberStatus.INACTIVE
    assert session.get(Chamber, chamber.id).status == ChamberStatus.INACTIVE
    assert len(session.exec(select(Location)).all()) == len(locations)


def test_create_location_checks_coordinates(session):
    chamber = create_chamber(
        session, Chamber(name="Manual", quadras=1, lados=1, filas=1, andares=3)
    )

    location = create_location(session, chamber, Coordinates(1, 1, 1, 3), 500.0)
    assert location.code == "Q1-L1-F1-A3"
    assert location.access_level == AccessLevel.ELEVATED

    with pytest.raises(AlreadyExistsError):
        create_location(session, chamber, Coordinates(1, 1, 1, 3), 500.0)
    with pytest.raises(ValidationError):
        create_location(session, chamber, Coordinates(2, 1, 1, 1), 500.0)


def test_update_location_capacity_not_below_stored_weight(
    session, locations, make_product
):
    make_product(locations[0])  # 250 kg
    with pytest.raises(ValidationError):
        update_location(session, locations[0].id, max_capacity_kg=200.0)

    location = update_location(session, locations[0].id, max_capacity_kg=300.0)
    assert location.max_capacity_kg == 300.0


def test_validate_capacity_results(session, chamber, locations, make_product):
    free, taken = locations[0], locations[1]
    product = make_product(taken)

    ok = validate_capacity(session, free, 960.0)
    assert ok.valid
    assert ok.warnings  # above 95% of the capacity

    too_heavy = validate_capacity(session, free, 1200.0)
    assert not too_heavy.valid
    assert too_heavy.reason == INSUFFICIENT_CAPACITY
    assert too_heavy.deficit_kg == 200.0
    assert too_heavy.suggestions == []

    occupied = validate_capacity(session, taken, 10.0)
    assert occupied.reason == LOCATION_OCCUPIED
    assert len(occupied.suggestions) == 5
    assert taken.id not in {item["id"] for item in occupied.suggestions}

    same_product = validate_capacity(
        session, taken, 10.0, allow_occupied_by=product.id
    )
    assert same_product.valid

    update_chamber(session, chamber.id, {"status": ChamberStatus.INACTIVE})
    inactive = validate_capacity(session, free, 10.0)
    assert inactive.reason == CHAMBER_INACTIVE


def test_available_locations_and_stats(session, chamber, locations, make_product):
    make_product(locations[0])

    available = list_available_locations(session, min_capacity_kg=100.0)
    assert len(available) == 7

    stats = get_location_stats(session, chamber.id)
    assert stats["total"] == 8
    assert stats["occupied"] == 1
    assert stats["used_weight_kg"] == 250.0
    assert stats["occupancy_rate"] == 12.5

    capacity = get_chamber_capacity(session, chamber.id)
    assert capacity["generated_locations"] == 8
    assert capacity["occupied"] == 1
