"""Tests for rate limiting functionality."""

import time

import pytest
from fastapi.testclient import TestClient

from coldstock.rate_limiting import rate_limiter


@pytest.fixture(name="limited")
def limited_fixture():
    """Turn rate limiting on with the given limits for one test."""
    originals: list[dict[str, int]] = []

    def apply(**limits: int) -> None:
        rate_limiter.enable()
        rate_limiter.reset()
        originals.append(rate_limiter.set_limits_for_testing(**limits))

    yield apply

    for original in originals:
        rate_limiter.restore_limits(original)
    rate_limiter.reset()


def test_general_endpoint_limit(client: TestClient, operator_headers, limited):
    """General endpoints are limited per client IP."""
    limited(general=3)

    statuses = [
        client.get("/api/v1/chambers", headers=operator_headers).status_code
        for _ in range(5)
    ]

    assert statuses == [200, 200, 200, 429, 429]


def test_write_operations_limit(client: TestClient, admin_headers, limited):
    limited(write=2)

    statuses = [
        client.post(
            "/api/v1/seed-types", json={"name": f"Tipo {i}"}, headers=admin_headers
        ).status_code
        for i in range(4)
    ]

    assert statuses[:2] == [201, 201]
    assert statuses[2:] == [429, 429]


def test_login_attempts_limit(client: TestClient, admin, limited):
    limited(auth=2)
    credentials = {"email": "admin@coldstock.dev", "password": "wrong"}

    statuses = [
        client.post("/api/v1/auth/login", json=credentials).status_code
        for _ in range(3)
    ]

    assert statuses == [401, 401, 429]


def test_rate_limit_response(client: TestClient, operator_headers, limited):
    limited(general=1)
    client.get("/api/v1/chambers", headers=operator_headers)

    response = client.get("/api/v1/chambers", headers=operator_headers)

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"
    data = response.json()
    assert data["error"] == "Rate limit exceeded"
    assert data["limit"] == 1
    assert data["limit_type"] == "general"
    assert data["current_requests"] == 1


def test_rate_limit_headers(client: TestClient, operator_headers, limited):
    limited(general=10)

    response = client.get("/api/v1/chambers", headers=operator_headers)

    assert response.headers["X-RateLimit-Limit"] == "10"
    assert response.headers["X-RateLimit-Remaining"] == "9"
    assert int(response.headers["X-RateLimit-Reset"]) > time.time()

    # Only API paths are limited and annotated
    health = client.get("/health")
    assert "X-RateLimit-Limit" not in health.headers


def test_clients_are_tracked_separately(client: TestClient, operator_headers, limited):
    limited(general=1)

    first = client.get(
        "/api/v1/chambers",
        headers={**operator_headers, "X-Forwarded-For": "10.0.0.1"},
    )
    second = client.get(
        "/api/v1/chambers",
        headers={**operator_headers, "X-Forwarded-For": "10.0.0.2"},
    )

    assert first.status_code == 200
    assert second.status_code == 200
    assert rate_limiter.get_request_count("10.0.0.1") == 1


def test_old_requests_expire(limited):
    limited(general=1)
    rate_limiter.add_request_timestamp("10.0.0.3", time.time() - 120)

    assert rate_limiter.get_request_count("10.0.0.3") == 0


def test_disabled_limiter_allows_everything(client: TestClient, operator_headers):
    original = rate_limiter.set_limits_for_testing(general=1)
    try:
        statuses = {
            client.get("/api/v1/chambers", headers=operator_headers).status_code
            for _ in range(3)
        }
    finally:
        rate_limiter.restore_limits(original)

    assert statuses == {200}
