"""Seed types, clients, users and authentication."""

from datetime import timedelta

import pytest

from coldstock.application.auth_service import (
    authenticate,
    change_password,
    refresh_access_token,
    resolve_user,
)
from coldstock.application.client_service import (
    create_client,
    delete_client,
    list_clients,
    update_client,
)
from coldstock.application.seed_type_service import (
    create_seed_type,
    delete_seed_type,
    update_seed_type,
)
from coldstock.application.user_service import (
    create_user,
    deactivate_user,
    ensure_initial_admin,
    get_user_stats,
    update_user,
)
from coldstock.domain.constants import DocumentType, UserRole
from coldstock.domain.exceptions import (
    AlreadyExistsError,
    AuthenticationError,
    PermissionDeniedError,
    ResourceInUseError,
    ValidationError,
)
from coldstock.domain.rules import utcnow
from coldstock.infrastructure.database.models import SeedType
from coldstock.security import create_access_token, create_refresh_token

VALID_CPF = "52998224725"


def test_seed_type_name_is_normalized_and_unique(session, seed_type):
    assert seed_type.name == "Soja"
    with pytest.raises(AlreadyExistsError):
        create_seed_type(session, SeedType(name="  SOJA "))


def test_seed_type_storage_values_validated(session):
    with pytest.raises(ValidationError):
        create_seed_type(session, SeedType(name="Milho", optimal_humidity=120.0))


def test_seed_type_update(session, seed_type):
    updated = update_seed_type(session, seed_type.id, {"max_storage_time_days": 180})
    assert updated.max_storage_time_days == 180


def test_seed_type_delete_deactivates(session, seed_type):
    deleted = delete_seed_type(session, seed_type.id)
    assert deleted.is_active is False


def test_seed_type_in_use_cannot_be_deleted(session, seed_type, make_product):
    make_product()
    with pytest.raises(ResourceInUseError):
        delete_seed_type(session, seed_type.id)


def test_client_document_is_normalized(session, client_record):
    assert client_record.name == "Fazenda Boa Vista"
    assert client_record.cnpj_cpf == "11222333000181"
    assert client_record.document_type == DocumentType.CNPJ
    assert client_record.formatted_document == "11.222.333/0001-81"


def test_client_invalid_document(session):
    with pytest.raises(ValidationError) as exc_info:
        create_client(session, {"name": "Joao", "cnpj_cpf": "123.456.789-00"})
    assert exc_info.value.field == "cnpj_cpf"


def test_client_uniqueness(session, client_record):
    with pytest.raises(AlreadyExistsError):
        create_client(session, {"name": "FAZENDA BOA VISTA"})
    with pytest.raises(AlreadyExistsError):
        create_client(session, {"name": "Outra", "cnpj_cpf": "11.222.333/0001-81"})


def test_client_update_and_search(session, client_record):
    other = create_client(
        session, {"name": "sitio alegre", "cnpj_cpf": VALID_CPF, "state": "mg"}
    )
    assert other.state == "MG"
    assert other.document_type == DocumentType.CPF

    update_client(session, other.id, {"contact_person": "Maria"})

    found, total = list_clients(session, search="maria")
    assert total == 1
    assert found[0].id == other.id

    by_document, total = list_clients(session, search="529.982")
    assert total == 1


def test_client_with_products_cannot_be_deleted(session, client_record, make_product):
    make_product(client_id=client_record.id)
    with pytest.raises(ResourceInUseError):
        delete_client(session, client_record.id)


def test_create_user_rules(session, admin, operator):
    assert admin.email == "admin@coldstock.dev"
    assert admin.password_hash != "admin123"

    with pytest.raises(AlreadyExistsError):
        create_user(session, "Dup", "ADMIN@coldstock.dev", "secret1")
    with pytest.raises(ValidationError):
        create_user(session, "Short", "short@coldstock.dev", "123")
    with pytest.raises(PermissionDeniedError):
        create_user(session, "New", "new@coldstock.dev", "secret1", actor=operator)


def test_update_user_permissions(session, admin, operator):
    renamed = update_user(session, operator.id, {"name": "Otto"}, operator)
    assert renamed.name == "Otto"

    with pytest.raises(PermissionDeniedError):
        update_user(session, operator.id, {"role": UserRole.ADMIN}, operator)
    with pytest.raises(PermissionDeniedError):
        update_user(session, admin.id, {"name": "Hacked"}, operator)

    promoted = update_user(session, operator.id, {"role": UserRole.ADMIN}, admin)
    assert promoted.role == UserRole.ADMIN


def test_deactivate_user(session, admin, operator):
    with pytest.raises(ValidationError):
        deactivate_user(session, admin.id, admin)

    deactivated = deactivate_user(session, operator.id, admin)
    assert deactivated.is_active is False
    assert get_user_stats(session) == {
        "total": 2,
        "active": 1,
        "inactive": 1,
        "by_role": {"ADMIN": 1, "OPERATOR": 1},
    }


def test_ensure_initial_admin_only_on_empty_table(session):
    created = ensure_initial_admin(session, "root@coldstock.dev", "rootpass")
    assert created is not None
    assert created.role == UserRole.ADMIN
    assert ensure_initial_admin(session, "other@coldstock.dev", "rootpass") is None


def test_authenticate(session, admin):
    user = authenticate(session, "Admin@Coldstock.dev", "admin123")
    assert user.id == admin.id
    assert user.last_login_at is not None

    with pytest.raises(AuthenticationError):
        authenticate(session, "admin@coldstock.dev", "wrong")
    with pytest.raises(AuthenticationError):
        authenticate(session, "nobody@coldstock.dev", "admin123")


def test_inactive_user_cannot_log_in(session, admin, operator):
    deactivate_user(session, operator.id, admin)
    with pytest.raises(AuthenticationError):
        authenticate(session, "operator@coldstock.dev", "oper123")
    with pytest.raises(AuthenticationError):
        resolve_user(session, create_access_token(operator.id, operator.role))


def test_tokens(session, admin):
    access = create_access_token(admin.id, admin.role)
    refresh = create_refresh_token(admin.id)

    assert resolve_user(session, access).id == admin.id
    with pytest.raises(AuthenticationError):
        resolve_user(session, refresh)
    with pytest.raises(AuthenticationError):
        resolve_user(session, "not-a-token")

    tokens = refresh_access_token(session, refresh)
    assert resolve_user(session, tokens["access_token"]).id == admin.id


def test_change_password_invalidates_older_tokens(session, admin):
    old_token = create_access_token(admin.id, admin.role)

    with pytest.raises(AuthenticationError):
        change_password(session, admin, "wrong", "newpass1")

    change_password(session, admin, "admin123", "newpass1")
    # Tokens carry whole seconds, move the change clearly after the old token
    admin.password_changed_at = utcnow() + timedelta(seconds=5)
    session.add(admin)
    session.commit()

    with pytest.raises(AuthenticationError):
        resolve_user(session, old_token)
    assert authenticate(session, "admin@coldstock.dev", "newpass1").id == admin.id
