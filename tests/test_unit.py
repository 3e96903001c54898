import logging

import pytest
from pydantic import ValidationError

from inventory_api import crud, schemas
from inventory_api.auth import verify_password
from inventory_api.config import Settings, load_settings
from inventory_api.errors import AppError, ErrorKind
from inventory_api.logs import configure_logging


def test_login_or_create_is_idempotent(db_session):
    user, created = crud.login_or_create_user(db_session, "9876543210", "secret1")
    assert created is True
    assert user.name == "Test"
    assert user.password != "secret1"
    assert verify_password("secret1", user.password)

    again, created_again = crud.login_or_create_user(db_session, "9876543210", "other-password")
    assert created_again is False
    assert again.id == user.id


def test_login_prefers_email_over_phone(db_session):
    crud.create_user(db_session, schemas.UserCreate(name="A", email="a@example.com", phone="111111", password="secret1"))
    user, created = crud.login_or_create_user(db_session, "999999", "secret1", email="a@example.com")
    assert created is False
    assert user.phone == "111111"


def test_update_user_rejects_short_password(db_session):
    user = crud.create_user(db_session, schemas.UserCreate(name="Bob", password="secret1"))
    with pytest.raises(AppError) as err:
        crud.update_user(db_session, user.id, schemas.UserUpdate(password="123"))
    assert err.value.kind is ErrorKind.BAD_REQUEST
    assert err.value.message == "Password must be at least 6 characters"


def test_list_users_pagination_and_search(db_session):
    for i in range(7):
        crud.create_user(db_session, schemas.UserCreate(name=f"User {i}", phone=f"70000000{i}", password="secret1"))
    crud.create_user(db_session, schemas.UserCreate(name="Zed", email="zed@example.com", password="secret1"))

    page, total = crud.list_users(db_session, 2, 3)
    assert total == 8
    assert len(page) == 3

    found, total = crud.list_users(db_session, 1, 10, "zed")
    assert total == 1
    assert found[0].email == "zed@example.com"

    by_phone, total = crud.list_users(db_session, 1, 10, "700000003")
    assert [u.name for u in by_phone] == ["User 3"]


def test_expense_derived_fields(db_session):
    expense = crud.create_expense(
        db_session,
        schemas.ExpenseCreate(
            customer="Acme",
            product="Cement",
            packaging_type="50 KG Bag",
            packaging_qty=10,
            items_per_pack=4,
            fare=200,
        ),
    )
    assert expense.total_units == 40
    assert expense.cost_per_pack == 20
    assert expense.cost_per_unit == 5
    assert expense.status == "Pending"


def test_expense_update_recomputes_costs(db_session):
    expense = crud.create_expense(
        db_session,
        schemas.ExpenseCreate(
            customer="Acme", product="Cement", packaging_type="Bag", packaging_qty=5, items_per_pack=2, fare=100
        ),
    )
    updated = crud.update_expense(db_session, expense.id, schemas.ExpenseUpdate(packaging_qty=10))
    assert updated.total_units == 20
    assert updated.cost_per_pack == 10
    assert updated.cost_per_unit == 5

    untouched = crud.update_expense(db_session, expense.id, schemas.ExpenseUpdate(notes="paid in cash"))
    assert untouched.cost_per_pack == 10
    assert untouched.notes == "paid in cash"


def test_expense_rejects_unknown_status(db_session):
    with pytest.raises(AppError) as err:
        crud.create_expense(
            db_session,
            schemas.ExpenseCreate(
                customer="Acme",
                product="Cement",
                packaging_type="Bag",
                packaging_qty=1,
                items_per_pack=1,
                fare=1,
                status="Done",
            ),
        )
    assert err.value.kind is ErrorKind.VALIDATION
    assert "status" in err.value.details


def test_duplicate_category_raises_duplicate_key(db_session):
    crud.create_category(db_session, "Steel")
    with pytest.raises(AppError) as err:
        crud.create_category(db_session, "steel")
    assert err.value.kind is ErrorKind.DUPLICATE_KEY
    assert err.value.message == "Duplicate field value: slug. Please use another value!"
    # the session is usable again after the rollback
    assert [c.slug for c in crud.list_categories(db_session)] == ["steel"]


def test_delete_category_removes_subs(db_session):
    category = crud.create_category(db_session, "Pipes")
    crud.create_sub(db_session, "PVC Pipes", category.id)
    assert len(crud.list_subs(db_session, category.id)) == 1

    crud.delete_category(db_session, "pipes")
    assert crud.list_subs(db_session, category.id) == []


def test_rating_replaces_earlier_star(db_session):
    user = crud.create_user(db_session, schemas.UserCreate(name="Rater", password="secret1"))
    product = crud.create_product(db_session, schemas.ProductCreate(title="Angle Iron", price=30))
    crud.rate_product(db_session, product, user.id, 5)
    rated = crud.rate_product(db_session, product, user.id, 3)
    assert len(rated.ratings) == 1
    assert rated.average_rating == 3


def test_search_products_by_price_and_query(db_session):
    crud.create_product(db_session, schemas.ProductCreate(title="Steel Rod", price=12))
    crud.create_product(db_session, schemas.ProductCreate(title="Steel Sheet", price=80))
    crud.create_product(db_session, schemas.ProductCreate(title="Copper Wire", price=15))

    cheap = crud.search_products(db_session, schemas.SearchFilters(price=[0, 20]))
    assert {p.title for p in cheap} == {"Steel Rod", "Copper Wire"}

    steel = crud.search_products(db_session, schemas.SearchFilters(query="steel"))
    assert {p.title for p in steel} == {"Steel Rod", "Steel Sheet"}


def test_load_settings_from_environment(monkeypatch):
    monkeypatch.setenv("APP_ENV", "Production")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "off")
    monkeypatch.setenv("CORS_ORIGINS", "https://admin.example.com, https://ops.example.com")
    settings = load_settings(env_file=None)
    assert settings.environment == "production"
    assert settings.development is False
    assert settings.port == 8080
    assert settings.rate_limit_enabled is False
    assert settings.cors_origin_list == ["https://admin.example.com", "https://ops.example.com"]


def test_load_settings_from_dotenv_file(tmp_path, monkeypatch):
    for name in ("APP_ENV", "JWT_SECRET", "PORT"):
        monkeypatch.delenv(name, raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("APP_ENV=staging\nJWT_SECRET=from-dotenv\nPORT=9000\n")
    monkeypatch.setenv("PORT", "9100")

    settings = load_settings(env_file=str(env_file))
    assert settings.environment == "staging"
    assert settings.jwt_secret == "from-dotenv"
    # the process environment wins over the file
    assert settings.port == 9100


def test_default_settings_are_development(monkeypatch):
    for name in ("APP_ENV", "DATABASE_URL", "LOG_LEVEL", "CORS_ORIGINS"):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings(env_file=None)
    assert settings.development is True
    assert settings.database_url == "sqlite:///./inventory.db"
    assert settings.cors_origin_list == ["*"]


def test_malformed_setting_is_rejected(monkeypatch):
    monkeypatch.setenv("PORT", "seven")
    with pytest.raises(ValidationError):
        load_settings(env_file=None)


def test_settings_are_immutable_values():
    settings = Settings(_env_file=None, environment="Production")
    assert settings.environment == "production"
    changed = settings.model_copy(update={"login_rate_limit": "1/minute"})
    assert changed.login_rate_limit == "1/minute"
    assert settings.login_rate_limit != "1/minute"
    with pytest.raises(ValidationError):
        settings.port = 1


def test_configure_logging_levels():
    assert configure_logging("warning") == logging.WARNING
    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert len(logging.getLogger().handlers) == 1

    assert configure_logging("DEBUG") == logging.DEBUG
    assert logging.getLogger("uvicorn.access").level == logging.DEBUG

    assert configure_logging("chatty") == logging.INFO
    configure_logging("WARNING")
