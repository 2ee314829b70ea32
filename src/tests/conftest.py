"""Pytest configuration and fixtures for service layer tests."""

from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

from src.models.base import Base
from src.services.database import get_session_factory  # noqa: F401
from src.utils.config import reset_config


@pytest.fixture(autouse=True)
def fresh_config():
    """Rebuild configuration for every test so env overrides don't leak."""
    reset_config()
    yield
    reset_config()


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    import src.models  # noqa: F401

    # Create in-memory SQLite database for testing
    engine = create_engine("sqlite:///:memory:", echo=False)

    # Create all tables
    Base.metadata.create_all(engine)

    # Create session factory
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import src.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    # Provide database to test
    yield Session

    # Cleanup
    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    # Restore original session factory
    db_module.get_session_factory = original_get_session


def _add(test_db, obj):
    session = test_db()
    session.add(obj)
    session.commit()
    return obj


@pytest.fixture
def supplier(test_db):
    """Provide an approved supplier."""
    from src.models import Supplier

    return _add(
        test_db,
        Supplier(name="Prairie Meats", supplier_code="PM-01", certification_status="approved"),
    )


@pytest.fixture
def beef(test_db):
    from src.models import Material

    return _add(
        test_db,
        Material(name="Beef Eye of Round", material_code="BEEF-EOR", category="beef", unit="kg"),
    )


@pytest.fixture
def salt(test_db):
    from src.models import Material

    return _add(
        test_db,
        Material(name="Kosher Salt", material_code="SALT", category="spice", unit="g"),
    )


@pytest.fixture
def pepper(test_db):
    from src.models import Material

    return _add(
        test_db,
        Material(name="Black Pepper", material_code="PEPPER", category="spice", unit="g"),
    )


@pytest.fixture
def soy_sauce(test_db):
    from src.models import Material

    return _add(
        test_db,
        Material(name="Soy Sauce", material_code="SOY", category="additive", unit="ml"),
    )


@pytest.fixture
def cure(test_db):
    from src.models import Material

    return _add(
        test_db,
        Material(name="Prague Powder #1", material_code="CURE-P1", category="cure", unit="g"),
    )


@pytest.fixture
def recipe(test_db, salt, pepper, cure):
    """Recipe written per 1000 g of beef.

    Lines: salt 20 g (critical), pepper 5 g, cure 2.5 g (critical, Prague #1).
    """
    from src.models import Recipe, RecipeIngredient

    recipe = Recipe(
        name="Classic Pepper Jerky",
        recipe_code="CPJ",
        base_weight=1000.0,
        base_weight_unit="g",
    )
    recipe.ingredients = [
        RecipeIngredient(
            material_id=salt.id, quantity=20.0, unit="g", is_critical=True, sort_order=1
        ),
        RecipeIngredient(
            material_id=pepper.id,
            quantity=5.0,
            unit="g",
            tolerance_percentage=10.0,
            sort_order=2,
        ),
        RecipeIngredient(
            material_id=cure.id,
            quantity=2.5,
            unit="g",
            is_critical=True,
            is_cure=True,
            notes='{"cure_type": "prague1"}',
            sort_order=3,
        ),
    ]
    return _add(test_db, recipe)


@pytest.fixture
def batch(test_db, recipe):
    """Batch of 2.5 kg beef (scale factor 2.5)."""
    from src.models import Batch

    return _add(
        test_db,
        Batch(
            batch_number="B-0001",
            recipe_id=recipe.id,
            input_weight=2.5,
            input_weight_unit="kg",
            status="in_progress",
        ),
    )


@pytest.fixture
def second_batch(test_db, recipe):
    from src.models import Batch

    return _add(
        test_db,
        Batch(
            batch_number="B-0002",
            recipe_id=recipe.id,
            input_weight=1.0,
            input_weight_unit="kg",
            status="completed",
        ),
    )


@pytest.fixture
def salt_lot(test_db, salt, supplier):
    """500 g lot of salt, received 2025-01-10."""
    from src.services import lot_ledger

    result = lot_ledger.receive_lot(
        material_id=salt.id,
        lot_number="SUP-SALT-1",
        quantity=500.0,
        unit="g",
        received_date=date(2025, 1, 10),
        supplier_id=supplier.id,
        internal_lot_code="LOT-SALT-1",
        expiry_date=date(2026, 1, 10),
    )
    return result["lot_id"]


@pytest.fixture
def newer_salt_lot(test_db, salt, supplier):
    """0.3 kg lot of salt, received after salt_lot."""
    from src.services import lot_ledger

    result = lot_ledger.receive_lot(
        material_id=salt.id,
        lot_number="SUP-SALT-2",
        quantity=0.3,
        unit="kg",
        received_date=date(2025, 2, 1),
        supplier_id=supplier.id,
        internal_lot_code="LOT-SALT-2",
    )
    return result["lot_id"]


@pytest.fixture
def cure_lot(test_db, cure, supplier):
    from src.services import lot_ledger

    result = lot_ledger.receive_lot(
        material_id=cure.id,
        lot_number="SUP-CURE-1",
        quantity=100.0,
        unit="g",
        received_date=date(2025, 1, 5),
        supplier_id=supplier.id,
        internal_lot_code="LOT-CURE-1",
    )
    return result["lot_id"]


@pytest.fixture
def read_lot(test_db):
    """Return a function giving a fresh read of a lot, bypassing cached state."""
    from src.models import Lot

    def _read(lot_id):
        session = test_db()
        session.expire_all()
        return session.query(Lot).filter(Lot.id == lot_id).one()

    return _read
