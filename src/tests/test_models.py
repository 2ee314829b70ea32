"""
Tests for database models.

Tests cover:
- Model creation and persistence
- Relationships between models
- Check constraints that guard ledger state
- to_dict serialization
"""

from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from src.models import (
    Batch,
    BatchLotUsage,
    Lot,
    LotEvent,
    Material,
    Recipe,
    RecipeIngredient,
    Supplier,
)
from src.models.base import Base


@pytest.fixture(scope="function")
def db_session():
    """
    Create a test database session.

    This fixture creates an in-memory database for each test,
    ensuring tests are isolated.
    """
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()
    engine.dispose()


def _material(session, code="SALT", category="spice"):
    material = Material(name=code.title(), material_code=code, category=category, unit="g")
    session.add(material)
    session.flush()
    return material


def _lot(session, material, quantity=100.0, **kwargs):
    lot = Lot(
        material_id=material.id,
        lot_number="L-1",
        internal_lot_code=kwargs.pop("internal_lot_code", "LOT-1"),
        received_date=date(2025, 1, 1),
        quantity_received=quantity,
        current_balance=kwargs.pop("current_balance", quantity),
        unit="g",
        **kwargs,
    )
    session.add(lot)
    session.flush()
    return lot


class TestMaterial:
    def test_category_flags(self, db_session):
        assert _material(db_session, "BEEF", "beef").is_beef
        assert _material(db_session, "CURE", "cure").is_cure
        assert not _material(db_session, "SALT").is_cure

    def test_code_is_unique(self, db_session):
        _material(db_session)
        with pytest.raises(IntegrityError):
            _material(db_session)


class TestLot:
    def test_defaults(self, db_session):
        lot = _lot(db_session, _material(db_session))

        assert lot.status == "active"
        assert lot.version == 1
        assert lot.uuid is not None
        assert lot.quantity_consumed == 0.0

    def test_supplier_relationship(self, db_session):
        supplier = Supplier(name="Prairie Meats")
        db_session.add(supplier)
        db_session.flush()

        lot = _lot(db_session, _material(db_session), supplier_id=supplier.id)
        db_session.expire_all()

        assert lot.supplier.name == "Prairie Meats"
        assert supplier.lots == [lot]

    def test_negative_balance_rejected(self, db_session):
        with pytest.raises(IntegrityError):
            _lot(db_session, _material(db_session), current_balance=-1.0)

    def test_unknown_status_rejected(self, db_session):
        with pytest.raises(IntegrityError):
            _lot(db_session, _material(db_session), status="lost")

    def test_to_dict_serializes_dates(self, db_session):
        data = _lot(db_session, _material(db_session)).to_dict()
        assert data["received_date"] == "2025-01-01"
        assert data["current_balance"] == 100.0


class TestEventsAndAllocations:
    def test_event_has_no_updated_at(self, db_session):
        lot = _lot(db_session, _material(db_session))
        db_session.add(
            LotEvent(lot_id=lot.id, event_type="receive", quantity=100.0, balance_after=100.0)
        )
        db_session.flush()

        assert "updated_at" not in lot.events[0].to_dict()

    def test_allocation_quantity_positive(self, db_session):
        material = _material(db_session)
        lot = _lot(db_session, material)
        batch = Batch(batch_number="B-1", input_weight=1.0)
        db_session.add(batch)
        db_session.flush()

        db_session.add(
            BatchLotUsage(
                batch_id=batch.id,
                lot_id=lot.id,
                material_id=material.id,
                quantity_used=0.0,
                unit="g",
            )
        )
        with pytest.raises(IntegrityError):
            db_session.flush()


class TestRecipe:
    def test_ingredients_ordered_and_serialized(self, db_session):
        salt = _material(db_session, "SALT")
        pepper = _material(db_session, "PEPPER")
        recipe = Recipe(name="Teriyaki", recipe_code="TER", base_weight=1000.0)
        recipe.ingredients = [
            RecipeIngredient(material_id=pepper.id, quantity=4.0, unit="g", sort_order=2),
            RecipeIngredient(material_id=salt.id, quantity=18.0, unit="g", sort_order=1),
        ]
        db_session.add(recipe)
        db_session.commit()
        db_session.expire_all()

        reloaded = db_session.query(Recipe).filter(Recipe.recipe_code == "TER").one()
        assert [line.material_id for line in reloaded.ingredients] == [salt.id, pepper.id]
        assert len(reloaded.to_dict(include_relationships=True)["ingredients"]) == 2
