"""Tests for the release readiness check."""

import pytest

from src.services import lot_ledger
from src.services.actuals_service import record_actual
from src.services.exceptions import BatchNotFound
from src.services.release_gate import check_release_readiness, get_critical_targets


def _allocate_critical(batch, salt, cure, salt_lot, cure_lot, salt_grams=50.0):
    lot_ledger.allocate(batch.id, salt_lot, salt.id, salt_grams, "g")
    lot_ledger.allocate(batch.id, cure_lot, cure.id, 5.125, "g")


def test_critical_targets_only(test_db, batch, salt, cure):
    targets = get_critical_targets(batch.id)
    assert [t.material_id for t in targets] == [salt.id, cure.id]


def test_nothing_allocated_blocks(test_db, batch, salt, cure):
    result = check_release_readiness(batch.id)

    assert result["ready"] is False
    blocking = {entry["material_id"]: entry["reasons"] for entry in result["blocking"]}
    assert blocking[salt.id] == ["not_fully_allocated", "out_of_tolerance"]
    assert cure.id in blocking


def test_fully_allocated_is_ready(test_db, batch, salt, cure, salt_lot, cure_lot):
    _allocate_critical(batch, salt, cure, salt_lot, cure_lot)

    result = check_release_readiness(batch.id)

    assert result == {"batch_id": batch.id, "ready": True, "blocking": []}


def test_non_critical_lines_do_not_block(test_db, batch, salt, cure, salt_lot, cure_lot):
    # pepper is never allocated
    _allocate_critical(batch, salt, cure, salt_lot, cure_lot)
    assert check_release_readiness(batch.id)["ready"] is True


def test_over_allocation_is_out_of_tolerance(
    test_db, batch, salt, cure, salt_lot, cure_lot
):
    _allocate_critical(batch, salt, cure, salt_lot, cure_lot, salt_grams=60.0)

    result = check_release_readiness(batch.id)

    assert result["ready"] is False
    assert result["blocking"][0]["material_id"] == salt.id
    assert result["blocking"][0]["reasons"] == ["out_of_tolerance"]


def test_actual_outside_tolerance_blocks(test_db, batch, salt, cure, salt_lot, cure_lot):
    _allocate_critical(batch, salt, cure, salt_lot, cure_lot)
    record_actual(batch.id, salt.id, 44.0, "g")

    result = check_release_readiness(batch.id)

    assert result["ready"] is False
    assert result["blocking"][0]["actual_amount"] == pytest.approx(44.0)
    assert result["blocking"][0]["reasons"] == ["out_of_tolerance"]


def test_missing_batch(test_db):
    with pytest.raises(BatchNotFound):
        check_release_readiness(404)
