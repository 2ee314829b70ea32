"""Tests for the saga runner."""

import logging

import pytest

from src.services.exceptions import (
    ConcurrentModification,
    PartialFailureCompensated,
    PartialFailureUncompensated,
)
from src.services.saga import Saga, SagaStep, run_saga


def _boom():
    raise RuntimeError("boom")


class TestSaga:
    def test_runs_steps_in_order(self):
        calls = []
        saga = Saga("test")
        saga.step("a", lambda: calls.append("a") or 1)
        saga.step("b", lambda: calls.append("b") or saga.results["a"] + 1)

        results = saga.run()

        assert calls == ["a", "b"]
        assert results == {"a": 1, "b": 2}

    def test_first_step_failure_propagates_unchanged(self):
        compensations = []
        saga = Saga("test")
        saga.step("a", _boom, compensation=lambda _: compensations.append("a"))

        with pytest.raises(RuntimeError, match="boom"):
            saga.run()
        assert compensations == []

    def test_compensations_run_in_reverse_order(self):
        compensations = []
        saga = Saga("test")
        saga.step("a", lambda: "A", compensation=lambda r: compensations.append(("a", r)))
        saga.step("b", lambda: "B", compensation=lambda r: compensations.append(("b", r)))
        saga.step("c", _boom)

        with pytest.raises(PartialFailureCompensated) as exc_info:
            saga.run()

        assert compensations == [("b", "B"), ("a", "A")]
        assert exc_info.value.step == "c"
        assert isinstance(exc_info.value.cause, RuntimeError)

    def test_service_error_propagates_after_compensation(self):
        compensations = []

        def lose_race():
            raise ConcurrentModification(1, 3, 100.0)

        saga = Saga("test")
        saga.step("a", lambda: None, compensation=lambda _: compensations.append("a"))
        saga.step("b", lose_race)

        with pytest.raises(ConcurrentModification):
            saga.run()
        assert compensations == ["a"]

    def test_failed_compensation_is_uncompensated(self, caplog):
        def bad_compensation(_):
            raise RuntimeError("compensation failed")

        saga = Saga("test")
        saga.step("a", lambda: None, compensation=bad_compensation)
        saga.step("b", _boom)

        with caplog.at_level(logging.ERROR):
            with pytest.raises(PartialFailureUncompensated) as exc_info:
                saga.run()

        error = exc_info.value
        assert error.step == "b"
        assert [name for name, _ in error.compensation_errors] == ["a"]
        assert "test: uncompensated" in caplog.text

    def test_step_without_compensation_is_uncompensated(self):
        later = []
        saga = Saga("test")
        saga.step("irreversible", lambda: None)
        saga.step("b", lambda: None, compensation=lambda _: later.append("b"))
        saga.step("c", _boom)

        with pytest.raises(PartialFailureUncompensated) as exc_info:
            saga.run()

        assert later == ["b"]
        assert exc_info.value.compensation_errors == [("irreversible", None)]

    def test_compensated_run_logs_warning(self, caplog):
        saga = Saga("allocate", lot_id=7)
        saga.step("a", lambda: None, compensation=lambda _: None)
        saga.step("b", _boom)

        with caplog.at_level(logging.WARNING):
            with pytest.raises(PartialFailureCompensated):
                saga.run()

        record = next(r for r in caplog.records if r.getMessage() == "allocate: compensated")
        assert record.levelno == logging.WARNING
        assert record.failed_step == "b"
        assert record.lot_id == 7

    def test_run_saga_helper(self):
        results = run_saga("test", [SagaStep("a", lambda: 5)])
        assert results == {"a": 5}
