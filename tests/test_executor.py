"""Tests for the per-unit executor."""

import logging

import pytest

from meter_features.context import RunContext
from meter_features.errors import ConfigurationError, FeatureKeyCollisionError
from meter_features.iterator import UnitExecutor, feature_name
from meter_features.models import Failure


def first_features(record, ctx, **extra):
    return {"a": 1, "shared": "first"}


def second_features(record, ctx, **extra):
    return {"b": 2, "shared": "second"}


def broken_features(record, ctx, **extra):
    raise ZeroDivisionError("division by zero")


class TestUnitExecutor:
    """Tests for UnitExecutor."""

    @pytest.fixture
    def record(self, make_record):
        return make_record("000123")

    def test_requires_feature_functions(self):
        """Test an empty function list is a configuration error."""
        with pytest.raises(ConfigurationError):
            UnitExecutor([])

    def test_rejects_non_callables(self):
        """Test non-callable entries are a configuration error."""
        with pytest.raises(ConfigurationError, match="not callable"):
            UnitExecutor([first_features, "second"])

    def test_merges_outputs_in_order(self, record):
        """Test outputs are merged and later functions win on collisions."""
        outcome = UnitExecutor([first_features, second_features]).execute(
            record, RunContext()
        )

        assert outcome.ok
        assert outcome.meter_id == "000123"
        assert outcome.features == {"a": 1, "shared": "second", "b": 2}

    def test_unit_id_overrides_record_id(self, record):
        """Test outcomes can be keyed by an id other than the record's."""
        executor = UnitExecutor([first_features])
        assert executor.execute(record, RunContext(), "123").meter_id == "123"
        failed = UnitExecutor([broken_features]).execute(record, RunContext(), "123")
        assert failed.meter_id == "123"

    def test_strict_mode_raises_on_collision(self, record):
        """Test strict merging fails fast on duplicate keys."""
        executor = UnitExecutor([first_features, second_features], strict=True)
        with pytest.raises(FeatureKeyCollisionError) as exc_info:
            executor.execute(record, RunContext())

        assert exc_info.value.key == "shared"
        assert exc_info.value.first == "first_features"
        assert exc_info.value.second == "second_features"

    def test_failure_discards_partial_features(self, record):
        """Test a failing function turns the whole unit into a Failure."""
        outcome = UnitExecutor([first_features, broken_features]).execute(
            record, RunContext()
        )

        assert not outcome.ok
        assert outcome.features is None
        assert isinstance(outcome.value, Failure)
        assert outcome.failure.stage == "feature:broken_features"
        assert outcome.failure.error_type == "ZeroDivisionError"

    def test_failure_is_logged(self, record, caplog):
        """Test failures are reported as warnings."""
        with caplog.at_level(logging.WARNING, logger="meter_features"):
            UnitExecutor([broken_features]).execute(record, RunContext())

        assert "broken_features failed for meter 000123" in caplog.text

    def test_none_output_contributes_nothing(self, record):
        """Test a function returning None is skipped."""
        outcome = UnitExecutor([lambda r, c, **e: None, first_features]).execute(
            record, RunContext()
        )
        assert outcome.features == {"a": 1, "shared": "first"}

    def test_non_mapping_output_is_failure(self, record):
        """Test returning a non-mapping is a feature computation failure."""

        def returns_list(record, ctx, **extra):
            return [1, 2, 3]

        outcome = UnitExecutor([returns_list]).execute(record, RunContext())
        assert outcome.failure.error_type == "FeatureComputationError"
        assert "expected a mapping" in outcome.failure.message

    def test_extra_arguments_are_passed(self, record):
        """Test extra keyword arguments reach every function."""

        def uses_extra(record, ctx, **extra):
            return {"scale": extra["scale"]}

        outcome = UnitExecutor([uses_extra]).execute(record, RunContext(), scale=3)
        assert outcome.features == {"scale": 3}

    def test_functions_share_the_context(self, record):
        """Test writes by one function are visible to the next."""

        def writer(record, ctx, **extra):
            ctx.put_cached("note", record.meter_id, "written")
            return {}

        def reader(record, ctx, **extra):
            return {"note": ctx.get_cached("note", record.meter_id)}

        outcome = UnitExecutor([writer, reader]).execute(record, RunContext())
        assert outcome.features == {"note": "written"}

    def test_from_context(self):
        """Test the executor reads functions and strictness from the context."""
        ctx = RunContext(feature_fns=[first_features], strict_merge=True)
        executor = UnitExecutor.from_context(ctx)
        assert executor.feature_fns == [first_features]
        assert executor.strict is True

    def test_keyboard_interrupt_propagates(self, record):
        """Test interrupts are not converted into failures."""

        def interrupted(record, ctx, **extra):
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            UnitExecutor([interrupted]).execute(record, RunContext())


class TestFeatureName:
    """Tests for feature_name."""

    def test_function_name(self):
        """Test plain functions use their __name__."""
        assert feature_name(first_features) == "first_features"

    def test_partial_name(self):
        """Test partials use the wrapped function's name."""
        from functools import partial

        assert feature_name(partial(first_features)) == "first_features"

    def test_callable_instance_name(self):
        """Test callable objects use their class name."""

        class Scorer:
            def __call__(self, record, ctx, **extra):
                return {}

        assert feature_name(Scorer()) == "Scorer"
