"""Unit tests for the FormEngine facade.

Tests:
- Form data seeded from schema defaults
- field_changed: incremental states, field errors, on-change cross-field checks
- Fallback to the last stable states when rules oscillate
- Options, submit and autosave through the engine
"""

import pytest

from formlogic.config.settings import EngineConfig
from formlogic.errors import UnknownFieldError
from formlogic.runtime.engine import FormEngine, resolve_field_states
from formlogic.runtime.rule_engine import default_states
from formlogic.runtime.schema_loader import load_schema
from formlogic.runtime.validation import ValidatorRegistry
from formlogic.schemas.results import SubmissionStatus


class StaticCitySource:
    """Option source returning two cities per country."""

    def __init__(self):
        self.calls = 0

    async def fetch(self, source_type, source_config, dependency_values):
        self.calls += 1
        country = dependency_values["country"]
        return [
            {"value": f"{country}-1", "label": "First"},
            {"value": f"{country}-2", "label": "Second"},
        ]


@pytest.fixture
def signup_schema(signup_schema_path):
    return load_schema(signup_schema_path)


@pytest.fixture
def oscillating_schema(schema_factory, make_field):
    """Stable while `flag` is false; `x` flips between passes once it is true."""
    return schema_factory(
        [make_field("flag", "checkbox"), make_field("x", "number"), make_field("note")],
        rules=[
            {"id": "fill", "target": "x", "action": {"SetValue": 1}, "condition": "flag = true and is_empty(x)"},
            {"id": "hide_note", "target": "note", "action": "hide", "condition": "flag = false"},
        ],
    )


class TestFormEngineState:
    """Tests for engine construction and state resolution."""

    def test_form_data_seeded_from_defaults(self, signup_schema):
        """Schema defaults are the initial form data."""
        engine = FormEngine(signup_schema)
        assert engine.form_data == {"country": "ch"}
        assert engine.last_stable_states is None

    def test_resolve_records_stable_snapshot(self, bonus_schema):
        """A successful resolution becomes the last stable snapshot."""
        engine = FormEngine(bonus_schema)
        states = engine.resolve_field_states({"age": 70})
        assert states["bonus"].is_visible is True
        assert engine.last_stable_states == states

    def test_falls_back_to_last_stable(self, oscillating_schema, caplog):
        """Unstable rules keep the previous stable states."""
        engine = FormEngine(oscillating_schema)
        stable = engine.resolve_field_states({"flag": False})
        assert stable["note"].is_visible is False

        fallback = engine.resolve_field_states({"flag": True})
        assert fallback == stable
        assert "keeping last stable field states" in caplog.text

    def test_falls_back_to_defaults_without_snapshot(self, oscillating_schema):
        """With no stable snapshot yet, static states are used."""
        engine = FormEngine(oscillating_schema)
        states = engine.resolve_field_states({"flag": True})
        assert all(state.is_visible for state in states.values())
        assert engine.last_stable_states is None

    def test_stateless_resolution_uses_static_states(self, oscillating_schema, caplog):
        """Unstable rules yield static states and a warning, never an exception."""
        states = resolve_field_states(oscillating_schema, {"flag": True})
        assert states == default_states(oscillating_schema)
        assert "using static field states" in caplog.text

    def test_stateless_resolution_uses_previous(self, oscillating_schema):
        """Given previous states, unstable rules keep them."""
        previous = resolve_field_states(oscillating_schema, {"flag": False})
        assert previous["note"].is_visible is False

        states = resolve_field_states(oscillating_schema, {"flag": True}, previous=previous)
        assert states == previous

    def test_snapshot_from_other_data_is_not_reused(self, schema_factory, make_field):
        """Resolving foreign data does not leak into the next incremental change."""
        schema = schema_factory(
            [make_field("age", "number"), make_field("bonus"), make_field("vip", "checkbox")],
            rules=[{"id": "hide_bonus", "target": "bonus", "action": "hide", "condition": "age < 65"}],
        )
        engine = FormEngine(schema)
        engine.field_changed("age", 70)
        engine.validate_all({"age": 10})

        change = engine.field_changed("vip", True)

        assert engine.form_data == {"age": 70, "vip": True}
        assert change.states["bonus"].is_visible is True
        assert change.states == resolve_field_states(schema, engine.form_data)

    def test_pass_ceiling_from_config(self, oscillating_schema):
        """max_resolution_passes is passed to the rule engine."""
        engine = FormEngine(oscillating_schema, EngineConfig(max_resolution_passes=5))
        assert engine.rules.max_passes == 5


class TestFieldChanged:
    """Tests for single-field edits."""

    def test_change_updates_dependents(self, bonus_schema):
        """Changing age re-resolves bonus visibility."""
        engine = FormEngine(bonus_schema)
        change = engine.field_changed("age", 40)
        assert change.states["bonus"].is_visible is False

        change = engine.field_changed("age", 70)
        assert change.states["bonus"].is_visible is True
        assert engine.form_data == {"age": 70}

    def test_change_reports_field_errors(self, signup_schema):
        """Field-level errors of the edited field are returned."""
        engine = FormEngine(signup_schema)
        change = engine.field_changed("password", "short")
        assert change.field_errors == ["Minimum length is 8 characters"]

    def test_hidden_field_has_no_errors(self, bonus_schema):
        """Edits to a hidden field are not validated."""
        engine = FormEngine(bonus_schema)
        engine.field_changed("age", 40)
        change = engine.field_changed("bonus", "")
        assert change.field_errors == []

    def test_on_change_cross_field(self, signup_schema):
        """On-change validations involving the field run once all inputs are filled."""
        engine = FormEngine(signup_schema)
        change = engine.field_changed("password", "longenough1")
        assert change.cross_field_errors == []

        change = engine.field_changed("confirm_password", "different1")
        assert change.cross_field_errors == [("passwords_match", "Passwords do not match")]

        change = engine.field_changed("confirm_password", "longenough1")
        assert change.cross_field_errors == []

    def test_unrelated_field_skips_cross_field(self, signup_schema):
        """Validations not involving the edited field are not reported."""
        engine = FormEngine(signup_schema)
        engine.field_changed("password", "longenough1")
        engine.field_changed("confirm_password", "different1")
        change = engine.field_changed("email", "a@b.co")
        assert change.cross_field_errors == []

    def test_unknown_field(self, bonus_schema):
        """Unknown field ids raise UnknownFieldError."""
        engine = FormEngine(bonus_schema)
        with pytest.raises(UnknownFieldError):
            engine.field_changed("ghost", 1)

    def test_field_blurred(self, schema_factory, make_field):
        """On-blur validations run for the blurred field."""
        schema = schema_factory(
            [make_field("start", "number"), make_field("end", "number")],
            validations=[{
                "id": "range",
                "expression": "start <= end",
                "message": "Start must not be after end",
                "trigger": "on_blur",
            }],
        )
        engine = FormEngine(schema)
        engine.field_changed("start", 5)
        engine.field_changed("end", 1)
        assert engine.field_blurred("end") == [("range", "Start must not be after end")]

    @pytest.mark.parametrize("trigger", ["on_change", "on_blur"])
    def test_cross_field_sees_value_overrides(self, schema_factory, make_field, trigger):
        """Edit-time cross-field checks read values through rule overrides."""
        schema = schema_factory(
            [make_field("start", "number"), make_field("end", "number")],
            rules=[{"id": "cap", "target": "end", "action": {"SetValue": 10}, "condition": "start > 5"}],
            validations=[{
                "id": "range",
                "expression": "start <= end",
                "message": "Start must not be after end",
                "trigger": trigger,
            }],
        )
        engine = FormEngine(schema)
        engine.field_changed("end", 1)
        change = engine.field_changed("start", 8)

        assert change.states["end"].value_override == 10
        assert change.cross_field_errors == []
        assert engine.field_blurred("start") == []


class TestEngineValidation:
    """Tests for validation through the engine."""

    def test_validate_all(self, signup_schema):
        """A complete signup is valid."""
        engine = FormEngine(signup_schema)
        results = engine.validate_all({
            "email": "a@b.co",
            "password": "longenough1",
            "confirm_password": "longenough1",
            "age": 30,
        })
        assert results.is_valid is True

    def test_validate_all_reports_errors(self, signup_schema):
        """Missing required fields and bounds are reported per field."""
        engine = FormEngine(signup_schema)
        results = engine.validate_all({"email": "a@b.co", "age": 10})
        assert results.field_errors == {
            "password": ["This field is required"],
            "confirm_password": ["This field is required"],
            "age": ["Minimum value is 13"],
        }

    def test_custom_registry(self, schema_factory, make_field):
        """Engine validators come from the injected registry."""
        schema = schema_factory([
            make_field("code", validations=[{"type": "custom", "function_name": "upper"}]),
        ])
        registry = ValidatorRegistry({"upper": lambda v, ctx: None if v.isupper() else "Use capitals"})
        engine = FormEngine(schema, validators=registry)
        assert engine.validate_field("code", "abc") == ["Use capitals"]
        assert engine.validate_field("code", "ABC") == []


class TestEngineOptions:
    """Tests for options through the engine."""

    @pytest.mark.asyncio
    async def test_resolve_options_uses_form_data(self, signup_schema):
        """Dependency values come from the engine's form data."""
        source = StaticCitySource()
        engine = FormEngine(signup_schema, option_source=source)

        result = await engine.resolve_options("city")
        assert [o.value for o in result.options] == ["ch-1", "ch-2"]

        again = await engine.resolve_options("city")
        assert again.from_cache is True
        assert source.calls == 1
        assert engine.peek_options("city").options == result.options

    @pytest.mark.asyncio
    async def test_engine_cache_honors_clock(self, signup_schema):
        """The resolver uses the engine's cache and injected clock."""
        now = [0.0]
        source = StaticCitySource()
        engine = FormEngine(signup_schema, option_source=source, clock=lambda: now[0])
        assert engine.options.cache is engine.cache

        await engine.resolve_options("city")
        now[0] = 59.0
        await engine.resolve_options("city")
        assert source.calls == 1

        now[0] = 60.0
        result = await engine.resolve_options("city")
        assert result.from_cache is False
        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_static_options(self, signup_schema):
        """Static options need no source."""
        result = await FormEngine(signup_schema).resolve_options("country")
        assert [o.value for o in result.options] == ["ch", "de"]


class TestEngineSubmission:
    """Tests for submit and autosave through the engine."""

    def test_submit(self, signup_schema):
        """A valid form is sanitized and handed over."""
        received = []
        engine = FormEngine(signup_schema, submit_handler=received.append, user_id="u7")
        for field_id, value in {
            "email": "a@b.co",
            "password": "longenough1",
            "confirm_password": "longenough1",
            "age": 70,
            "senior_discount": True,
        }.items():
            engine.field_changed(field_id, value)

        submission = engine.submit()
        assert submission.status == SubmissionStatus.COMPLETED
        assert submission.user_id == "u7"
        assert received == [{
            "email": "a@b.co",
            "password": "longenough1",
            "confirm_password": "longenough1",
            "age": 70,
            "country": "ch",
            "senior_discount": True,
        }]

    def test_submit_drops_hidden_discount(self, signup_schema):
        """The senior discount is dropped for younger users."""
        received = []
        engine = FormEngine(signup_schema, submit_handler=received.append)
        submission = engine.submit({
            "email": "a@b.co",
            "password": "longenough1",
            "confirm_password": "longenough1",
            "age": 30,
            "senior_discount": True,
        })
        assert submission.status == SubmissionStatus.COMPLETED
        assert "senior_discount" not in received[0]

    def test_autosave(self, signup_schema):
        """Autosave stores the currently valid values."""
        saved = []
        engine = FormEngine(signup_schema, autosave_sink=saved.append)
        engine.field_changed("email", "a@b.co")
        engine.field_changed("password", "short")
        engine.autosave()
        assert saved == [{"email": "a@b.co", "country": "ch"}]
