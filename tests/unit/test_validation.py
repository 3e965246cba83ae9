"""Unit tests for the validation engine.

Tests:
- Required short-circuit and built-in rule messages
- Type-specific checks (numbers, email, URL, dates, options)
- Custom validators through the registry
- Cross-field validations and triggers
- Whole-form validation against resolved field state
"""

import logging

import pytest

from formlogic.runtime.dependency_graph import build_graph
from formlogic.runtime.rule_engine import resolve
from formlogic.runtime.validation import (
    ValidationEngine,
    ValidatorRegistry,
    effective_data,
    is_valid_email,
    is_valid_url,
)
from formlogic.schemas.configuration import FieldDefinition, OptionItem


def _field(field_type="text", **kwargs):
    return FieldDefinition(id=kwargs.pop("id", "f"), label="F", field_type=field_type, **kwargs)


@pytest.fixture
def engine():
    return ValidationEngine()


class TestRequired:
    """Tests for required handling."""

    @pytest.mark.parametrize("value", [None, "", "  ", []])
    def test_required_empty(self, engine, value):
        """An empty required field reports only the required message."""
        field = _field(required=True, validations=[{"type": "min_length", "length": 3}])
        assert engine.validate_field(field, value) == ["This field is required"]

    def test_required_rule_message(self, engine):
        """A required rule can carry its own message."""
        field = _field(validations=[{"type": "required", "message": "Name please"}])
        assert engine.validate_field(field, "") == ["Name please"]

    def test_optional_empty_is_valid(self, engine):
        """Empty optional fields skip every other rule."""
        field = _field(validations=[{"type": "min_length", "length": 3}])
        assert engine.validate_field(field, "") == []

    def test_zero_is_a_value(self, engine):
        """0 satisfies required."""
        assert engine.validate_field(_field("number", required=True), 0) == []


class TestBuiltinRules:
    """Tests for the built-in validation rule types."""

    def test_length_rules(self, engine):
        """min_length and max_length report their bounds."""
        field = _field(validations=[
            {"type": "min_length", "length": 3},
            {"type": "MaxLength", "config": {"length": 5}},
        ])
        assert engine.validate_field(field, "ab") == ["Minimum length is 3 characters"]
        assert engine.validate_field(field, "abcdef") == ["Maximum length is 5 characters"]
        assert engine.validate_field(field, "abcd") == []

    def test_pattern_rule(self, engine):
        """pattern rules search the value."""
        field = _field(validations=[{"type": "pattern", "pattern": r"^\d{4}$"}])
        assert engine.validate_field(field, "12a4") == ["Value does not match required pattern"]
        assert engine.validate_field(field, "1234") == []

    def test_pattern_flags(self, engine):
        """Pattern flags are honored."""
        field = _field(validations=[{"type": "pattern", "pattern": "^abc$", "flags": "i"}])
        assert engine.validate_field(field, "ABC") == []

    def test_min_max_rules(self, engine):
        """min and max render whole bounds without a decimal point."""
        field = _field("number", validations=[{"type": "min", "value": 18}, {"type": "max", "value": 99.5}])
        assert engine.validate_field(field, 17) == ["Minimum value is 18"]
        assert engine.validate_field(field, 100) == ["Maximum value is 99.5"]

    def test_custom_rule_message(self, engine):
        """A rule message replaces the default."""
        field = _field(validations=[{"type": "min_length", "length": 3, "message": "Too short"}])
        assert engine.validate_field(field, "a") == ["Too short"]

    def test_email_rule(self, engine):
        """email rule checks the address shape."""
        field = _field(validations=[{"type": "email"}])
        assert engine.validate_field(field, "nope") == ["Please enter a valid email address"]
        assert engine.validate_field(field, "a@b.co") == []

    def test_cross_field_rule(self, engine):
        """A field-level cross_field rule reads other fields."""
        field = _field(
            id="confirm",
            validations=[{"type": "cross_field", "expression": "$self = password", "message": "Mismatch"}],
        )
        assert engine.validate_field(field, "x", {"password": "y", "confirm": "x"}) == ["Mismatch"]
        assert engine.validate_field(field, "y", {"password": "y", "confirm": "y"}) == []

    def test_messages_are_not_duplicated(self, engine):
        """The same message is reported once."""
        field = _field(
            {"type": "text", "config": {"min_length": 3}},
            validations=[{"type": "min_length", "length": 3}],
        )
        assert engine.validate_field(field, "a") == ["Minimum length is 3 characters"]


class TestTypeChecks:
    """Tests for checks implied by the field type."""

    def test_number(self, engine):
        """Number fields need numeric values and honor config bounds."""
        field = _field({"type": "number", "config": {"min": 0, "max": 10}})
        assert engine.validate_field(field, "abc") == ["Please enter a valid number"]
        assert engine.validate_field(field, "11") == ["Maximum value is 10"]
        assert engine.validate_field(field, -1) == ["Minimum value is 0"]
        assert engine.validate_field(field, 5) == []

    def test_integer(self, engine):
        """Integer fields reject fractions."""
        assert engine.validate_field(_field("integer"), 2.5) == ["Please enter a whole number"]
        assert engine.validate_field(_field("integer"), 2.0) == []

    def test_rating(self, engine):
        """Ratings are bounded by max_rating."""
        assert engine.validate_field(_field("rating"), 6) == ["Maximum value is 5"]

    def test_email_type(self, engine):
        """Email fields validate the address."""
        assert engine.validate_field(_field("email"), "a@b") == ["Please enter a valid email address"]

    def test_url_type(self, engine):
        """URL fields validate the URL."""
        assert engine.validate_field(_field("url"), "not a url") == ["Please enter a valid URL"]
        assert engine.validate_field(_field("url"), "https://example.com/path") == []

    def test_date(self, engine):
        """Dates parse with the configured format and respect bounds."""
        field = _field({"type": "date", "config": {"min_date": "2024-01-01"}})
        assert engine.validate_field(field, "2024-13-01") == ["Please enter a valid date"]
        assert engine.validate_field(field, "2023-12-31") == ["Date must be on or after 2024-01-01"]
        assert engine.validate_field(field, "2024-06-01") == []

    def test_time(self, engine):
        """Times parse with the configured format."""
        assert engine.validate_field(_field("time"), "25:00") == ["Please enter a valid time"]
        assert engine.validate_field(_field("time"), "09:30") == []

    def test_select_static_options(self, engine):
        """Selects accept only offered, enabled options."""
        field = _field(
            "select",
            options={"static_options": [
                {"value": "a", "label": "A"},
                {"value": "b", "label": "B", "disabled": True},
            ]},
        )
        assert engine.validate_field(field, "a") == []
        assert engine.validate_field(field, "b") == ["Please select a valid option"]
        assert engine.validate_field(field, "z") == ["Please select a valid option"]

    def test_select_options_override(self, engine):
        """Options passed in replace the static list."""
        field = _field("select", options={"static_options": [{"value": "a", "label": "A"}]})
        offered = [OptionItem(value="z", label="Z")]
        assert engine.validate_field(field, "z", options=offered) == []

    def test_select_allow_custom(self, engine):
        """allow_custom accepts values outside the list."""
        field = _field("select", options={"static_options": [{"value": "a", "label": "A"}], "allow_custom": True})
        assert engine.validate_field(field, "anything") == []

    def test_multi_select(self, engine):
        """Multi-selects check every item and max_selections."""
        field = _field(
            {"type": "multi_select", "config": {"max_selections": 2}},
            options={"static_options": [{"value": v, "label": v} for v in "abc"]},
        )
        assert engine.validate_field(field, ["a", "z"]) == ["Please select valid options"]
        assert engine.validate_field(field, ["a", "b", "c"]) == ["Select at most 2 options"]
        assert engine.validate_field(field, "a") == ["Please select valid options"]

    def test_field_array_bounds(self, engine):
        """Field arrays check item counts."""
        field = _field({"type": "field_array", "config": {"min_items": 2, "max_items": 3}})
        assert engine.validate_field(field, [1]) == ["At least 2 items are required"]
        assert engine.validate_field(field, [1, 2, 3, 4]) == ["At most 3 items are allowed"]


class TestValidators:
    """Tests for email and URL helpers."""

    @pytest.mark.parametrize("value", ["a@b.co", "first.last@example.org"])
    def test_valid_emails(self, value):
        assert is_valid_email(value)

    @pytest.mark.parametrize("value", ["a@b", "a b@c.de", "@b.co", "a@.co x"])
    def test_invalid_emails(self, value):
        assert not is_valid_email(value)

    def test_urls(self):
        assert is_valid_url("http://localhost:8000")
        assert not is_valid_url("example")


class TestCustomValidators:
    """Tests for the validator registry."""

    def test_registered_validator(self):
        """Custom validators receive the value and parameters."""
        registry = ValidatorRegistry()

        @registry.register("divisible")
        def divisible(value, context):
            return None if int(value) % context["param_by"] == 0 else "Not divisible"

        engine = ValidationEngine(registry)
        field = _field(
            "number",
            validations=[{"type": "custom", "function_name": "divisible", "parameters": {"by": 3}}],
        )
        assert engine.validate_field(field, 9) == []
        assert engine.validate_field(field, 10) == ["Not divisible"]
        assert "divisible" in registry
        assert registry.names() == ["divisible"]

    def test_validator_sees_form_data(self):
        """The context holds the rest of the form."""
        registry = ValidatorRegistry({"after_start": lambda v, ctx: None if v > ctx["start"] else "Too early"})
        field = _field("number", validations=[{"type": "custom", "function_name": "after_start"}])
        engine = ValidationEngine(registry)
        assert engine.validate_field(field, 5, {"start": 3}) == []
        assert engine.validate_field(field, 2, {"start": 3}) == ["Too early"]

    def test_unknown_validator(self, engine, caplog):
        """An unregistered name is reported, not raised."""
        field = _field(validations=[{"type": "custom", "function_name": "missing"}])
        with caplog.at_level(logging.WARNING):
            assert engine.validate_field(field, "x") == ["Unknown validation function: missing"]
        assert "missing" in caplog.text

    def test_raising_validator(self):
        """A validator that raises becomes a failure message."""
        registry = ValidatorRegistry()
        registry.register("boom", lambda value, context: 1 / 0)
        field = _field(validations=[{"type": "custom", "function_name": "boom"}])
        assert ValidationEngine(registry).validate_field(field, "x") == [
            "Validation function 'boom' failed"
        ]


class TestCrossField:
    """Tests for cross-field validations."""

    def test_total_mismatch(self, engine, total_schema):
        """A failing expression reports the validation message."""
        errors = engine.validate_cross_field(total_schema, {"a": 2, "b": 3, "total": 4})
        assert errors == [("total_matches", "Total must equal a + b")]

    def test_total_matches(self, engine, total_schema):
        """A passing expression reports nothing."""
        assert engine.validate_cross_field(total_schema, {"a": 2, "b": 3, "total": 5}) == []

    def test_trigger_filter(self, engine, total_schema):
        """Only validations declared for the trigger run."""
        assert engine.validate_cross_field(total_schema, {"a": 2, "b": 3, "total": 4}, "on_change") == []

    def test_incomplete_skipped_on_change(self, schema_factory, make_field):
        """Non-submit validations wait until every involved field is filled."""
        schema = schema_factory(
            [make_field("password"), make_field("confirm")],
            validations=[{
                "id": "match",
                "expression": "password = confirm",
                "message": "Passwords do not match",
                "trigger": "on_blur",
            }],
        )
        engine = ValidationEngine()
        assert engine.validate_cross_field(schema, {"password": "x"}, "on_blur") == []
        assert engine.validate_cross_field(schema, {"password": "x", "confirm": "y"}, "on_blur") == [
            ("match", "Passwords do not match")
        ]
        eager = ValidationEngine(skip_incomplete_on_change=False)
        assert eager.validate_cross_field(schema, {"password": "x"}, "on_blur") == [
            ("match", "Passwords do not match")
        ]

    def test_custom_trigger(self, schema_factory, make_field):
        """Custom triggers match by name."""
        schema = schema_factory(
            [make_field("a", "number"), make_field("b", "number")],
            validations=[{
                "id": "order",
                "expression": "a < b",
                "message": "a must be below b",
                "trigger": {"custom": "review"},
            }],
        )
        engine = ValidationEngine()
        data = {"a": 5, "b": 1}
        assert engine.validate_cross_field(schema, data, {"custom": "review"}) == [("order", "a must be below b")]
        assert engine.validate_cross_field(schema, data, {"custom": "other"}) == []

    def test_evaluation_error_fails_validation(self, schema_factory, make_field, caplog):
        """An expression that cannot be evaluated fails with a generic message."""
        schema = schema_factory(
            [make_field("blob", "json")],
            validations=[{"id": "positive", "name": "Positive blob", "expression": "blob > 0", "message": "m"}],
        )
        with caplog.at_level(logging.WARNING):
            errors = ValidationEngine().validate_cross_field(schema, {"blob": "text"})
        assert errors == [("positive", "Validation 'Positive blob' failed")]
        assert "could not be evaluated" in caplog.text

    def test_invalid_trigger(self, engine, total_schema):
        """Unknown trigger spellings are rejected."""
        with pytest.raises(ValueError):
            engine.validate_cross_field(total_schema, {}, "on_hover")


class TestValidateAll:
    """Tests for whole-form validation."""

    def test_total_global_error(self, engine, total_schema):
        """Cross-field failures become global errors."""
        results = engine.validate_all(total_schema, {"a": 2, "b": 3, "total": 4})
        assert results.is_valid is False
        assert results.global_errors == ["Total must equal a + b"]
        assert results.field_errors == {}

    def test_total_valid(self, engine, total_schema):
        """Matching totals pass."""
        results = engine.validate_all(total_schema, {"a": 2, "b": 3, "total": 5})
        assert results.is_valid is True
        assert not results.has_errors()

    def test_hidden_required_field_skipped(self, engine, bonus_schema):
        """A hidden required field never produces an error."""
        results = engine.validate_all(bonus_schema, {"age": 40})
        assert "bonus" not in results.field_errors
        assert results.is_valid is True

    def test_visible_required_field_reported(self, engine, bonus_schema):
        """Once shown, the required field is enforced."""
        results = engine.validate_all(bonus_schema, {"age": 70})
        assert results.field_errors == {"bonus": ["This field is required"]}

    def test_explicit_states(self, engine, bonus_schema):
        """Precomputed states are used as given."""
        states = resolve(bonus_schema, build_graph(bonus_schema), {"age": 40})
        results = engine.validate_all(bonus_schema, {"age": 40}, states)
        assert results.is_valid is True

    def test_disabled_field_skipped(self, engine, schema_factory, make_field):
        """Disabled fields are not validated."""
        schema = schema_factory([make_field("code", required=True, display={"disabled": True})])
        assert engine.validate_all(schema, {}).is_valid is True

    def test_error_override_reported(self, engine, schema_factory, make_field):
        """show_error on a visible field becomes a field error."""
        schema = schema_factory(
            [make_field("age", "number"), make_field("consent", "checkbox")],
            rules=[{"id": "minor", "target": "consent", "action": {"ShowError": "Guardian consent needed"},
                    "condition": "age < 18"}],
        )
        results = engine.validate_all(schema, {"age": 12, "consent": True})
        assert results.field_errors == {"consent": ["Guardian consent needed"]}

    def test_cross_field_on_hidden_field_skipped(self, engine, schema_factory, make_field):
        """Validations reading a hidden field do not run."""
        schema = schema_factory(
            [make_field("single", "checkbox"), make_field("partner_age", "number"), make_field("age", "number")],
            rules=[{"id": "hide_partner", "target": "partner_age", "action": "hide", "condition": "single = true"}],
            validations=[{"id": "older", "expression": "age > partner_age", "message": "Too young"}],
        )
        results = engine.validate_all(schema, {"single": True, "age": 20, "partner_age": 30})
        assert results.is_valid is True
        results = engine.validate_all(schema, {"single": False, "age": 20, "partner_age": 30})
        assert results.global_errors == ["Too young"]

    def test_value_override_validated(self, engine, schema_factory, make_field):
        """Validation sees rule value overrides."""
        schema = schema_factory(
            [make_field("auto", "checkbox"), make_field("count", {"type": "number", "config": {"max": 5}})],
            rules=[{"id": "set", "target": "count", "action": {"SetValue": 9}, "condition": "auto = true"}],
        )
        results = engine.validate_all(schema, {"auto": True, "count": 1})
        assert results.field_errors == {"count": ["Maximum value is 5"]}

    def test_non_input_fields_skipped(self, engine, schema_factory, make_field):
        """Display and divider fields are never validated."""
        schema = schema_factory([make_field("banner", "display", required=True), make_field("line", "divider")])
        assert engine.validate_all(schema, {}).is_valid is True

    def test_unstable_rules_fall_back_with_warning(self, engine, schema_factory, make_field):
        """Oscillating rules validate against static state and warn."""
        schema = schema_factory(
            [make_field("x", "number", required=True)],
            rules=[{"id": "fill", "target": "x", "action": {"SetValue": 1}, "condition": "is_empty(x)"}],
        )
        results = engine.validate_all(schema, {})
        assert results.field_errors == {"x": ["This field is required"]}
        assert any("did not stabilise" in w for w in results.warnings)


class TestEffectiveData:
    """Tests for effective_data."""

    def test_applies_overrides(self, bonus_schema):
        """Overrides replace submitted values; the input is untouched."""
        from formlogic.schemas.results import ResolvedFieldState

        data = {"age": 70, "bonus": "x"}
        states = {"bonus": ResolvedFieldState(field_id="bonus", value_override=None, has_value_override=True)}
        assert effective_data(data, states) == {"age": 70, "bonus": None}
        assert data == {"age": 70, "bonus": "x"}
