"""Unit tests for submission and autosave.

Tests:
- Sanitization (overrides, defaults, hidden and non-input fields)
- Submit status transitions for invalid data, handler success and failure
- Terminal submissions cannot transition again
- Autosave keeps only field-valid values and never raises
"""

import pytest

from formlogic.errors import SubmissionStateError, SubmitHandlerError
from formlogic.runtime.dependency_graph import build_graph
from formlogic.runtime.engine import autosave, submit
from formlogic.runtime.rule_engine import resolve
from formlogic.runtime.submission import sanitize
from formlogic.schemas.results import FormSubmission, SubmissionStatus


class TestSanitize:
    """Tests for the data handed to submit handlers."""

    def test_drops_hidden_and_unknown(self, bonus_schema):
        """Hidden fields and keys outside the schema are dropped."""
        data = {"age": 40, "bonus": "gift", "extra": 1}
        states = resolve(bonus_schema, build_graph(bonus_schema), data)
        assert sanitize(bonus_schema, data, states) == {"age": 40}

    def test_applies_overrides_and_defaults(self, schema_factory, make_field):
        """Rule overrides win; missing values take defaults."""
        schema = schema_factory(
            [
                make_field("plan", "select", default_value="basic"),
                make_field("seats", "number"),
                make_field("region"),
                make_field("note"),
                make_field("banner", "display"),
            ],
            rules=[{"id": "team", "target": "seats", "action": {"SetValue": 10}, "condition": "plan = 'team'"}],
            defaults={"region": "eu"},
        )
        data = {"plan": "team", "seats": 3, "banner": "ignored"}
        states = resolve(schema, build_graph(schema), data)
        assert sanitize(schema, data, states) == {"plan": "team", "seats": 10, "region": "eu"}

    def test_default_value_fills_missing(self, schema_factory, make_field):
        """A field default_value fills an absent value."""
        schema = schema_factory([make_field("plan", "select", default_value="basic")])
        states = resolve(schema, build_graph(schema), {})
        assert sanitize(schema, {}, states) == {"plan": "basic"}


class TestSubmit:
    """Tests for submit outcomes."""

    def test_invalid_data_fails(self, total_schema):
        """Validation failures yield a failed submission and skip the handler."""
        calls = []
        submission = submit(total_schema, {"a": 2, "b": 3, "total": 4}, calls.append)
        assert submission.status == SubmissionStatus.FAILED
        assert submission.error == "Validation failed"
        assert submission.validation_results.global_errors == ["Total must equal a + b"]
        assert calls == []

    def test_valid_data_completes(self, total_schema):
        """Valid data reaches the handler and completes."""
        calls = []
        submission = submit(total_schema, {"a": 2, "b": 3, "total": 5}, calls.append, user_id="u1")
        assert submission.status == SubmissionStatus.COMPLETED
        assert submission.configuration_id == "test_form"
        assert submission.user_id == "u1"
        assert calls == [{"a": 2, "b": 3, "total": 5}]

    def test_no_handler_completes(self, total_schema):
        """Without a handler a valid submission completes."""
        submission = submit(total_schema, {"a": 1, "b": 1, "total": 2})
        assert submission.status == SubmissionStatus.COMPLETED
        assert submission.error is None

    def test_handler_failure(self, total_schema):
        """A raising handler yields a failed submission with the error."""
        def handler(data):
            raise RuntimeError("database unavailable")

        submission = submit(total_schema, {"a": 1, "b": 1, "total": 2}, handler)
        assert submission.status == SubmissionStatus.FAILED
        assert submission.error == "database unavailable"

    def test_handler_failure_keeps_submit_handler_error(self, total_schema):
        """SubmitHandlerError messages are kept as raised."""
        def handler(data):
            raise SubmitHandlerError("duplicate submission")

        submission = submit(total_schema, {"a": 1, "b": 1, "total": 2}, handler)
        assert submission.error == "duplicate submission"

    def test_form_data_untouched(self, total_schema):
        """Handlers receive a copy; the caller's data is never mutated."""
        data = {"a": 1, "b": 1, "total": 2, "tags": ["x"]}

        def handler(received):
            received["a"] = 99

        submit(total_schema, data, handler)
        assert data == {"a": 1, "b": 1, "total": 2, "tags": ["x"]}

    def test_hidden_required_field_does_not_block(self, bonus_schema):
        """A required field hidden by a rule does not fail submission."""
        calls = []
        submission = submit(bonus_schema, {"age": 30, "bonus": "stale"}, calls.append)
        assert submission.status == SubmissionStatus.COMPLETED
        assert calls == [{"age": 30}]


class TestSubmissionRecord:
    """Tests for FormSubmission transitions."""

    def test_transition_returns_copy(self):
        """transition does not modify the original record."""
        pending = FormSubmission(configuration_id="form")
        done = pending.transition(SubmissionStatus.COMPLETED)
        assert pending.status == SubmissionStatus.PROCESSING
        assert done.status == SubmissionStatus.COMPLETED
        assert done.id == pending.id
        assert done.updated_at >= pending.updated_at

    @pytest.mark.parametrize(
        "status",
        [SubmissionStatus.COMPLETED, SubmissionStatus.FAILED, SubmissionStatus.CANCELLED],
    )
    def test_terminal_status_is_final(self, status):
        """A terminal submission cannot move again."""
        record = FormSubmission(configuration_id="form", status=status)
        with pytest.raises(SubmissionStateError):
            record.transition(SubmissionStatus.PROCESSING)

    def test_ids_are_unique(self):
        """Each record gets its own id."""
        assert FormSubmission(configuration_id="f").id != FormSubmission(configuration_id="f").id


class TestAutosave:
    """Tests for best-effort autosave."""

    def test_saves_valid_fields_only(self, schema_factory, make_field):
        """Values failing field validation are left out."""
        schema = schema_factory([
            make_field("email", "email"),
            make_field("age", {"type": "number", "config": {"min": 0}}),
            make_field("name"),
        ])
        saved = []
        autosave(schema, {"email": "not-an-email", "age": 30, "ghost": 1}, saved.append)
        assert saved == [{"age": 30}]

    def test_sink_errors_are_swallowed(self, bonus_schema):
        """A failing sink never raises."""
        def sink(data):
            raise IOError("disk full")

        autosave(bonus_schema, {"age": 30}, sink)

    def test_partial_required_data_is_saved(self, bonus_schema):
        """Required fields that are still empty are simply skipped."""
        saved = []
        autosave(bonus_schema, {"age": 30, "bonus": ""}, saved.append)
        assert saved == [{"age": 30}]
