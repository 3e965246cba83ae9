"""
Submission coordinator.

Submit: resolve field states, validate the whole form, then hand sanitized
data to the host's submit handler. Handler failures become a `failed`
submission; they never propagate and never touch the caller's form data.

Autosave: best-effort, field-level validation only, never raises.
"""

import copy
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from formlogic.errors import SubmitHandlerError, UnstableRuleError
from formlogic.runtime.validation import ValidationEngine
from formlogic.schemas.configuration import ConfigurationSchema
from formlogic.schemas.results import (
    FormSubmission,
    ResolvedFieldState,
    SubmissionStatus,
)

logger = logging.getLogger(__name__)

SubmitHandler = Callable[[Dict[str, Any]], Any]
AutosaveSink = Callable[[Dict[str, Any]], Any]
StateResolver = Callable[[Mapping[str, Any]], Mapping[str, ResolvedFieldState]]


def sanitize(
    schema: ConfigurationSchema,
    form_data: Mapping[str, Any],
    states: Mapping[str, ResolvedFieldState],
) -> Dict[str, Any]:
    """Data to hand to the submit handler.

    Keeps schema fields only, applies rule value overrides, fills defaults
    for missing values, and drops hidden fields and non-input types.
    """
    sanitized: Dict[str, Any] = {}
    for field in schema.iter_fields():
        if not field.kind.is_input:
            continue
        state = states.get(field.id)
        if state is not None and not state.is_visible:
            continue
        if state is not None and state.has_value_override:
            value = state.value_override
        else:
            value = form_data.get(field.id)
        if value is None:
            value = schema.defaults.get(field.id, field.default_value)
        if value is not None:
            sanitized[field.id] = copy.deepcopy(value)
    return sanitized


class SubmissionCoordinator:
    """Drives submit and autosave for one schema."""

    def __init__(
        self,
        schema: ConfigurationSchema,
        validation: ValidationEngine,
        resolve_states: StateResolver,
        submit_handler: Optional[SubmitHandler] = None,
        autosave_sink: Optional[AutosaveSink] = None,
        user_id: Optional[str] = None,
    ):
        self.schema = schema
        self.validation = validation
        self.resolve_states = resolve_states
        self.submit_handler = submit_handler
        self.autosave_sink = autosave_sink
        self.user_id = user_id

    def submit(self, form_data: Mapping[str, Any]) -> FormSubmission:
        """Validate and submit a form.

        Returns:
            FormSubmission in `failed` (invalid data or handler error) or
            `completed` status
        """
        data = copy.deepcopy(dict(form_data))
        states = self.resolve_states(data)
        results = self.validation.validate_all(self.schema, data, states)

        if not results.is_valid:
            logger.info(
                f"Submission of '{self.schema.id}' rejected: "
                f"{len(results.field_errors)} field error(s), {len(results.global_errors)} global error(s)"
            )
            return FormSubmission(
                configuration_id=self.schema.id,
                user_id=self.user_id,
                form_data=data,
                validation_results=results,
                status=SubmissionStatus.FAILED,
                error="Validation failed",
            )

        submission = FormSubmission(
            configuration_id=self.schema.id,
            user_id=self.user_id,
            form_data=sanitize(self.schema, data, states),
            validation_results=results,
            status=SubmissionStatus.PROCESSING,
        )

        if self.submit_handler is None:
            logger.debug("No submit handler configured; completing submission")
            return submission.transition(SubmissionStatus.COMPLETED)

        try:
            self.submit_handler(copy.deepcopy(submission.form_data))
        except Exception as e:
            error = e if isinstance(e, SubmitHandlerError) else SubmitHandlerError(str(e))
            logger.warning(f"Submit handler failed for '{self.schema.id}': {error}")
            return submission.transition(SubmissionStatus.FAILED, error=str(error))

        logger.info(f"Submission {submission.id} of '{self.schema.id}' completed")
        return submission.transition(SubmissionStatus.COMPLETED)

    def autosave(self, form_data: Mapping[str, Any]) -> None:
        """Save whatever currently passes field-level validation."""
        if self.autosave_sink is None:
            return
        try:
            data = dict(form_data)
            saved: Dict[str, Any] = {}
            for field in self.schema.iter_fields():
                if field.id not in data or not field.kind.is_input:
                    continue
                if self.validation.validate_field(field, data[field.id], data):
                    continue
                saved[field.id] = copy.deepcopy(data[field.id])
            self.autosave_sink(saved)
        except Exception as e:
            logger.warning(f"Autosave of '{self.schema.id}' failed: {e}")


def resolve_states_or_default(
    schema: ConfigurationSchema,
) -> StateResolver:
    """State resolver for standalone use: fresh graph, static states when unstable."""
    from formlogic.runtime.dependency_graph import build_graph
    from formlogic.runtime.rule_engine import RuleEngine, default_states

    graph = build_graph(schema)
    engine = RuleEngine()

    def resolve(form_data: Mapping[str, Any]) -> Mapping[str, ResolvedFieldState]:
        try:
            return engine.resolve(schema, graph, form_data)
        except UnstableRuleError as e:
            logger.warning(f"Using static field states: {e}")
            return default_states(schema)

    return resolve
