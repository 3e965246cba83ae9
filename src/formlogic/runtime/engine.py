"""
Form engine facade.

FormEngine wires the components for one schema: it owns the dependency graph
(built once), the options cache and the last stable field-state snapshot.
The module-level functions expose the same operations statelessly.

Example:
    >>> engine = FormEngine(load_schema("signup.yaml"))
    >>> states = engine.resolve_field_states({"age": 70})
    >>> states["bonus"].is_visible
    True
"""

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from formlogic.config.settings import EngineConfig
from formlogic.errors import UnknownFieldError, UnstableRuleError
from formlogic.runtime.dependency_graph import DependencyGraph, build_graph
from formlogic.runtime.evaluator import ExpressionEvaluator
from formlogic.runtime.options import (
    OptionSource,
    OptionsCache,
    OptionsResolver,
    resolve_options,
)
from formlogic.runtime.rule_engine import RuleEngine, default_states
from formlogic.runtime.submission import (
    AutosaveSink,
    SubmissionCoordinator,
    SubmitHandler,
    resolve_states_or_default,
)
from formlogic.runtime.validation import ValidationEngine, ValidatorRegistry, effective_data
from formlogic.schemas.configuration import (
    ConfigurationSchema,
    FieldDefinition,
    TriggerKind,
)
from formlogic.schemas.results import (
    FormSubmission,
    OptionsResult,
    ResolvedFieldState,
    ValidationResults,
)

logger = logging.getLogger(__name__)


@dataclass
class FieldChange:
    """Outcome of a single field edit."""

    field_id: str
    states: Dict[str, ResolvedFieldState]
    field_errors: List[str] = field(default_factory=list)
    cross_field_errors: List[Tuple[str, str]] = field(default_factory=list)


class FormEngine:
    """Stateful engine for one schema and one form session."""

    def __init__(
        self,
        schema: ConfigurationSchema,
        config: Optional[EngineConfig] = None,
        validators: Optional[ValidatorRegistry] = None,
        option_source: Optional[OptionSource] = None,
        submit_handler: Optional[SubmitHandler] = None,
        autosave_sink: Optional[AutosaveSink] = None,
        user_id: Optional[str] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.schema = schema
        self.config = config or EngineConfig()
        self.graph: DependencyGraph = build_graph(schema)

        evaluator = ExpressionEvaluator()
        self.rules = RuleEngine(evaluator, self.config.max_resolution_passes)
        self.validation = ValidationEngine(
            validators,
            evaluator,
            skip_incomplete_on_change=self.config.skip_incomplete_cross_field_on_change,
        )
        self.cache = OptionsCache(clock or time.monotonic, self.config.cache_max_entries)
        self.options = OptionsResolver(
            option_source, self.cache, user_id, self.config.default_cache_duration
        )
        self.submissions = SubmissionCoordinator(
            schema,
            self.validation,
            self.resolve_field_states,
            submit_handler,
            autosave_sink,
            user_id,
        )

        self._fields = schema.field_map()
        self._form_data: Dict[str, Any] = dict(schema.defaults)
        self._stable: Optional[Dict[str, ResolvedFieldState]] = None
        # Form data the stable snapshot was resolved from
        self._stable_data: Dict[str, Any] = {}

    @property
    def form_data(self) -> Dict[str, Any]:
        return dict(self._form_data)

    @property
    def last_stable_states(self) -> Optional[Dict[str, ResolvedFieldState]]:
        return dict(self._stable) if self._stable is not None else None

    def _field(self, field_id: str) -> FieldDefinition:
        field_def = self._fields.get(field_id)
        if field_def is None:
            raise UnknownFieldError(field_id, "Engine call")
        return field_def

    def resolve_field_states(
        self,
        form_data: Mapping[str, Any],
        changed_field_id: Optional[str] = None,
    ) -> Dict[str, ResolvedFieldState]:
        """Resolve every field's state; falls back to the last stable snapshot
        when the rules do not settle.

        With `changed_field_id`, only affected fields are re-resolved, and only
        if the snapshot was taken from the same data apart from that field;
        otherwise every field is resolved.
        """
        previous = None
        if changed_field_id is not None and self._stable is not None:
            if _without(self._stable_data, changed_field_id) == _without(form_data, changed_field_id):
                previous = self._stable
            else:
                logger.debug("Snapshot is from other form data; resolving all fields")
        try:
            states = self.rules.resolve(
                self.schema, self.graph, form_data, changed_field_id, previous
            )
        except UnstableRuleError as e:
            logger.warning(f"{e}; keeping last stable field states")
            if self._stable is not None:
                return dict(self._stable)
            return default_states(self.schema)
        self._stable = states
        self._stable_data = copy.deepcopy(dict(form_data))
        return dict(states)

    def field_changed(self, field_id: str, value: Any) -> FieldChange:
        """Record an edit, re-resolve affected fields and run on-change checks."""
        field_def = self._field(field_id)
        self._form_data[field_id] = value
        states = self.resolve_field_states(self._form_data, field_id)

        state = states[field_id]
        errors: List[str] = []
        if state.is_visible and state.is_enabled:
            errors = self.validation.validate_field(
                field_def, value, self._form_data, state.options_override
            )
        cross = self._cross_field_for(field_id, TriggerKind.ON_CHANGE, states)
        return FieldChange(field_id, states, errors, cross)

    def _cross_field_for(
        self,
        field_id: str,
        trigger: TriggerKind,
        states: Mapping[str, ResolvedFieldState],
    ) -> List[Tuple[str, str]]:
        relevant = {validation.id for validation in self.graph.validations_for(field_id)}
        data = effective_data(self._form_data, states)
        return [
            (validation_id, message)
            for validation_id, message in self.validation.validate_cross_field(
                self.schema, data, trigger
            )
            if validation_id in relevant
        ]

    def field_blurred(self, field_id: str) -> List[Tuple[str, str]]:
        """On-blur cross-field validations involving `field_id`."""
        self._field(field_id)
        states = self.resolve_field_states(self._form_data)
        return self._cross_field_for(field_id, TriggerKind.ON_BLUR, states)

    def validate_field(self, field_id: str, value: Any, form_data: Optional[Mapping[str, Any]] = None) -> List[str]:
        return self.validation.validate_field(
            self._field(field_id), value, form_data if form_data is not None else self._form_data
        )

    def validate_cross_field(
        self, form_data: Mapping[str, Any], trigger: Any = TriggerKind.ON_SUBMIT
    ) -> List[Tuple[str, str]]:
        return self.validation.validate_cross_field(self.schema, form_data, trigger)

    def validate_all(self, form_data: Mapping[str, Any]) -> ValidationResults:
        states = self.resolve_field_states(form_data)
        return self.validation.validate_all(self.schema, form_data, states)

    async def resolve_options(
        self, field_id: str, form_data: Optional[Mapping[str, Any]] = None
    ) -> OptionsResult:
        data = form_data if form_data is not None else self._form_data
        return await self.options.resolve(self._field(field_id), data)

    def peek_options(
        self, field_id: str, form_data: Optional[Mapping[str, Any]] = None
    ) -> OptionsResult:
        data = form_data if form_data is not None else self._form_data
        return self.options.peek(self._field(field_id), data)

    def submit(self, form_data: Optional[Mapping[str, Any]] = None) -> FormSubmission:
        return self.submissions.submit(form_data if form_data is not None else self._form_data)

    def autosave(self, form_data: Optional[Mapping[str, Any]] = None) -> None:
        self.submissions.autosave(form_data if form_data is not None else self._form_data)


# ── Stateless surface ────────────────────────────────────────────────


def resolve_field_states(
    schema: ConfigurationSchema,
    form_data: Mapping[str, Any],
    changed_field_id: Optional[str] = None,
    graph: Optional[DependencyGraph] = None,
    previous: Optional[Mapping[str, ResolvedFieldState]] = None,
    config: Optional[EngineConfig] = None,
) -> Dict[str, ResolvedFieldState]:
    """Resolve field states.

    If the rules do not settle, a warning is logged and `previous` (or the
    static default states) is returned instead.
    """
    config = config or EngineConfig()
    try:
        return RuleEngine(max_passes=config.max_resolution_passes).resolve(
            schema, graph or build_graph(schema), form_data, changed_field_id, previous
        )
    except UnstableRuleError as e:
        logger.warning(f"{e}; using {'previous' if previous else 'static'} field states")
        if previous:
            return dict(previous)
        return default_states(schema)


def _without(data: Mapping[str, Any], field_id: str) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key != field_id}


def validate_field(
    field: FieldDefinition,
    value: Any,
    form_data: Optional[Mapping[str, Any]] = None,
    registry: Optional[ValidatorRegistry] = None,
) -> List[str]:
    return ValidationEngine(registry).validate_field(field, value, form_data)


def validate_cross_field(
    schema: ConfigurationSchema,
    form_data: Mapping[str, Any],
    trigger: Any = TriggerKind.ON_SUBMIT,
    registry: Optional[ValidatorRegistry] = None,
) -> List[Tuple[str, str]]:
    return ValidationEngine(registry).validate_cross_field(schema, form_data, trigger)


def validate_all(
    schema: ConfigurationSchema,
    form_data: Mapping[str, Any],
    states: Optional[Mapping[str, ResolvedFieldState]] = None,
    registry: Optional[ValidatorRegistry] = None,
) -> ValidationResults:
    return ValidationEngine(registry).validate_all(schema, form_data, states)


def submit(
    schema: ConfigurationSchema,
    form_data: Mapping[str, Any],
    submit_handler: Optional[SubmitHandler] = None,
    registry: Optional[ValidatorRegistry] = None,
    user_id: Optional[str] = None,
) -> FormSubmission:
    coordinator = SubmissionCoordinator(
        schema,
        ValidationEngine(registry),
        resolve_states_or_default(schema),
        submit_handler=submit_handler,
        user_id=user_id,
    )
    return coordinator.submit(form_data)


def autosave(
    schema: ConfigurationSchema,
    form_data: Mapping[str, Any],
    autosave_sink: AutosaveSink,
    registry: Optional[ValidatorRegistry] = None,
) -> None:
    coordinator = SubmissionCoordinator(
        schema,
        ValidationEngine(registry),
        resolve_states_or_default(schema),
        autosave_sink=autosave_sink,
    )
    coordinator.autosave(form_data)


__all__ = [
    "FieldChange",
    "FormEngine",
    "autosave",
    "build_graph",
    "resolve_field_states",
    "resolve_options",
    "submit",
    "validate_all",
    "validate_cross_field",
    "validate_field",
]
