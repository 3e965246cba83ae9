"""
Conditional rule engine.

Turns (schema, form data) into a ResolvedFieldState per field. Each field
starts from its declared display flags and visibility conditions, then every
conditional rule targeting it is applied in schema order; a rule whose
condition holds overwrites only the attribute its action controls.

Value and option overrides feed back into the working data so later fields
(and later passes) see them. Passes repeat until the overrides stop changing;
if they still change after `max_passes`, UnstableRuleError is raised.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from formlogic.errors import ExpressionError, UnstableRuleError
from formlogic.runtime.dependency_graph import DependencyGraph
from formlogic.runtime.evaluator import EvaluationContext, ExpressionEvaluator, IEvaluator
from formlogic.schemas.configuration import (
    ActionType,
    ConditionalAction,
    ConditionalRule,
    ConfigurationSchema,
    FieldDefinition,
    FieldSection,
    OptionItem,
)
from formlogic.schemas.expression import LogicNode
from formlogic.schemas.results import ResolvedFieldState

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class _FieldState:
    """Mutable accumulator for one field during a pass."""

    field_id: str
    visible: bool = True
    enabled: bool = True
    value_override: Any = None
    has_value_override: bool = False
    options_override: Optional[List[OptionItem]] = None
    error_override: Optional[str] = None
    applied_rules: List[str] = field(default_factory=list)

    def freeze(self) -> ResolvedFieldState:
        return ResolvedFieldState(
            field_id=self.field_id,
            is_visible=self.visible,
            # A hidden field can never be interacted with
            is_enabled=self.enabled and self.visible,
            value_override=self.value_override,
            has_value_override=self.has_value_override,
            options_override=self.options_override,
            error_override=self.error_override,
            applied_rules=list(self.applied_rules),
        )


def _show(state: _FieldState, action: ConditionalAction) -> None:
    state.visible = True


def _hide(state: _FieldState, action: ConditionalAction) -> None:
    state.visible = False


def _enable(state: _FieldState, action: ConditionalAction) -> None:
    state.enabled = True


def _disable(state: _FieldState, action: ConditionalAction) -> None:
    state.enabled = False


def _set_value(state: _FieldState, action: ConditionalAction) -> None:
    state.value_override = action.value
    state.has_value_override = True


def _clear_value(state: _FieldState, action: ConditionalAction) -> None:
    state.value_override = None
    state.has_value_override = True


def _show_error(state: _FieldState, action: ConditionalAction) -> None:
    state.error_override = action.message


def _set_options(state: _FieldState, action: ConditionalAction) -> None:
    state.options_override = list(action.options or [])


ACTION_HANDLERS: Dict[ActionType, Callable[[_FieldState, ConditionalAction], None]] = {
    ActionType.SHOW: _show,
    ActionType.HIDE: _hide,
    ActionType.ENABLE: _enable,
    ActionType.DISABLE: _disable,
    ActionType.SET_VALUE: _set_value,
    ActionType.CLEAR_VALUE: _clear_value,
    ActionType.SHOW_ERROR: _show_error,
    ActionType.SET_OPTIONS: _set_options,
}


@dataclass
class _SchemaIndex:
    """Field definitions, owning sections and targeting rules, looked up by field id."""

    fields: Dict[str, FieldDefinition]
    sections: Dict[str, FieldSection]
    rules: Dict[str, List[ConditionalRule]]

    @classmethod
    def of(cls, schema: ConfigurationSchema) -> "_SchemaIndex":
        sections = {field.id: section for section in schema.sections for field in section.fields}
        rules: Dict[str, List[ConditionalRule]] = {}
        for rule in schema.conditional_logic:
            rules.setdefault(rule.target, []).append(rule)
        return cls(schema.field_map(), sections, rules)


def _prune_to_options(value: Any, options: List[OptionItem]) -> Any:
    """Drop selections that are not among `options`; returns _MISSING if nothing changes."""
    allowed = [option.value for option in options]
    if value is None:
        return _MISSING
    if isinstance(value, list):
        kept = [item for item in value if item in allowed]
        return _MISSING if len(kept) == len(value) else kept
    return _MISSING if value in allowed else None


class RuleEngine:
    """Resolves per-field state from conditional rules."""

    def __init__(self, evaluator: Optional[IEvaluator] = None, max_passes: int = 3):
        self.evaluator = evaluator or ExpressionEvaluator()
        self.max_passes = max_passes
        self._index: Optional[Tuple[ConfigurationSchema, _SchemaIndex]] = None

    def _index_of(self, schema: ConfigurationSchema) -> _SchemaIndex:
        # Schemas are immutable for a session; keep the index of the last one
        if self._index is None or self._index[0] is not schema:
            self._index = (schema, _SchemaIndex.of(schema))
        return self._index[1]

    def resolve(
        self,
        schema: ConfigurationSchema,
        graph: DependencyGraph,
        form_data: Mapping[str, Any],
        changed_field_id: Optional[str] = None,
        previous: Optional[Mapping[str, ResolvedFieldState]] = None,
    ) -> Dict[str, ResolvedFieldState]:
        """Resolve field states.

        Args:
            schema: Configuration schema
            graph: Dependency graph of the schema
            form_data: Current values (never mutated)
            changed_field_id: Field that just changed; None resolves every field
            previous: Last resolved states, reused for fields outside the
                affected set

        Returns:
            Field id -> ResolvedFieldState, in render order

        Raises:
            UnstableRuleError: If overrides keep changing after max_passes
        """
        index = self._index_of(schema)
        fields = index.fields
        previous = previous or {}

        if changed_field_id is None or not previous:
            working_set = set(fields)
        else:
            working_set = graph.affected(changed_field_id) | {changed_field_id}
            working_set |= {f for f in fields if f not in previous}
        ordered = [f for f in graph.topological_order if f in working_set]

        base = dict(form_data)
        for field_id, state in previous.items():
            if field_id not in working_set and state.has_value_override:
                base[field_id] = state.value_override

        logger.debug(
            f"Resolving {len(ordered)}/{len(fields)} fields"
            + (f" after change to '{changed_field_id}'" if changed_field_id else "")
        )

        overrides: Dict[str, Any] = {}
        states: Dict[str, ResolvedFieldState] = {}
        for pass_no in range(1, self.max_passes + 1):
            states, new_overrides = self._run_pass(index, ordered, base, overrides)
            if new_overrides == overrides:
                logger.debug(f"Rules settled after {pass_no} pass(es)")
                break
            unstable = {
                f for f in set(overrides) | set(new_overrides)
                if overrides.get(f, _MISSING) != new_overrides.get(f, _MISSING)
            }
            overrides = new_overrides
        else:
            raise UnstableRuleError(unstable, self.max_passes)

        result: Dict[str, ResolvedFieldState] = {}
        for field_id in fields:
            if field_id in states:
                result[field_id] = states[field_id]
            else:
                result[field_id] = previous[field_id]
        return result

    def _run_pass(
        self,
        index: _SchemaIndex,
        ordered: List[str],
        base: Dict[str, Any],
        carried: Dict[str, Any],
    ):
        live = dict(base)
        live.update(carried)
        states: Dict[str, ResolvedFieldState] = {}
        overrides: Dict[str, Any] = {}

        for field_id in ordered:
            state = self._resolve_field(index, index.fields[field_id], live)

            if state.options_override is not None:
                current = state.value_override if state.has_value_override else base.get(field_id)
                pruned = _prune_to_options(current, state.options_override)
                if pruned is not _MISSING:
                    state.value_override = pruned
                    state.has_value_override = True

            if state.has_value_override:
                live[field_id] = state.value_override
                overrides[field_id] = state.value_override
            elif field_id in base:
                live[field_id] = base[field_id]
            else:
                live.pop(field_id, None)

            states[field_id] = state.freeze()
        return states, overrides

    def _resolve_field(
        self,
        index: _SchemaIndex,
        field_def: FieldDefinition,
        data: Mapping[str, Any],
    ) -> _FieldState:
        display = field_def.display
        state = _FieldState(
            field_id=field_def.id,
            enabled=not (display.disabled or display.readonly),
        )
        context = EvaluationContext(data, index.fields, field_def.id)

        section = index.sections.get(field_def.id)
        if section is not None and section.visibility_conditions is not None:
            if not self._holds(section.visibility_conditions, context, f"section '{section.id}'"):
                state.visible = False
        if field_def.visibility_conditions is not None:
            if not self._holds(field_def.visibility_conditions, context, f"field '{field_def.id}'"):
                state.visible = False

        for rule in index.rules.get(field_def.id, ()):
            if self._holds(rule.condition, context, f"rule '{rule.id}'"):
                ACTION_HANDLERS[rule.action.type](state, rule.action)
                state.applied_rules.append(rule.id)
        return state

    def _holds(self, condition: LogicNode, context: EvaluationContext, owner: str) -> bool:
        try:
            return self.evaluator.evaluate_condition(condition, context)
        except ExpressionError as e:
            # Runtime type errors count as a false condition
            logger.warning(f"Condition of {owner} could not be evaluated: {e}")
            return False


def resolve(
    schema: ConfigurationSchema,
    graph: DependencyGraph,
    form_data: Mapping[str, Any],
    changed_field_id: Optional[str] = None,
    previous: Optional[Mapping[str, ResolvedFieldState]] = None,
    max_passes: int = 3,
) -> Dict[str, ResolvedFieldState]:
    """Resolve field states with a default RuleEngine."""
    return RuleEngine(max_passes=max_passes).resolve(
        schema, graph, form_data, changed_field_id, previous
    )


def default_states(schema: ConfigurationSchema) -> Dict[str, ResolvedFieldState]:
    """States from declared display flags only, ignoring every rule."""
    return {
        field.id: ResolvedFieldState(
            field_id=field.id,
            is_visible=True,
            is_enabled=not (field.display.disabled or field.display.readonly),
        )
        for field in schema.iter_fields()
    }
