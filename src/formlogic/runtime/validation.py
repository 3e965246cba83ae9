"""
Validation engine.

Field-level rules run against one field's value; cross-field validations run
an expression over the whole form when their trigger fires. Failures are data
(error messages in ValidationResults), never exceptions.

Custom rules are resolved through a ValidatorRegistry injected by the host;
no custom validator is built in.
"""

import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from pydantic import AnyUrl, TypeAdapter, ValidationError

from formlogic.errors import ExpressionError, UnstableRuleError
from formlogic.runtime.evaluator import (
    EvaluationContext,
    ExpressionEvaluator,
    IEvaluator,
    is_empty,
    to_number,
)
from formlogic.schemas.configuration import (
    ConfigurationSchema,
    FieldDefinition,
    FieldKind,
    OptionItem,
    TriggerKind,
    ValidationRule,
    ValidationRuleType,
    ValidationTrigger,
)
from formlogic.schemas.results import ResolvedFieldState, ValidationResults

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_URL_ADAPTER = TypeAdapter(AnyUrl)

_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}

REQUIRED_MESSAGE = "This field is required"

ValidatorFn = Callable[[Any, Dict[str, Any]], Optional[str]]


def _fmt(number: float) -> str:
    """Render 18.0 as "18"."""
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value))


def is_valid_url(value: str) -> bool:
    try:
        _URL_ADAPTER.validate_python(value)
    except ValidationError:
        return False
    return True


class ValidatorRegistry:
    """Named custom validators.

    A validator is called as `fn(value, context)` where context holds the
    form data plus a `param_<name>` entry per rule parameter. It returns an
    error message, or None when the value is valid.

    Example:
        >>> registry = ValidatorRegistry()
        >>> @registry.register("even")
        ... def even(value, context):
        ...     return None if int(value) % 2 == 0 else "Must be even"
    """

    def __init__(self, validators: Optional[Mapping[str, ValidatorFn]] = None):
        self._validators: Dict[str, ValidatorFn] = dict(validators or {})

    def register(self, name: str, fn: Optional[ValidatorFn] = None):
        if fn is None:
            def decorator(func: ValidatorFn) -> ValidatorFn:
                self._validators[name] = func
                return func
            return decorator
        self._validators[name] = fn
        return fn

    def get(self, name: str) -> Optional[ValidatorFn]:
        return self._validators.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._validators

    def names(self) -> List[str]:
        return sorted(self._validators)


class ValidationEngine:
    """Runs field-level and cross-field validation."""

    def __init__(
        self,
        registry: Optional[ValidatorRegistry] = None,
        evaluator: Optional[IEvaluator] = None,
        skip_incomplete_on_change: bool = True,
    ):
        self.registry = registry or ValidatorRegistry()
        self.evaluator = evaluator or ExpressionEvaluator()
        self.skip_incomplete_on_change = skip_incomplete_on_change

    # ── Field level ──────────────────────────────────────────────────

    def validate_field(
        self,
        field: FieldDefinition,
        value: Any,
        form_data: Optional[Mapping[str, Any]] = None,
        options: Optional[List[OptionItem]] = None,
    ) -> List[str]:
        """Validate one field's value.

        An empty required field reports only the required message; an empty
        optional field reports nothing.

        Args:
            field: Field definition
            value: Value to check
            form_data: Whole form, for custom and cross-field rules
            options: Options currently offered (overrides the static list)

        Returns:
            Error messages, empty when valid
        """
        form_data = form_data or {}
        required_rule = next(
            (r for r in field.validations if r.type == ValidationRuleType.REQUIRED), None
        )
        if is_empty(value):
            if field.required or required_rule is not None:
                message = required_rule.message if required_rule and required_rule.message else None
                return [message or REQUIRED_MESSAGE]
            return []

        errors: List[str] = []

        def add(message: Optional[str]) -> None:
            if message and message not in errors:
                errors.append(message)

        for rule in field.validations:
            add(self._check_rule(field, rule, value, form_data))
        for message in self._check_type(field, value, options):
            add(message)
        return errors

    def _check_rule(
        self,
        field: FieldDefinition,
        rule: ValidationRule,
        value: Any,
        form_data: Mapping[str, Any],
    ) -> Optional[str]:
        kind = rule.type
        if kind == ValidationRuleType.REQUIRED:
            return None
        if kind == ValidationRuleType.MIN_LENGTH:
            if _length(value) < rule.length:
                return rule.message or f"Minimum length is {rule.length} characters"
        elif kind == ValidationRuleType.MAX_LENGTH:
            if _length(value) > rule.length:
                return rule.message or f"Maximum length is {rule.length} characters"
        elif kind == ValidationRuleType.PATTERN:
            flags = 0
            for flag in rule.flags or "":
                flags |= _REGEX_FLAGS.get(flag, 0)
            if not re.search(rule.pattern, str(value), flags):
                return rule.message or "Value does not match required pattern"
        elif kind == ValidationRuleType.MIN:
            number = to_number(value)
            if number is not None and number < rule.value:
                return rule.message or f"Minimum value is {_fmt(rule.value)}"
        elif kind == ValidationRuleType.MAX:
            number = to_number(value)
            if number is not None and number > rule.value:
                return rule.message or f"Maximum value is {_fmt(rule.value)}"
        elif kind == ValidationRuleType.EMAIL:
            if not is_valid_email(str(value)):
                return rule.message or "Please enter a valid email address"
        elif kind == ValidationRuleType.URL:
            if not is_valid_url(str(value)):
                return rule.message or "Please enter a valid URL"
        elif kind == ValidationRuleType.CUSTOM:
            return self._run_custom(field, rule, value, form_data)
        elif kind == ValidationRuleType.CROSS_FIELD:
            context = EvaluationContext(form_data, {}, field.id)
            try:
                if not self.evaluator.evaluate_condition(rule.expression, context):
                    return rule.message or "Validation failed"
            except ExpressionError as e:
                logger.warning(f"Cross-field rule on '{field.id}' could not be evaluated: {e}")
                return rule.message or "Validation failed"
        return None

    def _run_custom(
        self,
        field: FieldDefinition,
        rule: ValidationRule,
        value: Any,
        form_data: Mapping[str, Any],
    ) -> Optional[str]:
        validator = self.registry.get(rule.function_name)
        if validator is None:
            logger.warning(f"Unknown validation function '{rule.function_name}' on '{field.id}'")
            return f"Unknown validation function: {rule.function_name}"

        context: Dict[str, Any] = dict(form_data)
        for key, param in rule.parameters.items():
            context[f"param_{key}"] = param
        try:
            message = validator(value, context)
        except Exception as e:
            logger.warning(f"Validation function '{rule.function_name}' raised: {e}")
            return rule.message or f"Validation function '{rule.function_name}' failed"
        if message:
            return rule.message or message
        return None

    def _check_type(
        self,
        field: FieldDefinition,
        value: Any,
        options: Optional[List[OptionItem]],
    ) -> List[str]:
        kind = field.kind
        config = field.field_type.config
        errors: List[str] = []

        if kind in (FieldKind.TEXT, FieldKind.TEXTAREA, FieldKind.RICH_TEXT):
            length = _length(value)
            min_length = getattr(config, "min_length", None)
            max_length = getattr(config, "max_length", None)
            pattern = getattr(config, "pattern", None)
            if min_length is not None and length < min_length:
                errors.append(f"Minimum length is {min_length} characters")
            if max_length is not None and length > max_length:
                errors.append(f"Maximum length is {max_length} characters")
            if pattern and not re.search(pattern, str(value)):
                errors.append("Value does not match required pattern")

        elif kind in (FieldKind.NUMBER, FieldKind.INTEGER, FieldKind.SLIDER, FieldKind.RATING):
            number = to_number(value)
            if number is None:
                return ["Please enter a valid number"]
            if kind == FieldKind.INTEGER and not float(number).is_integer():
                errors.append("Please enter a whole number")
            low = getattr(config, "min", None)
            high = getattr(config, "max", getattr(config, "max_rating", None))
            if kind == FieldKind.RATING:
                low = 0
            if low is not None and number < low:
                errors.append(f"Minimum value is {_fmt(low)}")
            if high is not None and number > high:
                errors.append(f"Maximum value is {_fmt(high)}")

        elif kind == FieldKind.EMAIL:
            if not is_valid_email(str(value)):
                errors.append("Please enter a valid email address")

        elif kind == FieldKind.URL:
            if not is_valid_url(str(value)):
                errors.append("Please enter a valid URL")

        elif kind in (FieldKind.DATE, FieldKind.DATETIME, FieldKind.TIME):
            errors.extend(_check_temporal(kind, config, value))

        elif kind in (FieldKind.SELECT, FieldKind.RADIO):
            allowed = _allowed_values(field, options)
            if allowed is not None and value not in allowed:
                errors.append("Please select a valid option")

        elif kind in (FieldKind.MULTI_SELECT, FieldKind.CHECKBOX_GROUP):
            if not isinstance(value, list):
                return ["Please select valid options"]
            allowed = _allowed_values(field, options)
            if allowed is not None and any(item not in allowed for item in value):
                errors.append("Please select valid options")
            max_selections = getattr(config, "max_selections", None)
            if max_selections is not None and len(value) > max_selections:
                errors.append(f"Select at most {max_selections} options")

        elif kind == FieldKind.FIELD_ARRAY:
            items = value if isinstance(value, list) else [value]
            if config.min_items is not None and len(items) < config.min_items:
                errors.append(f"At least {config.min_items} items are required")
            if config.max_items is not None and len(items) > config.max_items:
                errors.append(f"At most {config.max_items} items are allowed")

        return errors

    # ── Cross-field ──────────────────────────────────────────────────

    def validate_cross_field(
        self,
        schema: ConfigurationSchema,
        form_data: Mapping[str, Any],
        trigger: Any = TriggerKind.ON_SUBMIT,
    ) -> List[Tuple[str, str]]:
        """Run the cross-field validations that fire on `trigger`.

        Args:
            schema: Configuration schema
            form_data: Current values
            trigger: "on_change", "on_blur", "on_submit", {"custom": name}
                or a ValidationTrigger

        Returns:
            (validation_id, message) for every failing validation
        """
        errors, _ = self._run_cross_field(schema, form_data, ValidationTrigger.of(trigger))
        return errors

    def _run_cross_field(
        self,
        schema: ConfigurationSchema,
        form_data: Mapping[str, Any],
        trigger: ValidationTrigger,
        exclude: Optional[Set[str]] = None,
    ) -> Tuple[List[Tuple[str, str]], List[str]]:
        fields = schema.field_map()
        errors: List[Tuple[str, str]] = []
        warnings: List[str] = []

        for validation in schema.global_validations:
            if not validation.trigger.matches(trigger):
                continue
            involved = validation.involved_fields
            if exclude and involved & exclude:
                logger.debug(f"Skipping '{validation.id}': reads a hidden field")
                continue
            if (
                trigger.kind != TriggerKind.ON_SUBMIT
                and self.skip_incomplete_on_change
                and any(is_empty(form_data.get(f)) for f in involved)
            ):
                continue

            context = EvaluationContext(form_data, fields)
            try:
                passed = self.evaluator.evaluate_condition(validation.expression, context)
            except ExpressionError as e:
                logger.warning(f"Cross-field validation '{validation.id}' could not be evaluated: {e}")
                warnings.append(f"Validation '{validation.name}' could not be evaluated: {e}")
                errors.append((validation.id, f"Validation '{validation.name}' failed"))
                continue
            if not passed:
                errors.append((validation.id, validation.message))

        return errors, warnings

    # ── Whole form ───────────────────────────────────────────────────

    def validate_all(
        self,
        schema: ConfigurationSchema,
        form_data: Mapping[str, Any],
        states: Optional[Mapping[str, ResolvedFieldState]] = None,
    ) -> ValidationResults:
        """Validate every visible, enabled field plus on-submit cross-field rules.

        A field hidden by conditional logic never produces a field error, and
        cross-field validations reading a hidden field are skipped.
        """
        results = ValidationResults()
        if states is None:
            states = self._resolve_states(schema, form_data, results)

        data = effective_data(form_data, states)
        hidden: Set[str] = set()

        for field in schema.iter_fields():
            state = states.get(field.id)
            if state is not None and not state.is_visible:
                hidden.add(field.id)
                continue
            if not field.kind.is_input:
                continue
            if state is not None and state.error_override:
                results.add_field_error(field.id, state.error_override)
            if state is not None and not state.is_enabled:
                continue
            options = state.options_override if state is not None else None
            for message in self.validate_field(field, data.get(field.id), data, options):
                results.add_field_error(field.id, message)

        on_submit = ValidationTrigger(kind=TriggerKind.ON_SUBMIT)
        cross_errors, warnings = self._run_cross_field(schema, data, on_submit, exclude=hidden)
        for _, message in cross_errors:
            results.add_global_error(message)
        for warning in warnings:
            results.add_warning(warning)
        return results

    @staticmethod
    def _resolve_states(
        schema: ConfigurationSchema,
        form_data: Mapping[str, Any],
        results: ValidationResults,
    ) -> Dict[str, ResolvedFieldState]:
        from formlogic.runtime.dependency_graph import build_graph
        from formlogic.runtime.rule_engine import RuleEngine, default_states

        try:
            return RuleEngine().resolve(schema, build_graph(schema), form_data)
        except UnstableRuleError as e:
            logger.warning(f"Validating against static field state: {e}")
            results.add_warning(str(e))
            return default_states(schema)


def effective_data(
    form_data: Mapping[str, Any],
    states: Mapping[str, ResolvedFieldState],
) -> Dict[str, Any]:
    """Form data with rule value overrides applied."""
    data = dict(form_data)
    for field_id, state in states.items():
        if state.has_value_override:
            data[field_id] = state.value_override
    return data


def _length(value: Any) -> int:
    if isinstance(value, (list, tuple, dict)):
        return len(value)
    return len(str(value))


def _allowed_values(field: FieldDefinition, options: Optional[List[OptionItem]]) -> Optional[List[Any]]:
    if field.options is not None and field.options.allow_custom:
        return None
    source = options if options is not None else field.static_options
    if source is None:
        return None
    return [option.value for option in source if not option.disabled]


_TEMPORAL_LABELS = {
    FieldKind.DATE: "date",
    FieldKind.DATETIME: "date and time",
    FieldKind.TIME: "time",
}


def _check_temporal(kind: FieldKind, config: Any, value: Any) -> List[str]:
    label = _TEMPORAL_LABELS[kind]
    fmt = config.format
    try:
        parsed = datetime.strptime(str(value), fmt)
    except ValueError:
        return [f"Please enter a valid {label}"]

    errors: List[str] = []
    low = getattr(config, "min_date", None) or getattr(config, "min_datetime", None)
    high = getattr(config, "max_date", None) or getattr(config, "max_datetime", None)
    try:
        if low and parsed < datetime.strptime(low, fmt):
            errors.append(f"Date must be on or after {low}")
        if high and parsed > datetime.strptime(high, fmt):
            errors.append(f"Date must be on or before {high}")
    except ValueError:
        logger.warning(f"Ignoring unparseable {label} bound in field config")
    return errors
