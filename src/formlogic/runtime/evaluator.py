"""
Expression evaluator.

Responsibility: evaluate normalized expression trees against live form data.

Callers (rule engine, validation engine) depend on the IEvaluator abstraction
rather than on this implementation, so the expression backend can be swapped
without touching them.

Evaluation is pure: the result depends only on (expression, context). A field
that is absent from form data evaluates to a type-appropriate empty value, so
conditions on untouched fields read as false instead of failing.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from formlogic.errors import ExpressionError, TypeMismatchError
from formlogic.schemas.configuration import FieldDefinition, ValueKind
from formlogic.schemas.expression import (
    ARITHMETIC_OPS,
    BOOLEAN_OPS,
    COMPARISON_OPS,
    ORDERING_OPS,
    SELF_REF,
    LogicNode,
    LogicOp,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationContext:
    """Read-only view passed to the evaluator.

    Attributes:
        form_data: Current field values keyed by field id
        fields: Field definitions keyed by field id
        current_field: Field being evaluated, target of "$self" references
    """

    form_data: Mapping[str, Any]
    fields: Mapping[str, FieldDefinition] = field(default_factory=dict)
    current_field: Optional[str] = None

    def lookup(self, field_id: str) -> Any:
        value = self.form_data.get(field_id)
        if value is None:
            return empty_value(self.fields.get(field_id))
        return value

    def for_field(self, field_id: Optional[str]) -> "EvaluationContext":
        return EvaluationContext(self.form_data, self.fields, field_id)


def empty_value(field_def: Optional[FieldDefinition]) -> Any:
    """Type-appropriate empty value for an absent field."""
    if field_def is None:
        return None
    kind = field_def.kind.value_kind
    if kind == ValueKind.TEXT:
        return ""
    if kind == ValueKind.LIST:
        return []
    return None


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def to_number(value: Any) -> Optional[float]:
    """Numeric view of a value, or None if it has none."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def value_kind_of(value: Any) -> Optional[ValueKind]:
    if value is None:
        return None
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, (list, tuple)):
        return ValueKind.LIST
    return ValueKind.ANY


def values_equal(op: str, left: Any, right: Any) -> bool:
    """Equality with numeric-string coercion.

    Raises:
        TypeMismatchError: For booleans, lists or objects compared against
            a different kind of value
    """
    if is_empty(left) or is_empty(right):
        return is_empty(left) and is_empty(right)
    left_kind, right_kind = value_kind_of(left), value_kind_of(right)
    if left_kind == right_kind:
        return left == right
    if {left_kind, right_kind} == {ValueKind.NUMBER, ValueKind.TEXT}:
        return to_number(left) == to_number(right)
    raise TypeMismatchError(op, left, right)


def _compare(op: LogicOp, left: Any, right: Any) -> bool:
    if op == LogicOp.EQ:
        return values_equal(op.value, left, right)
    if op == LogicOp.NEQ:
        return not values_equal(op.value, left, right)

    # Ordering against an empty operand is false rather than an error
    if is_empty(left) or is_empty(right):
        return False
    left_kind, right_kind = value_kind_of(left), value_kind_of(right)
    if ValueKind.NUMBER in (left_kind, right_kind):
        a, b = to_number(left), to_number(right)
        if a is None or b is None:
            raise TypeMismatchError(op.value, left, right, "not numeric")
    elif left_kind == ValueKind.TEXT and right_kind == ValueKind.TEXT:
        a, b = to_number(left), to_number(right)
        if a is None or b is None:
            a, b = left, right
    else:
        raise TypeMismatchError(op.value, left, right)

    if op == LogicOp.GT:
        return a > b
    if op == LogicOp.GTE:
        return a >= b
    if op == LogicOp.LT:
        return a < b
    return a <= b


def _membership(op: str, needle: Any, haystack: Any) -> bool:
    if is_empty(needle) or is_empty(haystack):
        return False
    if isinstance(haystack, (list, tuple)):
        if isinstance(needle, (list, tuple)):
            return any(_membership(op, item, haystack) for item in needle)
        return any(_loose_equal(needle, item) for item in haystack)
    if isinstance(haystack, str):
        if isinstance(needle, (list, tuple, dict)):
            raise TypeMismatchError(op, needle, haystack)
        return str(needle) in haystack
    raise TypeMismatchError(op, needle, haystack)


def _loose_equal(left: Any, right: Any) -> bool:
    try:
        return values_equal("==", left, right)
    except TypeMismatchError:
        return False


def _contains(op: str, container: Any, item: Any) -> bool:
    if is_empty(container) or is_empty(item):
        return False
    if isinstance(container, (list, tuple)):
        return any(_loose_equal(element, item) for element in container)
    if isinstance(container, str):
        if isinstance(item, (list, tuple, dict)):
            raise TypeMismatchError(op, container, item)
        return str(item).lower() in container.lower()
    raise TypeMismatchError(op, container, item)


def _operand_number(op: str, value: Any, other: Any = None) -> float:
    # Empty numeric operands count as zero
    if is_empty(value):
        return 0
    number = to_number(value)
    if number is None:
        raise TypeMismatchError(op, value, other, "arithmetic needs numbers")
    return number


def _flatten(values: List[Any]) -> List[Any]:
    if len(values) == 1 and isinstance(values[0], (list, tuple)):
        return list(values[0])
    return values


class IEvaluator(ABC):
    """
    Abstract interface for expression evaluation.

    Stateless: accepts (expression + context) and returns a value.
    """

    @abstractmethod
    def evaluate(self, expression: LogicNode, context: EvaluationContext) -> Any:
        """
        Evaluate an expression.

        Args:
            expression: Normalized expression tree
            context: Form data, field definitions and current field

        Returns:
            bool, number, string, list or None

        Raises:
            ExpressionError: Malformed expression encountered at runtime
            TypeMismatchError: Operands of incompatible types
        """

    def evaluate_condition(self, expression: LogicNode, context: EvaluationContext) -> bool:
        """Evaluate an expression and reduce it to its truth value."""
        return bool(self.evaluate(expression, context))


class ExpressionEvaluator(IEvaluator):
    """Tree-walking evaluator over LogicNode expressions."""

    def evaluate(self, expression: Any, context: EvaluationContext) -> Any:
        if isinstance(expression, LogicNode):
            return self._eval_node(expression, context)
        if isinstance(expression, (list, tuple)):
            return [self.evaluate(item, context) for item in expression]
        return expression

    def _eval_node(self, logic: LogicNode, context: EvaluationContext) -> Any:
        op = logic.op

        if op == LogicOp.VAR:
            name = logic.args[0] if logic.args else SELF_REF
            if name == SELF_REF:
                if context.current_field is None:
                    raise ExpressionError("'$self' used outside of a field context")
                name = context.current_field
            return context.lookup(name)

        # Short-circuit combinators
        if op == LogicOp.AND:
            return all(self.evaluate_condition(arg, context) for arg in logic.args)
        if op == LogicOp.OR:
            return any(self.evaluate_condition(arg, context) for arg in logic.args)

        args = [self.evaluate(arg, context) for arg in logic.args]

        if op == LogicOp.NOT:
            return not bool(args[0])
        if op in COMPARISON_OPS:
            return _compare(op, args[0], args[1])
        if op == LogicOp.IN:
            return _membership(op.value, args[0], args[1])
        if op == LogicOp.NOT_IN:
            return not _membership(op.value, args[0], args[1])
        if op == LogicOp.CONTAINS:
            return _contains(op.value, args[0], args[1])
        if op == LogicOp.IS_EMPTY:
            return is_empty(args[0])
        if op == LogicOp.IS_NOT_EMPTY:
            return not is_empty(args[0])
        if op == LogicOp.MATCHES:
            return self._matches(args[0], args[1])
        if op in ARITHMETIC_OPS:
            return self._arithmetic(op, args)
        return self._helper(op, args)

    @staticmethod
    def _matches(value: Any, pattern: Any) -> bool:
        if is_empty(value):
            return False
        if not isinstance(pattern, str):
            raise TypeMismatchError(LogicOp.MATCHES.value, value, pattern, "pattern must be text")
        try:
            return re.search(pattern, str(value)) is not None
        except re.error as e:
            raise ExpressionError(f"Invalid pattern '{pattern}': {e}") from e

    @staticmethod
    def _arithmetic(op: LogicOp, args: List[Any]) -> Any:
        numbers = [_operand_number(op.value, arg, args) for arg in args]
        if op == LogicOp.ADD:
            return sum(numbers)
        if op == LogicOp.SUB:
            return -numbers[0] if len(numbers) == 1 else numbers[0] - numbers[1]
        if op == LogicOp.MULT:
            result = 1
            for number in numbers:
                result *= number
            return result
        if numbers[1] == 0:
            logger.debug("Division by zero evaluates to empty")
            return None
        return numbers[0] / numbers[1]

    @staticmethod
    def _helper(op: LogicOp, args: List[Any]) -> Any:
        if op == LogicOp.LENGTH:
            value = args[0]
            if value is None:
                return 0
            if isinstance(value, (str, list, tuple, dict)):
                return len(value)
            raise TypeMismatchError(op.value, value, None, "length needs text or a list")

        values = [v for v in _flatten(args) if not is_empty(v)]
        if op == LogicOp.COUNT:
            return len(values)
        numbers = [_operand_number(op.value, v) for v in values]
        if op == LogicOp.SUM:
            return sum(numbers)
        if not numbers:
            return None
        return min(numbers) if op == LogicOp.MIN else max(numbers)


_default_evaluator = ExpressionEvaluator()


def evaluate(expression: LogicNode, context: EvaluationContext) -> Any:
    """Evaluate an expression with the default evaluator."""
    return _default_evaluator.evaluate(expression, context)


# ── Static type check ────────────────────────────────────────────────

_NUMERIC_HELPERS = {LogicOp.LENGTH, LogicOp.SUM, LogicOp.MIN, LogicOp.MAX, LogicOp.COUNT}


def _static_kind(
    arg: Any, fields: Mapping[str, FieldDefinition], self_field: Optional[str]
) -> Optional[ValueKind]:
    if isinstance(arg, LogicNode):
        if arg.op == LogicOp.VAR:
            name = arg.args[0] if arg.args else SELF_REF
            if name == SELF_REF:
                name = self_field
            field_def = fields.get(name) if name else None
            return field_def.kind.value_kind if field_def else None
        if arg.op in ARITHMETIC_OPS or arg.op in _NUMERIC_HELPERS:
            return ValueKind.NUMBER
        if arg.op in BOOLEAN_OPS:
            return ValueKind.BOOLEAN
        return None
    return value_kind_of(arg)


def _literal_compatible(kind: ValueKind, literal: Any) -> bool:
    literal_kind = value_kind_of(literal)
    if literal_kind is None or literal_kind == kind:
        return True
    if kind == ValueKind.NUMBER and literal_kind == ValueKind.TEXT:
        return to_number(literal) is not None
    if kind == ValueKind.TEXT and literal_kind == ValueKind.NUMBER:
        return True
    return False


def check_expression_types(
    expression: LogicNode,
    fields: Mapping[str, FieldDefinition],
    self_field: Optional[str] = None,
) -> None:
    """Check literal operands against the value types of the fields they meet.

    Args:
        expression: Expression to check
        fields: Field definitions keyed by id
        self_field: Field that "$self" refers to

    Raises:
        TypeMismatchError: If a comparison, membership test or arithmetic
            operation can never be well-typed
    """
    if not isinstance(expression, LogicNode):
        return

    op = expression.op
    args = expression.args
    kinds = [_static_kind(arg, fields, self_field) for arg in args]

    if op in COMPARISON_OPS and len(args) == 2:
        left, right = kinds
        if left is not None and right is not None and ValueKind.ANY not in (left, right):
            if op in ORDERING_OPS and (
                ValueKind.LIST in (left, right) or ValueKind.BOOLEAN in (left, right)
            ):
                raise TypeMismatchError(op.value, args[0], args[1], "not orderable")
            literal_side = [
                (kind, arg) for kind, arg in zip((right, left), args)
                if not isinstance(arg, LogicNode)
            ]
            for field_kind, literal in literal_side:
                if not _literal_compatible(field_kind, literal):
                    raise TypeMismatchError(op.value, args[0], args[1])
            if not literal_side and left != right and {left, right} != {
                ValueKind.NUMBER, ValueKind.TEXT
            }:
                raise TypeMismatchError(op.value, args[0], args[1])

    if op in (LogicOp.IN, LogicOp.NOT_IN) and len(args) == 2:
        needle_kind = kinds[0]
        haystack = args[1]
        if needle_kind in (ValueKind.NUMBER, ValueKind.BOOLEAN) and isinstance(haystack, list):
            for item in haystack:
                if not isinstance(item, LogicNode) and not _literal_compatible(needle_kind, item):
                    raise TypeMismatchError(op.value, args[0], item)

    if op in ARITHMETIC_OPS:
        for arg, kind in zip(args, kinds):
            if kind in (ValueKind.BOOLEAN, ValueKind.LIST):
                raise TypeMismatchError(op.value, arg, None, "arithmetic needs numbers")
            if kind == ValueKind.TEXT and not isinstance(arg, LogicNode) and to_number(arg) is None:
                raise TypeMismatchError(op.value, arg, None, "arithmetic needs numbers")

    for arg in args:
        if isinstance(arg, LogicNode):
            check_expression_types(arg, fields, self_field)
        elif isinstance(arg, list):
            for item in arg:
                check_expression_types(item, fields, self_field)

