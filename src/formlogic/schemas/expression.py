"""
Pydantic schema for condition and validation expressions.

Expressions use a normalized recursive structure with fixed 'op' and 'args'
fields instead of dynamic keys, so every operator is checked against a closed
enumeration when the schema is loaded. Text expressions, standard JSON Logic
and the legacy tagged condition format are all converted into this shape by
formlogic.utils.expression_parser.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Union

from pydantic import BaseModel, ConfigDict, Field


class LogicOp(str, Enum):
    """Enumeration of all allowed expression operators."""

    VAR = "var"

    # Comparison
    EQ = "=="
    NEQ = "!="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="

    # Membership
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"

    # Boolean combinators
    AND = "and"
    OR = "or"
    NOT = "!"

    # Derived predicates
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    MATCHES = "matches_pattern"

    # Arithmetic
    ADD = "+"
    SUB = "-"
    MULT = "*"
    DIV = "/"

    # Helpers
    LENGTH = "length"
    SUM = "sum"
    MIN = "min"
    MAX = "max"
    COUNT = "count"


COMPARISON_OPS = frozenset({LogicOp.EQ, LogicOp.NEQ, LogicOp.GT, LogicOp.GTE, LogicOp.LT, LogicOp.LTE})
ORDERING_OPS = frozenset({LogicOp.GT, LogicOp.GTE, LogicOp.LT, LogicOp.LTE})
ARITHMETIC_OPS = frozenset({LogicOp.ADD, LogicOp.SUB, LogicOp.MULT, LogicOp.DIV})
BOOLEAN_OPS = frozenset({
    LogicOp.AND, LogicOp.OR, LogicOp.NOT,
    LogicOp.IS_EMPTY, LogicOp.IS_NOT_EMPTY, LogicOp.MATCHES,
    LogicOp.IN, LogicOp.NOT_IN, LogicOp.CONTAINS,
}) | COMPARISON_OPS

# Exact arity, or (min, max) with max=None meaning variadic
OPERATOR_ARITY = {
    LogicOp.VAR: (0, 1),
    LogicOp.EQ: 2,
    LogicOp.NEQ: 2,
    LogicOp.GT: 2,
    LogicOp.GTE: 2,
    LogicOp.LT: 2,
    LogicOp.LTE: 2,
    LogicOp.IN: 2,
    LogicOp.NOT_IN: 2,
    LogicOp.CONTAINS: 2,
    LogicOp.AND: (1, None),
    LogicOp.OR: (1, None),
    LogicOp.NOT: 1,
    LogicOp.IS_EMPTY: 1,
    LogicOp.IS_NOT_EMPTY: 1,
    LogicOp.MATCHES: 2,
    LogicOp.ADD: (1, None),
    LogicOp.SUB: (1, 2),
    LogicOp.MULT: (2, None),
    LogicOp.DIV: 2,
    LogicOp.LENGTH: 1,
    LogicOp.SUM: (1, None),
    LogicOp.MIN: (1, None),
    LogicOp.MAX: (1, None),
    LogicOp.COUNT: (1, None),
}

# Reference to the field currently being evaluated
SELF_REF = "$self"


class LogicNode(BaseModel):
    """
    Normalized recursive node for expression trees.

    Example:
        {"op": ">=", "args": [{"op": "var", "args": ["age"]}, 65]}
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    op: LogicOp = Field(...)
    args: List[Union[LogicNode, List[Any], str, bool, int, float, None]] = Field(
        default_factory=list,
        description="Operands. Primitive values, literal lists or nested LogicNode instances.",
    )

    def __str__(self) -> str:
        if self.op == LogicOp.VAR:
            return self.args[0] if self.args else SELF_REF
        rendered = ", ".join(repr(a) if not isinstance(a, LogicNode) else str(a) for a in self.args)
        return f"{self.op.value}({rendered})"


def var(field_id: str) -> LogicNode:
    """Build a field reference node."""
    return LogicNode(op=LogicOp.VAR, args=[field_id])


def node(op: Union[LogicOp, str], *args: Any) -> LogicNode:
    """Build a node from an operator and operands."""
    return LogicNode(op=LogicOp(op), args=list(args))
