"""
Conversion of authored expressions into normalized LogicNode trees.

Accepted input formats:

    Text:                 "total = a + b and not is_empty(a)"
    Normalized:           {"op": "==", "args": [{"op": "var", "args": ["a"]}, 1]}
    Standard JSON Logic:  {"==": [{"var": "a"}, 1]}
    Tagged (legacy):      {"type": "Equals", "config": {"field": "a", "value": 1}}

Everything is converted to the normalized form at schema load time, so that
malformed expressions surface as ExpressionError before any form is rendered.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from formlogic.errors import ExpressionError
from formlogic.schemas.expression import OPERATOR_ARITY, SELF_REF, LogicNode, LogicOp
from formlogic.utils.naming import normalize_tag

logger = logging.getLogger(__name__)


# ── Tokenizer ────────────────────────────────────────────────────────

_TOKEN_SPEC = [
    ("NUMBER", r"\d+(?:\.\d+)?(?:[eE][+-]?\d+)?"),
    ("STRING", r"\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'"),
    ("OP", r"==|!=|<=|>=|&&|\|\||[=<>+\-*/!(),\[\]]"),
    ("IDENT", r"[A-Za-z_$][A-Za-z0-9_.$]*"),
    ("WS", r"\s+"),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))

# Only quotes and backslashes are unescaped so regex classes like \d survive
_ESCAPE_RE = re.compile(r"\\([\"'\\])")

_KEYWORDS = {"and", "or", "not", "in", "true", "false", "null", "none"}

_COMPARISON_TOKENS = {
    "==": LogicOp.EQ,
    "=": LogicOp.EQ,
    "!=": LogicOp.NEQ,
    "<": LogicOp.LT,
    "<=": LogicOp.LTE,
    ">": LogicOp.GT,
    ">=": LogicOp.GTE,
}

_FUNCTIONS = {
    "is_empty": LogicOp.IS_EMPTY,
    "isEmpty": LogicOp.IS_EMPTY,
    "is_not_empty": LogicOp.IS_NOT_EMPTY,
    "isNotEmpty": LogicOp.IS_NOT_EMPTY,
    "matches_pattern": LogicOp.MATCHES,
    "matches": LogicOp.MATCHES,
    "contains": LogicOp.CONTAINS,
    "includes": LogicOp.CONTAINS,
    "length": LogicOp.LENGTH,
    "sum": LogicOp.SUM,
    "min": LogicOp.MIN,
    "max": LogicOp.MAX,
    "count": LogicOp.COUNT,
}

Token = Tuple[str, str, int]


def _tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match:
            raise ExpressionError(f"Unexpected character {text[pos]!r} at position {pos} in: {text}")
        kind = match.lastgroup
        value = match.group()
        if kind != "WS":
            if kind == "IDENT" and value.lower() in _KEYWORDS:
                kind = "KEYWORD"
                value = value.lower()
            tokens.append((kind, value, pos))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser for the text expression syntax."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0

    # -- token helpers --

    def _peek(self, offset: int = 0) -> Optional[Token]:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def _check(self, kind: str, value: Optional[str] = None, offset: int = 0) -> bool:
        token = self._peek(offset)
        if token is None or token[0] != kind:
            return False
        return value is None or token[1] == value

    def _advance(self) -> Token:
        token = self._peek()
        if token is None:
            raise ExpressionError(f"Unexpected end of expression: {self.text}")
        self.pos += 1
        return token

    def _expect(self, kind: str, value: str) -> None:
        token = self._peek()
        if token is None or token[0] != kind or token[1] != value:
            found = token[1] if token else "end of expression"
            raise ExpressionError(f"Expected '{value}' but found '{found}' in: {self.text}")
        self.pos += 1

    # -- grammar --

    def parse(self) -> Any:
        if not self.tokens:
            raise ExpressionError("Empty expression")
        result = self._or()
        if self._peek() is not None:
            raise ExpressionError(
                f"Unexpected token '{self._peek()[1]}' at position {self._peek()[2]} in: {self.text}"
            )
        return result

    def _or(self) -> Any:
        operands = [self._and()]
        while self._check("KEYWORD", "or") or self._check("OP", "||"):
            self._advance()
            operands.append(self._and())
        return operands[0] if len(operands) == 1 else LogicNode(op=LogicOp.OR, args=operands)

    def _and(self) -> Any:
        operands = [self._not()]
        while self._check("KEYWORD", "and") or self._check("OP", "&&"):
            self._advance()
            operands.append(self._not())
        return operands[0] if len(operands) == 1 else LogicNode(op=LogicOp.AND, args=operands)

    def _not(self) -> Any:
        if self._check("KEYWORD", "not") or self._check("OP", "!"):
            self._advance()
            return LogicNode(op=LogicOp.NOT, args=[self._not()])
        return self._comparison()

    def _comparison(self) -> Any:
        left = self._additive()
        token = self._peek()
        if token is None:
            return left
        if token[0] == "OP" and token[1] in _COMPARISON_TOKENS:
            self._advance()
            right = self._additive()
            return LogicNode(op=_COMPARISON_TOKENS[token[1]], args=[left, right])
        if self._check("KEYWORD", "in"):
            self._advance()
            return LogicNode(op=LogicOp.IN, args=[left, self._additive()])
        if self._check("KEYWORD", "not") and self._check("KEYWORD", "in", offset=1):
            self._advance()
            self._advance()
            return LogicNode(op=LogicOp.NOT_IN, args=[left, self._additive()])
        return left

    def _additive(self) -> Any:
        result = self._term()
        while self._check("OP", "+") or self._check("OP", "-"):
            op = LogicOp.ADD if self._advance()[1] == "+" else LogicOp.SUB
            result = LogicNode(op=op, args=[result, self._term()])
        return result

    def _term(self) -> Any:
        result = self._unary()
        while self._check("OP", "*") or self._check("OP", "/"):
            op = LogicOp.MULT if self._advance()[1] == "*" else LogicOp.DIV
            result = LogicNode(op=op, args=[result, self._unary()])
        return result

    def _unary(self) -> Any:
        if self._check("OP", "-"):
            self._advance()
            operand = self._unary()
            if isinstance(operand, (int, float)) and not isinstance(operand, bool):
                return -operand
            return LogicNode(op=LogicOp.SUB, args=[operand])
        return self._primary()

    def _primary(self) -> Any:
        kind, value, position = self._advance()
        if kind == "NUMBER":
            return float(value) if any(c in value for c in ".eE") else int(value)
        if kind == "STRING":
            return _ESCAPE_RE.sub(r"\1", value[1:-1])
        if kind == "KEYWORD":
            if value == "true":
                return True
            if value == "false":
                return False
            if value in ("null", "none"):
                return None
            raise ExpressionError(f"Unexpected keyword '{value}' at position {position} in: {self.text}")
        if kind == "OP" and value == "(":
            inner = self._or()
            self._expect("OP", ")")
            return inner
        if kind == "OP" and value == "[":
            return self._literal_list()
        if kind == "IDENT":
            if self._check("OP", "("):
                return self._call(value, position)
            return LogicNode(op=LogicOp.VAR, args=[value])
        raise ExpressionError(f"Unexpected token '{value}' at position {position} in: {self.text}")

    def _literal_list(self) -> List[Any]:
        items: List[Any] = []
        if self._check("OP", "]"):
            self._advance()
            return items
        while True:
            item = self._unary()
            if isinstance(item, LogicNode):
                raise ExpressionError(f"List literals may only contain constants: {self.text}")
            items.append(item)
            if self._check("OP", ","):
                self._advance()
                continue
            self._expect("OP", "]")
            return items

    def _call(self, name: str, position: int) -> LogicNode:
        op = _FUNCTIONS.get(name)
        if op is None:
            raise ExpressionError(f"Unknown function '{name}' at position {position} in: {self.text}")
        self._expect("OP", "(")
        args: List[Any] = []
        if not self._check("OP", ")"):
            while True:
                args.append(self._or())
                if self._check("OP", ","):
                    self._advance()
                    continue
                break
        self._expect("OP", ")")
        return LogicNode(op=op, args=args)


def parse_expression(text: str) -> LogicNode:
    """Parse a text expression into a LogicNode tree.

    Args:
        text: Expression such as "age >= 65" or "total = a + b"

    Returns:
        Root LogicNode

    Raises:
        ExpressionError: If the text is not a valid expression
    """
    result = _Parser(text).parse()
    if not isinstance(result, LogicNode):
        raise ExpressionError(f"Expression must contain an operator or field reference: {text}")
    return check_arity(result)


# ── Structured formats ───────────────────────────────────────────────

_STANDARD_OP_ALIASES = {
    "not": LogicOp.NOT,
    "===": LogicOp.EQ,
    "!==": LogicOp.NEQ,
    "=": LogicOp.EQ,
}


def from_standard_json_logic(logic: Any) -> Any:
    """Convert standard JSON Logic ({"==": [...]}) into normalized nodes.

    This is the inverse of the {op, args} -> {op: args} transpilation.
    """
    if isinstance(logic, list):
        return [from_standard_json_logic(item) for item in logic]
    if not isinstance(logic, dict):
        return logic
    if len(logic) != 1:
        raise ExpressionError(f"JSON Logic node must have exactly one operator: {logic}")

    raw_op, values = next(iter(logic.items()))
    op = _STANDARD_OP_ALIASES.get(raw_op)
    if op is None:
        try:
            op = LogicOp(raw_op)
        except ValueError:
            raise ExpressionError(f"Unknown operator '{raw_op}'")

    if not isinstance(values, list):
        values = [values]
    if op == LogicOp.VAR:
        return LogicNode(op=op, args=list(values[:1]))
    if op in (LogicOp.IN, LogicOp.NOT_IN) and len(values) == 2 and isinstance(values[1], list):
        return LogicNode(op=op, args=[from_standard_json_logic(values[0]), list(values[1])])
    return LogicNode(op=op, args=[from_standard_json_logic(v) for v in values])


_TAGGED_FIELD_OPS = {
    "equals": LogicOp.EQ,
    "not_equals": LogicOp.NEQ,
    "greater_than": LogicOp.GT,
    "less_than": LogicOp.LT,
    "greater_than_or_equal": LogicOp.GTE,
    "less_than_or_equal": LogicOp.LTE,
    "contains": LogicOp.CONTAINS,
}


def from_tagged(expression: Dict[str, Any]) -> LogicNode:
    """Convert the legacy tagged condition format into a LogicNode.

    Example:
        {"type": "GreaterThan", "config": {"field": "age", "value": 64}}
        -> {"op": ">", "args": [{"op": "var", "args": ["age"]}, 64]}
    """
    kind = normalize_tag(str(expression.get("type", "")))
    config = expression.get("config") or {}
    field = config.get("field")
    field_ref = LogicNode(op=LogicOp.VAR, args=[field]) if field else None

    if kind in _TAGGED_FIELD_OPS:
        return LogicNode(op=_TAGGED_FIELD_OPS[kind], args=[field_ref, config.get("value")])
    if kind == "is_empty":
        return LogicNode(op=LogicOp.IS_EMPTY, args=[field_ref])
    if kind == "is_not_empty":
        return LogicNode(op=LogicOp.IS_NOT_EMPTY, args=[field_ref])
    if kind == "matches":
        return LogicNode(op=LogicOp.MATCHES, args=[field_ref, config.get("pattern", "")])
    if kind == "in":
        return LogicNode(op=LogicOp.IN, args=[field_ref, list(config.get("values", []))])
    if kind in ("and", "or"):
        op = LogicOp.AND if kind == "and" else LogicOp.OR
        return LogicNode(op=op, args=[coerce_expression(e) for e in config.get("expressions", [])])
    if kind == "not":
        return LogicNode(op=LogicOp.NOT, args=[coerce_expression(config.get("expression"))])
    if kind == "custom":
        return parse_expression(str(config.get("expression", "")))
    raise ExpressionError(f"Unknown condition type '{expression.get('type')}'")


def check_arity(logic: LogicNode) -> LogicNode:
    """Recursively verify operand counts for every node.

    Raises:
        ExpressionError: If an operator receives the wrong number of operands
    """
    arity = OPERATOR_ARITY[logic.op]
    count = len(logic.args)
    if isinstance(arity, int):
        ok = count == arity
    else:
        low, high = arity
        ok = count >= low and (high is None or count <= high)
    if not ok:
        raise ExpressionError(f"Operator '{logic.op.value}' got {count} operand(s): {logic}")

    if logic.op == LogicOp.VAR and logic.args and not isinstance(logic.args[0], str):
        raise ExpressionError(f"Field reference must be a string: {logic.args[0]!r}")

    for arg in logic.args:
        if isinstance(arg, LogicNode):
            check_arity(arg)
    return logic


def coerce_expression(raw: Any) -> LogicNode:
    """Convert any accepted expression format into a validated LogicNode.

    Args:
        raw: LogicNode, text, normalized dict, standard JSON Logic dict,
            or legacy tagged dict

    Returns:
        Validated LogicNode

    Raises:
        ExpressionError: If the expression cannot be converted
    """
    if isinstance(raw, LogicNode):
        return check_arity(raw)
    if isinstance(raw, str):
        return parse_expression(raw)
    if isinstance(raw, dict):
        if "op" in raw:
            try:
                return check_arity(LogicNode.model_validate(raw))
            except ValidationError as e:
                raise ExpressionError(f"Invalid expression node {raw}: {e.errors()[0]['msg']}")
        if "type" in raw and ("config" in raw or len(raw) == 1):
            return check_arity(from_tagged(raw))
        converted = from_standard_json_logic(raw)
        if isinstance(converted, LogicNode):
            return check_arity(converted)
    raise ExpressionError(f"Unsupported expression: {raw!r}")


def collect_field_refs(logic: Any, self_field: Optional[str] = None) -> set:
    """Collect every field id referenced by an expression.

    Args:
        logic: Expression tree (or operand)
        self_field: Field id that "$self" / bare var references resolve to

    Returns:
        Set of referenced field ids
    """
    refs: set = set()
    if isinstance(logic, LogicNode):
        if logic.op == LogicOp.VAR:
            name = logic.args[0] if logic.args else SELF_REF
            if name == SELF_REF:
                if self_field:
                    refs.add(self_field)
            else:
                refs.add(name)
        else:
            for arg in logic.args:
                refs |= collect_field_refs(arg, self_field)
    return refs
