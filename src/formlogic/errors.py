"""Error taxonomy for the form logic engine.

Only SchemaError (and its subclasses) is meant to escape to callers as a hard
failure. Everything else is caught at a component boundary and converted into
data: validation results, failed submission statuses, empty option lists with
a warning, or the last stable field states.
"""

from typing import List, Optional, Sequence


class FormLogicError(Exception):
    """Base class for all engine errors."""


# ── Schema errors (fatal, raised at schema load) ─────────────────────


class SchemaError(FormLogicError):
    """Raised when a configuration schema is malformed."""


class SchemaLoadError(SchemaError):
    """Raised when a schema file cannot be read or parsed."""


class UnknownFieldError(SchemaError):
    """Raised when a schema references a field id that no section declares."""

    def __init__(self, field_id: str, where: str):
        self.field_id = field_id
        self.where = where
        super().__init__(f"{where} references unknown field: {field_id}")


class DuplicateFieldError(SchemaError):
    """Raised when the same field id is declared more than once."""

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(f"Duplicate field ID: {field_id}")


class CycleError(SchemaError):
    """Raised when a field transitively depends on itself.

    Attributes:
        cycle: Field ids forming the cycle, starting at the smallest id and
            ending with it again (e.g. ["a", "b", "a"]).
    """

    def __init__(self, cycle: Sequence[str]):
        self.cycle: List[str] = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class ExpressionError(SchemaError):
    """Raised for malformed expressions (unknown operator, bad arity, syntax)."""


class TypeMismatchError(ExpressionError):
    """Raised when an expression compares values of incompatible types."""

    def __init__(self, op: str, left: object, right: object, detail: Optional[str] = None):
        self.op = op
        self.left = left
        self.right = right
        message = (
            f"Cannot apply '{op}' to {type(left).__name__} and {type(right).__name__}"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


# ── Runtime errors (converted to data at component boundaries) ───────


class RuleResolutionError(FormLogicError):
    """Raised when conditional rules cannot be resolved to a stable state."""


class UnstableRuleError(RuleResolutionError):
    """Raised when rule conditions keep flipping after the pass ceiling.

    Attributes:
        field_ids: Fields whose state did not stabilise.
        passes: Number of passes attempted.
    """

    def __init__(self, field_ids: Sequence[str], passes: int):
        self.field_ids: List[str] = sorted(field_ids)
        self.passes = passes
        super().__init__(
            f"Conditional rules did not stabilise after {passes} passes "
            f"for fields: {', '.join(self.field_ids)}"
        )


class OptionSourceError(FormLogicError):
    """Raised by an option source when options cannot be fetched."""


class SubmitHandlerError(FormLogicError):
    """Raised by (or wrapped around) a failing submit handler."""


class SubmissionStateError(FormLogicError):
    """Raised on an illegal submission status transition."""
