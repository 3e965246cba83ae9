"""Pydantic models for engine outputs: resolved field state, validation
results, submissions and option lists."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from formlogic.errors import SubmissionStateError
from formlogic.schemas.configuration import OptionItem


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ResolvedFieldState(BaseModel):
    """Per-field render state after applying conditional rules."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    field_id: str
    is_visible: bool = True
    is_enabled: bool = True
    value_override: Any = None
    has_value_override: bool = False
    options_override: Optional[List[OptionItem]] = None
    error_override: Optional[str] = None
    applied_rules: List[str] = Field(
        default_factory=list,
        description="Ids of rules whose condition held, in application order",
    )


class ValidationResults(BaseModel):
    """Aggregated outcome of validating a form."""

    model_config = ConfigDict(extra="forbid")

    is_valid: bool = True
    field_errors: Dict[str, List[str]] = Field(default_factory=dict)
    global_errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    def add_field_error(self, field_id: str, message: str) -> None:
        self.field_errors.setdefault(field_id, []).append(message)
        self.is_valid = False

    def add_global_error(self, message: str) -> None:
        self.global_errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def has_errors(self) -> bool:
        return bool(self.field_errors) or bool(self.global_errors)

    def merge(self, other: "ValidationResults") -> "ValidationResults":
        """Fold another result set into this one and return self."""
        for field_id, messages in other.field_errors.items():
            for message in messages:
                self.add_field_error(field_id, message)
        for message in other.global_errors:
            self.add_global_error(message)
        self.warnings.extend(other.warnings)
        return self


class SubmissionStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self != SubmissionStatus.PROCESSING


class FormSubmission(BaseModel):
    """Record of one submit attempt. Immutable once in a terminal status."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    configuration_id: str
    user_id: Optional[str] = None
    form_data: Dict[str, Any] = Field(default_factory=dict)
    validation_results: ValidationResults = Field(default_factory=ValidationResults)
    status: SubmissionStatus = SubmissionStatus.PROCESSING
    error: Optional[str] = None
    submitted_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    def transition(self, status: SubmissionStatus, error: Optional[str] = None) -> "FormSubmission":
        """Return a copy of this record moved to `status`.

        Raises:
            SubmissionStateError: If this record is already terminal
        """
        if self.status.is_terminal:
            raise SubmissionStateError(
                f"Submission {self.id} is {self.status.value}; cannot move to {status.value}"
            )
        return self.model_copy(
            update={"status": status, "error": error, "updated_at": _utc_now()}
        )


class OptionsResult(BaseModel):
    """Options resolved for one field."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    options: List[OptionItem] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    from_cache: bool = False
