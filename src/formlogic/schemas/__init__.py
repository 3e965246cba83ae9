"""Pydantic schemas for configurations, expressions and engine results."""

from formlogic.schemas.configuration import (
    ActionType,
    CacheConfig,
    ConditionalAction,
    ConditionalRule,
    ConfigurationSchema,
    CrossFieldValidation,
    DynamicOptionsConfig,
    FieldDefinition,
    FieldDisplay,
    FieldKind,
    FieldOptions,
    FieldSection,
    FieldType,
    OptionItem,
    SchemaMetadata,
    TriggerKind,
    ValidationRule,
    ValidationRuleType,
    ValidationTrigger,
    ValueKind,
)
from formlogic.schemas.expression import LogicNode, LogicOp
from formlogic.schemas.results import (
    FormSubmission,
    OptionsResult,
    ResolvedFieldState,
    SubmissionStatus,
    ValidationResults,
)

__all__ = [
    "ActionType",
    "CacheConfig",
    "ConditionalAction",
    "ConditionalRule",
    "ConfigurationSchema",
    "CrossFieldValidation",
    "DynamicOptionsConfig",
    "FieldDefinition",
    "FieldDisplay",
    "FieldKind",
    "FieldOptions",
    "FieldSection",
    "FieldType",
    "FormSubmission",
    "LogicNode",
    "LogicOp",
    "OptionItem",
    "OptionsResult",
    "ResolvedFieldState",
    "SchemaMetadata",
    "SubmissionStatus",
    "TriggerKind",
    "ValidationResults",
    "ValidationRule",
    "ValidationRuleType",
    "ValidationTrigger",
    "ValueKind",
]
