"""Runtime components: loader, evaluator, graph, rules, validation, options, submission."""

from formlogic.runtime.dependency_graph import DependencyGraph, build_graph
from formlogic.runtime.engine import (
    FieldChange,
    FormEngine,
    autosave,
    resolve_field_states,
    submit,
    validate_all,
    validate_cross_field,
    validate_field,
)
from formlogic.runtime.evaluator import EvaluationContext, ExpressionEvaluator, IEvaluator, evaluate
from formlogic.runtime.options import OptionSource, OptionsCache, OptionsResolver, resolve_options
from formlogic.runtime.rule_engine import RuleEngine
from formlogic.runtime.schema_loader import FileSchemaSource, SchemaSource, load_schema, parse_schema
from formlogic.runtime.submission import SubmissionCoordinator
from formlogic.runtime.validation import ValidationEngine, ValidatorRegistry

__all__ = [
    "DependencyGraph",
    "EvaluationContext",
    "ExpressionEvaluator",
    "FieldChange",
    "FileSchemaSource",
    "FormEngine",
    "IEvaluator",
    "OptionSource",
    "OptionsCache",
    "OptionsResolver",
    "RuleEngine",
    "SchemaSource",
    "SubmissionCoordinator",
    "ValidationEngine",
    "ValidatorRegistry",
    "autosave",
    "build_graph",
    "evaluate",
    "load_schema",
    "parse_schema",
    "resolve_field_states",
    "resolve_options",
    "submit",
    "validate_all",
    "validate_cross_field",
    "validate_field",
]
