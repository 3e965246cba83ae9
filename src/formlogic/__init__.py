"""
formlogic - Dynamic configuration and conditional logic engine.

A declarative schema describes a form (sections, fields, validation rules,
inter-field dependencies and conditional behavior); the engine turns the
schema plus live form data into per-field render and validation state.
"""

__version__ = "0.1.0"

from formlogic.config import EngineConfig, load_engine_config
from formlogic.runtime import (
    FormEngine,
    OptionsCache,
    ValidatorRegistry,
    autosave,
    build_graph,
    load_schema,
    parse_schema,
    resolve_field_states,
    resolve_options,
    submit,
    validate_all,
    validate_cross_field,
    validate_field,
)

__all__ = [
    "EngineConfig",
    "FormEngine",
    "OptionsCache",
    "ValidatorRegistry",
    "autosave",
    "build_graph",
    "load_engine_config",
    "load_schema",
    "parse_schema",
    "resolve_field_states",
    "resolve_options",
    "submit",
    "validate_all",
    "validate_cross_field",
    "validate_field",
]
