"""
Loading and validation of configuration schemas.

A schema is loaded once, validated completely (structure, field references,
expression syntax and types, dependency cycles) and then treated as immutable.
Every problem surfaces here as a SchemaError; nothing schema-related is left
to fail during per-keystroke evaluation.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

import yaml
from pydantic import ValidationError

from formlogic.errors import SchemaLoadError
from formlogic.runtime.dependency_graph import build_graph
from formlogic.runtime.evaluator import check_expression_types
from formlogic.schemas.configuration import ConfigurationSchema

logger = logging.getLogger(__name__)

SCHEMA_SUFFIXES = (".yaml", ".yml", ".json")


def check_schema_types(schema: ConfigurationSchema) -> None:
    """Statically type-check every expression in a schema.

    Raises:
        TypeMismatchError: On the first ill-typed comparison
    """
    fields = schema.field_map()
    for section in schema.sections:
        if section.visibility_conditions is not None:
            check_expression_types(section.visibility_conditions, fields)
        for field in section.fields:
            if field.visibility_conditions is not None:
                check_expression_types(field.visibility_conditions, fields, field.id)
            for rule in field.validations:
                if rule.expression is not None:
                    check_expression_types(rule.expression, fields, field.id)
    for rule in schema.conditional_logic:
        check_expression_types(rule.condition, fields, rule.target)
    for validation in schema.global_validations:
        check_expression_types(validation.expression, fields)


def parse_schema(data: Dict[str, Any], strict_type_check: bool = True) -> ConfigurationSchema:
    """
    Validate a schema dictionary.

    Args:
        data: Raw schema (as loaded from YAML/JSON)
        strict_type_check: Type-check expressions against field types

    Returns:
        Validated, immutable ConfigurationSchema

    Raises:
        SchemaLoadError: Structural problems reported by pydantic
        UnknownFieldError / DuplicateFieldError: Bad field references
        ExpressionError / TypeMismatchError: Malformed expressions
        CycleError: Cyclic field dependencies
    """
    if not isinstance(data, dict):
        raise SchemaLoadError("Schema must be a mapping")
    try:
        schema = ConfigurationSchema.model_validate(data)
    except ValidationError as e:
        raise SchemaLoadError(f"Invalid configuration schema: {e}") from e

    if strict_type_check:
        check_schema_types(schema)
    build_graph(schema)
    logger.debug(f"Parsed schema '{schema.id}' v{schema.version}")
    return schema


def _read(file_path: Path) -> Any:
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            if file_path.suffix == ".json":
                return json.load(f)
            return yaml.safe_load(f)
    except FileNotFoundError:
        raise SchemaLoadError(f"Schema file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise SchemaLoadError(f"Invalid JSON in schema file {file_path}: {e}")
    except yaml.YAMLError as e:
        raise SchemaLoadError(f"Invalid YAML in schema file {file_path}: {e}")


def load_schema(file_path: Union[str, Path], strict_type_check: bool = True) -> ConfigurationSchema:
    """
    Load and validate a schema file (YAML or JSON).

    Args:
        file_path: Path to the schema file
        strict_type_check: Type-check expressions against field types

    Returns:
        Validated ConfigurationSchema

    Raises:
        SchemaError: If the file cannot be read or the schema is invalid
    """
    file_path = Path(file_path)
    data = _read(file_path)
    if data is None:
        raise SchemaLoadError(f"Schema file is empty: {file_path}")
    schema = parse_schema(data, strict_type_check)
    logger.info(f"Loaded schema '{schema.id}' from {file_path}")
    return schema


class SchemaSource(Protocol):
    """Supplies validated schemas by id."""

    def get(self, schema_id: str) -> ConfigurationSchema:
        ...


class FileSchemaSource:
    """Schemas stored as files in a directory, keyed by schema id.

    Each schema is loaded once per session and then served from memory.
    """

    def __init__(self, directory: Union[str, Path], strict_type_check: bool = True):
        self.directory = Path(directory)
        self.strict_type_check = strict_type_check
        self._paths: Optional[Dict[str, Path]] = None
        self._schemas: Dict[str, ConfigurationSchema] = {}

    def _index(self) -> Dict[str, Path]:
        if self._paths is None:
            if not self.directory.is_dir():
                raise SchemaLoadError(f"Schema directory not found: {self.directory}")
            paths: Dict[str, Path] = {}
            for path in sorted(self.directory.iterdir()):
                if path.suffix not in SCHEMA_SUFFIXES:
                    continue
                schema = load_schema(path, self.strict_type_check)
                if schema.id in paths:
                    raise SchemaLoadError(
                        f"Schema id '{schema.id}' defined in both {paths[schema.id]} and {path}"
                    )
                paths[schema.id] = path
                self._schemas[schema.id] = schema
            self._paths = paths
            logger.debug(f"Indexed {len(paths)} schema(s) in {self.directory}")
        return self._paths

    def ids(self) -> List[str]:
        return sorted(self._index())

    def get(self, schema_id: str) -> ConfigurationSchema:
        if schema_id not in self._index():
            raise SchemaLoadError(f"Unknown schema id: {schema_id}")
        return self._schemas[schema_id]
