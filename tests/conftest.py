"""
Pytest fixtures shared by the formlogic test suite.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from formlogic.runtime.schema_loader import parse_schema
from formlogic.schemas.configuration import ConfigurationSchema

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def field(field_id: str, field_type: Any = "text", **kwargs) -> Dict[str, Any]:
    """Build a raw field definition."""
    return {"id": field_id, "label": field_id.replace("_", " ").title(), "field_type": field_type, **kwargs}


def build_schema(
    fields: List[Dict[str, Any]],
    rules: Optional[List[Dict[str, Any]]] = None,
    validations: Optional[List[Dict[str, Any]]] = None,
    sections: Optional[List[Dict[str, Any]]] = None,
    **kwargs,
) -> ConfigurationSchema:
    """Build and validate a single-section schema (or use explicit sections)."""
    data = {
        "id": kwargs.pop("id", "test_form"),
        "name": kwargs.pop("name", "Test Form"),
        "sections": sections or [{"id": "main", "title": "Main", "fields": fields}],
        "conditional_logic": rules or [],
        "global_validations": validations or [],
        **kwargs,
    }
    return parse_schema(data)


@pytest.fixture
def schema_factory():
    """Factory for schemas built from raw field/rule dictionaries."""
    return build_schema


@pytest.fixture
def make_field():
    """Factory for raw field definitions."""
    return field


@pytest.fixture
def bonus_schema() -> ConfigurationSchema:
    """`bonus` is hidden by default and shown when age >= 65."""
    return build_schema(
        fields=[
            field("age", "number"),
            field("bonus", "text", required=True),
        ],
        rules=[
            {"id": "hide_bonus", "target": "bonus", "action": "hide", "condition": "not (age >= 65)"},
            {"id": "show_bonus", "target": "bonus", "action": "show", "condition": "age >= 65"},
        ],
    )


@pytest.fixture
def total_schema() -> ConfigurationSchema:
    """Cross-field validation `total = a + b` on submit."""
    return build_schema(
        fields=[
            field("a", "number"),
            field("b", "number"),
            field("total", "number"),
        ],
        validations=[
            {
                "id": "total_matches",
                "fields": ["a", "b", "total"],
                "expression": "total = a + b",
                "message": "Total must equal a + b",
                "trigger": "on_submit",
            }
        ],
    )


@pytest.fixture
def signup_schema_path() -> Path:
    return FIXTURES_DIR / "signup.yaml"
