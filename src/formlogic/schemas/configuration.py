"""Pydantic models for configuration schemas.

A configuration schema declaratively describes a form: ordered sections of
field definitions, per-field validation rules, cross-field validations and
conditional rules that override field state at runtime. Schemas are immutable
once loaded; every model is frozen.

Variant tags are accepted both in snake_case ("multi_select") and in the
PascalCase spelling used by exported schemas ("MultiSelect").
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from formlogic.errors import DuplicateFieldError, UnknownFieldError
from formlogic.schemas.expression import LogicNode
from formlogic.utils.expression_parser import coerce_expression, collect_field_refs
from formlogic.utils.naming import normalize_tag

_FROZEN = ConfigDict(extra="forbid", frozen=True)


def _check_pattern(pattern: str) -> None:
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValueError(f"Invalid regex pattern '{pattern}': {e}") from e


# ── Field types ──────────────────────────────────────────────────────


class ValueKind(str, Enum):
    """Shape of the value a field holds in form data."""

    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"
    ANY = "any"


class FieldKind(str, Enum):
    """Supported input field types."""

    TEXT = "text"
    TEXTAREA = "textarea"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    INTEGER = "integer"
    EMAIL = "email"
    URL = "url"
    PHONE = "phone"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    RADIO = "radio"
    CHECKBOX_GROUP = "checkbox_group"
    CHECKBOX = "checkbox"
    TOGGLE = "toggle"
    SLIDER = "slider"
    RATING = "rating"
    FILE_UPLOAD = "file_upload"
    IMAGE_UPLOAD = "image_upload"
    COLOR = "color"
    JSON = "json"
    FIELD_ARRAY = "field_array"
    DYNAMIC_FIELD_GROUP = "dynamic_field_group"
    HIDDEN = "hidden"
    DISPLAY = "display"
    DIVIDER = "divider"

    @property
    def value_kind(self) -> ValueKind:
        return _VALUE_KINDS.get(self, ValueKind.ANY)

    @property
    def is_input(self) -> bool:
        """False for types that never carry user input."""
        return self not in (FieldKind.HIDDEN, FieldKind.DISPLAY, FieldKind.DIVIDER)


_VALUE_KINDS = {
    FieldKind.TEXT: ValueKind.TEXT,
    FieldKind.TEXTAREA: ValueKind.TEXT,
    FieldKind.RICH_TEXT: ValueKind.TEXT,
    FieldKind.EMAIL: ValueKind.TEXT,
    FieldKind.URL: ValueKind.TEXT,
    FieldKind.PHONE: ValueKind.TEXT,
    FieldKind.DATE: ValueKind.TEXT,
    FieldKind.DATETIME: ValueKind.TEXT,
    FieldKind.TIME: ValueKind.TEXT,
    FieldKind.COLOR: ValueKind.TEXT,
    FieldKind.NUMBER: ValueKind.NUMBER,
    FieldKind.INTEGER: ValueKind.NUMBER,
    FieldKind.SLIDER: ValueKind.NUMBER,
    FieldKind.RATING: ValueKind.NUMBER,
    FieldKind.CHECKBOX: ValueKind.BOOLEAN,
    FieldKind.TOGGLE: ValueKind.BOOLEAN,
    FieldKind.MULTI_SELECT: ValueKind.LIST,
    FieldKind.CHECKBOX_GROUP: ValueKind.LIST,
    FieldKind.FIELD_ARRAY: ValueKind.LIST,
    FieldKind.DYNAMIC_FIELD_GROUP: ValueKind.LIST,
}


class TypeConfig(BaseModel):
    """Base for type-specific field configuration."""

    model_config = _FROZEN


class TextConfig(TypeConfig):
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None


class TextAreaConfig(TypeConfig):
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    rows: Optional[int] = None
    resize: bool = True


class RichTextConfig(TypeConfig):
    allowed_formats: List[str] = Field(default_factory=list)
    max_length: Optional[int] = None
    upload_images: bool = False


class NumberConfig(TypeConfig):
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    decimal_places: Optional[int] = None


class IntegerConfig(TypeConfig):
    min: Optional[int] = None
    max: Optional[int] = None
    step: Optional[int] = None


class PhoneConfig(TypeConfig):
    format: Optional[str] = None
    country_code: Optional[str] = None


class DateConfig(TypeConfig):
    min_date: Optional[str] = None
    max_date: Optional[str] = None
    format: str = "%Y-%m-%d"


class DateTimeConfig(TypeConfig):
    min_datetime: Optional[str] = None
    max_datetime: Optional[str] = None
    format: str = "%Y-%m-%dT%H:%M:%S"
    timezone: Optional[str] = None


class TimeConfig(TypeConfig):
    format: str = "%H:%M"
    step_minutes: Optional[int] = None


class SelectConfig(TypeConfig):
    searchable: bool = False
    clearable: bool = True
    placeholder: Optional[str] = None


class MultiSelectConfig(TypeConfig):
    searchable: bool = False
    max_selections: Optional[int] = None
    placeholder: Optional[str] = None


class RadioConfig(TypeConfig):
    inline: bool = False


class CheckboxGroupConfig(TypeConfig):
    inline: bool = False
    max_selections: Optional[int] = None


class SliderMark(TypeConfig):
    value: float
    label: Optional[str] = None


class SliderConfig(TypeConfig):
    min: float = 0.0
    max: float = 100.0
    step: Optional[float] = None
    marks: Optional[List[SliderMark]] = None


class RatingConfig(TypeConfig):
    max_rating: int = 5
    allow_half: bool = False
    icon: str = "star"


class FileUploadConfig(TypeConfig):
    accepted_types: List[str] = Field(default_factory=list)
    max_size: Optional[int] = None
    multiple: bool = False


class ImageUploadConfig(TypeConfig):
    accepted_formats: List[str] = Field(default_factory=list)
    max_size: Optional[int] = None
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    crop_aspect_ratio: Optional[str] = None


class ColorConfig(TypeConfig):
    format: str = "hex"
    alpha: bool = False


class JsonConfig(TypeConfig):
    json_schema: Optional[Dict[str, Any]] = Field(default=None, alias="schema")

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class FieldArrayConfig(TypeConfig):
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    item_schema: Optional[FieldDefinition] = None


class DynamicFieldGroupConfig(TypeConfig):
    fields: List[FieldDefinition] = Field(default_factory=list)
    min_groups: Optional[int] = None
    max_groups: Optional[int] = None


class DisplayConfig(TypeConfig):
    format: Optional[str] = None


class DividerConfig(TypeConfig):
    style: str = "solid"


class EmptyConfig(TypeConfig):
    pass


_CONFIG_MODELS = {
    FieldKind.TEXT: TextConfig,
    FieldKind.TEXTAREA: TextAreaConfig,
    FieldKind.RICH_TEXT: RichTextConfig,
    FieldKind.NUMBER: NumberConfig,
    FieldKind.INTEGER: IntegerConfig,
    FieldKind.PHONE: PhoneConfig,
    FieldKind.DATE: DateConfig,
    FieldKind.DATETIME: DateTimeConfig,
    FieldKind.TIME: TimeConfig,
    FieldKind.SELECT: SelectConfig,
    FieldKind.MULTI_SELECT: MultiSelectConfig,
    FieldKind.RADIO: RadioConfig,
    FieldKind.CHECKBOX_GROUP: CheckboxGroupConfig,
    FieldKind.SLIDER: SliderConfig,
    FieldKind.RATING: RatingConfig,
    FieldKind.FILE_UPLOAD: FileUploadConfig,
    FieldKind.IMAGE_UPLOAD: ImageUploadConfig,
    FieldKind.COLOR: ColorConfig,
    FieldKind.JSON: JsonConfig,
    FieldKind.FIELD_ARRAY: FieldArrayConfig,
    FieldKind.DYNAMIC_FIELD_GROUP: DynamicFieldGroupConfig,
    FieldKind.DISPLAY: DisplayConfig,
    FieldKind.DIVIDER: DividerConfig,
}


class FieldType(BaseModel):
    """Tagged field type with its type-specific configuration.

    Accepts "text", {"type": "text"} or {"type": "Text", "config": {...}}.
    """

    model_config = _FROZEN

    type: FieldKind
    config: Any = None

    @model_validator(mode="before")
    @classmethod
    def parse_tagged(cls, data: Any) -> Any:
        if isinstance(data, str):
            data = {"type": data}
        if not isinstance(data, dict):
            return data
        raw_type = data.get("type")
        kind = FieldKind(normalize_tag(raw_type)) if isinstance(raw_type, str) else raw_type
        config = data.get("config")
        model = _CONFIG_MODELS.get(kind, EmptyConfig)
        if not isinstance(config, TypeConfig):
            config = model.model_validate(config or {})
        return {"type": kind, "config": config}


# ── Validation rules ─────────────────────────────────────────────────


class ValidationRuleType(str, Enum):
    REQUIRED = "required"
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"
    PATTERN = "pattern"
    MIN = "min"
    MAX = "max"
    EMAIL = "email"
    URL = "url"
    CUSTOM = "custom"
    CROSS_FIELD = "cross_field"


class ValidationRule(BaseModel):
    """Field-level validation rule.

    Flat ({"type": "min_length", "length": 3}) and nested
    ({"type": "MinLength", "config": {"length": 3}}) spellings are accepted.
    """

    model_config = _FROZEN

    type: ValidationRuleType
    message: Optional[str] = None
    length: Optional[int] = None
    value: Optional[float] = None
    pattern: Optional[str] = None
    flags: Optional[str] = None
    function_name: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    expression: Optional[LogicNode] = None

    @model_validator(mode="before")
    @classmethod
    def flatten_config(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        nested = data.pop("config", None) or {}
        merged = {**nested, **data}
        if isinstance(merged.get("type"), str):
            merged["type"] = normalize_tag(merged["type"])
        return merged

    @field_validator("expression", mode="before")
    @classmethod
    def parse_expression(cls, v: Any) -> Any:
        return None if v is None else coerce_expression(v)

    @model_validator(mode="after")
    def check_payload(self) -> "ValidationRule":
        needs = {
            ValidationRuleType.MIN_LENGTH: "length",
            ValidationRuleType.MAX_LENGTH: "length",
            ValidationRuleType.MIN: "value",
            ValidationRuleType.MAX: "value",
            ValidationRuleType.PATTERN: "pattern",
            ValidationRuleType.CUSTOM: "function_name",
            ValidationRuleType.CROSS_FIELD: "expression",
        }
        attr = needs.get(self.type)
        if attr and getattr(self, attr) is None:
            raise ValueError(f"Validation rule '{self.type.value}' requires '{attr}'")
        if self.pattern is not None:
            _check_pattern(self.pattern)
        return self


# ── Options ──────────────────────────────────────────────────────────


class OptionItem(BaseModel):
    """A single selectable option."""

    model_config = _FROZEN

    value: Any
    label: str
    description: Optional[str] = None
    disabled: bool = False
    icon: Optional[str] = None
    group: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class CacheConfig(BaseModel):
    """Caching policy for dynamic options."""

    model_config = _FROZEN

    duration: int = Field(default=300, ge=0, description="Cache duration in seconds")
    per_user: bool = False
    key_template: Optional[str] = None


class DynamicOptionsConfig(BaseModel):
    """Descriptor for options loaded from an external source."""

    model_config = _FROZEN

    source_type: str
    source_config: Dict[str, Any] = Field(default_factory=dict)
    dependencies: List[str] = Field(default_factory=list)
    cache_config: Optional[CacheConfig] = None


class FieldOptions(BaseModel):
    """Static or dynamic option list for choice fields."""

    model_config = _FROZEN

    static_options: Optional[List[OptionItem]] = None
    dynamic_options: Optional[DynamicOptionsConfig] = None
    allow_custom: bool = False
    custom_validation: Optional[ValidationRule] = None

    @property
    def is_dynamic(self) -> bool:
        return self.dynamic_options is not None


# ── Display ──────────────────────────────────────────────────────────


class GridLayout(BaseModel):
    model_config = _FROZEN

    xs: Optional[int] = None
    sm: Optional[int] = None
    md: Optional[int] = None
    lg: Optional[int] = None
    xl: Optional[int] = None
    offset: Optional[int] = None


class FieldDisplay(BaseModel):
    """Declared layout hints and interaction flags (overridable at runtime)."""

    model_config = _FROZEN

    css_classes: List[str] = Field(default_factory=list)
    styles: Dict[str, str] = Field(default_factory=dict)
    grid: GridLayout = Field(default_factory=GridLayout)
    disabled: bool = False
    readonly: bool = False
    auto_focus: bool = False
    tab_index: Optional[int] = None
    tooltip: Optional[str] = None
    width: str = "md"


# ── Fields and sections ──────────────────────────────────────────────


class FieldDefinition(BaseModel):
    """Definition of a single input field."""

    model_config = _FROZEN

    id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    field_type: FieldType = Field(default_factory=lambda: FieldType(type=FieldKind.TEXT))
    required: bool = False
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    default_value: Any = None
    validations: List[ValidationRule] = Field(default_factory=list)
    options: Optional[FieldOptions] = None
    display: FieldDisplay = Field(default_factory=FieldDisplay)
    visibility_conditions: Optional[LogicNode] = None
    dependent_fields: List[str] = Field(default_factory=list)
    framework_mapping: Optional[Dict[str, Any]] = None

    @field_validator("visibility_conditions", mode="before")
    @classmethod
    def parse_visibility(cls, v: Any) -> Any:
        return None if v is None else coerce_expression(v)

    @model_validator(mode="after")
    def check_type_config(self) -> "FieldDefinition":
        config = self.field_type.config
        low = getattr(config, "min_length", None)
        high = getattr(config, "max_length", None)
        if low is not None and high is not None and low > high:
            raise ValueError(f"Field '{self.id}': min_length cannot be greater than max_length")
        low = getattr(config, "min", None)
        high = getattr(config, "max", None)
        if low is not None and high is not None and low > high:
            raise ValueError(f"Field '{self.id}': min cannot be greater than max")
        pattern = getattr(config, "pattern", None)
        if pattern is not None:
            _check_pattern(pattern)
        return self

    @property
    def kind(self) -> FieldKind:
        return self.field_type.type

    @property
    def static_options(self) -> Optional[List[OptionItem]]:
        return self.options.static_options if self.options else None


class FieldSection(BaseModel):
    """A logical grouping of related fields."""

    model_config = _FROZEN

    id: str = Field(..., min_length=1)
    title: str
    description: Optional[str] = None
    order: int = 0
    collapsible: bool = False
    collapsed_by_default: bool = False
    icon: Optional[str] = None
    fields: List[FieldDefinition] = Field(default_factory=list)
    visibility_conditions: Optional[LogicNode] = None

    @field_validator("visibility_conditions", mode="before")
    @classmethod
    def parse_visibility(cls, v: Any) -> Any:
        return None if v is None else coerce_expression(v)


# ── Cross-field validation and conditional rules ─────────────────────


class TriggerKind(str, Enum):
    ON_CHANGE = "on_change"
    ON_BLUR = "on_blur"
    ON_SUBMIT = "on_submit"
    CUSTOM = "custom"


class ValidationTrigger(BaseModel):
    """When a cross-field validation fires.

    Accepts "on_submit", "OnSubmit", {"custom": "name"} or {"Custom": "name"}.
    """

    model_config = _FROZEN

    kind: TriggerKind
    name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def parse_trigger(cls, data: Any) -> Any:
        if isinstance(data, TriggerKind):
            return {"kind": data}
        if isinstance(data, str):
            return {"kind": normalize_tag(data)}
        if isinstance(data, dict) and isinstance(data.get("kind"), str):
            return {**data, "kind": normalize_tag(data["kind"])}
        if isinstance(data, dict) and "kind" not in data and len(data) == 1:
            tag, name = next(iter(data.items()))
            if normalize_tag(tag) == "custom":
                return {"kind": TriggerKind.CUSTOM, "name": name}
        return data

    @model_validator(mode="after")
    def check_name(self) -> "ValidationTrigger":
        if self.kind == TriggerKind.CUSTOM and not self.name:
            raise ValueError("Custom trigger requires a name")
        return self

    def matches(self, other: "ValidationTrigger") -> bool:
        if self.kind != other.kind:
            return False
        return self.kind != TriggerKind.CUSTOM or self.name == other.name

    @classmethod
    def of(cls, value: Any) -> "ValidationTrigger":
        """Coerce a trigger spelling (or a trigger) into a ValidationTrigger."""
        if isinstance(value, ValidationTrigger):
            return value
        return cls.model_validate(value)


class CrossFieldValidation(BaseModel):
    """Validation spanning several fields, fired on a declared trigger."""

    model_config = _FROZEN

    id: str
    name: str = ""
    fields: List[str] = Field(default_factory=list)
    expression: LogicNode
    message: str
    trigger: ValidationTrigger = Field(
        default_factory=lambda: ValidationTrigger(kind=TriggerKind.ON_SUBMIT)
    )

    @field_validator("expression", mode="before")
    @classmethod
    def parse_expression(cls, v: Any) -> Any:
        return coerce_expression(v)

    @model_validator(mode="before")
    @classmethod
    def default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name") and data.get("id"):
            data = {**data, "name": data["id"]}
        return data

    @property
    def involved_fields(self) -> Set[str]:
        """Declared fields plus every field the expression reads."""
        return set(self.fields) | collect_field_refs(self.expression)


class ActionType(str, Enum):
    SHOW = "show"
    HIDE = "hide"
    ENABLE = "enable"
    DISABLE = "disable"
    SET_VALUE = "set_value"
    CLEAR_VALUE = "clear_value"
    SHOW_ERROR = "show_error"
    SET_OPTIONS = "set_options"


class ConditionalAction(BaseModel):
    """Closed set of actions a conditional rule can apply.

    Accepts "hide", {"type": "set_value", "value": 1}, or the externally
    tagged form {"SetValue": 1} / {"ShowError": "msg"} / {"SetOptions": [...]}.
    """

    model_config = _FROZEN

    type: ActionType
    value: Any = None
    message: Optional[str] = None
    options: Optional[List[OptionItem]] = None

    @model_validator(mode="before")
    @classmethod
    def parse_tagged(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"type": normalize_tag(data)}
        if not isinstance(data, dict):
            return data
        if "type" in data:
            data = dict(data)
            if isinstance(data["type"], str):
                data["type"] = normalize_tag(data["type"])
            return data
        if len(data) == 1:
            tag, payload = next(iter(data.items()))
            action = normalize_tag(tag)
            if action == "set_value":
                return {"type": action, "value": payload}
            if action == "show_error":
                return {"type": action, "message": payload}
            if action == "set_options":
                return {"type": action, "options": payload}
            return {"type": action}
        return data

    @model_validator(mode="after")
    def check_payload(self) -> "ConditionalAction":
        if self.type == ActionType.SHOW_ERROR and not self.message:
            raise ValueError("show_error action requires a message")
        if self.type == ActionType.SET_OPTIONS and self.options is None:
            raise ValueError("set_options action requires options")
        return self


class ConditionalRule(BaseModel):
    """Condition -> action pair targeting one field."""

    model_config = _FROZEN

    id: str
    target: str
    action: ConditionalAction
    condition: LogicNode

    @field_validator("condition", mode="before")
    @classmethod
    def parse_condition(cls, v: Any) -> Any:
        return coerce_expression(v)


# ── Schema ───────────────────────────────────────────────────────────


class SchemaMetadata(BaseModel):
    model_config = _FROZEN

    tags: List[str] = Field(default_factory=list)
    target_audience: List[str] = Field(default_factory=list)
    difficulty_level: Optional[str] = None
    estimated_minutes: Optional[int] = None
    is_template: bool = False
    is_active: bool = True
    locale: str = "en"
    custom: Dict[str, Any] = Field(default_factory=dict)


class ConfigurationSchema(BaseModel):
    """Top-level configuration for a form."""

    model_config = _FROZEN

    id: str = Field(..., min_length=1)
    name: str
    description: Optional[str] = None
    version: str = "1.0"
    framework: Optional[str] = None
    category: str = "general"
    sections: List[FieldSection] = Field(default_factory=list)
    global_validations: List[CrossFieldValidation] = Field(default_factory=list)
    conditional_logic: List[ConditionalRule] = Field(default_factory=list)
    defaults: Dict[str, Any] = Field(default_factory=dict)
    metadata: SchemaMetadata = Field(default_factory=SchemaMetadata)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_references(self) -> "ConfigurationSchema":
        field_ids: Set[str] = set()
        for field in self._all_fields():
            if field.id in field_ids:
                raise DuplicateFieldError(field.id)
            field_ids.add(field.id)

        def require(ids, where: str) -> None:
            for field_id in sorted(ids):
                if field_id not in field_ids:
                    raise UnknownFieldError(field_id, where)

        for section in self.sections:
            if section.visibility_conditions is not None:
                require(collect_field_refs(section.visibility_conditions),
                        f"Section '{section.id}' visibility condition")
            for field in section.fields:
                require(field.dependent_fields, f"Field '{field.id}' dependent_fields")
                if field.visibility_conditions is not None:
                    require(collect_field_refs(field.visibility_conditions, field.id),
                            f"Field '{field.id}' visibility condition")
                if field.options and field.options.dynamic_options:
                    require(field.options.dynamic_options.dependencies,
                            f"Field '{field.id}' dynamic options")
                for rule in field.validations:
                    if rule.expression is not None:
                        require(collect_field_refs(rule.expression, field.id),
                                f"Field '{field.id}' cross-field rule")

        for validation in self.global_validations:
            require(validation.involved_fields, f"Cross-field validation '{validation.id}'")

        for rule in self.conditional_logic:
            require([rule.target], f"Conditional rule '{rule.id}' target")
            require(collect_field_refs(rule.condition, rule.target),
                    f"Conditional rule '{rule.id}' condition")

        require(self.defaults.keys(), "defaults")
        return self

    def _all_fields(self) -> Iterator[FieldDefinition]:
        for section in self.sections:
            yield from section.fields

    def ordered_sections(self) -> List[FieldSection]:
        """Sections by `order`; ties keep declaration order."""
        return sorted(self.sections, key=lambda s: s.order)

    def iter_fields(self) -> Iterator[FieldDefinition]:
        """All fields in render order."""
        for section in self.ordered_sections():
            yield from section.fields

    def field_ids(self) -> List[str]:
        return [field.id for field in self.iter_fields()]

    def get_field(self, field_id: str) -> Optional[FieldDefinition]:
        for field in self._all_fields():
            if field.id == field_id:
                return field
        return None

    def get_section(self, section_id: str) -> Optional[FieldSection]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def section_of(self, field_id: str) -> Optional[FieldSection]:
        for section in self.sections:
            if any(field.id == field_id for field in section.fields):
                return section
        return None

    def field_map(self) -> Dict[str, FieldDefinition]:
        return {field.id: field for field in self.iter_fields()}

    def rules_for(self, field_id: str) -> List[ConditionalRule]:
        """Conditional rules targeting a field, in schema order."""
        return [rule for rule in self.conditional_logic if rule.target == field_id]


FieldArrayConfig.model_rebuild()
DynamicFieldGroupConfig.model_rebuild()
