"""Normalization of variant names across schema spellings.

Schemas written by hand use snake_case ("multi_select", "on_submit"), while
schemas exported from the desktop authoring tool use PascalCase variant tags
("MultiSelect", "OnSubmit"). Both are accepted.
"""

import re

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# Spellings that do not map 1:1 through snake-casing
_ALIASES = {
    "text_area": "textarea",
    "date_time": "datetime",
    "multiselect": "multi_select",
    "checkboxgroup": "checkbox_group",
    "onchange": "on_change",
    "onblur": "on_blur",
    "onsubmit": "on_submit",
    "minlength": "min_length",
    "maxlength": "max_length",
    "crossfield": "cross_field",
    "setvalue": "set_value",
    "clearvalue": "clear_value",
    "showerror": "show_error",
    "setoptions": "set_options",
}


def normalize_tag(name: str) -> str:
    """Convert a variant tag to its canonical snake_case form.

    Example:
        >>> normalize_tag("MultiSelect")
        'multi_select'
        >>> normalize_tag("OnSubmit")
        'on_submit'
    """
    snake = _CAMEL_BOUNDARY.sub("_", name.strip()).replace("-", "_").lower()
    return _ALIASES.get(snake, snake)
