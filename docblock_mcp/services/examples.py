from __future__ import annotations

import re

from docblock_mcp.services.docgen_config import DocgenConfig

IN_RULE_PATTERN = re.compile(r"(?:^|\|)in:([^|]+)")
MAX_RULE_PATTERN = re.compile(r"max:(\d+)")
MIN_RULE_PATTERN = re.compile(r"min:(\d+)")
EXISTS_RULE_PATTERN = re.compile(r"exists:(\w+)")

# Ordered (pattern, example) rules applied to the field name after the configured table.
NAME_RULES = (
    (re.compile(r"^(first_?name|name|given_?name)$", re.IGNORECASE), "John"),
    (re.compile(r"^(last_?name|surname|family_?name)$", re.IGNORECASE), "Doe"),
    (re.compile(r"^(full_?name|display_?name)$", re.IGNORECASE), "John Doe"),
    (re.compile(r"email", re.IGNORECASE), "user@example.com"),
    (re.compile(r"phone|telephone|mobile|cell", re.IGNORECASE), "+393331234567"),
    (re.compile(r"address", re.IGNORECASE), "123 Main Street"),
    (re.compile(r"(^|_)city($|_)", re.IGNORECASE), "Milan"),
    (re.compile(r"(^|_)(zip|postal|cap)($|_)", re.IGNORECASE), "20121"),
    (re.compile(r"country|nationality", re.IGNORECASE), "Italy"),
    (re.compile(r"birth", re.IGNORECASE), "1990-05-15"),
    (re.compile(r"date|_at$|_on$", re.IGNORECASE), "2026-01-21"),
    (re.compile(r"^id$|_id$", re.IGNORECASE), "1"),
    (re.compile(r"uuid", re.IGNORECASE), "550e8400-e29b-41d4-a716-446655440000"),
)
BOOLEAN_NAME_PATTERN = re.compile(
    r"^(is_|has_|can_|enabled|active|visible|published)", re.IGNORECASE
)
LATE_NAME_RULES = (
    (re.compile(r"price|amount|cost|total|fee", re.IGNORECASE), "99.99"),
    (re.compile(r"quantity|count|number|qty", re.IGNORECASE), "5"),
    (re.compile(r"\bage\b|^age_|_age$", re.IGNORECASE), "30"),
    (re.compile(r"website", re.IGNORECASE), "https://example.com"),
    (re.compile(r"url|link", re.IGNORECASE), "https://example.com/resource"),
    (re.compile(r"image|photo|avatar|picture", re.IGNORECASE), "https://example.com/image.jpg"),
    (re.compile(r"description|bio", re.IGNORECASE), "A short description of the resource."),
    (re.compile(r"title|subject", re.IGNORECASE), "Quarterly report"),
    (re.compile(r"content|body|text", re.IGNORECASE), "Lorem ipsum dolor sit amet."),
    (re.compile(r"note|comment", re.IGNORECASE), "Please handle with care."),
)
TRAILING_NAME_RULES = (
    (re.compile(r"role", re.IGNORECASE), "admin"),
    (re.compile(r"status", re.IGNORECASE), "active"),
    (re.compile(r"specialization|profession", re.IGNORECASE), "Software Engineer"),
    (re.compile(r"gender|sex", re.IGNORECASE), "M"),
    (re.compile(r"fiscal|tax_code", re.IGNORECASE), "RSSMRA85T10A562S"),
    (re.compile(r"password", re.IGNORECASE), "SecureP@ss123"),
    (
        re.compile(r"cognito_?sub|user_?sub|sub_?id|external_?id", re.IGNORECASE),
        "550e8400-e29b-41d4-a716-446655440000",
    ),
    (re.compile(r"token|key|secret", re.IGNORECASE), "3f7a9c2e8b1d4f6a0e5c7b9d2a4f6e8c"),
    (re.compile(r"slug", re.IGNORECASE), "example-resource-slug"),
    (re.compile(r"code", re.IGNORECASE), "ABC123"),
)
TYPE_DEFAULTS = {
    "array": "[1, 2, 3]",
    "integer": "10",
    "number": "10.5",
    "boolean": "true",
    "date": "2026-01-21",
    "datetime": "2026-01-21T10:30:00.000000Z",
    "json": "{}",
}


def configured_example(field: str, field_type: str, config: DocgenConfig) -> str | None:
    """Look the field up in the example table: exact name first, then a `_key` suffix.

    A suffix match only counts when the value suits the field type.
    """
    examples = config.examples
    if field in examples:
        return examples[field]
    for key, value in examples.items():
        if field.endswith(f"_{key}") and _fits_type(value, field_type):
            return value
    return None


def example_for_field(field: str, field_type: str, rules: str, config: DocgenConfig) -> str:
    configured = configured_example(field, field_type, config)
    if configured is not None:
        return configured

    for pattern, example in NAME_RULES:
        if pattern.search(field):
            return example
    if field_type == "date":
        return TYPE_DEFAULTS["date"]
    if field_type == "boolean" or BOOLEAN_NAME_PATTERN.search(field):
        return "true"
    for pattern, example in LATE_NAME_RULES:
        if pattern.search(field):
            return example

    allowed = IN_RULE_PATTERN.search(rules)
    if allowed:
        return allowed.group(1).split(",")[0].strip()

    for pattern, example in TRAILING_NAME_RULES:
        if pattern.search(field):
            return example

    if field_type in TYPE_DEFAULTS:
        return TYPE_DEFAULTS[field_type]
    return "example"


def array_example(item_type: str) -> str:
    if item_type == "integer":
        return "[1, 12, 23]"
    if item_type == "string":
        return '["alpha", "beta"]'
    return "[1, 2, 3]"


def format_json_value(value: str, value_type: str) -> str:
    if value_type in {"integer", "number"}:
        return value if _is_numeric(value) else "0"
    if value_type == "boolean":
        return "true" if value in {"true", "1"} else "false"
    if value_type == "array":
        return value if value.startswith("[") else "[]"
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def field_description(field: str, rules: str) -> str:
    label = re.sub(r"[_\-]", " ", field)
    label = label[:1].upper() + label[1:]
    label = re.sub(r"(?:^|\s)(id|ids)$", "", label, flags=re.IGNORECASE).strip()
    if not label:
        return ""

    if "email" in rules:
        return "Valid email address."

    sentences: list[str] = []
    max_match = MAX_RULE_PATTERN.search(rules)
    if max_match:
        sentences.append(f"Maximum {max_match.group(1)} characters.")
    min_match = MIN_RULE_PATTERN.search(rules)
    if min_match:
        sentences.append(f"Minimum {min_match.group(1)} characters.")

    allowed = IN_RULE_PATTERN.search(rules)
    if allowed:
        options = [option.strip() for option in allowed.group(1).split(",")]
        return f"Allowed values: {', '.join(options)}."
    exists = EXISTS_RULE_PATTERN.search(rules)
    if exists:
        return f"Must exist in {exists.group(1).replace('_', ' ')}."
    if "unique:" in rules:
        return "Must be unique."

    if sentences:
        return " ".join(sentences)
    return f"The {label}."


def _is_numeric(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


def _fits_type(value: str, field_type: str) -> bool:
    if field_type in {"integer", "number"}:
        return _is_numeric(value)
    if field_type == "boolean":
        return value in {"true", "false", "1", "0"}
    if field_type in {"array", "json"}:
        return value.startswith(("[", "{"))
    return True
