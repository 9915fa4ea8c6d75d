from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from docblock_mcp.services.php_source import (
    ArrayEntry,
    ClassRegistry,
    MethodSource,
    array_literal_entries,
    balanced_bracket_content,
    has_method,
    returned_array_entries,
)

logger = logging.getLogger(__name__)

INLINE_VALIDATE_PATTERN = re.compile(
    r"\$(?:request|validator|\w+)\s*(?:=\s*\$request\s*)?->\s*validate\s*\(\s*\[",
    re.DOTALL,
)
RULE_OBJECT_PATTERN = re.compile(r"Rule::(\w+)", re.IGNORECASE)

FORM_OBJECT_BASES = {"Illuminate\\Foundation\\Http\\FormRequest", "FormRequest"}
NAMESPACE_CANDIDATES = ("App\\Http\\Requests\\", "Illuminate\\Http\\", "")
MAX_PARENT_DEPTH = 8


class FormObjectError(Exception):
    """The form object could not produce its rules."""


@dataclass(frozen=True)
class ValidationField:
    name: str
    rule_expression: str
    inferred_type: str
    required: bool

    @property
    def is_wildcard(self) -> bool:
        return self.name.endswith(".*")

    @property
    def base_name(self) -> str:
        return self.name[:-2] if self.is_wildcard else self.name

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "rules": self.rule_expression,
            "type": self.inferred_type,
            "required": self.required,
        }


@dataclass(frozen=True)
class FormObjectType:
    name: str
    source: str


def infer_type_from_rules(rules: str) -> str:
    if "integer" in rules or "numeric" in rules:
        return "integer"
    if "email" in rules:
        return "string"
    if "date" in rules:
        return "date"
    if "boolean" in rules:
        return "boolean"
    if "array" in rules:
        return "array"
    if "json" in rules:
        return "json"
    return "string"


def is_required(rules: str) -> bool:
    return "required" in [token.strip() for token in rules.split("|")]


def build_field(name: str, rules: str) -> ValidationField:
    return ValidationField(
        name=name,
        rule_expression=rules,
        inferred_type=infer_type_from_rules(rules),
        required=is_required(rules),
    )


def fields_from_entries(entries: list[ArrayEntry]) -> dict[str, ValidationField]:
    """Build fields from the entries of a rules array, in source order."""
    fields: dict[str, ValidationField] = {}
    for entry in entries:
        if not entry.key:
            continue
        rules = rules_from_entry(entry)
        if rules:
            fields[entry.key] = build_field(entry.key, rules)
    return fields


def rules_from_entry(entry: ArrayEntry) -> str:
    if entry.is_string:
        return entry.value
    if entry.kind != "array":
        return ""
    rules: list[str] = []
    for item in entry.items:
        if item.is_string:
            rules.append(item.value)
        else:
            rules.extend(rule.lower() for rule in RULE_OBJECT_PATTERN.findall(item.value))
    return "|".join(rules)


def extract_inline_rules(method_body: str) -> dict[str, ValidationField] | None:
    """Return the inline ->validate([...]) fields, or None when there is no such call."""
    match = INLINE_VALIDATE_PATTERN.search(method_body)
    if not match:
        return None
    content = balanced_bracket_content(method_body, match.end() - 1)
    if content is None:
        return {}
    return fields_from_entries(array_literal_entries(f"[{content}]"))


class FormObjectResolver:
    """Resolve a parameter type name to a form-object class known to the registry.

    Resolution only answers which type it is; producing rules is a separate step
    so that its failure boundary stays in one place.
    """

    def __init__(self, registry: ClassRegistry) -> None:
        self.registry = registry

    def candidates(self, type_name: str) -> list[str]:
        if "\\" in type_name:
            return [type_name.lstrip("\\")]
        return [f"{prefix}{type_name}" for prefix in NAMESPACE_CANDIDATES]

    def resolve(self, type_name: str) -> FormObjectType | None:
        for candidate in self.candidates(type_name):
            source = self.registry.source_for(candidate)
            if source is not None and self.is_form_object(candidate):
                return FormObjectType(name=candidate, source=source)
        return None

    def is_form_object(self, name: str) -> bool:
        current = name
        for _ in range(MAX_PARENT_DEPTH):
            info = self.registry.info_for(current)
            if info is None or info.parent is None:
                return False
            parent = info.parent
            if parent in FORM_OBJECT_BASES:
                return True
            if parent not in self.registry and "\\" not in parent and info.namespace:
                parent = f"{info.namespace}\\{parent}"
            current = parent
        return False


def produce_form_rules(form_type: FormObjectType) -> dict[str, ValidationField]:
    if not has_method(form_type.source, "rules"):
        raise FormObjectError(f"{form_type.name} has no rules() method")
    entries = returned_array_entries(form_type.source, "rules")
    if entries is None:
        raise FormObjectError(f"{form_type.name}::rules() does not return an array literal")
    return fields_from_entries(entries)


def extract_validation_fields(
    method: MethodSource, resolver: FormObjectResolver | None = None
) -> tuple[dict[str, ValidationField], list[str]]:
    inline = extract_inline_rules(method.method_body_text)
    if inline is not None:
        return inline, []

    errors: list[str] = []
    fields: dict[str, ValidationField] = {}
    if resolver is None:
        return fields, errors

    for parameter in method.parameters:
        if parameter.is_builtin or parameter.type_name is None:
            continue
        form_type = resolver.resolve(parameter.type_name)
        if form_type is None:
            continue
        try:
            fields.update(produce_form_rules(form_type))
        except Exception as exc:  # noqa: BLE001 - degrade to no fields
            logger.info("extract_validation_fields: form object failed type=%s", form_type.name)
            errors.append(f"form_request_error: {exc}")
    return fields, errors
