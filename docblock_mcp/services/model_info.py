from __future__ import annotations

import logging
import re

from docblock_mcp.services.php_source import (
    ArrayEntry,
    ClassRegistry,
    MethodSource,
    balanced_bracket_content,
    property_array_entries,
    returned_array_entries,
)

logger = logging.getLogger(__name__)

LOADED_RELATIONS_PATTERN = re.compile(r"(?:->\s*load|::\s*with)\s*\(\s*\[")
LOADED_RELATION_NAMES_PATTERN = re.compile(
    r"""(?:->\s*load|::\s*with)\s*\(\s*((?:['"][\w.]+['"]\s*,?\s*)+)\)"""
)
CALLBACK_RELATION_PATTERN = re.compile(
    r"""['"](\w+)['"]\s*=>\s*(?:static\s+)?(?:function|fn)\b"""
)
SIMPLE_RELATION_PATTERN = re.compile(r"""['"](\w+)['"](?!\s*=>)(?!\s*\.)""")
RELATION_SKIP = {"id", "name", "select", "query", "function"}
MODEL_BASES = {"Model", "Authenticatable", "Pivot"}
MODEL_PARENTS = {
    "Illuminate\\Database\\Eloquent\\Model",
    "Illuminate\\Database\\Eloquent\\Relations\\Pivot",
    "Illuminate\\Foundation\\Auth\\User",
}

MODEL_NAMESPACES = ("App\\Models\\", "App\\")
STANDARD_FIELDS = ("id", "created_at", "updated_at")

TO_MANY_RELATIONS = {
    "hasMany",
    "belongsToMany",
    "morphMany",
    "morphToMany",
    "morphedByMany",
    "loaded",
}

CAST_TYPES = {
    "int": "integer",
    "integer": "integer",
    "bool": "boolean",
    "boolean": "boolean",
    "float": "number",
    "double": "number",
    "decimal": "number",
    "array": "array",
    "json": "array",
    "collection": "array",
    "date": "datetime",
    "datetime": "datetime",
    "timestamp": "datetime",
}


def extract_loaded_relations(method_body: str) -> dict[str, str]:
    relations: dict[str, str] = {}
    for match in LOADED_RELATIONS_PATTERN.finditer(method_body):
        block = balanced_bracket_content(method_body, match.end() - 1)
        if not block:
            continue
        for name in CALLBACK_RELATION_PATTERN.findall(block):
            relations.setdefault(name, "loaded")
        for name in SIMPLE_RELATION_PATTERN.findall(block):
            if name in RELATION_SKIP:
                continue
            relations.setdefault(name, "loaded")
    for match in LOADED_RELATION_NAMES_PATTERN.finditer(method_body):
        for name in re.findall(r"""['"]([\w.]+)['"]""", match.group(1)):
            relations.setdefault(name.split(".", 1)[0], "loaded")
    return relations


def is_to_many(relation_type: str) -> bool:
    return relation_type in TO_MANY_RELATIONS


def infer_type_from_field_name(field: str) -> str:
    lowered = field.lower()
    if field == "id" or lowered.endswith("_id"):
        return "integer"
    if re.match(r"^(is_|has_|can_|enabled|active|visible|published)", lowered):
        return "boolean"
    if re.search(r"_at$|_date$|date_", lowered):
        return "datetime"
    if re.search(r"price|amount|cost|total|fee|balance", lowered):
        return "number"
    if re.search(r"count|quantity|qty|number|age|year", lowered):
        return "integer"
    return "string"


def resolve_model_fields(
    method: MethodSource, resource_name: str, registry: ClassRegistry | None
) -> tuple[dict[str, str], list[str]]:
    """Describe the model behind the controller as field -> type.

    The model comes from a model-typed parameter first, then from the resource name.
    """
    if registry is None:
        return {}, []

    candidates = [
        param.type_name
        for param in method.parameters
        if not param.is_builtin and param.type_name is not None
    ]
    candidates.extend(f"{prefix}{resource_name}" for prefix in MODEL_NAMESPACES)

    for candidate in candidates:
        source = registry.source_for(candidate)
        if source is None or not _is_model(registry, candidate):
            continue
        try:
            return _model_fields(source), []
        except Exception as exc:  # noqa: BLE001 - degrade to no fields
            logger.info("resolve_model_fields: model failed type=%s", candidate)
            return {}, [f"model_fields_error: {exc}"]
    return {}, []


def _is_model(registry: ClassRegistry, name: str, seen: frozenset[str] = frozenset()) -> bool:
    info = registry.info_for(name)
    if info is None or info.parent is None or name in seen:
        return False
    if info.parent in MODEL_PARENTS or info.parent.rsplit("\\", 1)[-1] in MODEL_BASES:
        return True
    # app-level base models supplied alongside
    return _is_model(registry, info.parent, seen | {name})


def _model_fields(source: str) -> dict[str, str]:
    fillable = _string_items(property_array_entries(source, "fillable"))
    visible = _string_items(property_array_entries(source, "visible"))
    hidden = set(_string_items(property_array_entries(source, "hidden")))
    casts = _casts(source)

    ordered = list(STANDARD_FIELDS)
    for field in visible or fillable:
        if field not in ordered:
            ordered.append(field)

    fields: dict[str, str] = {}
    for field in ordered:
        if field in hidden:
            continue
        cast = casts.get(field)
        if cast is not None:
            fields[field] = CAST_TYPES.get(cast.split(":", 1)[0].lower(), "string")
        else:
            fields[field] = infer_type_from_field_name(field)
    return fields


def _string_items(entries: list[ArrayEntry] | None) -> list[str]:
    return [entry.value for entry in entries or [] if entry.key is None and entry.is_string]


def _casts(source: str) -> dict[str, str]:
    # the $casts property wins over a casts() method
    entries = property_array_entries(source, "casts")
    if entries is None:
        entries = returned_array_entries(source, "casts")
    return {
        entry.key: entry.value
        for entry in entries or []
        if entry.key is not None and entry.is_string
    }
