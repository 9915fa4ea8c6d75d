# [파일 설명]
# - 목적: 분석 결과와 추출된 메타데이터로 Scribe 형식의 PHPDoc 블록을 결정적으로 생성한다.
# - 제공 기능: render, http_verb_for, endpoint_for, implementation_notes.
# - 입력/출력: AnalysisResult와 필드/미들웨어/에러 응답을 받아 ` * ` 접두 줄로 된 문자열을 반환한다.
# - 주의 사항: 블록 사이에는 ` *` 한 줄만 들어가며 닫는 표시 앞에는 구분선을 두지 않는다.
# - 연관 모듈: pattern_analyzer.py, validation_rules.py, examples.py
from __future__ import annotations

import re

from docblock_mcp.services.docgen_config import AUTH_MIDDLEWARE, DEFAULT_CONFIG, DocgenConfig
from docblock_mcp.services.docgen_errors import RenderInvariantViolation
from docblock_mcp.services.error_responses import ErrorResponse
from docblock_mcp.services.examples import (
    array_example,
    example_for_field,
    field_description,
    format_json_value,
)
from docblock_mcp.services.model_info import is_to_many
from docblock_mcp.services.pattern_analyzer import ARCHETYPES, AnalysisResult, pluralize
from docblock_mcp.services.validation_rules import ValidationField, infer_type_from_rules

BODY_VERBS = {"POST", "PUT", "PATCH"}
VERB_KEYWORDS = (
    ("POST", re.compile(r"post|store|create|add|save", re.IGNORECASE)),
    ("PUT", re.compile(r"put|patch|update|edit|modify", re.IGNORECASE)),
    ("DELETE", re.compile(r"delete|destroy|remove", re.IGNORECASE)),
)
SUCCESS_STATUS = {"create": 201, "delete": 204}
API_TITLE_VERBS = {
    "list": "List",
    "show": "Show",
    "create": "Store",
    "update": "Update",
    "delete": "Destroy",
}
URL_PARAM_ARCHETYPES = {"show", "update", "delete"}
NOT_FOUND_ARCHETYPES = {"list", "show", "update", "delete"}
INVALID_ARCHETYPES = {"create", "update"}
TIMESTAMP_FIELDS = {"id", "created_at", "updated_at"}
LIST_TOTAL_EXAMPLE = 50

NOTE_SENTENCES = (
    (
        "transaction",
        "This operation is executed within a database transaction with automatic rollback on error.",
    ),
    ("queue", "Background jobs are dispatched asynchronously and may not complete immediately."),
    ("cache", "Results may be cached. Cache is invalidated on data modification."),
    ("authorization", "Proper authorization is required. Returns 403 Forbidden if unauthorized."),
    ("rate_limit", "Rate limiting is applied. Exceeding limits returns 429 Too Many Requests."),
    (
        "soft_delete",
        "Soft deletes are supported. Use 'with_trashed' parameter to include deleted records.",
    ),
    ("external_call", "This operation integrates with external APIs. Network delays may occur."),
)


def http_verb_for(method_name: str) -> str:
    for verb, pattern in VERB_KEYWORDS:
        if pattern.search(method_name):
            return verb
    return "GET"


def endpoint_for(archetype: str, method_name: str, resource: str) -> str:
    base = f"/api/{pluralize(resource).lower()}"
    if archetype in {"list", "create"}:
        return base
    if archetype in URL_PARAM_ARCHETYPES:
        return f"{base}/{{id}}"
    return f"{base}/{method_name.lower()}"


def api_title_for(archetype: str, method_name: str, resource: str) -> str:
    verb = API_TITLE_VERBS.get(archetype) or (method_name[:1].upper() + method_name[1:])
    return f"{verb} {resource}"


def implementation_notes(analysis: AnalysisResult) -> list[str]:
    return [sentence for flag, sentence in NOTE_SENTENCES if analysis.has(flag)]


def render(
    analysis: AnalysisResult,
    validation_fields: dict[str, ValidationField],
    middleware: list[str],
    error_responses: dict[int, ErrorResponse],
    archetype: str,
    *,
    relations: dict[str, str] | None = None,
    model_fields: dict[str, str] | None = None,
    config: DocgenConfig = DEFAULT_CONFIG,
) -> str:
    """Render the doc block for one analyzed method.

    The same inputs always produce the same text, so rendering twice is a no-op
    when the result is compared.
    """
    if archetype not in ARCHETYPES:
        raise RenderInvariantViolation(f"unknown archetype: {archetype!r}")
    if analysis.archetype != archetype:
        raise RenderInvariantViolation(
            f"archetype mismatch: analysis={analysis.archetype!r} render={archetype!r}"
        )

    resource = analysis.resource_name
    verb = http_verb_for(analysis.method_name)
    blocks: list[list[str]] = [
        [f" * @group {resource}"],
        [f" * {analysis.title}"],
    ]
    if analysis.detail_text:
        blocks.append([f" * {analysis.detail_text}"])
    if any(name in AUTH_MIDDLEWARE for name in middleware):
        blocks.append([" * @authenticated"])

    endpoint = endpoint_for(archetype, analysis.method_name, resource)
    title = api_title_for(archetype, analysis.method_name, resource)
    blocks.append([f" * @api {{{verb.lower()}}} {endpoint} {title}"])

    if archetype in URL_PARAM_ARCHETYPES:
        url_name = resource.lower()
        url_example = config.examples.get("id", "1")
        blocks.append(
            [f" * @urlParam {url_name} integer required The {url_name} ID. Example: {url_example}"]
        )

    param_lines = _parameter_lines(validation_fields, verb, config)
    if param_lines:
        blocks.append(param_lines)

    fields = _response_fields(validation_fields, model_fields or {})
    shown_relations = (relations or {}) if config.include_relations else {}
    blocks.append(_success_block(archetype, resource, fields, shown_relations, config))

    for status_code in sorted(error_responses):
        blocks.append(_message_block(status_code, error_responses[status_code].message))

    if archetype in NOT_FOUND_ARCHETYPES and 404 not in error_responses:
        blocks.append(_message_block(404, config.message("not_found", resource)))
    if archetype in INVALID_ARCHETYPES and 422 not in error_responses:
        blocks.append(_invalid_block(validation_fields, config))
    if (
        config.include_authorization_errors
        and analysis.has("authorization")
        and 403 not in error_responses
    ):
        blocks.append(_message_block(403, config.message("unauthorized", resource)))

    if config.include_implementation_notes:
        notes = implementation_notes(analysis)
        if notes:
            blocks.append([f" * {note}" for note in notes])

    lines = ["/**"]
    for index, block in enumerate(blocks):
        if index:
            lines.append(" *")
        lines.extend(block)
    lines.append(" */")
    return "\n".join(lines)


def _parameter_lines(
    validation_fields: dict[str, ValidationField], verb: str, config: DocgenConfig
) -> list[str]:
    tag = "@bodyParam" if verb in BODY_VERBS else "@queryParam"
    wildcards = {field.base_name: field for field in validation_fields.values() if field.is_wildcard}
    lines: list[str] = []

    for field in validation_fields.values():
        if field.is_wildcard:
            if field.base_name in validation_fields:
                continue
            lines.extend(_array_lines(tag, None, field, config))
            continue
        item = wildcards.get(field.name)
        if item is not None:
            lines.extend(_array_lines(tag, field, item, config))
            continue
        example = example_for_field(field.name, field.inferred_type, field.rule_expression, config)
        description = field_description(field.name, field.rule_expression)
        lines.append(
            _param_line(tag, field.name, field.inferred_type, field.required, description, example)
        )
    return lines


def _array_lines(
    tag: str, parent: ValidationField | None, item: ValidationField, config: DocgenConfig
) -> list[str]:
    name = item.base_name
    required = parent.required if parent is not None else item.required
    description = field_description(name, parent.rule_expression if parent else "")
    item_type = item.inferred_type
    item_example = example_for_field(item.name, item_type, item.rule_expression, config)
    return [
        _param_line(tag, name, "array", required, description, array_example(item_type)),
        _param_line(tag, item.name, item_type, item.required, "Array item.", item_example),
    ]


def _param_line(
    tag: str, name: str, field_type: str, required: bool, description: str, example: str
) -> str:
    parts = [tag, name, field_type, "required" if required else "optional"]
    if description:
        parts.append(description)
    parts.append(f"Example: {example}")
    return " * " + " ".join(parts)


def _response_fields(
    validation_fields: dict[str, ValidationField], model_fields: dict[str, str]
) -> dict[str, str]:
    fields = {
        name: infer_type_from_rules(field.rule_expression)
        for name, field in validation_fields.items()
        if "." not in name
    }
    return fields or dict(model_fields)


def _field_lines(fields: dict[str, str], indent: str, config: DocgenConfig) -> list[str]:
    lines: list[str] = []
    for name, field_type in fields.items():
        if name in TIMESTAMP_FIELDS:
            continue
        value = format_json_value(example_for_field(name, field_type, "", config), field_type)
        lines.append(f' *{indent}"{name}": {value},')
    return lines


def _relation_lines(relations: dict[str, str], indent: str) -> list[str]:
    lines: list[str] = []
    for name, relation_type in relations.items():
        if is_to_many(relation_type):
            lines.append(f' *{indent}"{name}": [')
            lines.append(f' *{indent}  {{"id": 1, "name": "alpha"}},')
            lines.append(f' *{indent}  {{"id": 2, "name": "beta"}}')
            lines.append(f" *{indent}],")
        else:
            lines.append(f' *{indent}"{name}": {{"id": 1, "name": "alpha"}},')
    return lines


def _success_block(
    archetype: str,
    resource: str,
    fields: dict[str, str],
    relations: dict[str, str],
    config: DocgenConfig,
) -> list[str]:
    status_code = SUCCESS_STATUS.get(archetype, 200)
    record_id = format_json_value(config.examples.get("id", "1"), "integer")
    timestamp = config.timestamp_example
    lines = [f" * @response {status_code} {{"]

    if archetype == "list":
        lines.append(' *   "data": [{')
        lines.append(f' *     "id": {record_id},')
        lines.extend(_field_lines(fields, "     ", config))
        lines.extend(_relation_lines(relations, "     "))
        lines.append(f' *     "created_at": "{timestamp}"')
        lines.append(" *   }],")
        lines.append(
            f' *   "meta": {{"current_page": 1, "per_page": 15, "total": {LIST_TOTAL_EXAMPLE}}}'
        )
    elif archetype in {"show", "create", "update"}:
        lines.append(f' *   "id": {record_id},')
        lines.extend(_field_lines(fields, "   ", config))
        if archetype == "show":
            lines.extend(_relation_lines(relations, "   "))
            lines.append(f' *   "created_at": "{timestamp}",')
            lines.append(f' *   "updated_at": "{timestamp}"')
        elif archetype == "create":
            lines.append(f' *   "created_at": "{timestamp}"')
        else:
            lines.append(f' *   "updated_at": "{timestamp}"')
    elif archetype == "delete":
        lines.append(f' *   "message": "{config.message("deleted", resource)}"')
    else:
        lines.append(' *   "success": true,')
        lines.append(f' *   "message": "{config.message("completed", resource)}"')

    lines.append(" * }")
    return lines


def _message_block(status_code: int, message: str) -> list[str]:
    escaped = message.replace("\\", "\\\\").replace('"', '\\"')
    return [
        f" * @response {status_code} {{",
        f' *   "message": "{escaped}"',
        " * }",
    ]


def _invalid_block(validation_fields: dict[str, ValidationField], config: DocgenConfig) -> list[str]:
    first_field = next(iter(validation_fields), "field_name")
    return [
        " * @response 422 {",
        f' *   "message": "{config.message("invalid")}",',
        ' *   "errors": {',
        f' *     "{first_field}": ["The {first_field} field is required."]',
        " *   }",
        " * }",
    ]
