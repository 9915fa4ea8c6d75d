from __future__ import annotations

from docblock_mcp.services.php_source import ClassRegistry, locate_method
from docblock_mcp.services.validation_rules import (
    FormObjectResolver,
    build_field,
    extract_inline_rules,
    extract_validation_fields,
    is_required,
)

BROKEN_REQUEST = """<?php

namespace App\\Http\\Requests;

use Illuminate\\Foundation\\Http\\FormRequest;

class BrokenRequest extends FormRequest
{
    public function authorize(): bool
    {
        return true;
    }
}
"""

DYNAMIC_REQUEST = """<?php

namespace App\\Http\\Requests;

class DynamicRequest extends BaseRequest
{
    public function rules(): array
    {
        return $this->baseRules();
    }
}
"""

BASE_REQUEST = """<?php

namespace App\\Http\\Requests;

use Illuminate\\Foundation\\Http\\FormRequest;

abstract class BaseRequest extends FormRequest
{
}
"""

CONTROLLER = """<?php

namespace App\\Http\\Controllers;

use App\\Http\\Requests\\BrokenRequest;
use App\\Http\\Requests\\DynamicRequest;

class ReportController extends Controller
{
    public function store(BrokenRequest $request)
    {
        return $request->all();
    }

    public function update(DynamicRequest $request, int $id)
    {
        return $request->all();
    }
}
"""


def test_required_marker_is_a_whole_token() -> None:
    assert is_required("required|integer") is True
    assert is_required("sometimes|nullable|string") is False
    assert is_required("required_if:type,company") is False


def test_integer_field_type() -> None:
    field = build_field("age", "required|integer")

    assert field.inferred_type == "integer"
    assert field.required is True


def test_inline_rules_keep_source_order_and_rule_objects() -> None:
    body = """public function store(Request $request)
    {
        $request->validate([
            'title' => 'required|string|max:120',
            'category_id' => ['required', Rule::exists('categories', 'id')],
            'tags' => 'array',
            'tags.*' => 'string',
        ]);
    }"""
    fields = extract_inline_rules(body)

    assert list(fields) == ["title", "category_id", "tags", "tags.*"]
    assert fields["category_id"].rule_expression == "required|exists"
    assert fields["tags.*"].is_wildcard
    assert fields["tags.*"].base_name == "tags"


def test_no_inline_call_returns_none() -> None:
    assert extract_inline_rules("public function index() { return []; }") is None


def test_form_request_rules_are_resolved(product_controller_source, product_related_sources) -> None:
    method = locate_method(product_controller_source, "store")
    resolver = FormObjectResolver(ClassRegistry([product_controller_source, *product_related_sources]))

    fields, errors = extract_validation_fields(method, resolver)

    assert errors == []
    assert list(fields) == ["name", "status", "tag_ids", "tag_ids.*"]
    assert fields["status"].rule_expression == "required|in"
    assert fields["tag_ids.*"].inferred_type == "integer"


def test_form_request_without_rules_degrades_to_no_fields() -> None:
    method = locate_method(CONTROLLER, "store")
    resolver = FormObjectResolver(ClassRegistry([CONTROLLER, BROKEN_REQUEST]))

    fields, errors = extract_validation_fields(method, resolver)

    assert fields == {}
    assert errors == [
        "form_request_error: App\\Http\\Requests\\BrokenRequest has no rules() method"
    ]


def test_form_request_through_parent_class_with_dynamic_rules() -> None:
    method = locate_method(CONTROLLER, "update")
    resolver = FormObjectResolver(ClassRegistry([CONTROLLER, DYNAMIC_REQUEST, BASE_REQUEST]))

    fields, errors = extract_validation_fields(method, resolver)

    assert fields == {}
    assert len(errors) == 1
    assert errors[0].startswith("form_request_error:")
    assert "does not return an array literal" in errors[0]


def test_unknown_parameter_type_is_ignored() -> None:
    method = locate_method(CONTROLLER, "store")

    fields, errors = extract_validation_fields(method, FormObjectResolver(ClassRegistry([CONTROLLER])))

    assert fields == {}
    assert errors == []
