from __future__ import annotations

import pytest

from docblock_mcp.services.complexity import reported_score
from docblock_mcp.services.pattern_analyzer import (
    classify,
    classify_archetype,
    humanize_method_name,
    pluralize,
    resource_name_for,
)

CLASS_SOURCE = """<?php

namespace App\\Http\\Controllers;

class InvoiceController extends Controller
{
}
"""


@pytest.mark.parametrize(
    ("method_name", "archetype"),
    [
        ("index", "list"),
        ("list", "list"),
        ("show", "show"),
        ("find", "show"),
        ("store", "create"),
        ("create", "create"),
        ("update", "update"),
        ("edit", "update"),
        ("destroy", "delete"),
        ("remove", "delete"),
        ("exportCsv", "custom"),
        ("Index", "list"),
    ],
)
def test_classify_archetype_table(method_name: str, archetype: str) -> None:
    assert classify_archetype(method_name) == archetype


def test_resource_name_strips_controller_suffix() -> None:
    assert resource_name_for("App\\Http\\Controllers\\InvoiceController") == "Invoice"
    assert resource_name_for("Controller") == "Resource"
    assert resource_name_for(None) == "Resource"


def test_pluralize_and_humanize() -> None:
    assert pluralize("Category") == "Categories"
    assert pluralize("Box") == "Boxes"
    assert pluralize("Day") == "Days"
    assert pluralize("Invoice") == "Invoices"
    assert humanize_method_name("exportCsvReport") == "Export csv report"
    assert humanize_method_name("mark_as_paid") == "Mark as paid"


def test_adding_a_marker_never_lowers_the_score() -> None:
    body = """public function store(Request $request)
    {
        return Invoice::create($request->all());
    }"""
    with_marker = body.replace(
        "return Invoice::create",
        "Cache::forget('invoices');\n        return Invoice::create",
    )

    plain = classify("store", body, CLASS_SOURCE)
    marked = classify("store", with_marker, CLASS_SOURCE)

    assert not plain.has("cache")
    assert marked.has("cache")
    assert marked.complexity_score > plain.complexity_score


def test_marker_weight_is_counted_once() -> None:
    body = """public function store(Request $request)
    {
        DB::transaction(fn () => Invoice::create($request->all()));
        DB::transaction(fn () => Invoice::create($request->all()));
    }"""
    result = classify("store", body, CLASS_SOURCE)

    factor_ids = [factor.id for factor in result.factors]
    assert factor_ids.count("MARKER_TRANSACTION") == 1


def test_list_detail_mentions_query_features() -> None:
    body = """public function index(Request $request)
    {
        return Invoice::query()
            ->when($request->status, fn ($q, $status) => $q->where('status', $status))
            ->orderBy('created_at', 'desc')
            ->paginate(15);
    }"""
    result = classify("index", body, CLASS_SOURCE)

    assert result.archetype == "list"
    assert result.title == "Retrieve a list of Invoices"
    assert result.query_features == ["search", "filtering", "sorting", "pagination"]
    assert result.detail_text == "This endpoint supports search, filtering, sorting, pagination."


def test_cascade_delete_and_thrown_exceptions() -> None:
    body = """public function destroy(Invoice $invoice)
    {
        foreach ($invoice->lines as $line) {
            $line->delete();
        }
        if ($invoice->paid) {
            throw new \\App\\Exceptions\\InvoiceLockedException('locked');
        }
        $invoice->delete();
    }"""
    result = classify("destroy", body, CLASS_SOURCE)

    assert result.has("cascade_delete")
    assert result.exceptions == ["InvoiceLockedException"]
    assert result.detail_text == "This operation handles cascading deletions."


def test_custom_title_is_humanized() -> None:
    body = """public function markAsPaid(Invoice $invoice)
    {
        $invoice->update(['paid' => true]);
    }"""
    result = classify("markAsPaid", body, CLASS_SOURCE)

    assert result.archetype == "custom"
    assert result.title == "Mark as paid"
    assert result.to_dict()["resource"] == "Invoice"


UPDATE_TEMPLATE = """public function update(Request $request, $id)
    {{
        {snippet}

        return response()->json([]);
    }}"""


@pytest.mark.parametrize(
    ("marker", "snippet"),
    [
        ("rate_limit", "RateLimiter::hit('invoices:'.$request->ip());"),
        ("rate_limit", "$this->middleware('throttle:60,1');"),
        ("external_call", "Http::post('https://billing.example/charge', $request->all());"),
        ("external_call", "$this->paymentService->charge($id);"),
        ("soft_delete", "Invoice::withTrashed()->findOrFail($id);"),
        ("soft_delete", "Invoice::findOrFail($id)->restore();"),
        ("soft_delete", "Invoice::findOrFail($id)->forceDelete();"),
    ],
)
def test_marker_snippets_set_flag(marker: str, snippet: str) -> None:
    plain = classify("update", UPDATE_TEMPLATE.format(snippet="$total = 0;"), CLASS_SOURCE)
    marked = classify("update", UPDATE_TEMPLATE.format(snippet=snippet), CLASS_SOURCE)

    assert not plain.has(marker)
    assert marked.has(marker)
    assert f"MARKER_{marker.upper()}" in [factor.id for factor in marked.factors]


def test_marker_word_in_comment_still_sets_flag() -> None:
    body = UPDATE_TEMPLATE.format(snippet="// Http::get() moves to the billing job later")

    result = classify("update", body, CLASS_SOURCE)

    assert result.has("external_call")


def test_reported_score_keeps_two_decimals() -> None:
    assert reported_score(10 / 3) == 3.33
    assert reported_score(3.0) == 3.0
