from __future__ import annotations

from docblock_mcp.services.docblock_injector import (
    existing_docblock,
    has_docblock,
    inject_docblock,
    merge_docblocks,
    parse_docblock_tags,
)
from docblock_mcp.services.docblock_generator import generate_docblock

SOURCE = """<?php

class NoteController extends Controller
{
    /**
     * Custom listing title
     *
     * Lists notes for the current user.
     *
     * @queryParam page integer Page number. Example: 2
     * @response 200 {
     *   "data": []
     * }
     */
    public function index()
    {
        return Note::all();
    }

    #[Deprecated]
    public function show($id)
    {
        return Note::findOrFail($id);
    }
}
"""

GENERATED = """/**
 * @group Note
 *
 * Retrieve a list of Notes
 *
 * @api {get} /api/notes List Note
 *
 * @queryParam page integer optional The Page. Example: 1
 * @queryParam per_page integer optional The Per page. Example: 15
 *
 * @response 200 {
 *   "data": [{
 *     "id": 1
 *   }]
 * }
 *
 * @response 404 {
 *   "message": "Note not found"
 * }
 */"""


def test_has_docblock_detects_immediately_preceding_block() -> None:
    assert has_docblock(SOURCE, "index") is True
    assert has_docblock(SOURCE, "show") is False
    assert existing_docblock(SOURCE, "index").startswith("/**\n     * Custom listing title")


def test_parse_docblock_tags() -> None:
    tags = parse_docblock_tags(GENERATED)

    assert tags.group == "Note"
    assert tags.title == "Retrieve a list of Notes"
    assert tags.api == "{get} /api/notes List Note"
    assert list(tags.params["queryParam"]) == ["page", "per_page"]
    assert list(tags.responses) == [200, 404]
    assert tags.responses[200][-1] == "}"


def test_merge_keeps_user_content_and_adds_missing_parts() -> None:
    merged = merge_docblocks(existing_docblock(SOURCE, "index"), GENERATED)

    assert "Custom listing title" in merged
    assert "Retrieve a list of Notes" not in merged
    assert "Lists notes for the current user." in merged
    assert " * @queryParam page integer Page number. Example: 2" in merged
    assert " * @queryParam per_page integer optional The Per page. Example: 15" in merged
    assert merged.count("@response 200") == 1
    assert ' *   "data": []' in merged
    assert merged.index("@response 200") < merged.index("@response 404")
    assert " * @group Note" in merged


def test_inject_replaces_existing_block_with_indentation() -> None:
    updated = inject_docblock(SOURCE, "index", GENERATED)

    assert "Custom listing title" not in updated
    assert "    /**\n     * @group Note\n" in updated
    assert "     */\n    public function index()" in updated
    assert inject_docblock(updated, "index", GENERATED) == updated


def test_inject_goes_above_attributes() -> None:
    updated = inject_docblock(SOURCE, "show", GENERATED)

    assert "     */\n    #[Deprecated]\n    public function show($id)" in updated
    assert has_docblock(updated, "show") is True


def test_merge_mode_through_inject() -> None:
    updated = inject_docblock(SOURCE, "index", GENERATED, merge=True)

    assert "Custom listing title" in updated
    assert "@response 404 {" in updated
    assert updated.count("/**") == 1


def test_generated_block_injects_cleanly(order_controller_source) -> None:
    docblock = generate_docblock(order_controller_source, "store")["docblock"]

    updated = inject_docblock(order_controller_source, "store", docblock)

    assert has_docblock(updated, "store") is True
    assert has_docblock(updated, "destroy") is False
    regenerated = generate_docblock(updated, "store")["docblock"]
    assert regenerated == docblock
