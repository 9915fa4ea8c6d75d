import logging

from fastapi.testclient import TestClient

from docblock_mcp.main import app

SENTINEL = "PHP_SENTINEL__SECRET_NOTE"

CONTROLLER = f"""<?php

class NoteController extends Controller
{{
    public function store(Request $request)
    {{
        // {SENTINEL}
        $request->validate(['title' => 'required|string']);

        return Note::create($request->all());
    }}
}}
"""


def test_no_source_echo_generate(caplog) -> None:
    client = TestClient(app)

    with caplog.at_level(logging.INFO):
        response = client.post(
            "/mcp/docblock/generate",
            json={"source": CONTROLLER, "method": "store"},
        )

    assert response.status_code == 200
    assert SENTINEL not in response.text
    assert SENTINEL not in caplog.text


def test_no_source_echo_analyze() -> None:
    client = TestClient(app)

    response = client.post(
        "/mcp/docblock/analyze",
        json={"source": CONTROLLER, "method": "store"},
    )

    assert response.status_code == 200
    assert SENTINEL not in response.text
