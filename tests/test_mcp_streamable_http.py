# [파일 설명]
# - 목적: Streamable HTTP MCP 핸드셰이크 및 도구 호출 흐름을 검증한다.
# - 제공 기능: initialize/tools/list/tools/call 시나리오를 테스트한다.
# - 입력/출력: JSON-RPC 메시지를 사용한다.
# - 주의 사항: PHP 소스 원문은 결과 요약 텍스트에 포함되지 않아야 한다.
# - 연관 모듈: docblock_mcp.main 및 docblock_mcp.mcp_streamable_http와 연동된다.
from fastapi.testclient import TestClient

from docblock_mcp.main import app


def _call(client: TestClient, method: str, params: dict, request_id: str = "req-1"):
    return client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "id": request_id, "method": method, "params": params},
        headers={"MCP-Protocol-Version": "2025-11-25"},
    )


# [함수 설명]
# - 목적: MCP initialize 요청이 정상 응답을 반환하는지 확인한다.
# - 입력: JSON-RPC initialize 메시지
# - 출력: protocolVersion/capabilities/serverInfo 확인
def test_mcp_initialize_handshake() -> None:
    client = TestClient(app)

    response = _call(
        client,
        "initialize",
        {"protocolVersion": "2025-11-25", "clientInfo": {"name": "vscode", "version": "1.0"}},
        "init-1",
    )

    assert response.status_code == 200
    body = response.json()
    assert body["jsonrpc"] == "2.0"
    assert body["id"] == "init-1"
    result = body["result"]
    assert result["protocolVersion"] == "2025-11-25"
    assert result["serverInfo"]["name"] == "laravel-docblock-mcp-server"


def test_mcp_initialize_negotiates_protocol_version() -> None:
    client = TestClient(app)

    older = _call(client, "initialize", {"protocolVersion": "2025-03-26"}, "init-2")
    unknown = _call(client, "initialize", {"protocolVersion": "2000-01-01"}, "init-3")

    assert older.json()["result"]["protocolVersion"] == "2025-03-26"
    assert unknown.json()["result"]["protocolVersion"] == "2025-11-25"


def test_mcp_initialized_notification_returns_202() -> None:
    client = TestClient(app)

    payload = {"jsonrpc": "2.0", "method": "notifications/initialized", "params": {}}
    response = client.post("/mcp", json=payload)

    assert response.status_code == 202


def test_mcp_tools_list_returns_docblock_tools() -> None:
    client = TestClient(app)

    response = _call(client, "tools/list", {}, "list-1")

    assert response.status_code == 200
    tools = response.json()["result"]["tools"]
    assert [tool["name"] for tool in tools] == ["docblock.generate", "docblock.analyze"]
    assert tools[0]["inputSchema"]["required"] == ["source", "method"]


# [함수 설명]
# - 목적: docblock.generate 도구 호출이 구조화된 결과를 반환하는지 확인한다.
# - 입력: 컨트롤러 소스와 메서드 이름을 담은 tools/call 메시지
# - 출력: isError=False, structuredContent.docblock 확인
def test_mcp_tools_call_generate(order_controller_source) -> None:
    client = TestClient(app)

    response = _call(
        client,
        "tools/call",
        {
            "name": "docblock.generate",
            "arguments": {"source": order_controller_source, "method": "store"},
        },
    )

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["isError"] is False
    assert result["content"][0]["text"].startswith("Doc block generated. archetype=create")
    assert result["structuredContent"]["docblock"].startswith("/**")


def test_mcp_tools_call_analyze(order_controller_source) -> None:
    client = TestClient(app)

    response = _call(
        client,
        "tools/call",
        {
            "name": "docblock.analyze",
            "arguments": {"source": order_controller_source, "method": "store"},
        },
    )

    result = response.json()["result"]
    assert result["isError"] is False
    assert result["content"][0]["text"].endswith("flags=queue,transaction,validation.")


def test_mcp_tools_call_errors_are_reported_in_result(order_controller_source) -> None:
    client = TestClient(app)

    missing_method = _call(
        client,
        "tools/call",
        {
            "name": "docblock.generate",
            "arguments": {"source": order_controller_source, "method": "refund"},
        },
    )
    unknown_tool = _call(client, "tools/call", {"name": "tsql.analyze", "arguments": {}})
    bad_arguments = _call(client, "tools/call", {"name": "docblock.generate", "arguments": []})

    assert missing_method.json()["result"]["isError"] is True
    assert "method not declared in class" in missing_method.json()["result"]["content"][0]["text"]
    assert unknown_tool.json()["result"]["isError"] is True
    assert bad_arguments.json()["result"]["isError"] is True


def test_mcp_ping_and_unknown_method() -> None:
    client = TestClient(app)

    assert _call(client, "ping", {}).json()["result"] == {}
    assert _call(client, "resources/list", {}).json()["error"]["code"] == -32601


def test_mcp_get_returns_405() -> None:
    client = TestClient(app)

    response = client.get("/mcp")

    assert response.status_code == 405


def test_mcp_invalid_protocol_version_returns_400() -> None:
    client = TestClient(app)

    response = client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "id": "x", "method": "ping", "params": {}},
        headers={"MCP-Protocol-Version": "1999-01-01"},
    )

    assert response.status_code == 400


def test_mcp_origin_allow_list(monkeypatch) -> None:
    monkeypatch.setenv("MCP_ALLOWED_ORIGINS", "https://allowed.example")
    client = TestClient(app)

    blocked = client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "id": "o-1", "method": "ping", "params": {}},
        headers={"Origin": "https://evil.example"},
    )
    allowed = client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "id": "o-2", "method": "ping", "params": {}},
        headers={"Origin": "https://allowed.example"},
    )

    assert blocked.status_code == 403
    assert allowed.status_code == 200


def test_mcp_tools_call_keeps_model_fields_key(
    product_controller_source, product_related_sources
) -> None:
    client = TestClient(app)

    response = _call(
        client,
        "tools/call",
        {
            "name": "docblock.analyze",
            "arguments": {
                "source": product_controller_source,
                "method": "index",
                "related_sources": product_related_sources,
            },
        },
    )

    metadata = response.json()["result"]["structuredContent"]["metadata"]
    assert metadata["model_fields"]["is_active"] == "boolean"
