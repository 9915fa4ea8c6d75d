# [파일 설명]
# - 목적: Streamable HTTP MCP(JSON-RPC) 엔드포인트를 제공한다.
# - 제공 기능: initialize/tools/list/tools/call/ping 처리 및 Origin 검증을 수행한다.
# - 입력/출력: JSON-RPC 요청을 받아 표준 응답 또는 202/405를 반환한다.
# - 주의 사항: 알림 메시지는 202로 응답하며, 도구 실행 실패는 isError로 표시한다.
# - 연관 모듈: docblock_mcp.api.mcp 라우트 함수를 재사용한다.
from __future__ import annotations

import logging
import os
from collections.abc import Callable
from typing import Any

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from docblock_mcp.api.mcp import DocblockRequest, docblock_analyze, docblock_generate

logger = logging.getLogger(__name__)

DEFAULT_SUPPORTED_PROTOCOL_VERSIONS = ("2025-03-26", "2025-11-25")
LATEST_PROTOCOL_VERSION = "2025-11-25"

DOCBLOCK_INPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "source": {
            "type": "string",
            "description": "Full PHP source of the controller class.",
        },
        "method": {
            "type": "string",
            "description": "Name of the controller method.",
        },
        "related_sources": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Sources of form requests and models the controller refers to.",
        },
        "options": {
            "type": "object",
            "description": "Overrides for threshold, examples and include flags.",
        },
    },
    "required": ["source", "method"],
}


# [함수 설명]
# - 목적: 환경 변수 기반 지원 프로토콜 버전 목록을 구성한다.
# - 입력: MCP_SUPPORTED_PROTOCOL_VERSIONS 환경 변수 (콤마 구분)
# - 출력: 지원 버전 문자열 집합
# - 에러 처리: 빈 값은 기본 목록으로 대체한다.
def _load_supported_protocol_versions() -> set[str]:
    env_value = os.getenv("MCP_SUPPORTED_PROTOCOL_VERSIONS", "").strip()
    if not env_value:
        return set(DEFAULT_SUPPORTED_PROTOCOL_VERSIONS)
    return {item.strip() for item in env_value.split(",") if item.strip()}


# [함수 설명]
# - 목적: Origin 헤더가 허용 목록에 포함되는지 판별한다.
# - 입력: origin 문자열, MCP_ALLOWED_ORIGINS 환경 변수 (콤마 구분)
# - 출력: 허용 여부 (bool)
# - 에러 처리: origin이 없거나 허용 목록이 비어 있으면 검증을 생략한다.
# - 보안: 허용되지 않은 Origin은 차단한다.
def _origin_allowed(origin: str | None) -> bool:
    if not origin:
        return True
    env_value = os.getenv("MCP_ALLOWED_ORIGINS", "").strip()
    if not env_value:
        return True
    allowed = {item.strip() for item in env_value.split(",") if item.strip()}
    return origin in allowed


def _resolve_protocol_version(headers: dict[str, str]) -> str:
    header_value = headers.get("MCP-Protocol-Version")
    if header_value:
        if header_value not in _load_supported_protocol_versions():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unsupported MCP-Protocol-Version",
            )
        return header_value
    return "2025-03-26"


def _jsonrpc_response(
    request_id: Any, *, result: Any | None = None, error: Any | None = None
) -> JSONResponse:
    payload: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id}
    if error is not None:
        payload["error"] = error
    else:
        payload["result"] = result
    return JSONResponse(status_code=status.HTTP_200_OK, content=payload)


def _handle_initialize(params: dict[str, Any]) -> dict[str, Any]:
    requested = params.get("protocolVersion")
    if requested not in _load_supported_protocol_versions():
        requested = LATEST_PROTOCOL_VERSION
    return {
        "protocolVersion": requested,
        "capabilities": {"tools": {"listChanged": False}},
        "serverInfo": {
            "name": "laravel-docblock-mcp-server",
            "version": "0.1.0",
            "description": "Laravel controller analysis + API doc block generation MCP server",
        },
        "instructions": "Call tools/list then tools/call with the controller source.",
    }


def _generate_summary(payload: dict[str, Any]) -> str:
    summary = payload.get("summary", {})
    return (
        "Doc block generated. "
        f"archetype={summary.get('archetype')}, "
        f"complexity={summary.get('complexity_score')}, "
        f"documented={summary.get('documented')}, "
        f"errors={len(payload.get('errors', []))}."
    )


def _analyze_summary(payload: dict[str, Any]) -> str:
    summary = payload.get("summary", {})
    flags = payload.get("analysis", {}).get("flags", {})
    detected = sorted(name for name, value in flags.items() if value)
    return (
        "Analysis complete. "
        f"archetype={summary.get('archetype')}, "
        f"complexity={summary.get('complexity_score')}, "
        f"flags={','.join(detected) or '-'}."
    )


# 도구 이름 -> (설명, 라우트 함수, 요약 함수)
TOOLS: dict[str, tuple[str, Callable[[DocblockRequest], BaseModel], Callable[..., str]]] = {
    "docblock.generate": (
        "Generate a Scribe-style PHPDoc block for one Laravel controller method.",
        docblock_generate,
        _generate_summary,
    ),
    "docblock.analyze": (
        "Classify a Laravel controller method and extract its validation, middleware "
        "and error-response metadata without rendering.",
        docblock_analyze,
        _analyze_summary,
    ),
}


def _handle_tools_list() -> dict[str, Any]:
    return {
        "tools": [
            {
                "name": name,
                "description": description,
                "inputSchema": DOCBLOCK_INPUT_SCHEMA,
            }
            for name, (description, _handler, _summarize) in TOOLS.items()
        ]
    }


def _build_tool_result(
    summary: str,
    structured_content: dict[str, Any] | None,
    *,
    is_error: bool = False,
) -> dict[str, Any]:
    return {
        "content": [{"type": "text", "text": summary}],
        "structuredContent": structured_content or {},
        "isError": is_error,
    }


# [함수 설명]
# - 목적: tools/call 요청을 처리한다.
# - 입력: params 딕셔너리
# - 출력: CallToolResult 딕셔너리
# - 에러 처리: 입력 오류/위치 실패/예외는 isError로 반환한다.
# - 보안: 원문 소스를 결과 요약에 포함하지 않는다.
def _handle_tools_call(params: dict[str, Any]) -> dict[str, Any]:
    name = params.get("name")
    arguments = params.get("arguments")
    if not name:
        return _build_tool_result("Tool name is required.", None, is_error=True)
    if name not in TOOLS:
        return _build_tool_result(f"Unknown tool: {name}.", None, is_error=True)
    if not isinstance(arguments, dict):
        return _build_tool_result("Tool arguments must be an object.", None, is_error=True)

    _description, handler, summarize = TOOLS[name]
    try:
        request_model = DocblockRequest(**arguments)
        payload = handler(request_model).model_dump(by_alias=True)
        return _build_tool_result(summarize(payload), payload, is_error=False)
    except HTTPException as exc:
        logger.info("tools/call: tool=%s status=%s", name, exc.status_code)
        return _build_tool_result(f"Tool execution failed: {exc.detail}.", None, is_error=True)
    except Exception as exc:  # noqa: BLE001 - tool errors returned via isError
        logger.info("tools/call: tool=%s error=%s", name, type(exc).__name__)
        return _build_tool_result(f"Tool execution failed: {exc}.", None, is_error=True)


async def mcp_post(request: Request) -> Response:
    origin = request.headers.get("origin")
    if not _origin_allowed(origin):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Origin not allowed")
    _resolve_protocol_version(request.headers)

    try:
        payload = await request.json()
    except Exception as exc:  # noqa: BLE001 - request validation
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload",
        ) from exc

    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON-RPC payload",
        )

    method = payload.get("method")
    if method == "notifications/initialized":
        return Response(status_code=status.HTTP_202_ACCEPTED)

    request_id = payload.get("id")
    if method is None or request_id is None:
        return Response(status_code=status.HTTP_202_ACCEPTED)

    params = payload.get("params") or {}
    if not isinstance(params, dict):
        return _jsonrpc_response(
            request_id,
            error={"code": -32602, "message": "Invalid params"},
        )

    if method == "initialize":
        return _jsonrpc_response(request_id, result=_handle_initialize(params))
    if method == "tools/list":
        return _jsonrpc_response(request_id, result=_handle_tools_list())
    if method == "tools/call":
        return _jsonrpc_response(request_id, result=_handle_tools_call(params))
    if method == "ping":
        return _jsonrpc_response(request_id, result={})

    return _jsonrpc_response(
        request_id,
        error={"code": -32601, "message": f"Method not found: {method}"},
    )


def mcp_get() -> Response:
    return Response(status_code=status.HTTP_405_METHOD_NOT_ALLOWED)
