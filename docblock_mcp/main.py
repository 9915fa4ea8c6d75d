# [파일 설명]
# - 목적: FastAPI 애플리케이션을 생성하고 라우터를 조립한다.
# - 제공 기능: /health 엔드포인트, docblock 라우터, Streamable HTTP MCP 엔드포인트를 등록한다.
# - 입력/출력: HTTP 요청에 대해 상태 정보를 반환한다.
# - 주의 사항: 동작 변경 없이 라우팅만 담당한다.
# - 연관 모듈: docblock_mcp.api.mcp, docblock_mcp.mcp_streamable_http와 연동된다.
import logging

from fastapi import FastAPI, Request, Response

from docblock_mcp.api.mcp import router as mcp_router
from docblock_mcp.mcp_streamable_http import mcp_get, mcp_post

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(title="laravel-docblock-mcp-server")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(mcp_router, prefix="/mcp")


@app.post("/mcp")
async def mcp_post_route(request: Request) -> Response:
    return await mcp_post(request)


@app.get("/mcp")
def mcp_get_route() -> Response:
    return mcp_get()
