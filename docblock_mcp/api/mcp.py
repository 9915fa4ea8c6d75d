# [파일 설명]
# - 목적: MCP API 라우트를 정의하고 요청/응답 모델을 제공한다.
# - 제공 기능: 메서드 분석, PHPDoc 생성, 컨트롤러 일괄 문서화 POST 엔드포인트를 제공한다.
# - 입력/출력: Pydantic 모델로 요청을 수신하고 표준화된 응답 구조를 반환한다.
# - 주의 사항: 원문 PHP 소스는 로깅/응답 메타데이터에 직접 노출하지 않는 흐름을 유지한다.
# - 연관 모듈: docblock_mcp.services.* 분석/생성 서비스들과 연결된다.
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, model_validator

from docblock_mcp.services.docblock_generator import (
    analyze_method,
    document_controller,
    generate_docblock,
)
from docblock_mcp.services.docgen_config import DocgenConfig, load_config, with_overrides
from docblock_mcp.services.docgen_errors import LocationError

logger = logging.getLogger(__name__)

router = APIRouter()


# [클래스 설명]
# - 역할: 요청별 설정 덮어쓰기 옵션을 정의한다.
# - 사용 위치: 모든 docblock 요청 모델의 options 필드로 사용된다.
# - 제약/주의: 값이 없으면 환경 변수 기반 기본 설정을 그대로 사용한다.
class DocgenOptions(BaseModel):
    complexity_threshold: int | None = Field(default=None, ge=0)
    exclude_methods: list[str] | None = None
    examples: dict[str, str] = Field(default_factory=dict)
    include_implementation_notes: bool | None = None
    include_authorization_errors: bool | None = None
    include_relations: bool | None = None
    force: bool = False


class DocblockRequest(BaseModel):
    source: str = Field(..., min_length=1)
    method: str = Field(..., min_length=1)
    related_sources: list[str] = Field(default_factory=list)
    options: DocgenOptions = Field(default_factory=DocgenOptions)


# [클래스 설명]
# - 역할: ControllerRequest Pydantic 스키마 모델을 정의한다.
# - 사용 위치: /docblock/controller 요청 본문으로 사용된다.
# - 핵심 동작: overwrite와 merge는 동시에 지정할 수 없도록 검증한다.
# - 제약/주의: dry_run이면 updated_source는 원본과 동일하게 반환된다.
class ControllerRequest(BaseModel):
    source: str = Field(..., min_length=1)
    related_sources: list[str] = Field(default_factory=list)
    options: DocgenOptions = Field(default_factory=DocgenOptions)
    overwrite: bool = False
    merge: bool = False
    dry_run: bool = False

    @model_validator(mode="after")
    def validate_modes(self) -> ControllerRequest:
        if self.overwrite and self.merge:
            raise ValueError("Use either overwrite or merge, not both.")
        return self


class ObjectRef(BaseModel):
    name: str
    method: str | None = None
    type: str | None = None


class DocblockSummary(BaseModel):
    archetype: str
    complexity_score: float
    tier: str
    is_complex: bool
    documented: bool


class ScoreFactorItem(BaseModel):
    id: str
    points: float


class AnalysisPayload(BaseModel):
    method: str
    resource: str
    archetype: str
    title: str
    detail: str
    complexity_score: float
    flags: dict[str, bool]
    query_features: list[str]
    exceptions: list[str]
    factors: list[ScoreFactorItem]


class ParameterItem(BaseModel):
    name: str
    type: str | None


class ValidationFieldItem(BaseModel):
    name: str
    rules: str
    type: str
    required: bool


class ErrorResponseItem(BaseModel):
    status: int
    message: str


class MetadataPayload(BaseModel):
    http_method: str
    endpoint: str
    parameters: list[ParameterItem]
    validation_fields: list[ValidationFieldItem]
    middleware: list[str]
    error_responses: list[ErrorResponseItem]
    relations: dict[str, str]
    # "model_fields" is a BaseModel attribute, so the key is carried by alias
    resource_fields: dict[str, str] = Field(alias="model_fields", serialization_alias="model_fields")


class AnalyzeDocblockResponse(BaseModel):
    version: str
    object: ObjectRef
    summary: DocblockSummary
    analysis: AnalysisPayload
    metadata: MetadataPayload
    errors: list[str]


class GenerateDocblockResponse(AnalyzeDocblockResponse):
    docblock: str


class MethodOutcome(BaseModel):
    method: str
    status: str
    reason: str | None = None
    archetype: str | None = None
    complexity_score: float | None = None
    tier: str | None = None
    errors: list[str] = Field(default_factory=list)
    error: str | None = None
    docblock: str | None = None


class ControllerSummary(BaseModel):
    methods: int
    complex: int
    skipped: int
    failed: int
    modified: bool
    dry_run: bool


class ControllerResponse(BaseModel):
    version: str
    object: ObjectRef
    summary: ControllerSummary
    methods: list[MethodOutcome]
    updated_source: str
    errors: list[str]


def _config_for(options: DocgenOptions) -> DocgenConfig:
    return with_overrides(
        load_config(),
        complexity_threshold=options.complexity_threshold,
        exclude_methods=options.exclude_methods,
        examples=options.examples,
        include_implementation_notes=options.include_implementation_notes,
        include_authorization_errors=options.include_authorization_errors,
        include_relations=options.include_relations,
    )


def _not_found(exc: LocationError) -> HTTPException:
    logger.info(
        "docblock: location failed class=%s method=%s", exc.class_name, exc.method_name
    )
    return HTTPException(
        status_code=404,
        detail={
            "class": exc.class_name,
            "method": exc.method_name,
            "reason": exc.reason,
        },
    )


# [함수 설명]
# - 목적: /docblock/analyze 엔드포인트 요청을 처리한다.
# - 입력: 컨트롤러 소스, 메서드 이름, 관련 클래스 소스, 옵션을 수신한다.
# - 출력: 응답 모델의 주요 필드는 version, object, summary, analysis, metadata, errors이다.
# - 에러 처리: 클래스/메서드를 찾지 못하면 404를 반환한다.
@router.post("/docblock/analyze", response_model=AnalyzeDocblockResponse)
def docblock_analyze(request: DocblockRequest) -> AnalyzeDocblockResponse:
    try:
        result = analyze_method(
            request.source,
            request.method,
            request.related_sources,
            _config_for(request.options),
        )
    except LocationError as exc:
        raise _not_found(exc) from exc
    return AnalyzeDocblockResponse(**result)


# [함수 설명]
# - 목적: /docblock/generate 엔드포인트 요청을 처리한다.
# - 입력: 컨트롤러 소스, 메서드 이름, 관련 클래스 소스, 옵션을 수신한다.
# - 출력: 분석 응답에 생성된 docblock 텍스트가 추가된다.
# - 에러 처리: 클래스/메서드를 찾지 못하면 404를 반환하며 부분 블록은 만들지 않는다.
# - 결정론: 같은 입력은 항상 같은 docblock을 만든다.
@router.post("/docblock/generate", response_model=GenerateDocblockResponse)
def docblock_generate(request: DocblockRequest) -> GenerateDocblockResponse:
    try:
        result = generate_docblock(
            request.source,
            request.method,
            request.related_sources,
            _config_for(request.options),
            force=request.options.force,
        )
    except LocationError as exc:
        raise _not_found(exc) from exc
    return GenerateDocblockResponse(**result)


@router.post("/docblock/controller", response_model=ControllerResponse)
def docblock_controller(request: ControllerRequest) -> ControllerResponse:
    try:
        result = document_controller(
            request.source,
            request.related_sources,
            _config_for(request.options),
            overwrite=request.overwrite,
            merge=request.merge,
            force=request.options.force,
            dry_run=request.dry_run,
        )
    except LocationError as exc:
        raise _not_found(exc) from exc
    return ControllerResponse(**result)
