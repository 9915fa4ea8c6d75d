# [파일 설명]
# - 목적: 컨트롤러 메서드 분석과 PHPDoc 생성을 하나의 흐름으로 묶는 서비스 모듈이다.
# - 제공 기능: analyze_method, generate_docblock, document_controller 함수를 제공한다.
# - 입력/출력: PHP 소스 텍스트와 옵션을 입력받아 구조화된 dict 결과를 반환한다.
# - 주의 사항: 원문 소스는 길이/해시로만 로그에 남기며 메서드 단위 실패는 배치를 중단하지 않는다.
# - 연관 모듈: docblock_mcp.api.mcp 라우터와 MCP 도구 호출에서 사용된다.
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from docblock_mcp.services.complexity import (
    complexity_tier,
    is_complex,
    reported_score,
    should_document,
)
from docblock_mcp.services.doc_renderer import endpoint_for, http_verb_for, render
from docblock_mcp.services.docblock_injector import has_docblock, inject_docblock
from docblock_mcp.services.docgen_config import DEFAULT_CONFIG, DocgenConfig
from docblock_mcp.services.docgen_errors import LocationError
from docblock_mcp.services.error_responses import ErrorResponse, extract_error_responses
from docblock_mcp.services.middleware import middleware_for_method
from docblock_mcp.services.model_info import extract_loaded_relations, resolve_model_fields
from docblock_mcp.services.pattern_analyzer import AnalysisResult, classify
from docblock_mcp.services.php_source import (
    ClassRegistry,
    MethodSource,
    list_public_methods,
    locate_method,
    parse_class_info,
)
from docblock_mcp.services.safe_source import summarize_source
from docblock_mcp.services.validation_rules import (
    FormObjectResolver,
    ValidationField,
    extract_validation_fields,
)

logger = logging.getLogger(__name__)

RESULT_VERSION = "1.0.0"


# [클래스 설명]
# - 역할: 한 메서드에 대한 분석 결과와 추출된 메타데이터를 묶는다.
# - 사용 위치: generate_docblock, document_controller 내부에서 렌더링 입력으로 사용된다.
# - 제약/주의: errors에는 추출 단계의 기능 저하(degradation) 메모만 담는다.
@dataclass
class MethodAnalysis:
    method: MethodSource
    analysis: AnalysisResult
    validation_fields: dict[str, ValidationField]
    middleware: list[str]
    error_responses: dict[int, ErrorResponse]
    relations: dict[str, str]
    model_fields: dict[str, str]
    errors: list[str] = field(default_factory=list)

    @property
    def score(self) -> float:
        return reported_score(self.analysis.complexity_score)

    def render(self, config: DocgenConfig) -> str:
        return render(
            self.analysis,
            self.validation_fields,
            self.middleware,
            self.error_responses,
            self.analysis.archetype,
            relations=self.relations,
            model_fields=self.model_fields,
            config=config,
        )

    def metadata(self) -> dict[str, object]:
        resource = self.analysis.resource_name
        return {
            "http_method": http_verb_for(self.method.method_name),
            "endpoint": endpoint_for(self.analysis.archetype, self.method.method_name, resource),
            "parameters": [
                {"name": param.name, "type": param.type_name}
                for param in self.method.parameters
            ],
            "validation_fields": [item.to_dict() for item in self.validation_fields.values()],
            "middleware": list(self.middleware),
            "error_responses": [
                self.error_responses[code].to_dict() for code in sorted(self.error_responses)
            ],
            "relations": dict(self.relations),
            "model_fields": dict(self.model_fields),
        }


def build_method_analysis(
    method: MethodSource, registry: ClassRegistry, config: DocgenConfig = DEFAULT_CONFIG
) -> MethodAnalysis:
    analysis = classify(method.method_name, method.method_body_text, method.class_body_text)

    errors: list[str] = []
    fields, field_errors = extract_validation_fields(method, FormObjectResolver(registry))
    errors.extend(field_errors)

    relations = extract_loaded_relations(method.method_body_text) if config.include_relations else {}
    model_fields: dict[str, str] = {}
    if not fields:
        model_fields, model_errors = resolve_model_fields(method, analysis.resource_name, registry)
        errors.extend(model_errors)

    return MethodAnalysis(
        method=method,
        analysis=analysis,
        validation_fields=fields,
        middleware=middleware_for_method(method.constructor_text, method.method_name),
        error_responses=extract_error_responses(method.method_body_text),
        relations=relations,
        model_fields=model_fields,
        errors=errors,
    )


def analyze_method(
    source: str,
    method_name: str,
    related_sources: Iterable[str] = (),
    config: DocgenConfig = DEFAULT_CONFIG,
) -> dict[str, object]:
    """Analyze one controller method without rendering it.

    Raises LocationError when the class or the method is not in ``source``.
    """
    summary = summarize_source(source)
    logger.info(
        "analyze_method: src_len=%s src_hash=%s method=%s",
        summary["len"],
        summary["sha256_8"],
        method_name,
    )
    registry = ClassRegistry([source, *related_sources])
    result = build_method_analysis(locate_method(source, method_name), registry, config)
    return _payload(result, config, docblock=None)


def generate_docblock(
    source: str,
    method_name: str,
    related_sources: Iterable[str] = (),
    config: DocgenConfig = DEFAULT_CONFIG,
    force: bool = False,
) -> dict[str, object]:
    """Analyze one controller method and render its doc block.

    The block is always rendered; ``summary.documented`` tells whether the method
    clears the complexity threshold (or ``force`` was set).
    Raises LocationError when the class or the method is not in ``source``.
    """
    summary = summarize_source(source)
    logger.info(
        "generate_docblock: src_len=%s src_hash=%s method=%s",
        summary["len"],
        summary["sha256_8"],
        method_name,
    )
    registry = ClassRegistry([source, *related_sources])
    result = build_method_analysis(locate_method(source, method_name), registry, config)
    return _payload(result, config, docblock=result.render(config), force=force)


def document_controller(
    source: str,
    related_sources: Iterable[str] = (),
    config: DocgenConfig = DEFAULT_CONFIG,
    overwrite: bool = False,
    merge: bool = False,
    force: bool = False,
    dry_run: bool = False,
) -> dict[str, object]:
    """Document every public method declared by the controller in ``source``.

    Each method is handled independently; a method that fails is reported in
    its outcome and the remaining methods are still processed.
    """
    summary = summarize_source(source)
    logger.info(
        "document_controller: src_len=%s src_hash=%s",
        summary["len"],
        summary["sha256_8"],
    )

    info = parse_class_info(source)
    if info is None:
        raise LocationError("<unknown>", "*", "class declaration not found")

    registry = ClassRegistry([source, *related_sources])
    updated = source
    outcomes: list[dict[str, object]] = []
    stats = {"methods": 0, "complex": 0, "skipped": 0, "failed": 0}

    for method_name in list_public_methods(source):
        if method_name.startswith("__") or method_name in config.exclude_methods:
            continue
        outcome: dict[str, object] = {"method": method_name}
        outcomes.append(outcome)

        try:
            if not (overwrite or merge) and has_docblock(updated, method_name):
                outcome.update(status="skipped", reason="already_documented")
                stats["skipped"] += 1
                continue

            result = build_method_analysis(locate_method(updated, method_name), registry, config)
            score = result.score
            outcome.update(
                archetype=result.analysis.archetype,
                complexity_score=score,
                tier=complexity_tier(score),
                errors=list(result.errors),
            )
            if not should_document(score, config.complexity_threshold, force):
                outcome.update(status="skipped", reason="below_threshold")
                stats["skipped"] += 1
                continue

            docblock = result.render(config)
            updated = inject_docblock(updated, method_name, docblock, merge=merge)
        except Exception as exc:  # noqa: BLE001 - isolate failure to this method
            logger.warning(
                "document_controller: method failed class=%s method=%s error=%s",
                info.full_name,
                method_name,
                type(exc).__name__,
            )
            outcome.update(status="failed", error=str(exc))
            stats["failed"] += 1
            continue

        outcome.update(status="documented", docblock=docblock)
        stats["methods"] += 1
        if is_complex(score):
            stats["complex"] += 1

    return {
        "version": RESULT_VERSION,
        "object": {"name": info.full_name, "type": "controller"},
        "summary": {
            "methods": stats["methods"],
            "complex": stats["complex"],
            "skipped": stats["skipped"],
            "failed": stats["failed"],
            "modified": updated != source,
            "dry_run": dry_run,
        },
        "methods": outcomes,
        "updated_source": source if dry_run else updated,
        "errors": [
            f"{info.full_name}::{outcome['method']}: {outcome['error']}"
            for outcome in outcomes
            if outcome.get("status") == "failed"
        ],
    }


def _payload(
    result: MethodAnalysis,
    config: DocgenConfig,
    docblock: str | None,
    force: bool = False,
) -> dict[str, object]:
    score = result.score
    payload: dict[str, object] = {
        "version": RESULT_VERSION,
        "object": {"name": result.method.class_name, "method": result.method.method_name},
        "summary": {
            "archetype": result.analysis.archetype,
            "complexity_score": score,
            "tier": complexity_tier(score),
            "is_complex": is_complex(score),
            "documented": should_document(score, config.complexity_threshold, force),
        },
        "analysis": result.analysis.to_dict(),
        "metadata": result.metadata(),
        "errors": list(result.errors),
    }
    if docblock is not None:
        payload["docblock"] = docblock
    return payload
