# [파일 설명]
# - 목적: 소스 요약 정보를 계산해 안전한 로그 출력에 활용한다.
# - 제공 기능: 길이/해시 등의 요약 데이터를 생성한다.
# - 입력/출력: 원문 PHP 소스를 입력으로 받아 요약 dict를 반환한다.
# - 주의 사항: 원문 소스 자체는 로그에 남기지 않는다.
# - 연관 모듈: 분석 서비스(docblock_mcp.services.*)에서 로그 요약에 사용된다.
from __future__ import annotations

import hashlib


# [함수 설명]
# - 목적: summarize_source 처리 로직을 수행한다.
# - 입력: source: str
# - 출력: 길이와 sha256 앞 8자리를 담은 dict를 반환한다.
# - 에러 처리: 예외 없이 항상 결과를 반환한다.
# - 결정론: 동일 입력에 대해 동일 결과를 반환한다.
# - 보안: 원문 소스 대신 요약 값만 로그에 남기도록 한다.
def summarize_source(source: str) -> dict[str, int | str]:
    source_hash = hashlib.sha256(source.encode("utf-8")).hexdigest()[:8]
    return {"len": len(source), "sha256_8": source_hash}
