from __future__ import annotations

SIZE_CAP = 5.0
SIZE_LINES_PER_POINT = 5
NESTING_CAP = 5.0
NESTING_BRACES_PER_POINT = 3
HIGH_TIER_SCORE = 15
COMPLEX_METHOD_SCORE = 10


def size_score(body: str) -> float:
    line_count = body.count("\n")
    return min(SIZE_CAP, line_count / SIZE_LINES_PER_POINT)


def nesting_score(body: str) -> float:
    # Crude proxy: the larger delimiter count, not a real depth.
    brace_count = max(body.count("{"), body.count("}"))
    return min(NESTING_CAP, brace_count / NESTING_BRACES_PER_POINT)


def complexity_tier(score: float) -> str:
    if score > HIGH_TIER_SCORE:
        return "high"
    return "default"


def is_complex(score: float) -> bool:
    return score > COMPLEX_METHOD_SCORE


def should_document(score: float, threshold: int, force: bool = False) -> bool:
    if force:
        return True
    return score >= threshold


def reported_score(score: float) -> float:
    return round(score, 2)
