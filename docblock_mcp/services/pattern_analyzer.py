from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from docblock_mcp.services.complexity import nesting_score, reported_score, size_score
from docblock_mcp.services.php_source import class_short_name
from docblock_mcp.services.safe_source import summarize_source

logger = logging.getLogger(__name__)

ARCHETYPES = ("list", "show", "create", "update", "delete", "custom")

ARCHETYPE_ALIASES = (
    ("list", ("index", "all", "list", "get")),
    ("show", ("show", "find", "retrieve", "detail")),
    ("create", ("store", "create", "add", "save")),
    ("update", ("update", "edit", "modify")),
    ("delete", ("destroy", "delete", "remove")),
)

FLAGS = (
    "transaction",
    "queue",
    "cache",
    "validation",
    "authorization",
    "external_call",
    "relations",
    "soft_delete",
    "rate_limit",
    "cascade_delete",
)

MARKER_PATTERNS = {
    "transaction": re.compile(r"transaction", re.IGNORECASE),
    "queue": re.compile(r"::dispatch|\bdispatch\s*\(|queue", re.IGNORECASE),
    "cache": re.compile(r"Cache::|cache\(", re.IGNORECASE),
    "validation": re.compile(r"validate|validator", re.IGNORECASE),
    "authorization": re.compile(r"authorize|gate|ability", re.IGNORECASE),
    "external_call": re.compile(r"Http::|->\s*\w*Service\b", re.IGNORECASE),
    "relations": re.compile(r"attach|sync|associate|with\(|load\(", re.IGNORECASE),
    "soft_delete": re.compile(
        r"withTrashed|onlyTrashed|forceDelete|restore|softDelete", re.IGNORECASE
    ),
    "rate_limit": re.compile(r"throttle|rate_?limit", re.IGNORECASE),
}
CASCADE_LOOP_PATTERN = re.compile(
    r"foreach|->\s*each\s*\(|\bloop\b|\bwhile\s*\(|\bfor\s*\(", re.IGNORECASE
)
CASCADE_DELETE_PATTERN = re.compile(r"->\s*(?:force)?delete\s*\(|::destroy\s*\(", re.IGNORECASE)

QUERY_FEATURE_PATTERNS = {
    "search": re.compile(r"search|query|find", re.IGNORECASE),
    "filtering": re.compile(r"when\(|where\(|filter", re.IGNORECASE),
    "sorting": re.compile(r"orderBy|sortBy|sort", re.IGNORECASE),
    "pagination": re.compile(r"paginate|limit|take", re.IGNORECASE),
    "query": re.compile(r"where|get|find|query", re.IGNORECASE),
}
THROW_PATTERN = re.compile(r"throw\s+new\s+\\?(?:[\w]+\\)*(\w*Exception)\b")

DEFAULT_PHRASES = {
    "transaction": "database transactions",
    "queue": "background jobs",
    "cache": "caching",
    "validation": "request validation",
    "authorization": "authorization checks",
    "external_call": "external service calls",
    "relations": "related resources",
    "soft_delete": "soft-deleted records",
    "rate_limit": "rate limiting",
    "cascade_delete": "cascading deletions",
}

COMMON_MARKERS = (
    "transaction",
    "queue",
    "cache",
    "authorization",
    "external_call",
    "soft_delete",
    "rate_limit",
)


@dataclass(frozen=True)
class ArchetypeProfile:
    base_weight: int
    markers: tuple[str, ...]
    weights: dict[str, int]
    phrases: tuple[tuple[str, str], ...]
    sentence: str
    query_features: tuple[str, ...] = ()


PROFILES = {
    "list": ArchetypeProfile(
        base_weight=3,
        markers=COMMON_MARKERS + ("relations",),
        weights={
            "relations": 2,
            "pagination": 2,
            "filtering": 3,
            "sorting": 2,
            "transaction": 2,
            "queue": 1,
            "cache": 1,
            "authorization": 1,
            "external_call": 2,
            "soft_delete": 1,
            "rate_limit": 1,
        },
        phrases=(
            ("search", "search"),
            ("filtering", "filtering"),
            ("sorting", "sorting"),
            ("pagination", "pagination"),
            ("relations", "eager loading of related resources"),
        ),
        sentence="This endpoint supports {features}.",
        query_features=("search", "filtering", "sorting", "pagination"),
    ),
    "show": ArchetypeProfile(
        base_weight=2,
        markers=COMMON_MARKERS + ("relations",),
        weights={
            "relations": 2,
            "authorization": 2,
            "transaction": 2,
            "queue": 1,
            "cache": 1,
            "external_call": 2,
            "soft_delete": 1,
            "rate_limit": 1,
        },
        phrases=(
            ("relations", "including related resources"),
            ("authorization", "authorization checking"),
            ("soft_delete", "respecting soft-deleted records"),
        ),
        sentence="This operation includes {features}.",
    ),
    "create": ArchetypeProfile(
        base_weight=4,
        markers=COMMON_MARKERS + ("validation", "relations"),
        weights={
            "transaction": 5,
            "queue": 3,
            "cache": 2,
            "validation": 2,
            "relations": 2,
            "external_call": 3,
            "authorization": 1,
            "soft_delete": 1,
            "rate_limit": 1,
        },
        phrases=(
            ("validation", "request validation"),
            ("authorization", "authorization checks"),
            ("external_call", "integration with external services"),
            ("transaction", "database transaction with automatic rollback"),
            ("queue", "asynchronous background jobs"),
            ("cache", "cache invalidation"),
            ("relations", "relationship management"),
        ),
        sentence="This operation includes {features}.",
    ),
    "update": ArchetypeProfile(
        base_weight=4,
        markers=COMMON_MARKERS + ("validation",),
        weights={
            "transaction": 4,
            "cache": 2,
            "queue": 2,
            "validation": 1,
            "authorization": 1,
            "external_call": 2,
            "soft_delete": 1,
            "rate_limit": 1,
        },
        phrases=(
            ("validation", "validation"),
            ("authorization", "authorization"),
            ("transaction", "atomic transactions"),
            ("cache", "cache invalidation"),
            ("queue", "async notifications"),
        ),
        sentence="This operation supports {features}.",
    ),
    "delete": ArchetypeProfile(
        base_weight=2,
        markers=COMMON_MARKERS + ("cascade_delete",),
        weights={
            "cascade_delete": 4,
            "transaction": 3,
            "soft_delete": 1,
            "authorization": 1,
            "queue": 1,
            "cache": 1,
            "external_call": 2,
            "rate_limit": 1,
        },
        phrases=(
            ("soft_delete", "soft delete support"),
            ("cascade_delete", "cascading deletions"),
            ("authorization", "authorization checking"),
            ("transaction", "transaction handling"),
            ("queue", "async cleanup jobs"),
        ),
        sentence="This operation handles {features}.",
    ),
    "custom": ArchetypeProfile(
        base_weight=3,
        markers=COMMON_MARKERS,
        weights={
            "transaction": 4,
            "external_call": 3,
            "queue": 2,
            "cache": 1,
            "authorization": 1,
            "soft_delete": 1,
            "rate_limit": 1,
        },
        phrases=(
            ("query", "database query execution"),
            ("transaction", "transactional operations"),
            ("queue", "background job processing"),
            ("external_call", "external API integration"),
        ),
        sentence="This operation performs {features}.",
        query_features=("query",),
    ),
}


@dataclass(frozen=True)
class ScoreFactor:
    id: str
    points: float


@dataclass
class AnalysisResult:
    method_name: str
    resource_name: str
    archetype: str
    title: str = ""
    detail_text: str = ""
    complexity_score: float = 0.0
    detected_patterns: dict[str, bool] = field(
        default_factory=lambda: {flag: False for flag in FLAGS}
    )
    query_features: list[str] = field(default_factory=list)
    exceptions: list[str] = field(default_factory=list)
    factors: list[ScoreFactor] = field(default_factory=list)

    def has(self, flag: str) -> bool:
        return self.detected_patterns.get(flag, False)

    @property
    def flags(self) -> list[str]:
        return [flag for flag in FLAGS if self.detected_patterns[flag]]

    def add_points(self, factor_id: str, points: float) -> None:
        if points <= 0:
            return
        self.complexity_score += points
        self.factors.append(ScoreFactor(id=factor_id, points=points))

    def mark(self, flag: str, weight: int) -> None:
        if self.detected_patterns[flag]:
            return
        self.detected_patterns[flag] = True
        self.add_points(f"MARKER_{flag.upper()}", weight)

    def to_dict(self) -> dict[str, object]:
        return {
            "method": self.method_name,
            "resource": self.resource_name,
            "archetype": self.archetype,
            "title": self.title,
            "detail": self.detail_text,
            "complexity_score": reported_score(self.complexity_score),
            "flags": dict(self.detected_patterns),
            "query_features": list(self.query_features),
            "exceptions": list(self.exceptions),
            "factors": [
                {"id": factor.id, "points": reported_score(factor.points)}
                for factor in self.factors
            ],
        }


def classify_archetype(method_name: str) -> str:
    lowered = method_name.lower()
    for archetype, aliases in ARCHETYPE_ALIASES:
        if lowered in aliases:
            return archetype
    return "custom"


def resource_name_for(class_name: str | None) -> str:
    if not class_name:
        return "Resource"
    short_name = class_name.rsplit("\\", 1)[-1]
    if short_name.endswith("Controller"):
        short_name = short_name[: -len("Controller")]
    return short_name or "Resource"


def pluralize(name: str) -> str:
    lowered = name.lower()
    if lowered.endswith("y") and len(lowered) > 1 and lowered[-2] not in "aeiou":
        return name[:-1] + "ies"
    if lowered.endswith(("s", "x", "z", "ch", "sh")):
        return name + "es"
    return name + "s"


def humanize_method_name(method_name: str) -> str:
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", " ", method_name)
    words = [word.lower() for word in re.split(r"[\s_\-]+", spaced) if word]
    if not words:
        return method_name
    sentence = " ".join(words)
    return sentence[0].upper() + sentence[1:]


def classify(method_name: str, method_body_text: str, class_body_text: str) -> AnalysisResult:
    """Classify a controller method and score it in a single pass over its text.

    Scoring model (deterministic):
    - Archetype base weight.
    - Each detected marker adds its archetype-specific weight once.
    - Size term min(5, lines / 5) and nesting term min(5, braces / 3).
    """
    summary = summarize_source(method_body_text)
    logger.info(
        "classify: method=%s src_len=%s src_hash=%s",
        method_name,
        summary["len"],
        summary["sha256_8"],
    )

    archetype = classify_archetype(method_name)
    profile = PROFILES[archetype]
    resource = resource_name_for(class_short_name(class_body_text))

    result = AnalysisResult(method_name=method_name, resource_name=resource, archetype=archetype)
    result.add_points(f"ARCHETYPE_{archetype.upper()}", profile.base_weight)

    for marker in profile.markers:
        if _marker_present(marker, method_body_text):
            result.mark(marker, profile.weights.get(marker, 0))

    for feature in profile.query_features:
        if QUERY_FEATURE_PATTERNS[feature].search(method_body_text):
            result.query_features.append(feature)
            result.add_points(f"FEATURE_{feature.upper()}", profile.weights.get(feature, 0))

    result.add_points("SIZE", size_score(method_body_text))
    result.add_points("NESTING", nesting_score(method_body_text))

    result.exceptions = _thrown_exceptions(method_body_text)
    result.title = _title_for(archetype, method_name, resource)
    result.detail_text = _detail_for(profile, result)
    return result


def _marker_present(marker: str, text: str) -> bool:
    if marker == "cascade_delete":
        return bool(CASCADE_LOOP_PATTERN.search(text) and CASCADE_DELETE_PATTERN.search(text))
    return bool(MARKER_PATTERNS[marker].search(text))


def _title_for(archetype: str, method_name: str, resource: str) -> str:
    if archetype == "list":
        return f"Retrieve a list of {pluralize(resource)}"
    if archetype == "show":
        return f"Retrieve a specific {resource}"
    if archetype == "create":
        return f"Create a new {resource}"
    if archetype == "update":
        return f"Update an existing {resource}"
    if archetype == "delete":
        return f"Delete a {resource}"
    return humanize_method_name(method_name)


def _detail_for(profile: ArchetypeProfile, result: AnalysisResult) -> str:
    present = set(result.flags) | set(result.query_features)
    features: list[str] = []
    covered: set[str] = set()
    for marker, phrase in profile.phrases:
        covered.add(marker)
        if marker in present:
            features.append(phrase)
    for flag in result.flags:
        if flag not in covered:
            features.append(DEFAULT_PHRASES[flag])
    if not features:
        return ""
    return profile.sentence.format(features=", ".join(features))


def _thrown_exceptions(text: str) -> list[str]:
    exceptions: list[str] = []
    for match in THROW_PATTERN.finditer(text):
        name = match.group(1)
        if name and name not in exceptions:
            exceptions.append(name)
    return exceptions
