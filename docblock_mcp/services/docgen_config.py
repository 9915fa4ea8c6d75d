from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace

logger = logging.getLogger(__name__)

DEFAULT_COMPLEXITY_THRESHOLD = 5

DEFAULT_EXCLUDE_METHODS = (
    "__construct",
    "__invoke",
    "middleware",
    "validate",
    "authorize",
)

DEFAULT_EXAMPLES = {
    "id": "1",
    "uuid": "550e8400-e29b-41d4-a716-446655440000",
    "email": "user@example.com",
    "phone": "+393331234567",
    "name": "John Doe",
    "status": "active",
    "price": "99.99",
    "amount": "100.00",
    "quantity": "5",
    "date": "2026-01-21",
    "date_from": "2026-01-01",
    "date_to": "2026-01-31",
    "sort_by": "created_at",
    "sort_dir": "desc",
    "per_page": "15",
    "page": "1",
    "q": "search term",
    "limit": "10",
    "offset": "0",
    "search": "search query",
    "filter": "filter value",
    "order": "created_at",
    "direction": "desc",
}

DEFAULT_MESSAGES = {
    "created": "{resource} created successfully",
    "updated": "{resource} updated successfully",
    "deleted": "{resource} deleted successfully",
    "not_found": "{resource} not found",
    "invalid": "The given data was invalid.",
    "unauthorized": "This action is unauthorized.",
    "completed": "Operation completed successfully",
}

AUTH_MIDDLEWARE = ("auth:sanctum", "auth:api", "auth")


@dataclass(frozen=True)
class DocgenConfig:
    complexity_threshold: int = DEFAULT_COMPLEXITY_THRESHOLD
    exclude_methods: tuple[str, ...] = DEFAULT_EXCLUDE_METHODS
    examples: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_EXAMPLES))
    messages: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MESSAGES))
    include_implementation_notes: bool = True
    include_authorization_errors: bool = True
    include_relations: bool = True
    timestamp_example: str = "2026-01-21T10:30:00.000000Z"

    def message(self, key: str, resource: str = "Resource") -> str:
        template = self.messages.get(key) or DEFAULT_MESSAGES.get(key, "")
        return template.format(resource=resource)


DEFAULT_CONFIG = DocgenConfig()


def load_config() -> DocgenConfig:
    """Build the configuration from DOCGEN_* environment variables over the defaults."""
    config = DEFAULT_CONFIG

    threshold_value = os.getenv("DOCGEN_COMPLEXITY_THRESHOLD", "").strip()
    if threshold_value:
        try:
            config = replace(config, complexity_threshold=int(threshold_value))
        except ValueError:
            logger.warning("load_config: ignoring non-integer DOCGEN_COMPLEXITY_THRESHOLD")

    exclude_value = os.getenv("DOCGEN_EXCLUDE_METHODS", "").strip()
    if exclude_value:
        excluded = tuple(item.strip() for item in exclude_value.split(",") if item.strip())
        config = replace(config, exclude_methods=excluded)

    return config


def with_overrides(
    config: DocgenConfig,
    *,
    complexity_threshold: int | None = None,
    exclude_methods: list[str] | None = None,
    examples: dict[str, str] | None = None,
    include_implementation_notes: bool | None = None,
    include_authorization_errors: bool | None = None,
    include_relations: bool | None = None,
) -> DocgenConfig:
    changes: dict[str, object] = {}
    if complexity_threshold is not None:
        changes["complexity_threshold"] = complexity_threshold
    if exclude_methods is not None:
        changes["exclude_methods"] = tuple(exclude_methods)
    if examples:
        changes["examples"] = {**config.examples, **examples}
    if include_implementation_notes is not None:
        changes["include_implementation_notes"] = include_implementation_notes
    if include_authorization_errors is not None:
        changes["include_authorization_errors"] = include_authorization_errors
    if include_relations is not None:
        changes["include_relations"] = include_relations
    if not changes:
        return config
    return replace(config, **changes)
