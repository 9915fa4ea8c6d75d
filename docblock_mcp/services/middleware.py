from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

OPTION_FORM_PATTERN = re.compile(
    r"""middleware\s*\(\s*(?P<names>['"][^'"]+['"]|\[[^\]]*\])\s*,\s*"""
    r"""\[\s*['"]only['"]\s*=>\s*(?P<methods>\[[^\]]*\]|['"][^'"]+['"])""",
    re.DOTALL,
)
FLUENT_FORM_PATTERN = re.compile(
    r"""middleware\s*\(\s*(?P<names>['"][^'"]+['"]|\[[^\]]*\])\s*\)"""
    r"""\s*->\s*only\s*\(\s*(?P<methods>\[[^\]]*\]|[^)]*)\)""",
    re.DOTALL,
)
QUOTED_PATTERN = re.compile(r"""['"]([^'"]+)['"]""")


@dataclass(frozen=True)
class MiddlewareBinding:
    name: str
    methods: frozenset[str]

    def applies_to(self, method_name: str) -> bool:
        return method_name in self.methods


def parse_middleware_bindings(constructor_text: str) -> list[MiddlewareBinding]:
    matches = list(OPTION_FORM_PATTERN.finditer(constructor_text))
    matches.extend(FLUENT_FORM_PATTERN.finditer(constructor_text))
    matches.sort(key=lambda match: match.start())

    bindings: list[MiddlewareBinding] = []
    for match in matches:
        methods = frozenset(
            method.strip() for method in _method_names(match.group("methods")) if method.strip()
        )
        for name in QUOTED_PATTERN.findall(match.group("names")):
            bindings.append(MiddlewareBinding(name=name, methods=methods))
    return bindings


def middleware_for_method(constructor_text: str, method_name: str) -> list[str]:
    if not constructor_text:
        return []
    middleware: list[str] = []
    for binding in parse_middleware_bindings(constructor_text):
        if binding.applies_to(method_name) and binding.name not in middleware:
            middleware.append(binding.name)
    logger.info("middleware_for_method: method=%s count=%s", method_name, len(middleware))
    return middleware


def _method_names(text: str) -> list[str]:
    values: list[str] = []
    for token in QUOTED_PATTERN.findall(text):
        values.extend(part.strip() for part in token.split(","))
    return values
