from __future__ import annotations


class LocationError(Exception):
    """The requested class or method could not be found in the supplied source."""

    def __init__(self, class_name: str, method_name: str, reason: str) -> None:
        super().__init__(f"{class_name}::{method_name}: {reason}")
        self.class_name = class_name
        self.method_name = method_name
        self.reason = reason


class RenderInvariantViolation(Exception):
    """Raised when the renderer receives an analysis result it cannot have produced."""
