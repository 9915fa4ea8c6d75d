from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from http import HTTPStatus

from docblock_mcp.services.php_source import balanced_bracket_content, split_arguments

logger = logging.getLogger(__name__)

JSON_RESPONSE_PATTERN = re.compile(r"response\s*\(\s*\)\s*->\s*json\s*\(", re.IGNORECASE)
ABORT_PATTERN = re.compile(r"\babort(?P<variant>_if|_unless)?\s*\(", re.IGNORECASE)
STATUS_PATTERN = re.compile(r"^\s*([1-5]\d{2})\s*$")
MESSAGE_KEY_PATTERN = re.compile(
    r"""['"](?:message|error)['"]\s*=>\s*(['"])(?P<message>(?:(?!\1).)*)\1""",
    re.DOTALL,
)
QUOTED_PATTERN = re.compile(r"""^\s*(['"])(?P<value>.*)\1\s*$""", re.DOTALL)
MIN_RECORDED_STATUS = 300
MIN_ERROR_STATUS = 400
MAX_MESSAGE_LENGTH = 100


@dataclass(frozen=True)
class ErrorResponse:
    status_code: int
    message: str

    def to_dict(self) -> dict[str, object]:
        return {"status": self.status_code, "message": self.message}


def clean_response_message(message: str) -> str:
    for char in "\"'[]":
        message = message.replace(char, "")
    return message.strip()[:MAX_MESSAGE_LENGTH]


def extract_error_responses(method_body: str) -> dict[int, ErrorResponse]:
    """Collect explicit error responses keyed by status code.

    The response()->json() family is scanned before abort() calls, and the first
    occurrence of a status code wins.
    """
    responses: dict[int, ErrorResponse] = {}

    for status_code, body in _json_responses(method_body):
        if status_code >= MIN_ERROR_STATUS and status_code not in responses:
            responses[status_code] = ErrorResponse(status_code, _message_from_body(body))

    for status_code, message in _abort_calls(method_body):
        if status_code >= MIN_ERROR_STATUS and status_code not in responses:
            responses[status_code] = ErrorResponse(status_code, clean_response_message(message))

    logger.info("extract_error_responses: statuses=%s", sorted(responses))
    return responses


def _json_responses(text: str) -> list[tuple[int, str]]:
    found: list[tuple[int, str]] = []
    for match in JSON_RESPONSE_PATTERN.finditer(text):
        arguments = _call_arguments(text, match.end() - 1)
        if len(arguments) < 2:
            continue
        status_match = STATUS_PATTERN.match(arguments[1])
        if not status_match:
            continue
        status_code = int(status_match.group(1))
        if status_code >= MIN_RECORDED_STATUS:
            found.append((status_code, arguments[0].strip()))
    return found


def _abort_calls(text: str) -> list[tuple[int, str]]:
    found: list[tuple[int, str]] = []
    for match in ABORT_PATTERN.finditer(text):
        arguments = _call_arguments(text, match.end() - 1)
        if match.group("variant"):
            arguments = arguments[1:]
        if not arguments:
            continue
        status_match = STATUS_PATTERN.match(arguments[0])
        if not status_match:
            continue
        status_code = int(status_match.group(1))
        message = ""
        if len(arguments) > 1:
            quoted = QUOTED_PATTERN.match(arguments[1])
            if quoted:
                message = quoted.group("value")
        found.append((status_code, message or _status_phrase(status_code)))
    return found


def _call_arguments(text: str, open_index: int) -> list[str]:
    content = balanced_bracket_content(text, open_index, "(")
    if content is None:
        return []
    return split_arguments(content)


def _message_from_body(body: str) -> str:
    keyed = MESSAGE_KEY_PATTERN.search(body)
    if keyed:
        return clean_response_message(keyed.group("message"))
    quoted = QUOTED_PATTERN.match(body)
    if quoted:
        return clean_response_message(quoted.group("value"))
    return clean_response_message(body)


def _status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"
