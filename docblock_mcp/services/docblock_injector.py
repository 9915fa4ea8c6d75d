from __future__ import annotations

import re
from dataclasses import dataclass, field

from docblock_mcp.services.php_source import locate_method

DOC_LINE_PREFIX = re.compile(r"^\s*\*(?: ?)")
RESPONSE_OPEN_PATTERN = re.compile(r"^@response\s+(\d{3})\b\s*(.*)$")
PARAM_TAGS = ("bodyParam", "queryParam", "urlParam")
BODY_TAGS = {"api", "urlParam", "bodyParam", "queryParam", "response"}


@dataclass
class DocblockTags:
    title: str = ""
    description: list[str] = field(default_factory=list)
    group: str | None = None
    authenticated: bool = False
    api: str | None = None
    params: dict[str, dict[str, str]] = field(
        default_factory=lambda: {tag: {} for tag in PARAM_TAGS}
    )
    responses: dict[int, list[str]] = field(default_factory=dict)
    extra_tags: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


def docblock_lines(docblock: str) -> list[str]:
    body = docblock.strip()
    if body.startswith("/**"):
        body = body[3:]
    if body.endswith("*/"):
        body = body[:-2]
    lines = []
    for raw_line in body.split("\n"):
        lines.append(DOC_LINE_PREFIX.sub("", raw_line, count=1).rstrip())
    return lines


def parse_docblock_tags(docblock: str) -> DocblockTags:
    """Split a doc block into header text, known tags, response bodies and trailing notes."""
    tags = DocblockTags()
    in_body = False
    response_code: int | None = None
    depth = 0

    for line in docblock_lines(docblock):
        stripped = line.strip()
        if response_code is not None:
            tags.responses[response_code].append(line)
            depth += stripped.count("{") + stripped.count("[")
            depth -= stripped.count("}") + stripped.count("]")
            if depth <= 0:
                response_code = None
            continue
        if not stripped:
            continue

        if stripped.startswith("@"):
            name, _, value = stripped[1:].partition(" ")
            value = value.strip()
            if name in BODY_TAGS:
                in_body = True
            if name == "group":
                tags.group = value
            elif name == "authenticated":
                tags.authenticated = True
            elif name == "api":
                tags.api = value
            elif name in PARAM_TAGS:
                key = value.split(" ", 1)[0]
                tags.params[name].setdefault(key, value)
            elif name == "response":
                match = RESPONSE_OPEN_PATTERN.match(stripped)
                if match is None:
                    tags.extra_tags.append(stripped)
                    continue
                code = int(match.group(1))
                if code in tags.responses:
                    continue
                tags.responses[code] = [stripped]
                rest = match.group(2)
                depth = rest.count("{") + rest.count("[") - rest.count("}") - rest.count("]")
                if depth > 0:
                    response_code = code
            else:
                tags.extra_tags.append(stripped)
            continue

        if in_body:
            tags.notes.append(stripped)
        elif not tags.title:
            tags.title = stripped
        else:
            tags.description.append(stripped)
    return tags


def merge_docblocks(existing: str, generated: str) -> str:
    """Keep what the user wrote and add the generated parts that are missing."""
    mine = parse_docblock_tags(existing)
    theirs = parse_docblock_tags(generated)

    merged = DocblockTags(
        title=mine.title or theirs.title,
        description=mine.description or theirs.description,
        group=mine.group or theirs.group,
        authenticated=mine.authenticated or theirs.authenticated,
        api=mine.api or theirs.api,
        extra_tags=list(mine.extra_tags),
        notes=mine.notes or theirs.notes,
    )
    for tag in PARAM_TAGS:
        combined = dict(mine.params[tag])
        for key, value in theirs.params[tag].items():
            combined.setdefault(key, value)
        merged.params[tag] = combined
    responses = dict(mine.responses)
    for code, lines in theirs.responses.items():
        responses.setdefault(code, lines)
    merged.responses = {code: responses[code] for code in sorted(responses)}
    return render_tags(merged)


def render_tags(tags: DocblockTags) -> str:
    blocks: list[list[str]] = []
    if tags.group:
        blocks.append([f"@group {tags.group}"])
    if tags.title:
        blocks.append([tags.title])
    if tags.description:
        blocks.append(list(tags.description))
    if tags.authenticated:
        blocks.append(["@authenticated"])
    if tags.api:
        blocks.append([f"@api {tags.api}"])
    for tag in PARAM_TAGS:
        if tags.params[tag]:
            blocks.append([f"@{tag} {value}" for value in tags.params[tag].values()])
    for lines in tags.responses.values():
        blocks.append(list(lines))
    if tags.extra_tags:
        blocks.append(list(tags.extra_tags))
    if tags.notes:
        blocks.append(list(tags.notes))

    lines = ["/**"]
    for index, block in enumerate(blocks):
        if index:
            lines.append(" *")
        lines.extend(f" * {line}" if line else " *" for line in block)
    lines.append(" */")
    return "\n".join(lines)


def declaration_anchor(source: str, method_name: str) -> int:
    """Offset of the first line belonging to the method declaration, attributes included."""
    offset = locate_method(source, method_name).start_offset
    line_start = source.rfind("\n", 0, offset) + 1
    while line_start > 0:
        previous_start = source.rfind("\n", 0, line_start - 1) + 1
        previous_line = source[previous_start : line_start - 1].strip()
        if not previous_line.startswith("#["):
            break
        line_start = previous_start
    return line_start


def preceding_docblock_span(source: str, anchor: int) -> tuple[int, int] | None:
    before = source[:anchor].rstrip()
    if not before.endswith("*/"):
        return None
    start = before.rfind("/**")
    if start < 0 or before.find("*/", start) != len(before) - 2:
        return None
    return start, len(before)


def has_docblock(source: str, method_name: str) -> bool:
    return preceding_docblock_span(source, declaration_anchor(source, method_name)) is not None


def existing_docblock(source: str, method_name: str) -> str | None:
    span = preceding_docblock_span(source, declaration_anchor(source, method_name))
    if span is None:
        return None
    return source[span[0] : span[1]]


def indent_docblock(docblock: str, indentation: str) -> str:
    lines = docblock.split("\n")
    return "\n".join([lines[0], *(f"{indentation}{line}" for line in lines[1:])])


def inject_docblock(source: str, method_name: str, docblock: str, merge: bool = False) -> str:
    """Place ``docblock`` above the method, replacing the doc block already there."""
    anchor = declaration_anchor(source, method_name)
    line_end = source.find("\n", anchor)
    line = source[anchor : line_end if line_end >= 0 else len(source)]
    indentation = line[: len(line) - len(line.lstrip(" \t"))]
    code_start = anchor + len(indentation)

    span = preceding_docblock_span(source, anchor)
    if span is None:
        block = indent_docblock(docblock, indentation)
        return f"{source[:code_start]}{block}\n{indentation}{source[code_start:]}"

    doc_start, doc_end = span
    if merge:
        docblock = merge_docblocks(source[doc_start:doc_end], docblock)
    block = indent_docblock(docblock, indentation)
    return f"{source[:doc_start]}{block}\n{indentation}{source[code_start:]}"
