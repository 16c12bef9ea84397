"""Embedded-region extraction.

Finds CSS embedded in script text (styled-components, emotion and similar
tagged templates, ``css={{...}}`` / ``style={{...}}`` object props) and
masks framework template expressions in HTML so the HTML grammar sees
well-formed markup.

Every helper here preserves character offsets: masked text has the same
length and the same line breaks as the original, so positions found in it
are valid in the source document.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..models.feature import Position, Range
from .positions import SourceText

MASK_CHAR = "_"

# Tag heads that introduce a CSS template literal
TEMPLATE_TAG = re.compile(
    r"(?<![\w$.])(?:"
    r"styled\s*\.\s*[A-Za-z][\w]*"
    r"|styled\s*\(\s*[\w$.]+\s*\)"
    r"|css|keyframes|createGlobalStyle|injectGlobal"
    r")"
)
ATTRS_CALL = re.compile(r"\s*\.\s*attrs\s*\(")

# ``css={{`` / ``style={{`` JSX props and emotion's ``css({``
OBJECT_STYLE_START = re.compile(r"(?<![\w$.])(?:(css|style)\s*=\s*\{\s*\{|(css)\s*\(\s*\{)")
OBJECT_PAIR = re.compile(
    r"(?:(?P<ident>[A-Za-z_$][\w$]*)|\"(?P<dq>[^\"\n]+)\"|'(?P<sq>[^'\n]+)')"
    r"\s*:\s*"
    r"(?P<value>\"[^\"\n]*\"|'[^'\n]*'|`[^`]*`|[^,}\n]+)"
)

RAW_TEXT_BLOCK = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
DOUBLE_BRACE_EXPRESSION = re.compile(r"\{\{.*?\}\}", re.DOTALL)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


@dataclass(frozen=True)
class TemplateRegion:
    """CSS text found inside a tagged template literal.

    ``text`` is the literal body with every ``${...}`` substitution masked
    to the same length. ``origin`` is the parent position of ``text[0]``.
    """

    tag: str
    text: str
    origin: Position
    offset: int


@dataclass(frozen=True)
class ObjectDeclaration:
    """One ``key: value`` pair of a style object, key already kebab-cased."""

    property: str
    value: str
    range: Range  # Span of the key in the parent document
    source: str  # "css prop", "style prop", "css()"


def to_kebab_case(name: str) -> str:
    """``backgroundColor`` -> ``background-color``; vendor ``WebkitX`` -> ``-webkit-x``."""
    if name.startswith("--") or "-" in name:
        return name.lower()
    kebab = _CAMEL_BOUNDARY.sub(r"-\1", name).lower()
    if name[:1].isupper():
        kebab = "-" + kebab
    return kebab


def mask_span(text: str) -> str:
    """Same-length placeholder that keeps line breaks."""
    return "".join(ch if ch in "\r\n" else MASK_CHAR for ch in text)


def _skip_string(text: str, index: int, quote: str) -> int:
    """Index of the closing quote of a string starting at ``index``."""
    i = index + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote or ch == "\n":
            return i
        i += 1
    return len(text)


def _skip_expression(text: str, index: int) -> int | None:
    """Index of the ``}`` closing a ``${`` substitution whose body starts at ``index``."""
    depth = 0
    i = index
    while i < len(text):
        ch = text[i]
        if ch in "\"'":
            i = _skip_string(text, i, ch)
        elif ch == "`":
            scanned = scan_template(text, i + 1)
            if scanned is None:
                return None
            i = scanned[0]
        elif ch == "{":
            depth += 1
        elif ch == "}":
            if depth == 0:
                return i
            depth -= 1
        i += 1
    return None


def scan_template(text: str, start: int) -> tuple[int, list[tuple[int, int]]] | None:
    """Scan a template literal body.

    Args:
        text: Script text
        start: Index just after the opening backtick

    Returns:
        ``(closing_backtick_index, substitution_spans)`` or None when the
        literal is unterminated. Spans are ``[start, end)`` over ``${...}``.
    """
    substitutions: list[tuple[int, int]] = []
    i = start
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "`":
            return i, substitutions
        if ch == "$" and text.startswith("{", i + 1):
            end = _skip_expression(text, i + 2)
            if end is None:
                return None
            substitutions.append((i, end + 1))
            i = end + 1
            continue
        i += 1
    return None


def _skip_balanced(text: str, index: int, open_char: str, close_char: str) -> int | None:
    """Index just past the bracket closing the one opened before ``index``."""
    depth = 1
    i = index
    while i < len(text):
        ch = text[i]
        if ch in "\"'":
            i = _skip_string(text, i, ch)
        elif ch == "`":
            scanned = scan_template(text, i + 1)
            if scanned is None:
                return None
            i = scanned[0]
        elif ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return None


def find_template_regions(source: SourceText) -> list[TemplateRegion]:
    """Find CSS tagged template literals in script text."""
    text = source.text
    regions: list[TemplateRegion] = []
    position = 0
    while True:
        match = TEMPLATE_TAG.search(text, position)
        if match is None:
            break
        position = match.end()
        cursor = match.end()

        attrs = ATTRS_CALL.match(text, cursor)
        if attrs is not None:
            after = _skip_balanced(text, attrs.end(), "(", ")")
            if after is None:
                continue
            cursor = after

        while cursor < len(text) and text[cursor] in " \t\r\n":
            cursor += 1
        if not text.startswith("`", cursor):
            continue

        body_start = cursor + 1
        scanned = scan_template(text, body_start)
        if scanned is None:
            continue
        body_end, substitutions = scanned

        body = text[body_start:body_end]
        if substitutions:
            chars = list(body)
            for sub_start, sub_end in substitutions:
                rel_start, rel_end = sub_start - body_start, sub_end - body_start
                chars[rel_start:rel_end] = mask_span(body[rel_start:rel_end])
            body = "".join(chars)

        tag = re.sub(r"\s+", "", match.group(0))
        regions.append(
            TemplateRegion(
                tag=tag,
                text=body,
                origin=source.position_at(body_start),
                offset=body_start,
            )
        )
        position = body_end + 1
    return regions


def find_object_declarations(source: SourceText) -> list[ObjectDeclaration]:
    """Find declarations in ``css={{}}``, ``style={{}}`` and ``css({})`` objects.

    Only the top level of each object is read; nested selector objects are
    not expanded.
    """
    text = source.text
    declarations: list[ObjectDeclaration] = []
    for match in OBJECT_STYLE_START.finditer(text):
        if match.group(1):
            origin = f"{match.group(1)} prop"
        else:
            origin = "css()"
        body_start = match.end()
        body_end = _skip_balanced(text, body_start, "{", "}")
        if body_end is None:
            continue
        body = text[body_start : body_end - 1]

        for pair in OBJECT_PAIR.finditer(body):
            # Skip pairs inside nested objects
            depth = body.count("{", 0, pair.start()) - body.count("}", 0, pair.start())
            if depth > 0:
                continue
            key_group = next(g for g in ("ident", "dq", "sq") if pair.group(g) is not None)
            key = pair.group(key_group)
            key_start = body_start + pair.start(key_group)
            value = pair.group("value").strip().strip("\"'`")
            declarations.append(
                ObjectDeclaration(
                    property=to_kebab_case(key),
                    value=value,
                    range=source.range_at(key_start, key_start + len(key)),
                    source=origin,
                )
            )
    return declarations


def _mask_outside_raw_text(text: str, pattern: re.Pattern[str]) -> str:
    pieces: list[str] = []
    cursor = 0
    for block in RAW_TEXT_BLOCK.finditer(text):
        segment = text[cursor : block.start()]
        pieces.append(pattern.sub(lambda m: mask_span(m.group(0)), segment))
        pieces.append(block.group(0))
        cursor = block.end()
    pieces.append(pattern.sub(lambda m: mask_span(m.group(0)), text[cursor:]))
    return "".join(pieces)


def _mask_single_braces(segment: str) -> str:
    # Svelte blocks and expressions, braces balanced
    out = list(segment)
    i = 0
    while i < len(segment):
        if segment[i] == "{":
            end = _skip_balanced(segment, i + 1, "{", "}")
            if end is None:
                break
            out[i:end] = mask_span(segment[i:end])
            i = end
            continue
        i += 1
    return "".join(out)


def mask_template_expressions(text: str, language_id: str) -> str:
    """Mask framework template expressions outside ``<script>``/``<style>``.

    Vue and Angular interpolate with ``{{ }}``; Svelte uses single braces
    for expressions, attribute values and control blocks. Other languages
    are returned unchanged.
    """
    language_id = language_id.lower()
    if language_id in ("vue", "angular"):
        return _mask_outside_raw_text(text, DOUBLE_BRACE_EXPRESSION)
    if language_id == "svelte":
        pieces: list[str] = []
        cursor = 0
        for block in RAW_TEXT_BLOCK.finditer(text):
            pieces.append(_mask_single_braces(text[cursor : block.start()]))
            pieces.append(block.group(0))
            cursor = block.end()
        pieces.append(_mask_single_braces(text[cursor:]))
        return "".join(pieces)
    return text
