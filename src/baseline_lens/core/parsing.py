"""tree-sitter parsing with an explicit success/failure result.

``parse`` never raises. A tree whose root reports syntax errors is a
``ParseFailure`` carrying the location of the first error, so callers can
choose between the structural walk and the fallback analyzer without
exception handling.

Callers may pass a ``recover`` check instead. When it accepts the text, an
error-recovered tree is returned as a ``ParseSuccess`` whose
``error_spans`` mark the regions the grammar could not structure. CSS
uses this for syntax newer than the grammar and for preprocessor dialects,
HTML for every document, since markup never fails to parse.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from functools import cache

import structlog
import tree_sitter
import tree_sitter_css
import tree_sitter_html
import tree_sitter_javascript
import tree_sitter_typescript

from .positions import SourceText

log = structlog.get_logger()


class Grammar(StrEnum):
    """tree-sitter grammars used by the analyzers."""

    CSS = "css"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    TSX = "tsx"
    HTML = "html"


# Language id -> grammar for script content
SCRIPT_GRAMMARS: dict[str, Grammar] = {
    "javascript": Grammar.JAVASCRIPT,
    "javascriptreact": Grammar.JAVASCRIPT,
    "typescript": Grammar.TYPESCRIPT,
    "typescriptreact": Grammar.TSX,
}


@cache
def get_language(grammar: Grammar) -> tree_sitter.Language:
    """Return the tree-sitter Language object for a grammar."""
    if grammar == Grammar.CSS:
        return tree_sitter.Language(tree_sitter_css.language())
    if grammar == Grammar.HTML:
        return tree_sitter.Language(tree_sitter_html.language())
    if grammar == Grammar.TYPESCRIPT:
        return tree_sitter.Language(tree_sitter_typescript.language_typescript())
    if grammar == Grammar.TSX:
        return tree_sitter.Language(tree_sitter_typescript.language_tsx())
    return tree_sitter.Language(tree_sitter_javascript.language())


@dataclass(frozen=True)
class ParseSuccess:
    """A usable syntax tree.

    ``error_spans`` holds the character offsets of the outermost ERROR
    subtrees of a recovered tree, in document order. It is empty for a
    clean parse.
    """

    tree: tree_sitter.Tree
    source: SourceText
    error_spans: tuple[tuple[int, int], ...] = ()

    @property
    def root(self) -> tree_sitter.Node:
        return self.tree.root_node

    @property
    def recovered(self) -> bool:
        return bool(self.error_spans)


@dataclass(frozen=True)
class ParseFailure:
    """Structural parsing did not produce a usable tree.

    ``line`` and ``column`` are one-based, matching editor error reporting.
    """

    message: str
    line: int | None = None
    column: int | None = None


ParseResult = ParseSuccess | ParseFailure


def find_first_error(root: tree_sitter.Node) -> tree_sitter.Node | None:
    """Return the first ERROR or missing node in document order."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        if node.has_error:
            # Reverse so the leftmost child is visited first
            stack.extend(reversed(node.children))
    return None


def find_error_nodes(root: tree_sitter.Node) -> list[tree_sitter.Node]:
    """Outermost ERROR nodes in document order. Missing nodes are zero-width and skipped."""
    nodes: list[tree_sitter.Node] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR":
            nodes.append(node)
        elif node.has_error:
            stack.extend(reversed(node.children))
    return nodes


_CSS_TOKEN = (
    r"/\*.*?\*/"
    r"|\"(?:[^\"\\\n]|\\.)*\""
    r"|'(?:[^'\\\n]|\\.)*'"
    r"|\\."
    r"|(?P<open>[{(\[])"
    r"|(?P<close>[})\]])"
    r"|(?P<unterminated>/\*|[\"'])"
)
CSS_TOKENS = re.compile(_CSS_TOKEN, re.DOTALL)
# ``//`` after a colon is a URL scheme, not a comment
CSS_TOKENS_WITH_LINE_COMMENTS = re.compile(r"(?<!:)//[^\n]*|" + _CSS_TOKEN, re.DOTALL)

_CLOSERS = {"{": "}", "(": ")", "[": "]"}


def brackets_balanced(text: str, line_comments: bool = False) -> bool:
    """Whether brackets pair up and every string and comment is terminated.

    Strings, comments and backslash escapes are skipped, so ``content: "}"``
    and ``.w-1\\/2`` do not count.

    Args:
        text: Stylesheet text
        line_comments: Treat ``//`` as a line comment (SCSS, Less, Stylus)
    """
    pattern = CSS_TOKENS_WITH_LINE_COMMENTS if line_comments else CSS_TOKENS
    expected: list[str] = []
    for match in pattern.finditer(text):
        if match.group("open"):
            expected.append(_CLOSERS[match.group("open")])
        elif match.group("close"):
            if not expected or expected.pop() != match.group("close"):
                return False
        elif match.group("unterminated"):
            return False
    return not expected


def parse(
    source: SourceText,
    grammar: Grammar,
    recover: Callable[[str], bool] | None = None,
) -> ParseResult:
    """Parse source text with the given grammar.

    Args:
        source: Text to parse
        grammar: Grammar to parse with
        recover: Called with the text when the tree has errors; returning True
            keeps the error-recovered tree

    Returns:
        ParseSuccess with the tree, or ParseFailure describing the first error
    """
    try:
        # A parser per call keeps concurrent analyses on worker threads independent
        parser = tree_sitter.Parser(get_language(grammar))
        tree = parser.parse(source.data)
    except (ValueError, RuntimeError) as e:
        log.warning("tree_sitter_parse_error", grammar=grammar.value, error=str(e))
        return ParseFailure(message=f"{grammar.value} parser error: {e}")

    root = tree.root_node
    if not root.has_error:
        return ParseSuccess(tree=tree, source=source)

    if recover is not None and recover(source.text):
        spans = tuple(
            (source.node_offset(node), source.char_offset(node.end_byte))
            for node in find_error_nodes(root)
        )
        return ParseSuccess(tree=tree, source=source, error_spans=spans)

    error_node = find_first_error(root)
    if error_node is None:
        return ParseFailure(message=f"Invalid {grammar.value} syntax")

    position = source.position_at(source.node_offset(error_node))
    line = position.line + 1
    column = position.character + 1
    what = f"missing {error_node.type}" if error_node.is_missing else "unexpected syntax"
    return ParseFailure(
        message=f"Invalid {grammar.value} syntax ({what}) at line {line} column {column}",
        line=line,
        column=column,
    )
