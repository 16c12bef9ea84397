"""Offset and position translation.

All conversions between character offsets, tree-sitter byte offsets and
zero-based line/character positions go through this module. Embedded
regions (``<style>`` blocks, template literals, ``style`` attributes) are
analyzed in their own coordinate space and mapped back with
``translate_range``.
"""

from __future__ import annotations

from bisect import bisect_right

from ..models.feature import Position, Range


def compute_line_starts(text: str) -> tuple[int, ...]:
    """Character offset of the first character of every line."""
    starts = [0]
    index = text.find("\n")
    while index != -1:
        starts.append(index + 1)
        index = text.find("\n", index + 1)
    return tuple(starts)


def offset_to_position(line_starts: tuple[int, ...], offset: int) -> Position:
    """Convert a character offset to a zero-based line/character position.

    Offsets past either end are clamped to the document bounds.
    """
    offset = max(offset, 0)
    line = bisect_right(line_starts, offset) - 1
    return Position(line=line, character=offset - line_starts[line])


def translate_position(position: Position, origin: Position) -> Position:
    """Map a position from an embedded region into its parent document.

    ``origin`` is where the region's first character sits in the parent.
    Only positions on the region's first line inherit the origin column;
    later lines start at column zero in both spaces. A negative origin
    column compensates for a synthetic prefix added before parsing.
    """
    if position.line == 0:
        return Position(line=origin.line, character=origin.character + position.character)
    return Position(line=origin.line + position.line, character=position.character)


def translate_range(range_: Range, origin: Position) -> Range:
    """Map a range from an embedded region into its parent document."""
    return Range(
        start=translate_position(range_.start, origin),
        end=translate_position(range_.end, origin),
    )


class SourceText:
    """Source text with the lookup tables the analyzers need.

    tree-sitter reports UTF-8 byte offsets; detections report character
    positions. For pure ASCII text the two coincide and no table is built.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.data = text.encode("utf-8")
        self.line_starts = compute_line_starts(text)
        self._char_at_byte: list[int] | None = None
        if len(self.data) != len(text):
            self._char_at_byte = self._build_byte_table(text, len(self.data))

    @staticmethod
    def _build_byte_table(text: str, size: int) -> list[int]:
        # Bytes inside a multi-byte sequence map to the character they belong to
        table = [0] * (size + 1)
        byte = 0
        for index, char in enumerate(text):
            width = len(char.encode("utf-8"))
            for k in range(width):
                table[byte + k] = index
            byte += width
        table[size] = len(text)
        return table

    def __len__(self) -> int:
        return len(self.text)

    def char_offset(self, byte_offset: int) -> int:
        """Convert a UTF-8 byte offset to a character offset."""
        if self._char_at_byte is None:
            return min(max(byte_offset, 0), len(self.text))
        byte_offset = min(max(byte_offset, 0), len(self.data))
        return self._char_at_byte[byte_offset]

    def position_at(self, offset: int) -> Position:
        """Position of a character offset."""
        return offset_to_position(self.line_starts, min(offset, len(self.text)))

    def range_at(self, start: int, end: int) -> Range:
        """Range covering character offsets ``[start, end)``."""
        return Range(start=self.position_at(start), end=self.position_at(end))

    def byte_range(self, start_byte: int, end_byte: int) -> Range:
        """Range covering UTF-8 byte offsets ``[start_byte, end_byte)``."""
        return self.range_at(self.char_offset(start_byte), self.char_offset(end_byte))

    def node_range(self, node) -> Range:
        """Range of a tree-sitter node."""
        return self.byte_range(node.start_byte, node.end_byte)

    def node_text(self, node) -> str:
        """Text of a tree-sitter node."""
        return self.text[self.char_offset(node.start_byte) : self.char_offset(node.end_byte)]

    def node_offset(self, node) -> int:
        """Character offset where a tree-sitter node starts."""
        return self.char_offset(node.start_byte)
