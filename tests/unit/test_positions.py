"""Tests for offset and position translation."""

from baseline_lens.core.positions import (
    SourceText,
    compute_line_starts,
    offset_to_position,
    translate_position,
    translate_range,
)
from baseline_lens.models.feature import Position, Range


class TestLineStarts:
    """Tests for compute_line_starts and offset_to_position."""

    def test_single_line(self) -> None:
        """Test text without newlines has one line start."""
        assert compute_line_starts("abc") == (0,)

    def test_multiple_lines(self) -> None:
        """Test each newline starts a new line."""
        assert compute_line_starts("a\nbc\n") == (0, 2, 5)

    def test_offset_to_position(self) -> None:
        """Test offsets map to zero-based line and character."""
        starts = compute_line_starts("a\nbc\nd")
        assert offset_to_position(starts, 0) == Position(0, 0)
        assert offset_to_position(starts, 3) == Position(1, 1)
        assert offset_to_position(starts, 5) == Position(2, 0)

    def test_negative_offset_clamped(self) -> None:
        """Test negative offsets clamp to the start of the document."""
        assert offset_to_position((0,), -4) == Position(0, 0)


class TestTranslate:
    """Tests for mapping embedded positions into the parent document."""

    def test_first_line_inherits_origin_column(self) -> None:
        """Test positions on the region's first line are shifted by the origin column."""
        origin = Position(line=3, character=10)
        assert translate_position(Position(0, 4), origin) == Position(3, 14)

    def test_later_lines_keep_their_column(self) -> None:
        """Test positions after the first line only shift by lines."""
        origin = Position(line=3, character=10)
        assert translate_position(Position(2, 4), origin) == Position(5, 4)

    def test_negative_origin_compensates_prefix(self) -> None:
        """Test a negative origin column removes a synthetic prefix."""
        # "*{" was parsed in front of the region
        origin = Position(line=0, character=5 - 2)
        assert translate_position(Position(0, 2), origin) == Position(0, 5)

    def test_translate_range(self) -> None:
        """Test both ends of a range are translated."""
        range_ = Range(Position(0, 1), Position(1, 2))
        translated = translate_range(range_, Position(4, 6))
        assert translated == Range(Position(4, 7), Position(5, 2))


class TestSourceText:
    """Tests for SourceText byte/character conversion."""

    def test_ascii_offsets_coincide(self) -> None:
        """Test byte and character offsets are equal for ASCII text."""
        source = SourceText("a{b:c}")
        assert source.char_offset(3) == 3
        assert len(source) == 6

    def test_multibyte_offsets(self) -> None:
        """Test byte offsets after a multi-byte character map back to characters."""
        source = SourceText("é{x}")
        # "é" takes two bytes, so byte 2 is character 1
        assert source.char_offset(2) == 1
        assert source.char_offset(len(source.data)) == 4

    def test_byte_offset_inside_character(self) -> None:
        """Test a byte inside a multi-byte sequence maps to that character."""
        source = SourceText("aé")
        assert source.char_offset(2) == 1

    def test_range_at(self) -> None:
        """Test character ranges convert to positions."""
        source = SourceText("ab\ncd")
        assert source.range_at(1, 4) == Range(Position(0, 1), Position(1, 1))

    def test_position_past_end_clamped(self) -> None:
        """Test offsets past the end clamp to the last position."""
        source = SourceText("ab")
        assert source.position_at(99) == Position(0, 2)
