"""Tests for embedded-region extraction."""

import pytest

from baseline_lens.core.embedded import (
    find_object_declarations,
    find_template_regions,
    mask_span,
    mask_template_expressions,
    scan_template,
    to_kebab_case,
)
from baseline_lens.core.positions import SourceText
from baseline_lens.models.feature import Position


class TestKebabCase:
    """Tests for to_kebab_case."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("display", "display"),
            ("backgroundColor", "background-color"),
            ("gridTemplateColumns", "grid-template-columns"),
            ("WebkitLineClamp", "-webkit-line-clamp"),
            ("--brand", "--brand"),
            ("aspect-ratio", "aspect-ratio"),
        ],
    )
    def test_conversion(self, name: str, expected: str) -> None:
        """Test camelCase style keys become CSS property names."""
        assert to_kebab_case(name) == expected


class TestTemplates:
    """Tests for template literal scanning."""

    def test_mask_span_keeps_line_breaks(self) -> None:
        """Test masking preserves length and newlines."""
        assert mask_span("${a\n}") == "___\n_"

    def test_scan_template_nested(self) -> None:
        """Test substitutions containing braces and nested templates."""
        text = "`a ${ {x: `y${z}`}.x } b`"
        end, subs = scan_template(text, 1)
        assert end == len(text) - 1
        assert len(subs) == 1

    def test_scan_template_unterminated(self) -> None:
        """Test an unterminated literal returns None."""
        assert scan_template("`abc", 1) is None

    def test_find_regions(self) -> None:
        """Test tagged templates are found with their body origin."""
        source = SourceText("const A = styled.div`\n  gap: 1px;\n`;\nconst B = css`color: red;`;")
        regions = find_template_regions(source)

        assert [r.tag for r in regions] == ["styled.div", "css"]
        assert regions[0].origin == Position(0, 21)
        assert regions[0].text == "\n  gap: 1px;\n"
        assert regions[1].origin == Position(3, 14)

    def test_substitutions_masked_same_length(self) -> None:
        """Test substitutions are masked without shifting offsets."""
        source = SourceText("css`color: ${c}; gap: 0;`")
        region = find_template_regions(source)[0]
        assert region.text == "color: ____; gap: 0;"

    def test_styled_call_and_attrs(self) -> None:
        """Test styled(Component) and .attrs() forms."""
        source = SourceText(
            "const A = styled(Link)`gap: 0;`;\n"
            "const B = styled.input.attrs({ type: 'text' })`gap: 1px;`;"
        )
        regions = find_template_regions(source)
        assert [r.tag for r in regions] == ["styled(Link)", "styled.input"]

    def test_untagged_template_ignored(self) -> None:
        """Test plain template literals are not CSS regions."""
        assert find_template_regions(SourceText("const s = `display: flex`;")) == []

    def test_member_named_css_ignored(self) -> None:
        """Test a property access such as theme.css is not a tag."""
        assert find_template_regions(SourceText("theme.css`gap: 0`")) == []


class TestObjectDeclarations:
    """Tests for style object extraction."""

    def test_style_prop(self) -> None:
        """Test JSX style objects are read at the top level."""
        source = SourceText("<a style={{ backgroundColor: 'red', gap: 4 }} />")
        declarations = find_object_declarations(source)

        assert [(d.property, d.value) for d in declarations] == [
            ("background-color", "red"),
            ("gap", "4"),
        ]
        assert declarations[0].source == "style prop"
        assert declarations[0].range.start == Position(0, 12)

    def test_css_call(self) -> None:
        """Test emotion css({}) objects."""
        declarations = find_object_declarations(SourceText("css({ display: 'grid' })"))
        assert [d.property for d in declarations] == ["display"]
        assert declarations[0].source == "css()"

    def test_nested_objects_skipped(self) -> None:
        """Test declarations inside nested selector objects are ignored."""
        source = SourceText("<a css={{ gap: 0, '&:hover': { display: 'grid' } }} />")
        declarations = find_object_declarations(source)
        assert "display" not in [d.property for d in declarations]
        assert declarations[0].property == "gap"


class TestMaskTemplateExpressions:
    """Tests for framework template masking."""

    def test_vue_double_braces(self) -> None:
        """Test Vue interpolations are masked."""
        text = "<p>{{ a?.b }}</p>"
        masked = mask_template_expressions(text, "vue")
        assert masked == "<p>" + "_" * 10 + "</p>"
        assert len(masked) == len(text)

    def test_script_blocks_untouched(self) -> None:
        """Test braces inside script and style blocks are kept."""
        text = "<p>{{ x }}</p><script>const o = {{}};</script>"
        masked = mask_template_expressions(text, "angular")
        assert masked.endswith("<script>const o = {{}};</script>")

    def test_svelte_single_braces(self) -> None:
        """Test Svelte blocks and nested braces are masked."""
        text = "{#each items as { id }}\n<li>{id}</li>\n{/each}"
        masked = mask_template_expressions(text, "svelte")
        assert "{" not in masked
        assert masked.count("\n") == 2
        assert len(masked) == len(text)

    def test_html_unchanged(self) -> None:
        """Test plain HTML is returned as is."""
        text = "<p>{{ x }}</p>"
        assert mask_template_expressions(text, "html") == text
