"""CSS feature detection.

Walks a tree-sitter-css tree for declarations, value functions, pseudo
selectors and at-rules. Each token is resolved dynamically against the
dataset's compat keys first (``css.properties.gap``); the curated tables
in ``signatures`` cover tokens the dataset does not key directly.

The same walker runs over embedded CSS: ``<style>`` blocks and ``style``
attributes in HTML, and CSS-in-JS template literals and style objects in
scripts. Embedded results are mapped back to the parent document.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import replace
from functools import partial

import structlog
import tree_sitter

from ..interfaces.analyzer import AnalysisCheckpoint
from ..models.analysis import LANGUAGE_FAMILIES, AnalyzerReport, DocumentMeta, LanguageFamily
from ..models.feature import DetectedFeature, FeatureType, Position, Range
from ..utils.logging import LogEventNames
from . import signatures as sig
from .base_analyzer import BaseAnalyzer, walk_tree
from .embedded import ObjectDeclaration, find_object_declarations, find_template_regions
from .parsing import (
    SCRIPT_GRAMMARS,
    Grammar,
    ParseFailure,
    ParseSuccess,
    brackets_balanced,
    parse,
)
from .positions import SourceText, translate_range

log = structlog.get_logger()

VENDOR_PREFIX = re.compile(r"^-(?:webkit|moz|ms|o)-")

# Template tags whose body is a whole stylesheet rather than a declaration list
STYLESHEET_TAGS = frozenset({"createGlobalStyle", "injectGlobal"})

# Dialects where ``//`` starts a comment
LINE_COMMENT_DIALECTS = frozenset({"scss", "sass", "less", "stylus"})

DECLARATIONS_PREFIX = "*{"
KEYFRAMES_PREFIX = "@keyframes _{"


def _unprefixed(name: str) -> str:
    return VENDOR_PREFIX.sub("", name)


class CSSAnalyzer(BaseAnalyzer):
    """Detects CSS features in stylesheets and CSS-in-JS.

    Example:
        analyzer = CSSAnalyzer(service)
        report = analyzer.scan(".c{display:flex}", DocumentMeta("css", "a.css"))
        report.features[0].id  # "flexbox"
    """

    family = LanguageFamily.CSS
    feature_type = FeatureType.CSS
    languages = frozenset(
        language for language, family in LANGUAGE_FAMILIES.items() if family == LanguageFamily.CSS
    ) | frozenset(SCRIPT_GRAMMARS)

    def grammar_for(self, meta: DocumentMeta) -> Grammar:
        return Grammar.CSS

    def recovery_for(self, meta: DocumentMeta) -> Callable[[str], bool]:
        # Newer syntax and dialect constructs leave ERROR nodes in otherwise
        # sound stylesheets; unbalanced input is malformed
        return partial(
            brackets_balanced, line_comments=meta.language_id in LINE_COMMENT_DIALECTS
        )

    def scan(
        self,
        content: str,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None = None,
    ) -> AnalyzerReport:
        if meta.family == LanguageFamily.JAVASCRIPT:
            return self.scan_css_in_js(content, meta, task)
        return super().scan(content, meta, task)

    def walk(
        self,
        parsed: ParseSuccess,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None,
    ) -> list[DetectedFeature]:
        return self._walk(parsed, task)

    def _walk(
        self,
        parsed: ParseSuccess,
        task: AnalysisCheckpoint | None,
    ) -> list[DetectedFeature]:
        source = parsed.source
        features: list[DetectedFeature] = []
        for node in walk_tree(parsed.root, task, skip_errors=True):
            kind = node.type
            if kind == "declaration":
                feature = self._declaration(node, source)
            elif kind == "call_expression":
                feature = self._function(node, source)
            elif kind in ("pseudo_class_selector", "pseudo_element_selector"):
                feature = self._pseudo_selector(node, source)
            elif kind == "at_rule" or kind.endswith("_statement"):
                feature = self._at_rule(node, source)
            else:
                continue
            if feature is not None:
                features.append(feature)
        if parsed.recovered:
            # Regions the grammar could not structure get pattern detection
            features.extend(
                self._fallback.detect(source, LanguageFamily.CSS, spans=parsed.error_spans)
            )
        return features

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_declaration(self, prop: str, values: list[str]) -> str | None:
        """Feature id for a declaration.

        Custom properties map to the custom-properties feature. For
        properties whose value names the feature (``display: grid``) the
        value is tried first; otherwise the property wins and values are
        only consulted when the property resolves to nothing.
        """
        prop = prop.lower()
        if prop.startswith("--"):
            return sig.CUSTOM_PROPERTIES_ID

        base = _unprefixed(prop)
        if base in sig.VALUE_DISCRIMINATED_PROPERTIES:
            feature_id = self._resolve_values(base, values)
            if feature_id is not None:
                return feature_id

        candidates = sig.css_property_keys(prop)
        if base != prop:
            candidates += sig.css_property_keys(base)
        feature_id = self.resolve(candidates, sig.CSS_PROPERTIES.get(base))
        if feature_id is not None or base in sig.VALUE_DISCRIMINATED_PROPERTIES:
            return feature_id
        return self._resolve_values(base, values)

    def _resolve_values(self, prop: str, values: list[str]) -> str | None:
        for value in values:
            value = _unprefixed(value.lower())
            curated = sig.CSS_PROPERTY_VALUES.get((prop, value))
            if curated is not None:
                return curated
            hit = self._service.resolve_first(sig.css_value_keys(prop, value))
            if hit is not None:
                return hit[0]
        return None

    # ------------------------------------------------------------------
    # Node handlers
    # ------------------------------------------------------------------

    def _declaration(self, node: tree_sitter.Node, source: SourceText) -> DetectedFeature | None:
        prop_node = next((c for c in node.named_children if c.type == "property_name"), None)
        if prop_node is None:
            return None
        prop = source.node_text(prop_node).strip()
        values = [source.node_text(c) for c in node.named_children if c.type == "plain_value"]

        feature_id = self.resolve_declaration(prop, values)
        if feature_id is None:
            return None
        return self.make_feature(
            feature_id,
            prop,
            source.node_range(prop_node),
            f"CSS property: {prop}",
        )

    def _function(self, node: tree_sitter.Node, source: SourceText) -> DetectedFeature | None:
        name_node = next((c for c in node.named_children if c.type == "function_name"), None)
        if name_node is None:
            return None
        name = source.node_text(name_node).lower()
        base = _unprefixed(name)
        feature_id = self.resolve(sig.css_function_keys(base), sig.CSS_FUNCTIONS.get(base))
        if feature_id is None:
            return None
        return self.make_feature(
            feature_id,
            name,
            source.node_range(name_node),
            f"CSS function: {name}()",
        )

    def _pseudo_selector(
        self, node: tree_sitter.Node, source: SourceText
    ) -> DetectedFeature | None:
        # selector? (":" | "::") name arguments?
        children = node.children
        for index, child in enumerate(children):
            if child.type in (":", "::") and index + 1 < len(children):
                name_node = children[index + 1]
                break
        else:
            return None

        selector = child.type + source.node_text(name_node).lower()
        feature_id = self.resolve(
            sig.css_selector_keys(selector), sig.CSS_SELECTORS.get(selector)
        )
        if feature_id is None:
            return None
        start = source.node_range(child).start
        end = source.node_range(name_node).end
        return self.make_feature(
            feature_id,
            selector,
            Range(start=start, end=end),
            f"CSS selector: {selector}",
        )

    def _at_rule(self, node: tree_sitter.Node, source: SourceText) -> DetectedFeature | None:
        if not node.children:
            return None
        keyword = node.children[0]
        text = source.node_text(keyword).lower()
        if not text.startswith("@"):
            return None
        at_rule = "@" + _unprefixed(text[1:])
        feature_id = self.resolve(sig.css_at_rule_keys(at_rule), sig.CSS_AT_RULES.get(at_rule))
        if feature_id is None:
            return None
        return self.make_feature(
            feature_id,
            text,
            source.node_range(keyword),
            f"CSS at-rule: {text}",
        )

    # ------------------------------------------------------------------
    # Embedded CSS
    # ------------------------------------------------------------------

    def scan_region(
        self,
        text: str,
        origin: Position,
        *,
        prefix: str = "",
        suffix: str = "",
        context: str | None = None,
        task: AnalysisCheckpoint | None = None,
        file_name: str | None = None,
    ) -> list[DetectedFeature]:
        """Analyze CSS embedded in another document.

        Args:
            text: The embedded CSS
            origin: Parent position of ``text[0]``
            prefix: Synthetic text parsed before ``text`` (e.g. ``*{`` for a
                bare declaration list); detections inside it are dropped
            suffix: Synthetic text parsed after ``text``
            context: Prefix for the context string, e.g. ``"CSS-in-JS"``
            task: Cancellation checkpoint
            file_name: Parent document, for logging

        Returns:
            Detections in the parent document's coordinate space
        """
        if not text.strip():
            return []

        source = SourceText(prefix + text + suffix)
        result = parse(source, Grammar.CSS, recover=brackets_balanced)
        if isinstance(result, ParseFailure):
            log.debug(
                LogEventNames.EMBEDDED_REGION_FAILED,
                file_name=file_name,
                reason=result.message,
            )
            features = self._fallback.detect(text, LanguageFamily.CSS)
            features = [f for f in features if f.type == FeatureType.CSS]
            shift = origin
        else:
            features = [
                f
                for f in self._walk(result, task)
                if f.range.start.line > 0 or f.range.start.character >= len(prefix)
            ]
            # Line 0 of the wrapped text starts ``len(prefix)`` columns early
            shift = Position(line=origin.line, character=origin.character - len(prefix))

        mapped = []
        for feature in features:
            feature = replace(feature, range=translate_range(feature.range, shift))
            if context:
                feature = replace(feature, context=f"{context}: {feature.context}")
            mapped.append(feature)
        return mapped

    def scan_declarations(
        self,
        text: str,
        origin: Position,
        *,
        context: str | None = None,
        task: AnalysisCheckpoint | None = None,
        file_name: str | None = None,
    ) -> list[DetectedFeature]:
        """Analyze a bare declaration list such as a ``style`` attribute value."""
        return self.scan_region(
            text,
            origin,
            prefix=DECLARATIONS_PREFIX,
            suffix="}",
            context=context,
            task=task,
            file_name=file_name,
        )

    def scan_css_in_js(
        self,
        content: str,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None = None,
    ) -> AnalyzerReport:
        """Find CSS-in-JS in script text and analyze it."""
        if not self.accepts(content):
            return AnalyzerReport()
        features = self._css_in_js(SourceText(content), task, meta.file_name)
        return AnalyzerReport(features=tuple(features))

    def scan_embedded_css_in_js(
        self,
        text: str,
        origin: Position,
        *,
        context: str | None = None,
        task: AnalysisCheckpoint | None = None,
        file_name: str | None = None,
    ) -> list[DetectedFeature]:
        """CSS-in-JS inside a script block that is itself embedded, e.g. ``<script>``."""
        if not text.strip():
            return []
        mapped = []
        for feature in self._css_in_js(SourceText(text), task, file_name):
            feature = replace(feature, range=translate_range(feature.range, origin))
            if context:
                feature = replace(feature, context=f"{context}: {feature.context}")
            mapped.append(feature)
        return mapped

    def _css_in_js(
        self,
        source: SourceText,
        task: AnalysisCheckpoint | None,
        file_name: str | None,
    ) -> list[DetectedFeature]:
        features: list[DetectedFeature] = []
        for region in find_template_regions(source):
            if task is not None:
                task.checkpoint()
            if region.tag in STYLESHEET_TAGS:
                prefix, suffix = "", ""
            elif region.tag == "keyframes":
                prefix, suffix = KEYFRAMES_PREFIX, "}"
            else:
                prefix, suffix = DECLARATIONS_PREFIX, "}"
            features.extend(
                self.scan_region(
                    region.text,
                    region.origin,
                    prefix=prefix,
                    suffix=suffix,
                    context="CSS-in-JS",
                    task=task,
                    file_name=file_name,
                )
            )

        for declaration in find_object_declarations(source):
            feature = self._object_declaration(declaration)
            if feature is not None:
                features.append(feature)
        return features

    def _object_declaration(self, declaration: ObjectDeclaration) -> DetectedFeature | None:
        feature_id = self.resolve_declaration(declaration.property, [declaration.value])
        if feature_id is None:
            return None
        return self.make_feature(
            feature_id,
            declaration.property,
            declaration.range,
            f"CSS-in-JS: CSS property: {declaration.property}",
        )
