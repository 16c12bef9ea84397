"""HTML and framework template feature detection.

Walks a tree-sitter-html tree for elements, attributes and input types.
``<style>`` blocks and ``style`` attributes go to the CSS analyzer,
``<script>`` blocks to the JavaScript analyzer; their detections are
mapped back into the document.

Vue, Svelte and Angular templates are parsed after their interpolation
syntax is masked, so bindings do not read as malformed markup.

Markup never fails to parse: fragments, partials and unclosed elements are
walked as the grammar recovered them, ERROR nodes included, so embedded
blocks inside them are still dispatched.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog
import tree_sitter

from ..interfaces.analyzer import AnalysisCheckpoint
from ..models.analysis import LANGUAGE_FAMILIES, AnalyzerReport, DocumentMeta, LanguageFamily
from ..models.feature import DetectedFeature, FeatureType
from . import signatures as sig
from .base_analyzer import BaseAnalyzer, walk_tree
from .compatibility import CompatibilityDataService
from .css_analyzer import CSSAnalyzer
from .embedded import mask_template_expressions
from .errors import ErrorNormalizer
from .fallback import FallbackAnalyzer
from .js_analyzer import JavaScriptAnalyzer
from .parsing import Grammar, ParseSuccess
from .positions import SourceText

log = structlog.get_logger()

# ``type`` values of script blocks that hold JavaScript
SCRIPT_TYPES = frozenset(
    {"", "module", "text/javascript", "application/javascript", "text/babel", "text/jsx"}
)
SCRIPT_LANGS = {
    "js": "javascript",
    "javascript": "javascript",
    "jsx": "javascriptreact",
    "ts": "typescript",
    "typescript": "typescript",
    "tsx": "typescriptreact",
}


class HTMLAnalyzer(BaseAnalyzer):
    """Detects HTML features and dispatches embedded CSS and scripts.

    Example:
        analyzer = HTMLAnalyzer(service, css_analyzer=css, js_analyzer=js)
        report = analyzer.scan("<dialog></dialog>", DocumentMeta("html", "a.html"))
        report.features[0].id  # "dialog"
    """

    family = LanguageFamily.HTML
    feature_type = FeatureType.HTML
    languages = frozenset(
        language for language, family in LANGUAGE_FAMILIES.items() if family == LanguageFamily.HTML
    )

    def __init__(
        self,
        service: CompatibilityDataService,
        normalizer: ErrorNormalizer | None = None,
        fallback: FallbackAnalyzer | None = None,
        max_file_size: int = 10 * 1024 * 1024,
        css_analyzer: CSSAnalyzer | None = None,
        js_analyzer: JavaScriptAnalyzer | None = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            service: Ready compatibility data service
            normalizer: Error normalizer shared with the engine
            fallback: Degraded-mode analyzer
            max_file_size: Content above this many bytes is not analyzed
            css_analyzer: Handles ``<style>`` and ``style``; embedded CSS is skipped when None
            js_analyzer: Handles ``<script>``; embedded scripts are skipped when None
        """
        super().__init__(service, normalizer, fallback, max_file_size)
        self._css = css_analyzer
        self._js = js_analyzer

    def grammar_for(self, meta: DocumentMeta) -> Grammar:
        return Grammar.HTML

    def recovery_for(self, meta: DocumentMeta) -> Callable[[str], bool]:
        return _always

    def scan(
        self,
        content: str,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None = None,
    ) -> AnalyzerReport:
        # Masking keeps offsets, so ranges found in the masked text are valid
        masked = mask_template_expressions(content, meta.language_id)
        return super().scan(masked, meta, task)

    def walk(
        self,
        parsed: ParseSuccess,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None,
    ) -> list[DetectedFeature]:
        source = parsed.source
        features: list[DetectedFeature] = []
        for node in walk_tree(parsed.root, task):
            kind = node.type
            if kind in ("start_tag", "self_closing_tag"):
                features.extend(self._tag(node, source, meta, task))
            elif kind == "style_element":
                features.extend(self._style_block(node, source, meta, task))
            elif kind == "script_element":
                features.extend(self._script_block(node, source, meta, task))
        return features

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve(self, candidates: list[str], curated_id: str | None) -> str | None:
        # Markup features are only reported when the dataset knows them
        hit = self._service.resolve_first(candidates)
        if hit is not None:
            return hit[0]
        if curated_id is not None and self._service.has_feature(curated_id):
            return curated_id
        return None

    # ------------------------------------------------------------------
    # Elements and attributes
    # ------------------------------------------------------------------

    def _tag(
        self,
        node: tree_sitter.Node,
        source: SourceText,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None,
    ) -> list[DetectedFeature]:
        name_node = next((c for c in node.named_children if c.type == "tag_name"), None)
        if name_node is None:
            return []
        tag = source.node_text(name_node).lower()

        features: list[DetectedFeature] = []
        curated = sig.CUSTOM_ELEMENTS_ID if "-" in tag else sig.HTML_ELEMENTS.get(tag)
        feature_id = self._resolve(sig.html_element_keys(tag), curated)
        if feature_id is not None:
            features.append(
                self.make_feature(
                    feature_id, tag, source.node_range(name_node), f"HTML element: <{tag}>"
                )
            )

        for attribute in node.named_children:
            if attribute.type != "attribute":
                continue
            features.extend(self._attribute(attribute, tag, source, meta, task))
        return features

    def _attribute(
        self,
        node: tree_sitter.Node,
        tag: str,
        source: SourceText,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None,
    ) -> list[DetectedFeature]:
        name_node = next((c for c in node.named_children if c.type == "attribute_name"), None)
        if name_node is None:
            return []
        name = source.node_text(name_node).lower()
        value_node = _attribute_value(node)

        if name == "style":
            if value_node is None or self._css is None:
                return []
            return self._css.scan_declarations(
                source.node_text(value_node),
                source.node_range(value_node).start,
                context="Style attribute",
                task=task,
                file_name=meta.file_name,
            )

        features: list[DetectedFeature] = []
        if name == "role" or name.startswith("aria-"):
            feature_id = self._resolve(sig.html_attribute_keys(tag, name), sig.ARIA_ID)
        else:
            feature_id = self._resolve(
                sig.html_attribute_keys(tag, name), sig.HTML_ATTRIBUTES.get(name)
            )
        if feature_id is not None:
            features.append(
                self.make_feature(
                    feature_id, name, source.node_range(name_node), f"HTML attribute: {name}"
                )
            )

        if tag == "input" and name == "type" and value_node is not None:
            input_type = source.node_text(value_node).strip().lower()
            feature_id = self._resolve(
                sig.html_input_type_keys(input_type), sig.HTML_INPUT_TYPES.get(input_type)
            )
            if feature_id is not None:
                features.append(
                    self.make_feature(
                        feature_id,
                        input_type,
                        source.node_range(value_node),
                        f"Input type: {input_type}",
                    )
                )
        return features

    # ------------------------------------------------------------------
    # Embedded blocks
    # ------------------------------------------------------------------

    def _style_block(
        self,
        node: tree_sitter.Node,
        source: SourceText,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None,
    ) -> list[DetectedFeature]:
        raw = next((c for c in node.named_children if c.type == "raw_text"), None)
        if raw is None or self._css is None:
            return []
        return self._css.scan_region(
            source.node_text(raw),
            source.node_range(raw).start,
            context="Inline CSS",
            task=task,
            file_name=meta.file_name,
        )

    def _script_block(
        self,
        node: tree_sitter.Node,
        source: SourceText,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None,
    ) -> list[DetectedFeature]:
        raw = next((c for c in node.named_children if c.type == "raw_text"), None)
        if raw is None or self._js is None:
            return []

        attributes = _start_tag_attributes(node, source)
        script_type = attributes.get("type", "").lower()
        if script_type not in SCRIPT_TYPES:
            # JSON, templates, importmaps and the like
            log.debug("script_block_skipped", file_name=meta.file_name, script_type=script_type)
            return []
        language_id = SCRIPT_LANGS.get(attributes.get("lang", "").lower(), "javascript")

        text = source.node_text(raw)
        origin = source.node_range(raw).start
        features = self._js.scan_region(
            text,
            origin,
            language_id=language_id,
            context="Inline JavaScript",
            task=task,
            file_name=meta.file_name,
        )
        if self._css is not None:
            features.extend(
                self._css.scan_embedded_css_in_js(
                    text,
                    origin,
                    context="Inline JavaScript",
                    task=task,
                    file_name=meta.file_name,
                )
            )
        return features


def _always(text: str) -> bool:
    return True


def _attribute_value(node: tree_sitter.Node) -> tree_sitter.Node | None:
    for child in node.named_children:
        if child.type == "attribute_value":
            return child
        if child.type == "quoted_attribute_value":
            return next((c for c in child.named_children if c.type == "attribute_value"), None)
    return None


def _start_tag_attributes(element: tree_sitter.Node, source: SourceText) -> dict[str, str]:
    start_tag = next((c for c in element.named_children if c.type == "start_tag"), None)
    if start_tag is None:
        return {}
    attributes: dict[str, str] = {}
    for attribute in start_tag.named_children:
        if attribute.type != "attribute":
            continue
        name_node = next((c for c in attribute.named_children if c.type == "attribute_name"), None)
        if name_node is None:
            continue
        value_node = _attribute_value(attribute)
        value = source.node_text(value_node) if value_node is not None else ""
        attributes[source.node_text(name_node).lower()] = value
    return attributes
