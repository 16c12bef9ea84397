"""JavaScript and TypeScript feature detection.

Walks tree-sitter trees (JavaScript with JSX, TypeScript, TSX) for three
kinds of signal:

- Web API and built-in references: global identifiers (``fetch``,
  ``IntersectionObserver``), dotted member paths (``navigator.share``,
  ``Object.fromEntries``) and prototype method calls (``.flatMap()``)
- Modern syntax: optional chaining, nullish coalescing, private and public
  class fields, logical assignment, top-level await, dynamic ``import()``
  and the rest of the ES2015+ syntax table
"""

from __future__ import annotations

from dataclasses import replace

import structlog
import tree_sitter

from ..interfaces.analyzer import AnalysisCheckpoint
from ..models.analysis import LANGUAGE_FAMILIES, DocumentMeta, LanguageFamily
from ..models.feature import DetectedFeature, FeatureType, Position, Range
from ..utils.logging import LogEventNames
from . import signatures as sig
from .base_analyzer import BaseAnalyzer, walk_tree
from .parsing import SCRIPT_GRAMMARS, Grammar, ParseFailure, ParseSuccess, parse
from .positions import SourceText, translate_range

log = structlog.get_logger()

FUNCTION_TYPES = frozenset(
    {
        "function_declaration",
        "function_expression",
        "function",
        "arrow_function",
        "method_definition",
        "generator_function_declaration",
        "generator_function",
    }
)
GENERATOR_TYPES = frozenset({"generator_function_declaration", "generator_function"})
FIELD_TYPES = frozenset({"field_definition", "public_field_definition"})
LOGICAL_ASSIGNMENT_OPERATORS = frozenset({"&&=", "||=", "??="})
MODULE_TYPES = frozenset({"import_statement", "export_statement"})

# Owners whose member paths name Web APIs rather than language built-ins
GLOBAL_OWNERS = frozenset({"window", "globalThis", "self"})


def _child_of_type(node: tree_sitter.Node, *types: str) -> tree_sitter.Node | None:
    for child in node.children:
        if child.type in types:
            return child
    return None


def _operator(node: tree_sitter.Node) -> tree_sitter.Node | None:
    operator = node.child_by_field_name("operator")
    if operator is not None:
        return operator
    # Binary expressions keep the operator as the middle anonymous child
    for child in node.children:
        if not child.is_named:
            return child
    return None


def _inside_function(node: tree_sitter.Node) -> bool:
    parent = node.parent
    while parent is not None:
        if parent.type in FUNCTION_TYPES or parent.type == "class_static_block":
            return True
        parent = parent.parent
    return False


class JavaScriptAnalyzer(BaseAnalyzer):
    """Detects JavaScript APIs, built-ins and syntax.

    Example:
        analyzer = JavaScriptAnalyzer(service)
        report = analyzer.scan("const x = a?.b ?? c;", DocumentMeta("javascript", "a.js"))
        [f.id for f in report.features]  # ["optional-chaining", "nullish-coalescing"]
    """

    family = LanguageFamily.JAVASCRIPT
    feature_type = FeatureType.JAVASCRIPT
    languages = frozenset(
        language
        for language, family in LANGUAGE_FAMILIES.items()
        if family == LanguageFamily.JAVASCRIPT
    )

    def grammar_for(self, meta: DocumentMeta) -> Grammar:
        return SCRIPT_GRAMMARS.get(meta.language_id.lower(), Grammar.JAVASCRIPT)

    def walk(
        self,
        parsed: ParseSuccess,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None,
    ) -> list[DetectedFeature]:
        return self.walk_node(parsed.root, parsed.source, task)

    def walk_node(
        self,
        root: tree_sitter.Node,
        source: SourceText,
        task: AnalysisCheckpoint | None = None,
    ) -> list[DetectedFeature]:
        """Collect detections below a node; used for embedded scripts too."""
        features: list[DetectedFeature] = []
        for node in walk_tree(root, task):
            if not node.is_named:
                continue
            kind = node.type
            if kind == "identifier":
                feature = self._identifier(node, source)
                if feature is not None:
                    features.append(feature)
            elif kind == "member_expression":
                features.extend(self._member(node, source))
            else:
                feature = self._syntax(node, source)
                if feature is not None:
                    features.append(feature)
        return features

    # ------------------------------------------------------------------
    # APIs and built-ins
    # ------------------------------------------------------------------

    def _api_feature(
        self, name: str, candidates: list[str], range_: Range
    ) -> DetectedFeature | None:
        hit = self._service.resolve_first(candidates)
        if hit is not None:
            feature_id, key = hit
            is_builtin = key.startswith("javascript.")
        elif name in sig.BUILTINS:
            feature_id, is_builtin = sig.BUILTINS[name], True
        elif name in sig.WEB_APIS:
            feature_id, is_builtin = sig.WEB_APIS[name], False
        else:
            return None
        context = f"Built-in: {name}" if is_builtin else f"Web API: {name}"
        return self.make_feature(feature_id, name, range_, context)

    def _identifier(self, node: tree_sitter.Node, source: SourceText) -> DetectedFeature | None:
        name = source.node_text(node)
        parent = node.parent
        curated = name in sig.WEB_APIS or name in sig.BUILTINS
        # Unlisted names are only looked up when used as a callee or constructor
        is_callee = parent is not None and (
            parent.type == "new_expression"
            or (parent.type == "call_expression" and parent.child_by_field_name("function") == node)
        )
        if not curated and not is_callee:
            return None
        # ``Object`` in ``Object.fromEntries`` is reported through the member path
        if parent is not None and parent.type == "member_expression" and not curated:
            return None
        return self._api_feature(name, sig.js_api_keys(name), source.node_range(node))

    def _member_path(self, node: tree_sitter.Node, source: SourceText) -> str | None:
        """Dotted path of a chain of plain identifiers, e.g. ``navigator.clipboard``."""
        obj = node.child_by_field_name("object")
        prop = node.child_by_field_name("property")
        if obj is None or prop is None or prop.type != "property_identifier":
            return None
        if _child_of_type(node, "optional_chain") is not None:
            return None
        if obj.type == "identifier":
            head = source.node_text(obj)
        elif obj.type == "member_expression":
            head = self._member_path(obj, source)
            if head is None:
                return None
        else:
            return None
        return f"{head}.{source.node_text(prop)}"

    def _member(self, node: tree_sitter.Node, source: SourceText) -> list[DetectedFeature]:
        features: list[DetectedFeature] = []
        optional = self._syntax(node, source)
        if optional is not None:
            features.append(optional)

        path = self._member_path(node, source)
        if path is not None:
            head, _, rest = path.partition(".")
            lookup = rest if head in GLOBAL_OWNERS and rest else path
            feature = self._api_feature(lookup, sig.js_member_keys(path), source.node_range(node))
            if feature is not None:
                features.append(feature)
                return features

        prototype = self._prototype_call(node, source)
        if prototype is not None:
            features.append(prototype)
        return features

    def _prototype_call(self, node: tree_sitter.Node, source: SourceText) -> DetectedFeature | None:
        parent = node.parent
        if parent is None or parent.type != "call_expression":
            return None
        if parent.child_by_field_name("function") != node:
            return None
        prop = node.child_by_field_name("property")
        if prop is None:
            return None
        method = source.node_text(prop)
        canonical = sig.PROTOTYPE_METHODS.get(method)
        if canonical is None:
            return None
        feature_id = self.resolve(sig.js_prototype_keys(canonical), sig.BUILTINS[canonical])
        if feature_id is None:
            return None
        return self.make_feature(
            feature_id,
            method,
            source.node_range(prop),
            f"Built-in: {canonical}",
        )

    # ------------------------------------------------------------------
    # Syntax
    # ------------------------------------------------------------------

    def _syntax_kind(
        self, node: tree_sitter.Node, source: SourceText
    ) -> tuple[str, tree_sitter.Node] | None:
        """Syntax-table kind for a node and the node whose range to report."""
        kind = node.type

        if kind in ("member_expression", "call_expression", "subscript_expression"):
            chain = _child_of_type(node, "optional_chain")
            if chain is not None:
                return "optional_chaining", chain
            if kind == "call_expression":
                function = node.child_by_field_name("function")
                if function is not None and function.type == "import":
                    return "dynamic_import", function
            return None

        if kind == "binary_expression":
            operator = _operator(node)
            if operator is not None and operator.type == "??":
                return "nullish_coalescing", operator
            if operator is not None and operator.type == "**":
                return "exponentiation", operator
            return None

        if kind == "augmented_assignment_expression":
            operator = _operator(node)
            if operator is not None and operator.type in LOGICAL_ASSIGNMENT_OPERATORS:
                return "logical_assignment", operator
            if operator is not None and operator.type == "**=":
                return "exponentiation", operator
            return None

        if kind == "private_property_identifier":
            parent = node.parent
            if parent is not None and (
                parent.type in FIELD_TYPES or parent.type == "method_definition"
            ):
                return "private_field", node
            return None

        if kind in FIELD_TYPES:
            name = node.child_by_field_name("property") or node.child_by_field_name("name")
            if name is not None and name.type != "private_property_identifier":
                return "public_field", name
            return None

        if kind == "await_expression":
            keyword = node.children[0] if node.children else node
            return ("await" if _inside_function(node) else "top_level_await"), keyword

        if kind in FUNCTION_TYPES:
            async_token = _child_of_type(node, "async")
            is_generator = kind in GENERATOR_TYPES or _child_of_type(node, "*") is not None
            if async_token is not None and is_generator:
                return "async_generator", async_token
            if is_generator:
                return "generator", _child_of_type(node, "*") or node
            if async_token is not None:
                return "async_function", async_token
            if kind == "arrow_function":
                arrow = _child_of_type(node, "=>")
                return "arrow_function", arrow or node
            return None

        if kind in ("class_declaration", "class", "abstract_class_declaration"):
            keyword = _child_of_type(node, "class")
            return "class", keyword or node

        if kind == "for_in_statement":
            of = _child_of_type(node, "of")
            if of is not None:
                return "for_of", of
            return None

        if kind in MODULE_TYPES:
            return "module", node.children[0] if node.children else node

        if kind == "class_static_block":
            return "static_block", _child_of_type(node, "static") or node

        if kind == "template_string":
            return "template_string", node

        if kind == "spread_element":
            return "spread_element", node

        if kind == "rest_pattern":
            return "rest_pattern", node

        if kind == "number":
            text = source.node_text(node)
            if text.endswith("n"):
                return "bigint_literal", node
            if "_" in text:
                return "numeric_separator", node
            return None

        return None

    def _syntax(self, node: tree_sitter.Node, source: SourceText) -> DetectedFeature | None:
        found = self._syntax_kind(node, source)
        if found is None:
            return None
        kind, anchor = found
        curated_id, display = sig.SYNTAX_FEATURES[kind]
        feature_id = self.resolve([sig.SYNTAX_COMPAT_KEYS[kind]], curated_id)
        return self.make_feature(
            feature_id or curated_id,
            display,
            source.node_range(anchor),
            f"JavaScript syntax: {display}",
        )

    # ------------------------------------------------------------------
    # Embedded scripts
    # ------------------------------------------------------------------

    def scan_region(
        self,
        text: str,
        origin: Position,
        *,
        language_id: str = "javascript",
        context: str | None = None,
        task: AnalysisCheckpoint | None = None,
        file_name: str | None = None,
    ) -> list[DetectedFeature]:
        """Analyze script text embedded in another document.

        Args:
            text: The embedded script
            origin: Parent position of ``text[0]``
            language_id: Script dialect, selects the grammar
            context: Prefix for the context string, e.g. ``"Inline JavaScript"``
            task: Cancellation checkpoint
            file_name: Parent document, for logging

        Returns:
            Detections in the parent document's coordinate space
        """
        if not text.strip():
            return []

        source = SourceText(text)
        grammar = SCRIPT_GRAMMARS.get(language_id.lower(), Grammar.JAVASCRIPT)
        result = parse(source, grammar)
        if isinstance(result, ParseFailure):
            log.debug(
                LogEventNames.EMBEDDED_REGION_FAILED,
                file_name=file_name,
                reason=result.message,
            )
            features = [
                f
                for f in self._fallback.detect(source, LanguageFamily.JAVASCRIPT)
                if f.type == FeatureType.JAVASCRIPT
            ]
        else:
            features = self.walk_node(result.root, source, task)

        mapped = []
        for feature in features:
            feature = replace(feature, range=translate_range(feature.range, origin))
            if context:
                feature = replace(feature, context=f"{context}: {feature.context}")
            mapped.append(feature)
        return mapped
