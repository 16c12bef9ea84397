"""Feature signature tables.

Curated mappings from syntax tokens to dataset feature ids, plus the
builders for browser-compat-data style keys (``css.properties.gap``,
``api.ResizeObserver``) that the data service resolves dynamically.
Curated ids are consulted only after dynamic resolution misses, except for
value-discriminated CSS properties where the value decides the feature.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# CSS
# ---------------------------------------------------------------------------

CUSTOM_PROPERTIES_ID = "custom-properties"

CSS_PROPERTIES: dict[str, str] = {
    # Grid layout
    "grid": "grid",
    "grid-template": "grid",
    "grid-template-areas": "grid",
    "grid-template-columns": "grid",
    "grid-template-rows": "grid",
    "grid-area": "grid",
    "grid-column": "grid",
    "grid-row": "grid",
    "grid-auto-flow": "grid",
    "grid-gap": "grid",
    "gap": "gap",
    "row-gap": "gap",
    "column-gap": "gap",
    # Flexbox
    "flex": "flexbox",
    "flex-basis": "flexbox",
    "flex-direction": "flexbox",
    "flex-grow": "flexbox",
    "flex-shrink": "flexbox",
    "flex-wrap": "flexbox",
    "flex-flow": "flexbox",
    "order": "flexbox",
    "justify-content": "flexbox",
    "align-items": "flexbox",
    "align-content": "flexbox",
    "align-self": "flexbox",
    # Container queries
    "container": "container-queries",
    "container-type": "container-queries",
    "container-name": "container-queries",
    # Transforms
    "transform": "transforms2d",
    "transform-origin": "transforms2d",
    "transform-style": "transforms3d",
    "perspective": "transforms3d",
    "perspective-origin": "transforms3d",
    "backface-visibility": "transforms3d",
    "translate": "individual-transforms",
    "rotate": "individual-transforms",
    "scale": "individual-transforms",
    # Animations and transitions
    "animation": "animations-css",
    "animation-name": "animations-css",
    "animation-duration": "animations-css",
    "animation-timing-function": "animations-css",
    "animation-delay": "animations-css",
    "animation-iteration-count": "animations-css",
    "animation-direction": "animations-css",
    "animation-fill-mode": "animations-css",
    "animation-play-state": "animations-css",
    "animation-timeline": "scroll-driven-animations",
    "transition": "transitions",
    "transition-property": "transitions",
    "transition-duration": "transitions",
    "transition-timing-function": "transitions",
    "transition-delay": "transitions",
    "transition-behavior": "transition-behavior",
    "view-transition-name": "view-transitions",
    # Sizing and layout
    "aspect-ratio": "aspect-ratio",
    "object-fit": "object-fit",
    "object-position": "object-fit",
    "inset": "inset",
    "content-visibility": "content-visibility",
    "contain": "contain",
    "isolation": "isolation",
    # Typography
    "font-feature-settings": "font-feature-settings",
    "font-variant-ligatures": "font-variant-ligatures",
    "text-decoration-color": "text-decoration",
    "text-decoration-style": "text-decoration",
    "text-decoration-line": "text-decoration",
    "text-underline-offset": "text-decoration",
    "hyphens": "hyphens",
    "line-clamp": "line-clamp",
    # Color and effects
    "color-scheme": "color-scheme",
    "accent-color": "accent-color",
    "backdrop-filter": "backdrop-filter",
    "mix-blend-mode": "mix-blend-mode",
    "mask": "masks",
    "mask-image": "masks",
    # Scrolling
    "scroll-behavior": "scroll-behavior",
    "scroll-snap-type": "scroll-snap",
    "scroll-snap-align": "scroll-snap",
    "scroll-snap-stop": "scroll-snap",
    "scroll-margin": "scroll-snap",
    "scroll-padding": "scroll-snap",
    "overscroll-behavior": "overscroll-behavior",
    "scrollbar-gutter": "scrollbar-gutter",
    "scrollbar-color": "scrollbar-color",
    # Interaction
    "touch-action": "touch-action",
    "user-select": "user-select",
    "appearance": "appearance",
}

# Properties whose value, not name, identifies the feature
VALUE_DISCRIMINATED_PROPERTIES = frozenset({"display", "position", "text-wrap", "width", "height"})

CSS_PROPERTY_VALUES: dict[tuple[str, str], str] = {
    ("display", "flex"): "flexbox",
    ("display", "inline-flex"): "flexbox",
    ("display", "grid"): "grid",
    ("display", "inline-grid"): "grid",
    ("display", "contents"): "display-contents",
    ("display", "flow-root"): "flow-root",
    ("position", "sticky"): "sticky-positioning",
    ("text-wrap", "balance"): "text-wrap-balance",
    ("text-wrap", "pretty"): "text-wrap-pretty",
    ("width", "fit-content"): "fit-content",
    ("height", "fit-content"): "fit-content",
}

CSS_FUNCTIONS: dict[str, str] = {
    "clamp": "min-max-clamp",
    "min": "min-max-clamp",
    "max": "min-max-clamp",
    "calc": "calc",
    "var": CUSTOM_PROPERTIES_ID,
    "env": "env",
    "color": "color-function",
    "color-mix": "color-mix",
    "light-dark": "light-dark",
    "lab": "lab",
    "lch": "lab",
    "oklab": "oklab",
    "oklch": "oklab",
    "hwb": "hwb",
    "linear-gradient": "gradients",
    "radial-gradient": "gradients",
    "repeating-linear-gradient": "gradients",
    "repeating-radial-gradient": "gradients",
    "conic-gradient": "conic-gradients",
    "repeating-conic-gradient": "conic-gradients",
    "image-set": "image-set",
    "fit-content": "fit-content",
}

CSS_AT_RULES: dict[str, str] = {
    "@media": "media-queries",
    "@supports": "supports",
    "@keyframes": "animations-css",
    "@layer": "cascade-layers",
    "@container": "container-queries",
    "@property": "registered-custom-properties",
    "@font-face": "font-face",
    "@font-feature-values": "font-feature-values",
    "@scope": "scope",
    "@starting-style": "starting-style",
    "@view-transition": "cross-document-view-transitions",
}

CSS_SELECTORS: dict[str, str] = {
    ":has": "has",
    ":is": "is",
    ":where": "where",
    ":not": "not",
    ":focus-visible": "focus-visible",
    ":focus-within": "focus-within",
    ":target": "target",
    ":user-valid": "user-pseudos",
    ":user-invalid": "user-pseudos",
    ":popover-open": "popover",
    ":modal": "dialog",
    "::backdrop": "backdrop",
    "::placeholder": "placeholder",
    "::selection": "selection",
    "::marker": "marker",
    "::before": "pseudo-elements",
    "::after": "pseudo-elements",
    "::first-line": "pseudo-elements",
    "::first-letter": "pseudo-elements",
    "::part": "shadow-parts",
    "::slotted": "slot",
}


def css_property_keys(prop: str) -> list[str]:
    return [f"css.properties.{prop}"]


def css_value_keys(prop: str, value: str) -> list[str]:
    """Candidate keys for a property/value pair, hyphenated and underscored."""
    keys = [f"css.properties.{prop}.{value}"]
    underscored = value.replace("-", "_")
    if underscored != value:
        keys.append(f"css.properties.{prop}.{underscored}")
    return keys


def css_function_keys(name: str) -> list[str]:
    return [f"css.types.{name}", f"css.types.color.{name}", f"css.types.image.gradient.{name}"]


def css_selector_keys(selector: str) -> list[str]:
    return [f"css.selectors.{selector.lstrip(':')}"]


def css_at_rule_keys(at_rule: str) -> list[str]:
    return [f"css.at-rules.{at_rule.lstrip('@')}"]


# ---------------------------------------------------------------------------
# JavaScript
# ---------------------------------------------------------------------------

WEB_APIS: dict[str, str] = {
    # Fetch
    "fetch": "fetch",
    "Request": "fetch",
    "Response": "fetch",
    "Headers": "fetch",
    # Workers
    "ServiceWorker": "service-workers",
    "navigator.serviceWorker": "service-workers",
    "Worker": "web-workers",
    "SharedWorker": "shared-workers",
    # Storage
    "localStorage": "localstorage",
    "sessionStorage": "localstorage",
    "indexedDB": "indexeddb",
    "navigator.storage": "storage-manager",
    # Device and media
    "navigator.geolocation": "geolocation",
    "Notification": "notifications",
    "RTCPeerConnection": "webrtc",
    "getUserMedia": "getusermedia",
    "navigator.mediaDevices": "getusermedia",
    "WebGLRenderingContext": "webgl",
    "WebGL2RenderingContext": "webgl2",
    "AudioContext": "web-audio",
    "navigator.getGamepads": "gamepad",
    "navigator.getBattery": "battery",
    "navigator.vibrate": "vibration",
    "screen.orientation": "screen-orientation",
    "navigator.wakeLock": "screen-wake-lock",
    # Observers
    "IntersectionObserver": "intersection-observer",
    "ResizeObserver": "resize-observer",
    "MutationObserver": "mutationobserver",
    "PerformanceObserver": "performance-observer",
    # Clipboard and sharing
    "navigator.clipboard": "async-clipboard",
    "navigator.share": "web-share",
    # Files and networking
    "File": "file",
    "FileReader": "file",
    "Blob": "file",
    "WebSocket": "websockets",
    "EventSource": "server-sent-events",
    "BroadcastChannel": "broadcast-channel",
    "AbortController": "aborting",
    "AbortSignal": "aborting",
    # Document and history
    "history.pushState": "history",
    "history.replaceState": "history",
    "document.visibilityState": "page-visibility",
    "document.startViewTransition": "view-transitions",
    "requestFullscreen": "fullscreen",
    "requestIdleCallback": "requestidlecallback",
    "queueMicrotask": "queuemicrotask",
    "structuredClone": "structured-clone",
    "customElements": "autonomous-custom-elements",
    "navigator.locks": "web-locks",
    # Events and payments
    "PointerEvent": "pointer-events",
    "TouchEvent": "touch-events",
    "PaymentRequest": "payment-request",
}

BUILTINS: dict[str, str] = {
    # ES2015+
    "Promise": "promise",
    "Symbol": "symbol",
    "Map": "map",
    "Set": "set",
    "WeakMap": "weakmap",
    "WeakSet": "weakset",
    "Proxy": "proxy",
    "Reflect": "proxy",
    # ES2016+
    "Array.prototype.includes": "array-includes",
    # ES2017+
    "Object.values": "object-object",
    "Object.entries": "object-object",
    "Object.getOwnPropertyDescriptors": "object-object",
    "String.prototype.padStart": "string-pad",
    "String.prototype.padEnd": "string-pad",
    # ES2018+
    "Promise.prototype.finally": "promise-finally",
    # ES2019+
    "Array.prototype.flat": "array-flat",
    "Array.prototype.flatMap": "array-flat",
    "Object.fromEntries": "object-fromentries",
    "String.prototype.trimStart": "string-trim-start-end",
    "String.prototype.trimEnd": "string-trim-start-end",
    # ES2020+
    "BigInt": "bigint",
    "globalThis": "globalthis",
    "Promise.allSettled": "promise-allsettled",
    "String.prototype.matchAll": "string-matchall",
    # ES2021+
    "Promise.any": "promise-any",
    "String.prototype.replaceAll": "string-replaceall",
    "WeakRef": "weak-references",
    "FinalizationRegistry": "weak-references",
    # ES2022+
    "Array.prototype.at": "array-at",
    "Object.hasOwn": "object-hasown",
    "Array.prototype.findLast": "array-findlast",
    "Array.prototype.findLastIndex": "array-findlast",
    # ES2023+
    "Array.prototype.toSorted": "array-by-copy",
    "Array.prototype.toReversed": "array-by-copy",
    "Array.prototype.toSpliced": "array-by-copy",
    "Object.groupBy": "array-group",
    "Map.groupBy": "array-group",
    "Promise.withResolvers": "promise-withresolvers",
    # Intl
    "Intl.DateTimeFormat": "intl-datetimeformat",
    "Intl.NumberFormat": "intl-numberformat",
    "Intl.Collator": "intl-collator",
    "Intl.PluralRules": "intl-pluralrules",
    "Intl.RelativeTimeFormat": "intl-relativetimeformat",
    "Intl.ListFormat": "intl-listformat",
    "Intl.Locale": "intl-locale",
    "Intl.Segmenter": "intl-segmenter",
}

# Method name -> canonical builtin key, matched on call callees
PROTOTYPE_METHODS: dict[str, str] = {
    key.rsplit(".", 1)[1]: key for key in BUILTINS if ".prototype." in key
}

SYNTAX_FEATURES: dict[str, tuple[str, str]] = {
    # kind: (feature id, display name)
    "arrow_function": ("arrow-functions", "arrow function"),
    "template_string": ("template-literals", "template literal"),
    "spread_element": ("spread", "spread syntax (...)"),
    "rest_pattern": ("rest-parameters", "rest parameters"),
    "class": ("class-syntax", "class"),
    "for_of": ("for-of", "for...of loop"),
    "module": ("js-modules", "ES module"),
    "async_function": ("async-await", "async function"),
    "await": ("async-await", "await"),
    "top_level_await": ("top-level-await", "top-level await"),
    "generator": ("generators", "generator function"),
    "async_generator": ("async-generators", "async generator"),
    "optional_chaining": ("optional-chaining", "optional chaining (?.)"),
    "nullish_coalescing": ("nullish-coalescing", "nullish coalescing (??)"),
    "dynamic_import": ("dynamic-import", "dynamic import()"),
    "logical_assignment": ("logical-assignments", "logical assignment"),
    "private_field": ("class-private-fields", "private class member"),
    "public_field": ("class-fields", "class field"),
    "static_block": ("class-static-initialization-blocks", "static initialization block"),
    "bigint_literal": ("bigint", "BigInt literal"),
    "numeric_separator": ("numeric-separators", "numeric separator"),
    "exponentiation": ("exponentiation", "exponentiation operator (**)"),
}

# Syntax kind -> browser-compat-data key, tried before the curated id
SYNTAX_COMPAT_KEYS: dict[str, str] = {
    "arrow_function": "javascript.functions.arrow_functions",
    "template_string": "javascript.grammar.template_literals",
    "spread_element": "javascript.operators.spread",
    "rest_pattern": "javascript.functions.rest_parameters",
    "class": "javascript.classes",
    "for_of": "javascript.statements.for_of",
    "module": "javascript.statements.import",
    "async_function": "javascript.statements.async_function",
    "await": "javascript.operators.await",
    "top_level_await": "javascript.operators.await.top_level",
    "generator": "javascript.statements.generator_function",
    "async_generator": "javascript.statements.async_generator_function",
    "optional_chaining": "javascript.operators.optional_chaining",
    "nullish_coalescing": "javascript.operators.nullish_coalescing",
    "dynamic_import": "javascript.operators.import",
    "logical_assignment": "javascript.operators.logical_or_assignment",
    "private_field": "javascript.classes.private_class_fields",
    "public_field": "javascript.classes.public_class_fields",
    "static_block": "javascript.classes.static_initialization_blocks",
    "bigint_literal": "javascript.builtins.BigInt",
    "numeric_separator": "javascript.grammar.numeric_separators",
    "exponentiation": "javascript.operators.exponentiation",
}


def js_api_keys(name: str) -> list[str]:
    """Candidate keys for a global API name, most specific first."""
    return [
        f"api.{name}",
        f"javascript.builtins.{name}",
        f"api.Window.{name}",
        f"api.{name}.{name}",
    ]


def js_prototype_keys(canonical: str) -> list[str]:
    """Keys for a prototype method.

    ``Array.prototype.at`` maps to ``javascript.builtins.Array.at``.
    """
    return [f"javascript.builtins.{canonical.replace('.prototype.', '.')}"]


def js_member_keys(path: str) -> list[str]:
    """Candidate keys for a dotted member path such as ``navigator.share``."""
    head, _, rest = path.partition(".")
    if not rest:
        return js_api_keys(path)
    owner = {"navigator": "Navigator", "document": "Document", "window": "Window"}.get(head)
    keys = [f"javascript.builtins.{path}"]
    if owner is not None:
        keys.append(f"api.{owner}.{rest}")
    keys.append(f"api.{path}")
    return keys


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------

HTML_ELEMENTS: dict[str, str] = {
    "dialog": "dialog",
    "details": "details",
    "summary": "details",
    "picture": "picture",
    "search": "search",
    "template": "template",
    "slot": "slot",
    "portal": "portals",
    "selectmenu": "customizable-select",
    "datalist": "datalist",
    "meter": "meter",
    "progress": "progress",
    "output": "output",
    "canvas": "canvas",
    "video": "video",
    "audio": "audio",
    "track": "webvtt",
}

HTML_ATTRIBUTES: dict[str, str] = {
    "loading": "loading-lazy",
    "popover": "popover",
    "popovertarget": "popover",
    "inert": "inert",
    "enterkeyhint": "enterkeyhint",
    "inputmode": "inputmode",
    "fetchpriority": "fetchpriority",
    "decoding": "img-decoding",
    "contenteditable": "contenteditable",
    "draggable": "drag-and-drop",
    "srcset": "srcset",
    "integrity": "subresource-integrity",
}

HTML_INPUT_TYPES: dict[str, str] = {
    "color": "input-color",
    "date": "input-date-time",
    "datetime-local": "input-date-time",
    "month": "input-date-time",
    "time": "input-date-time",
    "week": "input-date-time",
    "range": "input-range",
    "search": "input-search",
    "email": "input-email-tel-url",
    "tel": "input-email-tel-url",
    "url": "input-email-tel-url",
    "number": "input-number",
}

CUSTOM_ELEMENTS_ID = "autonomous-custom-elements"
ARIA_ID = "aria-attributes"


def html_element_keys(element: str) -> list[str]:
    return [f"html.elements.{element}"]


def html_attribute_keys(element: str, attribute: str) -> list[str]:
    """Element-specific attribute first, then the global attribute."""
    keys = [
        f"html.elements.{element}.{attribute}",
        f"html.global_attributes.{attribute}",
    ]
    underscored = attribute.replace("-", "_")
    if underscored != attribute:
        keys.append(f"html.elements.{element}.{underscored}")
    return keys


def html_input_type_keys(input_type: str) -> list[str]:
    return [f"html.elements.input.type_{input_type.replace('-', '_')}"]
