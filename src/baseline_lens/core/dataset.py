"""Compatibility dataset loading and indexing.

The dataset follows the ``web-features`` ``data.json`` layout::

    {"features": {"<id>": {"name": ..., "description": ...,
                           "compat_features": ["css.properties.display.flex", ...],
                           "status": {"baseline": "high" | "low" | false, ...}}}}

A flat ``{"<id>": {...}}`` mapping is accepted too. Redirect records
(``kind`` of ``moved`` or ``split``) are skipped.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from importlib import resources
from pathlib import Path
from typing import Any

import httpx
import structlog

from ..models.compat import FeatureRecord
from ..utils.async_helpers import DataLoadError, download_retry
from ..utils.logging import LogEventNames

log = structlog.get_logger()

BUILTIN_PACKAGE = "baseline_lens.data"
BUILTIN_FILE = "web-features.json"

REDIRECT_KINDS = frozenset({"moved", "split"})


class DatasetSource(StrEnum):
    """Where the loaded dataset came from."""

    FILE = "file"
    URL = "url"
    BUILTIN = "builtin"
    INLINE = "inline"


@dataclass(frozen=True)
class DatasetIndex:
    """Immutable index over one loaded dataset.

    The service swaps whole indexes, never mutates one in place.
    """

    features: dict[str, FeatureRecord] = field(default_factory=dict)
    compat_keys: dict[str, str] = field(default_factory=dict)
    source: DatasetSource = DatasetSource.INLINE

    def __len__(self) -> int:
        return len(self.features)


def _first(value: Any) -> str | None:
    # Several fields are either a string or a list of strings
    if isinstance(value, list):
        return str(value[0]) if value else None
    if isinstance(value, str):
        return value
    return None


def parse_feature(feature_id: str, data: dict[str, Any]) -> FeatureRecord:
    """Build a record from one dataset entry."""
    compat = data.get("compat_features") or ()
    status = data.get("status")
    return FeatureRecord(
        id=feature_id,
        name=str(data.get("name") or feature_id),
        description=data.get("description") or None,
        status=status if isinstance(status, dict) else {},
        compat_features=tuple(str(key) for key in compat),
        spec_url=_first(data.get("spec")),
        mdn_url=_first(data.get("mdn_url")),
        caniuse_id=_first(data.get("caniuse")),
        group=_first(data.get("group")),
    )


def build_index(raw: Any, source: DatasetSource) -> DatasetIndex:
    """Index raw dataset JSON.

    Args:
        raw: Decoded dataset document
        source: Where the document came from

    Returns:
        DatasetIndex with features and the compat-key reverse map

    Raises:
        DataLoadError: If the document does not look like a dataset
    """
    if not isinstance(raw, dict):
        raise DataLoadError("Dataset root must be an object")

    entries = raw.get("features", raw)
    if not isinstance(entries, dict):
        raise DataLoadError("Dataset 'features' must be an object")

    features: dict[str, FeatureRecord] = {}
    compat_keys: dict[str, str] = {}
    for feature_id, data in entries.items():
        if not isinstance(data, dict) or data.get("kind") in REDIRECT_KINDS:
            continue
        record = parse_feature(feature_id, data)
        features[feature_id] = record
        for key in record.compat_features:
            # First owner wins when two features claim the same key
            compat_keys.setdefault(key, feature_id)

    if not features:
        raise DataLoadError("Dataset contains no features")

    return DatasetIndex(features=features, compat_keys=compat_keys, source=source)


def decode(payload: bytes | str, origin: str) -> Any:
    try:
        return json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DataLoadError(f"Invalid dataset JSON from {origin}: {e}") from e


def load_file(path: Path) -> DatasetIndex:
    """Load a dataset from a local JSON file."""
    try:
        payload = path.read_bytes()
    except OSError as e:
        raise DataLoadError(f"Cannot read dataset file {path}: {e}") from e
    return build_index(decode(payload, str(path)), DatasetSource.FILE)


def load_builtin() -> DatasetIndex:
    """Load the smaller dataset shipped with the package."""
    try:
        payload = resources.files(BUILTIN_PACKAGE).joinpath(BUILTIN_FILE).read_bytes()
    except (OSError, ModuleNotFoundError) as e:
        raise DataLoadError(f"Built-in dataset unavailable: {e}") from e
    return build_index(decode(payload, "built-in dataset"), DatasetSource.BUILTIN)


@download_retry
async def _fetch(client: httpx.AsyncClient, url: str) -> bytes:
    response = await client.get(url)
    response.raise_for_status()
    return response.content


async def download(
    url: str,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DatasetIndex:
    """Download and index a dataset.

    Transient network failures are retried with exponential backoff.

    Args:
        url: Dataset URL
        timeout: Per-request timeout in seconds
        transport: Optional transport (tests inject ``httpx.MockTransport``)

    Returns:
        DatasetIndex built from the downloaded document

    Raises:
        DataLoadError: If the download fails after retries
    """
    log.info(LogEventNames.DATASET_LOADING, source=DatasetSource.URL.value, url=url)
    try:
        async with httpx.AsyncClient(
            timeout=timeout, transport=transport, follow_redirects=True
        ) as client:
            payload = await _fetch(client, url)
    except httpx.HTTPError as e:
        raise DataLoadError(f"Dataset download failed from {url}: {e}") from e
    return build_index(decode(payload, url), DatasetSource.URL)
