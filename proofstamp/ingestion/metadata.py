"""
Metadata Decoding for ProofStamp.

Phase 1: Turn the selected metadata entry into a raw string-keyed map.

Two variants, chosen by which metadata entry the classifier found
(bundles carry no format version field):

    CSV  — ProofMode Android/iOS. Either vertical ("key,value" per line)
           or horizontal (one header row, one or more data rows).
    JSON — Arbitrarily nested object, flattened to dotted keys.

Design principles:
- Observation only: values stay raw strings, no typing happens here
- Both variants feed the same signal normalizer downstream
- Malformed lines are skipped; malformed JSON is fatal
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..domain import MetadataJSONError
from .classifier import BlobRole, RawBlob

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

# Vertical-layout separators, in the order they are tried
VERTICAL_SEPARATORS = (",", "\t", ":")

FILE_HASH_KEYS = ("FileHash", "File.Hash")


@dataclass(frozen=True)
class DecodedMetadata:
    """
    Raw metadata exactly as it appears in the bundle.

    file_hash is a best-effort copy of the media hash the device reported.
    """
    raw: dict[str, str] = field(default_factory=dict)
    format: str = "csv"
    file_hash: Optional[str] = None


def _file_hash(raw: dict[str, str]) -> Optional[str]:
    for key in FILE_HASH_KEYS:
        value = raw.get(key, "").strip()
        if value:
            return value
    return None


# =============================================================================
# CSV
# =============================================================================

def _content_lines(text: str) -> list[str]:
    """Non-blank, non-comment lines, stripped."""
    lines = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lines.append(stripped)
    return lines


def split_row(line: str) -> list[str]:
    """
    Split a horizontal CSV row on commas.

    ProofMode terminates rows with a delimiter, so a single trailing
    empty field is dropped. Commas inside values are already replaced
    with spaces by the app.
    """
    fields = line.split(",")
    if len(fields) > 1 and fields[-1].strip() == "":
        fields = fields[:-1]
    return fields


def is_horizontal(lines: list[str]) -> bool:
    """
    Detect the header + data-row layout.

    True when the first two lines each have more than two fields.
    """
    if len(lines) < 2:
        return False
    return len(split_row(lines[0])) > 2 and len(split_row(lines[1])) > 2


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1]
    return value


def _split_pair(line: str) -> Optional[tuple[str, str]]:
    """Split a vertical line on the first separator found past index 0."""
    for separator in VERTICAL_SEPARATORS:
        idx = line.find(separator)
        if idx > 0:
            return line[:idx].strip(), line[idx + 1:].strip()
    return None


def _parse_vertical(lines: list[str]) -> dict[str, str]:
    raw: dict[str, str] = {}
    for line in lines:
        pair = _split_pair(line)
        if pair is None:
            logger.debug("Skipping CSV line without separator: %r", line[:80])
            continue

        key, value = pair
        value = _strip_quotes(value)

        if key.lower() == "key" and value.lower() == "value":
            continue

        raw[key] = value
    return raw


def _parse_horizontal(lines: list[str]) -> dict[str, str]:
    headers = [h.strip() for h in split_row(lines[0])]
    raw: dict[str, str] = {}
    for line in lines[1:]:
        values = split_row(line)
        for header, value in zip(headers, values):
            if header:
                raw[header] = value.strip()
    return raw


def decode_csv_metadata(text: str) -> DecodedMetadata:
    """
    Parse ProofMode CSV metadata.

    Vertical format:
        key,value
        Location.Latitude,40.7484
        Location.Longitude,-73.9857

    Horizontal format:
        Location.Latitude,Location.Longitude,Location.Provider,
        40.7484,-73.9857,gps,

    Vertical lines may also use tab or colon separators.
    """
    lines = _content_lines(text)

    if is_horizontal(lines):
        raw = _parse_horizontal(lines)
        layout = "horizontal"
    else:
        raw = _parse_vertical(lines)
        layout = "vertical"

    logger.debug("Decoded %d CSV fields (%s layout)", len(raw), layout)
    return DecodedMetadata(raw=raw, format="csv", file_hash=_file_hash(raw))


# =============================================================================
# JSON
# =============================================================================

def _stringify(value: Any) -> str:
    """
    Leaf value as text.

    Strings as-is, arrays comma-joined (null items empty), everything
    else JSON-encoded: [1, [2, null]] -> "1,2,", true -> "true".
    """
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ",".join("" if item is None else _stringify(item) for item in value)
    return json.dumps(value, ensure_ascii=False)


def flatten_object(obj: dict[str, Any], prefix: str = "") -> dict[str, str]:
    """
    Flatten a nested object into dot-separated keys.

    e.g., {"Location": {"Latitude": 40.7}} -> {"Location.Latitude": "40.7"}
    Arrays are leaves, not recursed into.
    """
    result: dict[str, str] = {}
    for key, value in obj.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            result.update(flatten_object(value, full_key))
        else:
            result[full_key] = _stringify(value)
    return result


def decode_json_metadata(text: str) -> DecodedMetadata:
    """
    Parse ProofMode JSON metadata.

    Raises:
        MetadataJSONError: If text is not valid JSON
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise MetadataJSONError(f"Invalid JSON metadata: {e}")

    raw = flatten_object(parsed) if isinstance(parsed, dict) else {}
    if not isinstance(parsed, dict):
        logger.warning("JSON metadata is %s, not an object", type(parsed).__name__)

    return DecodedMetadata(raw=raw, format="json", file_hash=_file_hash(raw))


# =============================================================================
# DISPATCH
# =============================================================================

def decode_metadata(blob: RawBlob, role: BlobRole) -> DecodedMetadata:
    """Decode the selected metadata blob with the variant its role implies."""
    text = blob.text()
    if role == BlobRole.METADATA_CSV:
        return decode_csv_metadata(text)
    if role == BlobRole.METADATA_JSON:
        return decode_json_metadata(text)
    raise ValueError(f"{blob.name} is not a metadata entry (role {role.value})")
