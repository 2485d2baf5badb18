"""
Stamp Builder for ProofStamp.

Phase 2: Combine canonical signals and bundle artifacts into an
unsigned Stamp.

Core principle (non-negotiable):
    A Stamp is built whole or not at all. Without finite, in-range
    coordinates there is no Stamp, only MissingCoordinatesError.

Optional artifacts (attestation tokens, timestamp proofs, keys) only
ever ADD derived signals. A malformed optional artifact is logged and
skipped, it never aborts the build.
"""

from __future__ import annotations

import base64
import logging
import math
from datetime import datetime, timezone
from typing import Optional

from . import __version__
from .attestation import decode_attestation_token
from .domain import (
    AttestationDecodeError,
    Location,
    MissingCoordinatesError,
    Point,
    Stamp,
    TimeWindow,
)
from .ingestion.bundle import ParsedBundle
from .signals import (
    DEVICECHECK_ATTESTATION,
    FILE_HASH,
    HAS_OTS,
    HAS_PGP_KEY,
    PGP_METADATA_SIGNATURE,
    PGP_PUBLIC_KEY,
    SAFETYNET_BASIC_INTEGRITY,
    SAFETYNET_CTS_PROFILE_MATCH,
    SAFETYNET_JWT,
    CanonicalSignals,
    SignalValue,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

SCHEMA_VERSION = "0.2"
SOURCE_ID = "proofmode"
LOCATION_TYPE = "geojson-point"
CRS = "EPSG:4326"

# Location.Time above this magnitude is milliseconds
MILLISECONDS_THRESHOLD = 1e12

# A ProofMode capture is a snapshot, not an interval
FOOTPRINT_DURATION_SECONDS = 1


# =============================================================================
# TIME RESOLUTION
# =============================================================================

def location_time_seconds(value: float) -> int:
    """Location.Time in epoch seconds, converting from milliseconds if needed."""
    if abs(value) > MILLISECONDS_THRESHOLD:
        return math.floor(value / 1000)
    return math.floor(value)


def parse_iso8601(text: str) -> Optional[int]:
    """
    Parse an ISO-8601 timestamp to epoch seconds.

    Naive timestamps are assumed to be UTC. Returns None if unparseable.
    """
    candidate = text.strip()
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return math.floor(dt.timestamp())


def resolve_start_time(
    signals: CanonicalSignals,
    reference_time: Optional[datetime] = None,
) -> tuple[int, str]:
    """
    Pick the footprint start time.

    Precedence:
    1. Location.Time (GPS fix time)
    2. Timestamp (Unix seconds)
    3. DateCreated (ISO 8601)
    4. reference_time, or the wall clock

    Returns:
        (epoch seconds, name of the source used)
    """
    location_time = signals.location_time
    if location_time:
        return location_time_seconds(location_time), "location_time"

    timestamp = signals.timestamp
    if timestamp:
        return math.floor(timestamp), "timestamp"

    date_created = signals.date_created
    if date_created:
        parsed = parse_iso8601(date_created)
        if parsed is not None:
            return parsed, "date_created"
        logger.warning("Unparseable DateCreated %r, falling back to clock", date_created)

    if reference_time is None:
        reference_time = datetime.now(timezone.utc)
    elif reference_time.tzinfo is None:
        reference_time = reference_time.replace(tzinfo=timezone.utc)
    return math.floor(reference_time.timestamp()), "clock"


# =============================================================================
# COORDINATES
# =============================================================================

def require_coordinates(signals: CanonicalSignals) -> tuple[float, float]:
    """
    Return (latitude, longitude).

    Raises:
        MissingCoordinatesError: If either is absent, non-numeric,
            non-finite, or outside its valid range
    """
    lat = signals.latitude
    lon = signals.longitude

    if lat is None or lon is None:
        raise MissingCoordinatesError(
            "ProofMode bundle missing Location.Latitude or Location.Longitude"
        )
    if not -90 <= lat <= 90:
        raise MissingCoordinatesError(f"Location.Latitude {lat} outside [-90, 90]")
    if not -180 <= lon <= 180:
        raise MissingCoordinatesError(f"Location.Longitude {lon} outside [-180, 180]")

    return lat, lon


# =============================================================================
# DERIVED SIGNALS
# =============================================================================

def derive_bundle_signals(parsed: ParsedBundle) -> dict[str, SignalValue]:
    """
    Signals contributed by bundle artifacts rather than metadata.

    Attestation claims are only added when the metadata does not already
    carry them, and only if the token decodes.
    """
    derived: dict[str, SignalValue] = {}

    token = parsed.attestation_token
    if token:
        derived[SAFETYNET_JWT] = token
        try:
            attestation = decode_attestation_token(token)
        except AttestationDecodeError as e:
            logger.warning("Attestation token not decodable: %s", e)
        else:
            if SAFETYNET_BASIC_INTEGRITY not in parsed.signals:
                derived[SAFETYNET_BASIC_INTEGRITY] = attestation.basic_integrity
            if SAFETYNET_CTS_PROFILE_MATCH not in parsed.signals:
                derived[SAFETYNET_CTS_PROFILE_MATCH] = attestation.cts_profile_match

    alternate = parsed.alternate_attestation
    if alternate:
        derived[DEVICECHECK_ATTESTATION] = alternate

    if parsed.timestamp_proof is not None:
        derived[HAS_OTS] = True

    public_key = parsed.public_key
    if public_key:
        derived[HAS_PGP_KEY] = True
        derived[PGP_PUBLIC_KEY] = public_key

    signature = parsed.metadata_signature
    if signature:
        derived[PGP_METADATA_SIGNATURE] = base64.b64encode(signature).decode("ascii")

    if parsed.expected_hash:
        derived[FILE_HASH] = parsed.expected_hash

    return derived


# =============================================================================
# BUILDER
# =============================================================================

def build_stamp(
    parsed: ParsedBundle,
    source_version: str = __version__,
    reference_time: Optional[datetime] = None,
) -> Stamp:
    """
    Build an unsigned Stamp from a parsed bundle.

    Args:
        parsed: Output of parse_bundle / parse_bundle_archive
        source_version: Version of the producing plugin
        reference_time: Clock fallback when the bundle has no timestamps

    Returns:
        Stamp with empty signatures

    Raises:
        MissingCoordinatesError: If coordinates are missing or invalid
    """
    lat, lon = require_coordinates(parsed.signals)
    start, time_source = resolve_start_time(parsed.signals, reference_time)

    signals = parsed.signals.with_entries(derive_bundle_signals(parsed))

    logger.info(
        "Built stamp at (%s, %s) t=%d from %s",
        lat, lon, start, time_source,
    )

    return Stamp(
        schema_version=SCHEMA_VERSION,
        source_id=SOURCE_ID,
        source_version=source_version,
        location_type=LOCATION_TYPE,
        location=Location(geometry=Point.from_lat_lon(lat, lon), crs=CRS),
        temporal_footprint=TimeWindow(
            start=start,
            end=start + FOOTPRINT_DURATION_SECONDS,
        ),
        signals=signals,
        signatures=(),
    )
