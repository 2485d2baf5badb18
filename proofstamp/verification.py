"""
Stamp Verification for ProofStamp.

Phase 3: Check the internal validity of a signed Stamp.

Three independent checks, none short-circuiting the others:
1. Structure   — schema version, source, location, footprint, signals
2. Signatures  — at least one, each with a value and a signer
3. Signals     — coordinate ranges and timestamp coherence

Verification never raises. Every failure becomes a False flag plus an
entry in details; advisories are recorded without touching any flag.

Note: PGP signatures are checked for presence and shape only. Attestation
tokens are decoded but their certificate chains are not validated.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .attestation import decode_attestation_token
from .builder import SCHEMA_VERSION, SOURCE_ID, location_time_seconds
from .domain import AttestationDecodeError, Stamp, VerificationResult
from .signals import (
    ACCURACY,
    DEVICECHECK_ATTESTATION,
    LATITUDE,
    LOCATION_TIME,
    LONGITUDE,
    PROVIDER,
    SAFETYNET_JWT,
    is_finite_number,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

MAX_TIMESTAMP_DRIFT_SECONDS = 3600

# Provider/accuracy plausibility (advisory only)
GPS_SUSPICIOUS_ACCURACY_METERS = 100
NETWORK_SUSPICIOUS_ACCURACY_METERS = 5


# =============================================================================
# STRUCTURE
# =============================================================================

def check_structure(stamp: Stamp, details: dict[str, Any]) -> bool:
    """Required fields present with the expected constants."""
    valid = True

    schema_version = getattr(stamp, "schema_version", None)
    if schema_version != SCHEMA_VERSION:
        valid = False
        details["schema_version_error"] = (
            f"Expected '{SCHEMA_VERSION}', got '{schema_version}'"
        )

    source_id = getattr(stamp, "source_id", None)
    if source_id != SOURCE_ID:
        valid = False
        details["source_mismatch"] = f"Expected '{SOURCE_ID}', got '{source_id}'"

    location = getattr(stamp, "location", None)
    if not location or getattr(location, "geometry", None) is None:
        valid = False
        details["missing_location"] = True

    footprint = getattr(stamp, "temporal_footprint", None)
    if (
        footprint is None
        or not getattr(footprint, "start", None)
        or not getattr(footprint, "end", None)
    ):
        valid = False
        details["missing_temporal_footprint"] = True

    if not isinstance(getattr(stamp, "signals", None), Mapping):
        valid = False
        details["missing_signals"] = True

    return valid


# =============================================================================
# SIGNATURES
# =============================================================================

def check_signatures(stamp: Stamp, details: dict[str, Any]) -> bool:
    """At least one signature; every one with a value and a signer identity."""
    signatures = getattr(stamp, "signatures", None) or ()

    if len(signatures) == 0:
        details["no_signatures"] = True
        return False

    valid = True
    for sig in signatures:
        value = getattr(sig, "value", None)
        if not isinstance(value, str) or not value:
            valid = False
            details["empty_signature"] = True

        signer = getattr(sig, "signer", None)
        if signer is None or not getattr(signer, "value", None):
            valid = False
            details["missing_signer"] = True

    details["signature_count"] = len(signatures)
    details["signature_algorithms"] = [getattr(s, "algorithm", None) for s in signatures]
    return valid


# =============================================================================
# SIGNAL CONSISTENCY
# =============================================================================

def _check_coordinate(
    signals: Mapping[str, Any],
    key: str,
    limit: float,
    detail_key: str,
    details: dict[str, Any],
) -> bool:
    if key not in signals:
        return True
    value = signals[key]
    if is_finite_number(value) and -limit <= value <= limit:
        return True
    details[detail_key] = value
    return False


def record_plausibility(signals: Mapping[str, Any], details: dict[str, Any]) -> None:
    """
    Provider/accuracy mismatches. Advisory only, never affects a flag.

    A GPS fix with a very loose radius, or a network fix claiming
    sub-5m accuracy, is worth a human look.
    """
    provider = signals.get(PROVIDER)
    accuracy = signals.get(ACCURACY)
    if not isinstance(provider, str) or not is_finite_number(accuracy):
        return

    if provider == "gps" and accuracy > GPS_SUSPICIOUS_ACCURACY_METERS:
        details["suspicious_gps_accuracy"] = accuracy
    if provider == "network" and accuracy < NETWORK_SUSPICIOUS_ACCURACY_METERS:
        details["suspicious_network_accuracy"] = accuracy


def record_attestation(signals: Mapping[str, Any], details: dict[str, Any]) -> None:
    """Decode embedded attestation tokens. Failure is an advisory, not a fault."""
    token = signals.get(SAFETYNET_JWT)
    if token:
        try:
            attestation = decode_attestation_token(str(token))
        except AttestationDecodeError as e:
            logger.debug("Embedded attestation token not decodable: %s", e)
            details["attestation_decode_error"] = str(e)
        else:
            details["safety_net"] = attestation.summary()

    if signals.get(DEVICECHECK_ATTESTATION):
        details["device_check_present"] = True


def check_timestamp_drift(
    signals: Mapping[str, Any],
    footprint: Any,
    details: dict[str, Any],
) -> bool:
    """Location.Time must lie within an hour of the footprint start."""
    location_time = signals.get(LOCATION_TIME)
    if not location_time or footprint is None:
        return True

    start: Optional[Any] = getattr(footprint, "start", None)
    if not is_finite_number(location_time):
        details["unparseable_location_time"] = location_time
        return True
    if not is_finite_number(start):
        return True

    drift = abs(location_time_seconds(location_time) - start)
    details["timestamp_drift"] = drift
    return drift <= MAX_TIMESTAMP_DRIFT_SECONDS


def check_signals(stamp: Stamp, details: dict[str, Any]) -> bool:
    """Coordinate ranges and timestamp coherence, plus advisories."""
    signals = getattr(stamp, "signals", None)
    if not isinstance(signals, Mapping):
        return True

    lat_ok = _check_coordinate(signals, LATITUDE, 90, "invalid_latitude", details)
    lon_ok = _check_coordinate(signals, LONGITUDE, 180, "invalid_longitude", details)

    record_plausibility(signals, details)
    record_attestation(signals, details)

    drift_ok = check_timestamp_drift(
        signals, getattr(stamp, "temporal_footprint", None), details
    )

    return lat_ok and lon_ok and drift_ok


# =============================================================================
# FULL VERIFICATION
# =============================================================================

def verify_stamp(stamp: Stamp) -> VerificationResult:
    """
    Verify a Stamp's internal validity.

    Returns:
        VerificationResult; valid only if all three checks pass
    """
    details: dict[str, Any] = {}

    structure_valid = check_structure(stamp, details)
    signatures_valid = check_signatures(stamp, details)
    signals_consistent = check_signals(stamp, details)

    result = VerificationResult(
        structure_valid=structure_valid,
        signatures_valid=signatures_valid,
        signals_consistent=signals_consistent,
        details=details,
    )
    logger.debug(
        "Verified stamp: valid=%s structure=%s signatures=%s signals=%s",
        result.valid, structure_valid, signatures_valid, signals_consistent,
    )
    return result
