"""
Scoring Components for ProofStamp.

Phase 4: Each component is independently computable with no hidden weights.

Components:
    - Spatial: Great-circle distance against the claim radius, capped
    - Temporal: Overlap of the stamp footprint with the claim window
    - Signal quality: Fixed bonuses and penalties from stamp signals
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..domain import TimeWindow
from ..signals import (
    ACCURACY,
    CELL_INFO,
    HAS_OTS,
    PROVIDER,
    SAFETYNET_BASIC_INTEGRITY,
    WIFI_MAC,
    is_finite_number,
)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

EARTH_RADIUS_M = 6_371_000

# ProofMode GPS is self-reported by the device, so spatial evidence alone
# never reaches full confidence
MAX_SELF_REPORTED_SPATIAL = 0.7

# Beyond the effective radius the score decays linearly to 0 at 3x radius
SPATIAL_DECAY_FACTOR = 3

SAFETYNET_BONUS = 0.05
OTS_BONUS = 0.03
NETWORK_ONLY_PENALTY = -0.10
MISSING_NETWORK_CONTEXT_PENALTY = -0.05


# =============================================================================
# COMPONENT SCORE
# =============================================================================

@dataclass
class ComponentScore:
    """
    A single scoring component with full transparency.

    Every component exposes:
    - name: What this component measures
    - raw_value: The underlying measurement
    - contribution: Value fed into the combined score
    - reason: Human-readable explanation
    - details: Intermediate values, copied into the credibility vector
    """
    name: str
    raw_value: float
    contribution: float
    reason: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "raw_value": self.raw_value,
            "contribution": self.contribution,
            "reason": self.reason,
        }


# =============================================================================
# GEOMETRY HELPERS
# =============================================================================

def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two lat/lon points in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def extract_coordinates(location: Any) -> Optional[tuple[float, float]]:
    """
    Read (latitude, longitude) from a point-like location.

    Accepts a Location (reads its geometry), a Point, or a GeoJSON-style
    mapping. Coordinates are [longitude, latitude]. Returns None if the
    geometry cannot be read as a point.
    """
    geometry = getattr(location, "geometry", None)
    if geometry is not None:
        location = geometry
    elif isinstance(location, Mapping) and "geometry" in location:
        location = location["geometry"]

    if isinstance(location, Mapping):
        coords = location.get("coordinates")
    else:
        coords = getattr(location, "coordinates", None)

    if not isinstance(coords, (list, tuple)) or len(coords) < 2:
        return None
    lon, lat = coords[0], coords[1]
    if not (is_finite_number(lon) and is_finite_number(lat)):
        return None
    return lat, lon


# =============================================================================
# SPATIAL COMPONENT
# =============================================================================

def compute_spatial(
    stamp_coords: tuple[float, float],
    claim_coords: tuple[float, float],
    claim_radius: float,
    signals: Mapping[str, Any],
) -> ComponentScore:
    """
    Compute spatial support.

    effective radius = claim radius + reported accuracy
    - inside:  1 - d / r            (1 at the center, 0 at the boundary)
    - outside: max(0, 1 - d / 3r)   (soft decay)
    Then capped at MAX_SELF_REPORTED_SPATIAL.

    Returns: ComponentScore with 0-0.7
    """
    distance = haversine_distance(
        stamp_coords[0], stamp_coords[1], claim_coords[0], claim_coords[1]
    )
    accuracy = signals.get(ACCURACY)
    accuracy = accuracy if is_finite_number(accuracy) else 0
    effective_radius = claim_radius + accuracy

    if not math.isfinite(effective_radius):
        spatial = 0.0
        where = "unusable"
    elif effective_radius <= 0:
        spatial = 1.0 if distance == 0 else 0.0
        where = "point claim"
    elif distance <= effective_radius:
        spatial = 1.0 - distance / effective_radius
        where = "inside"
    else:
        spatial = max(0.0, 1.0 - distance / (effective_radius * SPATIAL_DECAY_FACTOR))
        where = "outside"

    uncapped = spatial
    spatial = min(spatial, MAX_SELF_REPORTED_SPATIAL)

    return ComponentScore(
        name="spatial",
        raw_value=distance,
        contribution=spatial,
        reason=(
            f"Stamp is {distance:.0f}m from claim center, {where} effective "
            f"radius {effective_radius:g}m (score {uncapped:.2f}, capped to {spatial:.2f})"
        ),
        details={
            "distance_meters": round(distance),
            "effective_radius_meters": effective_radius,
            "accuracy_meters": accuracy,
        },
    )


# =============================================================================
# TEMPORAL COMPONENT
# =============================================================================

def temporal_overlap(a: TimeWindow, b: TimeWindow) -> float:
    """
    Overlap of two intervals divided by the shorter duration.

    0 when they do not overlap, either duration is non-positive,
    or any bound is not a finite number.
    """
    bounds = (a.start, a.end, b.start, b.end)
    if not all(math.isfinite(x) for x in bounds):
        return 0.0
    shorter = min(a.end - a.start, b.end - b.start)
    if not shorter > 0:
        return 0.0
    overlap = min(a.end, b.end) - max(a.start, b.start)
    if overlap <= 0:
        return 0.0
    return overlap / shorter


def compute_temporal(footprint: TimeWindow, claim_time: TimeWindow) -> ComponentScore:
    """
    Compute temporal support.

    Returns: ComponentScore with 0-1
    """
    ratio = temporal_overlap(footprint, claim_time)
    if ratio > 0:
        reason = f"Stamp footprint overlaps claim window ({ratio:.0%} of shorter interval)"
    else:
        reason = "Stamp footprint does not overlap claim window"

    return ComponentScore(
        name="temporal",
        raw_value=ratio,
        contribution=ratio,
        reason=reason,
        details={"temporal_overlap": ratio},
    )


# =============================================================================
# SIGNAL QUALITY COMPONENTS
# =============================================================================

def _truthy_flag(value: Any) -> bool:
    return value is True or value == "true"


def compute_safetynet_bonus(signals: Mapping[str, Any]) -> Optional[ComponentScore]:
    """Bonus for a passing SafetyNet / Play Integrity basic integrity check."""
    if not _truthy_flag(signals.get(SAFETYNET_BASIC_INTEGRITY)):
        return None
    return ComponentScore(
        name="safety_net_bonus",
        raw_value=1.0,
        contribution=SAFETYNET_BONUS,
        reason=f"Device attestation reports basic integrity (+{SAFETYNET_BONUS})",
    )


def compute_ots_bonus(signals: Mapping[str, Any]) -> Optional[ComponentScore]:
    """Bonus for an OpenTimestamps proof in the bundle."""
    if not _truthy_flag(signals.get(HAS_OTS)):
        return None
    return ComponentScore(
        name="ots_bonus",
        raw_value=1.0,
        contribution=OTS_BONUS,
        reason=f"Bundle carries an OpenTimestamps proof (+{OTS_BONUS})",
    )


def compute_network_only_penalty(signals: Mapping[str, Any]) -> Optional[ComponentScore]:
    """Penalty for a network-derived fix (no GPS)."""
    if signals.get(PROVIDER) != "network":
        return None
    return ComponentScore(
        name="network_only_penalty",
        raw_value=1.0,
        contribution=NETWORK_ONLY_PENALTY,
        reason=f"Location came from network provider, not GPS ({NETWORK_ONLY_PENALTY})",
    )


def compute_network_context_penalty(signals: Mapping[str, Any]) -> Optional[ComponentScore]:
    """Penalty when neither cell tower nor WiFi context was captured."""
    if CELL_INFO in signals or WIFI_MAC in signals:
        return None
    return ComponentScore(
        name="missing_network_context",
        raw_value=0.0,
        contribution=MISSING_NETWORK_CONTEXT_PENALTY,
        reason=(
            "No cell tower or WiFi context to corroborate location "
            f"({MISSING_NETWORK_CONTEXT_PENALTY})"
        ),
    )


def compute_signal_adjustments(signals: Mapping[str, Any]) -> list[ComponentScore]:
    """All bonuses and penalties that apply, in fixed order."""
    candidates = [
        compute_safetynet_bonus(signals),
        compute_ots_bonus(signals),
        compute_network_only_penalty(signals),
        compute_network_context_penalty(signals),
    ]
    return [c for c in candidates if c is not None]
