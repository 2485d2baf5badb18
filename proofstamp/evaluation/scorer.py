"""
Stamp Evaluator for ProofStamp.

Phase 4: Assess how well a Stamp supports an independent Claim.

Core principle:
    Every score must be decomposable into human-readable reasons.
    The vector carries each intermediate value in its details.

Score composition:
    score = clamp(0.6 * spatial + 0.4 * temporal + adjustment, 0, 1)
    Adjustments are fixed bonuses and penalties. No tuning knobs.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from ..domain import Claim, CredibilityVector, Stamp
from .components import (
    ComponentScore,
    compute_signal_adjustments,
    compute_spatial,
    compute_temporal,
    extract_coordinates,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

SPATIAL_WEIGHT = 0.6
TEMPORAL_WEIGHT = 0.4

# supports_claim thresholds
MIN_SUPPORTING_SCORE = 0.3
MIN_SUPPORTING_SPATIAL = 0.1


# =============================================================================
# SCORE BREAKDOWN
# =============================================================================

@dataclass
class ScoreBreakdown:
    """
    Complete score decomposition for one stamp/claim pair.

    Exposes:
    - Spatial and temporal components
    - Every signal-quality adjustment that applied
    - The clamped total and the support decision
    """
    spatial: ComponentScore
    temporal: ComponentScore
    adjustments: list[ComponentScore]

    @property
    def signal_adjustment(self) -> float:
        return sum(a.contribution for a in self.adjustments)

    @property
    def raw_score(self) -> float:
        return (
            self.spatial.contribution * SPATIAL_WEIGHT
            + self.temporal.contribution * TEMPORAL_WEIGHT
            + self.signal_adjustment
        )

    @property
    def score(self) -> float:
        raw = self.raw_score
        if math.isnan(raw):
            return 0.0
        return max(0.0, min(1.0, raw))

    @property
    def supports_claim(self) -> bool:
        return (
            self.score > MIN_SUPPORTING_SCORE
            and self.spatial.contribution > MIN_SUPPORTING_SPATIAL
            and self.temporal.contribution > 0
        )

    @property
    def components(self) -> list[ComponentScore]:
        return [self.spatial, self.temporal, *self.adjustments]

    def to_details(self) -> dict[str, Any]:
        details: dict[str, Any] = {}
        details.update(self.spatial.details)
        details.update(self.temporal.details)
        for adjustment in self.adjustments:
            details[adjustment.name] = True
        details["signal_adjustment"] = self.signal_adjustment
        details["components"] = [c.to_dict() for c in self.components]
        return details

    def to_vector(self) -> CredibilityVector:
        return CredibilityVector(
            supports_claim=self.supports_claim,
            score=self.score,
            spatial=self.spatial.contribution,
            temporal=self.temporal.contribution,
            details=self.to_details(),
        )


# =============================================================================
# EVALUATOR
# =============================================================================

def score_stamp(stamp: Stamp, claim: Claim) -> ScoreBreakdown:
    """
    Compute every component for a stamp/claim pair.

    Raises:
        ValueError: If either side has no readable point geometry
    """
    stamp_coords = extract_coordinates(getattr(stamp, "location", None))
    if stamp_coords is None:
        raise ValueError("Cannot extract coordinates from stamp")

    claim_coords = extract_coordinates(getattr(claim, "location", None))
    if claim_coords is None:
        raise ValueError("Cannot extract coordinates from claim")

    signals = stamp.signals
    return ScoreBreakdown(
        spatial=compute_spatial(stamp_coords, claim_coords, claim.radius, signals),
        temporal=compute_temporal(stamp.temporal_footprint, claim.time),
        adjustments=compute_signal_adjustments(signals),
    )


def evaluate_stamp(stamp: Stamp, claim: Claim) -> CredibilityVector:
    """
    Evaluate how well a Stamp supports a Claim.

    This is the main entry point for Phase 4. It never raises: a stamp
    or claim without readable coordinates yields a zero vector whose
    details carry the error.

    Returns:
        CredibilityVector with spatial, temporal and combined score
    """
    try:
        breakdown = score_stamp(stamp, claim)
    except (ValueError, TypeError, AttributeError) as e:
        logger.info("Evaluation skipped: %s", e)
        return CredibilityVector.zero(str(e))

    vector = breakdown.to_vector()
    logger.debug(
        "Evaluated stamp: score=%.3f spatial=%.3f temporal=%.3f supports=%s",
        vector.score, vector.spatial, vector.temporal, vector.supports_claim,
    )
    return vector


# =============================================================================
# EXPLANATION GENERATION
# =============================================================================

def generate_explanation(vector: CredibilityVector) -> str:
    """
    Generate a plain-text explanation of a credibility vector.

    This answers: "Why does this stamp support (or not) this claim?"
    """
    if "error" in vector.details:
        return f"Stamp could not be evaluated: {vector.details['error']}"

    verdict = "supports" if vector.supports_claim else "does not support"
    lines = [
        f"Stamp {verdict} the claim with a score of {vector.score:.2f}/1.00.",
        "",
        "Score Breakdown:",
    ]

    components = vector.details.get("components", [])
    for component in components:
        lines.append(f"- {component['reason']}")

    negative = [c for c in components if c["contribution"] < 0]
    if negative:
        lines.append("")
        lines.append("Concerns: " + "; ".join(c["reason"] for c in negative))

    return "\n".join(lines)
