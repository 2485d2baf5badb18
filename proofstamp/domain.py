"""
Core Domain Objects for ProofStamp.

All domain objects are built on the Canonical Signals foundation.
The invariant is maintained: a Stamp is complete or it does not exist.

Domain Objects:
    Stamp               — Canonical, versioned location assertion from a bundle
    Claim               — Independently authored location + time window
    VerificationResult  — Internal-consistency report for a Stamp
    CredibilityVector   — How well a Stamp supports a Claim
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .signals import CanonicalSignals


# =============================================================================
# ERRORS
# =============================================================================

class ProofModeError(Exception):
    """Base class for every failure raised by ProofStamp."""
    pass


class ArchiveDecodeError(ProofModeError):
    """Raised when the bundle container cannot be decompressed."""
    pass


class MissingMetadataError(ProofModeError):
    """Raised when a bundle has neither a .proof.csv nor a .proof.json entry."""
    pass


class MetadataJSONError(ProofModeError):
    """Raised when .proof.json metadata is not valid JSON."""
    pass


class MissingCoordinatesError(ProofModeError):
    """Raised when latitude/longitude are absent, non-finite, or out of range."""
    pass


class AttestationDecodeError(ProofModeError):
    """Raised when an attestation token is malformed. Always recovered locally."""
    pass


# =============================================================================
# GEOMETRY & TIME
# =============================================================================

@dataclass(frozen=True)
class Point:
    """GeoJSON-style point. Coordinates are (longitude, latitude)."""
    coordinates: tuple[float, float]
    type: str = "Point"

    @classmethod
    def from_lat_lon(cls, latitude: float, longitude: float) -> Point:
        return cls(coordinates=(longitude, latitude))

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "coordinates": list(self.coordinates)}


@dataclass(frozen=True)
class Location:
    """A geometry plus the identifier of its coordinate reference system."""
    geometry: Point
    crs: str

    @property
    def coordinates(self) -> tuple[float, float]:
        return self.geometry.coordinates

    def to_dict(self) -> dict[str, Any]:
        return {"geometry": self.geometry.to_dict(), "crs": self.crs}


@dataclass(frozen=True)
class TimeWindow:
    """Closed interval in epoch seconds."""
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> dict[str, float]:
        return {"start": self.start, "end": self.end}


# =============================================================================
# SIGNATURES
# =============================================================================

@dataclass(frozen=True)
class Signer:
    """Identity of whoever produced a signature, e.g. a PGP key fingerprint."""
    scheme: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"scheme": self.scheme, "value": self.value}


@dataclass(frozen=True)
class Signature:
    """
    A signature attached to a Stamp by an external signer.

    Only presence and shape are checked downstream. Cryptographic
    verification of PGP material is not performed.
    """
    signer: Signer
    algorithm: str
    value: str
    timestamp: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "signer": self.signer.to_dict(),
            "algorithm": self.algorithm,
            "value": self.value,
            "timestamp": self.timestamp,
        }


# =============================================================================
# STAMP
# =============================================================================

@dataclass(frozen=True)
class Stamp:
    """
    Canonical record of one location assertion extracted from a bundle.

    Built once by the stamp builder with no signatures ("unsigned").
    Signatures are attached afterwards with with_signatures(), which
    returns a new Stamp. The record itself is never mutated.
    """
    schema_version: str
    source_id: str
    source_version: str
    location: Location
    temporal_footprint: TimeWindow
    signals: CanonicalSignals
    signatures: tuple[Signature, ...] = ()
    location_type: str = "geojson-point"

    @property
    def is_signed(self) -> bool:
        return len(self.signatures) > 0

    def with_signatures(self, *signatures: Signature) -> Stamp:
        """Return a copy of this Stamp with signatures appended."""
        return replace(self, signatures=tuple(self.signatures) + signatures)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the interoperable field names."""
        return {
            "schemaVersion": self.schema_version,
            "sourceId": self.source_id,
            "sourceVersion": self.source_version,
            "locationType": self.location_type,
            "location": self.location.to_dict(),
            "temporalFootprint": self.temporal_footprint.to_dict(),
            "signals": dict(self.signals),
            "signatures": [s.to_dict() for s in self.signatures],
        }


# =============================================================================
# CLAIM
# =============================================================================

@dataclass(frozen=True)
class Claim:
    """
    An independently authored assertion: "I was within radius meters of
    location during time". Owned and supplied entirely by the caller.
    """
    location: Point
    radius: float
    time: TimeWindow


# =============================================================================
# REPORTS
# =============================================================================

@dataclass
class VerificationResult:
    """
    Internal-consistency report for a Stamp.

    The three flags are computed independently. details carries one entry
    per failure plus advisory observations that never affect a flag.
    """
    structure_valid: bool
    signatures_valid: bool
    signals_consistent: bool
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return self.structure_valid and self.signatures_valid and self.signals_consistent

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "structureValid": self.structure_valid,
            "signaturesValid": self.signatures_valid,
            "signalsConsistent": self.signals_consistent,
            "details": self.details,
        }


@dataclass
class CredibilityVector:
    """
    How well a Stamp supports a Claim along spatial, temporal and
    signal-quality axes. Every intermediate value lives in details.
    """
    supports_claim: bool
    score: float
    spatial: float
    temporal: float
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def zero(cls, error: str) -> CredibilityVector:
        """A vector that supports nothing, carrying the reason."""
        return cls(
            supports_claim=False,
            score=0.0,
            spatial=0.0,
            temporal=0.0,
            details={"error": error},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "supportsClaim": self.supports_claim,
            "score": self.score,
            "spatial": self.spatial,
            "temporal": self.temporal,
            "details": self.details,
        }
