"""
ProofMode Plugin Facade.

Single object exposing the whole pipeline to a host framework:

    parse_bundle(archive)   -> ParsedBundle
    create_stamp(parsed)    -> Stamp (unsigned)
    create(raw_signals)     -> Stamp (unsigned)
    verify(stamp)           -> VerificationResult
    evaluate(stamp, claim)  -> CredibilityVector

The plugin holds no state beyond its descriptive attributes. Signing is
the host's job; stamps leave create() with no signatures.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from . import __version__
from .builder import build_stamp
from .domain import Claim, CredibilityVector, Stamp, VerificationResult
from .evaluation import evaluate_stamp
from .ingestion.bundle import ParsedBundle, parse_bundle_archive
from .verification import verify_stamp


class ProofModePlugin:
    """Location-proof plugin for ProofMode bundles."""

    name = "proofmode"
    version = __version__
    description = (
        "Parses ProofMode proof bundles into location stamps, verifies "
        "their internal consistency and evaluates them against claims"
    )

    def parse_bundle(self, archive: bytes) -> ParsedBundle:
        """Decompress, classify and decode a proof bundle archive."""
        return parse_bundle_archive(archive)

    def create_stamp(self, parsed: ParsedBundle) -> Stamp:
        return build_stamp(parsed, source_version=self.version)

    def create(self, raw_signals: Mapping[str, Any]) -> Stamp:
        """
        Build an unsigned Stamp from host-collected raw signals.

        The archive is expected under raw_signals["data"]["zip_data"].

        Raises:
            TypeError: If the archive is missing or not bytes
        """
        archive = _zip_data(raw_signals)
        if archive is None:
            raise TypeError("ProofMode plugin requires signals.data.zip_data as bytes")
        return self.create_stamp(self.parse_bundle(archive))

    def verify(self, stamp: Stamp) -> VerificationResult:
        return verify_stamp(stamp)

    def evaluate(self, stamp: Stamp, claim: Claim) -> CredibilityVector:
        return evaluate_stamp(stamp, claim)


def _zip_data(raw_signals: Any) -> Optional[bytes]:
    data = raw_signals.get("data") if isinstance(raw_signals, Mapping) else None
    archive = data.get("zip_data") if isinstance(data, Mapping) else None
    if isinstance(archive, (bytes, bytearray, memoryview)):
        return bytes(archive)
    return None
