"""
Pipeline Orchestrator for ProofStamp.

Phase 5: Ties all phases together into a single execution flow.

Pipeline stages:
    1. Bundle parsing (Phase 1)
    2. Stamp building (Phase 2)
    3. Signing with the bundle's own PGP material
    4. Verification (Phase 3)
    5. Claim evaluation (Phase 4), when a claim is supplied

The pipeline is read-only and deterministic.
No configuration. No persistence.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..builder import build_stamp
from ..domain import (
    Claim,
    CredibilityVector,
    Signature,
    Signer,
    Stamp,
    VerificationResult,
)
from ..evaluation import evaluate_stamp, generate_explanation
from ..ingestion.bundle import ParsedBundle, parse_bundle_archive
from ..verification import verify_stamp

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

SIGNATURE_ALGORITHM = "pgp"
SIGNER_SCHEME = "pgp-public-key-sha256"


# =============================================================================
# BUNDLE REPORT
# =============================================================================

@dataclass
class BundleReport:
    """
    Complete result of running one bundle through the pipeline.

    Exposes:
    - The parsed bundle and the signed stamp
    - The verification result
    - The credibility vector and its explanation, when a claim was given
    """
    source: str
    parsed: ParsedBundle
    stamp: Stamp
    verification: VerificationResult
    evaluation: Optional[CredibilityVector] = None

    @property
    def explanation(self) -> Optional[str]:
        if self.evaluation is None:
            return None
        return generate_explanation(self.evaluation)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "source": self.source,
            "format": self.parsed.format,
            "stamp": self.stamp.to_dict(),
            "verification": self.verification.to_dict(),
        }
        if self.evaluation is not None:
            result["evaluation"] = self.evaluation.to_dict()
        return result


# =============================================================================
# SIGNING
# =============================================================================

def signatures_from_bundle(parsed: ParsedBundle) -> tuple[Signature, ...]:
    """
    Signatures the bundle itself carries.

    The detached PGP signature over the metadata is attached as-is,
    identified by the SHA-256 of the armored public key that shipped
    alongside it. It is not cryptographically checked.
    """
    signature = parsed.metadata_signature
    public_key = parsed.public_key
    if not signature or not public_key:
        return ()

    fingerprint = hashlib.sha256(public_key.strip().encode("utf-8")).hexdigest()
    return (
        Signature(
            signer=Signer(scheme=SIGNER_SCHEME, value=fingerprint),
            algorithm=SIGNATURE_ALGORITHM,
            value=base64.b64encode(signature).decode("ascii"),
        ),
    )


# =============================================================================
# PIPELINE EXECUTION
# =============================================================================

def load_bundle(path: str) -> bytes:
    """Read a bundle archive from disk. OSError propagates."""
    return Path(path).read_bytes()


def run_pipeline(
    archive: bytes,
    source: str = "<bytes>",
    claim: Optional[Claim] = None,
    sign: bool = True,
    reference_time: Optional[datetime] = None,
) -> BundleReport:
    """
    Execute the full ProofStamp pipeline on one bundle.

    Args:
        archive: Bundle ZIP content
        source: Label for the bundle in reports (usually its path)
        claim: Optional claim to evaluate the stamp against
        sign: Attach the bundle's own PGP signature to the stamp
        reference_time: Clock fallback when the bundle has no timestamps

    Returns:
        BundleReport with stamp, verification and optional evaluation

    Raises:
        ProofModeError: If the bundle cannot be parsed or has no coordinates
    """
    parsed = parse_bundle_archive(archive)
    stamp = build_stamp(parsed, reference_time=reference_time)

    if sign:
        signatures = signatures_from_bundle(parsed)
        if signatures:
            stamp = stamp.with_signatures(*signatures)
        else:
            logger.info("Bundle %s carries no signature/public key pair", source)

    verification = verify_stamp(stamp)
    evaluation = evaluate_stamp(stamp, claim) if claim is not None else None

    return BundleReport(
        source=source,
        parsed=parsed,
        stamp=stamp,
        verification=verification,
        evaluation=evaluation,
    )
