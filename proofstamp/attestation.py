"""
Attestation token decoding for ProofStamp.

ProofMode Android bundles may carry a Google SafetyNet / Play Integrity
token (<hash>.gst): a JWS of the form header.payload.signature.

Only the payload is decoded. The certificate chain in the header is NOT
validated, so the decoded claims describe what the token says, not
whether it is trustworthy.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, Optional

from .domain import AttestationDecodeError


@dataclass(frozen=True)
class AttestationResult:
    """Claims extracted from a SafetyNet / Play Integrity token payload."""
    basic_integrity: bool
    cts_profile_match: bool
    evaluation_type: Optional[str] = None
    apk_package_name: Optional[str] = None
    timestamp_ms: Optional[int] = None
    payload: dict[str, Any] = field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        """The fields worth reporting in verification details."""
        return {
            "basic_integrity": self.basic_integrity,
            "cts_profile_match": self.cts_profile_match,
            "evaluation_type": self.evaluation_type,
        }


def b64url_decode(value: str) -> bytes:
    """Decode unpadded base64url."""
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("ascii"))


def decode_attestation_token(token: str) -> AttestationResult:
    """
    Decode a SafetyNet / Play Integrity JWS payload.

    Raises:
        AttestationDecodeError: If the token is not three dot-separated
            parts, or the payload is not base64url-encoded JSON object.
    """
    parts = token.strip().split(".")
    if len(parts) != 3:
        raise AttestationDecodeError(
            f"Expected 3 token segments, got {len(parts)}"
        )

    try:
        payload = json.loads(b64url_decode(parts[1]).decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise AttestationDecodeError(f"Invalid token payload: {e}")

    if not isinstance(payload, dict):
        raise AttestationDecodeError("Token payload is not a JSON object")

    timestamp_ms = payload.get("timestampMs")
    if isinstance(timestamp_ms, bool) or not isinstance(timestamp_ms, int):
        timestamp_ms = None

    return AttestationResult(
        basic_integrity=bool(payload.get("basicIntegrity")),
        cts_profile_match=bool(payload.get("ctsProfileMatch")),
        evaluation_type=payload.get("evaluationType"),
        apk_package_name=payload.get("apkPackageName"),
        timestamp_ms=timestamp_ms,
        payload=payload,
    )
