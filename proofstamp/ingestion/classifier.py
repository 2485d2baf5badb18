"""
Bundle Classifier for ProofStamp.

Phase 1: Assign every archive entry a role by filename pattern.

Expected bundle structure:
    <sha256>.proof.csv          — sensor metadata (CSV)
    <sha256>.proof.csv.asc      — PGP signature of CSV
    <sha256>.proof.json         — sensor metadata (JSON)
    <sha256>.proof.json.asc     — PGP signature of JSON
    <original-filename>.asc     — PGP detached signature of media
    <sha256>.gst                — SafetyNet / Play Integrity token
    <sha256>.devicecheck        — Apple DeviceCheck attestation
    <sha256>.ots                — OpenTimestamps proof
    pubkey.asc                  — PGP public key
    <original-filename>         — the captured media

Rules are an ordered table, evaluated top-down, first match wins.
Precedence lives in the table, not in nested conditionals.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from ..domain import MissingMetadataError

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

PUBLIC_KEY_NAME = "pubkey.asc"

MEDIA_EXTENSIONS = frozenset({
    # Images
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".heif",
    ".bmp", ".tif", ".tiff", ".dng",
    # Video
    ".mp4", ".mov", ".m4v", ".3gp", ".webm", ".mkv", ".avi",
    # Audio
    ".mp3", ".m4a", ".aac", ".wav", ".ogg", ".opus", ".flac", ".amr",
})

HASHED_CSV_PATTERN = re.compile(r"^[a-f0-9]{64}\.proof\.csv$", re.IGNORECASE)


# =============================================================================
# ROLES & BLOBS
# =============================================================================

class BlobRole(Enum):
    """Role of an archive entry inside a proof bundle."""
    METADATA_CSV = "metadata-csv"
    METADATA_JSON = "metadata-json"
    METADATA_SIGNATURE = "metadata-signature"
    PUBLIC_KEY = "public-key"
    ATTESTATION_TOKEN = "attestation-token"
    ALTERNATE_ATTESTATION = "alternate-attestation"
    TIMESTAMP_PROOF = "timestamp-proof"
    DOCUMENTATION = "documentation"
    MEDIA_SIGNATURE = "media-signature"
    MEDIA_FILE = "media-file"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class RawBlob:
    """One archive entry. Created once at extraction, never mutated."""
    name: str
    data: bytes

    @property
    def basename(self) -> str:
        return self.name.rsplit("/", 1)[-1]

    def text(self) -> str:
        """Decode as UTF-8, tolerating a BOM and replacing invalid bytes."""
        return self.data.decode("utf-8-sig", errors="replace")


# =============================================================================
# RULE TABLE
# =============================================================================

def _basename(lower: str) -> str:
    return lower.rsplit("/", 1)[-1]


def _extension(lower: str) -> str:
    base = _basename(lower)
    dot = base.rfind(".")
    return base[dot:] if dot > 0 else ""


@dataclass(frozen=True)
class ClassificationRule:
    """
    One (predicate, role) pair.

    A fallback rule's match is only selected when no non-fallback entry
    holds the same role.
    """
    name: str
    predicate: Callable[[str], bool]
    role: BlobRole
    fallback: bool = False


CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "csv_metadata",
        lambda n: n.endswith(".proof.csv"),
        BlobRole.METADATA_CSV,
    ),
    ClassificationRule(
        "json_metadata",
        lambda n: n.endswith(".proof.json"),
        BlobRole.METADATA_JSON,
    ),
    ClassificationRule(
        "public_key",
        lambda n: _basename(n) == PUBLIC_KEY_NAME,
        BlobRole.PUBLIC_KEY,
    ),
    ClassificationRule(
        "csv_signature",
        lambda n: n.endswith(".proof.csv.asc"),
        BlobRole.METADATA_SIGNATURE,
    ),
    ClassificationRule(
        "json_signature",
        lambda n: n.endswith(".proof.json.asc"),
        BlobRole.METADATA_SIGNATURE,
        fallback=True,
    ),
    ClassificationRule(
        "safetynet_token",
        lambda n: n.endswith(".gst"),
        BlobRole.ATTESTATION_TOKEN,
    ),
    ClassificationRule(
        "devicecheck_token",
        lambda n: n.endswith(".devicecheck"),
        BlobRole.ALTERNATE_ATTESTATION,
    ),
    ClassificationRule(
        "opentimestamps_proof",
        lambda n: n.endswith(".ots"),
        BlobRole.TIMESTAMP_PROOF,
    ),
    ClassificationRule(
        "documentation",
        lambda n: n.endswith(".txt"),
        BlobRole.DOCUMENTATION,
    ),
    ClassificationRule(
        "media_signature",
        lambda n: (
            n.endswith(".asc")
            and "proof" not in n
            and _basename(n) != PUBLIC_KEY_NAME
        ),
        BlobRole.MEDIA_SIGNATURE,
    ),
    ClassificationRule(
        "media_file",
        lambda n: _extension(n) in MEDIA_EXTENSIONS,
        BlobRole.MEDIA_FILE,
    ),
)


def match_rule(name: str) -> Optional[ClassificationRule]:
    """Return the first rule matching name, or None (unclassified)."""
    lower = name.lower()
    for rule in CLASSIFICATION_RULES:
        if rule.predicate(lower):
            return rule
    return None


def classify_name(name: str) -> BlobRole:
    """Role for a single entry name."""
    rule = match_rule(name)
    return rule.role if rule else BlobRole.UNCLASSIFIED


def extract_expected_hash(name: str) -> Optional[str]:
    """
    Content hash encoded in a metadata filename.

    e.g., "ab12...ef.proof.csv" -> "ab12...ef" (64 hex chars), else None
    """
    base = name.rsplit("/", 1)[-1]
    if HASHED_CSV_PATTERN.match(base):
        return base[: -len(".proof.csv")]
    return None


# =============================================================================
# CLASSIFIED BUNDLE
# =============================================================================

@dataclass(frozen=True)
class ClassifiedBundle:
    """
    Blobs chosen for each role, plus every blob in archive order.

    Holds references to the RawBlob objects, never copies. Exactly one
    metadata source is selected; CSV wins over JSON.
    """
    blobs: tuple[RawBlob, ...]
    roles: Mapping[str, BlobRole]
    metadata: RawBlob
    metadata_role: BlobRole
    public_key: Optional[RawBlob] = None
    metadata_signature: Optional[RawBlob] = None
    attestation_token: Optional[RawBlob] = None
    alternate_attestation: Optional[RawBlob] = None
    timestamp_proof: Optional[RawBlob] = None
    media_signature: Optional[RawBlob] = None
    media_file: Optional[RawBlob] = None
    expected_hash: Optional[str] = None

    @property
    def metadata_format(self) -> str:
        return "csv" if self.metadata_role == BlobRole.METADATA_CSV else "json"

    @property
    def media_file_name(self) -> Optional[str]:
        return self.media_file.name if self.media_file else None

    @property
    def public_key_text(self) -> Optional[str]:
        return self.public_key.text() if self.public_key else None

    @property
    def attestation_token_text(self) -> Optional[str]:
        return self.attestation_token.text().strip() if self.attestation_token else None

    @property
    def alternate_attestation_text(self) -> Optional[str]:
        return self.alternate_attestation.text().strip() if self.alternate_attestation else None

    def blobs_with_role(self, role: BlobRole) -> list[RawBlob]:
        return [b for b in self.blobs if self.roles.get(b.name) == role]


def _select(
    blobs: list[RawBlob],
    matched: dict[str, ClassificationRule],
    role: BlobRole,
) -> Optional[RawBlob]:
    """First blob holding role, preferring non-fallback rule matches."""
    candidates = [b for b in blobs if b.name in matched and matched[b.name].role == role]
    primary = [b for b in candidates if not matched[b.name].fallback]
    chosen = primary or candidates
    if len(chosen) > 1:
        logger.warning(
            "Bundle has %d entries for role %s, using %s",
            len(chosen), role.value, chosen[0].name,
        )
    return chosen[0] if chosen else None


def classify_entries(entries: Mapping[str, bytes]) -> ClassifiedBundle:
    """
    Classify extracted archive entries into a ClassifiedBundle.

    Args:
        entries: Entry name -> bytes, in archive order

    Returns:
        ClassifiedBundle with one blob per role where available

    Raises:
        MissingMetadataError: If no .proof.csv and no .proof.json is present
    """
    blobs = [RawBlob(name=name, data=bytes(data)) for name, data in entries.items()]

    matched: dict[str, ClassificationRule] = {}
    roles: dict[str, BlobRole] = {}
    for blob in blobs:
        rule = match_rule(blob.name)
        if rule is not None:
            matched[blob.name] = rule
        roles[blob.name] = rule.role if rule else BlobRole.UNCLASSIFIED
        logger.debug("Classified %s as %s", blob.name, roles[blob.name].value)

    csv_metadata = _select(blobs, matched, BlobRole.METADATA_CSV)
    json_metadata = _select(blobs, matched, BlobRole.METADATA_JSON)

    if csv_metadata is not None:
        metadata, metadata_role = csv_metadata, BlobRole.METADATA_CSV
        if json_metadata is not None:
            logger.info("Bundle has both CSV and JSON metadata, using CSV")
    elif json_metadata is not None:
        metadata, metadata_role = json_metadata, BlobRole.METADATA_JSON
    else:
        raise MissingMetadataError(
            "ProofMode bundle missing metadata (no .proof.csv or .proof.json found)"
        )

    expected_hash = (
        extract_expected_hash(metadata.name)
        if metadata_role == BlobRole.METADATA_CSV
        else None
    )

    return ClassifiedBundle(
        blobs=tuple(blobs),
        roles=MappingProxyType(roles),
        metadata=metadata,
        metadata_role=metadata_role,
        public_key=_select(blobs, matched, BlobRole.PUBLIC_KEY),
        metadata_signature=_select(blobs, matched, BlobRole.METADATA_SIGNATURE),
        attestation_token=_select(blobs, matched, BlobRole.ATTESTATION_TOKEN),
        alternate_attestation=_select(blobs, matched, BlobRole.ALTERNATE_ATTESTATION),
        timestamp_proof=_select(blobs, matched, BlobRole.TIMESTAMP_PROOF),
        media_signature=_select(blobs, matched, BlobRole.MEDIA_SIGNATURE),
        media_file=_select(blobs, matched, BlobRole.MEDIA_FILE),
        expected_hash=expected_hash,
    )
