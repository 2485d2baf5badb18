"""
Proof Bundle Parsing for ProofStamp.

Phase 1 entry point: archive -> classified entries -> decoded metadata
-> canonical signals.

Pipeline:
    1. Extract archive entries (archive.py)
    2. Classify entries by filename (classifier.py)
    3. Decode the selected metadata entry (metadata.py)
    4. Normalize raw fields into CanonicalSignals (signals.py)

Any failure here is fatal: without decodable metadata there is nothing
to build a Stamp from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from ..signals import CanonicalSignals, normalize_signals
from .archive import extract_archive
from .classifier import ClassifiedBundle, classify_entries
from .metadata import DecodedMetadata, decode_metadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedBundle:
    """
    A fully parsed proof bundle.

    bundle    — classified archive entries
    metadata  — raw metadata map as decoded from the bundle
    signals   — canonical, typed signals derived from metadata
    """
    bundle: ClassifiedBundle
    metadata: DecodedMetadata
    signals: CanonicalSignals

    @property
    def format(self) -> str:
        return self.metadata.format

    @property
    def expected_hash(self) -> Optional[str]:
        return self.bundle.expected_hash

    @property
    def public_key(self) -> Optional[str]:
        return self.bundle.public_key_text

    @property
    def attestation_token(self) -> Optional[str]:
        return self.bundle.attestation_token_text

    @property
    def alternate_attestation(self) -> Optional[str]:
        return self.bundle.alternate_attestation_text

    @property
    def metadata_signature(self) -> Optional[bytes]:
        blob = self.bundle.metadata_signature
        return blob.data if blob else None

    @property
    def media_signature(self) -> Optional[bytes]:
        blob = self.bundle.media_signature
        return blob.data if blob else None

    @property
    def timestamp_proof(self) -> Optional[bytes]:
        blob = self.bundle.timestamp_proof
        return blob.data if blob else None

    @property
    def media_file_name(self) -> Optional[str]:
        return self.bundle.media_file_name


def parse_bundle(entries: Mapping[str, bytes]) -> ParsedBundle:
    """
    Parse already-extracted bundle entries.

    Raises:
        MissingMetadataError: If no metadata entry exists
        MetadataJSONError: If JSON metadata is malformed
    """
    bundle = classify_entries(entries)
    metadata = decode_metadata(bundle.metadata, bundle.metadata_role)
    signals = normalize_signals(metadata.raw)

    logger.info(
        "Parsed bundle %s: %d signals from %s metadata",
        bundle.metadata.name, len(signals), metadata.format,
    )

    return ParsedBundle(bundle=bundle, metadata=metadata, signals=signals)


def parse_bundle_archive(data: bytes) -> ParsedBundle:
    """
    Parse a proof bundle ZIP.

    Raises:
        ArchiveDecodeError: If data is not a readable archive
        MissingMetadataError: If no metadata entry exists
        MetadataJSONError: If JSON metadata is malformed
    """
    return parse_bundle(extract_archive(data))
