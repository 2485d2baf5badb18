"""
Archive extraction for ProofStamp.

A ProofMode proof bundle is a ZIP file. This module is the only place
that knows about the container: it turns archive bytes into a plain
name -> bytes mapping, which is all the classifier consumes.
"""

from __future__ import annotations

import io
import logging
import zipfile
import zlib

from ..domain import ArchiveDecodeError

logger = logging.getLogger(__name__)

# macOS resource-fork entries added by Finder "Compress"
IGNORED_PREFIXES = ("__MACOSX/",)


def extract_archive(data: bytes) -> dict[str, bytes]:
    """
    Decompress a bundle archive into an entry name -> bytes mapping.

    Directory entries and resource-fork junk are skipped. Entry order
    follows the archive's central directory.

    Raises:
        ArchiveDecodeError: If data is not a readable ZIP container
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            entries: dict[str, bytes] = {}
            for info in zf.infolist():
                if info.is_dir() or info.filename.startswith(IGNORED_PREFIXES):
                    continue
                entries[info.filename] = zf.read(info)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError, RuntimeError) as e:
        raise ArchiveDecodeError(f"Invalid bundle archive: {e}")

    logger.debug("Extracted %d entries from bundle archive", len(entries))
    return entries
