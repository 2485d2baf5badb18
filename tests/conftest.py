"""
Shared fixtures for ProofStamp tests.

Synthetic ProofMode bundles are built in memory. PGP material and
attestation tokens are structurally present but not cryptographically
valid.
"""

import base64
import io
import json
import zipfile
from typing import Optional

import pytest

from proofstamp.builder import build_stamp
from proofstamp.domain import Signature, Signer, Stamp
from proofstamp.ingestion.bundle import parse_bundle


FILE_HASH_HEX = "a" * 64
DEFAULT_LOCATION_TIME_MS = 1700000000000

FAKE_SIGNATURE = "\n".join([
    "-----BEGIN PGP SIGNATURE-----",
    "",
    "iQEzBAABCAAdFiEE1234567890abcdef1234567890abcdef12345678",
    "=FAKE",
    "-----END PGP SIGNATURE-----",
])

FAKE_PUBLIC_KEY = "\n".join([
    "-----BEGIN PGP PUBLIC KEY BLOCK-----",
    "",
    "mQENBFakeKeyBlockFakeKeyBlockFakeKeyBlock",
    "=FAKE",
    "-----END PGP PUBLIC KEY BLOCK-----",
])


# =============================================================================
# BUILDERS
# =============================================================================

def _b64url(payload: dict) -> str:
    raw = json.dumps(payload).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def make_attestation_token(
    basic_integrity: bool = True,
    cts_profile_match: bool = True,
    timestamp_ms: int = DEFAULT_LOCATION_TIME_MS,
) -> str:
    """Fake SafetyNet JWS with a decodable payload."""
    header = _b64url({"alg": "RS256", "typ": "JWT"})
    payload = _b64url({
        "basicIntegrity": basic_integrity,
        "ctsProfileMatch": cts_profile_match,
        "evaluationType": "BASIC",
        "apkPackageName": "org.witness.proofmode",
        "timestampMs": timestamp_ms,
    })
    return f"{header}.{payload}.fakesignature"


def make_bundle_entries(
    lat: Optional[float] = 40.7484,
    lon: Optional[float] = -73.9857,
    accuracy: Optional[float] = 10,
    provider: str = "gps",
    timestamp: Optional[int] = DEFAULT_LOCATION_TIME_MS,
    include_network_context: bool = True,
    include_public_key: bool = True,
    include_safetynet: bool = False,
    include_ots: bool = False,
    include_devicecheck: bool = False,
    include_txt: bool = False,
) -> dict[str, bytes]:
    """Entries of a minimal ProofMode Android bundle (vertical CSV)."""
    rows = ["key,value"]
    if lat is not None:
        rows.append(f"Location.Latitude,{lat}")
    if lon is not None:
        rows.append(f"Location.Longitude,{lon}")
    if accuracy is not None:
        rows.append(f"Location.Accuracy,{accuracy}")
    rows.extend([
        f"Location.Provider,{provider}",
        "Location.Altitude,50",
        "Location.Bearing,180",
        "Location.Speed,0",
    ])
    if timestamp is not None:
        rows.append(f"Location.Time,{timestamp}")
    if include_network_context:
        rows.extend([
            "CellInfo,310:260:12345:67890",
            "WiFi.MAC,AA:BB:CC:DD:EE:FF",
        ])
    rows.extend([
        "IPv4,192.168.1.1",
        "Network,WiFi",
        "DeviceID,test-device-001",
        "Hardware,generic",
        "Manufacturer,TestCo",
        "Model,TestPhone",
        "MimeType,image/jpeg",
        "File.Name,test-photo.jpg",
        "File.Size,1024",
        "DateCreated,2023-11-14T12:00:00Z",
    ])

    entries = {
        f"{FILE_HASH_HEX}.proof.csv": "\n".join(rows).encode("utf-8"),
        f"{FILE_HASH_HEX}.proof.csv.asc": FAKE_SIGNATURE.encode("utf-8"),
        "test-photo.jpg.asc": FAKE_SIGNATURE.encode("utf-8"),
    }
    if include_public_key:
        entries["pubkey.asc"] = FAKE_PUBLIC_KEY.encode("utf-8")
    if include_safetynet:
        entries[f"{FILE_HASH_HEX}.gst"] = make_attestation_token().encode("utf-8")
    if include_ots:
        entries[f"{FILE_HASH_HEX}.ots"] = b"fake-ots-proof"
    if include_devicecheck:
        entries[f"{FILE_HASH_HEX}.devicecheck"] = b"fake-devicecheck-token"
    if include_txt:
        entries["HowToVerifyProofData.txt"] = b"Verification instructions"
    return entries


def make_zip(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def make_bundle_zip(**options) -> bytes:
    """Synthetic bundle archive; options as for make_bundle_entries."""
    return make_zip(make_bundle_entries(**options))


def make_signed_stamp(**options) -> Stamp:
    """Stamp from a synthetic bundle with one well-formed PGP signature."""
    stamp = build_stamp(parse_bundle(make_bundle_entries(**options)))
    return stamp.with_signatures(
        Signature(
            signer=Signer(scheme="pgp-fingerprint", value="ABCD1234"),
            algorithm="pgp",
            value="fake-pgp-signature",
            timestamp=1700000000,
        )
    )


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def bundle_entries():
    """Factory for bundle entry mappings."""
    return make_bundle_entries


@pytest.fixture
def bundle_zip():
    """Factory for bundle archives."""
    return make_bundle_zip


@pytest.fixture
def zip_entries():
    """Zip an arbitrary entry mapping."""
    return make_zip


@pytest.fixture
def signed_stamp():
    """Factory for signed stamps."""
    return make_signed_stamp


@pytest.fixture
def attestation_token():
    """Factory for fake attestation tokens."""
    return make_attestation_token


@pytest.fixture
def bundle_path(tmp_path):
    """Default bundle written to disk."""
    path = tmp_path / "bundle.zip"
    path.write_bytes(make_bundle_zip())
    return str(path)
