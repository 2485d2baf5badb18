"""
Canonical Signals — The normalized data contract for ProofStamp.

SYSTEM INVARIANT:
    Every metadata field that reaches a Stamp has passed through the alias
    table and numeric coercion below. Keys are unique, values are a finite
    number, a string, or a boolean. Nothing else.

Vocabularies covered by the alias table:
    CURRENT  — ProofMode Android CSV/JSON ("Location.Latitude", "CellInfo")
    IOS      — ProofMode iOS horizontal CSV ("Wifi MAC", "File Hash SHA256")
    LEGACY   — 2016-era ProofMode bundles ("CurrentDateTime0GMT", "SHA256")

Unrecognized keys are never discarded: they pass through unchanged and are
exposed on CanonicalSignals.extras.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Iterator, Optional, Union

SignalValue = Union[int, float, str, bool]


# =============================================================================
# CANONICAL FIELD NAMES
# =============================================================================

# GPS location
LATITUDE = "Location.Latitude"
LONGITUDE = "Location.Longitude"
PROVIDER = "Location.Provider"          # "gps", "network", "fused"
ACCURACY = "Location.Accuracy"          # Horizontal accuracy in meters
ALTITUDE = "Location.Altitude"
BEARING = "Location.Bearing"
SPEED = "Location.Speed"
LOCATION_TIME = "Location.Time"         # Fix time, usually milliseconds

# Network context
CELL_INFO = "CellInfo"
WIFI_MAC = "WiFi.MAC"
IPV4 = "IPv4"
IPV6 = "IPv6"
NETWORK = "Network"

# Device
DEVICE_ID = "DeviceID"
DEVICE_VENDOR_ID = "DeviceID.Vendor"
HARDWARE = "Hardware"
MANUFACTURER = "Manufacturer"
MODEL = "Model"
LANGUAGE = "Language"
LOCALE = "Locale"
SCREEN_SIZE = "ScreenSize"

# File / proof
PROOF_HASH = "ProofHash"
FILE_HASH = "FileHash"
MIME_TYPE = "MimeType"
FILE_NAME = "File.Name"
FILE_PATH = "File.Path"
FILE_SIZE = "File.Size"
FILE_MODIFIED = "File.Modified"
DATA_TYPE = "DataType"

# Timestamps
DATE_CREATED = "DateCreated"            # ISO 8601
TIMESTAMP = "Timestamp"                 # Unix seconds
PROOF_GENERATED = "ProofGenerated"

# Derived from bundle artifacts (added by the stamp builder)
SAFETYNET_JWT = "SafetyNet.JWT"
SAFETYNET_BASIC_INTEGRITY = "SafetyNet.BasicIntegrity"
SAFETYNET_CTS_PROFILE_MATCH = "SafetyNet.CtsProfileMatch"
DEVICECHECK_ATTESTATION = "DeviceCheck.Attestation"
HAS_OTS = "HasOTS"
HAS_PGP_KEY = "HasPGPKey"
PGP_PUBLIC_KEY = "PGP.PublicKey"
PGP_METADATA_SIGNATURE = "PGP.MetadataSignature"


# Fields parsed as numbers by the normalizer
NUMERIC_FIELDS = frozenset({
    LATITUDE,
    LONGITUDE,
    ACCURACY,
    ALTITUDE,
    BEARING,
    SPEED,
    LOCATION_TIME,
    FILE_SIZE,
    TIMESTAMP,
})

KNOWN_FIELDS = frozenset({
    LATITUDE, LONGITUDE, PROVIDER, ACCURACY, ALTITUDE, BEARING, SPEED,
    LOCATION_TIME, CELL_INFO, WIFI_MAC, IPV4, IPV6, NETWORK, DEVICE_ID,
    DEVICE_VENDOR_ID, HARDWARE, MANUFACTURER, MODEL, LANGUAGE, LOCALE,
    SCREEN_SIZE, PROOF_HASH, FILE_HASH, MIME_TYPE, FILE_NAME, FILE_PATH,
    FILE_SIZE, FILE_MODIFIED, DATA_TYPE, DATE_CREATED, TIMESTAMP,
    PROOF_GENERATED, SAFETYNET_JWT, SAFETYNET_BASIC_INTEGRITY,
    SAFETYNET_CTS_PROFILE_MATCH, DEVICECHECK_ATTESTATION, HAS_OTS,
    HAS_PGP_KEY, PGP_PUBLIC_KEY, PGP_METADATA_SIGNATURE,
})


# =============================================================================
# ALIAS TABLE (lower-cased spelling -> canonical name)
# =============================================================================

# Static data, not logic. Every canonical name maps to itself through its
# lower-cased spelling so normalization is idempotent.
SIGNAL_ALIASES: dict[str, str] = {
    # --- CURRENT: dotted ProofMode names ---
    "location.latitude": LATITUDE,
    "location.longitude": LONGITUDE,
    "location.provider": PROVIDER,
    "location.accuracy": ACCURACY,
    "location.altitude": ALTITUDE,
    "location.bearing": BEARING,
    "location.speed": SPEED,
    "location.time": LOCATION_TIME,
    "cellinfo": CELL_INFO,
    "wifi.mac": WIFI_MAC,
    "ipv4": IPV4,
    "ipv6": IPV6,
    "network": NETWORK,
    "deviceid": DEVICE_ID,
    "deviceid.vendor": DEVICE_VENDOR_ID,
    "hardware": HARDWARE,
    "manufacturer": MANUFACTURER,
    "model": MODEL,
    "proofhash": PROOF_HASH,
    "filehash": FILE_HASH,
    "file.hash": FILE_HASH,
    "mimetype": MIME_TYPE,
    "file.name": FILE_NAME,
    "file.path": FILE_PATH,
    "file.size": FILE_SIZE,
    "file.modified": FILE_MODIFIED,
    "datecreated": DATE_CREATED,
    "timestamp": TIMESTAMP,
    "proofgenerated": PROOF_GENERATED,

    # --- Bare names ---
    "latitude": LATITUDE,
    "longitude": LONGITUDE,
    "accuracy": ACCURACY,
    "altitude": ALTITUDE,
    "bearing": BEARING,
    "speed": SPEED,
    "provider": PROVIDER,

    # --- IOS: space-separated and run-together names ---
    "location latitude": LATITUDE,
    "location longitude": LONGITUDE,
    "location provider": PROVIDER,
    "location accuracy": ACCURACY,
    "location altitude": ALTITUDE,
    "location bearing": BEARING,
    "location speed": SPEED,
    "location time": LOCATION_TIME,
    "locationlatitude": LATITUDE,
    "locationlongitude": LONGITUDE,
    "locationprovider": PROVIDER,
    "locationaccuracy": ACCURACY,
    "locationaltitude": ALTITUDE,
    "locationbearing": BEARING,
    "locationspeed": SPEED,
    "locationtime": LOCATION_TIME,
    "cell info": CELL_INFO,
    "wifi mac": WIFI_MAC,
    "wifimac": WIFI_MAC,
    "device id": DEVICE_ID,
    "deviceid vendor": DEVICE_VENDOR_ID,
    "device id vendor": DEVICE_VENDOR_ID,
    "mime type": MIME_TYPE,
    "proof hash": PROOF_HASH,
    "file hash": FILE_HASH,
    "file hash sha256": FILE_HASH,
    "filename": FILE_NAME,
    "file name": FILE_NAME,
    "file path": FILE_PATH,
    "filepath": FILE_PATH,
    "file size": FILE_SIZE,
    "filesize": FILE_SIZE,
    "file modified": FILE_MODIFIED,
    "filemodified": FILE_MODIFIED,
    "date created": DATE_CREATED,
    "proof generated": PROOF_GENERATED,

    # --- LEGACY: 2016-era ProofMode names ---
    "currentdatetime0gmt": TIMESTAMP,
    "sha256": FILE_HASH,
    "file": FILE_NAME,
    "modified": FILE_MODIFIED,
    "language": LANGUAGE,
    "locale": LOCALE,
    "datatype": DATA_TYPE,
    "networktype": NETWORK,
    "screensize": SCREEN_SIZE,
}


# =============================================================================
# CANONICAL SIGNALS
# =============================================================================

def is_finite_number(value: Any) -> bool:
    """True for int/float values that are finite. Booleans are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


class CanonicalSignals(Mapping):
    """
    Immutable mapping of canonical field name to signal value.

    Behaves like a read-only dict for arbitrary keys, and exposes the
    well-known fields as typed accessors. Numeric accessors return None
    when the field is absent or failed numeric parsing.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping[str, SignalValue]] = None):
        self._data = MappingProxyType(dict(data or {}))

    def __getitem__(self, key: str) -> SignalValue:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"CanonicalSignals({dict(self._data)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._data) == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def with_entries(self, entries: Mapping[str, SignalValue]) -> CanonicalSignals:
        """Return a new CanonicalSignals with entries added or replaced."""
        merged = dict(self._data)
        merged.update(entries)
        return CanonicalSignals(merged)

    def to_dict(self) -> dict[str, SignalValue]:
        return dict(self._data)

    def number(self, key: str) -> Optional[float]:
        """Numeric value of key, or None if absent or not a finite number."""
        value = self._data.get(key)
        return value if is_finite_number(value) else None

    def text(self, key: str) -> Optional[str]:
        value = self._data.get(key)
        return value if isinstance(value, str) else None

    @property
    def extras(self) -> Mapping[str, SignalValue]:
        """Unrecognized vendor fields, kept for forward compatibility."""
        return MappingProxyType(
            {k: v for k, v in self._data.items() if k not in KNOWN_FIELDS}
        )

    @property
    def latitude(self) -> Optional[float]:
        return self.number(LATITUDE)

    @property
    def longitude(self) -> Optional[float]:
        return self.number(LONGITUDE)

    @property
    def accuracy(self) -> Optional[float]:
        return self.number(ACCURACY)

    @property
    def provider(self) -> Optional[str]:
        return self.text(PROVIDER)

    @property
    def location_time(self) -> Optional[float]:
        return self.number(LOCATION_TIME)

    @property
    def timestamp(self) -> Optional[float]:
        return self.number(TIMESTAMP)

    @property
    def date_created(self) -> Optional[str]:
        return self.text(DATE_CREATED)

    @property
    def file_hash(self) -> Optional[str]:
        return self.text(FILE_HASH)

    @property
    def cell_info(self) -> Optional[str]:
        return self.text(CELL_INFO)

    @property
    def wifi_mac(self) -> Optional[str]:
        return self.text(WIFI_MAC)


# =============================================================================
# NORMALIZATION
# =============================================================================

def canonical_key(raw_key: str) -> str:
    """Resolve a raw metadata key through the alias table."""
    return SIGNAL_ALIASES.get(raw_key.lower(), raw_key)


def parse_number(text: str) -> Optional[Union[int, float]]:
    """
    Parse a numeric signal value.

    Integral literals stay integers ("1024" -> 1024) so millisecond
    timestamps keep full precision. Returns None for anything that is not
    a finite number ("n/a", "nan", "inf").
    """
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def normalize_value(key: str, value: Any) -> Optional[SignalValue]:
    """
    Normalize one value for canonical key.

    Returns None when the value must be dropped (empty after trimming).
    Already-typed values pass through so normalization is idempotent.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else str(value)

    text = str(value).strip()
    if not text:
        return None

    if key in NUMERIC_FIELDS:
        number = parse_number(text)
        return number if number is not None else text
    return text


def normalize_signals(raw: Mapping[str, Any]) -> CanonicalSignals:
    """
    Map raw key/value pairs to CanonicalSignals.

    Never fails: unknown keys pass through unchanged, unparseable numeric
    values are kept as their trimmed string. When two raw spellings resolve
    to the same canonical key, the later one wins.
    """
    signals: dict[str, SignalValue] = {}

    for raw_key, raw_value in raw.items():
        key = canonical_key(raw_key)
        value = normalize_value(key, raw_value)
        if value is None:
            continue
        signals[key] = value

    return CanonicalSignals(signals)
