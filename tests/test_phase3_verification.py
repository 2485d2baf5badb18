"""
Tests for Phase 3: Stamp Verification.

These tests verify:
1. A well-formed signed stamp is valid
2. Structure, signatures and signals are checked independently
3. Coordinate ranges and timestamp drift
4. Advisories are recorded without affecting validity
5. Verification never raises on malformed stamps
"""

from dataclasses import replace

from proofstamp.domain import Signature, Signer
from proofstamp.signals import (
    ACCURACY,
    DEVICECHECK_ATTESTATION,
    LATITUDE,
    LOCATION_TIME,
    LONGITUDE,
    PROVIDER,
    SAFETYNET_JWT,
    CanonicalSignals,
)
from proofstamp.verification import (
    MAX_TIMESTAMP_DRIFT_SECONDS,
    check_timestamp_drift,
    verify_stamp,
)


def with_signals(stamp, **updates):
    """Copy of stamp with signals updated by canonical key."""
    return replace(stamp, signals=stamp.signals.with_entries(updates))


# =============================================================================
# WELL-FORMED STAMP TESTS
# =============================================================================

class TestWellFormed:
    """Test the happy path."""

    def test_valid_stamp(self, signed_stamp):
        """A signed stamp from a clean bundle passes every check."""
        result = verify_stamp(signed_stamp())

        assert result.structure_valid is True
        assert result.signatures_valid is True
        assert result.signals_consistent is True
        assert result.valid is True

    def test_details_record_signatures(self, signed_stamp):
        """Signature count and algorithms are reported."""
        result = verify_stamp(signed_stamp())

        assert result.details["signature_count"] == 1
        assert result.details["signature_algorithms"] == ["pgp"]

    def test_zero_drift_recorded(self, signed_stamp):
        """Drift is reported even when it is zero."""
        result = verify_stamp(signed_stamp())
        assert result.details["timestamp_drift"] == 0

    def test_to_dict(self, signed_stamp):
        """Serialized results use the interoperable names."""
        data = verify_stamp(signed_stamp()).to_dict()

        assert data["valid"] is True
        assert data["structureValid"] is True
        assert data["signaturesValid"] is True
        assert data["signalsConsistent"] is True


# =============================================================================
# STRUCTURE TESTS
# =============================================================================

class TestStructure:
    """Test structural checks."""

    def test_wrong_source(self, signed_stamp):
        """A stamp from another source fails structure."""
        result = verify_stamp(replace(signed_stamp(), source_id="witnesschain"))

        assert result.structure_valid is False
        assert "source_mismatch" in result.details
        assert result.signatures_valid is True

    def test_wrong_schema_version(self, signed_stamp):
        """An unknown schema version fails structure."""
        result = verify_stamp(replace(signed_stamp(), schema_version="0.1"))

        assert result.structure_valid is False
        assert "schema_version_error" in result.details

    def test_missing_location(self, signed_stamp):
        """No location fails structure without raising."""
        result = verify_stamp(replace(signed_stamp(), location=None))

        assert result.structure_valid is False
        assert result.details["missing_location"] is True

    def test_missing_footprint(self, signed_stamp):
        """No temporal footprint fails structure without raising."""
        result = verify_stamp(replace(signed_stamp(), temporal_footprint=None))

        assert result.structure_valid is False
        assert result.details["missing_temporal_footprint"] is True

    def test_missing_signals(self, signed_stamp):
        """Signals must be a mapping."""
        result = verify_stamp(replace(signed_stamp(), signals=None))

        assert result.structure_valid is False
        assert result.details["missing_signals"] is True


# =============================================================================
# SIGNATURE TESTS
# =============================================================================

class TestSignatures:
    """Test signature presence and shape."""

    def test_no_signatures(self, signed_stamp):
        """An unsigned stamp is not valid."""
        result = verify_stamp(replace(signed_stamp(), signatures=()))

        assert result.signatures_valid is False
        assert result.valid is False
        assert result.details["no_signatures"] is True

    def test_empty_signature_value(self, signed_stamp):
        """A signature with no value fails."""
        bad = Signature(signer=Signer("pgp-fingerprint", "ABCD1234"), algorithm="pgp", value="")
        result = verify_stamp(replace(signed_stamp(), signatures=(bad,)))

        assert result.signatures_valid is False
        assert result.details["empty_signature"] is True

    def test_missing_signer(self, signed_stamp):
        """A signature with no signer identity fails."""
        bad = Signature(signer=Signer("pgp-fingerprint", ""), algorithm="pgp", value="sig")
        result = verify_stamp(replace(signed_stamp(), signatures=(bad,)))

        assert result.signatures_valid is False
        assert result.details["missing_signer"] is True

    def test_one_bad_signature_fails_all(self, signed_stamp):
        """Every signature must be well-formed."""
        stamp = signed_stamp()
        bad = Signature(signer=Signer("pgp-fingerprint", "X"), algorithm="pgp", value="")
        result = verify_stamp(stamp.with_signatures(bad))

        assert result.signatures_valid is False
        assert result.details["signature_count"] == 2


# =============================================================================
# SIGNAL CONSISTENCY TESTS
# =============================================================================

class TestSignalConsistency:
    """Test coordinate ranges and timestamp coherence."""

    def test_invalid_latitude(self, signed_stamp):
        """Latitude 999 is inconsistent."""
        stamp = replace(
            signed_stamp(),
            signals=CanonicalSignals({LATITUDE: 999, LONGITUDE: -73.9857}),
        )
        result = verify_stamp(stamp)

        assert result.signals_consistent is False
        assert result.details["invalid_latitude"] == 999

    def test_invalid_longitude(self, signed_stamp):
        """Longitude outside [-180, 180] is inconsistent."""
        result = verify_stamp(with_signals(signed_stamp(), **{LONGITUDE: -200}))

        assert result.signals_consistent is False
        assert result.details["invalid_longitude"] == -200

    def test_non_numeric_latitude(self, signed_stamp):
        """A string latitude is inconsistent."""
        result = verify_stamp(with_signals(signed_stamp(), **{LATITUDE: "north"}))

        assert result.signals_consistent is False
        assert result.details["invalid_latitude"] == "north"

    def test_absent_coordinates_are_not_inconsistent(self, signed_stamp):
        """Only present coordinate signals are range-checked."""
        stamp = replace(signed_stamp(), signals=CanonicalSignals({}))
        assert verify_stamp(stamp).signals_consistent is True

    def test_timestamp_drift_over_an_hour(self, signed_stamp):
        """Location.Time two hours from the footprint is inconsistent."""
        stamp = signed_stamp()
        later = (stamp.temporal_footprint.start + 7200) * 1000
        result = verify_stamp(with_signals(stamp, **{LOCATION_TIME: later}))

        assert result.signals_consistent is False
        assert result.details["timestamp_drift"] == 7200

    def test_timestamp_drift_within_an_hour(self, signed_stamp):
        """Half an hour of drift is tolerated."""
        stamp = signed_stamp()
        later = (stamp.temporal_footprint.start + 1800) * 1000
        result = verify_stamp(with_signals(stamp, **{LOCATION_TIME: later}))

        assert result.signals_consistent is True
        assert result.details["timestamp_drift"] == 1800

    def test_drift_limit_is_inclusive(self, signed_stamp):
        """Exactly the limit is still consistent."""
        stamp = signed_stamp()
        seconds = stamp.temporal_footprint.start + MAX_TIMESTAMP_DRIFT_SECONDS
        details = {}

        assert check_timestamp_drift({LOCATION_TIME: seconds}, stamp.temporal_footprint, details)
        assert details["timestamp_drift"] == MAX_TIMESTAMP_DRIFT_SECONDS

    def test_unparseable_location_time(self, signed_stamp):
        """A non-numeric Location.Time is an advisory, not a failure."""
        result = verify_stamp(with_signals(signed_stamp(), **{LOCATION_TIME: "soon"}))

        assert result.signals_consistent is True
        assert result.details["unparseable_location_time"] == "soon"

    def test_checks_are_independent(self, signed_stamp):
        """A signature failure does not mask a signal failure."""
        stamp = replace(
            signed_stamp(),
            signatures=(),
            signals=CanonicalSignals({LATITUDE: 999}),
        )
        result = verify_stamp(stamp)

        assert result.structure_valid is True
        assert result.signatures_valid is False
        assert result.signals_consistent is False


# =============================================================================
# ADVISORY TESTS
# =============================================================================

class TestAdvisories:
    """Test observations that never affect validity."""

    def test_loose_gps_accuracy(self, signed_stamp):
        """A GPS fix with accuracy above 100m is flagged."""
        result = verify_stamp(with_signals(signed_stamp(), **{ACCURACY: 150}))

        assert result.valid is True
        assert result.details["suspicious_gps_accuracy"] == 150

    def test_precise_network_fix(self, signed_stamp):
        """A network fix claiming under 5m is flagged."""
        stamp = with_signals(signed_stamp(), **{PROVIDER: "network", ACCURACY: 2})
        result = verify_stamp(stamp)

        assert result.valid is True
        assert result.details["suspicious_network_accuracy"] == 2

    def test_plausible_fix_not_flagged(self, signed_stamp):
        """A normal GPS fix has no advisory."""
        result = verify_stamp(signed_stamp())

        assert "suspicious_gps_accuracy" not in result.details
        assert "suspicious_network_accuracy" not in result.details

    def test_safetynet_summary(self, signed_stamp):
        """A decodable token is summarized."""
        result = verify_stamp(signed_stamp(include_safetynet=True))

        assert result.valid is True
        assert result.details["safety_net"]["basic_integrity"] is True
        assert result.details["safety_net"]["evaluation_type"] == "BASIC"

    def test_malformed_token(self, signed_stamp):
        """An undecodable token is recorded, the stamp stays valid."""
        result = verify_stamp(with_signals(signed_stamp(), **{SAFETYNET_JWT: "garbage"}))

        assert result.valid is True
        assert "attestation_decode_error" in result.details

    def test_devicecheck_present(self, signed_stamp):
        """A DeviceCheck token is noted."""
        result = verify_stamp(with_signals(signed_stamp(), **{DEVICECHECK_ATTESTATION: "tok"}))
        assert result.details["device_check_present"] is True


# =============================================================================
# ROBUSTNESS TESTS
# =============================================================================

class TestRobustness:
    """Test that verification never raises."""

    def test_everything_missing(self, signed_stamp):
        """A hollow stamp yields flags, not exceptions."""
        stamp = replace(
            signed_stamp(),
            location=None,
            temporal_footprint=None,
            signals=None,
            signatures=None,
        )
        result = verify_stamp(stamp)

        assert result.valid is False
        assert result.structure_valid is False
        assert result.signatures_valid is False

    def test_deterministic(self, signed_stamp):
        """Same stamp, same result."""
        stamp = signed_stamp()
        assert verify_stamp(stamp).to_dict() == verify_stamp(stamp).to_dict()
