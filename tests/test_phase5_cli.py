"""
Tests for Phase 5: Plugin Facade & CLI.

These tests verify:
1. Plugin facade wiring (create, verify, evaluate)
2. Raw-signal validation on create()
3. Pipeline signing with the bundle's own PGP material
4. CLI command output, JSON mode and exit status
5. CLI failures are reported, never raised
"""

import hashlib
import json

import pytest

from proofstamp import __version__
from proofstamp.cli.main import create_parser, main
from proofstamp.cli.pipeline import (
    SIGNATURE_ALGORITHM,
    SIGNER_SCHEME,
    BundleReport,
    run_pipeline,
    signatures_from_bundle,
)
from proofstamp.domain import ArchiveDecodeError, Claim, MissingMetadataError, Point, TimeWindow
from proofstamp.ingestion.bundle import parse_bundle_archive
from proofstamp.plugin import ProofModePlugin

CAPTURE_TIME = 1700000000


# =============================================================================
# PLUGIN TESTS
# =============================================================================

class TestPlugin:
    """Test the plugin facade."""

    def test_descriptor(self):
        """Name and version identify the plugin."""
        plugin = ProofModePlugin()

        assert plugin.name == "proofmode"
        assert plugin.version == __version__
        assert plugin.description

    def test_create_from_raw_signals(self, bundle_zip):
        """create() builds an unsigned stamp from zip_data."""
        stamp = ProofModePlugin().create({"data": {"zip_data": bundle_zip()}})

        assert stamp.location.geometry.coordinates == (-73.9857, 40.7484)
        assert stamp.source_version == __version__
        assert stamp.signatures == ()

    def test_create_accepts_bytearray(self, bundle_zip):
        """Any bytes-like archive is accepted."""
        stamp = ProofModePlugin().create({"data": {"zip_data": bytearray(bundle_zip())}})
        assert stamp.source_id == "proofmode"

    @pytest.mark.parametrize("raw_signals", [
        {},
        {"data": None},
        {"data": {}},
        {"data": {"zip_data": "not bytes"}},
        None,
    ])
    def test_create_requires_zip_bytes(self, raw_signals):
        """Missing or non-bytes zip_data is a TypeError."""
        with pytest.raises(TypeError, match="zip_data"):
            ProofModePlugin().create(raw_signals)

    def test_create_bad_archive(self):
        """Garbage archives propagate ArchiveDecodeError."""
        with pytest.raises(ArchiveDecodeError):
            ProofModePlugin().create({"data": {"zip_data": b"garbage"}})

    def test_parse_then_create_stamp(self, bundle_zip):
        """parse_bundle and create_stamp compose into create()."""
        plugin = ProofModePlugin()
        parsed = plugin.parse_bundle(bundle_zip())

        assert plugin.create_stamp(parsed) == plugin.create({"data": {"zip_data": bundle_zip()}})

    def test_unsigned_stamp_fails_verification(self, bundle_zip):
        """A stamp straight from create() has no signatures."""
        plugin = ProofModePlugin()
        result = plugin.verify(plugin.create({"data": {"zip_data": bundle_zip()}}))

        assert result.structure_valid is True
        assert result.signatures_valid is False

    def test_evaluate(self, signed_stamp):
        """evaluate() delegates to the scorer."""
        claim = Claim(
            location=Point.from_lat_lon(40.7484, -73.9857),
            radius=100,
            time=TimeWindow(CAPTURE_TIME - 60, CAPTURE_TIME + 3600),
        )
        vector = ProofModePlugin().evaluate(signed_stamp(), claim)

        assert vector.supports_claim is True


# =============================================================================
# PIPELINE TESTS
# =============================================================================

class TestPipeline:
    """Test pipeline orchestration."""

    def test_pipeline_signs_and_verifies(self, bundle_zip):
        """The bundle's own signature makes the stamp valid."""
        report = run_pipeline(bundle_zip())

        assert isinstance(report, BundleReport)
        assert report.stamp.is_signed
        assert report.verification.valid is True
        assert report.evaluation is None
        assert report.explanation is None

    def test_signature_identity(self, bundle_zip):
        """Signer is the SHA-256 of the armored public key."""
        parsed = parse_bundle_archive(bundle_zip())
        (signature,) = signatures_from_bundle(parsed)

        expected = hashlib.sha256(parsed.public_key.strip().encode("utf-8")).hexdigest()
        assert signature.signer.scheme == SIGNER_SCHEME
        assert signature.signer.value == expected
        assert signature.algorithm == SIGNATURE_ALGORITHM == "pgp"
        assert signature.value

    def test_no_public_key_no_signature(self, bundle_zip):
        """Without a public key nothing is attached."""
        report = run_pipeline(bundle_zip(include_public_key=False))

        assert not report.stamp.is_signed
        assert report.verification.signatures_valid is False

    def test_sign_disabled(self, bundle_zip):
        """sign=False leaves the stamp unsigned."""
        assert not run_pipeline(bundle_zip(), sign=False).stamp.is_signed

    def test_pipeline_with_claim(self, bundle_zip):
        """A claim adds an evaluation and explanation."""
        claim = Claim(
            location=Point.from_lat_lon(40.7484, -73.9857),
            radius=100,
            time=TimeWindow(CAPTURE_TIME - 60, CAPTURE_TIME + 3600),
        )
        report = run_pipeline(bundle_zip(), claim=claim)

        assert report.evaluation.supports_claim is True
        assert "supports the claim" in report.explanation
        assert "evaluation" in report.to_dict()

    def test_pipeline_propagates_parse_errors(self, zip_entries):
        """A bundle without metadata is an error, not an empty report."""
        with pytest.raises(MissingMetadataError):
            run_pipeline(zip_entries({"photo.jpg": b"img"}))


# =============================================================================
# CLI TESTS
# =============================================================================

class TestCLI:
    """Test CLI commands."""

    def test_no_command_prints_help(self, capsys):
        """Running without a command shows help."""
        assert main([]) == 0
        assert "proofstamp" in capsys.readouterr().out

    def test_parser_commands(self):
        """Every command parses."""
        parser = create_parser()

        assert parser.parse_args(["inspect", "b.zip"]).command == "inspect"
        assert parser.parse_args(["-v", "verify", "b.zip"]).verbose == 1
        args = parser.parse_args([
            "evaluate", "b.zip", "--lat", "1", "--lon", "2", "--start", "0", "--end", "1",
        ])
        assert args.radius == 100.0

    def test_inspect(self, bundle_path, capsys):
        """inspect lists entries and signals."""
        assert main(["inspect", bundle_path]) == 0
        out = capsys.readouterr().out

        assert "metadata-csv" in out
        assert "Location.Latitude: 40.7484" in out

    def test_inspect_json(self, bundle_path, capsys):
        """inspect --json emits the signal map."""
        assert main(["inspect", bundle_path, "--json"]) == 0
        data = json.loads(capsys.readouterr().out)

        assert data["format"] == "csv"
        assert data["signals"]["Location.Longitude"] == -73.9857
        assert data["entries"]["pubkey.asc"] == "public-key"

    def test_inspect_media(self, tmp_path, bundle_entries, zip_entries, capsys):
        """inspect names the captured media and whether it is signed."""
        entries = bundle_entries()
        entries["test-photo.jpg"] = b"jpeg-bytes"
        path = tmp_path / "media.zip"
        path.write_bytes(zip_entries(entries))

        assert main(["inspect", str(path)]) == 0
        assert "Media: test-photo.jpg (signed)" in capsys.readouterr().out

        assert main(["inspect", str(path), "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["mediaFile"] == "test-photo.jpg"
        assert data["mediaSigned"] is True

    def test_inspect_without_media(self, bundle_path, capsys):
        """A bundle with no media file reports none."""
        assert main(["inspect", bundle_path, "--json"]) == 0
        data = json.loads(capsys.readouterr().out)

        assert data["mediaFile"] is None
        assert data["mediaSigned"] is True

    def test_stamp_json(self, bundle_path, capsys):
        """stamp --json emits the serialized stamp."""
        assert main(["stamp", bundle_path, "--json"]) == 0
        data = json.loads(capsys.readouterr().out)

        assert data["location"]["geometry"]["coordinates"] == [-73.9857, 40.7484]
        assert data["temporalFootprint"] == {"start": CAPTURE_TIME, "end": CAPTURE_TIME + 1}
        assert data["signatures"][0]["algorithm"] == "pgp"

    def test_stamp_text(self, bundle_path, capsys):
        """stamp prints a summary."""
        assert main(["stamp", bundle_path]) == 0
        assert "EPSG:4326" in capsys.readouterr().out

    def test_verify(self, bundle_path, capsys):
        """verify passes a clean bundle."""
        assert main(["verify", bundle_path]) == 0
        assert "VALID" in capsys.readouterr().out

    def test_verify_unsigned_bundle_fails(self, tmp_path, bundle_zip, capsys):
        """verify exits 1 when the stamp is not valid."""
        path = tmp_path / "unsigned.zip"
        path.write_bytes(bundle_zip(include_public_key=False))

        assert main(["verify", str(path), "--json"]) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["signaturesValid"] is False

    def test_evaluate_json(self, bundle_path, capsys):
        """evaluate --json emits the credibility vector."""
        code = main([
            "evaluate", bundle_path,
            "--lat", "40.7484", "--lon", "-73.9857", "--radius", "100",
            "--start", str(CAPTURE_TIME - 60), "--end", str(CAPTURE_TIME + 3600),
            "--json",
        ])
        data = json.loads(capsys.readouterr().out)

        assert code == 0
        assert data["supportsClaim"] is True
        assert data["score"] == pytest.approx(0.82)

    def test_evaluate_text(self, bundle_path, capsys):
        """evaluate prints the explanation."""
        main([
            "evaluate", bundle_path,
            "--lat", "37.7749", "--lon", "-122.4194",
            "--start", str(CAPTURE_TIME), "--end", str(CAPTURE_TIME + 1),
        ])
        assert "does not support the claim" in capsys.readouterr().out

    def test_evaluate_rejects_inverted_window(self, bundle_path, capsys):
        """--end before --start is refused."""
        code = main([
            "evaluate", bundle_path, "--lat", "0", "--lon", "0",
            "--start", "10", "--end", "5",
        ])

        assert code == 1
        assert "--end" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        """A missing bundle is reported on stderr."""
        assert main(["verify", str(tmp_path / "nope.zip")]) == 1
        assert "ERROR" in capsys.readouterr().err

    def test_invalid_bundle(self, tmp_path, capsys):
        """A non-archive is reported on stderr."""
        path = tmp_path / "bad.zip"
        path.write_bytes(b"not a zip")

        assert main(["inspect", str(path)]) == 1
        assert "Invalid bundle archive" in capsys.readouterr().err

    def test_cli_is_read_only(self, bundle_path):
        """Running commands never modifies the bundle."""
        with open(bundle_path, "rb") as fh:
            before = fh.read()

        main(["stamp", bundle_path])
        main(["verify", bundle_path])

        with open(bundle_path, "rb") as fh:
            assert fh.read() == before
