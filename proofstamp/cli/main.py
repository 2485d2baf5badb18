"""
ProofStamp CLI — Read-Only Interface for ProofMode Bundles.

Phase 5: Local interface for inspecting, stamping, verifying and
evaluating proof bundles.

Commands:
    proofstamp inspect <bundle>    — Show bundle contents and signals
    proofstamp stamp <bundle>      — Build and sign a stamp
    proofstamp verify <bundle>     — Verify the stamp's internal validity
    proofstamp evaluate <bundle>   — Score the stamp against a claim

This CLI is READ-ONLY. It never modifies bundles and never hides
verification failures or advisories.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Optional

from .. import __version__
from ..domain import Claim, Point, ProofModeError, TimeWindow
from .pipeline import BundleReport, load_bundle, run_pipeline


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================

def print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def format_flag(value: bool) -> str:
    return "PASS" if value else "FAIL"


def format_details(details: dict[str, Any], indent: str = "  ") -> list[str]:
    lines = []
    for key, value in details.items():
        if key == "components":
            continue
        lines.append(f"{indent}• {key}: {value}")
    return lines


def format_inspection(report: BundleReport) -> str:
    """Entries by role plus every canonical signal."""
    bundle = report.parsed.bundle
    lines = [
        f"Bundle: {report.source}",
        "=" * 50,
        f"Metadata: {bundle.metadata.name} ({report.parsed.format})",
    ]
    if report.parsed.expected_hash:
        lines.append(f"Expected hash: {report.parsed.expected_hash}")
    if report.parsed.media_file_name:
        signed = "signed" if report.parsed.media_signature else "unsigned"
        lines.append(f"Media: {report.parsed.media_file_name} ({signed})")

    lines.append("")
    lines.append("ENTRIES:")
    for blob in bundle.blobs:
        role = bundle.roles[blob.name].value
        lines.append(f"  • [{role}] {blob.name} ({len(blob.data)} bytes)")

    lines.append("")
    lines.append(f"SIGNALS ({len(report.parsed.signals)}):")
    for key in sorted(report.parsed.signals):
        value = report.parsed.signals[key]
        lines.append(f"  • {key}: {value}")

    return "\n".join(lines)


def format_stamp(report: BundleReport) -> str:
    stamp = report.stamp
    lon, lat = stamp.location.coordinates
    lines = [
        f"Stamp for: {report.source}",
        "=" * 50,
        f"Schema:    {stamp.schema_version} ({stamp.source_id} {stamp.source_version})",
        f"Location:  {lat}, {lon} ({stamp.location.crs})",
        f"Footprint: {stamp.temporal_footprint.start} - {stamp.temporal_footprint.end}",
        f"Signals:   {len(stamp.signals)}",
        "",
        "SIGNATURES:",
    ]
    if not stamp.signatures:
        lines.append("  (unsigned)")
    for sig in stamp.signatures:
        lines.append(f"  • {sig.algorithm} by {sig.signer.scheme}:{sig.signer.value[:16]}")
    return "\n".join(lines)


def format_verification(report: BundleReport) -> str:
    result = report.verification
    lines = [
        f"Verification for: {report.source}",
        "=" * 50,
        f"Structure:   {format_flag(result.structure_valid)}",
        f"Signatures:  {format_flag(result.signatures_valid)}",
        f"Signals:     {format_flag(result.signals_consistent)}",
        "",
        f"Overall:     {'VALID' if result.valid else 'INVALID'}",
    ]
    if result.details:
        lines.append("")
        lines.append("DETAILS:")
        lines.extend(format_details(result.details))
    return "\n".join(lines)


def format_evaluation(report: BundleReport) -> str:
    lines = [
        f"Evaluation for: {report.source}",
        "=" * 50,
        report.explanation or "",
        "",
        "DETAILS:",
    ]
    lines.extend(format_details(report.evaluation.details))
    return "\n".join(lines)


# =============================================================================
# CLI COMMANDS
# =============================================================================

def _load_report(args: argparse.Namespace, claim: Optional[Claim] = None) -> Optional[BundleReport]:
    """Run the pipeline, printing the failure and returning None on error."""
    try:
        archive = load_bundle(args.bundle)
        return run_pipeline(archive, source=args.bundle, claim=claim)
    except (ProofModeError, OSError) as e:
        print("ERROR: Bundle could not be processed", file=sys.stderr)
        print(f"Reason: {e}", file=sys.stderr)
        return None


def cmd_inspect(args: argparse.Namespace) -> int:
    """Show bundle entries and decoded signals."""
    report = _load_report(args)
    if report is None:
        return 1

    if args.json:
        print_json({
            "source": report.source,
            "format": report.parsed.format,
            "metadata": report.parsed.bundle.metadata.name,
            "expectedHash": report.parsed.expected_hash,
            "mediaFile": report.parsed.media_file_name,
            "mediaSigned": report.parsed.media_signature is not None,
            "entries": {name: role.value for name, role in report.parsed.bundle.roles.items()},
            "signals": report.parsed.signals.to_dict(),
        })
    else:
        print(format_inspection(report))
    return 0


def cmd_stamp(args: argparse.Namespace) -> int:
    """Build a stamp and attach the bundle's own signature."""
    report = _load_report(args)
    if report is None:
        return 1

    if args.json:
        print_json(report.stamp.to_dict())
    else:
        print(format_stamp(report))
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify a stamp. Exit status 1 when it is not valid."""
    report = _load_report(args)
    if report is None:
        return 1

    if args.json:
        print_json(report.verification.to_dict())
    else:
        print(format_verification(report))
    return 0 if report.verification.valid else 1


def cmd_evaluate(args: argparse.Namespace) -> int:
    """Score a stamp against a claim given on the command line."""
    if args.end < args.start:
        print("ERROR: --end must not be before --start", file=sys.stderr)
        return 1

    claim = Claim(
        location=Point.from_lat_lon(args.lat, args.lon),
        radius=args.radius,
        time=TimeWindow(start=args.start, end=args.end),
    )
    report = _load_report(args, claim=claim)
    if report is None:
        return 1

    if args.json:
        print_json(report.evaluation.to_dict())
    else:
        print(format_evaluation(report))
    return 0


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def _add_bundle_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("bundle", help="Path to a ProofMode bundle (.zip)")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="proofstamp",
        description="ProofStamp — ProofMode Location Evidence Engine",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log pipeline progress (-vv for debug output)",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    # Inspect command
    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Show bundle entries and decoded signals",
    )
    _add_bundle_arguments(inspect_parser)
    inspect_parser.set_defaults(func=cmd_inspect)

    # Stamp command
    stamp_parser = subparsers.add_parser(
        "stamp",
        help="Build a signed stamp from a bundle",
    )
    _add_bundle_arguments(stamp_parser)
    stamp_parser.set_defaults(func=cmd_stamp)

    # Verify command
    verify_parser = subparsers.add_parser(
        "verify",
        help="Verify a bundle's stamp",
    )
    _add_bundle_arguments(verify_parser)
    verify_parser.set_defaults(func=cmd_verify)

    # Evaluate command
    evaluate_parser = subparsers.add_parser(
        "evaluate",
        help="Evaluate a bundle's stamp against a location claim",
    )
    _add_bundle_arguments(evaluate_parser)
    evaluate_parser.add_argument("--lat", type=float, required=True, help="Claim latitude")
    evaluate_parser.add_argument("--lon", type=float, required=True, help="Claim longitude")
    evaluate_parser.add_argument(
        "--radius", type=float, default=100.0, help="Claim radius in meters (default: 100)"
    )
    evaluate_parser.add_argument(
        "--start", type=int, required=True, help="Claim window start (epoch seconds)"
    )
    evaluate_parser.add_argument(
        "--end", type=int, required=True, help="Claim window end (epoch seconds)"
    )
    evaluate_parser.set_defaults(func=cmd_evaluate)

    return parser


def configure_logging(verbosity: int) -> None:
    if verbosity <= 0:
        return
    level = logging.INFO if verbosity == 1 else logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
