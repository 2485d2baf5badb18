# ProofStamp: ProofMode Location Evidence Engine
# Phase 0: Canonical Stamp & Signal Model

"""
Core invariant: A Stamp never exists without valid coordinates and a
decodable metadata source. It is built whole or not at all.

Everything downstream of the Stamp (verification, evaluation) is a pure
report: it degrades to flags and details, it never raises.
"""

__version__ = "0.1.0"
