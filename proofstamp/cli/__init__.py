# CLI package for ProofStamp
"""
Read-only CLI interface for running ProofStamp locally.

Commands:
    proofstamp inspect   — Show bundle contents and signals
    proofstamp stamp     — Build and sign a stamp
    proofstamp verify    — Verify a stamp
    proofstamp evaluate  — Score a stamp against a claim
"""
