# Evaluation package for ProofStamp
"""
Claim evaluation modules.

Scores how well a Stamp supports a Claim, where every component is
decomposable into human-readable reasons.
"""

from .scorer import evaluate_stamp, generate_explanation

__all__ = ["evaluate_stamp", "generate_explanation"]
