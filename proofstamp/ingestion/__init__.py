# Ingestion package for ProofStamp
"""
Bundle ingestion: archive extraction, filename classification,
metadata decoding and signal normalization.

Every failure in this package is fatal and propagates to the caller.
"""
