"""
ProofStamp CLI entry point.

Usage:
    python -m proofstamp.cli inspect bundle.zip
    python -m proofstamp.cli stamp bundle.zip
    python -m proofstamp.cli verify bundle.zip
    python -m proofstamp.cli evaluate bundle.zip --lat 40.7 --lon -74.0 --start 0 --end 1
"""

import sys
from .main import main

if __name__ == "__main__":
    sys.exit(main())
