"""
Allow running the sync client as a module.

Usage:
    python -m tracker --sync
    python -m tracker --increment first --date 2025-03-01
"""

import sys

from .main import run

if __name__ == "__main__":
    sys.exit(run())
