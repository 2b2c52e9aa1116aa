"""Main entry point for running mathpad_pkg as a module.

This allows running MathPad with:
    python -m mathpad_pkg notes.txt
    python -m mathpad_pkg --health-check
    python -m mathpad_pkg -e "2+2"

This is equivalent to running:
    python -m mathpad_pkg.cli
"""

from __future__ import annotations

import sys

from .cli import main_entry

if __name__ == "__main__":
    sys.exit(main_entry())
