#!/usr/bin/env python3
"""
statesync CLI entry point for `python -m statesync`.

Usage:
    python -m statesync lint src/
    python -m statesync lint src/worker.rs --format json
"""

import sys
from statesync.cli import main

if __name__ == "__main__":
    sys.exit(main())
