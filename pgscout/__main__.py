"""
Entry point for running pgscout as a module.

Usage:
    python -m pgscout serve -H localhost -U postgres
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
