"""
Module execution entry point for the analytics module.

This allows the analytics module to be run directly as:
    python -m modules.analytics [args...]

Which will invoke the CLI interface.
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
