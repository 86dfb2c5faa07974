#!/usr/bin/env python3
"""Entry point for running screencast as a module.

This allows the package to be invoked with:
    python -m screencast [arguments]
"""

import sys

from screencast.cli import main

if __name__ == "__main__":
    sys.exit(main())
