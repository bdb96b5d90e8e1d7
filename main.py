#!/usr/bin/env python3
"""Main entry point for the unique code generator."""

import sys

from uniqcodes.cli import main

if __name__ == "__main__":
    sys.exit(main())
