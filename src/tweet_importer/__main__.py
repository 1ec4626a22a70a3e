#!/usr/bin/env python3
"""Entry point for running the importer as a module."""

import sys

from tweet_importer.main import main

if __name__ == "__main__":
    sys.exit(main())
