"""
Entry point for running batchguard as a module.

    python -m batchguard status nightly-report
"""

import sys

from batchguard.cli import main

if __name__ == "__main__":
    sys.exit(main())
