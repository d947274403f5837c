"""
Package entry point for python -m execution.

USAGE:
    python -m unit_reconciler apply worker worker.service --env PORT=8080
    python -m unit_reconciler status worker
    python -m unit_reconciler delete worker
    python -m unit_reconciler serve --port 8000
"""

import sys

from unit_reconciler.cli import main

if __name__ == "__main__":
    sys.exit(main())
