"""Version information for unit-reconciler."""

__version__ = "0.3.0"
__version_date__ = "2026-10-19"

__title__ = "unit_reconciler"
__description__ = "Idempotent systemd service reconciliation that never clobbers foreign unit files"
__url__ = "https://github.com/unit-reconciler/unit-reconciler"

__author__ = "unit-reconciler contributors"

__license__ = "MIT"
__copyright__ = "Copyright 2026 unit-reconciler contributors"

__all__ = [
    "__version__",
    "__version_date__",
    "__title__",
    "__description__",
    "__url__",
    "__author__",
    "__license__",
    "__copyright__",
]
