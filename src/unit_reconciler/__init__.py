"""
unit-reconciler: idempotent systemd service reconciliation.

PURPOSE: Write a service's unit file and environment file only when they are
missing or out of date, never over files this tool did not create, then
daemon-reload.
AI CONTEXT: The engine lives in reconciler.py; everything else is a
collaborator (codecs, file system, systemctl) or an outer surface (CLI, HTTP).

PACKAGE STRUCTURE:
- reconciler.py: Reconciliation engine (new_service, delete_service)
- service.py: ServiceHandle returned by a successful reconciliation
- models.py: UnitFile model and environment map equality
- unit_codec.py / env_codec.py: Text formats for the two files
- ownership.py: Ownership tag detection
- filesystem.py: Injectable file access with Found | Absent reads
- systemctl.py: Service manager client
- errors.py: Exception taxonomy
- config.py: Configuration constants and environment settings
- cli.py / web/: Command line and HTTP surfaces

QUICK START:
    from unit_reconciler import SystemctlClient, UnitFile, create_reconciler

    reconciler = create_reconciler(SystemctlClient(), "/etc/systemd/system")
    handle = reconciler.new_service("worker", unit, {"PORT": "8080"})
"""

from unit_reconciler.__version__ import (
    __author__,
    __copyright__,
    __description__,
    __license__,
    __title__,
    __url__,
    __version__,
    __version_date__,
)
from unit_reconciler.errors import (
    DecodeError,
    EncodeError,
    EnvFileNotManagedError,
    ManagerError,
    NotManagedError,
    ReconcilerError,
    UnitFileNotManagedError,
)
from unit_reconciler.models import InstallSection, ServiceSection, UnitFile, UnitSection
from unit_reconciler.reconciler import Reconciler, ServiceState, create_reconciler
from unit_reconciler.service import ServiceHandle
from unit_reconciler.systemctl import SystemctlClient

__all__ = [
    "__version__",
    "__version_date__",
    "__title__",
    "__description__",
    "__url__",
    "__author__",
    "__license__",
    "__copyright__",
    "DecodeError",
    "EncodeError",
    "EnvFileNotManagedError",
    "InstallSection",
    "ManagerError",
    "NotManagedError",
    "Reconciler",
    "ReconcilerError",
    "ServiceHandle",
    "ServiceSection",
    "ServiceState",
    "SystemctlClient",
    "UnitFile",
    "UnitFileNotManagedError",
    "UnitSection",
    "create_reconciler",
]
