"""
CLI entry point for unit-reconciler.

PURPOSE: Command-line interface over the reconciliation engine.
AI CONTEXT: Thin layer - parses arguments, builds a Reconciler, maps
ReconcilerError/OSError to exit code 1. All decisions live in reconciler.py.

USAGE:
    # Reconcile a service from a unit file on disk
    unit-reconciler apply worker ./worker.service --env PORT=8080

    # Reconcile, then enable and start it
    unit-reconciler apply worker ./worker.service --enable --start

    # Show what is on disk for a service
    unit-reconciler status worker

    # Disable, stop and remove a service's unit file
    unit-reconciler delete worker

    # Run the HTTP API
    unit-reconciler serve --port 8000

GLOBAL OPTIONS:
    --unit-dir DIR   Unit file directory (default: $UNIT_RECONCILER_UNIT_DIR
                     or /etc/systemd/system/)
    --user           Use the per-user manager (systemctl --user)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from .config import Config
from .errors import EncodeError, ReconcilerError
from .reconciler import build_reconciler

if TYPE_CHECKING:
    from .filesystem import FileSystem
    from .reconciler import Reconciler

# Exit codes
EXIT_OK = 0
EXIT_FAILURE = 1


@lru_cache(maxsize=1)
def _get_logger() -> logging.Logger:
    """Get module logger (cached for thread safety)."""
    logging.basicConfig(level=logging.INFO)
    return logging.getLogger(__name__)


def _log(message: str, *, level: int = logging.INFO) -> None:
    """Log a CLI message at the given level."""
    _get_logger().log(level, message)


def _print_json(data: dict[str, Any]) -> None:
    # stdout carries the machine-readable result; logs go to stderr
    print(json.dumps(data, indent=2, sort_keys=True))


def parse_env_assignments(assignments: list[str]) -> dict[str, str]:
    """
    Parse repeated --env KEY=VALUE options.

    Args:
        assignments: Raw option values.

    Returns:
        Variable name -> value; later assignments win.

    Raises:
        EncodeError: If an assignment has no '=' or an empty name.

    Example:
        >>> parse_env_assignments(["PORT=8080", "MODE=a=b"])
        {'PORT': '8080', 'MODE': 'a=b'}
    """
    env: dict[str, str] = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise EncodeError(f"Expected KEY=VALUE, got {item!r}")
        env[key] = value
    return env


def run_apply(
    name: str,
    unit_path: str,
    env_assignments: list[str] | None = None,
    env_file: str | None = None,
    *,
    enable: bool = False,
    start: bool = False,
    reconciler: Reconciler,
    filesystem: FileSystem | None = None,
) -> dict[str, Any]:
    """
    Reconcile a service from a local unit file and env options.

    The unit file at unit_path is the desired definition; it is parsed with
    the unit codec, so it may or may not carry the ownership tag. Variables
    from env_file are loaded first and --env assignments override them.

    Args:
        name: Service name without suffix.
        unit_path: Path of the desired unit file.
        env_assignments: KEY=VALUE strings.
        env_file: Path of a KEY=VALUE file with desired variables.
        enable: Enable the unit after reconciling.
        start: Start the unit after reconciling (with enable: enable --now).
        reconciler: Engine to apply with.
        filesystem: FileSystem for reading inputs. Defaults to RealFileSystem.

    Returns:
        The resulting ServiceHandle as a dict.

    Raises:
        ReconcilerError: From the engine or codecs.
        OSError: If an input file cannot be read.
    """
    from .env_codec import decode_env
    from .filesystem import RealFileSystem
    from .unit_codec import unmarshal_unit_file

    fs = filesystem or RealFileSystem()
    unit = unmarshal_unit_file(fs.read_text(unit_path))

    env: dict[str, str] = {}
    if env_file:
        env.update(decode_env(fs.read_text(env_file)))
    env.update(parse_env_assignments(env_assignments or []))

    handle = reconciler.new_service(name, unit, env)
    if enable:
        handle.enable(start_now=start)
    elif start:
        handle.start()

    _log(f"Applied {handle.unit_name} -> {handle.path}")
    return handle.to_dict()


def run_delete(name: str, *, reconciler: Reconciler) -> None:
    """
    Disable, stop and remove a managed service's unit file.

    Raises:
        FileNotFoundError: If there is no unit file for name.
        UnitFileNotManagedError: If the unit file is not managed.
        ManagerError: If systemctl disable fails.
    """
    handle = reconciler.load_service(name)
    reconciler.delete_service(handle)
    _log(f"Deleted {handle.unit_name}")


def run_status(name: str, *, reconciler: Reconciler) -> dict[str, Any]:
    """Classify the files on disk for name."""
    return reconciler.inspect(name).to_dict()


def run_api(
    host: str = Config.DEFAULT_HOST,
    port: int = Config.DEFAULT_PORT,
    *,
    reconciler: Reconciler | None = None,
) -> None:
    """
    Launch the HTTP API.

    Args:
        host: Network interface to bind to. Default '127.0.0.1'.
        port: TCP port. Default 8000.
        reconciler: Engine the API applies with. Defaults to one built
            from configuration.

    Returns:
        None. Blocks until server shutdown (Ctrl+C).

    Raises:
        OSError: If port is already in use.
    """
    from .web import run_api as start_web

    _log(f"Starting API at http://{host}:{port}")
    start_web(host=host, port=port, reconciler=reconciler)


def main() -> int:
    """
    Main CLI entry point with subcommand routing.

    Subcommands:
    - apply NAME UNIT_FILE [--env KEY=VALUE]... [--env-file PATH] [--enable] [--start]
    - delete NAME
    - status NAME
    - serve [--host HOST] [--port PORT]

    Returns:
        0 on success, 1 if the operation failed.

    Raises:
        SystemExit: On --help or argument parsing errors (code 2).

    Example:
        >>> # From command line:
        >>> # unit-reconciler apply worker worker.service --env PORT=8080
        >>> sys.exit(main())
    """
    from .__version__ import __version__

    parser = argparse.ArgumentParser(
        prog="unit-reconciler",
        description="Reconcile systemd services without clobbering foreign unit files",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--unit-dir",
        default=None,
        help="Unit file directory (default: $UNIT_RECONCILER_UNIT_DIR or "
        f"{Config.DEFAULT_UNIT_FILE_DIR})",
    )
    parser.add_argument(
        "--user",
        action="store_true",
        default=None,
        help="Use the per-user service manager (systemctl --user)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Available commands")

    # Apply command
    apply_parser = subparsers.add_parser("apply", help="Reconcile a service from a unit file")
    apply_parser.add_argument("name", help="Service name without .service")
    apply_parser.add_argument("unit_file", help="Path of the desired unit file")
    apply_parser.add_argument(
        "--env",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Environment variable for the unit's EnvironmentFile (repeatable)",
    )
    apply_parser.add_argument("--env-file", default=None, help="Read variables from a KEY=VALUE file")
    apply_parser.add_argument("--enable", action="store_true", help="Enable the unit afterwards")
    apply_parser.add_argument("--start", action="store_true", help="Start the unit afterwards")

    # Delete command
    delete_parser = subparsers.add_parser("delete", help="Disable, stop and remove a service")
    delete_parser.add_argument("name", help="Service name without .service")

    # Status command
    status_parser = subparsers.add_parser("status", help="Show ownership of a service's files")
    status_parser.add_argument("name", help="Service name without .service")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument(
        "--host",
        default=Config.DEFAULT_HOST,
        help=f"Bind address (default: {Config.DEFAULT_HOST})",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=Config.DEFAULT_PORT,
        help=f"Port number (default: {Config.DEFAULT_PORT})",
    )

    args = parser.parse_args()

    try:
        reconciler = build_reconciler(args.unit_dir, args.user)
        if args.command == "serve":
            run_api(host=args.host, port=args.port, reconciler=reconciler)
        elif args.command == "apply":
            _print_json(
                run_apply(
                    args.name,
                    args.unit_file,
                    args.env,
                    args.env_file,
                    enable=args.enable,
                    start=args.start,
                    reconciler=reconciler,
                )
            )
        elif args.command == "delete":
            run_delete(args.name, reconciler=reconciler)
        elif args.command == "status":
            _print_json(run_status(args.name, reconciler=reconciler))
    except (ReconcilerError, OSError, ValueError) as e:
        _log(f"{args.command} failed: {e}", level=logging.ERROR)
        return EXIT_FAILURE

    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
