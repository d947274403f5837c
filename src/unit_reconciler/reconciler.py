"""
Reconciliation engine for unit-reconciler.

PURPOSE: Bring a unit file and its environment file on disk in line with a
desired state without ever overwriting a file this tool did not write.
AI CONTEXT: This is the core. Everything else (codecs, file system,
systemctl) is a collaborator injected or imported here.

DECISION TABLE (applied to the unit file, then to the env file if the unit
references one):

    on disk                          action              returns
    -------------------------------  ------------------  -------
    absent                           write (tagged)      True
    present, no ownership tag        raise NotManaged    -
    present, tagged, equal content   nothing             False
    present, tagged, different       overwrite (tagged)  True

After both files are settled, new_service() runs daemon-reload exactly
once, even if nothing was written.

FAILURE SEMANTICS:
- No retries and no rollback. An error on the env file leaves an already
  written unit file in place; the manager has not been reloaded yet.
- delete_service() disables (and stops) before removing the unit file. If
  removal fails the unit stays disabled with its file still present.
- Concurrent callers in different processes are not synchronized; run one
  reconciler per host.

USAGE:
    reconciler = create_reconciler(SystemctlClient(), "/etc/systemd/system")
    handle = reconciler.new_service("worker", unit, {"PORT": "8080"})
    reconciler.delete_service(handle)
"""

from __future__ import annotations

import errno
import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from .config import Config
from .env_codec import decode_env, encode_env
from .errors import EnvFileNotManagedError, NotManagedError, UnitFileNotManagedError
from .filesystem import Found, read_file, write_file_atomic
from .models import UnitFile, env_equal
from .ownership import Ownership, classify, tag_content
from .service import ServiceHandle
from .unit_codec import marshal_unit_file, unmarshal_unit_file

if TYPE_CHECKING:
    from .filesystem import FileSystem
    from .systemctl import Systemctl

__all__ = ["Reconciler", "ServiceState", "build_reconciler", "create_reconciler"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceState:
    """
    Read-only view of what is on disk for a service name.

    Attributes:
        name: Service name.
        path: Unit file path.
        unit_file: Ownership of the unit file.
        env_path: EnvironmentFile path from a managed unit, else None.
        env_file: Ownership of the env file, or None if there is no
            managed unit or it references no env file.
    """

    name: str
    path: str
    unit_file: Ownership
    env_path: str | None = None
    env_file: Ownership | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for JSON serialization."""
        return {
            "name": self.name,
            "path": self.path,
            "unit_file": self.unit_file.value,
            "env_path": self.env_path,
            "env_file": self.env_file.value if self.env_file else None,
        }


class Reconciler:
    """
    Reconciles desired service definitions with unit files on disk.

    Business context: Deployments re-run on every push. Re-applying the
    same definition must be a no-op on disk, and a hand-written unit that
    happens to share a name must stop the deployment instead of being
    replaced.
    """

    def __init__(
        self,
        systemctl: Systemctl,
        unit_file_dir: str,
        filesystem: FileSystem | None = None,
    ) -> None:
        """
        Initialize the reconciler.

        Args:
            systemctl: Service manager client.
            unit_file_dir: Directory unit files are written to. A trailing
                slash is added if missing.
            filesystem: FileSystem for file operations. Defaults to
                RealFileSystem for production use.
        """
        from .filesystem import RealFileSystem

        if not unit_file_dir.endswith("/"):
            unit_file_dir += "/"
        self._systemctl = systemctl
        self._unit_file_dir = unit_file_dir
        self._fs: FileSystem = filesystem or RealFileSystem()

    @property
    def unit_file_dir(self) -> str:
        """Unit file directory, always ending in '/'."""
        return self._unit_file_dir

    @property
    def filesystem(self) -> FileSystem:
        """FileSystem all unit and env file I/O goes through."""
        return self._fs

    def unit_file_path(self, name: str) -> str:
        """
        Compose the unit file path for a service name.

        Args:
            name: Service name without suffix, e.g. 'worker'.

        Returns:
            '<unit_file_dir><name>.service'

        Raises:
            ValueError: If name is empty, '.'/'..', or contains a path
                separator, whitespace or NUL.

        Example:
            >>> Reconciler(client, "/run/units").unit_file_path("worker")
            '/run/units/worker.service'
        """
        if not name or name in (".", ".."):
            raise ValueError(f"Invalid service name: {name!r}")
        if "/" in name or "\x00" in name or any(ch.isspace() for ch in name):
            raise ValueError(f"Invalid service name: {name!r}")
        return f"{self._unit_file_dir}{name}{Config.UNIT_FILE_SUFFIX}"

    # =========================================================================
    # FILE RECONCILIATION
    # =========================================================================

    def _reconcile(
        self,
        path: str,
        desired: T,
        *,
        decode: Callable[[str], T],
        encode: Callable[[T], str],
        equal: Callable[[T, T], bool],
        not_managed: type[NotManagedError],
    ) -> bool:
        result = read_file(self._fs, path)
        ownership = classify(result)

        if ownership is Ownership.FOREIGN:
            logger.warning(f"Refusing to overwrite unmanaged file: {path}")
            raise not_managed(path)

        if isinstance(result, Found):
            loaded = decode(result.content)
            if equal(loaded, desired):
                logger.debug(f"Up to date: {path}")
                return False

        content = tag_content(encode(desired))
        write_file_atomic(self._fs, path, content)
        if ownership is Ownership.ABSENT:
            logger.info(f"Created {path}")
        else:
            logger.info(f"Updated {path}")
        return True

    def reconcile_unit_file(self, desired: UnitFile, path: str) -> bool:
        """
        Make the unit file at path match desired.

        Args:
            desired: Unit model to write.
            path: Unit file path.

        Returns:
            True if the file was written, False if it already matched.

        Raises:
            UnitFileNotManagedError: If the file exists without the
                ownership tag. Nothing is written.
            UnitFileDecodeError: If the managed file cannot be parsed.
            EncodeError: If desired cannot be serialized.
            OSError: On any file system failure other than absence.
        """
        return self._reconcile(
            path,
            desired,
            decode=unmarshal_unit_file,
            encode=marshal_unit_file,
            equal=lambda a, b: a == b,
            not_managed=UnitFileNotManagedError,
        )

    def reconcile_env_file(self, desired: Mapping[str, str], path: str) -> bool:
        """
        Make the environment file at path match desired.

        Comparison ignores key order.

        Args:
            desired: Variable name -> value.
            path: Env file path, taken verbatim from the unit.

        Returns:
            True if the file was written, False if it already matched.

        Raises:
            EnvFileNotManagedError: If the file exists without the
                ownership tag. Nothing is written.
            EnvFileDecodeError: If the managed file cannot be parsed.
            EncodeError: If desired contains an invalid variable name.
            OSError: On any file system failure other than absence.
        """
        return self._reconcile(
            path,
            dict(desired),
            decode=decode_env,
            encode=encode_env,
            equal=env_equal,
            not_managed=EnvFileNotManagedError,
        )

    # =========================================================================
    # SERVICE OPERATIONS
    # =========================================================================

    def new_service(
        self,
        name: str,
        unit: UnitFile,
        env: Mapping[str, str] | None = None,
    ) -> ServiceHandle:
        """
        Reconcile a service's unit file and env file, then daemon-reload.

        The env file is only touched when unit.environment_file is set; env
        is ignored otherwise. daemon-reload runs once after both steps,
        including when neither step wrote anything.

        Args:
            name: Service name without suffix.
            unit: Desired unit model.
            env: Desired environment map.

        Returns:
            ServiceHandle bundling the client, name, unit, path and env.

        Raises:
            ValueError: If name is invalid.
            UnitFileNotManagedError / EnvFileNotManagedError: On foreign files.
            DecodeError / EncodeError / OSError: From the collaborators.
            ManagerError: If daemon-reload fails (files are already written).
        """
        env_map = dict(env or {})
        path = self.unit_file_path(name)

        unit_changed = self.reconcile_unit_file(unit, path)

        env_changed = False
        if unit.environment_file is not None:
            env_changed = self.reconcile_env_file(env_map, unit.environment_file)

        self._systemctl.daemon_reload()
        logger.info(
            f"Reconciled {name}: unit {'written' if unit_changed else 'unchanged'}, "
            f"env {'written' if env_changed else 'unchanged'}"
        )
        return ServiceHandle(self._systemctl, name, unit, path, env_map)

    def delete_service(self, handle: ServiceHandle) -> None:
        """
        Disable and stop a service, then remove its unit file.

        The environment file is left in place and no daemon-reload is run.

        Args:
            handle: Handle returned by new_service() or load_service().

        Raises:
            ManagerError: If disable fails; the unit file is not removed.
            OSError: If removal fails; the unit is already disabled.
        """
        handle.disable(stop_now=True)
        self._fs.remove(handle.path)
        logger.info(f"Removed {handle.path}")

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def inspect(self, name: str) -> ServiceState:
        """
        Classify the files on disk for a service without changing anything.

        Args:
            name: Service name without suffix.

        Returns:
            ServiceState. The env file is only examined for a managed unit.

        Raises:
            ValueError: If name is invalid.
            UnitFileDecodeError: If a managed unit file cannot be parsed.
            OSError: On file system failures other than absence.
        """
        path = self.unit_file_path(name)
        result = read_file(self._fs, path)
        ownership = classify(result)
        if not isinstance(result, Found) or ownership is not Ownership.MANAGED:
            return ServiceState(name, path, ownership)

        env_path = unmarshal_unit_file(result.content).environment_file
        if env_path is None:
            return ServiceState(name, path, ownership)
        env_ownership = classify(read_file(self._fs, env_path))
        return ServiceState(name, path, ownership, env_path, env_ownership)

    def load_service(self, name: str) -> ServiceHandle:
        """
        Rebuild a handle for a service reconciled earlier.

        Reads the managed unit file and, when it references a managed env
        file, that file too. A foreign or absent env file yields an empty
        env map.

        Args:
            name: Service name without suffix.

        Returns:
            ServiceHandle reflecting what is on disk.

        Raises:
            FileNotFoundError: If there is no unit file.
            UnitFileNotManagedError: If the unit file is foreign.
            UnitFileDecodeError / EnvFileDecodeError: On unparsable files.
        """
        path = self.unit_file_path(name)
        result = read_file(self._fs, path)
        if not isinstance(result, Found):
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)
        if classify(result) is not Ownership.MANAGED:
            raise UnitFileNotManagedError(path)

        unit = unmarshal_unit_file(result.content)
        env: dict[str, str] = {}
        if unit.environment_file is not None:
            env_result = read_file(self._fs, unit.environment_file)
            if isinstance(env_result, Found) and classify(env_result) is Ownership.MANAGED:
                env = decode_env(env_result.content)
        return ServiceHandle(self._systemctl, name, unit, path, env)


def create_reconciler(
    systemctl: Systemctl,
    unit_file_dir: str,
    filesystem: FileSystem | None = None,
) -> Reconciler:
    """
    Create a Reconciler, making sure the unit file directory exists.

    Args:
        systemctl: Service manager client.
        unit_file_dir: Directory for unit files; created if missing.
        filesystem: Optional FileSystem (defaults to RealFileSystem).

    Returns:
        Ready-to-use Reconciler.

    Raises:
        OSError: If the directory cannot be created.

    Example:
        >>> reconciler = create_reconciler(SystemctlClient(), "/run/units")
        >>> reconciler.unit_file_dir
        '/run/units/'
    """
    reconciler = Reconciler(systemctl, unit_file_dir, filesystem)
    fs = reconciler.filesystem
    if not fs.is_dir(reconciler.unit_file_dir.rstrip("/") or "/"):
        fs.makedirs(reconciler.unit_file_dir.rstrip("/"), exist_ok=True)
        logger.info(f"Created unit file directory {reconciler.unit_file_dir}")
    return reconciler


def build_reconciler(
    unit_dir: str | None = None,
    user_mode: bool | None = None,
    filesystem: FileSystem | None = None,
) -> Reconciler:
    """
    Build a Reconciler backed by systemctl from options and configuration.

    Args:
        unit_dir: Unit file directory. Defaults to Config.get_unit_file_dir().
        user_mode: Use systemctl --user. Defaults to Config.is_user_mode().
        filesystem: Optional FileSystem (defaults to RealFileSystem).

    Returns:
        Reconciler with its unit directory created.

    Raises:
        OSError: If the unit directory cannot be created.
    """
    from .systemctl import SystemctlClient

    if unit_dir is None:
        unit_dir = Config.get_unit_file_dir()
    if user_mode is None:
        user_mode = Config.is_user_mode()
    return create_reconciler(SystemctlClient(user_mode=user_mode), unit_dir, filesystem)
