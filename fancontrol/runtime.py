"""Process-wide constants, exit codes, the PID file and the program name."""

from __future__ import annotations

import enum
import errno
import os
from contextlib import suppress
from typing import Union

from .nxjson import MAX_FILE_SIZE

VERSION = "0.2.8"
SYSCONFDIR = "/etc"
DATADIR = "/usr/share"
RUNSTATEDIR = "/var/run"

TEMPERATURE_FILTER_TIMESPAN = 6000  # milliseconds
MODEL_CONFIGS_DIR = f"{DATADIR}/nbfc/configs"
CONFIG_DIR = f"{SYSCONFDIR}/nbfc"
SERVICE_CONFIG = f"{SYSCONFDIR}/nbfc/nbfc.json"
PID_FILE = f"{RUNSTATEDIR}/nbfc_service.pid"
SOCKET_PATH = f"{RUNSTATEDIR}/nbfc_service.socket"

__all__ = [
    "MAX_FILE_SIZE",
    "ExitCode",
    "PidFileLocked",
    "write_pid",
    "remove_pid",
    "program_name",
]

_PID_FILE_MODE = 0o664


class ExitCode(enum.IntEnum):
    """Process exit statuses."""

    SUCCESS = 0
    FAILURE = 1
    CMDLINE = 2
    INIT = 3
    FATAL = 5


class PidFileLocked(FileExistsError):
    """Raised when the PID file already exists and a lock was requested."""


def write_pid(path: Union[str, os.PathLike] = PID_FILE, acquire_lock: bool = False) -> None:
    """Write the current process id to ``path``.

    With ``acquire_lock`` the file must not exist yet.
    """
    flags = os.O_CREAT | os.O_WRONLY | os.O_TRUNC
    if acquire_lock:
        flags |= os.O_EXCL
    try:
        fd = os.open(path, flags, _PID_FILE_MODE)
    except FileExistsError as exc:
        raise PidFileLocked(
            errno.EEXIST, "Failed to acquire lock file", os.fspath(path)
        ) from exc
    with os.fdopen(fd, "w", encoding="ascii") as handle:
        handle.write(str(os.getpid()))


def remove_pid(path: Union[str, os.PathLike] = PID_FILE) -> None:
    """Remove the PID file, ignoring errors."""
    with suppress(OSError):
        os.unlink(path)


def program_name(path: str) -> str:
    """Return the last component of ``path``; a trailing slash is kept."""
    slash = path.rfind("/", 0, max(len(path) - 1, 0))
    return path[slash + 1:] if slash >= 0 else path