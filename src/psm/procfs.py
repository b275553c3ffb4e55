"""Access to the /proc pseudo-filesystem.

Covers process enumeration, display-name resolution and the root
privilege check. Every read is scoped to a single file and a vanished
process is reported as None, never as an exception.
"""

import errno
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import psutil
import structlog

log = structlog.get_logger()

COMM_MAX = 16  # Bytes of argv[0] compared against the exe path

# errno values meaning "the process is gone or was never ours to read"
_GONE_ERRNOS = {errno.ENOENT, errno.ESRCH, errno.EACCES, errno.EPERM}


class PsmError(Exception):
    """A condition that aborts the whole run."""


class PrivilegeError(PsmError):
    """Not running with enough privilege to read other users' reports."""


class EnumerationError(PsmError):
    """The process table could not be listed."""


class NamePolicy(Enum):
    """How a display name is chosen from the exe link and argv[0].

    LEXICAL keeps the historical comparison: exe >= argv[0][:16] selects
    the exe basename. EXACT uses argv[0] whenever it differs from the exe.
    """

    LEXICAL = "lexical"
    EXACT = "exact"


@dataclass(frozen=True)
class ProcFS:
    """Paths into a procfs tree rooted at `root`."""

    root: Path = Path("/proc")

    def path(self, *parts: object) -> Path:
        return self.root.joinpath(*(str(p) for p in parts))

    def exe(self, pid: int) -> Path:
        return self.path(pid, "exe")

    def cmdline(self, pid: int) -> Path:
        return self.path(pid, "cmdline")

    def smaps(self, pid: int | str) -> Path:
        return self.path(pid, "smaps")


def require_root() -> None:
    """Raise PrivilegeError unless the effective uid is root."""
    if os.geteuid() != 0:
        raise PrivilegeError("root privileges required")


def list_pids() -> list[int]:
    """Return the pids visible right now under psutil.PROCFS_PATH.

    The process table may change while it is being read; pids that appear
    or disappear are simply present or absent from the result.

    Raises:
        EnumerationError: If the process table can't be read or is empty.
    """
    try:
        pids = psutil.pids()
    except OSError as e:
        raise EnumerationError(f"list_pids failed: {e}") from e
    if not pids:
        raise EnumerationError("list_pids failed: no processes found")
    return pids


def is_gone_error(e: OSError) -> bool:
    """True when an OSError means the process exited or is not ours to read."""
    return e.errno in _GONE_ERRNOS


def read_exe(pid: int, procfs: ProcFS) -> bytes | None:
    """Return the exe link target, or None for exited processes and kernel threads."""
    try:
        return os.readlink(os.fsencode(procfs.exe(pid)))
    except OSError as e:
        if is_gone_error(e):
            return None
        raise


def read_cmdline(pid: int, procfs: ProcFS) -> bytes | None:
    """Return the raw NUL-delimited command line, or None if it is missing or empty."""
    try:
        with open(procfs.cmdline(pid), "rb") as f:
            raw = f.read()
    except OSError as e:
        if is_gone_error(e):
            return None
        raise
    return raw or None


def choose_name(exe: bytes, argv0: bytes, policy: NamePolicy = NamePolicy.LEXICAL) -> bytes:
    """Pick the display name from the exe path and argv[0].

    The comparison is made against the first COMM_MAX bytes of argv[0].
    """
    short = argv0[:COMM_MAX]
    if policy is NamePolicy.LEXICAL:
        use_exe = exe >= short
    else:
        use_exe = exe == short or not argv0
    return os.path.basename(exe) if use_exe else argv0


def proc_name(
    pid: int,
    procfs: ProcFS = ProcFS(),
    policy: NamePolicy = NamePolicy.LEXICAL,
) -> str | None:
    """Resolve a pid to its display name.

    Returns None when the process should be skipped: it has exited, it is
    a kernel thread (no readable exe link), or its command line is empty.
    """
    exe = read_exe(pid, procfs)
    if exe is None:
        log.debug("process_skipped", pid=pid, reason="exe_unreadable")
        return None

    raw = read_cmdline(pid, procfs)
    if raw is None:
        log.debug("process_skipped", pid=pid, reason="cmdline_empty")
        return None

    argv0 = raw.split(b"\0", 1)[0]
    name = choose_name(exe, argv0, policy)
    # undecodable bytes become \xNN so the name is always printable
    return name.decode("utf-8", "backslashreplace")
