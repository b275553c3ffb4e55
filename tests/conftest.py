"""Shared test fixtures for psm."""

import logging
import os
from pathlib import Path

import pytest
import structlog

# Detail fields of a current kernel, in report order
MODERN_FIELDS = (
    "Size",
    "KernelPageSize",
    "MMUPageSize",
    "Rss",
    "Pss",
    "Shared_Clean",
    "Shared_Dirty",
    "Private_Clean",
    "Private_Dirty",
    "Referenced",
    "Anonymous",
    "LazyFree",
    "AnonHugePages",
    "ShmemPmdMapped",
    "FilePmdMapped",
    "Shared_Hugetlb",
    "Private_Hugetlb",
    "Swap",
    "SwapPss",
    "Locked",
)

# Detail fields of a 3.x kernel: 14 lines of 28 bytes
CLASSIC_FIELDS = (
    "Size",
    "Rss",
    "Pss",
    "Shared_Clean",
    "Shared_Dirty",
    "Private_Clean",
    "Private_Dirty",
    "Referenced",
    "Anonymous",
    "AnonHugePages",
    "Swap",
    "KernelPageSize",
    "MMUPageSize",
    "Locked",
)

MODERN_TAIL = ("THPeligible:    0\n", "VmFlags: rd wr mr mw me ac sd \n")

_next_address = [0x55D4C2A0E000]


def detail_line(name: str, value: int) -> str:
    """Format one fixed-width detail line the way the kernel does."""
    return f"{name + ':':<16}{value:>8} kB\n"


def header_line(path: str = "") -> str:
    """Format a 64-bit VMA header line, with the path at column 73."""
    start = _next_address[0]
    _next_address[0] += 0x21000
    prefix = f"{start:012x}-{start + 0x21000:012x} rw-p 00000000 00:00 0"
    if not path:
        return prefix + "\n"
    return f"{prefix:<73}{path}\n"


def make_mapping(
    pss: int = 0,
    private_clean: int = 0,
    private_dirty: int = 0,
    swap: int = 0,
    path: str = "",
    fields: tuple[str, ...] = MODERN_FIELDS,
    tail: tuple[str, ...] = MODERN_TAIL,
) -> str:
    """Create one mapping of an smaps report."""
    values = {
        "Size": 132,
        "Rss": pss,
        "Pss": pss,
        "Private_Clean": private_clean,
        "Private_Dirty": private_dirty,
        "Swap": swap,
        "KernelPageSize": 4,
        "MMUPageSize": 4,
    }
    lines = [header_line(path)]
    lines.extend(detail_line(name, values.get(name, 0)) for name in fields)
    lines.extend(tail)
    return "".join(lines)


def make_smaps(*mappings: str) -> bytes:
    """Join mappings into smaps report bytes."""
    return "".join(mappings).encode()


class FakeProc:
    """A procfs tree on disk with a self/smaps report to calibrate from."""

    def __init__(self, root: Path, fields: tuple[str, ...] = MODERN_FIELDS) -> None:
        self.root = root
        self_map = make_mapping(pss=8, path="/usr/bin/python3", fields=fields)
        self.add_smaps("self", make_smaps(self_map))

    def add_smaps(self, pid: int | str, smaps: bytes) -> None:
        d = self.root / str(pid)
        d.mkdir(parents=True, exist_ok=True)
        (d / "smaps").write_bytes(smaps)

    def add(
        self,
        pid: int,
        exe: str | None,
        cmdline: bytes,
        smaps: bytes | None,
    ) -> None:
        """Add a process. exe=None makes a kernel thread, smaps=None an exited one."""
        d = self.root / str(pid)
        d.mkdir(parents=True, exist_ok=True)
        if exe is not None:
            os.symlink(exe, d / "exe")
        (d / "cmdline").write_bytes(cmdline)
        if smaps is not None:
            (d / "smaps").write_bytes(smaps)


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProc:
    """Create an empty fake procfs tree."""
    return FakeProc(tmp_path / "proc")


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo structlog/stdlib logging setup done by CLI invocations."""
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()
