"""Fixed-offset parser for /proc/<pid>/smaps.

Each mapping in an smaps report is a variable-width header line followed
by a block of fixed-width detail lines ("Rss:            %8lu kB\\n"),
then a few variable-width lines ending with "VmFlags:". The detail block
has the same size and field order for every mapping on a given kernel, so
it is measured once from our own report (calibrate) and then consumed with
a single read per mapping, picking values out by column.

A short block means the reader has lost its place in the stream. Every
later offset would be wrong too, so this is raised as SmapsDesyncError
and ends the run instead of being skipped.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

import structlog

from psm.procfs import ProcFS, PsmError, is_gone_error

log = structlog.get_logger()

SELF_SMAPS = Path("/proc/self/smaps")

PSS_ADJUST = 0.5  # Mean kernel truncation error of Pss, per mapping (as in ps_mem)

VALUE_OFFSET = 16  # Column where a detail value starts
UNIT_SUFFIX = b" kB\n"
NAME_OFFSET = 73  # Column of the mapping path in a 64-bit header line
HEAP_TAG = b"[heap]"
VM_FLAGS = b"VmFlags:"

REQUIRED_FIELDS = ("Pss", "Private_Clean", "Private_Dirty", "Swap")


class CalibrationError(PsmError):
    """Our own smaps report doesn't have the expected shape."""


class SmapsDesyncError(PsmError):
    """The fixed-width detail block didn't line up with the stream."""


@dataclass(frozen=True)
class DetailLayout:
    """Shape of the fixed-width detail block on the running kernel."""

    block_size: int  # Bytes in one detail block
    line_width: int  # Bytes per detail line, newline included
    pss_line: int
    private_clean_line: int
    private_dirty_line: int
    swap_line: int

    @property
    def lines(self) -> int:
        return self.block_size // self.line_width

    def value(self, block: bytes, line: int) -> int:
        """Read the kB value of detail line `line` out of `block`."""
        start = line * self.line_width + VALUE_OFFSET
        end = (line + 1) * self.line_width - len(UNIT_SUFFIX)
        try:
            return int(block[start:end])
        except ValueError:
            raise SmapsDesyncError(
                f"bad value {block[start:end]!r} on detail line {line} - out of sync?"
            ) from None


@dataclass(frozen=True)
class SmapsTotals:
    """Per-process accounting totals, in kB."""

    pss_kb: float
    shared_kb: float
    heap_kb: float
    swap_kb: float


def _field_name(line: bytes) -> str:
    return line.split(b":", 1)[0].decode("ascii", "replace")


def calibrate(path: Path = SELF_SMAPS) -> DetailLayout:
    """Measure the detail block from an smaps report, normally our own.

    Skips the first header line and counts the following lines that have
    the same width as the first detail line, stopping at "VmFlags:", at a
    line of another width, or at end of file.

    Raises:
        CalibrationError: If the report is unreadable, empty, or lacks one
            of Pss, Private_Clean, Private_Dirty or Swap.
    """
    try:
        with open(path, "rb") as f:
            header = f.readline()
            line = f.readline()
            if not header or not line or line.startswith(VM_FLAGS):
                raise CalibrationError(f"{path}: no detail lines to calibrate from")

            width = len(line)
            positions: dict[str, int] = {}
            count = 0
            while line and len(line) == width and not line.startswith(VM_FLAGS):
                positions.setdefault(_field_name(line), count)
                count += 1
                line = f.readline()
    except OSError as e:
        raise CalibrationError(f"can't read {path}: {e}") from e

    missing = [name for name in REQUIRED_FIELDS if name not in positions]
    if missing:
        raise CalibrationError(f"{path}: detail block lacks {', '.join(missing)}")

    layout = DetailLayout(
        block_size=count * width,
        line_width=width,
        pss_line=positions["Pss"],
        private_clean_line=positions["Private_Clean"],
        private_dirty_line=positions["Private_Dirty"],
        swap_line=positions["Swap"],
    )
    log.debug("smaps_calibrated", block_size=layout.block_size, lines=count, width=width)
    return layout


def parse_smaps(f: BinaryIO, layout: DetailLayout) -> SmapsTotals:
    """Sum the accounting fields of every mapping in an open smaps stream.

    Raises:
        SmapsDesyncError: If a detail block is short or a value column
            doesn't hold a number.
    """
    pss = heap = swap = private = 0.0
    pending: bytes | None = None

    while True:
        header = pending if pending is not None else f.readline()
        pending = None
        if not header:
            break

        # the path of a named mapping starts at a fixed column
        is_heap = header[NAME_OFFSET : NAME_OFFSET + len(HEAP_TAG)] == HEAP_TAG

        block = f.read(layout.block_size)
        if len(block) != layout.block_size or not block.endswith(b"\n"):
            raise SmapsDesyncError(
                f"couldn't read details ({len(block)} != {layout.block_size}) - out of sync?"
            )

        m = layout.value(block, layout.pss_line)
        pss += m + PSS_ADJUST
        # heap is private and anonymous, no truncation to adjust for
        if is_heap:
            heap += m
        private += layout.value(block, layout.private_clean_line)
        private += layout.value(block, layout.private_dirty_line)
        swap += layout.value(block, layout.swap_line)

        # variable-width tail: optional lines, then VmFlags. Older kernels
        # have no VmFlags, so a line wider than a detail line is the next
        # mapping's header.
        while True:
            line = f.readline()
            if not line or line.startswith(VM_FLAGS):
                break
            if len(line) > layout.line_width:
                pending = line
                break
        if not line:
            break

    return SmapsTotals(pss_kb=pss, shared_kb=pss - private, heap_kb=heap, swap_kb=swap)


def read_smaps(pid: int, layout: DetailLayout, procfs: ProcFS = ProcFS()) -> SmapsTotals | None:
    """Parse /proc/<pid>/smaps, or return None if the process is gone."""
    try:
        with open(procfs.smaps(pid), "rb") as f:
            return parse_smaps(f, layout)
    except OSError as e:
        if is_gone_error(e):
            log.debug("process_skipped", pid=pid, reason="smaps_unreadable")
            return None
        raise
