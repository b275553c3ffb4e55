"""Per-process memory record collection."""

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import structlog

from psm.procfs import NamePolicy, ProcFS, proc_name
from psm.smaps import DetailLayout, read_smaps

log = structlog.get_logger()


@dataclass(frozen=True)
class ProcessRecord:
    """Memory accounting for one process, in kB.

    shared_kb is pss_kb minus the process's private pages.
    """

    pid: int
    name: str
    pss_kb: float
    shared_kb: float
    heap_kb: float
    swap_kb: float
    count: int = 1


def measure(
    pid: int,
    layout: DetailLayout,
    procfs: ProcFS = ProcFS(),
    policy: NamePolicy = NamePolicy.LEXICAL,
) -> ProcessRecord | None:
    """Build the record for one pid, or None if the process should be skipped.

    Raises:
        SmapsDesyncError: If the smaps report can't be parsed with `layout`.
    """
    name = proc_name(pid, procfs, policy)
    if name is None:
        return None

    totals = read_smaps(pid, layout, procfs)
    if totals is None:
        return None

    return ProcessRecord(
        pid=pid,
        name=name,
        pss_kb=totals.pss_kb,
        shared_kb=totals.shared_kb,
        heap_kb=totals.heap_kb,
        swap_kb=totals.swap_kb,
    )


def collect_records(
    pids: Iterable[int],
    layout: DetailLayout,
    procfs: ProcFS = ProcFS(),
    policy: NamePolicy = NamePolicy.LEXICAL,
    workers: int = 1,
) -> list[ProcessRecord]:
    """Measure every pid and return the records of those not skipped.

    With workers > 1 the pids are measured on a thread pool. All results
    are gathered before returning, and the first fatal error raised by
    any pid propagates to the caller.
    """
    pids = list(pids)
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="psm") as pool:
            results = list(pool.map(lambda pid: measure(pid, layout, procfs, policy), pids))
    else:
        results = [measure(pid, layout, procfs, policy) for pid in pids]

    records = [r for r in results if r is not None]
    log.debug("records_collected", pids=len(pids), records=len(records), workers=workers)
    return records
