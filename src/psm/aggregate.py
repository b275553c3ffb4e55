"""Grouping of process records by program name, and report ordering."""

from collections.abc import Iterable
from dataclasses import dataclass

from psm.collector import ProcessRecord


@dataclass(frozen=True)
class AggregatedGroup:
    """Summed memory of every process sharing a display name, in kB."""

    name: str
    pss_kb: float
    shared_kb: float
    heap_kb: float
    swap_kb: float
    count: int

    @classmethod
    def from_record(cls, record: ProcessRecord) -> "AggregatedGroup":
        return cls(
            name=record.name,
            pss_kb=record.pss_kb,
            shared_kb=record.shared_kb,
            heap_kb=record.heap_kb,
            swap_kb=record.swap_kb,
            count=record.count,
        )

    def merge(self, record: ProcessRecord) -> "AggregatedGroup":
        """Return a new group with `record` added in."""
        return AggregatedGroup(
            name=self.name,
            pss_kb=self.pss_kb + record.pss_kb,
            shared_kb=self.shared_kb + record.shared_kb,
            heap_kb=self.heap_kb + record.heap_kb,
            swap_kb=self.swap_kb + record.swap_kb,
            count=self.count + record.count,
        )


def aggregate(records: Iterable[ProcessRecord]) -> list[AggregatedGroup]:
    """Merge records with the same full name into one group each.

    Groups come out in name order.
    """
    groups: list[AggregatedGroup] = []
    for record in sorted(records, key=lambda r: r.name):
        if groups and groups[-1].name == record.name:
            groups[-1] = groups[-1].merge(record)
        else:
            groups.append(AggregatedGroup.from_record(record))
    return groups


def rank(groups: Iterable[AggregatedGroup]) -> list[AggregatedGroup]:
    """Order groups by pss ascending, then name, so the largest print last."""
    return sorted(groups, key=lambda g: (g.pss_kb, g.name))
