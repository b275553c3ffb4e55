"""Text rendering of the memory report."""

from dataclasses import dataclass

from psm.aggregate import AggregatedGroup

CMD_DISPLAY_MAX = 32
TOTAL_LABEL = "TOTAL USED BY PROCESSES"


@dataclass(frozen=True)
class ReportOptions:
    """What to show in the report."""

    show_heap: bool = False
    quiet: bool = False
    filter: str | None = None
    name_width: int = CMD_DISPLAY_MAX


def to_mb(kb: float) -> float:
    return kb / 1024.0


def display_name(name: str, width: int = CMD_DISPLAY_MAX) -> str:
    """Shorten a name for display.

    Bracketed pseudo-names like "[kworker/0:1] extra" are cut just after
    the closing bracket; anything else is cut at `width` characters.
    """
    if len(name) <= width:
        return name
    if name.startswith("[") and "]" in name:
        return name[: name.index("]") + 1]
    return name[:width]


def format_header(show_heap: bool) -> str:
    """Format the column header row."""
    if show_heap:
        return f"{'MB RAM':>10}{'SHARED':>10}{'HEAP':>10}{'SWAPPED':>10}\tPROCESS (COUNT)"
    return f"{'MB RAM':>10}{'SHARED':>10}{'SWAPPED':>10}\tPROCESS (COUNT)"


def format_row(group: AggregatedGroup, show_heap: bool, name_width: int = CMD_DISPLAY_MAX) -> str:
    """Format one program row. The swap column is blank when nothing is swapped."""
    swap = f"{to_mb(group.swap_kb):10.1f}" if group.swap_kb > 0 else ""
    heap = f"{to_mb(group.heap_kb):10.1f}" if show_heap else ""
    name = display_name(group.name, name_width)
    return (
        f"{to_mb(group.pss_kb):10.1f}{to_mb(group.shared_kb):10.1f}{heap}{swap:>10}"
        f"\t{name} ({group.count})"
    )


def format_total(pss_mb: float, swap_mb: float, show_heap: bool) -> str:
    """Format the totals footer; the swap total sits under the SWAPPED column."""
    width = 30 if show_heap else 20
    return f"#{pss_mb:9.1f}{swap_mb:{width}.1f}\t{TOTAL_LABEL}"


def render_report(groups: list[AggregatedGroup], options: ReportOptions) -> list[str]:
    """Render ranked groups as report lines.

    Groups whose name doesn't contain options.filter are left out, and the
    totals footer sums only the rows that are printed.
    """
    lines = []
    if not options.quiet:
        lines.append(format_header(options.show_heap))

    total_pss = 0.0
    total_swap = 0.0
    for group in groups:
        if options.filter and options.filter not in group.name:
            continue
        total_pss += to_mb(group.pss_kb)
        if group.swap_kb > 0:
            total_swap += to_mb(group.swap_kb)
        lines.append(format_row(group, options.show_heap, options.name_width))

    if not options.quiet:
        lines.append(format_total(total_pss, total_swap, options.show_heap))
    return lines
