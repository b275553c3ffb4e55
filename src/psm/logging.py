"""Centralized console logging with Rich formatting.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Level-based styling
3. Core log functions (log, info, error)
4. Domain-specific helpers (calibrated, scan_complete, fatal, etc.)
5. Structlog configuration (configure)

Human-facing diagnostics go to stderr through Rich so they never mix with
the report on stdout. Structured events go through structlog: a console
renderer on stderr and, when enabled, a JSON Lines file.
"""

from __future__ import annotations

import logging
import logging.handlers
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from psm.config import Config

# Rich console for diagnostics; stdout is reserved for the report
_console = Console(stderr=True, highlight=False, soft_wrap=True)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    SAVE = "💾"
    LOCK = "🔒"


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a diagnostic message with its level.

    Args:
        level: Log level (info, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"{lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def privilege_required(prog: str) -> None:
    """Log that the tool must run as root."""
    error(
        f"{prog} requires root privileges. [dim](try 'sudo `which {prog}`')[/]",
        Icon.LOCK,
    )


def fatal(msg: str) -> None:
    """Log an error that aborts the run.

    `msg` is plain text; brackets in paths are printed as is.
    """
    error(f"{escape(msg)} [dim](no report produced)[/]", Icon.FAIL)


def calibrated(block_size: int, lines: int) -> None:
    """Log the detail block calibration."""
    info(f"smaps detail block: [cyan]{block_size}[/] bytes [dim]({lines} lines)[/]", Icon.OK)


def scan_complete(pids: int, records: int, groups: int) -> None:
    """Log collection summary."""
    info(
        f"scanned [cyan]{pids}[/] pids, [cyan]{records}[/] measured, "
        f"[cyan]{groups}[/] programs"
    )


def config_created(path: str) -> None:
    """Log config file created."""
    info(f"Created config at [cyan]{path}[/]", Icon.SAVE)


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def configure(config: Config, verbose: bool = False) -> None:
    """Configure structlog on top of stdlib logging.

    Console events are rendered to stderr (DEBUG when verbose, WARNING
    otherwise). With config.logging.file set, events are also written as
    JSON Lines to a rotating file in the state dir.

    Args:
        config: Application config with paths
        verbose: Lower the console threshold to DEBUG
    """
    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.DEBUG if verbose else logging.INFO)
    stdlib_root.handlers.clear()

    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
    ]

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
            foreign_pre_chain=pre_chain,
        )
    )
    stdlib_root.addHandler(console_handler)

    if config.logging.file:
        config.state_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            config.log_path,
            maxBytes=config.logging.max_bytes,
            backupCount=config.logging.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=pre_chain,
            )
        )
        stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

