"""CLI commands for psm."""

from pathlib import Path

import click
import psutil

from psm import logging as console
from psm.aggregate import aggregate, rank
from psm.collector import collect_records
from psm.config import NAME_POLICIES, Config
from psm.formatting import ReportOptions, render_report
from psm.procfs import (
    NamePolicy,
    PrivilegeError,
    ProcFS,
    PsmError,
    list_pids,
    require_root,
)
from psm.smaps import calibrate

PROG = "psm"


def build_report(
    procfs: ProcFS,
    options: ReportOptions,
    policy: NamePolicy = NamePolicy.LEXICAL,
    workers: int = 1,
    verbose: bool = False,
) -> list[str]:
    """Scan every process and return the rendered report lines.

    Nothing is printed here, so a fatal error leaves no partial report.
    """
    require_root()

    # one calibration per run, shared by every process
    layout = calibrate(procfs.smaps("self"))
    if verbose:
        console.calibrated(layout.block_size, layout.lines)

    pids = list_pids()
    records = collect_records(pids, layout, procfs, policy, workers)
    groups = rank(aggregate(records))
    if verbose:
        console.scan_complete(len(pids), len(records), len(groups))

    return render_report(groups, options)


def _load_config(path: Path | None) -> Config:
    try:
        return Config.load(path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(package_name="psm")
@click.option("--heap", "show_heap", is_flag=True, help="Show heap column")
@click.option("--quiet", "-q", is_flag=True, help="Suppress column header and total footer")
@click.option(
    "--filter", "name_filter", default=None, metavar="TEXT", help="Only show names containing TEXT"
)
@click.option(
    "--name-policy",
    type=click.Choice(NAME_POLICIES),
    default=None,
    help="How process names are chosen (default from config: lexical)",
)
@click.option(
    "--workers", "-j", type=click.IntRange(min=1), default=None, help="Threads reading /proc"
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file to use",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug events to stderr")
@click.pass_context
def main(
    ctx,
    show_heap: bool,
    quiet: bool,
    name_filter: str | None,
    name_policy: str | None,
    workers: int | None,
    config_path: Path | None,
    verbose: bool,
) -> None:
    """Simple, accurate RAM and swap reporting.

    Programs are listed smallest first, so the biggest users end up at the
    bottom of the terminal.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path

    # If a subcommand was invoked, let it handle things
    if ctx.invoked_subcommand is not None:
        return

    config = _load_config(config_path)
    console.configure(config, verbose)

    options = ReportOptions(
        show_heap=show_heap or config.display.show_heap,
        quiet=quiet or config.display.quiet,
        filter=name_filter,
        name_width=config.display.name_width,
    )
    policy = NamePolicy(name_policy or config.accounting.name_policy)

    # psutil reads the process table from this root for the rest of the run
    psutil.PROCFS_PATH = config.accounting.proc_root

    try:
        lines = build_report(
            ProcFS(Path(config.accounting.proc_root)),
            options,
            policy=policy,
            workers=workers or config.accounting.workers,
            verbose=verbose,
        )
    except PrivilegeError:
        console.privilege_required(PROG)
        raise SystemExit(1)
    except (PsmError, OSError, MemoryError) as e:
        console.fatal(str(e) or type(e).__name__)
        raise SystemExit(1)

    if lines:
        click.echo("\n".join(lines))


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx) -> None:
    """Display current configuration."""
    path = ctx.obj["config_path"]
    cfg = _load_config(path)
    path = path or cfg.config_path

    click.echo(f"Config file: {path}")
    click.echo(f"Exists: {path.exists()}")
    click.echo()
    click.echo("[display]")
    click.echo(f"  show_heap = {cfg.display.show_heap}")
    click.echo(f"  quiet = {cfg.display.quiet}")
    click.echo(f"  name_width = {cfg.display.name_width}")
    click.echo()
    click.echo("[accounting]")
    click.echo(f"  name_policy = {cfg.accounting.name_policy}")
    click.echo(f"  workers = {cfg.accounting.workers}")
    click.echo(f"  proc_root = {cfg.accounting.proc_root}")
    click.echo()
    click.echo("[logging]")
    click.echo(f"  file = {cfg.logging.file}")


@config.command("init")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing config file")
@click.pass_context
def config_init(ctx, force: bool) -> None:
    """Write a config file with default values."""
    cfg = Config()
    path = ctx.obj["config_path"] or cfg.config_path

    if path.exists() and not force:
        click.echo(f"Error: {path} already exists (use --force to overwrite)", err=True)
        raise SystemExit(1)

    cfg.save(path)
    console.config_created(str(path))
