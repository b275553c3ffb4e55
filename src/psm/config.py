"""Configuration system for psm."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

NAME_POLICIES = ("lexical", "exact")


@dataclass
class DisplayConfig:
    """Report layout configuration."""

    show_heap: bool = False  # Show the HEAP column
    quiet: bool = False  # Suppress header row and totals footer
    name_width: int = 32  # Max chars of a process name before truncation


@dataclass
class AccountingConfig:
    """Collection and accounting configuration.

    name_policy selects how a process display name is chosen:
    - lexical: basename of the exe when exe >= argv[0][:16], else argv[0]
    - exact: argv[0] when exe != argv[0][:16], else basename of the exe
    """

    name_policy: str = "lexical"
    workers: int = 1  # Threads used to read /proc (1 = sequential)
    proc_root: str = "/proc"


@dataclass
class LoggingConfig:
    """Structured log file configuration."""

    file: bool = False  # Write JSON Lines log to the state dir
    max_bytes: int = 1024 * 1024  # Max log file size (1MB)
    backup_count: int = 3  # Number of rotated log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    display: DisplayConfig = field(default_factory=DisplayConfig)
    accounting: AccountingConfig = field(default_factory=AccountingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "psm"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "psm"

    @property
    def log_path(self) -> Path:
        """JSON log path."""
        return self.state_dir / "psm.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("display", "accounting", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() on a missing file are identical.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            display=_load_display_config(data.get("display", {})),
            accounting=_load_accounting_config(data.get("accounting", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )


def _load_display_config(data: dict) -> DisplayConfig:
    """Load display config from TOML data, using dataclass defaults for missing fields."""
    d = DisplayConfig()
    name_width = data.get("name_width", d.name_width)
    if name_width < 1:
        raise ValueError(f"name_width must be >= 1, got {name_width}")

    return DisplayConfig(
        show_heap=data.get("show_heap", d.show_heap),
        quiet=data.get("quiet", d.quiet),
        name_width=name_width,
    )


def _load_accounting_config(data: dict) -> AccountingConfig:
    """Load accounting config from TOML data."""
    d = AccountingConfig()
    name_policy = data.get("name_policy", d.name_policy)
    workers = data.get("workers", d.workers)

    if name_policy not in NAME_POLICIES:
        raise ValueError(f"Invalid name_policy: {name_policy!r}. Must be one of {NAME_POLICIES}")
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")

    return AccountingConfig(
        name_policy=name_policy,
        workers=workers,
        proc_root=data.get("proc_root", d.proc_root),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()
    return LoggingConfig(
        file=data.get("file", d.file),
        max_bytes=data.get("max_bytes", d.max_bytes),
        backup_count=data.get("backup_count", d.backup_count),
    )
