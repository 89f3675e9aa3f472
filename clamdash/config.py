# clamdash/config.py
# Configuration management: dataclass defaults, env overrides, optional TOML file

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field, replace
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from clamdash.errors import ConfigError, ErrorCode

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.toml"


@dataclass(frozen=True)
class ScanConfig:
    clamscan_binary: str = "clamscan"
    freshclam_binary: str = "freshclam"
    # SIGTERM -> wait this long -> SIGKILL
    cancel_grace_seconds: float = 5.0
    raw_log_capacity: int = 2000
    # clamscan: 0 clean, 1 virus found. freshclam: 0 updated, 1 up-to-date.
    expected_exit_codes: Tuple[int, ...] = (0, 1)
    recursive: bool = True


@dataclass(frozen=True)
class DashboardConfig:
    tick_interval: float = 0.25
    output_tail: int = 500


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    file_enabled: bool = True
    file_name: str = "clamdash.log"
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass(frozen=True)
class StorageConfig:
    # Only the rotating log file lives here; scan state is never persisted.
    base_dir: Path = field(default_factory=lambda: Path.home() / ".clamdash")


@dataclass(frozen=True)
class ClamdashConfig:
    scan: ScanConfig = field(default_factory=ScanConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    log: LogConfig = field(default_factory=LogConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    debug: bool = False

    def __post_init__(self):
        _validate(self)

    @classmethod
    def from_env(cls) -> "ClamdashConfig":
        scan = ScanConfig(
            clamscan_binary=os.getenv("CLAMDASH_CLAMSCAN", "clamscan"),
            freshclam_binary=os.getenv("CLAMDASH_FRESHCLAM", "freshclam"),
            cancel_grace_seconds=_env_number("CLAMDASH_CANCEL_GRACE", 5.0, float),
            raw_log_capacity=_env_number("CLAMDASH_RAW_LOG_CAPACITY", 2000, int),
            expected_exit_codes=_env_exit_codes("CLAMDASH_EXPECTED_EXIT_CODES", (0, 1)),
            recursive=_env_bool("CLAMDASH_RECURSIVE", True),
        )

        dashboard = DashboardConfig(
            tick_interval=_env_number("CLAMDASH_TICK_INTERVAL", 0.25, float),
            output_tail=_env_number("CLAMDASH_OUTPUT_TAIL", 500, int),
        )

        log = LogConfig(
            level=os.getenv("CLAMDASH_LOG_LEVEL", "INFO"),
            file_enabled=_env_bool("CLAMDASH_LOG_FILE", True),
        )

        base_dir = Path(os.getenv("CLAMDASH_DATA_DIR", str(Path.home() / ".clamdash")))

        return cls(
            scan=scan,
            dashboard=dashboard,
            log=log,
            storage=StorageConfig(base_dir=base_dir),
            debug=_env_bool("CLAMDASH_DEBUG", False),
        )

    @classmethod
    def from_file(cls, path: str | os.PathLike) -> "ClamdashConfig":
        """
        Load a TOML config file on top of the environment defaults.

        Recognized tables are [scan], [dashboard] and [log]. A top-level
        ``update_interval`` (seconds) is accepted as the dashboard tick so
        older config files keep working. A missing file is not an error.

        Raises:
            ConfigError: the file exists but is not valid TOML, or holds
                values of the wrong type.
        """
        base = cls.from_env()
        config_path = Path(path)
        if not config_path.is_file():
            logger.info(f"[Config] {config_path} not found, using defaults")
            return base

        try:
            with config_path.open("rb") as fh:
                data = tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(
                f"Could not parse {config_path}: {exc}",
                code=ErrorCode.CONFIG_PARSE_ERROR,
                details={"path": str(config_path)},
            ) from exc

        logger.info(f"[Config] Loaded config from: {config_path}")
        return base.merged(data)

    def merged(self, data: Dict[str, Any]) -> "ClamdashConfig":
        """Return a copy with values from a parsed TOML document applied."""
        tables = {name: _table(data, name) for name in ("scan", "dashboard", "log")}
        scan_values = tables["scan"]
        if "expected_exit_codes" in scan_values:
            codes = scan_values["expected_exit_codes"]
            if not isinstance(codes, list):
                raise ConfigError(
                    f"scan.expected_exit_codes must be a list of integers, got {codes!r}",
                    code=ErrorCode.CONFIG_INVALID,
                )
            scan_values["expected_exit_codes"] = tuple(codes)
        dashboard_values = tables["dashboard"]
        if "update_interval" in data and "tick_interval" not in dashboard_values:
            dashboard_values["tick_interval"] = data["update_interval"]
        debug = data.get("debug", self.debug)
        if not isinstance(debug, bool):
            raise ConfigError(f"debug must be true or false, got {debug!r}", code=ErrorCode.CONFIG_INVALID)

        try:
            return replace(
                self,
                scan=replace(self.scan, **scan_values),
                dashboard=replace(self.dashboard, **dashboard_values),
                log=replace(self.log, **tables["log"]),
                debug=debug,
            )
        except TypeError as exc:
            raise ConfigError(f"Unknown configuration key: {exc}") from exc


def _table(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] must be a table, got {value!r}", code=ErrorCode.CONFIG_INVALID)
    return dict(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate(config: ClamdashConfig) -> None:
    problems: List[str] = []
    if not _is_number(config.scan.cancel_grace_seconds) or config.scan.cancel_grace_seconds <= 0:
        problems.append("scan.cancel_grace_seconds must be a positive number")
    if not _is_count(config.scan.raw_log_capacity) or config.scan.raw_log_capacity < 1:
        problems.append("scan.raw_log_capacity must be a positive integer")
    if not all(_is_count(code) for code in config.scan.expected_exit_codes):
        problems.append("scan.expected_exit_codes must be integers")
    if not _is_number(config.dashboard.tick_interval) or config.dashboard.tick_interval <= 0:
        problems.append("dashboard.tick_interval must be a positive number")
    if not _is_count(config.dashboard.output_tail) or config.dashboard.output_tail < 1:
        problems.append("dashboard.output_tail must be a positive integer")
    if not isinstance(getattr(logging, str(config.log.level).upper(), None), int):
        problems.append(f"log.level {config.log.level!r} is not a logging level")
    if problems:
        raise ConfigError("; ".join(problems), details={"problems": problems})


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name}={raw!r} is not a valid {cast.__name__}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _env_exit_codes(name: str, default: Tuple[int, ...]) -> Tuple[int, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError as exc:
        raise ConfigError(f"{name}={raw!r} must be a comma-separated list of integers") from exc


_config: Optional[ClamdashConfig] = None


def get_config() -> ClamdashConfig:
    global _config
    if _config is None:
        _config = ClamdashConfig.from_env()
    return _config


def set_config(config: ClamdashConfig) -> None:
    global _config
    _config = config


def setup_logging(config: Optional[ClamdashConfig] = None, console: bool = True) -> None:
    """
    Configure root logging.

    The dashboard calls this with ``console=False``: a stream handler writing
    to the terminal would tear through the rendered screen.
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler())

    if cfg.log.file_enabled:
        cfg.storage.base_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.storage.base_dir / cfg.log.file_name,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    if not handlers:
        handlers.append(logging.NullHandler())

    level = "DEBUG" if cfg.debug else cfg.log.level
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
