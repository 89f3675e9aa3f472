"""Configuration: dataclass defaults, env overrides, TOML overlay, logging setup."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from clamdash.config import (
    ClamdashConfig,
    DashboardConfig,
    ScanConfig,
    get_config,
    set_config,
    setup_logging,
)
from clamdash.errors import ConfigError, ErrorCode


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "CLAMDASH_CLAMSCAN",
        "CLAMDASH_FRESHCLAM",
        "CLAMDASH_CANCEL_GRACE",
        "CLAMDASH_RAW_LOG_CAPACITY",
        "CLAMDASH_EXPECTED_EXIT_CODES",
        "CLAMDASH_RECURSIVE",
        "CLAMDASH_TICK_INTERVAL",
        "CLAMDASH_OUTPUT_TAIL",
        "CLAMDASH_LOG_LEVEL",
        "CLAMDASH_DATA_DIR",
        "CLAMDASH_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CLAMDASH_LOG_FILE", "false")
    return monkeypatch


def test_defaults(clean_env):
    config = ClamdashConfig.from_env()
    assert config.scan == ScanConfig(cancel_grace_seconds=5.0)
    assert config.scan.expected_exit_codes == (0, 1)
    assert config.dashboard == DashboardConfig()
    assert config.log.file_enabled is False
    assert config.debug is False


def test_env_overrides(clean_env, tmp_path):
    clean_env.setenv("CLAMDASH_CLAMSCAN", "/opt/clamav/bin/clamscan")
    clean_env.setenv("CLAMDASH_CANCEL_GRACE", "2.5")
    clean_env.setenv("CLAMDASH_RAW_LOG_CAPACITY", "50")
    clean_env.setenv("CLAMDASH_EXPECTED_EXIT_CODES", "0, 1, 3")
    clean_env.setenv("CLAMDASH_RECURSIVE", "no")
    clean_env.setenv("CLAMDASH_TICK_INTERVAL", "1")
    clean_env.setenv("CLAMDASH_DATA_DIR", str(tmp_path))
    clean_env.setenv("CLAMDASH_DEBUG", "true")

    config = ClamdashConfig.from_env()
    assert config.scan.clamscan_binary == "/opt/clamav/bin/clamscan"
    assert config.scan.cancel_grace_seconds == 2.5
    assert config.scan.raw_log_capacity == 50
    assert config.scan.expected_exit_codes == (0, 1, 3)
    assert config.scan.recursive is False
    assert config.dashboard.tick_interval == 1.0
    assert config.storage.base_dir == Path(tmp_path)
    assert config.debug is True


def test_bad_env_number_raises(clean_env):
    clean_env.setenv("CLAMDASH_RAW_LOG_CAPACITY", "lots")
    with pytest.raises(ConfigError):
        ClamdashConfig.from_env()


def test_bad_exit_codes_raise(clean_env):
    clean_env.setenv("CLAMDASH_EXPECTED_EXIT_CODES", "0,one")
    with pytest.raises(ConfigError):
        ClamdashConfig.from_env()


def test_validation_rejects_nonpositive_values():
    with pytest.raises(ConfigError) as exc_info:
        ClamdashConfig(scan=ScanConfig(cancel_grace_seconds=0), dashboard=DashboardConfig(tick_interval=-1))
    problems = exc_info.value.details["problems"]
    assert len(problems) == 2


def test_missing_file_falls_back_to_env(clean_env, tmp_path):
    config = ClamdashConfig.from_file(tmp_path / "absent.toml")
    assert config == ClamdashConfig.from_env()


def test_toml_file_overlay(clean_env, tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        "\n".join(
            [
                "debug = true",
                "",
                "[scan]",
                'clamscan_binary = "/usr/local/bin/clamscan"',
                "cancel_grace_seconds = 3",
                "expected_exit_codes = [0]",
                "",
                "[dashboard]",
                "output_tail = 100",
                "",
                "[log]",
                'level = "DEBUG"',
            ]
        )
    )
    config = ClamdashConfig.from_file(path)
    assert config.scan.clamscan_binary == "/usr/local/bin/clamscan"
    assert config.scan.cancel_grace_seconds == 3
    assert config.scan.expected_exit_codes == (0,)
    assert config.dashboard.output_tail == 100
    assert config.log.level == "DEBUG"
    assert config.debug is True


def test_update_interval_maps_to_tick(clean_env, tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("update_interval = 2\n")
    assert ClamdashConfig.from_file(path).dashboard.tick_interval == 2


def test_invalid_toml_raises_parse_error(clean_env, tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[scan\nbroken = ")
    with pytest.raises(ConfigError) as exc_info:
        ClamdashConfig.from_file(path)
    assert exc_info.value.code is ErrorCode.CONFIG_PARSE_ERROR


def test_unknown_key_raises(clean_env, tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[scan]\nturbo = true\n")
    with pytest.raises(ConfigError) as exc_info:
        ClamdashConfig.from_file(path)
    assert exc_info.value.code is ErrorCode.CONFIG_INVALID


@pytest.mark.parametrize(
    "document",
    [
        "[scan]\nexpected_exit_codes = 0\n",
        'scan = "fast"\n',
        "dashboard = 3\n",
        'log = ["DEBUG"]\n',
        'debug = "false"\n',
        "[scan]\ncancel_grace_seconds = true\n",
        "[scan]\nexpected_exit_codes = [0, true]\n",
        "[dashboard]\noutput_tail = true\n",
    ],
)
def test_wrongly_typed_values_raise_config_error(clean_env, tmp_path, document):
    path = tmp_path / "config.toml"
    path.write_text(document)
    with pytest.raises(ConfigError) as exc_info:
        ClamdashConfig.from_file(path)
    assert exc_info.value.code is ErrorCode.CONFIG_INVALID


def test_boolean_debug_is_kept(clean_env, tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("debug = false\n")
    assert ClamdashConfig.from_file(path).debug is False


def test_get_and_set_config(clean_env):
    custom = ClamdashConfig(debug=True)
    previous = get_config()
    try:
        set_config(custom)
        assert get_config() is custom
    finally:
        set_config(previous)


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers = handlers
        root.setLevel(level)

    def test_file_handler_is_rotating(self, tmp_path, clean_env):
        clean_env.setenv("CLAMDASH_LOG_FILE", "true")
        clean_env.setenv("CLAMDASH_DATA_DIR", str(tmp_path / "data"))
        config = ClamdashConfig.from_env()

        setup_logging(config, console=False)

        root = logging.getLogger()
        assert any(isinstance(h, RotatingFileHandler) for h in root.handlers)
        assert not any(type(h) is logging.StreamHandler for h in root.handlers)
        assert (tmp_path / "data").is_dir()

    def test_no_handlers_installs_null_handler(self, clean_env):
        setup_logging(ClamdashConfig.from_env(), console=False)
        assert any(isinstance(h, logging.NullHandler) for h in logging.getLogger().handlers)

    def test_debug_forces_debug_level(self, clean_env):
        clean_env.setenv("CLAMDASH_DEBUG", "1")
        setup_logging(ClamdashConfig.from_env(), console=True)
        assert logging.getLogger().level == logging.DEBUG
