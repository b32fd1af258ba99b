"""Tests for the config loader.

Covers kind: Config YAML manifests, pyproject.toml [tool.stateful] and
environment overrides.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from stateful.compiler.config_loader import (
    ConfigLoader,
    _parse_bool_env,
    clear_config_cache,
    configure,
    get_default_config,
    load_config,
)
from stateful.kernel.config import StatefulConfig, get_runtime_config
from stateful.kernel.exceptions import ConfigurationError

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "STATEFUL_CONFIG_PATH",
        "STATEFUL_LOG_LEVEL",
        "STATEFUL_LOG_FORMAT",
        "STATEFUL_LOG_FILE",
        "STATEFUL_LOG_COLOR",
        "STATEFUL_LOG_TIMESTAMP",
        "STATEFUL_LOG_STDLIB_BRIDGE",
        "STATEFUL_LOG_BACKTRACE",
        "STATEFUL_LOG_DIAGNOSE",
    ):
        monkeypatch.delenv(name, raising=False)


class TestParseBoolEnv:
    def test_truthy_values(self) -> None:
        for value in ["true", "True", "1", "yes", "on", "enabled"]:
            assert _parse_bool_env(value) is True

    def test_falsy_values(self) -> None:
        for value in ["false", "FALSE", "0", "no", "off", "disabled"]:
            assert _parse_bool_env(value) is False

    def test_invalid_value_raises_error(self) -> None:
        with pytest.raises(ValueError, match="Invalid boolean value"):
            _parse_bool_env("maybe")


class TestSubstituteEnvVars:
    def test_nested_substitution(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STATEFUL_TEST_ATTR", "status")
        loader = ConfigLoader()
        data = {"default_attribute": "${STATEFUL_TEST_ATTR}", "list": ["${STATEFUL_TEST_ATTR}", 3]}
        assert loader._substitute_env_vars(data) == {
            "default_attribute": "status",
            "list": ["status", 3],
        }

    def test_missing_variable_keeps_placeholder(self) -> None:
        loader = ConfigLoader()
        assert loader._substitute_env_vars("${STATEFUL_DOES_NOT_EXIST}") == (
            "${STATEFUL_DOES_NOT_EXIST}"
        )


class TestYamlConfig:
    def test_kind_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STATEFUL_TEST_LEVEL", "DEBUG")
        config_file = tmp_path / "stateful.yaml"
        config_file.write_text(
            "kind: Config\n"
            "metadata:\n"
            "  name: app\n"
            "spec:\n"
            "  default_attribute: status\n"
            "  strict_persist_fallback: true\n"
            "  logging:\n"
            "    level: ${STATEFUL_TEST_LEVEL}\n"
            "    format: json\n",
            encoding="utf-8",
        )
        config = load_config(config_file)
        assert config.default_attribute == "status"
        assert config.strict_persist_fallback is True
        assert config.logging.level == "DEBUG"
        assert config.logging.format == "json"

    def test_wrong_kind(self, tmp_path: Path) -> None:
        config_file = tmp_path / "stateful.yaml"
        config_file.write_text("kind: StateMachine\nspec: {}\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="kind: Config"):
            load_config(config_file)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        config_file = tmp_path / "stateful.yml"
        config_file.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="expected a mapping"):
            load_config(config_file)


class TestTomlConfig:
    def test_pyproject_section(self, tmp_path: Path) -> None:
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text(
            '[tool.stateful]\ndefault_attribute = "status"\n\n'
            '[tool.stateful.logging]\nlevel = "info"\n',
            encoding="utf-8",
        )
        config = load_config(pyproject)
        assert config.default_attribute == "status"
        assert config.logging.level == "INFO"

    def test_pyproject_without_section(self, tmp_path: Path) -> None:
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text('[project]\nname = "app"\n', encoding="utf-8")
        assert load_config(pyproject) == get_default_config()

    def test_flat_toml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "stateful.toml"
        config_file.write_text("strict_persist_fallback = true\n", encoding="utf-8")
        assert load_config(config_file).strict_persist_fallback is True

    def test_unknown_log_level(self, tmp_path: Path) -> None:
        config_file = tmp_path / "stateful.toml"
        config_file.write_text('[logging]\nlevel = "LOUD"\n', encoding="utf-8")
        with pytest.raises(ConfigurationError, match="unknown log level"):
            load_config(config_file)


class TestEnvironmentOverrides:
    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "stateful.toml"
        config_file.write_text('[logging]\nlevel = "INFO"\nformat = "console"\n', encoding="utf-8")
        monkeypatch.setenv("STATEFUL_LOG_LEVEL", "error")
        monkeypatch.setenv("STATEFUL_LOG_FORMAT", "RICH")
        monkeypatch.setenv("STATEFUL_LOG_COLOR", "off")
        config = ConfigLoader()._load_toml_config(config_file)
        assert config.logging.level == "ERROR"
        assert config.logging.format == "rich"
        assert config.logging.use_color is False

    def test_invalid_bool_override_is_ignored(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_file = tmp_path / "stateful.toml"
        config_file.write_text("[logging]\ndiagnose = false\n", encoding="utf-8")
        monkeypatch.setenv("STATEFUL_LOG_DIAGNOSE", "sometimes")
        config = ConfigLoader()._load_toml_config(config_file)
        assert config.logging.diagnose is False

    def test_config_path_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "custom.yaml"
        config_file.write_text("kind: Config\nspec:\n  default_attribute: phase\n", encoding="utf-8")
        monkeypatch.setenv("STATEFUL_CONFIG_PATH", str(config_file))
        assert ConfigLoader()._find_config_file(None) == config_file


class TestLoadConfig:
    def test_missing_explicit_path(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.toml")

    def test_defaults_when_nothing_found(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        clear_config_cache()
        assert load_config() == StatefulConfig()

    def test_results_are_cached(self, tmp_path: Path) -> None:
        config_file = tmp_path / "stateful.toml"
        config_file.write_text('default_attribute = "status"\n', encoding="utf-8")
        first = load_config(config_file)
        config_file.write_text('default_attribute = "phase"\n', encoding="utf-8")
        assert load_config(config_file) is first
        clear_config_cache()
        assert load_config(config_file).default_attribute == "phase"

    def test_configure_installs_runtime_config(self, tmp_path: Path) -> None:
        config_file = tmp_path / "stateful.toml"
        config_file.write_text(
            'default_attribute = "status"\n\n[logging]\nlevel = "ERROR"\n', encoding="utf-8"
        )
        config = configure(config_file)
        assert get_runtime_config() is config
        assert get_runtime_config().default_attribute == "status"
