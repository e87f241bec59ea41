"""Tests for engine configuration."""

from pathlib import Path

import pytest

from metabridge.config import (
    EngineConfig,
    DEFAULT_SCRIPT_DIR,
    R_DIALECT,
    PYTHON_DIALECT,
)


def test_defaults():
    config = EngineConfig()
    assert config.runner == "Rscript"
    assert config.timeout == 300.0
    assert config.dialect is R_DIALECT
    assert config.script_dir == DEFAULT_SCRIPT_DIR
    assert "meta" in config.required_packages


def test_config_is_immutable():
    config = EngineConfig()
    with pytest.raises(AttributeError):
        config.runner = "R"


@pytest.mark.parametrize("timeout", [0, -1])
def test_non_positive_timeout_rejected(timeout):
    with pytest.raises(ValueError):
        EngineConfig(timeout=timeout)


def test_timeout_can_be_disabled():
    assert EngineConfig(timeout=None).timeout is None


def test_with_overrides_leaves_original_untouched():
    config = EngineConfig()
    other = config.with_overrides(runner="/opt/R/bin/Rscript", dialect=PYTHON_DIALECT)
    assert other.runner == "/opt/R/bin/Rscript"
    assert other.dialect is PYTHON_DIALECT
    assert config.runner == "Rscript"


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("METABRIDGE_RSCRIPT", "/usr/local/bin/Rscript")
    monkeypatch.setenv("METABRIDGE_TIMEOUT", "42.5")
    monkeypatch.setenv("METABRIDGE_TEMP_DIR", str(tmp_path))
    monkeypatch.setenv("METABRIDGE_SCRIPT_DIR", str(tmp_path / "scripts"))

    config = EngineConfig.from_env(dotenv_path=tmp_path / "missing.env")

    assert config.runner == "/usr/local/bin/Rscript"
    assert config.timeout == 42.5
    assert config.temp_dir == str(tmp_path)
    assert config.script_dir == Path(tmp_path / "scripts")


@pytest.mark.parametrize("value", ["0", "none", "OFF"])
def test_from_env_disables_timeout(monkeypatch, tmp_path, value):
    monkeypatch.setenv("METABRIDGE_TIMEOUT", value)
    assert EngineConfig.from_env(dotenv_path=tmp_path / "missing.env").timeout is None


def test_from_env_reads_dotenv_file(monkeypatch, tmp_path):
    # Registers the variable with monkeypatch so the value loaded below is undone
    monkeypatch.setenv("METABRIDGE_RSCRIPT", "unset")
    monkeypatch.delenv("METABRIDGE_RSCRIPT")
    env_file = tmp_path / ".env"
    env_file.write_text("METABRIDGE_RSCRIPT=/from/dotenv/Rscript\n", encoding="utf-8")

    config = EngineConfig.from_env(dotenv_path=env_file)

    assert config.runner == "/from/dotenv/Rscript"
