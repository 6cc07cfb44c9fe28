"""Settings tests."""

from pathlib import Path

import pytest

from specgate.config import Settings
from specgate.watching.types import ConfigCategory


def test_watch_roots_sit_under_config_dir(tmp_path: Path) -> None:
    """Each category is watched in its own directory under config_dir."""
    settings = Settings(workspace=tmp_path)

    roots = settings.watch_roots

    assert settings.config_root == (tmp_path / ".kiro").resolve()
    assert roots[ConfigCategory.SPECS] == settings.config_root / "specs"
    assert roots[ConfigCategory.HOOKS] == settings.config_root / "hooks"
    assert roots[ConfigCategory.STEERING] == settings.config_root / "steering"


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """SPECGATE_ variables override defaults."""
    monkeypatch.setenv("SPECGATE_WORKSPACE", str(tmp_path))
    monkeypatch.setenv("SPECGATE_DEBOUNCE_MS", "250")
    monkeypatch.setenv("SPECGATE_COMMAND_TIMEOUT", "5")

    settings = Settings()

    assert settings.workspace == tmp_path
    assert settings.debounce_ms == 250
    assert settings.command_timeout == 5.0
