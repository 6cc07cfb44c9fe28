"""Workspace configuration loaded from environment variables."""
from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from specgate.watching.types import WATCHED_DIRECTORIES, ConfigCategory


class Settings(BaseSettings):
    """Workspace configuration loaded from environment variables.

    Attributes:
        workspace: Root directory of the workspace.
        config_dir: Directory under the workspace holding specs, hooks
            and steering documents.
        debounce_ms: Debounce window for configuration change events.
        command_timeout: Seconds before an execute_command action is killed.
        debug: Enable debug-level logging.
        json_logs: Emit JSON log lines instead of console output.
    """

    model_config = SettingsConfigDict(
        env_prefix="SPECGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    workspace: Path = Path(".")
    config_dir: str = ".kiro"
    debounce_ms: int = 100
    command_timeout: float = 60.0
    debug: bool = False
    json_logs: bool = True

    @computed_field
    @property
    def config_root(self) -> Path:
        """Absolute path of the configuration directory.

        Returns:
            Resolved path of workspace/config_dir.
        """
        return (self.workspace / self.config_dir).resolve()

    @computed_field
    @property
    def watch_roots(self) -> dict[ConfigCategory, Path]:
        """Map each configuration category to its directory.

        Returns:
            Category to absolute directory mapping.
        """
        return {
            category: self.config_root / directory
            for category, directory in WATCHED_DIRECTORIES.items()
        }
