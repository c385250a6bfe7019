"""Configuration management module"""
import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
    PydanticBaseSettingsSource,
    TomlConfigSettingsSource,
)


def get_state_dir() -> Path:
    """Get the default state directory (PID file, logs, config.toml)"""
    return Path.home() / ".remote-workspace"


def get_config_file() -> Path | None:
    """Get config file path if it exists

    ``REMOTE_WORKSPACE_CONFIG`` wins over ``~/.remote-workspace/config.toml``.
    """
    explicit = os.environ.get("REMOTE_WORKSPACE_CONFIG")
    if explicit:
        config_file = Path(explicit).expanduser()
        return config_file if config_file.exists() else None

    config_file = get_state_dir() / "config.toml"
    if config_file.exists():
        return config_file
    return None


class Settings(BaseSettings):
    """Daemon configuration settings

    Field names double as environment variable names (case-insensitive),
    so ``PORT``, ``HOST``, ``WORKSPACE_ROOT`` and ``SHELL`` are picked up
    directly.
    """

    # Server configuration
    host: str = "127.0.0.1"
    port: int = 37507

    # Workspace configuration
    workspace_root: Path = Field(default_factory=Path.cwd, validate_default=True)

    # Terminal configuration
    shell: str = "/bin/bash"
    terminal_cols: int = 80
    terminal_rows: int = 24
    terminal_term: str = "xterm-color"

    # CORS configuration
    cors_origins: list[str] = ["*"]

    # Worker threads allowed to run blocking filesystem walks at once
    fs_max_workers: int = 4

    # File change broadcasting
    watch_enabled: bool = True

    # State and logging configuration
    state_dir: Path = get_state_dir()
    log_level: str = "INFO"
    log_to_file: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("workspace_root")
    @classmethod
    def _resolve_workspace_root(cls, value: Path) -> Path:
        """Canonicalize the root once; it never changes afterwards"""
        root = Path(value).expanduser().resolve()
        if not root.is_dir():
            raise ValueError(f"Workspace root is not a directory: {root}")
        return root

    @field_validator("state_dir")
    @classmethod
    def _expand_state_dir(cls, value: Path) -> Path:
        return Path(value).expanduser()

    @field_validator("fs_max_workers")
    @classmethod
    def _positive_workers(cls, value: int) -> int:
        if value < 1:
            raise ValueError("fs_max_workers must be at least 1")
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include TOML file"""
        config_file = get_config_file()
        if config_file:
            toml_settings = TomlConfigSettingsSource(
                settings_cls, toml_file=config_file
            )
            return (
                init_settings,
                env_settings,
                dotenv_settings,
                toml_settings,
                file_secret_settings,
            )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @property
    def pid_file(self) -> Path:
        return self.state_dir / "daemon.pid"

    @property
    def logs_dir(self) -> Path:
        return self.state_dir / "logs"


def get_settings(**overrides) -> Settings:
    """Build settings from all sources, with explicit overrides on top

    Args:
        **overrides: Values that win over env/TOML (e.g. CLI flags);
            ``None`` values are ignored

    Returns:
        Settings instance
    """
    return Settings(**{k: v for k, v in overrides.items() if v is not None})
