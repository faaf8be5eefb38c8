from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from flashsync.domain.constants import DEFAULT_PORT, HISTORY_LIMIT, QUEUE_LOOKBACK

def config_files() -> list[Path]:
    return [
        Path.home() / ".config/flashsync/config.toml",
        Path.home() / ".flashsync.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for flashsync.
    Supports loading from:
    1. Environment variables (FLASHSYNC_*)
    2. Config file (~/.config/flashsync/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="FLASHSYNC_",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".local/share/flashsync/sessions"
    )
    catalog_path: Path | None = None
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/flashsync/logs")

    # Storage
    backend: Literal["file", "memory"] = "file"

    # Engine bounds
    history_limit: int = Field(default=HISTORY_LIMIT, gt=0)
    queue_lookback: int = Field(default=QUEUE_LOOKBACK, gt=0)

    # Server
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Highest priority first: CLI overrides, then env, then the first existing TOML file
        toml_file = next((f for f in config_files() if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_dir", "log_dir", mode="before")
    @classmethod
    def resolve_dir(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("catalog_path", mode="before")
    @classmethod
    def resolve_catalog(cls, v: Any) -> Path | None:
        if v:
            return Path(v).expanduser().resolve()
        return None


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/flashsync/config.toml (if exists)
    3. Environment variables (FLASHSYNC_*)
    4. cli_overrides (passed from Typer), None values ignored
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
