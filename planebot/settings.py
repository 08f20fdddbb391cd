"""Settings resolution with profile precedence for the Plane connection."""

import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

import tomlkit
import typer
from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_PATH = Path.home() / ".config" / "planebot" / "config.toml"


class PlaneSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PLANE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_profile: str | None = None

    # Connection
    api_key: SecretStr | None = None
    workspace_slug: str | None = None
    project_id: str | None = None
    base_url: str = "https://api.plane.so/api/v1"
    app_url: str = "https://app.plane.so"

    # Per-phase timeouts (seconds)
    request_timeout: float = 30.0
    storage_timeout: float = 120.0

    # Logging
    log_level: str = "INFO"
    log_file: Path | None = None


@lru_cache(maxsize=1)
def _load_toml() -> tomlkit.TOMLDocument:
    """Load ~/.config/planebot/config.toml, returning empty document if missing."""
    if not CONFIG_PATH.exists():
        return tomlkit.document()
    return tomlkit.load(CONFIG_PATH.open())


def _list_profiles(config: Mapping) -> list[str]:
    # tomlkit Table implements MutableMapping but not dict, so check Mapping
    return [k for k, v in config.items() if isinstance(v, Mapping)]


def get_settings(profile: str | None = None) -> PlaneSettings:
    """Resolve the active profile and return a fully populated PlaneSettings.

    Precedence (highest to lowest):
    1. profile argument (--profile CLI flag)
    2. PLANE_DEFAULT_PROFILE env var
    3. default_profile key in ~/.config/planebot/config.toml
    4. First profile defined in ~/.config/planebot/config.toml
    """
    toml_config = _load_toml()

    active = (
        profile
        or os.environ.get("PLANE_DEFAULT_PROFILE")
        or toml_config.get("default_profile")
        or ((_profiles := _list_profiles(toml_config)) and _profiles[0] or None)
    )

    profile_defaults: dict = {}
    if active:
        if active in toml_config and isinstance(toml_config[active], Mapping):
            profile_defaults = dict(toml_config[active])
        elif active not in toml_config:
            profiles = _list_profiles(toml_config)
            typer.echo(f"Profile '{active}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}")
            raise typer.Exit(1)

    # env vars + .env always override profile defaults
    settings = PlaneSettings(**profile_defaults)

    missing = [
        name
        for name, value in (
            ("api_key", settings.api_key),
            ("workspace_slug", settings.workspace_slug),
            ("project_id", settings.project_id),
        )
        if not value
    ]
    if missing:
        env_names = ", ".join(f"PLANE_{name.upper()}" for name in missing)
        typer.echo(
            f"Missing Plane settings: {', '.join(missing)}. Set {env_names} or add them "
            f"to the [{active or 'profile'}] section of {CONFIG_PATH}"
        )
        raise typer.Exit(1)

    return settings
