"""Tests for planebot.settings — profile precedence and error paths."""

from pathlib import Path

import click
import pytest
import tomlkit

import planebot.settings as settings_module
from planebot.settings import _list_profiles, get_settings

_ENV_VARS = ("PLANE_DEFAULT_PROFILE", "PLANE_API_KEY", "PLANE_WORKSPACE_SLUG", "PLANE_PROJECT_ID")


def _write_config(tmp_path: Path, config: dict) -> Path:
    config_path = tmp_path / "config.toml"
    config_path.write_text(tomlkit.dumps(config))
    return config_path


def _profile(api_key: str, workspace: str = "acme", project: str = "proj-1") -> dict:
    return {"api_key": api_key, "workspace_slug": workspace, "project_id": project}


@pytest.fixture(autouse=True)
def reset_lru_cache():
    """Clear the lru_cache before each test."""
    settings_module._load_toml.cache_clear()
    yield
    settings_module._load_toml.cache_clear()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # keep a stray .env in the working directory from leaking in
    monkeypatch.chdir(tmp_path)


class TestListProfiles:
    def test_returns_section_keys(self) -> None:
        config = {
            "default_profile": "work",
            "work": {"workspace_slug": "acme"},
            "personal": {"workspace_slug": "me"},
        }
        assert _list_profiles(config) == ["work", "personal"]

    def test_skips_scalar_keys(self) -> None:
        config = {"default_profile": "work", "work": {"workspace_slug": "acme"}}
        assert _list_profiles(config) == ["work"]

    def test_empty_config(self) -> None:
        assert _list_profiles({}) == []


class TestGetSettings:
    def test_profile_arg_takes_precedence(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = _write_config(
            tmp_path,
            {
                "default_profile": "personal",
                "work": _profile("key_work"),
                "personal": _profile("key_personal"),
            },
        )
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)

        s = get_settings(profile="work")
        assert s.api_key is not None
        assert s.api_key.get_secret_value() == "key_work"

    def test_env_var_takes_precedence_over_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = _write_config(
            tmp_path,
            {
                "default_profile": "personal",
                "work": _profile("key_work"),
                "personal": _profile("key_personal"),
            },
        )
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)
        monkeypatch.setenv("PLANE_DEFAULT_PROFILE", "work")

        s = get_settings()
        assert s.api_key is not None
        assert s.api_key.get_secret_value() == "key_work"

    def test_toml_default_profile_used(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = _write_config(
            tmp_path,
            {"default_profile": "personal", "work": _profile("key_work"), "personal": _profile("key_personal")},
        )
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)

        s = get_settings()
        assert s.api_key is not None
        assert s.api_key.get_secret_value() == "key_personal"

    def test_first_profile_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = _write_config(tmp_path, {"work": _profile("key_first", project="proj-9")})
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)

        s = get_settings()
        assert s.project_id == "proj-9"

    def test_env_overrides_profile_values(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = _write_config(tmp_path, {"work": _profile("key_work")})
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)
        monkeypatch.setenv("PLANE_PROJECT_ID", "proj-from-env")

        s = get_settings(profile="work")
        assert s.project_id == "proj-from-env"

    def test_missing_profile_exits(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = _write_config(tmp_path, {"work": _profile("key_work")})
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)

        with pytest.raises((SystemExit, click.exceptions.Exit)):
            get_settings(profile="nonexistent")

    def test_missing_api_key_exits(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = _write_config(tmp_path, {"work": {"workspace_slug": "acme", "project_id": "proj-1"}})
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)

        with pytest.raises((SystemExit, click.exceptions.Exit)):
            get_settings(profile="work")

    def test_missing_project_exits(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = _write_config(tmp_path, {"work": {"api_key": "k", "workspace_slug": "acme"}})
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)

        with pytest.raises((SystemExit, click.exceptions.Exit)):
            get_settings(profile="work")

    def test_no_config_file_uses_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings_module, "CONFIG_PATH", tmp_path / "nonexistent.toml")
        monkeypatch.setenv("PLANE_API_KEY", "key_env")
        monkeypatch.setenv("PLANE_WORKSPACE_SLUG", "acme")
        monkeypatch.setenv("PLANE_PROJECT_ID", "proj-1")

        s = get_settings()
        assert s.workspace_slug == "acme"
        assert s.base_url == "https://api.plane.so/api/v1"
        assert s.request_timeout == 30.0
        assert s.storage_timeout == 120.0

    def test_timeouts_from_profile(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = _write_config(tmp_path, {"work": {**_profile("k"), "storage_timeout": 300}})
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)

        assert get_settings().storage_timeout == 300.0
