from __future__ import annotations

import json

from designtocode.core.settings import ExportSettings, load_settings


def test_defaults_without_file_or_environment() -> None:
    assert load_settings(environ={}) == ExportSettings()


def test_file_then_environment_layering(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"port": 5000, "asset_timeout": 3, "unknown": 1}), encoding="utf-8")
    settings = load_settings(path, environ={"PORT": "6000", "DESIGNTOCODE_MAX_WORKERS": "2"})
    assert settings.port == 6000
    assert settings.asset_timeout == 3.0
    assert settings.max_workers == 2


def test_settings_path_can_come_from_environment(tmp_path) -> None:
    path = tmp_path / "s.json"
    path.write_text(json.dumps({"cors_origins": "http://a.test,http://b.test"}), encoding="utf-8")
    settings = load_settings(environ={"DESIGNTOCODE_SETTINGS": str(path)})
    assert settings.cors_origins == "http://a.test,http://b.test"


def test_invalid_values_are_ignored(tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    settings = load_settings(path, environ={"PORT": "eighty", "DESIGNTOCODE_ASSET_TIMEOUT": "-1"})
    assert settings.port == 4000
    assert settings.asset_timeout == 10.0
