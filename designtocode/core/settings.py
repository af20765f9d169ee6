"""Runtime settings for the export service."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)

SETTINGS_ENV = "DESIGNTOCODE_SETTINGS"

ENV_KEYS: Dict[str, str] = {
    "HOST": "host",
    "PORT": "port",
    "DESIGNTOCODE_ASSET_TIMEOUT": "asset_timeout",
    "DESIGNTOCODE_MAX_WORKERS": "max_workers",
    "DESIGNTOCODE_MAX_ASSET_BYTES": "max_asset_bytes",
    "DESIGNTOCODE_MAX_REQUEST_BYTES": "max_request_bytes",
    "DESIGNTOCODE_CORS_ORIGINS": "cors_origins",
}


@dataclass(frozen=True)
class ExportSettings:
    host: str = "127.0.0.1"
    port: int = 4000
    asset_timeout: float = 10.0
    max_workers: int = 8
    max_asset_bytes: int = 10 * 1024 * 1024
    max_request_bytes: int = 10 * 1024 * 1024
    cors_origins: str = "*"


def _coerce(name: str, raw: object, current: object) -> object:
    kind = type(current)
    if kind is int:
        value = int(str(raw).strip())
        if value <= 0:
            raise ValueError(f"{name} must be positive")
        return value
    if kind is float:
        value = float(str(raw).strip())
        if value <= 0:
            raise ValueError(f"{name} must be positive")
        return value
    return str(raw)


def _apply(settings: ExportSettings, values: Mapping[str, object], source: str) -> ExportSettings:
    known = {f.name for f in fields(ExportSettings)}
    changes: Dict[str, object] = {}
    for name, raw in values.items():
        if name not in known or raw is None or raw == "":
            continue
        try:
            changes[name] = _coerce(name, raw, getattr(settings, name))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid %s value from %s: %r", name, source, raw)
    return replace(settings, **changes) if changes else settings


def load_settings(
    path: str | Path | None = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ExportSettings:
    """Build settings from defaults, an optional JSON file, then the environment."""

    env = os.environ if environ is None else environ
    settings = ExportSettings()

    settings_path = path or env.get(SETTINGS_ENV)
    if settings_path:
        settings_path = Path(settings_path)
        try:
            data = json.loads(settings_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not read settings file %s: %s", settings_path, exc)
            data = {}
        if isinstance(data, dict):
            settings = _apply(settings, data, str(settings_path))

    from_env = {attr: env.get(key) for key, attr in ENV_KEYS.items() if key in env}
    return _apply(settings, from_env, "environment")
