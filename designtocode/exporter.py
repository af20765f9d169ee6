"""In-process export entry points: scene payload in, zip archive out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import requests

from .core.assets import resolve_assets
from .core.errors import AssetResolutionFailure, PackagingFailure
from .core.generator import Emission, emit, write_site
from .core.models import Scene
from .core.packager import package, resolved_assets
from .core.settings import ExportSettings

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "design-export.zip"


@dataclass(slots=True)
class ExportResult:
    data: bytes
    filename: str = EXPORT_FILENAME
    assets_written: int = 0
    failures: List[AssetResolutionFailure] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)


def _warnings_for(emission: Emission, failures: List[AssetResolutionFailure]) -> List[str]:
    warnings = [f"Element {element_id} was not exported" for element_id in emission.skipped]
    warnings.extend(f"Asset {failure.asset_id} omitted: {failure.reason}" for failure in failures)
    return warnings


def export_scene(
    scene: Scene,
    settings: Optional[ExportSettings] = None,
    session: Optional[requests.Session] = None,
    close_session: bool = False,
) -> ExportResult:
    settings = settings or ExportSettings()
    emission = emit(scene)
    results = resolve_assets(
        emission.asset_requests, settings, session=session, close_session=close_session
    )
    assets = resolved_assets(results)
    failures = [item for item in results if isinstance(item, AssetResolutionFailure)]
    data = package(emission, assets)
    result = ExportResult(
        data=data,
        assets_written=len(assets),
        failures=failures,
        skipped=list(emission.skipped),
        warnings=_warnings_for(emission, failures),
    )
    logger.info(
        "Exported %d element(s): %d asset(s) packaged, %d failed, %d skipped",
        len(scene),
        result.assets_written,
        len(failures),
        len(result.skipped),
    )
    return result


def export_design(
    payload: object,
    settings: Optional[ExportSettings] = None,
    session: Optional[requests.Session] = None,
) -> ExportResult:
    """Validate a request payload and export it.

    Raises ``InvalidInput`` before any asset is fetched when the payload has
    no ``items``; raises ``PackagingFailure`` when the archive cannot be built.
    Individual asset failures only show up in ``ExportResult.failures``.
    """

    scene = Scene.from_dict(payload)
    return export_scene(scene, settings=settings, session=session)


def export_to_directory(
    scene: Scene,
    output_dir: str | Path,
    settings: Optional[ExportSettings] = None,
    session: Optional[requests.Session] = None,
) -> ExportResult:
    settings = settings or ExportSettings()
    emission = emit(scene)
    results = resolve_assets(emission.asset_requests, settings, session=session)
    assets = resolved_assets(results)
    failures = [item for item in results if isinstance(item, AssetResolutionFailure)]
    try:
        write_site(emission, assets, output_dir)
    except OSError as exc:
        raise PackagingFailure(f"Could not write {output_dir}: {exc}") from exc
    return ExportResult(
        data=b"",
        filename=str(output_dir),
        assets_written=len(assets),
        failures=failures,
        skipped=list(emission.skipped),
        warnings=_warnings_for(emission, failures),
    )
