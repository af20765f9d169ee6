"""Zip packaging of an emitted design."""

from __future__ import annotations

import io
import logging
import zipfile
from typing import Iterable, Mapping

from .assets import AssetResult, ResolvedAsset
from .errors import PackagingFailure
from .generator import INDEX_FILENAME, STYLESHEET_FILENAME, Emission

logger = logging.getLogger(__name__)

# fixed entry timestamp so identical exports produce identical archives
ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def resolved_assets(results: Iterable[AssetResult]) -> dict[str, bytes]:
    return {item.id: item.data for item in results if isinstance(item, ResolvedAsset)}


def _write_entry(zf: zipfile.ZipFile, name: str, data: bytes | str) -> None:
    info = zipfile.ZipInfo(name, date_time=ENTRY_DATE_TIME)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    zf.writestr(info, data)


def package(emission: Emission, assets: Mapping[str, bytes]) -> bytes:
    """Build the archive: index.html, styles.css, then one PNG per resolved asset."""

    buf = io.BytesIO()
    try:
        with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
            _write_entry(zf, INDEX_FILENAME, emission.markup.encode("utf-8"))
            _write_entry(zf, STYLESHEET_FILENAME, emission.stylesheet.encode("utf-8"))
            written: set[str] = set()
            for request in emission.asset_requests:
                data = assets.get(request.id)
                if data is None or request.path in written:
                    continue
                _write_entry(zf, request.path, data)
                written.add(request.path)
    except (OSError, ValueError, MemoryError, zipfile.LargeZipFile) as exc:
        logger.error("Failed to build archive: %s", exc)
        raise PackagingFailure(f"Could not build archive: {exc}") from exc
    logger.debug("Archive built with %d asset(s), %d bytes", len(written), buf.tell())
    return buf.getvalue()
