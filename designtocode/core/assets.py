"""Concurrent resolution of image assets referenced by a scene."""

from __future__ import annotations

import base64
import binascii
import logging
import math
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union
from urllib.parse import unquote_to_bytes, urlparse

import requests

from .errors import AssetResolutionFailure
from .generator import AssetRequest
from .settings import ExportSettings

logger = logging.getLogger(__name__)

USER_AGENT = "designtocode-exporter/1.0"
# slack on top of the per-fetch timeout before the join gives up on a task
JOIN_GRACE_SECONDS = 2.0


@dataclass(frozen=True, slots=True)
class ResolvedAsset:
    id: str
    src: str
    data: bytes


AssetResult = Union[ResolvedAsset, AssetResolutionFailure]


def decode_data_uri(uri: str) -> bytes:
    header, sep, payload = uri.partition(",")
    if not sep or not header.lower().startswith("data:"):
        raise ValueError("malformed data URI")
    if header.lower().endswith(";base64"):
        try:
            return base64.b64decode(payload.strip(), validate=False)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"invalid base64 payload: {exc}") from None
    return unquote_to_bytes(payload)


def fetch_url(session: requests.Session, url: str, settings: ExportSettings) -> bytes:
    response = session.get(
        url,
        timeout=settings.asset_timeout,
        stream=True,
        headers={"User-Agent": USER_AGENT},
    )
    try:
        response.raise_for_status()
        chunks: List[bytes] = []
        total = 0
        for chunk in response.iter_content(chunk_size=64 * 1024):
            total += len(chunk)
            if total > settings.max_asset_bytes:
                raise ValueError(f"asset larger than {settings.max_asset_bytes} bytes")
            chunks.append(chunk)
        return b"".join(chunks)
    finally:
        response.close()


def resolve_one(request: AssetRequest, session: requests.Session, settings: ExportSettings) -> AssetResult:
    src = (request.src or "").strip()
    try:
        if not src:
            raise ValueError("empty source")
        scheme = urlparse(src).scheme.lower()
        if scheme == "data":
            data = decode_data_uri(src)
            if len(data) > settings.max_asset_bytes:
                raise ValueError(f"asset larger than {settings.max_asset_bytes} bytes")
        elif scheme in {"http", "https"}:
            data = fetch_url(session, src, settings)
        else:
            raise ValueError(f"unsupported asset reference scheme {scheme or '(none)'!r}")
        if not data:
            raise ValueError("empty asset body")
    except requests.Timeout:
        return _failed(request, "timed out")
    except (requests.RequestException, ValueError) as exc:
        return _failed(request, str(exc))
    return ResolvedAsset(id=request.id, src=src, data=data)


def _failed(request: AssetRequest, reason: str) -> AssetResolutionFailure:
    logger.warning("Asset %s could not be resolved from %s: %s", request.id, _short(request.src), reason)
    return AssetResolutionFailure(request.id, request.src, reason)


def _short(src: str, limit: int = 80) -> str:
    if src and len(src) > limit:
        return src[:limit] + "..."
    return src


def resolve_assets(
    asset_requests: Sequence[AssetRequest],
    settings: Optional[ExportSettings] = None,
    session: Optional[requests.Session] = None,
    close_session: bool = False,
) -> List[AssetResult]:
    """Resolve every request concurrently; one result per request, in order.

    A failure in one task never affects the others. Tasks still running when
    the join deadline passes are cancelled and reported as timeouts.

    A session created here, or passed with ``close_session=True``, is closed
    only after every worker has finished with it.
    """

    settings = settings or ExportSettings()
    if not asset_requests:
        if session is not None and close_session:
            session.close()
        return []

    owns_session = session is None or close_session
    if session is None:
        session = requests.Session()

    futures: List[Future] = []
    workers = max(1, min(settings.max_workers, len(asset_requests)))
    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="asset-fetch")
    try:
        futures = [executor.submit(resolve_one, req, session, settings) for req in asset_requests]
        rounds = math.ceil(len(asset_requests) / workers)
        deadline = rounds * settings.asset_timeout + JOIN_GRACE_SECONDS
        wait(futures, timeout=deadline)
        results: List[AssetResult] = []
        for request, future in zip(asset_requests, futures):
            if not future.done():
                future.cancel()
                results.append(_failed(request, "timed out"))
                continue
            exc = future.exception()
            if exc is not None:
                results.append(_failed(request, f"unexpected error: {exc}"))
                continue
            results.append(future.result())
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
        if owns_session:
            _close_when_settled(session, futures)

    resolved = sum(1 for item in results if isinstance(item, ResolvedAsset))
    logger.info("Resolved %d of %d assets", resolved, len(asset_requests))
    return results


def _close_when_settled(session: requests.Session, futures: Sequence[Future]) -> None:
    """Close ``session`` once no worker can still be using it."""

    pending = [future for future in futures if not future.done()]
    if not pending:
        session.close()
        return

    lock = threading.Lock()
    remaining = [len(pending)]

    def _settled(_future: Future) -> None:
        with lock:
            remaining[0] -= 1
            last = remaining[0] == 0
        if last:
            session.close()
            logger.debug("Closed asset session after %d late fetch(es) settled", len(pending))

    for future in pending:
        future.add_done_callback(_settled)
