from __future__ import annotations

import base64
import threading
import time

import requests

from designtocode.core import assets as assets_module
from designtocode.core.assets import ResolvedAsset, decode_data_uri, resolve_assets
from designtocode.core.errors import AssetResolutionFailure
from designtocode.core.generator import AssetRequest
from designtocode.core.settings import ExportSettings

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def test_decode_data_uri_handles_base64_and_plain() -> None:
    encoded = base64.b64encode(PNG_BYTES).decode("ascii")
    assert decode_data_uri(f"data:image/png;base64,{encoded}") == PNG_BYTES
    assert decode_data_uri("data:text/plain,hello%20world") == b"hello world"


def test_results_follow_request_order(fake_session) -> None:
    session = fake_session({
        "https://cdn.test/a.png": b"A",
        "https://cdn.test/b.png": b"B",
    })
    requests_ = [
        AssetRequest(id="b", src="https://cdn.test/b.png"),
        AssetRequest(id="a", src="https://cdn.test/a.png"),
    ]
    results = resolve_assets(requests_, ExportSettings(), session=session)
    assert [(r.id, r.data) for r in results] == [("b", b"B"), ("a", b"A")]
    assert sorted(session.calls) == ["https://cdn.test/a.png", "https://cdn.test/b.png"]


def test_failures_are_isolated_per_asset(fake_session) -> None:
    session = fake_session({
        "https://cdn.test/ok.png": PNG_BYTES,
        "https://cdn.test/missing.png": 404,
        "https://cdn.test/slow.png": requests.Timeout("read timed out"),
    })
    results = resolve_assets(
        [
            AssetRequest(id="ok", src="https://cdn.test/ok.png"),
            AssetRequest(id="missing", src="https://cdn.test/missing.png"),
            AssetRequest(id="slow", src="https://cdn.test/slow.png"),
            AssetRequest(id="down", src="https://unreachable.test/x.png"),
            AssetRequest(id="local", src="file:///etc/passwd"),
            AssetRequest(id="blank", src=""),
        ],
        ExportSettings(),
        session=session,
    )
    assert isinstance(results[0], ResolvedAsset)
    failures = results[1:]
    assert all(isinstance(item, AssetResolutionFailure) for item in failures)
    assert [item.asset_id for item in failures] == ["missing", "slow", "down", "local", "blank"]
    assert failures[1].reason == "timed out"
    assert "file:///etc/passwd" not in session.calls


def test_data_uris_are_decoded_without_network(fake_session) -> None:
    session = fake_session({})
    encoded = base64.b64encode(PNG_BYTES).decode("ascii")
    results = resolve_assets(
        [AssetRequest(id="inline", src=f"data:image/png;base64,{encoded}")],
        ExportSettings(),
        session=session,
    )
    assert results == [ResolvedAsset(id="inline", src=f"data:image/png;base64,{encoded}", data=PNG_BYTES)]
    assert session.calls == []


def test_oversized_assets_are_rejected(fake_session) -> None:
    session = fake_session({"https://cdn.test/big.png": b"x" * 2048})
    settings = ExportSettings(max_asset_bytes=1024)
    results = resolve_assets([AssetRequest(id="big", src="https://cdn.test/big.png")], settings, session=session)
    assert isinstance(results[0], AssetResolutionFailure)
    assert "larger than" in results[0].reason


def test_never_resolving_fetch_counts_as_timeout(fake_session, monkeypatch) -> None:
    monkeypatch.setattr(assets_module, "JOIN_GRACE_SECONDS", 0.05)
    hang = threading.Event()
    session = fake_session({
        "https://cdn.test/hang.png": hang,
        "https://cdn.test/ok.png": b"ok",
    })
    try:
        results = resolve_assets(
            [
                AssetRequest(id="hang", src="https://cdn.test/hang.png"),
                AssetRequest(id="ok", src="https://cdn.test/ok.png"),
            ],
            ExportSettings(asset_timeout=0.1),
            session=session,
        )
    finally:
        hang.set()
    assert isinstance(results[0], AssetResolutionFailure)
    assert results[0].reason == "timed out"
    assert results[1] == ResolvedAsset(id="ok", src="https://cdn.test/ok.png", data=b"ok")


def test_unexpected_exceptions_become_failures(fake_session) -> None:
    session = fake_session({"https://cdn.test/boom.png": RuntimeError("boom")})
    results = resolve_assets([AssetRequest(id="boom", src="https://cdn.test/boom.png")], ExportSettings(), session=session)
    assert isinstance(results[0], AssetResolutionFailure)
    assert "boom" in results[0].reason


def test_no_requests_means_no_work() -> None:
    assert resolve_assets([]) == []


def test_session_is_closed_only_after_late_fetches_settle(fake_session, monkeypatch) -> None:
    monkeypatch.setattr(assets_module, "JOIN_GRACE_SECONDS", 0.05)
    hang = threading.Event()
    session = fake_session({"https://cdn.test/hang.png": hang})
    try:
        results = resolve_assets(
            [AssetRequest(id="hang", src="https://cdn.test/hang.png")],
            ExportSettings(asset_timeout=0.1),
            session=session,
            close_session=True,
        )
        assert results[0].reason == "timed out"
        assert not session.closed
    finally:
        hang.set()
    deadline = time.monotonic() + 5
    while not session.closed and time.monotonic() < deadline:
        time.sleep(0.01)
    assert session.closed


def test_borrowed_session_is_left_open(fake_session) -> None:
    session = fake_session({"https://cdn.test/a.png": b"A"})
    resolve_assets([AssetRequest(id="a", src="https://cdn.test/a.png")], ExportSettings(), session=session)
    assert not session.closed
    resolve_assets([], ExportSettings(), session=session, close_session=True)
    assert session.closed
