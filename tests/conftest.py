from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Dict, List, Union

import pytest
import requests

sys.path.append(str(Path(__file__).resolve().parents[1]))


class FakeResponse:
    def __init__(self, body: bytes, status_code: int = 200) -> None:
        self.body = body
        self.status_code = status_code
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True


Route = Union[bytes, int, Exception, threading.Event]


class FakeSession:
    """Stands in for ``requests.Session``; routes map URL to a canned outcome.

    bytes -> 200 with that body, int -> that status with an empty body,
    Exception -> raised, Event -> blocks until the event is set.
    """

    def __init__(self, routes: Dict[str, Route]) -> None:
        self.routes = routes
        self.calls: List[str] = []
        self.closed = False
        self._lock = threading.Lock()

    def get(self, url: str, **kwargs) -> FakeResponse:
        with self._lock:
            self.calls.append(url)
        outcome = self.routes.get(url)
        if outcome is None:
            raise requests.ConnectionError(f"unreachable: {url}")
        if isinstance(outcome, threading.Event):
            outcome.wait(5)
            raise requests.ConnectionError("released")
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, int):
            return FakeResponse(b"", status_code=outcome)
        return FakeResponse(outcome)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_session():
    def make(routes: Dict[str, Route]) -> FakeSession:
        return FakeSession(routes)

    return make


@pytest.fixture
def basic_payload() -> dict:
    return {
        "canvasWidth": 1100,
        "canvasHeight": 700,
        "items": [
            {"id": "rect-1", "type": "rect", "x": 110, "y": 70, "width": 220, "height": 140, "fill": "#60A5FA"},
            {"id": "text-1", "type": "text", "x": 0, "y": 0, "text": "Hello", "fontSize": 22, "fill": "#111"},
            {"id": "img-1", "type": "image", "x": 550, "y": 350, "width": 110, "height": 70, "src": "https://cdn.test/a.png"},
        ],
    }
