from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Dict

import httpx
import pytest

# Make the repository importable without installation (blaster/ and scripts/).
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from blaster.config import Settings  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    """Settings with no credentials, so every adapter uses its keyless path."""

    return Settings(request_timeout=2.0)


def route_transport(routes: Dict[str, Callable[[httpx.Request], httpx.Response]], calls: list | None = None) -> httpx.MockTransport:
    """MockTransport dispatching on host (or host + path); unknown hosts get 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        for key in (f"{request.url.host}{request.url.path}", request.url.host):
            if key in routes:
                return routes[key](request)
        return httpx.Response(404, text="not found")

    return httpx.MockTransport(handler)


@pytest.fixture
def make_transport():
    return route_transport
