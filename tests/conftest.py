"""Shared test fixtures — fake vendor APIs served through httpx.MockTransport."""

from __future__ import annotations

import hashlib
import sys
from pathlib import Path
from typing import Callable

import httpx
import pytest

from mcctl.config import MCCtlSettings
from mcctl.events.bus import EventBus

PAPER = "https://api.papermc.io"
FABRIC = "https://meta.fabricmc.net"

Route = Callable[[httpx.Request], httpx.Response]

# Child that behaves like a server console: exits on "stop" or on EOF.
WAIT_FOR_STOP = (
    "import sys\n"
    "for line in sys.stdin:\n"
    "    if line.strip() == 'stop':\n"
    "        break\n"
)


def json_route(data, status: int = 200) -> Route:
    return lambda request: httpx.Response(status, json=data)


def bytes_route(content: bytes, status: int = 200) -> Route:
    return lambda request: httpx.Response(status, content=content)


class FakeVendor:
    """Routes requests by URL path and records every path requested."""

    def __init__(self, routes: dict[str, Route] | None = None) -> None:
        self.routes = routes or {}
        self.requests: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request.url.path)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        return route(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def sha256_hex(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def paper_routes(
    version: str = "1.20.1",
    builds: list[int] | None = None,
    name: str = "server-100.jar",
    content: bytes = b"paper server jar bytes",
    sha256: str | None = None,
) -> dict[str, Route]:
    """A Paper API that knows one version, whose last build is the artifact."""
    builds = [98, 99, 100] if builds is None else builds
    base = f"/v2/projects/paper/versions/{version}"
    routes: dict[str, Route] = {base: json_route({"builds": builds})}
    if builds:
        last = builds[-1]
        routes[f"{base}/builds/{last}"] = json_route({
            "downloads": {
                "application": {"name": name, "sha256": sha256 or sha256_hex(content)},
            },
        })
        routes[f"{base}/builds/{last}/downloads/{name}"] = bytes_route(content)
    return routes


def fabric_routes(
    version: str = "1.20.1",
    loaders: list[str] | None = None,
    installers: list[dict] | None = None,
    content: bytes = b"fabric launcher bytes",
) -> dict[str, Route]:
    loaders = ["0.15.11", "0.15.10"] if loaders is None else loaders
    installers = [
        {"version": "1.0.2", "stable": False, "url": ""},
        {"version": "1.0.1", "stable": True, "url": ""},
    ] if installers is None else installers
    routes: dict[str, Route] = {
        f"/v2/versions/loader/{version}": json_route([
            {"loader": {"version": v, "stable": i == 0}} for i, v in enumerate(loaders)
        ]),
        "/v2/versions/installer": json_route(installers),
    }
    if loaders and installers:
        stable = next((i for i in installers if i["stable"]), installers[0])
        path = f"/v2/versions/loader/{version}/{loaders[0]}/{stable['version']}/server/jar"
        routes[path] = bytes_route(content)
    return routes


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    return tmp_path / "minecraft_server"


@pytest.fixture
def test_settings(workdir: Path) -> MCCtlSettings:
    return MCCtlSettings(
        workdir=workdir,
        paper_api_url=PAPER,
        fabric_meta_url=FABRIC,
    )


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def python_console() -> list[str]:
    """Command for a child process that waits for 'stop' on stdin."""
    return [sys.executable, "-c", WAIT_FOR_STOP]
