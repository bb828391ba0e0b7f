"""Tests for the Paper and Fabric artifact resolvers."""

from __future__ import annotations

import httpx
import pytest

from mcctl.artifacts.resolver import (
    FabricResolver,
    PaperResolver,
    fetch_json,
    PaperVersion,
    resolver_for,
)
from mcctl.exceptions import (
    MalformedMetadataError,
    NetworkError,
    NoBuildsFoundError,
    NoStableLoaderError,
)
from mcctl.types import DistributionChannel

from tests.conftest import (
    FABRIC,
    PAPER,
    FakeVendor,
    bytes_route,
    fabric_routes,
    json_route,
    paper_routes,
)


# ── Paper ───────────────────────────────────────────────────────


async def test_paper_picks_last_build(workdir):
    vendor = FakeVendor(paper_routes(sha256="abc123" + "0" * 58))
    async with vendor.client() as client:
        descriptor = await PaperResolver(client, workdir, PAPER).resolve("1.20.1")

    assert descriptor.download_url == (
        f"{PAPER}/v2/projects/paper/versions/1.20.1/builds/100/downloads/server-100.jar"
    )
    assert descriptor.destination == workdir / "server.jar"
    assert descriptor.expected_digest == "abc123" + "0" * 58
    assert descriptor.verifiable
    assert vendor.requests == [
        "/v2/projects/paper/versions/1.20.1",
        "/v2/projects/paper/versions/1.20.1/builds/100",
    ]


async def test_paper_empty_build_list(workdir):
    vendor = FakeVendor(paper_routes(builds=[]))
    async with vendor.client() as client:
        with pytest.raises(NoBuildsFoundError):
            await PaperResolver(client, workdir, PAPER).resolve("1.20.1")
    assert vendor.requests == ["/v2/projects/paper/versions/1.20.1"]


async def test_paper_unknown_version_is_network_error(workdir):
    vendor = FakeVendor(paper_routes(version="1.20.1"))
    async with vendor.client() as client:
        with pytest.raises(NetworkError, match="HTTP 404"):
            await PaperResolver(client, workdir, PAPER).resolve("9.99")


async def test_paper_malformed_build_details(workdir):
    routes = paper_routes()
    routes["/v2/projects/paper/versions/1.20.1/builds/100"] = json_route({"downloads": {}})
    vendor = FakeVendor(routes)
    async with vendor.client() as client:
        with pytest.raises(MalformedMetadataError):
            await PaperResolver(client, workdir, PAPER).resolve("1.20.1")


async def test_paper_version_is_forwarded_unvalidated(workdir):
    vendor = FakeVendor()
    async with vendor.client() as client:
        with pytest.raises(NetworkError):
            await PaperResolver(client, workdir, PAPER).resolve("weird version")
    assert vendor.requests == ["/v2/projects/paper/versions/weird version"]


# ── Fabric ──────────────────────────────────────────────────────


async def test_fabric_uses_first_loader_and_stable_installer(workdir):
    vendor = FakeVendor(fabric_routes())
    async with vendor.client() as client:
        descriptor = await FabricResolver(client, workdir, FABRIC).resolve("1.20.1")

    assert descriptor.download_url == (
        f"{FABRIC}/v2/versions/loader/1.20.1/0.15.11/1.0.1/server/jar"
    )
    assert descriptor.destination == (
        workdir / "fabric-server-mc.1.20.1-loader.0.15.11-launcher.1.0.1.jar"
    )
    assert descriptor.expected_digest is None
    assert not descriptor.verifiable


async def test_fabric_falls_back_to_first_installer(workdir):
    vendor = FakeVendor(fabric_routes(installers=[{"version": "0.9.0", "stable": False}]))
    async with vendor.client() as client:
        descriptor = await FabricResolver(client, workdir, FABRIC).resolve("1.20.1")
    assert descriptor.download_url.endswith("/0.15.11/0.9.0/server/jar")


async def test_fabric_no_loader(workdir):
    vendor = FakeVendor(fabric_routes(loaders=[]))
    async with vendor.client() as client:
        with pytest.raises(NoStableLoaderError):
            await FabricResolver(client, workdir, FABRIC).resolve("1.20.1")


async def test_fabric_no_installer(workdir):
    vendor = FakeVendor(fabric_routes(installers=[]))
    async with vendor.client() as client:
        with pytest.raises(NoStableLoaderError):
            await FabricResolver(client, workdir, FABRIC).resolve("1.20.1")


# ── fetch_json ──────────────────────────────────────────────────


async def test_fetch_json_invalid_body():
    vendor = FakeVendor({"/x": bytes_route(b"<html>not json</html>")})
    async with vendor.client() as client:
        with pytest.raises(MalformedMetadataError, match="invalid JSON"):
            await fetch_json(client, f"{PAPER}/x", PaperVersion)


async def test_fetch_json_server_error():
    vendor = FakeVendor({"/x": json_route({"error": "boom"}, status=503)})
    async with vendor.client() as client:
        with pytest.raises(NetworkError, match="HTTP 503"):
            await fetch_json(client, f"{PAPER}/x", PaperVersion)


async def test_fetch_json_transport_error():
    def _refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(_refuse)) as client:
        with pytest.raises(NetworkError, match="connection refused"):
            await fetch_json(client, f"{PAPER}/x", PaperVersion)


# ── Registry ────────────────────────────────────────────────────


async def test_resolver_for_each_channel(test_settings):
    async with httpx.AsyncClient() as client:
        paper = resolver_for(DistributionChannel.PAPER, client, test_settings)
        fabric = resolver_for(DistributionChannel.FABRIC, client, test_settings)
    assert isinstance(paper, PaperResolver)
    assert isinstance(fabric, FabricResolver)
    assert {paper.channel, fabric.channel} == set(DistributionChannel)
