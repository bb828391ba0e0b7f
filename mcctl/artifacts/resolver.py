"""Artifact resolvers — turn a version string into something downloadable.

Neither vendor exposes a single version → file endpoint, so every resolver
walks two metadata hops before it can name a download URL:

  Paper:   versions/{v} (build list)  →  builds/{n} (file name + sha256)
  Fabric:  loader/{v} (loader list)   →  installer list  →  server jar URL

Each hop can fail on transport (NetworkError), on shape (MalformedMetadataError)
or on an empty result (NoBuildsFoundError / NoStableLoaderError).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from mcctl.config import MCCtlSettings
from mcctl.exceptions import (
    MalformedMetadataError,
    NetworkError,
    NoBuildsFoundError,
    NoStableLoaderError,
)
from mcctl.types import DistributionChannel

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactDescriptor:
    """A resolved, installable artifact. Never persisted."""

    download_url: str
    destination: Path
    expected_digest: str | None = None

    @property
    def verifiable(self) -> bool:
        return self.expected_digest is not None


# ── Vendor schemas ────────────────────────────────────────────────


class PaperVersion(BaseModel):
    builds: list[int]


class PaperDownloadInfo(BaseModel):
    name: str
    sha256: str


class PaperDownloads(BaseModel):
    application: PaperDownloadInfo


class PaperBuild(BaseModel):
    downloads: PaperDownloads


class FabricLoaderInfo(BaseModel):
    version: str
    stable: bool = False


class FabricLoaderEntry(BaseModel):
    loader: FabricLoaderInfo


class FabricInstaller(BaseModel):
    version: str
    stable: bool = False
    url: str = ""


async def fetch_json(client: httpx.AsyncClient, url: str, schema: Any) -> Any:
    """GET ``url`` and validate the JSON body against ``schema``.

    ``schema`` is anything TypeAdapter accepts (a model or ``list[Model]``).
    """
    try:
        resp = await client.get(url)
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise NetworkError(f"{url} returned HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise NetworkError(f"request to {url} failed: {e}") from e

    try:
        payload = resp.json()
    except ValueError as e:
        raise MalformedMetadataError(f"{url} returned invalid JSON") from e

    try:
        return TypeAdapter(schema).validate_python(payload)
    except ValidationError as e:
        raise MalformedMetadataError(
            f"unexpected response shape from {url}: {e.error_count()} error(s)"
        ) from e


class ArtifactResolver(ABC):
    """Resolves a version identifier to an ArtifactDescriptor for one channel."""

    channel: DistributionChannel
    base_url_setting: str  # MCCtlSettings field holding the vendor base URL

    def __init__(self, client: httpx.AsyncClient, workdir: Path, base_url: str) -> None:
        self._client = client
        self._workdir = Path(workdir)
        self._base_url = base_url.rstrip("/")

    @abstractmethod
    async def resolve(self, version: str) -> ArtifactDescriptor:
        """Walk the vendor metadata for ``version``. Version is forwarded as-is."""


class PaperResolver(ArtifactResolver):
    """PaperMC: latest build of a version, published with a SHA-256."""

    channel = DistributionChannel.PAPER
    base_url_setting = "paper_api_url"
    jar_name = "server.jar"

    def _version_url(self, version: str) -> str:
        return f"{self._base_url}/v2/projects/paper/versions/{version}"

    async def resolve(self, version: str) -> ArtifactDescriptor:
        version_url = self._version_url(version)
        info: PaperVersion = await fetch_json(self._client, version_url, PaperVersion)
        if not info.builds:
            raise NoBuildsFoundError(f"no builds found for paper {version}")
        build = info.builds[-1]
        _logger.info("Latest paper build for %s: %d", version, build)

        build_url = f"{version_url}/builds/{build}"
        details: PaperBuild = await fetch_json(self._client, build_url, PaperBuild)
        app = details.downloads.application

        return ArtifactDescriptor(
            download_url=f"{build_url}/downloads/{app.name}",
            destination=self._workdir / self.jar_name,
            expected_digest=app.sha256,
        )


class FabricResolver(ArtifactResolver):
    """Fabric: server launcher jar for the newest loader + installer.

    Fabric meta publishes no digest for the launcher jar.
    """

    channel = DistributionChannel.FABRIC
    base_url_setting = "fabric_meta_url"

    async def resolve(self, version: str) -> ArtifactDescriptor:
        loader_url = f"{self._base_url}/v2/versions/loader/{version}"
        loaders: list[FabricLoaderEntry] = await fetch_json(
            self._client, loader_url, list[FabricLoaderEntry],
        )
        if not loaders:
            raise NoStableLoaderError(f"no fabric loader published for {version}")
        loader = loaders[0].loader.version
        _logger.info("Fabric loader for %s: %s", version, loader)

        installers: list[FabricInstaller] = await fetch_json(
            self._client, f"{self._base_url}/v2/versions/installer", list[FabricInstaller],
        )
        if not installers:
            raise NoStableLoaderError("no fabric installer published")
        installer = next((i for i in installers if i.stable), installers[0]).version

        jar_name = f"fabric-server-mc.{version}-loader.{loader}-launcher.{installer}.jar"
        return ArtifactDescriptor(
            download_url=f"{loader_url}/{loader}/{installer}/server/jar",
            destination=self._workdir / jar_name,
        )


_RESOLVERS: dict[DistributionChannel, type[ArtifactResolver]] = {
    DistributionChannel.PAPER: PaperResolver,
    DistributionChannel.FABRIC: FabricResolver,
}


def resolver_for(
    channel: DistributionChannel,
    client: httpx.AsyncClient,
    settings: MCCtlSettings,
) -> ArtifactResolver:
    """Build the resolver registered for ``channel``."""
    cls = _RESOLVERS[channel]
    return cls(client, settings.workdir, getattr(settings, cls.base_url_setting))
