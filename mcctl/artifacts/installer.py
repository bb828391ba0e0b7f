"""Installer — resolve a (channel, version) pair and download the artifact.

This is the single boundary where InstallErrors are caught. Callers get an
InstallResult whose message is either ``install_success_<channel>`` or
``install_failed: <cause>``; nothing from the pipeline escapes as an
exception.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from mcctl.artifacts.download import DownloadPipeline
from mcctl.artifacts.resolver import resolver_for
from mcctl.audit import AuditTrail
from mcctl.config import MCCtlSettings
from mcctl.events.bus import EventBus
from mcctl.exceptions import InstallError
from mcctl.types import DistributionChannel

_logger = logging.getLogger(__name__)


class InstallRequest(BaseModel):
    """Body of ``POST /install``. The version is forwarded unvalidated."""

    model_config = ConfigDict(populate_by_name=True)

    distribution_channel: DistributionChannel = Field(alias="distributionChannel")
    version: str

    @field_validator("distribution_channel", mode="before")
    @classmethod
    def _accept_aliases(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return DistributionChannel(value)
            except ValueError:
                return value
        return value


class InstallResult(BaseModel):
    message: str
    hash: str | None = None
    verified: bool = False
    channel: DistributionChannel | None = None
    path: str | None = None

    @property
    def ok(self) -> bool:
        return self.message.startswith("install_success")


class Installer:
    """Runs resolver → download pipeline for one install request at a time."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: MCCtlSettings,
        event_bus: EventBus | None = None,
        audit_trail: AuditTrail | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._bus = event_bus
        self._audit = audit_trail
        self._pipeline = DownloadPipeline(client, event_bus)

    async def install(self, channel: DistributionChannel, version: str) -> InstallResult:
        await self._emit("install.started", {"channel": channel.value, "version": version})

        try:
            resolver = resolver_for(channel, self._client, self._settings)
            descriptor = await resolver.resolve(version)
            await self._emit("install.resolved", {
                "channel": channel.value,
                "version": version,
                "url": descriptor.download_url,
                "has_digest": descriptor.verifiable,
            })
            sha256 = await self._pipeline.fetch_and_store(descriptor)
        except InstallError as e:
            _logger.warning("Install of %s %s failed: %s", channel.value, version, e)
            await self._emit("install.failed", {
                "channel": channel.value,
                "version": version,
                "error": type(e).__name__,
                "cause": str(e)[:300],
            })
            await self._record(channel, version, f"failed: {e}", success=False)
            return InstallResult(message=f"install_failed: {e}", channel=channel)

        result = InstallResult(
            message=f"install_success_{channel.value}",
            hash=sha256,
            verified=sha256 is not None,
            channel=channel,
            path=str(descriptor.destination),
        )
        await self._record(
            channel, version, "success", success=True,
            verified=result.verified, path=result.path,
        )
        return result

    async def _record(
        self, channel: DistributionChannel, version: str, outcome: str,
        success: bool, **extra: Any,
    ) -> None:
        if self._audit:
            await self._audit.log_action(
                "install", outcome, success=success,
                detail=f"{channel.value} {version}",
                channel=channel.value, version=version, **extra,
            )

    async def _emit(self, topic: str, data: dict[str, Any]) -> None:
        if self._bus:
            await self._bus.emit(topic, data, source="installer")
