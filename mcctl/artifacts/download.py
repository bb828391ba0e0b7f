"""Download pipeline — stream an artifact to disk, then verify it.

The body is streamed into a temp file next to the destination. When the
descriptor carries a digest the temp file is hashed off the event loop and
moved into place with os.replace only on a match, so neither a half-written
nor a tampered jar ever sits at the destination path and a previous good
install survives a failed one. The temp file is removed on every other
exit, cancellation included.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import httpx

from mcctl.artifacts import digest
from mcctl.artifacts.resolver import ArtifactDescriptor
from mcctl.events.bus import EventBus
from mcctl.exceptions import ArtifactWriteError, DigestMismatchError, NetworkError

_logger = logging.getLogger(__name__)


class DownloadPipeline:
    """Fetches resolved artifacts with a shared HTTP client."""

    def __init__(self, client: httpx.AsyncClient, event_bus: EventBus | None = None) -> None:
        self._client = client
        self._bus = event_bus

    async def fetch_and_store(self, descriptor: ArtifactDescriptor) -> str | None:
        """Download ``descriptor`` to its destination.

        Returns the verified digest, or None when the artifact had no
        published digest and was stored unverified.
        """
        destination = descriptor.destination
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactWriteError(f"cannot create {destination.parent}: {e}") from e

        await self._emit("install.download_started", {
            "url": descriptor.download_url,
            "destination": str(destination),
        })

        tmp_path, size = await self._stream_to_temp(descriptor.download_url, destination)
        try:
            await self._emit("install.download_completed", {
                "destination": str(destination),
                "bytes": size,
            })

            if descriptor.expected_digest is None:
                self._move_into_place(tmp_path, destination)
                _logger.warning(
                    "No digest published for %s; stored %s unverified",
                    descriptor.download_url, destination,
                )
                await self._emit("install.unverified", {"destination": str(destination)})
                return None

            try:
                actual = await asyncio.to_thread(
                    digest.verify, tmp_path, descriptor.expected_digest,
                )
            except DigestMismatchError as e:
                await self._emit("install.digest_mismatch", {
                    "destination": str(destination),
                    "expected": e.expected,
                    "actual": e.actual,
                })
                raise

            self._move_into_place(tmp_path, destination)
        finally:
            tmp_path.unlink(missing_ok=True)

        await self._emit("install.verified", {
            "destination": str(destination),
            "sha256": actual,
        })
        return actual

    async def _stream_to_temp(self, url: str, destination: Path) -> tuple[Path, int]:
        """Stream ``url`` into a temp file beside ``destination``.

        Returns the temp path and the number of bytes written. The temp file
        is gone again if streaming fails for any reason.
        """
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{destination.name}.", suffix=".part", dir=destination.parent,
            )
        except OSError as e:
            raise ArtifactWriteError(f"cannot write to {destination.parent}: {e}") from e
        tmp_path = Path(tmp_name)
        written = 0
        completed = False
        try:
            with os.fdopen(fd, "wb") as out:
                async with self._client.stream("GET", url) as resp:
                    resp.raise_for_status()
                    async for chunk in resp.aiter_bytes():
                        out.write(chunk)
                        written += len(chunk)
            completed = True
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"{url} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"download from {url} failed: {e}") from e
        except OSError as e:
            raise ArtifactWriteError(f"cannot write {destination}: {e}") from e
        finally:
            if not completed:
                tmp_path.unlink(missing_ok=True)
        return tmp_path, written

    @staticmethod
    def _move_into_place(tmp_path: Path, destination: Path) -> None:
        try:
            os.replace(tmp_path, destination)
        except OSError as e:
            raise ArtifactWriteError(f"cannot write {destination}: {e}") from e

    async def _emit(self, topic: str, data: dict[str, Any]) -> None:
        if self._bus:
            await self._bus.emit(topic, data, source="download_pipeline")
