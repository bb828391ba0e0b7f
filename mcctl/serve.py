"""mcctl live server — control API and process supervisor in one event loop."""

from __future__ import annotations

import asyncio
import logging

import httpx
import uvicorn

from mcctl.api.app import create_app
from mcctl.artifacts.installer import Installer
from mcctl.audit import AuditTrail
from mcctl.config import MCCtlSettings, settings as default_settings
from mcctl.events.bus import EventBus, attach_logging
from mcctl.server.controller import ServerController

_logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


async def main(
    settings: MCCtlSettings | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    settings = settings or default_settings
    configure_logging(settings.log_level)

    event_bus = EventBus(history_limit=settings.event_history_limit)
    attach_logging(event_bus)

    audit_db = None
    if settings.audit_db_path:
        settings.audit_db_path.parent.mkdir(parents=True, exist_ok=True)
        audit_db = str(settings.audit_db_path)
    audit_trail = AuditTrail(audit_db)
    await audit_trail.initialize()

    # One client for every vendor request; used read-only by all handlers.
    client = httpx.AsyncClient(timeout=settings.http_timeout, follow_redirects=True)

    controller = ServerController.from_settings(settings, event_bus, audit_trail)
    installer = Installer(client, settings, event_bus, audit_trail)
    app = create_app(controller, installer, event_bus, audit_trail)

    bind_host = host or settings.host
    bind_port = port or settings.port
    _logger.info("mcctl control API listening on http://%s:%d", bind_host, bind_port)

    config = uvicorn.Config(
        app,
        host=bind_host,
        port=bind_port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    try:
        await server.serve()
    finally:
        await controller.shutdown(grace_seconds=settings.shutdown_grace_seconds)
        await client.aclose()
        await audit_trail.close()


if __name__ == "__main__":
    asyncio.run(main())
