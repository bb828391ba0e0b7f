"""HTTP control API — FastAPI routes over the controller and installer.

`mcctl serve` launches this at localhost:8000.
Collaborators are attached to ``app.state`` by create_app; handlers reach
them through the request, never through module globals.
"""

from __future__ import annotations

from fastapi import APIRouter, FastAPI, Request
from pydantic import BaseModel

from mcctl import __version__
from mcctl.artifacts.installer import Installer, InstallRequest
from mcctl.audit import AuditTrail
from mcctl.events.bus import EventBus
from mcctl.server.controller import ServerController

router = APIRouter()


class StatusResponse(BaseModel):
    status: str


class MessageResponse(BaseModel):
    message: str


class InstallResponse(BaseModel):
    message: str
    hash: str | None = None
    verified: bool = False


def _controller(request: Request) -> ServerController:
    return request.app.state.controller


# ── Process lifecycle ────────────────────────────────────────────


@router.get("/status", response_model=StatusResponse)
async def get_status(request: Request) -> StatusResponse:
    status = await _controller(request).status()
    return StatusResponse(status=status.value)


@router.get("/start", response_model=MessageResponse)
async def start_server(request: Request) -> MessageResponse:
    outcome = await _controller(request).start()
    return MessageResponse(message=outcome.value)


@router.get("/stop", response_model=MessageResponse)
async def stop_server(request: Request) -> MessageResponse:
    outcome = await _controller(request).stop()
    return MessageResponse(message=outcome.value)


# ── Install ──────────────────────────────────────────────────────


@router.post("/install", response_model=InstallResponse)
async def install(payload: InstallRequest, request: Request) -> InstallResponse:
    installer: Installer = request.app.state.installer
    result = await installer.install(payload.distribution_channel, payload.version)
    return InstallResponse(message=result.message, hash=result.hash, verified=result.verified)


# ── Diagnostics ──────────────────────────────────────────────────


@router.get("/health")
async def health(request: Request) -> dict:
    info = await _controller(request).info()
    return {"version": __version__, "server": info}


@router.get("/api/events")
async def list_events(request: Request, topic: str = "*", limit: int = 50) -> list[dict]:
    bus: EventBus | None = request.app.state.event_bus
    if bus is None:
        return []
    return [e.model_dump(mode="json") for e in bus.history(topic_filter=topic, limit=limit)]


@router.get("/api/audit")
async def list_audit(request: Request, action: str = "", limit: int = 50) -> list[dict]:
    audit: AuditTrail | None = request.app.state.audit_trail
    if audit is None:
        return []
    entries = await audit.query(action=action, limit=limit)
    return [e.model_dump(mode="json") for e in entries]


def create_app(
    controller: ServerController,
    installer: Installer,
    event_bus: EventBus | None = None,
    audit_trail: AuditTrail | None = None,
) -> FastAPI:
    """Build the control API around already-constructed collaborators."""
    app = FastAPI(title="mcctl control API", version=__version__)
    app.state.controller = controller
    app.state.installer = installer
    app.state.event_bus = event_bus
    app.state.audit_trail = audit_trail
    app.include_router(router)
    return app
