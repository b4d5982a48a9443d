"""
Web Routes - API endpoints
==========================

This module defines the HTTP API of the responder:
- inbound messages from the chat platform bridge
- a dry-run test endpoint
- response listing and status
- configuration reload and save
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from core.exceptions import PersistError, RenderError
from core.logging import get_logger
from rules.content import NoResponse
from services.dispatcher import InboundMessage, resolve_reply

logger = get_logger("web.routes")

router = APIRouter()


class MessageIn(BaseModel):
    """Inbound chat message."""
    text: str
    reference: str = ""
    timestamp: Optional[datetime] = None


class TestMessage(BaseModel):
    """Test message model."""
    text: str
    reference: str = "test"


def _to_inbound(data: MessageIn) -> InboundMessage:
    message = InboundMessage(text=data.text, reference=data.reference)
    if data.timestamp is not None:
        message.timestamp = data.timestamp
    return message


@router.get("/api/status")
async def get_status(request: Request):
    """Get service status."""
    store = request.app.state.store
    watcher = request.app.state.watcher
    config = store.snapshot()

    return {
        "responses": len(config.registry),
        "config_path": store.config_path,
        "generation": store.generation,
        "last_reload_error": store.last_reload_error,
        "watcher": {
            "running": bool(watcher and watcher.is_running),
            "reloads": watcher.reload_count if watcher else 0,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/api/responses")
async def list_responses(request: Request):
    """List registered responses with their gating settings."""
    registry = request.app.state.store.snapshot().registry
    now = datetime.now(timezone.utc)

    responses = []
    for response in registry:
        spec = response.spec
        remaining = registry.cooldown_remaining(spec.name, now)
        responses.append({
            "name": spec.name,
            "ruleset": spec.ruleset.to_text(),
            "kind": spec.content.kind,
            "hit_rate": spec.hit_rate,
            "cooldown": spec.cooldown.total_seconds() if spec.cooldown is not None else None,
            "unskippable": spec.unskippable,
            "cooldown_remaining": remaining.total_seconds() if remaining is not None else None,
        })

    return {"defaults": registry.defaults.to_dict(), "responses": responses}


@router.post("/api/messages")
def receive_message(request: Request, data: MessageIn):
    """Handle an inbound message and deliver the reply, if any."""
    dispatcher = request.app.state.dispatcher

    try:
        reply = dispatcher.handle(_to_inbound(data))
    except RenderError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {
        "responded": reply is not None,
        "reply": reply.to_dict() if reply else None,
    }


@router.post("/api/test-message")
def test_message(request: Request, data: TestMessage):
    """
    Evaluate a message without delivering a reply.

    Gating still applies and a hit still starts the response's cooldown.
    """
    dispatcher = request.app.state.dispatcher
    content = dispatcher.evaluate(InboundMessage(text=data.text, reference=data.reference))

    if content is None:
        return {"responded": False, "reply": None}

    try:
        reply = resolve_reply(content, dispatcher.rng)
    except RenderError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "responded": True,
        "silent": isinstance(content, NoResponse),
        "reply": reply.to_dict(),
    }


@router.post("/api/config/reload")
def reload_config(request: Request):
    """Reload the configuration file. A bad file keeps the current config."""
    store = request.app.state.store
    success = store.reload()

    return {
        "success": success,
        "generation": store.generation,
        "error": store.last_reload_error,
    }


@router.post("/api/config/save")
def save_config(request: Request):
    """Write the current configuration back to its file."""
    store = request.app.state.store

    try:
        path = store.save()
    except PersistError as e:
        logger.error(f"Failed to save config: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {"success": True, "path": str(path)}
