"""
Transfer request API routes.

Handles:
  /api/platforms
  /api/platforms/{platform_id}
  /api/platforms/{platform_id}/requests
  /api/platforms/{platform_id}/requests/{item_id}   (GET, PUT, DELETE)
  /api/platforms/{platform_id}/can_receive
  /api/transfers/pending
  /api/transfers/landings

Every route settles the engine to the current game tick first, so a
registry change never lands in cycles that already happened.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

import game_services

router = APIRouter(tags=["transfers"])


# ── Pydantic models ────────────────────────────────────────

class RequestUpsertReq(BaseModel):
    minimum_quantity: int = Field(default=1, ge=1)
    requested_quantity: Optional[int] = Field(default=None, ge=1)


# ── Routes ─────────────────────────────────────────────────

@router.get("/api/platforms")
def api_platforms() -> Dict[str, Any]:
    tick = game_services.settle_engine()
    platforms = [
        game_services.platform_payload(p)
        for p in game_services.get_host().list_platforms()
        if p.valid
    ]
    return {"tick": tick, "platforms": platforms}


@router.get("/api/platforms/{platform_id}")
def api_platform(platform_id: str) -> Dict[str, Any]:
    tick = game_services.settle_engine()
    platform = game_services.require_platform(platform_id)
    payload = game_services.platform_payload(platform)
    payload["tick"] = tick
    return payload


@router.get("/api/platforms/{platform_id}/requests")
def api_platform_requests(platform_id: str) -> Dict[str, Any]:
    game_services.settle_engine()
    platform = game_services.require_platform(platform_id)
    requests = game_services.get_engine().get_requests(platform.platform_id)
    return {
        "platform_id": platform.platform_id,
        "requests": [game_services.request_payload(platform.platform_id, r) for r in requests.values()],
    }


@router.get("/api/platforms/{platform_id}/requests/{item_id}")
def api_platform_request(platform_id: str, item_id: str) -> Dict[str, Any]:
    game_services.settle_engine()
    platform = game_services.require_platform(platform_id)
    req = game_services.get_engine().get_request(platform.platform_id, item_id)
    if req is None:
        raise HTTPException(status_code=404, detail="Request not found")
    return game_services.request_payload(platform.platform_id, req)


@router.put("/api/platforms/{platform_id}/requests/{item_id}")
def api_upsert_request(platform_id: str, item_id: str, req: RequestUpsertReq) -> Dict[str, Any]:
    game_services.settle_engine()
    item = str(item_id or "").strip()
    if not item:
        raise HTTPException(status_code=400, detail="item_id is required")
    platform = game_services.require_platform(platform_id)

    requested = req.requested_quantity if req.requested_quantity is not None else req.minimum_quantity
    if requested < req.minimum_quantity:
        raise HTTPException(status_code=400, detail="requested_quantity must be >= minimum_quantity")

    engine = game_services.get_engine()
    if not engine.register_request(platform.platform_id, item, req.minimum_quantity, requested):
        raise HTTPException(status_code=400, detail="Request could not be registered")

    stored = engine.get_request(platform.platform_id, item)
    return {"ok": True, "request": game_services.request_payload(platform.platform_id, stored)}


@router.delete("/api/platforms/{platform_id}/requests/{item_id}")
def api_delete_request(platform_id: str, item_id: str) -> Dict[str, Any]:
    game_services.settle_engine()
    platform = game_services.require_platform(platform_id)
    engine = game_services.get_engine()
    existed = engine.get_request(platform.platform_id, item_id) is not None
    ok = engine.remove_request(platform.platform_id, item_id)
    return {"ok": bool(ok), "removed": existed}


@router.get("/api/platforms/{platform_id}/can_receive")
def api_can_receive(
    platform_id: str,
    item_id: str = Query(..., min_length=1),
    quantity: int = Query(1, ge=0),
) -> Dict[str, Any]:
    game_services.settle_engine()
    engine = game_services.get_engine()
    ok, reason = engine.can_receive_items(platform_id, item_id, quantity)
    available = engine.available_to_receive(platform_id, item_id)
    return {
        "platform_id": platform_id,
        "item_id": item_id,
        "quantity": quantity,
        "ok": ok,
        "reason": reason,
        "available": available,
    }


@router.get("/api/transfers/pending")
def api_pending_transfers() -> Dict[str, Any]:
    tick = game_services.settle_engine()
    engine = game_services.get_engine()
    snapshot = engine.snapshot()
    return {
        "tick": tick,
        "last_cycle_tick": snapshot["last_cycle_tick"],
        "pending": [game_services.pending_payload(p) for p in engine.pending_transfers()],
        "reservations": snapshot["reservations"],
    }


@router.get("/api/transfers/landings")
def api_recent_landings(limit: int = Query(50, ge=1, le=200)) -> Dict[str, Any]:
    tick = game_services.settle_engine()
    landings = game_services.get_landings().recent(limit)
    return {
        "tick": tick,
        "landings": [
            {"platform_id": l.platform_id, "item_id": l.item, "amount": l.amount}
            for l in landings
        ],
    }
