"""
Admin game-management API routes.

Handles:
  /api/admin/simulation/toggle_pause
  /api/admin/simulation/step
  /api/admin/reset_game
  /api/admin/platforms                      (POST spawn)
  /api/admin/platforms/{platform_id}        (DELETE destroy)
  /api/admin/platforms/{platform_id}/stock
  /api/admin/platforms/{platform_id}/depart
  /api/admin/platforms/{platform_id}/arrive
  /api/admin/sweep
  /api/admin/snapshot/save
"""

import sqlite3
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from constants import DEFAULT_CARGO_BAY_SLOTS
from db import get_db
import game_services
from sim_host import HostError
from sim_service import (
    effective_tick_rate,
    game_now_tick,
    reset_simulation_clock,
    set_simulation_paused,
    simulation_paused,
    step_ticks,
)
from state_store import persist_simulation_clock_state

router = APIRouter(tags=["admin"])


# ── Pydantic models ────────────────────────────────────────

class StepReq(BaseModel):
    ticks: int = Field(default=60, ge=1, le=1_000_000)


class SpawnPlatformReq(BaseModel):
    name: str
    location: Optional[str] = None
    platform_id: Optional[str] = None
    owner: str = "player"
    tags: Dict[str, str] = Field(default_factory=dict)
    bays: int = Field(default=1, ge=0, le=64)
    slots_per_bay: int = Field(default=DEFAULT_CARGO_BAY_SLOTS, ge=1, le=1000)


class StockReq(BaseModel):
    item_id: str
    quantity: int = Field(ge=1)


class ArriveReq(BaseModel):
    location: str


def _clock_payload() -> Dict[str, Any]:
    return {
        "paused": simulation_paused(),
        "tick": game_now_tick(),
        "tick_rate": effective_tick_rate(),
    }


def _host_call(fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except HostError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


# ── Routes ─────────────────────────────────────────────────

@router.post("/api/admin/simulation/toggle_pause")
def api_admin_toggle_pause(conn: sqlite3.Connection = Depends(get_db)) -> Dict[str, Any]:
    game_services.settle_engine()
    set_simulation_paused(not simulation_paused())
    persist_simulation_clock_state(conn)
    conn.commit()
    return {"ok": True, **_clock_payload()}


@router.post("/api/admin/simulation/step")
def api_admin_step(req: StepReq, conn: sqlite3.Connection = Depends(get_db)) -> Dict[str, Any]:
    game_services.settle_engine()
    tick = step_ticks(req.ticks)
    game_services.settle_engine(tick)
    persist_simulation_clock_state(conn)
    conn.commit()
    return {"ok": True, **_clock_payload()}


@router.post("/api/admin/reset_game")
def api_admin_reset_game(conn: sqlite3.Connection = Depends(get_db)) -> Dict[str, Any]:
    game_services.reset_runtime()
    game_services.seed_baseline_platforms(game_services.get_host())
    reset_simulation_clock()
    game_services.persist_runtime(conn)
    conn.commit()
    return {"ok": True, **_clock_payload()}


@router.post("/api/admin/platforms")
def api_admin_spawn_platform(req: SpawnPlatformReq) -> Dict[str, Any]:
    name = (req.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="name is required")
    game_services.settle_engine()
    platform = _host_call(
        game_services.get_host().spawn_platform,
        name,
        platform_id=(req.platform_id or "").strip() or None,
        owner=req.owner,
        location=req.location,
        tags=req.tags,
        bays=req.bays,
        slots_per_bay=req.slots_per_bay,
    )
    return {"ok": True, "platform": game_services.platform_payload(platform)}


@router.delete("/api/admin/platforms/{platform_id}")
def api_admin_destroy_platform(platform_id: str) -> Dict[str, Any]:
    game_services.settle_engine()
    game_services.require_platform(platform_id)
    game_services.get_host().destroy_platform(platform_id)
    return {"ok": True, "platform_id": platform_id}


@router.post("/api/admin/platforms/{platform_id}/stock")
def api_admin_stock_platform(platform_id: str, req: StockReq) -> Dict[str, Any]:
    item = (req.item_id or "").strip()
    if not item:
        raise HTTPException(status_code=400, detail="item_id is required")
    game_services.settle_engine()
    platform = game_services.require_platform(platform_id)
    inserted = _host_call(game_services.get_host().stock, platform.platform_id, item, req.quantity)
    return {"ok": True, "inserted": inserted, "platform": game_services.platform_payload(platform)}


@router.post("/api/admin/platforms/{platform_id}/depart")
def api_admin_depart(platform_id: str) -> Dict[str, Any]:
    game_services.settle_engine()
    game_services.require_platform(platform_id)
    platform = _host_call(game_services.get_host().depart, platform_id)
    return {"ok": True, "platform": game_services.platform_payload(platform)}


@router.post("/api/admin/platforms/{platform_id}/arrive")
def api_admin_arrive(platform_id: str, req: ArriveReq) -> Dict[str, Any]:
    game_services.settle_engine()
    game_services.require_platform(platform_id)
    platform = _host_call(game_services.get_host().arrive, platform_id, req.location)
    return {"ok": True, "platform": game_services.platform_payload(platform)}


@router.post("/api/admin/sweep")
def api_admin_sweep() -> Dict[str, Any]:
    tick = game_services.settle_engine()
    report = game_services.get_engine().sweep(tick)
    return {
        "ok": True,
        "tick": report.tick,
        "requests_purged": report.requests_purged,
        "reservations_purged": report.reservations_purged,
        "cooldowns_purged": report.cooldowns_purged,
        "stale_transfers_purged": report.stale_transfers_purged,
    }


@router.post("/api/admin/snapshot/save")
def api_admin_save_snapshot(conn: sqlite3.Connection = Depends(get_db)) -> Dict[str, Any]:
    tick = game_services.settle_engine()
    snapshot = game_services.persist_runtime(conn)
    conn.commit()
    return {
        "ok": True,
        "tick": tick,
        "platforms": len(game_services.get_host().list_platforms()),
        "requests": sum(len(rows) for rows in snapshot["requests"].values()),
        "pending_transfers": len(snapshot["pending_transfers"]),
    }
