"""
Shared service functions used by the routers and the app startup.

Holds the process-wide host simulation and transfer engine, the baseline
seed, and the payload builders the HTTP layer returns. Routers import from
here instead of reaching into each other.
"""

import logging
import os
import sqlite3
from typing import Any, Dict, List, Optional

from fastapi import HTTPException

from host_interfaces import PlatformRecord
from sim_host import HostSimulation, LandingLog
from sim_service import game_now_tick
from state_store import (
    load_host_state,
    load_snapshot,
    persist_simulation_clock_state,
    save_host_state,
    save_snapshot,
)
from transfer_config import TransferConfig
from transfer_engine import TransferEngine
from transfer_models import PendingTransfer, TransferRequest


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


# ── Runtime singletons ───────────────────────────────────────────────────

_RUNTIME: Dict[str, Any] = {}


def _build_runtime(config: Optional[TransferConfig] = None) -> Dict[str, Any]:
    host = HostSimulation()
    landings = LandingLog()
    engine = TransferEngine(host, host, config or TransferConfig.from_env(), delivery_hook=landings)
    return {"host": host, "engine": engine, "landings": landings}


def reset_runtime(config: Optional[TransferConfig] = None) -> None:
    _RUNTIME.clear()
    _RUNTIME.update(_build_runtime(config))


def _runtime() -> Dict[str, Any]:
    if not _RUNTIME:
        reset_runtime()
    return _RUNTIME


def get_host() -> HostSimulation:
    return _runtime()["host"]


def get_engine() -> TransferEngine:
    return _runtime()["engine"]


def get_landings() -> LandingLog:
    return _runtime()["landings"]


def settle_engine(now_tick: Optional[int] = None) -> int:
    """Bring the engine up to the current game tick (settle-on-access)."""
    tick = game_now_tick() if now_tick is None else int(now_tick)
    engine = get_engine()
    replayed = engine.advance_to(tick)
    if replayed > 1:
        logging.debug("Engine caught up to tick %d (%d due ticks replayed)", tick, replayed)
    return tick


# ── Persistence ──────────────────────────────────────────────────────────

def persist_runtime(conn: sqlite3.Connection) -> Dict[str, Any]:
    """Save engine snapshot, host platforms and clock together; caller commits."""
    engine = get_engine()
    with engine.exclusive():
        snapshot = engine.snapshot()
        platforms = get_host().export_state()
    save_snapshot(conn, snapshot)
    save_host_state(conn, platforms)
    persist_simulation_clock_state(conn)
    return snapshot


def restore_runtime(conn: sqlite3.Connection) -> bool:
    """Load host platforms and then the engine snapshot that goes with them.

    Returns False when no host was saved. An engine snapshot on its own is
    never restored: its pods already left inventories that would be re-seeded.
    """
    platforms = load_host_state(conn)
    snapshot = load_snapshot(conn)
    if platforms is None:
        if snapshot is not None:
            logging.warning("Ignoring transfer snapshot saved without host platforms")
        return False

    get_host().import_state(platforms)
    if snapshot is not None:
        get_engine().restore(snapshot)
    logging.info(
        "Restored %d platforms, %d pods in flight",
        len(platforms),
        len(snapshot["pending_transfers"]) if snapshot else 0,
    )
    return True


# ── Baseline seed ────────────────────────────────────────────────────────

BASELINE_PLATFORMS: List[Dict[str, Any]] = [
    {
        "platform_id": "nauvis_hub",
        "name": "nauvis-hub-station",
        "location": "nauvis",
        "stock": {"iron-plate": 2000, "copper-plate": 1000, "steel-plate": 400},
    },
    {
        "platform_id": "nauvis_hauler",
        "name": "nauvis-hauler-ship",
        "location": "nauvis",
        "stock": {"rocket-fuel": 200},
    },
    {
        "platform_id": "nauvis_miner",
        "name": "nauvis-miner-ship",
        "location": "nauvis",
        "stock": {"ice": 500, "carbon": 300},
    },
    {
        "platform_id": "vulcanus_foundry",
        "name": "vulcanus-foundry-station",
        "location": "vulcanus",
        "stock": {"steel-plate": 800},
    },
]


def seed_baseline_platforms(host: HostSimulation) -> None:
    for entry in BASELINE_PLATFORMS:
        if host.get_platform(entry["platform_id"]) is not None:
            continue
        host.spawn_platform(entry["name"], platform_id=entry["platform_id"], location=entry["location"])
        for item_id, count in entry["stock"].items():
            host.stock(entry["platform_id"], item_id, count)


# ── Payloads ─────────────────────────────────────────────────────────────

def require_platform(platform_id: str) -> PlatformRecord:
    pid = str(platform_id or "").strip()
    if not pid:
        raise HTTPException(status_code=400, detail="platform_id is required")
    platform = get_host().get_platform(pid)
    if platform is None or not platform.valid:
        raise HTTPException(status_code=404, detail="Platform not found")
    return platform


def request_payload(platform_id: str, req: TransferRequest) -> Dict[str, Any]:
    return {
        "platform_id": platform_id,
        "item_id": req.item,
        "minimum_quantity": req.minimum,
        "requested_quantity": req.requested,
        "last_processed": req.last_processed,
    }


def pending_payload(transfer: PendingTransfer) -> Dict[str, Any]:
    return {
        "transfer_id": transfer.transfer_id,
        "source_id": transfer.source,
        "dest_id": transfer.dest,
        "item_id": transfer.item,
        "amount": transfer.amount,
        "eta_tick": transfer.eta,
        "created_tick": transfer.created,
    }


def platform_payload(platform: PlatformRecord) -> Dict[str, Any]:
    engine = get_engine()
    pid = platform.platform_id
    return {
        "platform_id": pid,
        "name": platform.name,
        "owner": platform.owner,
        "valid": bool(platform.valid),
        "state": platform.state,
        "location": platform.location,
        "group": engine.current_group(pid),
        "peers": engine.peers_in_group(pid),
        "tags": dict(platform.tags or {}),
        "contents": get_host().contents(pid),
        "requests": [request_payload(pid, r) for r in engine.get_requests(pid).values()],
    }
