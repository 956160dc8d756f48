import logging
import os
from typing import Any, Dict

from fastapi import FastAPI

from admin_game_router import router as admin_game_router
from db import init_db
import game_services
from sim_service import effective_tick_rate, game_now_tick, simulation_paused
from state_store import load_simulation_clock_state
from transfer_router import router as transfer_router

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Orbital Transfer Requests")
app.include_router(transfer_router)
app.include_router(admin_game_router)


@app.on_event("startup")
def _startup():
    game_services.reset_runtime()

    conn = init_db()
    try:
        load_simulation_clock_state(conn)
        restored = False
        if game_services.env_flag("RESTORE_TRANSFER_SNAPSHOT", True):
            restored = game_services.restore_runtime(conn)
        if not restored and game_services.env_flag("SEED_BASELINE_PLATFORMS", True):
            game_services.seed_baseline_platforms(game_services.get_host())
        conn.commit()
    finally:
        conn.close()

    game_services.settle_engine()


@app.get("/api/health")
def api_health() -> Dict[str, Any]:
    engine = game_services.get_engine()
    return {
        "ok": True,
        "tick": game_now_tick(),
        "engine_tick": engine.last_tick,
        "config": engine.config.as_dict(),
    }


@app.get("/api/time")
def api_time() -> Dict[str, Any]:
    return {
        "tick": game_now_tick(),
        "paused": simulation_paused(),
        "tick_rate": effective_tick_rate(),
    }
