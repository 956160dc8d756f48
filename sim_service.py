import math
import os
import threading
import time
from typing import Any, Dict

GAME_TICK_RATE = float(os.environ.get("GAME_TICK_RATE", "60"))
RESET_TICK = 0
_REAL_TIME_ANCHOR_S = time.time()
_TICK_ANCHOR = RESET_TICK
_SIMULATION_PAUSED = False
_SIMULATION_LOCK = threading.Lock()


def _current_tick_locked(now_real_s: float) -> int:
    if _SIMULATION_PAUSED:
        return _TICK_ANCHOR
    real_elapsed_s = max(0.0, now_real_s - _REAL_TIME_ANCHOR_S)
    return _TICK_ANCHOR + int(math.floor(real_elapsed_s * GAME_TICK_RATE))


def game_now_tick() -> int:
    now_real_s = time.time()
    with _SIMULATION_LOCK:
        return _current_tick_locked(now_real_s)


def simulation_paused() -> bool:
    with _SIMULATION_LOCK:
        return _SIMULATION_PAUSED


def effective_tick_rate() -> float:
    return 0.0 if simulation_paused() else GAME_TICK_RATE


def set_simulation_paused(paused: bool) -> None:
    global _REAL_TIME_ANCHOR_S, _TICK_ANCHOR, _SIMULATION_PAUSED

    now_real_s = time.time()
    with _SIMULATION_LOCK:
        _TICK_ANCHOR = _current_tick_locked(now_real_s)
        _REAL_TIME_ANCHOR_S = now_real_s
        _SIMULATION_PAUSED = bool(paused)


def step_ticks(ticks: int) -> int:
    """Move the clock forward by ``ticks`` (e.g. single-stepping while paused)."""
    global _REAL_TIME_ANCHOR_S, _TICK_ANCHOR

    now_real_s = time.time()
    with _SIMULATION_LOCK:
        _TICK_ANCHOR = _current_tick_locked(now_real_s) + max(0, int(ticks))
        _REAL_TIME_ANCHOR_S = now_real_s
        return _TICK_ANCHOR


def reset_simulation_clock() -> None:
    global _REAL_TIME_ANCHOR_S, _TICK_ANCHOR, _SIMULATION_PAUSED

    now_real_s = time.time()
    with _SIMULATION_LOCK:
        _REAL_TIME_ANCHOR_S = now_real_s
        _TICK_ANCHOR = RESET_TICK
        _SIMULATION_PAUSED = False


def export_simulation_state() -> Dict[str, Any]:
    now_real_s = time.time()
    with _SIMULATION_LOCK:
        return {
            "real_time_anchor_s": now_real_s,
            "tick_anchor": _current_tick_locked(now_real_s),
            "paused": _SIMULATION_PAUSED,
        }


def import_simulation_state(real_time_anchor_s: float, tick_anchor: int, paused: bool) -> None:
    global _REAL_TIME_ANCHOR_S, _TICK_ANCHOR, _SIMULATION_PAUSED

    with _SIMULATION_LOCK:
        _REAL_TIME_ANCHOR_S = float(real_time_anchor_s)
        _TICK_ANCHOR = int(tick_anchor)
        _SIMULATION_PAUSED = bool(paused)
