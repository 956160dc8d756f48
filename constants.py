"""
Canonical shared constants for the orbital transfer request system.

The engine, the reference host and the HTTP layer all read their defaults
from here; runtime overrides live in transfer_config.py.
"""

from typing import Dict, FrozenSet

# ---------------------------------------------------------------------------
# Scheduling defaults (ticks)
# ---------------------------------------------------------------------------

CYCLE_INTERVAL_TICKS = 60  # process requests once per second at 60 UPS
MAX_TRANSFERS_PER_CYCLE = 10
TRANSFER_COOLDOWN_TICKS = 300
TRANSIT_DELAY_TICKS = 180  # cargo pod flight time
SWEEP_INTERVAL_TICKS = 18000  # 5 minutes
COOLDOWN_RETENTION_TICKS = 36000  # 10 minutes
STALE_TRANSIT_TICKS = 18000  # pods normally land after TRANSIT_DELAY_TICKS

# ---------------------------------------------------------------------------
# Platform classification
# ---------------------------------------------------------------------------

PLATFORM_STATE_WAITING_AT_STATION = "waiting_at_station"
PLATFORM_STATE_ON_THE_PATH = "on_the_path"
PLATFORM_STATE_PAUSED = "paused"
PLATFORM_STATE_NO_SCHEDULE = "no_schedule"

# Only these states count as being parked in an orbit.
ORBIT_STABLE_STATES: FrozenSet[str] = frozenset({PLATFORM_STATE_WAITING_AT_STATION})

PLATFORM_TYPE_TAG = "ship_type"
PLATFORM_TYPE_SHIP = "ship"
PLATFORM_TYPE_STATION = "platform"
SHIP_NAME_MARKER = "-ship"
STATION_NAME_MARKER = "-station"

# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

DEFAULT_STACK_SIZE = 50
DEFAULT_CARGO_BAY_SLOTS = 40

ITEM_STACK_SIZES: Dict[str, int] = {
    "iron-plate": 100,
    "copper-plate": 100,
    "steel-plate": 100,
    "plastic-bar": 100,
    "iron-gear-wheel": 100,
    "copper-cable": 200,
    "electronic-circuit": 200,
    "advanced-circuit": 200,
    "processing-unit": 100,
    "low-density-structure": 50,
    "rocket-fuel": 20,
    "solid-fuel": 50,
    "carbon": 50,
    "ice": 50,
    "metallic-asteroid-chunk": 1,
    "carbonic-asteroid-chunk": 1,
    "oxide-asteroid-chunk": 1,
    "space-science-pack": 200,
    "asteroid-collector": 10,
    "thruster": 10,
    "cargo-bay": 20,
}


def stack_size_for(item_id: str) -> int:
    return ITEM_STACK_SIZES.get(str(item_id), DEFAULT_STACK_SIZE)
