"""
Runtime configuration for the transfer engine.

Defaults come from constants.py; every field can be overridden from the
environment with a TRANSFER_* variable, e.g. TRANSFER_MAX_PER_CYCLE=25.
"""

import os
from dataclasses import dataclass, fields
from typing import Dict, Mapping, Optional

from constants import (
    COOLDOWN_RETENTION_TICKS,
    CYCLE_INTERVAL_TICKS,
    MAX_TRANSFERS_PER_CYCLE,
    STALE_TRANSIT_TICKS,
    SWEEP_INTERVAL_TICKS,
    TRANSFER_COOLDOWN_TICKS,
    TRANSIT_DELAY_TICKS,
)


class TransferConfigError(ValueError):
    pass


_ENV_NAMES: Dict[str, str] = {
    "cycle_interval": "TRANSFER_CYCLE_INTERVAL",
    "max_transfers_per_cycle": "TRANSFER_MAX_PER_CYCLE",
    "cooldown_ticks": "TRANSFER_COOLDOWN",
    "transit_delay": "TRANSFER_TRANSIT_DELAY",
    "sweep_interval": "TRANSFER_SWEEP_INTERVAL",
    "cooldown_retention": "TRANSFER_COOLDOWN_RETENTION",
    "stale_transit": "TRANSFER_STALE_TRANSIT",
}


@dataclass(frozen=True)
class TransferConfig:
    cycle_interval: int = CYCLE_INTERVAL_TICKS
    max_transfers_per_cycle: int = MAX_TRANSFERS_PER_CYCLE
    cooldown_ticks: int = TRANSFER_COOLDOWN_TICKS
    transit_delay: int = TRANSIT_DELAY_TICKS
    sweep_interval: int = SWEEP_INTERVAL_TICKS
    cooldown_retention: int = COOLDOWN_RETENTION_TICKS
    stale_transit: int = STALE_TRANSIT_TICKS

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TransferConfigError(f"{f.name} must be an integer")
        if self.cycle_interval < 1:
            raise TransferConfigError("cycle_interval must be >= 1")
        if self.sweep_interval < 1:
            raise TransferConfigError("sweep_interval must be >= 1")
        if self.max_transfers_per_cycle < 1:
            raise TransferConfigError("max_transfers_per_cycle must be >= 1")
        for name in ("cooldown_ticks", "transit_delay", "cooldown_retention", "stale_transit"):
            if getattr(self, name) < 0:
                raise TransferConfigError(f"{name} must be >= 0")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TransferConfig":
        env = os.environ if environ is None else environ
        overrides: Dict[str, int] = {}
        for field_name, env_name in _ENV_NAMES.items():
            raw = env.get(env_name)
            if raw is None or not str(raw).strip():
                continue
            try:
                overrides[field_name] = int(str(raw).strip())
            except ValueError:
                raise TransferConfigError(f"{env_name} must be an integer, got {raw!r}")
        return cls(**overrides)

    def as_dict(self) -> Dict[str, int]:
        return {f.name: int(getattr(self, f.name)) for f in fields(self)}
