"""
Transfer engine — wires the scheduling components together and exposes
the public surface used by the host and the HTTP layer.

Host loop contract:
  - process_cycle every ``cycle_interval`` ticks
  - resolve_arrivals every tick
  - sweep every ``sweep_interval`` ticks

``advance_to`` replays that cadence lazily for hosts that only settle on
access: it jumps straight between the ticks where a cycle or sweep is due,
resolving arrivals just before each one, which gives the same result as
driving every tick.

All entry points hold one coarse lock; the registries share cross-entity
invariants (reservations vs. pending pods) that must never be observed
half-updated.
"""

import threading
from typing import Any, Dict, List, Optional, Tuple

from capacity_service import CapacityAccountant
from cooldown_ledger import CooldownLedger
from host_interfaces import DeliveryHook, InventoryAccess, PlatformDirectory, PolicyProvider
from maintenance_sweeper import MaintenanceSweeper
from orbit_resolver import OrbitResolver
from transfer_config import TransferConfig
from transfer_models import CycleReport, DeliveryReport, PendingTransfer, SweepReport, TransferRequest
from transfer_policy import TransferPolicy
from transfer_scheduler import TransferScheduler
from transit_ledger import TransitLedger


def _next_multiple(tick: int, interval: int) -> int:
    return ((tick + interval - 1) // interval) * interval


class TransferEngine:
    def __init__(
        self,
        directory: PlatformDirectory,
        inventory: InventoryAccess,
        config: Optional[TransferConfig] = None,
        policy_provider: Optional[PolicyProvider] = None,
        delivery_hook: Optional[DeliveryHook] = None,
    ):
        self.config = config or TransferConfig()
        self.directory = directory
        self.inventory = inventory
        self.resolver = OrbitResolver(directory)
        self.policy = TransferPolicy(policy_provider)
        self.cooldowns = CooldownLedger(self.config.cooldown_ticks)
        self.ledger = TransitLedger(directory, inventory, self.cooldowns, delivery_hook)
        self.capacity = CapacityAccountant(inventory, self.ledger.reserved)
        self.scheduler = TransferScheduler(
            directory,
            self.resolver,
            self.policy,
            self.capacity,
            self.cooldowns,
            self.ledger,
            self.config,
        )
        self.sweeper = MaintenanceSweeper(directory, self.scheduler, self.cooldowns, self.ledger, self.config)
        self._lock = threading.RLock()
        self._last_tick: Optional[int] = None

    # ── Late-bound collaborators ───────────────────────────

    def set_policy_provider(self, provider: Optional[PolicyProvider]) -> None:
        with self._lock:
            self.policy.set_provider(provider)

    def set_delivery_hook(self, hook: Optional[DeliveryHook]) -> None:
        with self._lock:
            self.ledger.delivery_hook = hook

    # ── Request surface ────────────────────────────────────

    def register_request(
        self,
        platform_id: str,
        item_id: str,
        minimum: Optional[int] = None,
        requested: Optional[int] = None,
    ) -> bool:
        with self._lock:
            return self.scheduler.register_request(platform_id, item_id, minimum, requested)

    def remove_request(self, platform_id: str, item_id: str) -> bool:
        with self._lock:
            return self.scheduler.remove_request(platform_id, item_id)

    def get_requests(self, platform_id: str) -> Dict[str, TransferRequest]:
        with self._lock:
            return self.scheduler.get_requests(platform_id)

    def get_request(self, platform_id: str, item_id: str) -> Optional[TransferRequest]:
        with self._lock:
            return self.scheduler.get_request(platform_id, item_id)

    def can_receive_items(self, platform_id: str, item_id: str, quantity: int) -> Tuple[bool, str]:
        with self._lock:
            platform = self.directory.get_platform(str(platform_id))
            if platform is None or not platform.valid:
                return False, "Invalid platform"
            return self.capacity.can_receive(platform.platform_id, str(item_id), int(quantity))

    def available_to_receive(self, platform_id: str, item_id: str) -> int:
        with self._lock:
            platform = self.directory.get_platform(str(platform_id))
            if platform is None or not platform.valid:
                return 0
            return self.capacity.available_to_receive(platform.platform_id, str(item_id))

    def pending_transfers(self) -> List[PendingTransfer]:
        with self._lock:
            return self.ledger.pending()

    def current_group(self, platform_id: str) -> Optional[str]:
        with self._lock:
            return self.resolver.current_group(self.directory.get_platform(str(platform_id)))

    def peers_in_group(self, platform_id: str) -> List[str]:
        with self._lock:
            platform = self.directory.get_platform(str(platform_id))
            return [p.platform_id for p in self.resolver.peers_in_group(platform)]

    # ── Entry points ───────────────────────────────────────

    def process_cycle(self, now: int) -> CycleReport:
        with self._lock:
            return self.scheduler.process_cycle(now)

    def resolve_arrivals(self, now: int) -> List[DeliveryReport]:
        with self._lock:
            return self.ledger.resolve(now)

    def sweep(self, now: int) -> SweepReport:
        with self._lock:
            return self.sweeper.sweep(now)

    @property
    def last_tick(self) -> Optional[int]:
        return self._last_tick

    def on_tick(self, tick: int) -> None:
        with self._lock:
            if tick % self.config.cycle_interval == 0:
                self.scheduler.process_cycle(tick)
            self.ledger.resolve(tick)
            if tick % self.config.sweep_interval == 0:
                self.sweeper.sweep(tick)
            self._last_tick = int(tick)

    def advance_to(self, tick: int) -> int:
        """Catch up to ``tick``; returns the number of due ticks replayed."""
        tick = int(tick)
        with self._lock:
            if self._last_tick is None:
                self.on_tick(tick)
                return 1
            if tick <= self._last_tick:
                return 0

            replayed = 0
            t = self._last_tick + 1
            while t <= tick:
                due = min(
                    _next_multiple(t, self.config.cycle_interval),
                    _next_multiple(t, self.config.sweep_interval),
                )
                if due > tick:
                    break
                if due > t:
                    self.ledger.resolve(due - 1)
                self.on_tick(due)
                replayed += 1
                t = due + 1

            self.ledger.resolve(tick)
            self._last_tick = tick
            return replayed

    # ── Snapshot ───────────────────────────────────────────

    def exclusive(self):
        """The engine lock, for callers that must read engine and host as one state."""
        return self._lock

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "requests": self.scheduler.export_requests(),
                "cooldowns": self.cooldowns.export_entries(),
                "reservations": self.ledger.export_reservations(),
                "pending_transfers": self.ledger.export_pending(),
                "last_cycle_tick": int(self.scheduler.last_cycle_tick),
                "last_tick": self._last_tick,
            }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        with self._lock:
            self.scheduler.import_requests(snapshot.get("requests") or {})
            self.cooldowns.import_entries(snapshot.get("cooldowns") or [])
            self.ledger.import_state(
                snapshot.get("reservations") or [],
                snapshot.get("pending_transfers") or [],
            )
            self.scheduler.last_cycle_tick = int(snapshot.get("last_cycle_tick") or 0)
            last_tick = snapshot.get("last_tick")
            self._last_tick = None if last_tick is None else int(last_tick)
