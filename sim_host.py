"""
In-memory reference host — platforms, orbits and slot-based cargo bays.

Implements the PlatformDirectory and InventoryAccess collaborators the
transfer engine consumes. The HTTP app runs on top of it, and the tests use
it as a fake inventory.

Storage model:
  - A platform owns one or more cargo bays (the storage endpoints).
  - A bay is a fixed number of slots; each slot holds one stack of one item.
  - Free capacity for an item = empty slots × stack size + headroom left in
    partial stacks of that item.
"""

import re
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from constants import (
    DEFAULT_CARGO_BAY_SLOTS,
    PLATFORM_STATE_ON_THE_PATH,
    PLATFORM_STATE_WAITING_AT_STATION,
    stack_size_for,
)


class HostError(ValueError):
    pass


@dataclass
class ItemStack:
    item: str
    count: int


@dataclass
class CargoBay:
    platform_id: str
    index: int
    slots: List[Optional[ItemStack]]

    @classmethod
    def empty(cls, platform_id: str, index: int, slot_count: int = DEFAULT_CARGO_BAY_SLOTS) -> "CargoBay":
        return cls(platform_id=platform_id, index=index, slots=[None] * max(0, int(slot_count)))

    def item_count(self, item_id: str) -> int:
        return sum(s.count for s in self.slots if s is not None and s.item == item_id)

    def free_capacity(self, item_id: str) -> int:
        stack_size = stack_size_for(item_id)
        space = 0
        for stack in self.slots:
            if stack is None:
                space += stack_size
            elif stack.item == item_id and stack.count < stack_size:
                space += stack_size - stack.count
        return space

    def insert(self, item_id: str, count: int) -> int:
        remaining = max(0, int(count))
        stack_size = stack_size_for(item_id)
        # Top up partial stacks first, then open new ones.
        for stack in self.slots:
            if remaining <= 0:
                break
            if stack is not None and stack.item == item_id and stack.count < stack_size:
                moved = min(remaining, stack_size - stack.count)
                stack.count += moved
                remaining -= moved
        for i, stack in enumerate(self.slots):
            if remaining <= 0:
                break
            if stack is None:
                moved = min(remaining, stack_size)
                self.slots[i] = ItemStack(item_id, moved)
                remaining -= moved
        return max(0, int(count)) - remaining

    def remove(self, item_id: str, count: int) -> int:
        remaining = max(0, int(count))
        for i in range(len(self.slots) - 1, -1, -1):
            if remaining <= 0:
                break
            stack = self.slots[i]
            if stack is None or stack.item != item_id:
                continue
            moved = min(remaining, stack.count)
            stack.count -= moved
            remaining -= moved
            if stack.count <= 0:
                self.slots[i] = None
        return max(0, int(count)) - remaining

    def contents(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for stack in self.slots:
            if stack is not None:
                out[stack.item] = out.get(stack.item, 0) + stack.count
        return out


@dataclass
class Platform:
    platform_id: str
    name: str
    owner: str = "player"
    valid: bool = True
    state: str = PLATFORM_STATE_WAITING_AT_STATION
    location: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)
    bays: List[CargoBay] = field(default_factory=list)

    def contents(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for bay in self.bays:
            for item, count in bay.contents().items():
                out[item] = out.get(item, 0) + count
        return out


@dataclass(frozen=True)
class Landing:
    platform_id: str
    item: str
    amount: int


def _slugify_platform_id(raw: str) -> str:
    text = re.sub(r"[^a-zA-Z0-9]+", "_", raw.strip().lower()).strip("_")
    return text or "platform"


class HostSimulation:
    """Platform directory + inventory access over in-memory platforms."""

    def __init__(self):
        self._platforms: Dict[str, Platform] = {}
        self._lock = threading.RLock()

    # ── Directory ──────────────────────────────────────────

    def list_platforms(self) -> List[Platform]:
        with self._lock:
            return list(self._platforms.values())

    def get_platform(self, platform_id: str) -> Optional[Platform]:
        with self._lock:
            return self._platforms.get(str(platform_id))

    def require_platform(self, platform_id: str) -> Platform:
        platform = self.get_platform(platform_id)
        if platform is None or not platform.valid:
            raise HostError(f"Unknown platform: {platform_id}")
        return platform

    def _next_available_platform_id(self, preferred: str) -> str:
        base = _slugify_platform_id(preferred)
        candidate = base
        suffix = 2
        while candidate in self._platforms:
            candidate = f"{base}_{suffix}"
            suffix += 1
        return candidate

    def spawn_platform(
        self,
        name: str,
        *,
        platform_id: Optional[str] = None,
        owner: str = "player",
        location: Optional[str] = None,
        tags: Optional[Dict[str, str]] = None,
        bays: int = 1,
        slots_per_bay: int = DEFAULT_CARGO_BAY_SLOTS,
    ) -> Platform:
        name = str(name or "").strip()
        if not name:
            raise HostError("name is required")
        with self._lock:
            if platform_id and str(platform_id) in self._platforms:
                raise HostError(f"Platform already exists: {platform_id}")
            pid = str(platform_id) if platform_id else self._next_available_platform_id(name)
            location_id = str(location or "").strip() or None
            platform = Platform(
                platform_id=pid,
                name=name,
                owner=str(owner or "player"),
                state=PLATFORM_STATE_WAITING_AT_STATION if location_id else PLATFORM_STATE_ON_THE_PATH,
                location=location_id,
                tags=dict(tags or {}),
            )
            platform.bays = [CargoBay.empty(pid, i, slots_per_bay) for i in range(max(0, int(bays)))]
            self._platforms[pid] = platform
            return platform

    def destroy_platform(self, platform_id: str) -> bool:
        with self._lock:
            platform = self._platforms.get(str(platform_id))
            if platform is None or not platform.valid:
                return False
            platform.valid = False
            platform.location = None
            return True

    def depart(self, platform_id: str) -> Platform:
        with self._lock:
            platform = self.require_platform(platform_id)
            platform.state = PLATFORM_STATE_ON_THE_PATH
            platform.location = None
            return platform

    def arrive(self, platform_id: str, location: str) -> Platform:
        location_id = str(location or "").strip()
        if not location_id:
            raise HostError("location is required")
        with self._lock:
            platform = self.require_platform(platform_id)
            platform.state = PLATFORM_STATE_WAITING_AT_STATION
            platform.location = location_id
            return platform

    def set_state(self, platform_id: str, state: str) -> Platform:
        with self._lock:
            platform = self.require_platform(platform_id)
            platform.state = str(state)
            return platform

    # ── Stock helpers ──────────────────────────────────────

    def stock(self, platform_id: str, item_id: str, count: int) -> int:
        with self._lock:
            platform = self.require_platform(platform_id)
            remaining = max(0, int(count))
            for bay in platform.bays:
                if remaining <= 0:
                    break
                remaining -= bay.insert(item_id, remaining)
            return max(0, int(count)) - remaining

    def fill_slots(self, platform_id: str, item_id: str, slots: int) -> int:
        """Occupy ``slots`` empty slots with full stacks of ``item_id``."""
        return self.stock(platform_id, item_id, stack_size_for(item_id) * max(0, int(slots)))

    def contents(self, platform_id: str) -> Dict[str, int]:
        with self._lock:
            platform = self.get_platform(platform_id)
            return platform.contents() if platform is not None else {}

    # ── Persistence ────────────────────────────────────────

    def export_state(self) -> List[Dict[str, Any]]:
        """Platforms in directory order, cargo bays down to the slot."""
        with self._lock:
            out: List[Dict[str, Any]] = []
            for platform in self._platforms.values():
                out.append(
                    {
                        "platform_id": platform.platform_id,
                        "name": platform.name,
                        "owner": platform.owner,
                        "valid": bool(platform.valid),
                        "state": platform.state,
                        "location": platform.location,
                        "tags": dict(platform.tags),
                        "bays": [
                            {
                                "slot_count": len(bay.slots),
                                "stacks": [
                                    {"slot": i, "item": stack.item, "count": int(stack.count)}
                                    for i, stack in enumerate(bay.slots)
                                    if stack is not None
                                ],
                            }
                            for bay in platform.bays
                        ],
                    }
                )
            return out

    def import_state(self, platforms: List[Dict[str, Any]]) -> None:
        """Replace every platform with the exported rows."""
        rebuilt: Dict[str, Platform] = {}
        for row in platforms:
            pid = str(row["platform_id"])
            platform = Platform(
                platform_id=pid,
                name=str(row.get("name") or pid),
                owner=str(row.get("owner") or "player"),
                valid=bool(row.get("valid", True)),
                state=str(row.get("state") or PLATFORM_STATE_ON_THE_PATH),
                location=row.get("location") or None,
                tags={str(k): str(v) for k, v in (row.get("tags") or {}).items()},
            )
            for index, bay_row in enumerate(row.get("bays") or []):
                bay = CargoBay.empty(pid, index, int(bay_row.get("slot_count") or 0))
                for stack in bay_row.get("stacks") or []:
                    slot = int(stack["slot"])
                    if not 0 <= slot < len(bay.slots):
                        raise HostError(f"Slot {slot} out of range for {pid} bay {index}")
                    bay.slots[slot] = ItemStack(str(stack["item"]), int(stack["count"]))
                platform.bays.append(bay)
            rebuilt[pid] = platform
        with self._lock:
            self._platforms = rebuilt

    # ── InventoryAccess ────────────────────────────────────

    def endpoints(self, platform_id: str) -> List[CargoBay]:
        with self._lock:
            platform = self._platforms.get(str(platform_id))
            if platform is None or not platform.valid:
                return []
            return list(platform.bays)

    def item_count(self, endpoint: CargoBay, item_id: str) -> int:
        with self._lock:
            return endpoint.item_count(item_id)

    def free_capacity(self, endpoint: CargoBay, item_id: str) -> int:
        with self._lock:
            return endpoint.free_capacity(item_id)

    def remove(self, endpoint: CargoBay, item_id: str, count: int) -> int:
        with self._lock:
            return endpoint.remove(item_id, count)

    def insert(self, endpoint: CargoBay, item_id: str, count: int) -> int:
        with self._lock:
            return endpoint.insert(item_id, count)


class LandingLog:
    """Delivery hook that keeps the most recent cargo pod landings."""

    def __init__(self, maxlen: int = 200):
        self._landings: Deque[Landing] = deque(maxlen=maxlen)

    def on_delivery(self, dest: Any, item_id: str, amount: int) -> None:
        self._landings.append(Landing(str(dest.platform_id), str(item_id), int(amount)))

    def recent(self, limit: int = 50) -> List[Landing]:
        return list(self._landings)[-max(0, int(limit)):] if limit else []
