"""
Collaborator interfaces the transfer engine consumes from its host.

The engine never creates or destroys platforms and never touches item
storage directly; everything goes through these protocols so tests can
inject an in-memory host (sim_host.py) and a live game can inject its own.
"""

from typing import Any, Dict, List, Optional, Protocol, Tuple


class PlatformRecord(Protocol):
    """Read-only view of a host platform."""

    platform_id: str
    name: str
    owner: str
    valid: bool
    state: str
    location: Optional[str]
    tags: Dict[str, str]


class PlatformDirectory(Protocol):
    def list_platforms(self) -> List[PlatformRecord]:
        """Every platform across all owning collectives, in a stable order."""
        ...

    def get_platform(self, platform_id: str) -> Optional[PlatformRecord]:
        ...


class InventoryAccess(Protocol):
    def endpoints(self, platform_id: str) -> List[Any]:
        """Cargo-capable storage endpoints of a platform, in a stable order."""
        ...

    def item_count(self, endpoint: Any, item_id: str) -> int:
        ...

    def free_capacity(self, endpoint: Any, item_id: str) -> int:
        ...

    def remove(self, endpoint: Any, item_id: str, count: int) -> int:
        """Remove up to ``count`` items; returns the amount actually removed."""
        ...

    def insert(self, endpoint: Any, item_id: str, count: int) -> int:
        """Insert up to ``count`` items; returns the amount actually inserted."""
        ...


class PolicyProvider(Protocol):
    def validate_transfer(self, source: PlatformRecord, dest: PlatformRecord) -> Tuple[bool, str]:
        ...


class DeliveryHook(Protocol):
    def on_delivery(self, dest: PlatformRecord, item_id: str, amount: int) -> None:
        ...
