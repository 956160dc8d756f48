"""
Value types shared by the transfer engine components.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, NamedTuple


@dataclass
class TransferRequest:
    item: str
    minimum: int
    requested: int
    last_processed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TransferRequest":
        return cls(
            item=str(raw["item"]),
            minimum=int(raw["minimum"]),
            requested=int(raw["requested"]),
            last_processed=int(raw.get("last_processed") or 0),
        )


class CooldownKey(NamedTuple):
    dest: str
    source: str
    item: str


@dataclass
class PendingTransfer:
    transfer_id: str
    source: str
    dest: str
    item: str
    amount: int
    eta: int
    created: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PendingTransfer":
        return cls(
            transfer_id=str(raw["transfer_id"]),
            source=str(raw["source"]),
            dest=str(raw["dest"]),
            item=str(raw["item"]),
            amount=int(raw["amount"]),
            eta=int(raw["eta"]),
            created=int(raw["created"]),
        )


@dataclass(frozen=True)
class DeliveryReport:
    transfer_id: str
    dest: str
    item: str
    amount: int
    inserted: int
    delivered: bool


@dataclass
class CycleReport:
    tick: int
    committed: int = 0
    quota_reached: bool = False
    purged_platforms: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SweepReport:
    tick: int
    requests_purged: int = 0
    reservations_purged: int = 0
    cooldowns_purged: int = 0
    stale_transfers_purged: int = 0
