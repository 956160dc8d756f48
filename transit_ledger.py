"""
Transit ledger — cargo pods between commit and delivery.

Commit is the authoritative deduction: items leave the source immediately
and the destination space is reserved until the pod lands. Delivery inserts
the cargo, releases the reservation by what actually fit, and forgets the
pod. Anything that no longer fits at landing time is lost.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Set

from cooldown_ledger import CooldownLedger
from host_interfaces import DeliveryHook, InventoryAccess, PlatformDirectory
from transfer_models import DeliveryReport, PendingTransfer


class TransitLedger:
    def __init__(
        self,
        directory: PlatformDirectory,
        inventory: InventoryAccess,
        cooldowns: CooldownLedger,
        delivery_hook: Optional[DeliveryHook] = None,
    ):
        self.directory = directory
        self.inventory = inventory
        self.cooldowns = cooldowns
        self.delivery_hook = delivery_hook
        self._reservations: Dict[str, Dict[str, int]] = {}
        self._pending: List[PendingTransfer] = []

    # ── Reservations ───────────────────────────────────────

    def reserved(self, dest_id: str, item_id: str) -> int:
        return int(self._reservations.get(dest_id, {}).get(item_id, 0))

    def _reserve(self, dest_id: str, item_id: str, amount: int) -> None:
        by_item = self._reservations.setdefault(dest_id, {})
        by_item[item_id] = by_item.get(item_id, 0) + int(amount)

    def _release(self, dest_id: str, item_id: str, amount: int) -> None:
        by_item = self._reservations.get(dest_id)
        if not by_item or item_id not in by_item:
            return
        left = by_item[item_id] - int(amount)
        if left <= 0:
            del by_item[item_id]
            if not by_item:
                del self._reservations[dest_id]
        else:
            by_item[item_id] = left

    def purge_reservations(self, valid_ids: Set[str]) -> int:
        stale = [dest_id for dest_id in self._reservations if dest_id not in valid_ids]
        for dest_id in stale:
            del self._reservations[dest_id]
        return len(stale)

    # ── Pending transfers ──────────────────────────────────

    def pending(self) -> List[PendingTransfer]:
        return list(self._pending)

    def pending_for(self, dest_id: str, item_id: str) -> List[PendingTransfer]:
        return [p for p in self._pending if p.dest == dest_id and p.item == item_id]

    def _remove_from_source(self, source_id: str, item_id: str, amount: int) -> int:
        remaining = int(amount)
        for endpoint in self.inventory.endpoints(source_id):
            if remaining <= 0:
                break
            remaining -= max(0, int(self.inventory.remove(endpoint, item_id, remaining)))
        return int(amount) - remaining

    def _insert_into_dest(self, dest_id: str, item_id: str, amount: int) -> int:
        remaining = int(amount)
        for endpoint in self.inventory.endpoints(dest_id):
            if remaining <= 0:
                break
            remaining -= max(0, int(self.inventory.insert(endpoint, item_id, remaining)))
        return int(amount) - remaining

    def commit(
        self,
        source_id: str,
        dest_id: str,
        item_id: str,
        amount: int,
        now: int,
        transit_delay: int,
    ) -> Optional[str]:
        if int(amount) <= 0:
            return None
        removed = self._remove_from_source(source_id, item_id, amount)
        if removed <= 0:
            return None

        transfer = PendingTransfer(
            transfer_id=uuid.uuid4().hex,
            source=source_id,
            dest=dest_id,
            item=item_id,
            amount=removed,
            eta=int(now) + int(transit_delay),
            created=int(now),
        )
        self._reserve(dest_id, item_id, removed)
        self._pending.append(transfer)
        self.cooldowns.record(dest_id, source_id, item_id, now)
        logging.debug(
            "Cargo pod %s launched: %d x %s %s -> %s (eta %d)",
            transfer.transfer_id, removed, item_id, source_id, dest_id, transfer.eta,
        )
        return transfer.transfer_id

    def _notify(self, dest: Any, item_id: str, amount: int) -> None:
        if self.delivery_hook is None:
            return
        try:
            self.delivery_hook.on_delivery(dest, item_id, amount)
        except Exception:
            logging.exception("Delivery hook failed for %s on %s", item_id, getattr(dest, "platform_id", dest))

    def _deliver(self, transfer: PendingTransfer) -> DeliveryReport:
        dest = self.directory.get_platform(transfer.dest)
        if dest is None or not dest.valid:
            logging.info("Cargo pod %s dropped: destination %s is gone", transfer.transfer_id, transfer.dest)
            return DeliveryReport(transfer.transfer_id, transfer.dest, transfer.item, transfer.amount, 0, False)

        inserted = self._insert_into_dest(transfer.dest, transfer.item, transfer.amount)
        self._release(transfer.dest, transfer.item, inserted)
        if inserted < transfer.amount:
            logging.warning(
                "Cargo pod %s landed short: %d of %d %s fit on %s",
                transfer.transfer_id, inserted, transfer.amount, transfer.item, transfer.dest,
            )
        if inserted > 0:
            self._notify(dest, transfer.item, inserted)
        return DeliveryReport(transfer.transfer_id, transfer.dest, transfer.item, transfer.amount, inserted, True)

    def resolve(self, now: int) -> List[DeliveryReport]:
        matured = [p for p in self._pending if int(now) >= p.eta]
        if not matured:
            return []

        reports: List[DeliveryReport] = []
        done: Set[str] = set()
        try:
            for transfer in matured:
                reports.append(self._deliver(transfer))
                done.add(transfer.transfer_id)
        finally:
            self._pending = [p for p in self._pending if p.transfer_id not in done]
        return reports

    def purge_stale(self, now: int, max_age: int) -> int:
        before = len(self._pending)
        self._pending = [p for p in self._pending if (int(now) - p.created) <= max_age]
        return before - len(self._pending)

    # ── Snapshot ───────────────────────────────────────────

    def export_reservations(self) -> List[Dict[str, Any]]:
        return [
            {"dest": dest_id, "item": item_id, "quantity": qty}
            for dest_id, by_item in self._reservations.items()
            for item_id, qty in by_item.items()
        ]

    def export_pending(self) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in self._pending]

    def import_state(self, reservations: Iterable[Dict[str, Any]], pending: Iterable[Dict[str, Any]]) -> None:
        self._reservations = {}
        for row in reservations:
            qty = int(row["quantity"])
            if qty > 0:
                self._reservations.setdefault(str(row["dest"]), {})[str(row["item"])] = qty
        self._pending = [PendingTransfer.from_dict(row) for row in pending]
