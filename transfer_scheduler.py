"""
Transfer scheduler — matches standing requests against platforms in the
same orbit and commits cargo pod launches.

Each cycle walks destinations and their requests in registry order and
tries peers in orbit order. A request is filled at most once per cycle,
from a single source, and only with at least its minimum quantity. The
whole cycle stops at the per-cycle quota; whatever is left simply waits
for the next cycle.

Candidate gates, in order:
  cooldown → transfer policy → deadlock guard → source stock → destination space
"""

import logging
from typing import Dict, List, Mapping, Optional

from capacity_service import CapacityAccountant
from cooldown_ledger import CooldownLedger
from deadlock_guard import DeadlockGuard
from host_interfaces import PlatformDirectory, PlatformRecord
from orbit_resolver import OrbitResolver
from transfer_config import TransferConfig
from transfer_models import CycleReport, TransferRequest
from transfer_policy import TransferPolicy
from transit_ledger import TransitLedger

_NO_REQUESTS: Mapping[str, TransferRequest] = {}


class TransferScheduler:
    def __init__(
        self,
        directory: PlatformDirectory,
        resolver: OrbitResolver,
        policy: TransferPolicy,
        capacity: CapacityAccountant,
        cooldowns: CooldownLedger,
        ledger: TransitLedger,
        config: TransferConfig,
    ):
        self.directory = directory
        self.resolver = resolver
        self.policy = policy
        self.capacity = capacity
        self.cooldowns = cooldowns
        self.ledger = ledger
        self.config = config
        self.deadlock = DeadlockGuard(self.requests_for, capacity)
        self._requests: Dict[str, Dict[str, TransferRequest]] = {}
        self.last_cycle_tick = 0

    # ── Request registry ───────────────────────────────────

    def _valid_platform(self, platform_id: str) -> Optional[PlatformRecord]:
        platform = self.directory.get_platform(str(platform_id))
        if platform is None or not platform.valid:
            return None
        return platform

    def requests_for(self, platform_id: str) -> Mapping[str, TransferRequest]:
        return self._requests.get(platform_id, _NO_REQUESTS)

    def register_request(
        self,
        platform_id: str,
        item_id: str,
        minimum: Optional[int] = None,
        requested: Optional[int] = None,
    ) -> bool:
        if self._valid_platform(platform_id) is None:
            return False
        item = str(item_id or "").strip()
        if not item:
            return False
        try:
            minimum_qty = 1 if minimum is None else int(minimum)
            requested_qty = minimum_qty if requested is None else int(requested)
        except (TypeError, ValueError):
            return False
        if minimum_qty < 1 or requested_qty < minimum_qty:
            return False

        self._requests.setdefault(str(platform_id), {})[item] = TransferRequest(
            item=item,
            minimum=minimum_qty,
            requested=requested_qty,
            last_processed=0,
        )
        return True

    def remove_request(self, platform_id: str, item_id: str) -> bool:
        if self._valid_platform(platform_id) is None:
            return False
        by_item = self._requests.get(str(platform_id))
        if by_item is not None:
            by_item.pop(str(item_id), None)
            if not by_item:
                del self._requests[str(platform_id)]
        return True

    def get_requests(self, platform_id: str) -> Dict[str, TransferRequest]:
        if self._valid_platform(platform_id) is None:
            return {}
        return {
            item: TransferRequest(**req.to_dict())
            for item, req in self.requests_for(str(platform_id)).items()
        }

    def get_request(self, platform_id: str, item_id: str) -> Optional[TransferRequest]:
        return self.get_requests(platform_id).get(str(item_id))

    def purge_requests(self, valid_ids: set) -> int:
        stale = [pid for pid in self._requests if pid not in valid_ids]
        for pid in stale:
            del self._requests[pid]
        return len(stale)

    # ── Cycle ──────────────────────────────────────────────

    def _try_transfer(
        self,
        dest: PlatformRecord,
        source: PlatformRecord,
        request: TransferRequest,
        now: int,
    ) -> bool:
        item = request.item
        if self.cooldowns.is_cooling_down(dest.platform_id, source.platform_id, item, now):
            return False

        allowed, reason = self.policy.allowed(source, dest)
        if not allowed:
            logging.debug("Transfer %s -> %s blocked: %s", source.platform_id, dest.platform_id, reason)
            return False

        if self.deadlock.would_deadlock(source.platform_id, dest.platform_id, item):
            return False

        available = self.capacity.available_to_send(source.platform_id, item, request.minimum)
        if available < request.minimum:
            return False

        amount = min(available, request.requested)
        space = self.capacity.available_to_receive(dest.platform_id, item)
        if space < amount:
            amount = space
        if amount < request.minimum:
            return False

        transfer_id = self.ledger.commit(
            source.platform_id,
            dest.platform_id,
            item,
            amount,
            now,
            self.config.transit_delay,
        )
        if transfer_id is None:
            return False
        request.last_processed = int(now)
        return True

    def process_cycle(self, now: int) -> CycleReport:
        report = CycleReport(tick=int(now))
        quota = self.config.max_transfers_per_cycle
        to_remove: List[str] = []

        for dest_id, requests in list(self._requests.items()):
            if report.committed >= quota:
                break

            dest = self._valid_platform(dest_id)
            if dest is None:
                to_remove.append(dest_id)
                continue
            if self.resolver.current_group(dest) is None:
                continue

            sources = self.resolver.peers_in_group(dest)
            for request in list(requests.values()):
                if report.committed >= quota:
                    break
                for source in sources:
                    if report.committed >= quota:
                        break
                    if self._try_transfer(dest, source, request, now):
                        report.committed += 1
                        break

        for dest_id in to_remove:
            self._requests.pop(dest_id, None)

        report.quota_reached = report.committed >= quota
        report.purged_platforms = to_remove
        self.last_cycle_tick = int(now)
        if report.committed or to_remove:
            logging.info(
                "Transfer cycle at tick %d: %d committed, %d platforms purged%s",
                report.tick,
                report.committed,
                len(to_remove),
                " (quota reached)" if report.quota_reached else "",
            )
        return report

    # ── Snapshot ───────────────────────────────────────────

    def export_requests(self) -> Dict[str, List[Dict]]:
        return {
            pid: [req.to_dict() for req in by_item.values()]
            for pid, by_item in self._requests.items()
        }

    def import_requests(self, raw: Mapping[str, List[Dict]]) -> None:
        self._requests = {}
        for pid, rows in raw.items():
            by_item = {}
            for row in rows:
                req = TransferRequest.from_dict(row)
                by_item[req.item] = req
            if by_item:
                self._requests[str(pid)] = by_item
