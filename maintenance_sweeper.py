"""
Maintenance sweeper — periodic purge of state that can no longer make
progress.

Stale cargo pods are dropped outright: nothing is inserted anywhere and
their reservation is left for the platform-validity purge to clear. The
items were already taken from the source at launch, so they are lost.
"""

import logging
from typing import Set

from cooldown_ledger import CooldownLedger
from host_interfaces import PlatformDirectory
from transfer_config import TransferConfig
from transfer_models import SweepReport
from transfer_scheduler import TransferScheduler
from transit_ledger import TransitLedger


class MaintenanceSweeper:
    def __init__(
        self,
        directory: PlatformDirectory,
        scheduler: TransferScheduler,
        cooldowns: CooldownLedger,
        ledger: TransitLedger,
        config: TransferConfig,
    ):
        self.directory = directory
        self.scheduler = scheduler
        self.cooldowns = cooldowns
        self.ledger = ledger
        self.config = config

    def _valid_platform_ids(self) -> Set[str]:
        return {p.platform_id for p in self.directory.list_platforms() if p.valid}

    def sweep(self, now: int) -> SweepReport:
        valid_ids = self._valid_platform_ids()
        report = SweepReport(
            tick=int(now),
            requests_purged=self.scheduler.purge_requests(valid_ids),
            reservations_purged=self.ledger.purge_reservations(valid_ids),
            cooldowns_purged=self.cooldowns.sweep(now, self.config.cooldown_retention),
            stale_transfers_purged=self.ledger.purge_stale(now, self.config.stale_transit),
        )
        if report.stale_transfers_purged:
            logging.warning(
                "Dropped %d stale cargo pods at tick %d", report.stale_transfers_purged, report.tick
            )
        logging.info(
            "Sweep at tick %d: requests=%d reservations=%d cooldowns=%d stale_pods=%d",
            report.tick,
            report.requests_purged,
            report.reservations_purged,
            report.cooldowns_purged,
            report.stale_transfers_purged,
        )
        return report
