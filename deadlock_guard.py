"""
Deadlock guard — refuses a transfer when the source is itself waiting on
the destination.

This is a one-hop check: it only looks for direct mutual need between the
two platforms of a candidate transfer. Chains of three or more platforms
that wait on each other are not detected.
"""

from typing import Callable, Mapping

from capacity_service import CapacityAccountant
from transfer_models import TransferRequest

RequestLookup = Callable[[str], Mapping[str, TransferRequest]]


class DeadlockGuard:
    def __init__(self, requests_for: RequestLookup, capacity: CapacityAccountant):
        self._requests_for = requests_for
        self.capacity = capacity

    def would_deadlock(self, source_id: str, dest_id: str, item_id: str) -> bool:
        # item_id does not narrow the check: any need of the source that the
        # destination could fill blocks the transfer.
        for req_item, request in self._requests_for(source_id).items():
            held = self.capacity.total_items(dest_id, req_item)
            if held > 0 and held >= request.minimum:
                return True
        return False
