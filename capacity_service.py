"""
Capacity accounting for cargo transfers.

Source side: how many of an item a platform can send, all-or-nothing
against the request minimum. Destination side: how much free space is left
for an item once in-flight reservations are taken out.
"""

from typing import Callable, Tuple

from host_interfaces import InventoryAccess


class CapacityAccountant:
    def __init__(self, inventory: InventoryAccess, reserved: Callable[[str, str], int]):
        self.inventory = inventory
        self._reserved = reserved

    def total_items(self, platform_id: str, item_id: str) -> int:
        total = 0
        for endpoint in self.inventory.endpoints(platform_id):
            total += max(0, int(self.inventory.item_count(endpoint, item_id)))
        return total

    def available_to_send(self, platform_id: str, item_id: str, minimum: int = 1) -> int:
        total = self.total_items(platform_id, item_id)
        if total >= max(1, int(minimum or 1)):
            return total
        return 0

    def raw_free_capacity(self, platform_id: str, item_id: str) -> int:
        space = 0
        for endpoint in self.inventory.endpoints(platform_id):
            space += max(0, int(self.inventory.free_capacity(endpoint, item_id)))
        return space

    def available_to_receive(self, platform_id: str, item_id: str) -> int:
        space = self.raw_free_capacity(platform_id, item_id) - int(self._reserved(platform_id, item_id))
        return max(0, space)

    def can_receive(self, platform_id: str, item_id: str, quantity: int) -> Tuple[bool, str]:
        if not self.inventory.endpoints(platform_id):
            return False, "No cargo storage available"
        space = self.available_to_receive(platform_id, item_id)
        if space < int(quantity):
            return False, f"Insufficient storage: {space} available"
        return True, "Can receive"
