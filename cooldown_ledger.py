"""
Per (destination, source, item) rate limiting.
"""

from typing import Any, Dict, List, Optional

from transfer_models import CooldownKey


class CooldownLedger:
    def __init__(self, window: int):
        self.window = int(window)
        self._entries: Dict[CooldownKey, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def last_transfer(self, dest: str, source: str, item: str) -> Optional[int]:
        return self._entries.get(CooldownKey(dest, source, item))

    def is_cooling_down(self, dest: str, source: str, item: str, now: int) -> bool:
        last = self._entries.get(CooldownKey(dest, source, item))
        if last is None:
            return False
        return (int(now) - last) < self.window

    def record(self, dest: str, source: str, item: str, now: int) -> None:
        self._entries[CooldownKey(dest, source, item)] = int(now)

    def sweep(self, now: int, retention: int) -> int:
        stale = [key for key, tick in self._entries.items() if (int(now) - tick) > retention]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def export_entries(self) -> List[Dict[str, Any]]:
        return [
            {"dest": key.dest, "source": key.source, "item": key.item, "last_transfer_tick": tick}
            for key, tick in self._entries.items()
        ]

    def import_entries(self, rows: List[Dict[str, Any]]) -> None:
        self._entries = {
            CooldownKey(str(r["dest"]), str(r["source"]), str(r["item"])): int(r["last_transfer_tick"])
            for r in rows
        }
