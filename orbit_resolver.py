"""
Orbit resolution — which platforms are parked at the same space location.

A platform belongs to an orbit group only while it is waiting at a station;
anything travelling, paused or unscheduled has no group and can neither
send nor receive.
"""

from typing import List, Optional

from constants import ORBIT_STABLE_STATES
from host_interfaces import PlatformDirectory, PlatformRecord


class OrbitResolver:
    def __init__(self, directory: PlatformDirectory):
        self.directory = directory

    def current_group(self, platform: Optional[PlatformRecord]) -> Optional[str]:
        if platform is None or not platform.valid:
            return None
        if platform.state not in ORBIT_STABLE_STATES:
            return None
        location = str(platform.location or "").strip()
        return location or None

    def peers_in_group(self, platform: Optional[PlatformRecord]) -> List[PlatformRecord]:
        group = self.current_group(platform)
        if group is None:
            return []

        peers: List[PlatformRecord] = []
        for other in self.directory.list_platforms():
            if not other.valid or other.platform_id == platform.platform_id:
                continue
            if other.owner != platform.owner:
                continue
            if self.current_group(other) == group:
                peers.append(other)
        return peers
