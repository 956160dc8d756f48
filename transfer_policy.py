"""
Transfer legality between two platforms.

An external policy provider (for instance a ship/station mod) may be
attached at any time; it is looked up on every call rather than cached.
Without one, the built-in rule forbids ship-to-ship transfers and allows
everything else.
"""

import logging
from typing import Any, Optional, Tuple

from constants import (
    PLATFORM_TYPE_SHIP,
    PLATFORM_TYPE_STATION,
    PLATFORM_TYPE_TAG,
    SHIP_NAME_MARKER,
    STATION_NAME_MARKER,
)
from host_interfaces import PlatformRecord, PolicyProvider


def classify_platform(platform: Optional[PlatformRecord]) -> Optional[str]:
    """Return "ship", "platform" or None for an unclassifiable platform.

    An explicit ship_type tag wins over the naming convention.
    """
    if platform is None or not platform.valid:
        return None
    tags = platform.tags or {}
    tagged = str(tags.get(PLATFORM_TYPE_TAG) or "").strip()
    if tagged:
        return tagged
    name = str(platform.name or "")
    if SHIP_NAME_MARKER in name:
        return PLATFORM_TYPE_SHIP
    if STATION_NAME_MARKER in name:
        return PLATFORM_TYPE_STATION
    return None


def builtin_rule(source: PlatformRecord, dest: PlatformRecord) -> Tuple[bool, str]:
    if classify_platform(source) == PLATFORM_TYPE_SHIP and classify_platform(dest) == PLATFORM_TYPE_SHIP:
        return False, "Ship to Ship transfers forbidden"
    return True, "Transfer allowed"


def _normalize_verdict(raw: Any) -> Tuple[bool, str]:
    if isinstance(raw, tuple):
        allowed = bool(raw[0]) if raw else False
        reason = str(raw[1]) if len(raw) > 1 and raw[1] is not None else ""
    else:
        allowed = bool(raw)
        reason = ""
    if not reason:
        reason = "Transfer allowed" if allowed else "Transfer rejected by policy provider"
    return allowed, reason


class TransferPolicy:
    def __init__(self, provider: Optional[PolicyProvider] = None):
        self._provider = provider

    def set_provider(self, provider: Optional[PolicyProvider]) -> None:
        self._provider = provider

    @property
    def provider(self) -> Optional[PolicyProvider]:
        return self._provider

    def allowed(self, source: PlatformRecord, dest: PlatformRecord) -> Tuple[bool, str]:
        validate = getattr(self._provider, "validate_transfer", None)
        if callable(validate):
            try:
                return _normalize_verdict(validate(source, dest))
            except Exception:
                logging.exception(
                    "Policy provider failed for %s -> %s; using built-in rule",
                    source.platform_id,
                    dest.platform_id,
                )
        return builtin_rule(source, dest)
