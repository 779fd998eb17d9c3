"""Registry of overlay windows currently rendering scoreboards."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Dict, List, Optional

from .entities import DisplayInstance

logger = logging.getLogger(__name__)

_UNSET = object()


def _clean_filter(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class DisplayRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._displays: Dict[str, DisplayInstance] = {}

    def register(
        self,
        display_id: str,
        court_filter: Optional[str] = None,
        *,
        is_active: bool = True,
    ) -> DisplayInstance:
        display = DisplayInstance(
            display_id=str(display_id),
            is_active=bool(is_active),
            court_filter=_clean_filter(court_filter),
        )
        with self._lock:
            self._displays[display.display_id] = display
        logger.info(
            "Zarejestrowano wyświetlacz %s (kort: %s)",
            display.display_id,
            display.court_filter or "wszystkie",
        )
        return display

    def update(
        self,
        display_id: str,
        *,
        court_filter=_UNSET,
        is_active=_UNSET,
    ) -> Optional[DisplayInstance]:
        with self._lock:
            display = self._displays.get(display_id)
            if display is None:
                return None
            changes = {}
            if court_filter is not _UNSET:
                changes["court_filter"] = _clean_filter(court_filter)
            if is_active is not _UNSET:
                changes["is_active"] = bool(is_active)
            display = replace(display, **changes)
            self._displays[display_id] = display
        return display

    def unregister(self, display_id: str) -> bool:
        with self._lock:
            removed = self._displays.pop(display_id, None)
        if removed is not None:
            logger.info("Wyrejestrowano wyświetlacz %s", display_id)
        return removed is not None

    def get(self, display_id: str) -> Optional[DisplayInstance]:
        with self._lock:
            return self._displays.get(display_id)

    def instances(self) -> List[DisplayInstance]:
        with self._lock:
            return list(self._displays.values())

    def active_instances(self) -> List[DisplayInstance]:
        return [display for display in self.instances() if display.is_active]


__all__ = ["DisplayRegistry"]
