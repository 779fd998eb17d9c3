"""Domain records shared by the registry, scheduler and coordinator."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

MatchState = Dict[str, Any]


class Provider(enum.Enum):
    """Kind of source feeding a connection."""

    SIMULATED = "simulated"
    MANUAL_CONSOLE = "manual_console"
    POLLED_API = "polled_api"
    STREAMED_FEED = "streamed_feed"

    @classmethod
    def parse(cls, value: Any) -> Optional["Provider"]:
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower().replace("-", "_")
        text = _PROVIDER_ALIASES.get(text, text)
        for member in cls:
            if member.value == text:
                return member
        return None


# nazwy używane przez starsze zapisy konfiguracji
_PROVIDER_ALIASES = {
    "mock": "simulated",
    "manual_tennis": "manual_console",
    "manual": "manual_console",
    "api": "polled_api",
    "websocket": "streamed_feed",
    "feed": "streamed_feed",
}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Connection:
    id: str
    name: str
    provider: Provider
    api_url: str = ""
    api_key: str = ""
    court_filter: Optional[str] = None
    poll_interval: float = 5.0
    is_active: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    last_error: Optional[str] = None

    def to_dict(self, *, include_secrets: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "provider": self.provider.value,
            "api_url": self.api_url,
            "court_filter": self.court_filter,
            "poll_interval": self.poll_interval,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "last_updated": _iso(self.last_updated),
            "last_error": self.last_error,
        }
        if include_secrets:
            payload["api_key"] = self.api_key
        else:
            payload["has_api_key"] = bool(self.api_key)
        return payload


@dataclass(frozen=True)
class ComponentBinding:
    component_id: str
    connection_id: str
    data_path: str
    update_interval: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "component_id": self.component_id,
            "connection_id": self.connection_id,
            "data_path": self.data_path,
            "update_interval": self.update_interval,
        }


@dataclass(frozen=True)
class CourtEntry:
    court_name: str
    payload: MatchState
    last_updated_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "court_name": self.court_name,
            "data": self.payload,
            "last_updated_ms": self.last_updated_ms,
        }


@dataclass(frozen=True)
class DisplayInstance:
    """A rendered overlay window, optionally scoped to a single court."""

    display_id: str
    is_active: bool = True
    court_filter: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "display_id": self.display_id,
            "is_active": self.is_active,
            "court_filter": self.court_filter,
        }


@dataclass
class LiveDataState:
    connections: List[Connection] = field(default_factory=list)
    bindings: List[ComponentBinding] = field(default_factory=list)


__all__ = [
    "ComponentBinding",
    "Connection",
    "CourtEntry",
    "DisplayInstance",
    "LiveDataState",
    "MatchState",
    "Provider",
]
