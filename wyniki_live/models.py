"""Database models used to persist connections and bindings."""

from __future__ import annotations

from datetime import datetime, timezone

from .entities import ComponentBinding, Connection, Provider
from .extensions import db


def _aware(value: datetime | None) -> datetime | None:
    # SQLite oddaje daty bez strefy czasowej
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ConnectionRecord(db.Model):
    __tablename__ = "live_connections"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    provider = db.Column(db.String(32), nullable=False)
    api_url = db.Column(db.String(1024), nullable=False, default="")
    api_key = db.Column(db.String(1024), nullable=False, default="")
    court_filter = db.Column(db.String(255), nullable=True)
    poll_interval = db.Column(db.Float, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=True)
    last_updated = db.Column(db.DateTime, nullable=True)
    last_error = db.Column(db.Text, nullable=True)

    def to_entity(self) -> Connection | None:
        provider = Provider.parse(self.provider)
        if provider is None:
            return None
        return Connection(
            id=self.id,
            name=self.name,
            provider=provider,
            api_url=self.api_url or "",
            api_key=self.api_key or "",
            court_filter=self.court_filter,
            poll_interval=self.poll_interval,
            is_active=bool(self.is_active),
            created_at=_aware(self.created_at),
            updated_at=_aware(self.updated_at),
            last_updated=_aware(self.last_updated),
            last_error=self.last_error,
        )

    @classmethod
    def from_entity(cls, connection: Connection) -> "ConnectionRecord":
        return cls(
            id=connection.id,
            name=connection.name,
            provider=connection.provider.value,
            api_url=connection.api_url,
            api_key=connection.api_key,
            court_filter=connection.court_filter,
            poll_interval=connection.poll_interval,
            is_active=connection.is_active,
            created_at=connection.created_at,
            updated_at=connection.updated_at,
            last_updated=connection.last_updated,
            last_error=connection.last_error,
        )


class BindingRecord(db.Model):
    __tablename__ = "component_bindings"

    id = db.Column(db.Integer, primary_key=True)
    component_id = db.Column(db.String(255), unique=True, nullable=False)
    connection_id = db.Column(db.String(64), nullable=False, index=True)
    data_path = db.Column(db.String(1024), nullable=False)
    update_interval = db.Column(db.Float, nullable=True)

    def to_entity(self) -> ComponentBinding:
        return ComponentBinding(
            component_id=self.component_id,
            connection_id=self.connection_id,
            data_path=self.data_path,
            update_interval=self.update_interval,
        )

    @classmethod
    def from_entity(cls, binding: ComponentBinding) -> "BindingRecord":
        return cls(
            component_id=binding.component_id,
            connection_id=binding.connection_id,
            data_path=binding.data_path,
            update_interval=binding.update_interval,
        )


__all__ = ["BindingRecord", "ConnectionRecord"]
