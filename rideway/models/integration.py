"""Integration, event subscription and event log models."""

import enum

from rideway.models.base import Base, TimestampMixin, new_id, utcnow
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship, validates


class IntegrationType(str, enum.Enum):
    """Outbound notification transport."""

    WEBHOOK = "webhook"
    HOMEASSISTANT = "homeassistant"
    NTFY = "ntfy"


class EventType(str, enum.Enum):
    """Events an integration can subscribe to."""

    MAINTENANCE_DUE = "maintenance_due"
    MAINTENANCE_COMPLETED = "maintenance_completed"
    MILEAGE_UPDATED = "mileage_updated"
    MOTORCYCLE_ADDED = "motorcycle_added"


class DispatchStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class Integration(Base, TimestampMixin):
    """User-configured outbound integration.

    `config` holds the type-specific settings as encrypted JSON; it is only
    decrypted when an event is dispatched or the owner reads it back.
    """

    __tablename__ = "integrations"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    type = Column(String(20), nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    config = Column(Text, nullable=False)

    # Relationships
    user = relationship("User", back_populates="integrations")
    events = relationship(
        "IntegrationEvent", back_populates="integration", cascade="all, delete-orphan"
    )
    logs = relationship(
        "IntegrationEventLog", back_populates="integration", cascade="all, delete-orphan"
    )

    @validates("type")
    def validate_type(self, key, value):
        return IntegrationType(value).value

    def __repr__(self):
        return f"<Integration(id={self.id}, type='{self.type}', active={self.active})>"


class IntegrationEvent(Base, TimestampMixin):
    """Subscription of one integration to one event type.

    `template_data` is a JSON object shallow-merged over the event payload;
    `payload_template` is a `{{path}}` string template (webhooks only).
    """

    __tablename__ = "integration_events"

    __table_args__ = (
        Index("ix_integration_events_integration_type", "integration_id", "event_type"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    integration_id = Column(
        String(36), ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False
    )
    event_type = Column(String(50), nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    template_data = Column(Text)
    payload_template = Column(Text)

    integration = relationship("Integration", back_populates="events")

    @validates("event_type")
    def validate_event_type(self, key, value):
        return EventType(value).value

    def __repr__(self):
        return (
            f"<IntegrationEvent(id={self.id}, integration_id={self.integration_id}, "
            f"event_type='{self.event_type}', enabled={self.enabled})>"
        )


class IntegrationEventLog(Base):
    """Append-only record of one dispatch attempt.

    Request data is sanitized before it is stored.
    """

    __tablename__ = "integration_event_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    integration_id = Column(
        String(36), ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False)
    status_message = Column(Text)
    request_data = Column(Text)
    response_data = Column(Text)
    started_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    integration = relationship("Integration", back_populates="logs")

    def __repr__(self):
        return (
            f"<IntegrationEventLog(id={self.id}, integration_id={self.integration_id}, "
            f"event_type='{self.event_type}', status='{self.status}')>"
        )
