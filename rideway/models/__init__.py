"""Database models for the application."""

from rideway.models.base import Base
from rideway.models.integration import Integration, IntegrationEvent, IntegrationEventLog
from rideway.models.maintenance import MaintenanceRecord, MaintenanceTask
from rideway.models.motorcycle import MileageLog, Motorcycle
from rideway.models.user import User

__all__ = [
    "Base",
    "User",
    "Motorcycle",
    "MileageLog",
    "MaintenanceTask",
    "MaintenanceRecord",
    "Integration",
    "IntegrationEvent",
    "IntegrationEventLog",
]
