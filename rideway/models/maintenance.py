"""Maintenance task and maintenance record models."""

import enum

from rideway.models.base import Base, TimestampMixin, new_id, utcnow
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship, validates


class IntervalBase(str, enum.Enum):
    """How a task's mileage interval is anchored."""

    CURRENT = "current"  # counted from the last service reading
    ZERO = "zero"  # pinned to absolute multiples of the interval


class TaskPriority(str, enum.Enum):
    """Task priority enum."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MaintenanceTask(Base, TimestampMixin):
    """Recurring maintenance task for one motorcycle.

    Holds the interval settings (miles and/or days), the base the interval
    is counted from, and the next due odometer/date derived from them.
    Tasks are archived rather than deleted so service history stays intact.
    """

    __tablename__ = "maintenance_tasks"

    __table_args__ = (
        Index("ix_maintenance_tasks_motorcycle_archived", "motorcycle_id", "archived"),
    )

    # Primary Identity
    id = Column(String(36), primary_key=True, default=new_id)
    motorcycle_id = Column(
        String(36), ForeignKey("motorcycles.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Task Details
    name = Column(String(200), nullable=False)
    description = Column(Text)
    priority = Column(String(10), default=TaskPriority.MEDIUM.value, nullable=False)

    # Interval Settings
    interval_miles = Column(Integer)
    interval_days = Column(Integer)
    interval_base = Column(String(10), default=IntervalBase.CURRENT.value, nullable=False)

    # Schedule State
    base_odometer = Column(Integer)
    base_date = Column(DateTime)
    next_due_odometer = Column(Integer)
    next_due_date = Column(Date, index=True)
    notified_due_date = Column(Date)  # next_due_date a date-based maintenance_due was sent for

    # Flags
    is_recurring = Column(Boolean, default=True, nullable=False)
    archived = Column(Boolean, default=False, nullable=False)

    # Relationships
    motorcycle = relationship("Motorcycle", back_populates="maintenance_tasks")
    records = relationship("MaintenanceRecord", back_populates="task")

    @validates("interval_base")
    def validate_interval_base(self, key, value):
        return IntervalBase(value).value

    @validates("priority")
    def validate_priority(self, key, value):
        return TaskPriority(value).value

    @validates("interval_miles", "interval_days")
    def validate_interval(self, key, value):
        if value is not None and value < 0:
            raise ValueError(f"{key} cannot be negative, got {value}")
        return value

    def __repr__(self):
        return (
            f"<MaintenanceTask(id={self.id}, name='{self.name}', "
            f"next_due_odometer={self.next_due_odometer}, next_due_date={self.next_due_date})>"
        )


class MaintenanceRecord(Base):
    """Service performed on a motorcycle.

    Created when a task is completed (snapshotting the resulting schedule)
    or entered by hand as service history.
    """

    __tablename__ = "maintenance_records"

    # Primary Identity
    id = Column(String(36), primary_key=True, default=new_id)
    motorcycle_id = Column(
        String(36), ForeignKey("motorcycles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    task_id = Column(String(36), ForeignKey("maintenance_tasks.id"), index=True)

    # Service Performed
    date = Column(DateTime, nullable=False, index=True)
    mileage = Column(Integer)
    cost = Column(Numeric(10, 2))
    notes = Column(Text)
    receipt_url = Column(String(500))

    # Interval Tracking
    is_scheduled = Column(Boolean, default=True, nullable=False)
    resets_interval = Column(Boolean, default=True, nullable=False)
    next_due_odometer = Column(Integer)
    next_due_date = Column(Date)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    motorcycle = relationship("Motorcycle", back_populates="maintenance_records")
    task = relationship("MaintenanceTask", back_populates="records")

    def __repr__(self):
        return (
            f"<MaintenanceRecord(id={self.id}, motorcycle_id={self.motorcycle_id}, "
            f"date='{self.date}', mileage={self.mileage})>"
        )
