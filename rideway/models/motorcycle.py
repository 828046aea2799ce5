"""Motorcycle and mileage log models."""

from rideway.models.base import Base, TimestampMixin, new_id, utcnow
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship, validates


class Motorcycle(Base, TimestampMixin):
    """Motorcycle model.

    Stores:
    - Identification (name, make, model, year, VIN, color)
    - Odometer tracking (current_mileage, non-decreasing in normal use)
    - Ownership and default flags for the garage view
    """

    __tablename__ = "motorcycles"

    # Primary Identity
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Motorcycle Details
    name = Column(String(200), nullable=False)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=False)
    vin = Column(String(17))
    color = Column(String(50))
    purchase_date = Column(Date)

    # Odometer
    current_mileage = Column(Integer)

    # Garage flags
    is_owned = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    notes = Column(Text)

    # Relationships
    user = relationship("User", back_populates="motorcycles")
    maintenance_tasks = relationship(
        "MaintenanceTask", back_populates="motorcycle", cascade="all, delete-orphan"
    )
    maintenance_records = relationship(
        "MaintenanceRecord", back_populates="motorcycle", cascade="all, delete-orphan"
    )
    mileage_logs = relationship(
        "MileageLog", back_populates="motorcycle", cascade="all, delete-orphan"
    )

    @validates("current_mileage")
    def validate_current_mileage(self, key, value):
        if value is not None and value < 0:
            raise ValueError(f"Mileage cannot be negative, got {value}")
        return value

    def summary(self) -> dict:
        """Motorcycle block embedded in event payloads."""
        return {
            "id": self.id,
            "name": self.name,
            "make": self.make,
            "model": self.model,
            "year": self.year,
        }

    def __repr__(self):
        return f"<Motorcycle(id={self.id}, {self.year} {self.make} {self.model})>"


class MileageLog(Base):
    """One accepted odometer update."""

    __tablename__ = "mileage_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    motorcycle_id = Column(
        String(36), ForeignKey("motorcycles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    previous_mileage = Column(Integer)
    new_mileage = Column(Integer, nullable=False)
    date = Column(DateTime, nullable=False, default=utcnow, index=True)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    motorcycle = relationship("Motorcycle", back_populates="mileage_logs")

    def __repr__(self):
        return (
            f"<MileageLog(id={self.id}, motorcycle_id={self.motorcycle_id}, "
            f"{self.previous_mileage} -> {self.new_mileage})>"
        )
