"""User model."""

from rideway.models.base import Base, TimestampMixin, new_id
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship


class User(Base, TimestampMixin):
    """Account owning motorcycles and integrations.

    Credentials and sessions live with the authentication collaborator;
    this table only anchors ownership.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)

    # Relationships
    motorcycles = relationship(
        "Motorcycle", back_populates="user", cascade="all, delete-orphan"
    )
    integrations = relationship(
        "Integration", back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
