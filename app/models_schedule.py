"""
Schedule Models for Caregiver Visits
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_id


class Schedule(Base):
    """One caregiver visit to a client"""

    __tablename__ = "schedules"

    id = Column(String(36), primary_key=True, default=generate_id)

    # Participants
    client_user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    assigned_user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    service_name = Column(String(255), nullable=False, default="")

    # Planned window, from <= to
    scheduled_slot_from = Column(DateTime, nullable=False, index=True)
    scheduled_slot_to = Column(DateTime, nullable=False)

    # Status workflow: upcoming → in_progress → completed, upcoming → cancelled
    visit_status = Column(String(20), default="upcoming", nullable=False, index=True)

    # Check-in, written once when the visit starts
    checkin_time = Column(DateTime, nullable=True)
    checkin_location_lat = Column(Float, nullable=True)
    checkin_location_long = Column(Float, nullable=True)

    # Check-out, written once when the visit ends
    checkout_time = Column(DateTime, nullable=True)
    checkout_location_lat = Column(Float, nullable=True)
    checkout_location_long = Column(Float, nullable=True)

    service_note = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tasks = relationship(
        "Task",
        back_populates="schedule",
        order_by="Task.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        # At most one visit in progress per caregiver
        Index(
            "uq_schedules_in_progress_per_assignee",
            "assigned_user_id",
            unique=True,
            sqlite_where=text("visit_status = 'in_progress'"),
            postgresql_where=text("visit_status = 'in_progress'"),
        ),
    )


class Task(Base):
    """One unit of work carried out during a visit"""

    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=generate_id)
    schedule_id = Column(
        String(36), ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(50), nullable=False, default="pending")
    done = Column(Boolean, nullable=True)  # unset until reported
    feedback = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    schedule = relationship("Schedule", back_populates="tasks")
