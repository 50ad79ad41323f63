import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, String, Text
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate a unique UUID string identifier"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_name = Column(String(100), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    status = Column(Boolean, default=True, nullable=False)  # Active flag
    role = Column(String(50), nullable=False, index=True)  # caregiver, client, admin
    profile_picture = Column(Text, nullable=True)

    # Home address (clients are visited here)
    location_house_number = Column(String(50), nullable=True)
    location_street = Column(String(255), nullable=True)
    location_city = Column(String(100), nullable=True)
    location_state = Column(String(100), nullable=True)
    location_pincode = Column(String(20), nullable=True)
    location_lat = Column(Float, nullable=True)
    location_long = Column(Float, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
