"""User domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ...shared.validators import validate_email, validate_latitude, validate_longitude


class UserLocation(BaseModel):
    houseNumber: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    lat: Optional[float] = None
    long: Optional[float] = None

    @field_validator("lat")
    @classmethod
    def validate_lat(cls, v):
        return validate_latitude(v)

    @field_validator("long")
    @classmethod
    def validate_long(cls, v):
        return validate_longitude(v)


class UserCreate(BaseModel):
    """Schema for creating a new user"""

    userName: str
    email: str
    firstName: str
    lastName: str
    role: str
    profilePicture: Optional[str] = None
    location: Optional[UserLocation] = None

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)


class UserUpdate(BaseModel):
    """Schema for updating an existing user"""

    userName: Optional[str] = None
    email: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    role: Optional[str] = None
    status: Optional[bool] = None
    profilePicture: Optional[str] = None
    location: Optional[UserLocation] = None

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        if v:
            return validate_email(v)
        return v


class UserResponse(BaseModel):
    """Schema for user response"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    userName: str
    email: str
    firstName: str
    lastName: str
    status: bool
    role: str
    profilePicture: Optional[str] = None
    location: UserLocation
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class UserSearchResponse(BaseModel):
    data: list[UserResponse]
    total: int
    page: int
    pageSize: int
    totalPages: int


def location_columns(location: Optional[UserLocation]) -> dict:
    """Flatten a location payload into user columns"""
    if location is None:
        return {}
    return {
        "location_house_number": location.houseNumber,
        "location_street": location.street,
        "location_city": location.city,
        "location_state": location.state,
        "location_pincode": location.pincode,
        "location_lat": location.lat,
        "location_long": location.long,
    }


def user_to_response(user) -> UserResponse:
    return UserResponse(
        id=user.id,
        userName=user.user_name,
        email=user.email,
        firstName=user.first_name,
        lastName=user.last_name,
        status=user.status,
        role=user.role,
        profilePicture=user.profile_picture,
        location=UserLocation(
            houseNumber=user.location_house_number,
            street=user.location_street,
            city=user.location_city,
            state=user.location_state,
            pincode=user.location_pincode,
            lat=user.location_lat,
            long=user.location_long,
        ),
        createdAt=user.created_at,
        updatedAt=user.updated_at,
    )
