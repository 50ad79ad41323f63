"""Schedule domain schemas - Pydantic models for validation"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import validate_latitude, validate_longitude, validate_uuid
from ..users.schemas import UserResponse, user_to_response
from .values import Location, SchedulePatch, TaskUpdate


def _check_uuid(v):
    if v is None:
        return v
    if not validate_uuid(v):
        raise ValueError("must be a UUID")
    return str(uuid.UUID(v))


class ScheduledSlotIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: datetime = Field(alias="from")
    to: datetime


class ScheduledSlotPatch(BaseModel):
    """Either bound may be given on update"""

    model_config = ConfigDict(populate_by_name=True)

    from_: Optional[datetime] = Field(default=None, alias="from")
    to: Optional[datetime] = None


class LocationIn(BaseModel):
    lat: float
    long: float

    @field_validator("lat")
    @classmethod
    def validate_lat(cls, v):
        return validate_latitude(v)

    @field_validator("long")
    @classmethod
    def validate_long(cls, v):
        return validate_longitude(v)

    def to_location(self) -> Location:
        return Location(lat=self.lat, long=self.long)


class TaskCreate(BaseModel):
    id: Optional[str] = None
    title: str = Field(min_length=1)
    description: Optional[str] = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v):
        return _check_uuid(v)


class ScheduleCreate(BaseModel):
    """Schema for creating a new schedule"""

    clientUserId: str
    assignedUserId: str
    serviceName: str = ""
    scheduledSlot: ScheduledSlotIn
    tasks: list[TaskCreate]

    @field_validator("clientUserId", "assignedUserId")
    @classmethod
    def validate_user_ids(cls, v):
        return _check_uuid(v)


class ScheduleUpdate(BaseModel):
    """Schema for a partial schedule update; only fields sent are applied"""

    clientUserId: Optional[str] = None
    assignedUserId: Optional[str] = None
    serviceName: Optional[str] = None
    scheduledSlot: Optional[ScheduledSlotPatch] = None
    visitStatus: Optional[str] = None
    serviceNote: Optional[str] = None

    @field_validator("clientUserId", "assignedUserId")
    @classmethod
    def validate_user_ids(cls, v):
        return _check_uuid(v)

    def to_patch(self) -> SchedulePatch:
        patch = SchedulePatch()
        sent = self.model_fields_set

        # Nulls are ignored for required columns
        if "clientUserId" in sent and self.clientUserId:
            patch.client_user_id = self.clientUserId
        if "assignedUserId" in sent and self.assignedUserId:
            patch.assigned_user_id = self.assignedUserId
        if "serviceName" in sent and self.serviceName is not None:
            patch.service_name = self.serviceName
        if "visitStatus" in sent and self.visitStatus:
            patch.visit_status = self.visitStatus
        if "serviceNote" in sent:
            patch.service_note = self.serviceNote
        if "scheduledSlot" in sent and self.scheduledSlot is not None:
            if self.scheduledSlot.from_ is not None:
                patch.scheduled_slot_from = self.scheduledSlot.from_
            if self.scheduledSlot.to is not None:
                patch.scheduled_slot_to = self.scheduledSlot.to
        return patch


class StartScheduleRequest(BaseModel):
    timestamp: datetime
    location: LocationIn


class EndScheduleTaskRequest(BaseModel):
    id: str
    status: str = Field(min_length=1)
    done: Optional[bool] = None
    feedback: Optional[str] = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v):
        return _check_uuid(v)

    def to_update(self) -> TaskUpdate:
        return TaskUpdate(task_id=self.id, status=self.status, done=self.done, feedback=self.feedback)


class EndScheduleRequest(BaseModel):
    timestamp: datetime
    location: LocationIn
    tasks: list[EndScheduleTaskRequest] = []
    serviceNote: Optional[str] = None


class UpdateTaskRequest(BaseModel):
    status: str = Field(min_length=1)
    done: bool
    feedback: Optional[str] = None


# Responses


class LocationOut(BaseModel):
    lat: Optional[float] = None
    long: Optional[float] = None


class ScheduledSlotOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: datetime = Field(alias="from")
    to: datetime


class TaskResponse(BaseModel):
    id: str
    title: str
    description: str
    status: str
    done: Optional[bool] = None
    feedback: Optional[str] = None


class ScheduleResponse(BaseModel):
    id: str
    clientUserId: str
    clientInfo: Optional[UserResponse] = None
    assignedUserId: str
    serviceName: str
    scheduledSlot: ScheduledSlotOut
    visitStatus: str
    checkinTime: Optional[datetime] = None
    checkoutTime: Optional[datetime] = None
    checkinLocation: LocationOut
    checkoutLocation: LocationOut
    tasks: list[TaskResponse]
    serviceNote: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class ScheduleSearchResponse(BaseModel):
    data: list[ScheduleResponse]
    total: int
    page: int
    pageSize: int
    totalPages: int


class StartScheduleResponse(BaseModel):
    message: str
    checkinTime: Optional[datetime] = None
    checkinLocation: LocationOut


class FailedTaskUpdate(BaseModel):
    id: str
    reason: str


class EndScheduleResponse(BaseModel):
    message: str
    checkoutTime: Optional[datetime] = None
    checkoutLocation: LocationOut
    serviceNote: Optional[str] = None
    failedTasks: list[FailedTaskUpdate] = []
    schedule: ScheduleResponse


class UpdateTaskResponse(BaseModel):
    message: str
    task: TaskResponse


class UpdateScheduleResponse(BaseModel):
    message: str
    schedule: ScheduleResponse


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored datetimes are naive UTC; mark them as such on the wire"""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def task_to_response(task) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description or "",
        status=task.status,
        done=task.done,
        feedback=task.feedback,
    )


def schedule_to_response(schedule, client=None) -> ScheduleResponse:
    return ScheduleResponse(
        id=schedule.id,
        clientUserId=schedule.client_user_id,
        clientInfo=user_to_response(client) if client is not None else None,
        assignedUserId=schedule.assigned_user_id,
        serviceName=schedule.service_name,
        scheduledSlot=ScheduledSlotOut(
            from_=as_utc(schedule.scheduled_slot_from), to=as_utc(schedule.scheduled_slot_to)
        ),
        visitStatus=schedule.visit_status,
        checkinTime=as_utc(schedule.checkin_time),
        checkoutTime=as_utc(schedule.checkout_time),
        checkinLocation=LocationOut(
            lat=schedule.checkin_location_lat, long=schedule.checkin_location_long
        ),
        checkoutLocation=LocationOut(
            lat=schedule.checkout_location_lat, long=schedule.checkout_location_long
        ),
        tasks=[task_to_response(t) for t in schedule.tasks],
        serviceNote=schedule.service_note,
        createdAt=as_utc(schedule.created_at),
        updatedAt=as_utc(schedule.updated_at),
    )


def schedules_to_response(schedules, clients) -> list[ScheduleResponse]:
    """Attach each schedule's client when it was resolved"""
    by_id = {c.id: c for c in clients}
    return [schedule_to_response(s, by_id.get(s.client_user_id)) for s in schedules]
