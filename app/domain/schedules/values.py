"""Schedule value types - visit statuses, transitions and partial updates"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from ...shared.errors import DomainValidationError


class VisitStatus(str, Enum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: str) -> "VisitStatus":
        try:
            return cls(value)
        except ValueError:
            raise DomainValidationError(f"invalid visit status: {value}") from None


TERMINAL_STATUSES = frozenset({VisitStatus.COMPLETED, VisitStatus.CANCELLED})

# Every legal status edge and the operation that drives it
TRANSITIONS: dict[tuple[VisitStatus, VisitStatus], str] = {
    (VisitStatus.UPCOMING, VisitStatus.IN_PROGRESS): "start",
    (VisitStatus.IN_PROGRESS, VisitStatus.COMPLETED): "end",
    (VisitStatus.UPCOMING, VisitStatus.CANCELLED): "update",
}


def check_transition(current: str, target: str, via: str) -> None:
    """
    Reject any status change not in TRANSITIONS for the given operation.
    Re-applying the current status is accepted as a no-op.
    """
    current_status = VisitStatus.parse(current)
    target_status = VisitStatus.parse(target)

    if current_status == target_status:
        return

    if current_status in TERMINAL_STATUSES:
        raise DomainValidationError(f"cannot change status from {current_status.value}")

    if TRANSITIONS.get((current_status, target_status)) != via:
        raise DomainValidationError(
            f"invalid status transition from {current_status.value} to {target_status.value}"
        )


@dataclass(frozen=True)
class Location:
    lat: float
    long: float


@dataclass(frozen=True)
class ScheduledSlot:
    start: datetime
    end: datetime

    def validate(self) -> None:
        if self.start > self.end:
            raise DomainValidationError("scheduled slot 'from' cannot be after 'to'")


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


class _Patch:
    """Base for partial updates: fields left UNSET are not touched"""

    def changes(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }

    def is_set(self, name: str) -> bool:
        return getattr(self, name) is not UNSET

    def __len__(self) -> int:
        return len(self.changes())


@dataclass
class SchedulePatch(_Patch):
    """Columns a plain schedule update may change"""

    client_user_id: Union[str, Any] = UNSET
    assigned_user_id: Union[str, Any] = UNSET
    service_name: Union[str, Any] = UNSET
    scheduled_slot_from: Union[datetime, Any] = UNSET
    scheduled_slot_to: Union[datetime, Any] = UNSET
    visit_status: Union[str, Any] = UNSET
    service_note: Union[Optional[str], Any] = UNSET


@dataclass
class VisitRecordPatch(_Patch):
    """Check-in and check-out columns, written once by start and end"""

    visit_status: Union[str, Any] = UNSET
    checkin_time: Union[datetime, Any] = UNSET
    checkin_location_lat: Union[float, Any] = UNSET
    checkin_location_long: Union[float, Any] = UNSET
    checkout_time: Union[datetime, Any] = UNSET
    checkout_location_lat: Union[float, Any] = UNSET
    checkout_location_long: Union[float, Any] = UNSET
    service_note: Union[Optional[str], Any] = UNSET


@dataclass
class TaskPatch(_Patch):
    """Updatable task columns"""

    title: Union[str, Any] = UNSET
    description: Union[str, Any] = UNSET
    status: Union[str, Any] = UNSET
    done: Union[Optional[bool], Any] = UNSET
    feedback: Union[Optional[str], Any] = UNSET


@dataclass(frozen=True)
class TaskUpdate:
    """Outcome reported for one task when a visit ends"""

    task_id: str
    status: str
    done: Optional[bool] = None
    feedback: Optional[str] = None

    def as_patch(self) -> TaskPatch:
        return TaskPatch(status=self.status, done=self.done, feedback=self.feedback)


@dataclass(frozen=True)
class TaskUpdateFailure:
    task_id: str
    reason: str


@dataclass
class EndScheduleResult:
    schedule: Any
    failed_tasks: list[TaskUpdateFailure] = field(default_factory=list)
