"""
Schedule service - Visit lifecycle engine

Every schedule and task mutation is validated here before it reaches the
repository. A visit moves upcoming → in_progress → completed, or
upcoming → cancelled; completed and cancelled are terminal.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...context import ServiceContext
from ...models import User
from ...models_schedule import Schedule, Task
from ...shared.errors import (
    AppError,
    DomainValidationError,
    NotFoundError,
    ResourceAlreadyExistsError,
)
from ...shared.filters import DataFilters, DateRangeFilter, PaginatedResult
from ...shared.validators import to_utc_naive
from ..users.repository import UserRepository
from .repository import ScheduleRepository
from .schemas import ScheduleCreate
from .values import (
    EndScheduleResult,
    Location,
    SchedulePatch,
    ScheduledSlot,
    TaskPatch,
    TaskUpdate,
    TaskUpdateFailure,
    VisitRecordPatch,
    VisitStatus,
    check_transition,
)

ALREADY_IN_PROGRESS = "another schedule is already in progress for this user"


class ScheduleService:
    """Service layer for the visit lifecycle"""

    def __init__(self, db: Session, context: Optional[ServiceContext] = None):
        self.db = db
        self.context = context or ServiceContext()
        self.logger = self.context.logger
        self.repo = ScheduleRepository()
        self.users = UserRepository()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _require_user(self, user_id: str, role: str) -> User:
        user = self.users.get_by_id(self.db, user_id)
        if not user:
            self.logger.warning(f"⚠️ {role.capitalize()} user not found: {user_id}")
            raise NotFoundError(f"{role} user not found")
        return user

    def _require_schedule(self, schedule_id: str) -> Schedule:
        schedule = self.repo.get_schedule_by_id(self.db, schedule_id)
        if not schedule:
            self.logger.warning(f"⚠️ Schedule not found: {schedule_id}")
            raise NotFoundError("schedule not found")
        return schedule

    def _collect_clients(self, schedules: list[Schedule]) -> list[User]:
        """
        Resolve the distinct clients of the given schedules, in first-seen order.
        A client that cannot be resolved is logged and left out.
        """
        clients = []
        seen = set()
        for schedule in schedules:
            client_id = schedule.client_user_id
            if client_id in seen:
                continue
            seen.add(client_id)
            try:
                client = self.users.get_by_id(self.db, client_id)
            except SQLAlchemyError as e:
                self.logger.warning(f"⚠️ Client lookup failed for {client_id}: {e}")
                continue
            if client is None:
                self.logger.warning(f"⚠️ Client user not found: {client_id}")
                continue
            clients.append(client)
        return clients

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_schedules(self) -> list[Schedule]:
        self.logger.info("Getting all schedules")
        return self.repo.get_schedules(self.db)

    def get_schedules_with_client_info(self) -> tuple[list[Schedule], list[User]]:
        schedules = self.get_schedules()
        return schedules, self._collect_clients(schedules)

    def get_schedule(self, schedule_id: str) -> Schedule:
        self.logger.info(f"Getting schedule {schedule_id}")
        return self._require_schedule(schedule_id)

    def get_schedule_with_client_info(self, schedule_id: str) -> tuple[Schedule, Optional[User]]:
        schedule = self.get_schedule(schedule_id)
        clients = self._collect_clients([schedule])
        return schedule, clients[0] if clients else None

    def get_today_schedules(self, user_id: str) -> list[Schedule]:
        """Today's schedules (local midnight to midnight) for a client"""
        self.logger.info(f"Getting today's schedules for user {user_id}")
        self._require_user(user_id, "client")
        start, end = self.context.today_bounds()
        return self.repo.get_today_schedules(self.db, user_id, start, end)

    def get_today_schedules_with_client_info(
        self, user_id: str
    ) -> tuple[list[Schedule], list[User]]:
        schedules = self.get_today_schedules(user_id)
        return schedules, self._collect_clients(schedules)

    def get_today_schedules_by_assigned_user(self, assigned_user_id: str) -> list[Schedule]:
        """Today's schedules for a caregiver"""
        self.logger.info(f"Getting today's schedules for assignee {assigned_user_id}")
        self._require_user(assigned_user_id, "assigned")

        start, end = self.context.today_bounds()
        filters = DataFilters(
            date_ranges=[DateRangeFilter("scheduledSlotFrom", start, end)],
            paginated=False,
        )
        result = self.repo.get_schedules_by_assigned_user_id_paginated(
            self.db, assigned_user_id, filters
        )
        return result.data

    def get_today_schedules_by_assigned_user_with_client_info(
        self, assigned_user_id: str
    ) -> tuple[list[Schedule], list[User]]:
        schedules = self.get_today_schedules_by_assigned_user(assigned_user_id)
        return schedules, self._collect_clients(schedules)

    def get_schedules_in_progress_by_assigned_user(self, assigned_user_id: str) -> list[Schedule]:
        self.logger.info(f"Getting in-progress schedules for assignee {assigned_user_id}")
        self._require_user(assigned_user_id, "assigned")
        return self.repo.get_schedules_in_progress_by_assigned_user_id(self.db, assigned_user_id)

    def search_schedules_by_assigned_user(
        self, assigned_user_id: str, filters: DataFilters
    ) -> PaginatedResult[Schedule]:
        self.logger.info(f"Searching schedules for assignee {assigned_user_id}")
        self._require_user(assigned_user_id, "assigned")
        return self.repo.get_schedules_by_assigned_user_id_paginated(
            self.db, assigned_user_id, filters
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_schedule(self, data: ScheduleCreate) -> Schedule:
        """Create an upcoming visit with its tasks, all pending"""
        self.logger.info(
            f"📥 Creating schedule client={data.clientUserId} assigned={data.assignedUserId}"
        )

        if not data.tasks:
            raise DomainValidationError("at least one task is required")

        slot = ScheduledSlot(
            to_utc_naive(data.scheduledSlot.from_), to_utc_naive(data.scheduledSlot.to)
        )
        slot.validate()

        self._require_user(data.clientUserId, "client")
        self._require_user(data.assignedUserId, "assigned")

        schedule = Schedule(
            client_user_id=data.clientUserId,
            assigned_user_id=data.assignedUserId,
            service_name=data.serviceName,
            scheduled_slot_from=slot.start,
            scheduled_slot_to=slot.end,
            visit_status=VisitStatus.UPCOMING.value,
        )
        for position, task_data in enumerate(data.tasks):
            task = Task(
                title=task_data.title,
                description=task_data.description or "",
                status="pending",
                position=position,
            )
            if task_data.id:
                task.id = task_data.id
            schedule.tasks.append(task)

        created = self.repo.create(self.db, schedule)
        self.logger.info(f"✅ Schedule created: {created.id}")
        return created

    def start_schedule(self, schedule_id: str, timestamp: datetime, location: Location) -> Schedule:
        """Check in: upcoming → in_progress"""
        self.logger.info(f"▶️ Starting schedule {schedule_id}")
        timestamp = to_utc_naive(timestamp)

        schedule = self._require_schedule(schedule_id)

        if schedule.visit_status != VisitStatus.UPCOMING.value:
            self.logger.warning(
                f"⚠️ Cannot start schedule {schedule_id}, status is {schedule.visit_status}"
            )
            raise DomainValidationError("schedule is not in 'upcoming' status")

        # Only the lower bound is enforced; late check-in is tolerated
        if timestamp < schedule.scheduled_slot_from:
            self.logger.warning(
                f"⚠️ Cannot start schedule {schedule_id} at {timestamp}, "
                f"slot starts {schedule.scheduled_slot_from}"
            )
            raise DomainValidationError("cannot start schedule before the scheduled start time")

        in_progress = self.repo.get_schedules_in_progress_by_assigned_user_id(
            self.db, schedule.assigned_user_id
        )
        if in_progress:
            self.logger.warning(
                f"⚠️ Cannot start schedule {schedule_id}: assignee {schedule.assigned_user_id} "
                f"has {len(in_progress)} schedule(s) in progress"
            )
            raise DomainValidationError(f"cannot start schedule: {ALREADY_IN_PROGRESS}")

        check_transition(schedule.visit_status, VisitStatus.IN_PROGRESS.value, via="start")
        patch = VisitRecordPatch(
            visit_status=VisitStatus.IN_PROGRESS.value,
            checkin_time=timestamp,
            checkin_location_lat=location.lat,
            checkin_location_long=location.long,
        )
        try:
            updated = self.repo.update_schedule(self.db, schedule, patch.changes())
        except ResourceAlreadyExistsError as e:
            # Lost the race against a concurrent start for the same caregiver
            self.logger.warning(f"⚠️ Concurrent start rejected for schedule {schedule_id}")
            raise DomainValidationError(f"cannot start schedule: {ALREADY_IN_PROGRESS}") from e

        self.logger.info(f"✅ Schedule started: {schedule_id}")
        return updated

    def end_schedule(
        self,
        schedule_id: str,
        timestamp: datetime,
        location: Location,
        task_updates: list[TaskUpdate],
        service_note: Optional[str] = None,
    ) -> EndScheduleResult:
        """
        Check out: in_progress → completed, then apply each reported task outcome.

        Task updates are best-effort: a failing one is logged, recorded in the
        result and skipped, and never undoes the completion.
        """
        self.logger.info(f"⏹️ Ending schedule {schedule_id}")
        timestamp = to_utc_naive(timestamp)

        schedule = self._require_schedule(schedule_id)

        if schedule.visit_status != VisitStatus.IN_PROGRESS.value:
            self.logger.warning(
                f"⚠️ Cannot end schedule {schedule_id}, status is {schedule.visit_status}"
            )
            raise DomainValidationError("schedule is not in 'in_progress' status")

        check_transition(schedule.visit_status, VisitStatus.COMPLETED.value, via="end")
        patch = VisitRecordPatch(
            visit_status=VisitStatus.COMPLETED.value,
            checkout_time=timestamp,
            checkout_location_lat=location.lat,
            checkout_location_long=location.long,
        )
        if service_note is not None:
            patch.service_note = service_note
        schedule = self.repo.update_schedule(self.db, schedule, patch.changes())

        owned_task_ids = {task.id for task in schedule.tasks}
        failures = []
        for update in task_updates:
            if update.task_id not in owned_task_ids:
                self.logger.error(
                    f"❌ Task {update.task_id} does not belong to schedule {schedule_id}"
                )
                failures.append(TaskUpdateFailure(update.task_id, "task not found in schedule"))
                continue
            try:
                self._apply_task_patch(update.task_id, update.as_patch())
            except AppError as e:
                self.logger.error(f"❌ Error updating task {update.task_id} during check-out: {e}")
                failures.append(TaskUpdateFailure(update.task_id, e.message))

        if failures:
            self.logger.warning(
                f"⚠️ Schedule {schedule_id} completed with {len(failures)} task update failure(s)"
            )

        self.db.refresh(schedule)
        self.logger.info(f"✅ Schedule ended: {schedule_id}")
        return EndScheduleResult(schedule=schedule, failed_tasks=failures)

    def update_task_status(
        self,
        task_id: str,
        status: str,
        done: Optional[bool],
        feedback: Optional[str],
    ) -> Task:
        """Set a task's status, done flag and feedback regardless of visit state"""
        self.logger.info(f"Updating task status {task_id}")
        task = self._apply_task_patch(
            task_id, TaskPatch(status=status, done=done, feedback=feedback)
        )
        self.logger.info(f"✅ Task updated: {task_id}")
        return task

    def _apply_task_patch(self, task_id: str, patch: TaskPatch) -> Task:
        task = self.repo.get_task_by_id(self.db, task_id)
        if not task:
            raise NotFoundError("task not found")
        return self.repo.update_task(self.db, task, patch.changes())

    def update_schedule(self, schedule_id: str, patch: SchedulePatch) -> Schedule:
        """Apply a partial update after checking references, slot and status rules"""
        if not isinstance(patch, SchedulePatch):
            # Check-in and check-out data are written once, by start and end
            raise DomainValidationError(
                "check-in and check-out data can only be set by starting or ending the visit"
            )

        changes = patch.changes()
        self.logger.info(f"✏️ Updating schedule {schedule_id}: {sorted(changes)}")

        if not changes:
            raise DomainValidationError("No valid fields to update")

        for bound in ("scheduled_slot_from", "scheduled_slot_to"):
            if bound in changes:
                if changes[bound] is None:
                    raise DomainValidationError("scheduled slot bounds cannot be null")
                changes[bound] = to_utc_naive(changes[bound])

        schedule = self._require_schedule(schedule_id)

        if "client_user_id" in changes:
            self._require_user(changes["client_user_id"], "client")
        if "assigned_user_id" in changes:
            self._require_user(changes["assigned_user_id"], "assigned")

        if "scheduled_slot_from" in changes or "scheduled_slot_to" in changes:
            ScheduledSlot(
                changes.get("scheduled_slot_from", schedule.scheduled_slot_from),
                changes.get("scheduled_slot_to", schedule.scheduled_slot_to),
            ).validate()

        if "visit_status" in changes:
            try:
                check_transition(schedule.visit_status, patch.visit_status, via="update")
            except DomainValidationError:
                self.logger.warning(
                    f"⚠️ Rejected status change {schedule.visit_status} → {patch.visit_status} "
                    f"for schedule {schedule_id}"
                )
                raise

        try:
            updated = self.repo.update_schedule(self.db, schedule, changes)
        except ResourceAlreadyExistsError as e:
            # New assignee already has a visit in progress
            raise DomainValidationError(ALREADY_IN_PROGRESS) from e
        self.logger.info(f"✅ Schedule updated: {schedule_id}")
        return updated
