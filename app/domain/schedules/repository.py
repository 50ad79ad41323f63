"""Schedule repository - Database operations for schedules and tasks"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...models_schedule import Schedule, Task
from ...shared.errors import RepositoryError, ResourceAlreadyExistsError
from ...shared.filters import DataFilters, PaginatedResult, apply_filters, paginate
from .values import VisitStatus

logger = logging.getLogger(__name__)

# Public field name -> column, for filtering and sorting searches
SCHEDULE_COLUMNS = {
    "scheduledSlotFrom": Schedule.scheduled_slot_from,
    "scheduledSlotTo": Schedule.scheduled_slot_to,
    "visitStatus": Schedule.visit_status,
    "serviceName": Schedule.service_name,
    "clientUserId": Schedule.client_user_id,
    "createdAt": Schedule.created_at,
    "updatedAt": Schedule.updated_at,
}


def _commit(db: Session, action: str) -> None:
    """Commit, translating store failures into domain errors"""
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"⚠️ Constraint violated while trying to {action}: {e.orig}")
        raise ResourceAlreadyExistsError(f"failed to {action}: conflicting record") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to {action}: {e}")
        raise RepositoryError(f"failed to {action}") from e


class ScheduleRepository:
    """Repository for schedule database operations"""

    @staticmethod
    def get_schedules(db: Session) -> list[Schedule]:
        """Get all schedules, earliest slot first"""
        return db.query(Schedule).order_by(Schedule.scheduled_slot_from).all()

    @staticmethod
    def get_schedule_by_id(db: Session, schedule_id: str) -> Optional[Schedule]:
        return db.query(Schedule).filter(Schedule.id == schedule_id).first()

    @staticmethod
    def get_today_schedules(
        db: Session, client_user_id: str, start: datetime, end: datetime
    ) -> list[Schedule]:
        """Get a client's schedules whose slot starts within [start, end)"""
        return (
            db.query(Schedule)
            .filter(
                Schedule.client_user_id == client_user_id,
                Schedule.scheduled_slot_from >= start,
                Schedule.scheduled_slot_from < end,
            )
            .order_by(Schedule.scheduled_slot_from)
            .all()
        )

    @staticmethod
    def get_schedules_in_progress_by_assigned_user_id(
        db: Session, assigned_user_id: str
    ) -> list[Schedule]:
        return (
            db.query(Schedule)
            .filter(
                Schedule.assigned_user_id == assigned_user_id,
                Schedule.visit_status == VisitStatus.IN_PROGRESS.value,
            )
            .all()
        )

    @staticmethod
    def get_schedules_by_assigned_user_id_paginated(
        db: Session, assigned_user_id: str, filters: DataFilters
    ) -> PaginatedResult[Schedule]:
        """Search an assignee's schedules with date range, sort and pagination"""
        query = db.query(Schedule).filter(Schedule.assigned_user_id == assigned_user_id)
        query = apply_filters(query, filters, SCHEDULE_COLUMNS)
        if not filters.sort_by:
            query = query.order_by(Schedule.scheduled_slot_from)

        result = paginate(query, filters)
        logger.info(
            f"📋 Found {result.total} schedule(s) for assignee {assigned_user_id} "
            f"(page {result.page}/{result.total_pages}, size {result.page_size})"
        )
        return result

    @staticmethod
    def create(db: Session, schedule: Schedule) -> Schedule:
        """Persist a schedule together with its tasks"""
        db.add(schedule)
        _commit(db, "create schedule")
        db.refresh(schedule)
        return schedule

    @staticmethod
    def update_schedule(db: Session, schedule: Schedule, changes: dict[str, Any]) -> Schedule:
        """Apply column changes to a schedule"""
        for key, value in changes.items():
            setattr(schedule, key, value)

        _commit(db, "update schedule")
        db.refresh(schedule)
        return schedule

    @staticmethod
    def get_task_by_id(db: Session, task_id: str) -> Optional[Task]:
        return db.query(Task).filter(Task.id == task_id).first()

    @staticmethod
    def update_task(db: Session, task: Task, changes: dict[str, Any]) -> Task:
        """Apply column changes to a task"""
        for key, value in changes.items():
            setattr(task, key, value)

        _commit(db, "update task")
        db.refresh(task)
        return task
