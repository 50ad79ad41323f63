"""Schedule router - FastAPI endpoints for visits and their tasks"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...context import ServiceContext, get_service_context
from ...database import get_db
from ...shared.filters import DataFilters, DateRangeFilter, SortDirection
from ...shared.validators import parse_id, to_utc_naive
from .schemas import (
    EndScheduleRequest,
    EndScheduleResponse,
    FailedTaskUpdate,
    LocationOut,
    ScheduleCreate,
    ScheduleResponse,
    ScheduleSearchResponse,
    ScheduleUpdate,
    StartScheduleRequest,
    StartScheduleResponse,
    UpdateScheduleResponse,
    UpdateTaskRequest,
    UpdateTaskResponse,
    as_utc,
    schedule_to_response,
    schedules_to_response,
    task_to_response,
)
from .service import ScheduleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedules", tags=["Schedules"])
tasks_router = APIRouter(prefix="/tasks", tags=["Tasks"])


def get_schedule_service(
    db: Session = Depends(get_db),
    context: ServiceContext = Depends(get_service_context),
) -> ScheduleService:
    """Dependency injection for ScheduleService"""
    return ScheduleService(db, context)


# ============================================================================
# QUERIES
# ============================================================================


@router.get("", response_model=list[ScheduleResponse])
async def get_schedules(service: ScheduleService = Depends(get_schedule_service)):
    """Get all schedules with their client details"""
    schedules, clients = service.get_schedules_with_client_info()
    return schedules_to_response(schedules, clients)


@router.get("/today", response_model=list[ScheduleResponse])
async def get_today_schedules(
    clientUserId: str = Query(..., description="Client whose visits to list"),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Get today's schedules for a client"""
    schedules, clients = service.get_today_schedules_with_client_info(
        parse_id(clientUserId, "client user id")
    )
    return schedules_to_response(schedules, clients)


@router.get("/today/{assigned_user_id}", response_model=list[ScheduleResponse])
async def get_today_schedules_by_assigned_user(
    assigned_user_id: str,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Get today's schedules for a caregiver"""
    schedules, clients = service.get_today_schedules_by_assigned_user_with_client_info(
        parse_id(assigned_user_id, "assigned user id")
    )
    return schedules_to_response(schedules, clients)


@router.get("/assigned/{assigned_user_id}", response_model=ScheduleSearchResponse)
async def search_schedules_by_assigned_user(
    assigned_user_id: str,
    page: int = Query(1),
    pageSize: int = Query(10),
    date_from: Optional[datetime] = Query(None, alias="from", description="Slot start lower bound"),
    date_to: Optional[datetime] = Query(None, alias="to", description="Slot start upper bound"),
    sortBy: Optional[list[str]] = Query(None),
    sortDirection: SortDirection = Query(SortDirection.ASC),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Search a caregiver's schedules with pagination"""
    date_ranges = []
    if date_from or date_to:
        date_ranges.append(
            DateRangeFilter("scheduledSlotFrom", to_utc_naive(date_from), to_utc_naive(date_to))
        )

    filters = DataFilters(
        page=page,
        page_size=pageSize,
        date_ranges=date_ranges,
        sort_by=sortBy or [],
        sort_direction=sortDirection,
    )
    result = service.search_schedules_by_assigned_user(
        parse_id(assigned_user_id, "assigned user id"), filters
    )
    return ScheduleSearchResponse(
        data=[schedule_to_response(s) for s in result.data],
        total=result.total,
        page=result.page,
        pageSize=result.page_size,
        totalPages=result.total_pages,
    )


@router.get("/assigned/{assigned_user_id}/in-progress", response_model=list[ScheduleResponse])
async def get_in_progress_schedules(
    assigned_user_id: str,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Get the caregiver's visit in progress, if any"""
    schedules = service.get_schedules_in_progress_by_assigned_user(
        parse_id(assigned_user_id, "assigned user id")
    )
    return [schedule_to_response(s) for s in schedules]


@router.get("/{schedule_id}", response_model=ScheduleResponse)
async def get_schedule(
    schedule_id: str,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Get a specific schedule with its client details"""
    schedule, client = service.get_schedule_with_client_info(parse_id(schedule_id, "schedule id"))
    return schedule_to_response(schedule, client)


# ============================================================================
# LIFECYCLE
# ============================================================================


@router.post("", response_model=ScheduleResponse)
async def create_schedule(
    data: ScheduleCreate,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Create a new upcoming visit"""
    return schedule_to_response(service.create_schedule(data))


@router.put("/{schedule_id}", response_model=UpdateScheduleResponse)
async def update_schedule(
    schedule_id: str,
    data: ScheduleUpdate,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Update the fields present in the body"""
    schedule = service.update_schedule(parse_id(schedule_id, "schedule id"), data.to_patch())
    return UpdateScheduleResponse(
        message="schedule updated successfully",
        schedule=schedule_to_response(schedule),
    )


@router.post("/{schedule_id}/start", response_model=StartScheduleResponse)
async def start_schedule(
    schedule_id: str,
    data: StartScheduleRequest,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Check in to a visit"""
    schedule = service.start_schedule(
        parse_id(schedule_id, "schedule id"), data.timestamp, data.location.to_location()
    )
    return StartScheduleResponse(
        message="schedule started successfully",
        checkinTime=as_utc(schedule.checkin_time),
        checkinLocation=LocationOut(
            lat=schedule.checkin_location_lat, long=schedule.checkin_location_long
        ),
    )


@router.post("/{schedule_id}/end", response_model=EndScheduleResponse)
async def end_schedule(
    schedule_id: str,
    data: EndScheduleRequest,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Check out of a visit and record task outcomes"""
    result = service.end_schedule(
        parse_id(schedule_id, "schedule id"),
        data.timestamp,
        data.location.to_location(),
        [t.to_update() for t in data.tasks],
        data.serviceNote,
    )
    schedule = result.schedule
    return EndScheduleResponse(
        message="schedule ended successfully",
        checkoutTime=as_utc(schedule.checkout_time),
        checkoutLocation=LocationOut(
            lat=schedule.checkout_location_lat, long=schedule.checkout_location_long
        ),
        serviceNote=schedule.service_note,
        failedTasks=[FailedTaskUpdate(id=f.task_id, reason=f.reason) for f in result.failed_tasks],
        schedule=schedule_to_response(schedule),
    )


@tasks_router.post("/{task_id}/update", response_model=UpdateTaskResponse)
async def update_task_status(
    task_id: str,
    data: UpdateTaskRequest,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Set a task's status, done flag and feedback"""
    task = service.update_task_status(
        parse_id(task_id, "task id"), data.status, data.done, data.feedback
    )
    return UpdateTaskResponse(message="task updated successfully", task=task_to_response(task))
