from datetime import datetime, timedelta, timezone

import pytest
from freezegun import freeze_time

from app.domain.schedules.values import (
    Location,
    SchedulePatch,
    TaskUpdate,
    VisitRecordPatch,
    VisitStatus,
    check_transition,
)
from app.models_schedule import Schedule
from app.shared.errors import DomainValidationError, NotFoundError
from app.shared.filters import DataFilters
from conftest import T, schedule_data

LOC = Location(lat=40.7128, long=-74.006)
LOC2 = Location(lat=40.73, long=-73.99)


@pytest.fixture
def schedule(service, client_user, caregiver):
    return service.create_schedule(schedule_data(client_user.id, caregiver.id))


@pytest.fixture
def started(service, schedule):
    return service.start_schedule(schedule.id, T + timedelta(hours=1), LOC)


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


def test_create_schedule_is_upcoming_with_pending_tasks(schedule, client_user, caregiver):
    assert schedule.visit_status == "upcoming"
    assert schedule.client_user_id == client_user.id
    assert schedule.assigned_user_id == caregiver.id
    assert [t.title for t in schedule.tasks] == ["Give medication"]
    assert schedule.tasks[0].status == "pending"
    assert schedule.tasks[0].done is None
    assert schedule.checkin_time is None
    assert schedule.checkout_time is None


def test_create_schedule_keeps_task_order(service, client_user, caregiver):
    created = service.create_schedule(
        schedule_data(client_user.id, caregiver.id, tasks=["Bath", "Lunch", "Walk"])
    )
    assert [t.title for t in created.tasks] == ["Bath", "Lunch", "Walk"]


def test_create_schedule_normalizes_aware_slot_to_utc(service, client_user, caregiver):
    plus_two = timezone(timedelta(hours=2))
    created = service.create_schedule(
        schedule_data(
            client_user.id,
            caregiver.id,
            start=datetime(2030, 1, 1, 12, 0, tzinfo=plus_two),
            end=datetime(2030, 1, 1, 13, 0, tzinfo=plus_two),
        )
    )
    assert created.scheduled_slot_from == datetime(2030, 1, 1, 10, 0)
    assert created.scheduled_slot_to == datetime(2030, 1, 1, 11, 0)


@pytest.mark.parametrize("missing", ["client", "assigned"])
def test_create_schedule_with_unknown_user_writes_nothing(service, db, client_user, caregiver, missing):
    unknown = "00000000-0000-4000-8000-000000000000"
    data = schedule_data(
        unknown if missing == "client" else client_user.id,
        unknown if missing == "assigned" else caregiver.id,
    )
    with pytest.raises(NotFoundError, match=f"{missing} user not found"):
        service.create_schedule(data)
    assert db.query(Schedule).count() == 0


def test_create_schedule_rejects_inverted_slot(service, db, client_user, caregiver):
    data = schedule_data(client_user.id, caregiver.id, start=T + timedelta(hours=3), end=T)
    with pytest.raises(DomainValidationError, match="cannot be after"):
        service.create_schedule(data)
    assert db.query(Schedule).count() == 0


def test_create_schedule_requires_a_task(service, client_user, caregiver):
    data = schedule_data(client_user.id, caregiver.id)
    data.tasks = []
    with pytest.raises(DomainValidationError, match="at least one task"):
        service.create_schedule(data)


# ---------------------------------------------------------------------------
# start
# ---------------------------------------------------------------------------


def test_start_schedule_records_checkin(started):
    assert started.visit_status == "in_progress"
    assert started.checkin_time == T + timedelta(hours=1)
    assert started.checkin_location_lat == LOC.lat
    assert started.checkin_location_long == LOC.long


def test_start_schedule_after_slot_end_is_accepted(service, schedule):
    late = service.start_schedule(schedule.id, T + timedelta(hours=5), LOC)
    assert late.visit_status == "in_progress"


def test_start_schedule_before_slot_start_fails(service, schedule, db):
    with pytest.raises(DomainValidationError, match="before the scheduled start"):
        service.start_schedule(schedule.id, T + timedelta(minutes=30), LOC)

    db.refresh(schedule)
    assert schedule.visit_status == "upcoming"
    assert schedule.checkin_time is None


def test_start_schedule_twice_fails_and_leaves_checkin(service, started, db):
    with pytest.raises(DomainValidationError, match="not in 'upcoming'"):
        service.start_schedule(started.id, T + timedelta(hours=2), LOC2)

    db.refresh(started)
    assert started.checkin_time == T + timedelta(hours=1)
    assert started.checkin_location_lat == LOC.lat


def test_start_second_schedule_for_busy_caregiver_fails(service, started, client_user, caregiver):
    second = service.create_schedule(schedule_data(client_user.id, caregiver.id))
    with pytest.raises(DomainValidationError, match="already in progress"):
        service.start_schedule(second.id, T + timedelta(hours=1), LOC)


def test_start_schedule_for_other_caregiver_succeeds(service, started, client_user, other_caregiver):
    other = service.create_schedule(schedule_data(client_user.id, other_caregiver.id))
    assert service.start_schedule(other.id, T + timedelta(hours=1), LOC).visit_status == "in_progress"


def test_concurrent_start_is_rejected_by_store(service, started, db, client_user, caregiver, monkeypatch):
    second = service.create_schedule(schedule_data(client_user.id, caregiver.id))
    # Simulate a start racing past the in-progress check
    monkeypatch.setattr(
        service.repo, "get_schedules_in_progress_by_assigned_user_id", lambda _db, _uid: []
    )

    with pytest.raises(DomainValidationError, match="already in progress"):
        service.start_schedule(second.id, T + timedelta(hours=1), LOC)

    db.expire_all()
    assert db.get(Schedule, second.id).visit_status == "upcoming"


def test_start_unknown_schedule(service):
    with pytest.raises(NotFoundError):
        service.start_schedule("00000000-0000-4000-8000-000000000000", T, LOC)


# ---------------------------------------------------------------------------
# end
# ---------------------------------------------------------------------------


def test_end_schedule_completes_and_applies_task_updates(service, started):
    task = started.tasks[0]
    result = service.end_schedule(
        started.id,
        T + timedelta(hours=2),
        LOC2,
        [TaskUpdate(task_id=task.id, status="completed", done=True, feedback="All good")],
        service_note="Client was in good spirits",
    )

    assert result.failed_tasks == []
    ended = result.schedule
    assert ended.visit_status == "completed"
    assert ended.checkout_time == T + timedelta(hours=2)
    assert ended.checkout_location_lat == LOC2.lat
    assert ended.service_note == "Client was in good spirits"
    assert ended.tasks[0].done is True
    assert ended.tasks[0].status == "completed"
    assert ended.tasks[0].feedback == "All good"


def test_end_schedule_reports_failed_task_updates(service, started, client_user, other_caregiver):
    foreign = service.create_schedule(schedule_data(client_user.id, other_caregiver.id))
    unknown_id = "00000000-0000-4000-8000-000000000000"
    own = started.tasks[0]

    result = service.end_schedule(
        started.id,
        T + timedelta(hours=2),
        LOC2,
        [
            TaskUpdate(task_id=unknown_id, status="completed", done=True),
            TaskUpdate(task_id=foreign.tasks[0].id, status="completed", done=True),
            TaskUpdate(task_id=own.id, status="not_completed", done=False, feedback="Refused"),
        ],
    )

    assert result.schedule.visit_status == "completed"
    assert {f.task_id for f in result.failed_tasks} == {unknown_id, foreign.tasks[0].id}
    assert result.schedule.tasks[0].done is False
    assert foreign.tasks[0].status == "pending"


def test_end_schedule_not_in_progress_fails(service, schedule, db):
    with pytest.raises(DomainValidationError, match="not in 'in_progress'"):
        service.end_schedule(schedule.id, T + timedelta(hours=2), LOC2, [])

    db.refresh(schedule)
    assert schedule.visit_status == "upcoming"
    assert schedule.checkout_time is None
    assert schedule.checkout_location_lat is None


def test_end_frees_caregiver_for_next_visit(service, started, client_user, caregiver):
    service.end_schedule(started.id, T + timedelta(hours=2), LOC2, [])
    following = service.create_schedule(schedule_data(client_user.id, caregiver.id))
    assert service.start_schedule(following.id, T + timedelta(hours=2), LOC).visit_status == "in_progress"


# ---------------------------------------------------------------------------
# tasks
# ---------------------------------------------------------------------------


def test_update_task_status_is_idempotent(service, schedule, db):
    task_id = schedule.tasks[0].id
    first = service.update_task_status(task_id, "completed", True, "done")
    first_state = (first.status, first.done, first.feedback)

    second = service.update_task_status(task_id, "completed", True, "done")
    assert (second.status, second.done, second.feedback) == first_state == ("completed", True, "done")


def test_update_unknown_task(service):
    with pytest.raises(NotFoundError, match="task not found"):
        service.update_task_status("00000000-0000-4000-8000-000000000000", "completed", True, None)


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


def test_update_schedule_changes_only_given_fields(service, schedule):
    updated = service.update_schedule(schedule.id, SchedulePatch(service_name="Companionship"))
    assert updated.service_name == "Companionship"
    assert updated.scheduled_slot_from == T + timedelta(hours=1)
    assert updated.visit_status == "upcoming"


def test_update_schedule_empty_patch(service, schedule):
    with pytest.raises(DomainValidationError, match="No valid fields"):
        service.update_schedule(schedule.id, SchedulePatch())


def test_update_schedule_rejects_inverted_merged_slot(service, schedule, db):
    with pytest.raises(DomainValidationError, match="cannot be after"):
        service.update_schedule(
            schedule.id, SchedulePatch(scheduled_slot_from=T + timedelta(hours=4))
        )

    db.refresh(schedule)
    assert schedule.scheduled_slot_from == T + timedelta(hours=1)
    assert schedule.scheduled_slot_to == T + timedelta(hours=3)


def test_update_schedule_moves_both_slot_bounds(service, schedule):
    updated = service.update_schedule(
        schedule.id,
        SchedulePatch(
            scheduled_slot_from=T + timedelta(hours=5), scheduled_slot_to=T + timedelta(hours=6)
        ),
    )
    assert updated.scheduled_slot_from == T + timedelta(hours=5)
    assert updated.scheduled_slot_to == T + timedelta(hours=6)


def test_update_schedule_cancels_upcoming(service, schedule):
    updated = service.update_schedule(schedule.id, SchedulePatch(visit_status="cancelled"))
    assert updated.visit_status == "cancelled"


def test_update_completed_schedule_status_fails(service, started, db):
    service.end_schedule(started.id, T + timedelta(hours=2), LOC2, [])

    for target in ("upcoming", "in_progress", "cancelled"):
        with pytest.raises(DomainValidationError, match="cannot change status from completed"):
            service.update_schedule(started.id, SchedulePatch(visit_status=target))

    db.refresh(started)
    assert started.visit_status == "completed"


def test_update_cancelled_schedule_status_fails(service, schedule):
    service.update_schedule(schedule.id, SchedulePatch(visit_status="cancelled"))
    with pytest.raises(DomainValidationError, match="cannot change status from cancelled"):
        service.update_schedule(schedule.id, SchedulePatch(visit_status="upcoming"))


def test_update_cannot_start_a_visit(service, schedule):
    with pytest.raises(DomainValidationError, match="invalid status transition"):
        service.update_schedule(schedule.id, SchedulePatch(visit_status="in_progress"))


def test_update_rejects_unknown_status_label(service, schedule):
    with pytest.raises(DomainValidationError, match="invalid visit status"):
        service.update_schedule(schedule.id, SchedulePatch(visit_status="paused"))


def test_update_with_unknown_assignee(service, schedule):
    with pytest.raises(NotFoundError, match="assigned user not found"):
        service.update_schedule(
            schedule.id, SchedulePatch(assigned_user_id="00000000-0000-4000-8000-000000000000")
        )


def test_update_patch_has_no_checkin_or_checkout_fields():
    with pytest.raises(TypeError):
        SchedulePatch(checkin_time=T)
    with pytest.raises(TypeError):
        SchedulePatch(checkout_location_lat=1.0)


def test_update_cannot_overwrite_checkin(service, started, db):
    patch = VisitRecordPatch(checkin_time=T + timedelta(hours=9), checkin_location_lat=50.0)
    with pytest.raises(DomainValidationError, match="starting or ending the visit"):
        service.update_schedule(started.id, patch)

    db.refresh(started)
    assert started.checkin_time == T + timedelta(hours=1)
    assert started.checkin_location_lat == LOC.lat


def test_update_cannot_set_checkout_on_upcoming_visit(service, schedule, db):
    with pytest.raises(DomainValidationError, match="starting or ending the visit"):
        service.update_schedule(schedule.id, VisitRecordPatch(checkout_time=T))

    db.refresh(schedule)
    assert schedule.visit_status == "upcoming"
    assert schedule.checkout_time is None


def test_update_keeps_checkin_of_started_visit(service, started):
    updated = service.update_schedule(started.id, SchedulePatch(service_note="Running late"))
    assert updated.service_note == "Running late"
    assert updated.checkin_time == T + timedelta(hours=1)
    assert updated.checkout_time is None


@pytest.mark.parametrize("bound", ["scheduled_slot_from", "scheduled_slot_to"])
def test_update_rejects_null_slot_bound(service, schedule, db, bound):
    with pytest.raises(DomainValidationError, match="bounds cannot be null"):
        service.update_schedule(schedule.id, SchedulePatch(**{bound: None}))

    db.refresh(schedule)
    assert schedule.scheduled_slot_from == T + timedelta(hours=1)
    assert schedule.scheduled_slot_to == T + timedelta(hours=3)


def test_update_leaves_callers_patch_untouched(service, schedule):
    plus_two = timezone(timedelta(hours=2))
    new_start = datetime(2030, 1, 1, 12, 0, tzinfo=plus_two)
    patch = SchedulePatch(scheduled_slot_from=new_start)

    updated = service.update_schedule(schedule.id, patch)

    assert updated.scheduled_slot_from == datetime(2030, 1, 1, 10, 0)
    assert patch.scheduled_slot_from is new_start


def test_reassigning_in_progress_visit_to_busy_caregiver_fails(
    service, started, client_user, other_caregiver
):
    other = service.create_schedule(schedule_data(client_user.id, other_caregiver.id))
    service.start_schedule(other.id, T + timedelta(hours=1), LOC)

    with pytest.raises(DomainValidationError, match="already in progress"):
        service.update_schedule(started.id, SchedulePatch(assigned_user_id=other_caregiver.id))


# ---------------------------------------------------------------------------
# transitions
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "current,target,via",
    [
        ("upcoming", "in_progress", "start"),
        ("in_progress", "completed", "end"),
        ("upcoming", "cancelled", "update"),
        ("completed", "completed", "update"),
    ],
)
def test_allowed_transitions(current, target, via):
    check_transition(current, target, via)


@pytest.mark.parametrize(
    "current,target,via",
    [
        ("upcoming", "completed", "end"),
        ("in_progress", "cancelled", "update"),
        ("in_progress", "upcoming", "update"),
        ("upcoming", "in_progress", "update"),
        ("cancelled", "upcoming", "update"),
    ],
)
def test_rejected_transitions(current, target, via):
    with pytest.raises(DomainValidationError):
        check_transition(current, target, via)


# ---------------------------------------------------------------------------
# reads
# ---------------------------------------------------------------------------


def test_get_schedule_with_client_info(service, schedule, client_user):
    found, client = service.get_schedule_with_client_info(schedule.id)
    assert found.id == schedule.id
    assert client.id == client_user.id


def test_client_info_skips_missing_client(service, schedule, db):
    schedule.client_user_id = "00000000-0000-4000-8000-000000000000"
    db.commit()

    schedules, clients = service.get_schedules_with_client_info()
    assert len(schedules) == 1
    assert clients == []


def test_client_info_is_distinct(service, client_user, caregiver, other_caregiver):
    service.create_schedule(schedule_data(client_user.id, caregiver.id))
    service.create_schedule(schedule_data(client_user.id, other_caregiver.id))

    schedules, clients = service.get_schedules_with_client_info()
    assert len(schedules) == 2
    assert [c.id for c in clients] == [client_user.id]


@freeze_time("2030-01-01 12:00:00")
def test_today_schedules_for_client(service, client_user, caregiver):
    today = service.create_schedule(schedule_data(client_user.id, caregiver.id))
    service.create_schedule(
        schedule_data(
            client_user.id,
            caregiver.id,
            start=T + timedelta(days=1),
            end=T + timedelta(days=1, hours=1),
        )
    )

    assert [s.id for s in service.get_today_schedules(client_user.id)] == [today.id]


@freeze_time("2030-01-01 12:00:00")
def test_today_schedules_for_assignee(service, client_user, caregiver, other_caregiver):
    mine = service.create_schedule(schedule_data(client_user.id, caregiver.id))
    service.create_schedule(schedule_data(client_user.id, other_caregiver.id))
    service.create_schedule(
        schedule_data(
            client_user.id,
            caregiver.id,
            start=T - timedelta(days=1),
            end=T - timedelta(days=1) + timedelta(hours=1),
        )
    )

    schedules, clients = service.get_today_schedules_by_assigned_user_with_client_info(caregiver.id)
    assert [s.id for s in schedules] == [mine.id]
    assert [c.id for c in clients] == [client_user.id]


def test_today_schedules_for_unknown_client(service):
    with pytest.raises(NotFoundError, match="client user not found"):
        service.get_today_schedules("00000000-0000-4000-8000-000000000000")


def test_in_progress_schedules_by_assignee(service, started, caregiver, other_caregiver):
    assert [s.id for s in service.get_schedules_in_progress_by_assigned_user(caregiver.id)] == [
        started.id
    ]
    assert service.get_schedules_in_progress_by_assigned_user(other_caregiver.id) == []


def test_search_schedules_by_assignee_paginates(service, client_user, caregiver):
    for day in range(3):
        service.create_schedule(
            schedule_data(
                client_user.id,
                caregiver.id,
                start=T + timedelta(days=day),
                end=T + timedelta(days=day, hours=1),
            )
        )

    first = service.search_schedules_by_assigned_user(
        caregiver.id, DataFilters(page=1, page_size=2)
    )
    assert first.total == 3
    assert first.total_pages == 2
    assert len(first.data) == 2
    assert first.data[0].scheduled_slot_from == T

    second = service.search_schedules_by_assigned_user(
        caregiver.id, DataFilters(page=2, page_size=2)
    )
    assert [s.scheduled_slot_from for s in second.data] == [T + timedelta(days=2)]


def test_visit_status_values():
    assert [s.value for s in VisitStatus] == ["upcoming", "in_progress", "completed", "cancelled"]
