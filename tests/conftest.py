from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.context import ServiceContext, get_service_context
from app.database import Base, build_engine, get_db
from app.domain.schedules.schemas import ScheduleCreate
from app.domain.schedules.service import ScheduleService
from app.domain.users.repository import UserRepository
from app.main import app

# Slot anchor used across tests; stored values are naive UTC
T = datetime(2030, 1, 1, 9, 0)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def make_user(db, user_name, role):
    return UserRepository.create(
        db,
        user_name=user_name,
        email=f"{user_name}@example.com",
        first_name=user_name.capitalize(),
        last_name="Tester",
        role=role,
        status=True,
        location_city="Springfield",
    )


@pytest.fixture
def client_user(db):
    return make_user(db, "clara", "client")


@pytest.fixture
def caregiver(db):
    return make_user(db, "alice", "caregiver")


@pytest.fixture
def other_caregiver(db):
    return make_user(db, "bob", "caregiver")


@pytest.fixture
def context():
    return ServiceContext()


@pytest.fixture
def service(db, context):
    return ScheduleService(db, context)


def schedule_data(client_id, assigned_id, start=T + timedelta(hours=1), end=T + timedelta(hours=3), tasks=None):
    return ScheduleCreate(
        clientUserId=client_id,
        assignedUserId=assigned_id,
        serviceName="Home care",
        scheduledSlot={"from": start, "to": end},
        tasks=[{"title": title} for title in (tasks or ["Give medication"])],
    )


@pytest.fixture
def api(session_factory, context):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_service_context] = lambda: context
    yield TestClient(app)
    app.dependency_overrides.clear()
