import os

# Must be set before fieldtrack.core.database builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import fieldtrack.models  # noqa: F401
from fieldtrack.core.database import Base, get_db
from fieldtrack.core.security import get_current_employee
from fieldtrack.main import app
from fieldtrack.models import Employee, EmployeeGeofence, Geofence
from fieldtrack.schemas.location import LocationSampleIn

BASE_TIME = datetime(2026, 3, 2, 8, 0, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def employee(db):
    emp = Employee(employee_code="EMP001", name="Field Agent", email="agent@example.com")
    db.add(emp)
    db.commit()
    db.refresh(emp)
    return emp


@pytest.fixture
def manager(db):
    mgr = Employee(employee_code="MGR001", name="Ops Manager", email="manager@example.com", role="manager")
    db.add(mgr)
    db.commit()
    db.refresh(mgr)
    return mgr


@pytest.fixture
def office(db, employee):
    """Head office (500m) assigned to `employee`."""
    fence = Geofence(name="Head Office", latitude=28.6139, longitude=77.209, radius_meters=500)
    db.add(fence)
    db.flush()
    db.add(EmployeeGeofence(employee_id=employee.id, geofence_id=fence.id))
    db.commit()
    db.refresh(fence)
    return fence


@pytest.fixture
def login_as():
    def _login(emp):
        app.dependency_overrides[get_current_employee] = lambda: emp
    return _login


@pytest.fixture
def client(db, employee, login_as):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    login_as(employee)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_sample():
    def _make(latitude=0.0, longitude=0.0, minutes=0.0, **fields):
        return LocationSampleIn(
            latitude=latitude,
            longitude=longitude,
            recorded_at=BASE_TIME + timedelta(minutes=minutes),
            **fields,
        )
    return _make
