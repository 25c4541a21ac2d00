import os
import tempfile
from datetime import date, timedelta
from decimal import Decimal

_DB_DIR = tempfile.mkdtemp(prefix="reminders-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}?timeout=30"
os.environ.setdefault("REMINDER_SYNC_MAX_WORKERS", "4")

import pytest
from sqlalchemy import event

from db import engine
from models import Base
from services.program_service import assign_vehicle, create_program, create_service_task
from services.schedule_service import create_service_schedule
from services.vehicle_service import create_vehicle

TODAY = date(2026, 3, 1)


# pysqlite needs to leave transaction control to SQLAlchemy for SAVEPOINT to work;
# BEGIN IMMEDIATE serializes the sync workers' write transactions.
@event.listens_for(engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")


@pytest.fixture(autouse=True)
def database():
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield
    engine.dispose()


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def program():
    return create_program("Light duty fleet")


@pytest.fixture
def task():
    return create_service_task(
        "Oil Change",
        category="Engine",
        estimated_cost=Decimal("89.99"),
        estimated_labour_hours=Decimal("0.75"),
    )


@pytest.fixture
def vehicle():
    return create_vehicle("Van 12", mileage=15000, vin="1FTBW2CM5HKA12345")


@pytest.fixture
def assigned(program, vehicle, today):
    return assign_vehicle(program.id, vehicle.id, assigned_on=today)


@pytest.fixture
def make_schedule(program, task, today):
    def _make(name="Service", program_id=None, task_ids=None, **recurrence):
        return create_service_schedule(
            program_id or program.id,
            name,
            task_ids if task_ids is not None else [task.id],
            today=today,
            **recurrence,
        )
    return _make


@pytest.fixture
def time_schedule(make_schedule, today):
    """180 days / 30 day buffer, first due 200 days ago."""
    return make_schedule(
        name="Annual inspection",
        interval_value=180,
        interval_unit="days",
        buffer_value=30,
        buffer_unit="days",
        anchor_date=today - timedelta(days=200),
    )


@pytest.fixture
def mileage_schedule(make_schedule):
    """Every 10,000 with a 1,000 buffer, first due at 30,000."""
    return make_schedule(
        name="Tire rotation",
        mileage_interval=10000,
        mileage_buffer=1000,
        anchor_mileage=30000,
    )
