from datetime import date

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.config import settings
from app.core.exceptions import NotificationFailure
from app.core.locks import LocalDoctorLocks
from app.db.models import Appointment, Doctor
from app.db.session import Database
from app.main import app
from app.schemas.schedule import ScheduleCreate


class RecordingNotifier:
    """Stands in for EmailNotifier; records instead of sending."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()

    async def send(self, to: str, subject: str, html: str) -> None:
        if to in self.fail_for:
            raise NotificationFailure(to, "SMTP unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html})


def make_schedule(days, valid_from=date(2024, 6, 3), valid_to=date(2024, 6, 9), duration=30) -> ScheduleCreate:
    return ScheduleCreate(days=days, slot_duration=duration, valid_from=valid_from, valid_to=valid_to)


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'clinixnote.db'}")
    db.connect()
    await db.create_all()
    yield db
    await db.disconnect()


@pytest_asyncio.fixture
async def session(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def locks():
    return LocalDoctorLocks()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture
async def doctor(session):
    doctor = Doctor(name="Ayesha Khan", email="ayesha@clinixnote.com", specialization="Cardiology")
    session.add(doctor)
    await session.commit()
    await session.refresh(doctor)
    return doctor


@pytest_asyncio.fixture
async def other_doctor(session):
    doctor = Doctor(name="Omar Haddad", email="omar@clinixnote.com", specialization="Dermatology")
    session.add(doctor)
    await session.commit()
    await session.refresh(doctor)
    return doctor


@pytest.fixture
def add_appointment(session, doctor):
    async def _add(preferred_date, preferred_time, contact="patient@clinixnote.com", **kwargs):
        appointment = Appointment(
            doctor_id=doctor.id,
            name="Sara Malik",
            contact=contact,
            preferred_date=preferred_date,
            preferred_time=preferred_time,
            **kwargs,
        )
        session.add(appointment)
        await session.commit()
        await session.refresh(appointment)
        return appointment
    return _add


@pytest.fixture
def auth_headers(doctor):
    token = jwt.encode({"sub": str(doctor.id)}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(database, locks, notifier):
    # ASGITransport skips the lifespan, so wire the process resources by hand
    app.state.db = database
    app.state.locks = locks
    app.state.notifier = notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
