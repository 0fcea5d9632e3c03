from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from jwt.exceptions import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID
from app.core.config import settings
from app.core.locks import DoctorLocks
from app.db.models import Doctor
from app.db.session import get_session
from app.services.appointment_service import AppointmentService
from app.services.notification_service import EmailNotifier
from app.services.schedule_service import ScheduleService

bearer_scheme = HTTPBearer(auto_error=False)

def get_doctor_locks(request: Request) -> DoctorLocks:
    return request.app.state.locks

def get_notifier(request: Request) -> EmailNotifier:
    return request.app.state.notifier

async def get_current_doctor(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session)
) -> Doctor:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        doctor_id = UUID(str(payload.get("sub")))
    except (PyJWTError, ValueError):
        raise credentials_exception

    doctor = await session.get(Doctor, doctor_id)
    if doctor is None:
        raise credentials_exception
    return doctor

async def get_schedule_service(
    session: AsyncSession = Depends(get_session),
    locks: DoctorLocks = Depends(get_doctor_locks),
    notifier: EmailNotifier = Depends(get_notifier),
) -> ScheduleService:
    return ScheduleService(session, locks, notifier)

async def get_appointment_service(
    session: AsyncSession = Depends(get_session),
    locks: DoctorLocks = Depends(get_doctor_locks),
    notifier: EmailNotifier = Depends(get_notifier),
) -> AppointmentService:
    return AppointmentService(session, locks, notifier)
