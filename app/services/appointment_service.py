from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from uuid import UUID

from app.core.exceptions import NotFound, StoreFailure, ValidationError
from app.core.locks import DoctorLocks
from app.core.logger import logger
from app.core.utils import day_bounds
from app.db.models import Appointment, Doctor, TimeSlot
from app.schemas.appointment import QuickAppointmentCreate
from app.services.notification_service import (
    EmailNotifier,
    cancellation_email,
    confirmation_email,
    deliver,
)
from app.services.slot_store import SlotStore

class AppointmentService:
    def __init__(self, session: AsyncSession, locks: DoctorLocks, notifier: EmailNotifier):
        self.session = session
        self.locks = locks
        self.notifier = notifier
        self.store = SlotStore(session)

    async def _get_doctor(self, doctor_id: UUID) -> Doctor:
        doctor = await self.session.get(Doctor, doctor_id)
        if not doctor:
            raise NotFound("Doctor not found")
        return doctor

    async def _get_appointment(self, appointment_id: UUID) -> Appointment:
        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment:
            raise NotFound("Appointment not found")
        return appointment

    async def _save(self, appointment: Appointment) -> None:
        try:
            self.session.add(appointment)
            await self.session.commit()
            await self.session.refresh(appointment)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Store failure saving appointment for doctor {appointment.doctor_id}: {e}")
            raise StoreFailure("Could not save appointment")

    async def create_quick_appointment(self, data: QuickAppointmentCreate) -> Appointment:
        await self._get_doctor(data.doctor)

        appointment = Appointment(
            doctor_id=data.doctor,
            name=data.name,
            contact=data.contact,
            preferred_date=data.preferred_date,
            preferred_time=data.preferred_time,
            save_info=data.save_info,
        )
        await self._save(appointment)
        return appointment

    async def get_doctor_appointments(self, doctor_id: UUID, conflicts_only: bool = False) -> list[Appointment]:
        stmt = select(Appointment).where(Appointment.doctor_id == doctor_id)
        if conflicts_only:
            stmt = stmt.where(Appointment.unresolved_conflict == True)
        stmt = stmt.order_by(Appointment.preferred_date, Appointment.preferred_time)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_appointments(self) -> list[Appointment]:
        stmt = select(Appointment).order_by(Appointment.created_at.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_user_appointments(self, contact: str) -> list[Appointment]:
        stmt = select(Appointment).where(Appointment.contact == contact).order_by(
            Appointment.preferred_date, Appointment.preferred_time
        )
        result = await self.session.execute(stmt)
        appointments = result.scalars().all()
        if not appointments:
            raise NotFound("No appointments found for this user")
        return appointments

    async def confirm_appointment(self, appointment_id: UUID, booked_by: UUID) -> Appointment:
        appointment = await self._get_appointment(appointment_id)
        if appointment.status == "Cancelled":
            raise ValidationError("Appointment was cancelled")
        if appointment.status == "Confirmed":
            return appointment

        doctor = await self._get_doctor(appointment.doctor_id)
        async with self.locks.hold(doctor.id):
            slot = await self.store.find_open_slot(
                doctor.id, appointment.preferred_date, appointment.preferred_time
            )
            if not slot:
                raise NotFound("No available time slot found")
            await self.store.book(slot.id, booked_by)

            appointment.status = "Confirmed"
            appointment.booked_by = booked_by
            appointment.unresolved_conflict = False
            await self._save(appointment)

        subject, html = confirmation_email(
            appointment.name, doctor.name, appointment.preferred_date, appointment.preferred_time
        )
        await deliver(self.notifier, appointment.contact, subject, html)
        return appointment

    async def decline_appointment(self, appointment_id: UUID) -> Appointment:
        appointment = await self._get_appointment(appointment_id)
        if appointment.status == "Cancelled":
            return appointment

        doctor = await self._get_doctor(appointment.doctor_id)
        async with self.locks.hold(doctor.id):
            if appointment.status == "Confirmed" and appointment.booked_by:
                for slot in await self._booked_slots(appointment):
                    await self.store.release(slot.id)
            appointment.status = "Cancelled"
            await self._save(appointment)

        subject, html = cancellation_email(
            appointment.name, doctor.name, appointment.preferred_date, appointment.preferred_time
        )
        await deliver(self.notifier, appointment.contact, subject, html)
        return appointment

    async def _booked_slots(self, appointment: Appointment):
        start, end = day_bounds(appointment.preferred_date)
        stmt = select(TimeSlot).where(
            TimeSlot.doctor_id == appointment.doctor_id,
            TimeSlot.date >= start,
            TimeSlot.date < end,
            TimeSlot.start_time == appointment.preferred_time,
            TimeSlot.booked_by == appointment.booked_by,
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
