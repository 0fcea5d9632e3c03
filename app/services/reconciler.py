from datetime import date
from typing import Awaitable, Callable, List, Set, Tuple
from uuid import UUID

from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.exceptions import AlreadyBooked, StoreFailure
from app.core.logger import logger
from app.db.models import Appointment
from app.schemas.appointment import ReconcileReport, RescheduledAppointment
from app.services.notification_service import EmailNotifier, deliver, reschedule_email
from app.services.slot_store import SlotStore


class BookingReconciler:
    """
    Repairs appointments after a doctor's slots were regenerated.

    Must run under the doctor's lock, right after the regeneration. Every
    appointment is first checked against the regenerated slots; only then are
    bookings restored and displaced appointments moved, so an appointment whose
    slot still exists is never touched because of another appointment.
    """

    def __init__(self, session: AsyncSession, notifier: EmailNotifier):
        self.session = session
        self.store = SlotStore(session)
        self.notifier = notifier

    async def affected_appointments(self, doctor_id: UUID, window_from: date, window_to: date):
        # Confirmed first: the booking owner keeps its slot and picks replacements first
        stmt = select(Appointment).where(
            Appointment.doctor_id == doctor_id,
            Appointment.status != "Cancelled",
            Appointment.preferred_date >= window_from,
            Appointment.preferred_date <= window_to,
        ).order_by(
            case((Appointment.status == "Confirmed", 0), else_=1),
            Appointment.preferred_date,
            Appointment.created_at,
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def reconcile(self, doctor_id: UUID, window_from: date, window_to: date) -> ReconcileReport:
        report = ReconcileReport()
        claimed: Set[UUID] = set()
        kept: List[Tuple[UUID, UUID]] = []
        displaced: List[UUID] = []

        affected = await self.affected_appointments(doctor_id, window_from, window_to)
        appointment_ids = [appointment.id for appointment in affected]

        for appointment_id in appointment_ids:
            await self._isolated(report, appointment_id, self._check, claimed, kept, displaced)
        for appointment_id, slot_id in kept:
            await self._isolated(report, appointment_id, self._keep, slot_id, report)
        for appointment_id in displaced:
            await self._isolated(report, appointment_id, self._move, claimed, report)

        logger.info(
            f"Reconciled doctor {doctor_id} {window_from}..{window_to}: "
            f"{len(report.unchanged)} unchanged, {len(report.rescheduled)} rescheduled, "
            f"{len(report.unresolved)} unresolved, {len(report.failed)} failed"
        )
        return report

    async def _isolated(
        self,
        report: ReconcileReport,
        appointment_id: UUID,
        action: Callable[..., Awaitable[None]],
        *args,
    ) -> None:
        if appointment_id in report.failed:
            return
        try:
            # Reload: a rollback for an earlier appointment expires loaded rows
            appointment = await self.session.get(Appointment, appointment_id, populate_existing=True)
            await action(appointment, *args)
        except (SQLAlchemyError, StoreFailure) as e:
            # One broken appointment must not stop the others
            await self.session.rollback()
            logger.error(f"Failed to reconcile appointment {appointment_id}: {e}")
            report.failed.append(appointment_id)

    async def _check(
        self,
        appointment: Appointment,
        claimed: Set[UUID],
        kept: List[Tuple[UUID, UUID]],
        displaced: List[UUID],
    ) -> None:
        slot = await self.store.find_slot_at(
            appointment.doctor_id, appointment.preferred_date, appointment.preferred_time
        )
        if slot:
            claimed.add(slot.id)
            kept.append((appointment.id, slot.id))
        else:
            displaced.append(appointment.id)

    async def _keep(self, appointment: Appointment, slot_id: UUID, report: ReconcileReport) -> None:
        await self._restore_booking(appointment, slot_id)
        if appointment.unresolved_conflict:
            appointment.unresolved_conflict = False
            self.session.add(appointment)
            await self.session.commit()
        report.unchanged.append(appointment.id)

    async def _move(self, appointment: Appointment, claimed: Set[UUID], report: ReconcileReport) -> None:
        day = appointment.preferred_date
        slot = await self.store.find_open_slot(appointment.doctor_id, day, exclude=claimed)
        if not slot:
            # No slot left that day: leave the time alone and flag it
            if not appointment.unresolved_conflict:
                appointment.unresolved_conflict = True
                self.session.add(appointment)
                await self.session.commit()
            logger.warning(f"No replacement slot for appointment {appointment.id} on {day}")
            report.unresolved.append(appointment.id)
            return

        claimed.add(slot.id)
        old_time = appointment.preferred_time
        appointment.preferred_time = slot.start_time
        appointment.unresolved_conflict = False
        self.session.add(appointment)
        await self.session.commit()
        await self._restore_booking(appointment, slot.id)

        subject, html = reschedule_email(appointment.name, day, old_time, slot.start_time)
        notified = await deliver(self.notifier, appointment.contact, subject, html)
        report.rescheduled.append(RescheduledAppointment(
            appointment_id=appointment.id,
            preferred_date=day,
            old_time=old_time,
            new_time=slot.start_time,
            notified=notified,
        ))

    async def _restore_booking(self, appointment: Appointment, slot_id: UUID) -> None:
        if appointment.status != "Confirmed" or not appointment.booked_by:
            return
        slot = await self.store.get(slot_id)
        if slot.is_booked and slot.booked_by == appointment.booked_by:
            return
        try:
            await self.store.book(slot_id, appointment.booked_by)
        except AlreadyBooked:
            logger.warning(f"Slot {slot_id} was taken before appointment {appointment.id} could keep it")
