from datetime import date
from typing import List, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.exceptions import NotFound, StoreFailure
from app.core.locks import DoctorLocks
from app.core.logger import logger
from app.core.utils import utcnow
from app.db.models import Doctor, Schedule, TimeSlot
from app.schemas.appointment import ReconcileReport
from app.schemas.schedule import ScheduleCreate, ScheduleUpdate
from app.services.notification_service import EmailNotifier
from app.services.reconciler import BookingReconciler
from app.services.slot_builder import build_rule_set, expand, load_rule_set
from app.services.slot_store import SlotStore


class ScheduleService:
    def __init__(self, session: AsyncSession, locks: DoctorLocks, notifier: EmailNotifier):
        self.session = session
        self.locks = locks
        self.notifier = notifier
        self.store = SlotStore(session)

    async def get_owned_schedule(self, doctor_id: UUID, schedule_id: UUID) -> Schedule:
        schedule = await self.session.get(Schedule, schedule_id)
        if not schedule or schedule.doctor_id != doctor_id:
            raise NotFound("Schedule not found")
        return schedule

    async def list_schedules(self, doctor_id: UUID) -> List[Schedule]:
        stmt = select(Schedule).where(Schedule.doctor_id == doctor_id).order_by(Schedule.valid_from)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def _save(self, schedule: Schedule) -> None:
        try:
            self.session.add(schedule)
            await self.session.commit()
            await self.session.refresh(schedule)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Store failure saving schedule for doctor {schedule.doctor_id}: {e}")
            raise StoreFailure("Could not save schedule")

    async def _materialize(
        self,
        doctor_id: UUID,
        schedule: Schedule,
        wipe_from: date,
        wipe_to: date,
    ) -> int:
        rule_set = load_rule_set(schedule.mode, schedule.days)
        slots: List[TimeSlot] = expand(
            doctor_id, rule_set, schedule.valid_from, schedule.valid_to, schedule.slot_duration
        )
        count = await self.store.replace_range(doctor_id, wipe_from, wipe_to, slots)
        logger.info(f"Generated {count} slots for doctor {doctor_id}")
        return count

    async def create_schedule(self, doctor: Doctor, data: ScheduleCreate) -> Tuple[Schedule, int]:
        days = [rule.model_dump() for rule in data.days]
        # Decided once here and stored with the schedule
        rule_set = build_rule_set(days)

        doctor_id = doctor.id
        schedule = Schedule(
            doctor_id=doctor_id,
            mode=rule_set.mode,
            days=days,
            slot_duration=data.slot_duration,
            valid_from=data.valid_from,
            valid_to=data.valid_to,
        )
        async with self.locks.hold(doctor_id):
            await self._save(schedule)
            count = await self._materialize(doctor_id, schedule, schedule.valid_from, schedule.valid_to)
        return schedule, count

    async def regenerate_slots(self, doctor_id: UUID, schedule_id: UUID) -> int:
        schedule = await self.get_owned_schedule(doctor_id, schedule_id)
        async with self.locks.hold(doctor_id):
            return await self._materialize(doctor_id, schedule, schedule.valid_from, schedule.valid_to)

    async def update_schedule(
        self,
        doctor_id: UUID,
        schedule_id: UUID,
        data: ScheduleUpdate,
    ) -> ReconcileReport:
        schedule = await self.get_owned_schedule(doctor_id, schedule_id)
        days = [rule.model_dump() for rule in data.days]
        rule_set = build_rule_set(days)

        async with self.locks.hold(doctor_id):
            # Wipe the old window too, so a narrower range leaves nothing stale behind
            wipe_from = min(schedule.valid_from, data.valid_from)
            wipe_to = max(schedule.valid_to, data.valid_to)

            schedule.mode = rule_set.mode
            schedule.days = days
            schedule.slot_duration = data.slot_duration
            schedule.valid_from = data.valid_from
            schedule.valid_to = data.valid_to
            schedule.updated_at = utcnow()
            await self._save(schedule)

            count = await self._materialize(doctor_id, schedule, wipe_from, wipe_to)

            reconciler = BookingReconciler(self.session, self.notifier)
            report = await reconciler.reconcile(doctor_id, wipe_from, wipe_to)

        report.slots_created = count
        return report

    async def available_slots(self, doctor_id: UUID, day: date) -> List[TimeSlot]:
        return await self.store.find_available(doctor_id, day)

    async def book_slot(self, slot_id: UUID, booked_by: UUID) -> TimeSlot:
        slot = await self.store.get(slot_id)
        async with self.locks.hold(slot.doctor_id):
            return await self.store.book(slot_id, booked_by)
