from datetime import date, datetime, time, timedelta
from typing import Collection, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.exceptions import AlreadyBooked, NotFound, StoreFailure
from app.core.logger import logger
from app.core.utils import day_bounds
from app.db.models import TimeSlot


class SlotStore:
    """Persisted slots. Callers hold the doctor's lock around mutations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, slot_id: UUID) -> TimeSlot:
        stmt = select(TimeSlot).where(TimeSlot.id == slot_id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        slot = result.scalars().first()
        if not slot:
            raise NotFound("Timeslot not found")
        return slot

    async def find_available(self, doctor_id: UUID, day: date) -> List[TimeSlot]:
        start, end = day_bounds(day)
        stmt = select(TimeSlot).where(
            TimeSlot.doctor_id == doctor_id,
            TimeSlot.date >= start,
            TimeSlot.date < end,
            TimeSlot.is_booked == False,
        ).order_by(TimeSlot.start_time)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def find_open_slot(
        self,
        doctor_id: UUID,
        day: date,
        start_time: Optional[str] = None,
        exclude: Collection[UUID] = (),
    ) -> Optional[TimeSlot]:
        """
        The unbooked slot starting at ``start_time`` on ``day``, or the
        earliest unbooked slot of that day when no start time is given.
        """
        start, end = day_bounds(day)
        stmt = select(TimeSlot).where(
            TimeSlot.doctor_id == doctor_id,
            TimeSlot.date >= start,
            TimeSlot.date < end,
            TimeSlot.is_booked == False,
        )
        if start_time is not None:
            stmt = stmt.where(TimeSlot.start_time == start_time)
        if exclude:
            stmt = stmt.where(TimeSlot.id.not_in(list(exclude)))
        stmt = stmt.order_by(TimeSlot.start_time).limit(1)

        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find_slot_at(self, doctor_id: UUID, day: date, start_time: str) -> Optional[TimeSlot]:
        """The slot starting at ``start_time`` on ``day``, booked or not."""
        start, end = day_bounds(day)
        stmt = select(TimeSlot).where(
            TimeSlot.doctor_id == doctor_id,
            TimeSlot.date >= start,
            TimeSlot.date < end,
            TimeSlot.start_time == start_time,
        ).limit(1)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def book(self, slot_id: UUID, booked_by: UUID) -> TimeSlot:
        # Test-and-set: only a free slot matches, so two bookers never both win
        stmt = (
            update(TimeSlot)
            .where(TimeSlot.id == slot_id, TimeSlot.is_booked == False)
            .values(is_booked=True, booked_by=booked_by)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Store failure booking slot {slot_id}: {e}")
            raise StoreFailure("Could not book timeslot")

        slot = await self.get(slot_id)
        if result.rowcount == 0:
            raise AlreadyBooked()
        return slot

    async def release(self, slot_id: UUID) -> None:
        stmt = (
            update(TimeSlot)
            .where(TimeSlot.id == slot_id)
            .values(is_booked=False, booked_by=None)
            .execution_options(synchronize_session=False)
        )
        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Store failure releasing slot {slot_id}: {e}")
            raise StoreFailure("Could not release timeslot")

    async def replace_range(
        self,
        doctor_id: UUID,
        valid_from: date,
        valid_to: date,
        slots: Sequence[TimeSlot],
    ) -> int:
        """
        Delete every slot of the doctor in ``[valid_from, valid_to]`` and
        insert ``slots`` in the same transaction.

        A booking on a removed slot moves to the new slot with the same start,
        if there is one.
        """
        start = datetime.combine(valid_from, time.min)
        end = datetime.combine(valid_to, time.min) + timedelta(days=1)
        in_range = (
            TimeSlot.doctor_id == doctor_id,
            TimeSlot.date >= start,
            TimeSlot.date < end,
        )

        try:
            booked = await self.session.execute(
                select(TimeSlot.date, TimeSlot.booked_by).where(*in_range, TimeSlot.is_booked == True)
            )
            bookings: Dict[datetime, Optional[UUID]] = {row.date: row.booked_by for row in booked}

            removed = await self.session.execute(
                delete(TimeSlot).where(*in_range).execution_options(synchronize_session=False)
            )
            for slot in slots:
                if slot.date in bookings:
                    slot.is_booked = True
                    slot.booked_by = bookings.pop(slot.date)
            self.session.add_all(slots)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Store failure replacing slots for doctor {doctor_id} "
                f"in {valid_from}..{valid_to}: {e}"
            )
            raise StoreFailure("Could not regenerate timeslots")

        for slot_start, booked_by in bookings.items():
            logger.warning(
                f"Booking of {booked_by} at {slot_start} for doctor {doctor_id} "
                f"has no slot after regeneration"
            )
        logger.info(
            f"Replaced {removed.rowcount} slots with {len(slots)} for doctor {doctor_id} "
            f"in {valid_from}..{valid_to}"
        )
        return len(slots)
