"""Free-slot computation over the fixed daily slot grid.

A doctor's free slots for a day are the grid minus the times of day of
that doctor's appointments on the same date. Matching is exact: an
appointment starting off the half-hour grid (09:10, say) frees nothing
and blocks nothing.
"""
from datetime import date, datetime, time, timedelta
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ..models.appointment import Appointment

logger = logging.getLogger(__name__)

SLOT_DAY_START = time(9, 0)
SLOT_DAY_END = time(17, 0)
SLOT_WIDTH = timedelta(minutes=30)

def daily_slots() -> List[time]:
    """Slot start times from 09:00 up to (not including) 17:00."""
    slots = []
    current = datetime.combine(date.min, SLOT_DAY_START)
    day_end = datetime.combine(date.min, SLOT_DAY_END)
    while current < day_end:
        slots.append(current.time())
        current += SLOT_WIDTH
    return slots

def format_slot(slot: time) -> str:
    return slot.strftime("%H:%M")

def day_bounds(day: date):
    """First and last instant of ``day``, both inclusive."""
    return datetime.combine(day, time.min), datetime.combine(day, time.max)

class AvailabilityService:
    def __init__(self, db: Session):
        self.db = db

    def booked_times(self, doctor_id: int, day: date, exclude_appointment_id: Optional[int] = None) -> List[time]:
        start, end = day_bounds(day)
        query = self.db.query(Appointment.appointment_time).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_time >= start,
            Appointment.appointment_time <= end,
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return [row.appointment_time.time() for row in query.all()]

    def availability(self, doctor_id: int, day: date, exclude_appointment_id: Optional[int] = None) -> List[time]:
        """Free grid slots for ``doctor_id`` on ``day``, in grid order.

        A storage error is logged and reported as no availability.
        """
        try:
            booked = set(self.booked_times(doctor_id, day, exclude_appointment_id))
        except SQLAlchemyError:
            logger.exception(f"Failed to load appointments for doctor {doctor_id} on {day}")
            return []

        return [slot for slot in daily_slots() if slot not in booked]
