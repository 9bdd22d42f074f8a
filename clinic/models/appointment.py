from datetime import date, datetime, time, timedelta
from sqlalchemy import Column, Integer, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.sql import func
import enum

from ..core.database import Base

APPOINTMENT_DURATION = timedelta(hours=1)

class AppointmentStatus(int, enum.Enum):
    SCHEDULED = 0
    COMPLETED = 1

class Appointment(Base):
    __tablename__ = "appointments"
    # Two requests racing for the same doctor and slot cannot both commit
    __table_args__ = (
        UniqueConstraint("doctor_id", "appointment_time", name="uq_appointment_doctor_time"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    
    # Plain references; looked up explicitly, no ORM back-references
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    
    # Appointment details
    appointment_time = Column(DateTime, nullable=False, index=True)
    status = Column(Integer, nullable=False, default=AppointmentStatus.SCHEDULED.value)
    
    # Tracking
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    @property
    def end_time(self) -> datetime:
        return self.appointment_time + APPOINTMENT_DURATION
    
    @property
    def appointment_date(self) -> date:
        return self.appointment_time.date()
    
    @property
    def time_of_day(self) -> time:
        return self.appointment_time.time()
    
    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, time='{self.appointment_time}')>"
