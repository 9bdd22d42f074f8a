from .admin import Admin
from .appointment import Appointment, AppointmentStatus
from .doctor import Doctor
from .patient import Patient

__all__ = ["Admin", "Appointment", "AppointmentStatus", "Doctor", "Patient"]
