"""
Clinic Appointment Backend

A FastAPI-based backend for a clinic serving admins, doctors and patients,
with signed bearer tokens, role-gated operations and appointment scheduling.
"""

__version__ = "1.0.0"
