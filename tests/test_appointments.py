from datetime import date, datetime, timedelta

from clinic.models import Appointment, AppointmentStatus

from .conftest import FUTURE_DAY, at, auth_header

def booking(doctor_id: int, when: datetime) -> dict:
    return {"doctor_id": doctor_id, "appointment_time": when.isoformat()}

class TestBooking:

    def test_book_appointment(self, client, make_doctor, make_patient, app_authority):
        """A patient books a free slot and gets the full appointment back."""
        doctor = make_doctor()
        patient = make_patient(email="jane@clinic.test")

        response = client.post(
            "/api/v1/appointments",
            json=booking(doctor.id, at(FUTURE_DAY, 9)),
            headers=auth_header(app_authority.issue("jane@clinic.test"))
        )
        assert response.status_code == 201

        data = response.json()
        assert data["patient_id"] == patient.id
        assert data["doctor_name"] == "Gregory House"
        assert data["status"] == AppointmentStatus.SCHEDULED.value
        assert data["time_of_day"] == "09:00:00"
        assert data["end_time"] == at(FUTURE_DAY, 10).isoformat()

    def test_double_booking(self, client, make_doctor, make_patient, app_authority):
        """The same doctor and slot cannot be booked twice."""
        doctor = make_doctor()
        make_patient(email="jane@clinic.test")
        make_patient(email="john@clinic.test", name="John Roe")

        first = client.post(
            "/api/v1/appointments",
            json=booking(doctor.id, at(FUTURE_DAY, 9)),
            headers=auth_header(app_authority.issue("jane@clinic.test"))
        )
        second = client.post(
            "/api/v1/appointments",
            json=booking(doctor.id, at(FUTURE_DAY, 9)),
            headers=auth_header(app_authority.issue("john@clinic.test"))
        )
        assert first.status_code == 201
        assert second.status_code == 400
        assert second.json()["detail"] == "Appointment time is not available"

    def test_unknown_doctor(self, client, db_session, make_patient, app_authority):
        make_patient(email="jane@clinic.test")
        response = client.post(
            "/api/v1/appointments",
            json=booking(999, at(FUTURE_DAY, 9)),
            headers=auth_header(app_authority.issue("jane@clinic.test"))
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Doctor not found"
        assert db_session.query(Appointment).count() == 0

    def test_past_time_is_rejected(self, client, make_doctor, make_patient, app_authority):
        doctor = make_doctor()
        make_patient(email="jane@clinic.test")
        response = client.post(
            "/api/v1/appointments",
            json=booking(doctor.id, at(date.today() - timedelta(days=1), 9)),
            headers=auth_header(app_authority.issue("jane@clinic.test"))
        )
        assert response.status_code == 422

    def test_doctor_cannot_book(self, client, make_doctor, app_authority):
        doctor = make_doctor(email="house@clinic.test")
        response = client.post(
            "/api/v1/appointments",
            json=booking(doctor.id, at(FUTURE_DAY, 9)),
            headers=auth_header(app_authority.issue("house@clinic.test"))
        )
        assert response.status_code == 401

class TestUpdateAndCancel:

    def test_reschedule(self, client, make_doctor, make_patient, make_appointment, app_authority):
        doctor = make_doctor()
        patient = make_patient(email="jane@clinic.test")
        appointment = make_appointment(doctor, patient, at(FUTURE_DAY, 9))

        response = client.put(
            f"/api/v1/appointments/{appointment.id}",
            json=booking(doctor.id, at(FUTURE_DAY, 14)),
            headers=auth_header(app_authority.issue("jane@clinic.test"))
        )
        assert response.status_code == 200
        assert response.json()["time_of_day"] == "14:00:00"

    def test_reschedule_someone_elses(self, client, make_doctor, make_patient, make_appointment, app_authority):
        doctor = make_doctor()
        owner = make_patient(email="jane@clinic.test")
        make_patient(email="john@clinic.test", name="John Roe")
        appointment = make_appointment(doctor, owner, at(FUTURE_DAY, 9))

        response = client.put(
            f"/api/v1/appointments/{appointment.id}",
            json=booking(doctor.id, at(FUTURE_DAY, 14)),
            headers=auth_header(app_authority.issue("john@clinic.test"))
        )
        assert response.status_code == 403

    def test_cancel_own(self, client, db_session, make_doctor, make_patient, make_appointment, app_authority):
        doctor = make_doctor()
        patient = make_patient(email="jane@clinic.test")
        appointment = make_appointment(doctor, patient, at(FUTURE_DAY, 9))

        response = client.delete(
            f"/api/v1/appointments/{appointment.id}",
            headers=auth_header(app_authority.issue("jane@clinic.test"))
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Appointment cancelled successfully"
        assert db_session.query(Appointment).count() == 0

    def test_cancel_someone_elses(self, client, db_session, make_doctor, make_patient, make_appointment, app_authority):
        """Another patient's token never cancels the appointment."""
        doctor = make_doctor()
        owner = make_patient(email="jane@clinic.test")
        make_patient(email="john@clinic.test", name="John Roe")
        appointment = make_appointment(doctor, owner, at(FUTURE_DAY, 9))

        response = client.delete(
            f"/api/v1/appointments/{appointment.id}",
            headers=auth_header(app_authority.issue("john@clinic.test"))
        )
        assert response.status_code == 403
        assert db_session.query(Appointment).count() == 1

    def test_cancel_missing(self, client, make_patient, app_authority):
        make_patient(email="jane@clinic.test")
        response = client.delete(
            "/api/v1/appointments/999",
            headers=auth_header(app_authority.issue("jane@clinic.test"))
        )
        assert response.status_code == 404

class TestDoctorViews:

    def test_day_list_with_name_filter(self, client, make_doctor, make_patient, make_appointment, app_authority):
        doctor = make_doctor(email="house@clinic.test")
        make_appointment(doctor, make_patient(email="jane@clinic.test"), at(FUTURE_DAY, 9))
        make_appointment(doctor, make_patient(email="john@clinic.test", name="John Roe"), at(FUTURE_DAY, 10))
        headers = auth_header(app_authority.issue("house@clinic.test"))

        everyone = client.get("/api/v1/appointments", params={"date": FUTURE_DAY.isoformat()}, headers=headers)
        johns = client.get(
            "/api/v1/appointments",
            params={"date": FUTURE_DAY.isoformat(), "patient_name": "john"},
            headers=headers
        )

        assert everyone.status_code == 200
        assert everyone.json()["count"] == 2
        assert [item["patient_name"] for item in johns.json()["appointments"]] == ["John Roe"]

    def test_day_list_invalid_date(self, client, make_doctor, app_authority):
        make_doctor(email="house@clinic.test")
        response = client.get(
            "/api/v1/appointments",
            params={"date": "tomorrow"},
            headers=auth_header(app_authority.issue("house@clinic.test"))
        )
        assert response.status_code == 400

    def test_change_status(self, client, make_doctor, make_patient, make_appointment, app_authority):
        doctor = make_doctor(email="house@clinic.test")
        appointment = make_appointment(doctor, make_patient(), at(FUTURE_DAY, 9))
        response = client.patch(
            f"/api/v1/appointments/{appointment.id}/status",
            json={"status": AppointmentStatus.COMPLETED.value},
            headers=auth_header(app_authority.issue("house@clinic.test"))
        )
        assert response.status_code == 200
        assert response.json()["status"] == AppointmentStatus.COMPLETED.value

    def test_change_status_missing(self, client, make_doctor, app_authority):
        make_doctor(email="house@clinic.test")
        response = client.patch(
            "/api/v1/appointments/999/status",
            json={"status": AppointmentStatus.COMPLETED.value},
            headers=auth_header(app_authority.issue("house@clinic.test"))
        )
        assert response.status_code == 404

class TestPrescriptionFlow:

    def test_record_and_fetch(self, client, db_session, make_doctor, make_patient, make_appointment, app_authority):
        """Recording a prescription completes the appointment."""
        doctor = make_doctor(email="house@clinic.test")
        appointment = make_appointment(doctor, make_patient(), at(FUTURE_DAY, 9))
        appointment_id = appointment.id
        headers = auth_header(app_authority.issue("house@clinic.test"))
        payload = {
            "appointment_id": appointment_id,
            "patient_name": "Jane Doe",
            "medication": "Ibuprofen",
            "dosage": "200mg",
            "doctor_notes": "After meals"
        }

        created = client.post("/api/v1/prescriptions", json=payload, headers=headers)
        duplicate = client.post("/api/v1/prescriptions", json=payload, headers=headers)
        fetched = client.get(f"/api/v1/prescriptions/{appointment_id}", headers=headers)

        assert created.status_code == 201
        assert duplicate.status_code == 409
        assert fetched.json()["count"] == 1
        assert fetched.json()["prescriptions"][0]["medication"] == "Ibuprofen"

        db_session.expire_all()
        assert db_session.get(Appointment, appointment_id).status == AppointmentStatus.COMPLETED.value

    def test_prescription_for_missing_appointment(self, client, make_doctor, app_authority):
        make_doctor(email="house@clinic.test")
        response = client.post(
            "/api/v1/prescriptions",
            json={
                "appointment_id": 999,
                "patient_name": "Jane Doe",
                "medication": "Ibuprofen",
                "dosage": "200mg"
            },
            headers=auth_header(app_authority.issue("house@clinic.test"))
        )
        assert response.status_code == 404

    def test_no_prescription_yet(self, client, make_doctor, app_authority):
        make_doctor(email="house@clinic.test")
        response = client.get(
            "/api/v1/prescriptions/123",
            headers=auth_header(app_authority.issue("house@clinic.test"))
        )
        assert response.status_code == 404
        assert response.json()["message"] == "No prescription found for this appointment"
