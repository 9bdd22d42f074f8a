from datetime import timedelta

from clinic.core.security import TokenAuthority, TokenConfig, UserRole
from clinic.services.role_resolver import RoleResolver

from .conftest import TEST_SECRET_KEY

class TestResolveRole:

    def test_doctor_token_resolves_to_doctor_only(self, resolver, authority, make_doctor):
        """A doctor's token passes the doctor gate and no other."""
        make_doctor(email="house@clinic.test")
        token = authority.issue("house@clinic.test")
        assert resolver.resolve_role(token, UserRole.DOCTOR)
        assert not resolver.resolve_role(token, UserRole.PATIENT)
        assert not resolver.resolve_role(token, UserRole.ADMIN)

    def test_admin_resolved_by_username(self, resolver, authority, make_admin):
        make_admin(username="root")
        assert resolver.resolve_role(authority.issue("root"), "admin")

    def test_role_name_is_case_insensitive(self, resolver, authority, make_patient):
        make_patient(email="jane@clinic.test")
        assert resolver.resolve_role(authority.issue("jane@clinic.test"), "PATIENT")

    def test_unknown_role_is_rejected(self, resolver, authority, make_admin):
        """An unrecognised role name returns False instead of raising."""
        make_admin(username="root")
        assert resolver.resolve_role(authority.issue("root"), "nurse") is False

    def test_unknown_subject_is_rejected(self, resolver, authority, test_db):
        assert resolver.resolve_role(authority.issue("ghost@clinic.test"), UserRole.PATIENT) is False

    def test_invalid_token_is_rejected(self, resolver, test_db):
        """Verification failures come back as False."""
        assert resolver.resolve_role("not-a-token", UserRole.ADMIN) is False

    def test_expired_token_is_rejected(self, db_session, make_admin, clock):
        make_admin(username="root")
        authority = TokenAuthority(
            TokenConfig(secret_key=TEST_SECRET_KEY, lifetime=timedelta(minutes=5)),
            clock=clock,
        )
        token = authority.issue("root")
        clock.advance(minutes=6)
        assert RoleResolver(db_session, authority).resolve_role(token, UserRole.ADMIN) is False

class TestResolveIds:

    def test_resolve_doctor_id(self, resolver, authority, make_doctor):
        doctor = make_doctor(email="house@clinic.test")
        assert resolver.resolve_doctor_id(authority.issue("house@clinic.test")) == doctor.id

    def test_resolve_patient_id(self, resolver, authority, make_patient):
        patient = make_patient(email="jane@clinic.test")
        assert resolver.resolve_patient_id(authority.issue("jane@clinic.test")) == patient.id

    def test_doctor_token_has_no_patient_id(self, resolver, authority, make_doctor):
        """Ids are only resolved within the matching partition."""
        make_doctor(email="house@clinic.test")
        assert resolver.resolve_patient_id(authority.issue("house@clinic.test")) is None

    def test_invalid_token_has_no_ids(self, resolver, test_db):
        assert resolver.resolve_doctor_id("not-a-token") is None
        assert resolver.resolve_patient_id("not-a-token") is None

class TestInferRole:

    def test_infers_each_role(self, resolver, authority, make_admin, make_doctor, make_patient):
        make_admin(username="root")
        make_doctor(email="house@clinic.test")
        make_patient(email="jane@clinic.test")
        assert resolver.infer_role(authority.issue("root")) == UserRole.ADMIN
        assert resolver.infer_role(authority.issue("house@clinic.test")) == UserRole.DOCTOR
        assert resolver.infer_role(authority.issue("jane@clinic.test")) == UserRole.PATIENT

    def test_first_matching_partition_wins(self, resolver, authority, make_doctor, make_patient):
        """An identifier present in two partitions resolves in admin, doctor, patient order."""
        make_doctor(email="shared@clinic.test")
        make_patient(email="shared@clinic.test")
        assert resolver.infer_role(authority.issue("shared@clinic.test")) == UserRole.DOCTOR

    def test_unknown_subject(self, resolver, authority, test_db):
        assert resolver.infer_role(authority.issue("ghost@clinic.test")) is None
