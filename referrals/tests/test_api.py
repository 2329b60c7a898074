"""
Integration tests for the referral API.

Authentication, row-level access through the HTTP surface, the status
workflow, profile self-service and doctor assignments.  Requests go
through DRF's APIClient; most tests authenticate with
``force_authenticate`` and the auth tests use real tokens.
"""
import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from referrals.models import (
    AuditEvent, DoctorDepartment, DoctorHospital, Patient, Profile, Referral, ReferralTransition,
)

from .conftest import PASSWORD, client_for

pytestmark = pytest.mark.django_db


def referral_payload(world, **overrides):
    data = {
        'patientId': str(world.p1.pk),
        'targetHospitalId': str(world.heart.pk),
        'targetDepartmentId': str(world.cardiology.pk),
        'reason': 'persistent arrhythmia',
        'urgency': 'high',
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------
# authentication
# ---------------------------------------------------------------------
def test_login_returns_tokens_and_profile(world):
    client = APIClient()
    r = client.post(reverse('auth-login'), {'username': 'doctor1', 'password': PASSWORD}, format='json')
    assert r.status_code == 200
    assert r.data['token'] and r.data['jwt_access'] and r.data['jwt_refresh']
    assert r.data['profile']['role'] == 'doctor'

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['jwt_access']}")
    assert client.get(reverse('my-profile')).data['data']['fullName'] == 'Doctor1'

    legacy = APIClient()
    legacy.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    assert legacy.get(reverse('my-profile')).status_code == 200
    assert AuditEvent.objects.filter(action='login', user_id=world.doctor.pk).exists()


def test_login_ignores_requested_role(world):
    client = APIClient()
    r = client.post(reverse('auth-login'),
                    {'username': 'patient1', 'password': PASSWORD, 'role': 'admin'}, format='json')
    assert r.status_code == 200
    assert r.data['profile']['role'] == 'patient'


def test_login_rejects_bad_password(world):
    r = APIClient().post(reverse('auth-login'), {'username': 'doctor1', 'password': 'nope'}, format='json')
    assert r.status_code == 400
    assert r.data['ok'] is False


def test_refresh_and_logout(world):
    client = APIClient()
    r = client.post(reverse('auth-login'), {'username': 'doctor1', 'password': PASSWORD}, format='json')
    refresh = r.data['jwt_refresh']
    r2 = client.post(reverse('auth-refresh'), {'refresh': refresh}, format='json')
    assert r2.status_code == 200
    assert r2.data['jwt_access']

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['jwt_access']}")
    out = client.post(reverse('auth-logout'), {'refresh': refresh}, format='json')
    assert out.status_code == 200
    assert out.data['blacklisted'] == 1
    again = APIClient().post(reverse('auth-refresh'), {'refresh': refresh}, format='json')
    assert again.status_code == 401


def test_signup_creates_profile_with_metadata(db):
    r = APIClient().post(reverse('auth-signup'), {
        'username': 'newdoc', 'password': PASSWORD, 'email': 'newdoc@example.org',
        'fullName': 'New <b>Doc</b>', 'phone': '555-1234', 'role': 'doctor',
    }, format='json')
    assert r.status_code == 201
    profile = Profile.objects.get(user__username='newdoc')
    assert profile.role == 'doctor'
    assert profile.full_name == 'New Doc'
    assert profile.email == 'newdoc@example.org'
    assert profile.phone == '555-1234'


def test_signup_defaults_to_patient_and_refuses_admin(db):
    r = APIClient().post(reverse('auth-signup'),
                         {'username': 'pat', 'password': PASSWORD, 'fullName': 'Pat'}, format='json')
    assert r.status_code == 201
    assert r.data['profile']['role'] == 'patient'
    r = APIClient().post(reverse('auth-signup'),
                         {'username': 'boss', 'password': PASSWORD, 'fullName': 'Boss', 'role': 'admin'},
                         format='json')
    assert r.status_code == 400
    assert not Profile.objects.filter(user__username='boss').exists()


def test_signup_runs_password_validators(db):
    r = APIClient().post(reverse('auth-signup'),
                         {'username': 'weak', 'password': '123', 'fullName': 'Weak'}, format='json')
    assert r.status_code == 400


def test_anonymous_requests_are_rejected(world):
    client = APIClient()
    for name in ('hospitals', 'patients', 'referrals', 'my-profile', 'dashboard'):
        resp = client.get(reverse(name))
        assert resp.status_code in (401, 403)
        assert resp.data['ok'] is False


# ---------------------------------------------------------------------
# hospitals & departments
# ---------------------------------------------------------------------
def test_only_admin_creates_hospitals(world):
    payload = {'name': 'North Clinic', 'address': '3 Elm', 'city': 'Ogdenville', 'state': 'IL', 'phone': '1'}
    r = client_for(world.doctor).post(reverse('hospitals'), payload, format='json')
    assert r.status_code == 403
    assert r.data['error']['code'] == 'policy_violation'
    r = client_for(world.admin).post(reverse('hospitals'), payload, format='json')
    assert r.status_code == 201
    assert AuditEvent.objects.filter(action='hospitals.create', object_id=str(r.data['data']['id'])).exists()


def test_doctor_manages_departments(world):
    client = client_for(world.doctor)
    r = client.post(reverse('departments'), {'name': 'Radiology', 'hospitalId': str(world.general.pk)},
                    format='json')
    assert r.status_code == 201
    dept_id = r.data['data']['id']
    r = client.patch(reverse('department-detail', args=[dept_id]), {'description': 'Imaging'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['description'] == 'Imaging'

    r = client_for(world.specialist).delete(reverse('department-detail', args=[dept_id]))
    assert r.status_code == 403


def test_department_list_filters_by_hospital(world):
    r = client_for(world.patient_user).get(reverse('departments'), {'hospitalId': str(world.heart.pk)})
    assert [d['name'] for d in r.data['data']] == ['Cardiology']


# ---------------------------------------------------------------------
# profiles
# ---------------------------------------------------------------------
def test_profile_self_update_of_personal_fields(world):
    client = client_for(world.specialist)
    r = client.patch(reverse('my-profile'), {'phone': '555-9999', 'specialization': 'Cardiology'},
                     format='json')
    assert r.status_code == 200
    assert r.data['data']['phone'] == '555-9999'


@pytest.mark.parametrize('payload', [
    {'role': 'admin'},
    {'hospitalId': None},
    {'fullName': 'Me', 'role': 'admin'},
])
def test_profile_self_update_cannot_escalate(world, payload):
    r = client_for(world.doctor).patch(reverse('my-profile'), payload, format='json')
    assert r.status_code == 403
    assert r.data['error']['code'] == 'policy_violation'
    profile = Profile.objects.get(pk=world.doctor.pk)
    assert profile.role == 'doctor'
    assert profile.hospital_id == world.general.pk
    assert profile.full_name == 'Doctor1'


def test_admin_changes_role_and_affiliation(world):
    r = client_for(world.admin).patch(
        reverse('profile-detail', args=[world.doctor.pk]),
        {'role': 'specialist', 'hospitalId': str(world.heart.pk)}, format='json',
    )
    assert r.status_code == 200
    profile = Profile.objects.get(pk=world.doctor.pk)
    assert (profile.role, profile.hospital_id) == ('specialist', world.heart.pk)


def test_other_profiles_are_not_found(world):
    r = client_for(world.doctor).get(reverse('profile-detail', args=[world.specialist.pk]))
    assert r.status_code == 404
    r = client_for(world.doctor).patch(reverse('profile-detail', args=[world.specialist.pk]),
                                       {'fullName': 'x'}, format='json')
    assert r.status_code == 404


def test_profile_list_is_scoped(world):
    r = client_for(world.doctor).get(reverse('profiles'))
    assert [p['id'] for p in r.data['data']] == [world.doctor.pk]
    r = client_for(world.admin).get(reverse('profiles'), {'role': 'specialist'})
    assert {p['id'] for p in r.data['data']} == {world.specialist.pk, world.specialist_general.pk}


def test_admin_creates_account(world):
    r = client_for(world.admin).post(reverse('profiles'), {
        'username': 'spec3', 'password': PASSWORD, 'fullName': 'Third Specialist', 'role': 'specialist',
        'hospitalId': str(world.heart.pk), 'departmentId': str(world.cardiology.pk),
    }, format='json')
    assert r.status_code == 201
    profile = Profile.objects.get(user__username='spec3')
    assert profile.role == 'specialist'
    assert profile.department_id == world.cardiology.pk


def test_non_admin_cannot_create_accounts(world):
    r = client_for(world.doctor).post(reverse('profiles'), {
        'username': 'sneaky', 'password': PASSWORD, 'fullName': 'Sneaky', 'role': 'admin',
    }, format='json')
    assert r.status_code == 403
    assert not Profile.objects.filter(user__username='sneaky').exists()


# ---------------------------------------------------------------------
# patients
# ---------------------------------------------------------------------
def test_doctor_registers_patient_at_home_hospital(world):
    r = client_for(world.doctor).post(reverse('patients'), {
        'fullName': 'Ann Lee', 'dateOfBirth': '2001-03-04', 'gender': 'female',
    }, format='json')
    assert r.status_code == 201
    assert r.data['data']['patientId'].startswith('PAT-')
    assert r.data['data']['currentHospitalId'] == world.general.pk


def test_specialist_cannot_register_patients(world):
    r = client_for(world.specialist).post(reverse('patients'), {
        'fullName': 'Ann Lee', 'dateOfBirth': '2001-03-04', 'gender': 'female',
    }, format='json')
    assert r.status_code == 403


def test_patient_search_and_scope(world):
    client = client_for(world.doctor)
    r = client.get(reverse('patients'), {'q': 'smith'})
    assert [p['id'] for p in r.data['data']] == [world.p1.pk]
    r = client.get(reverse('patients'), {'q': world.p1.patient_id.lower()})
    assert r.data['pagination']['total'] == 1
    r = client.get(reverse('patients'), {'q': 'jones'})
    assert r.data['data'] == []
    assert client.get(reverse('patient-detail', args=[world.p2.pk])).status_code == 404


def test_patient_role_sees_no_patients(world):
    r = client_for(world.patient_user).get(reverse('patients'))
    assert r.status_code == 200
    assert r.data['data'] == []


# ---------------------------------------------------------------------
# referrals
# ---------------------------------------------------------------------
def test_doctor_creates_referral_as_self(world):
    r = client_for(world.doctor).post(reverse('referrals'), referral_payload(world), format='json')
    assert r.status_code == 201
    data = r.data['data']
    assert data['status'] == 'pending'
    assert data['referringDoctorId'] == world.doctor.pk
    assert data['originHospitalId'] == world.general.pk
    assert data['referralId'].startswith('REF-')
    assert [h['to'] for h in data['history']] == ['pending']


def test_referral_on_behalf_of_another_doctor_is_rejected(world):
    before = Referral.objects.count()
    r = client_for(world.doctor).post(
        reverse('referrals'), referral_payload(world, referringDoctorId=world.doctor2.pk), format='json'
    )
    assert r.status_code == 403
    assert r.data['error']['code'] == 'policy_violation'
    assert Referral.objects.count() == before


def test_patient_role_cannot_create_referrals(world):
    r = client_for(world.patient_user).post(
        reverse('referrals'), referral_payload(world, originHospitalId=str(world.general.pk)), format='json'
    )
    assert r.status_code == 403


def test_department_must_belong_to_target_hospital(world):
    r = client_for(world.doctor).post(
        reverse('referrals'), referral_payload(world, targetDepartmentId=str(world.medicine.pk)), format='json'
    )
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_error'
    assert 'target_department' in r.data['error']['message']


def test_referral_with_new_patient_is_atomic(world):
    payload = referral_payload(world)
    del payload['patientId']
    payload['patient'] = {'fullName': 'Walk In', 'dateOfBirth': '1999-09-09', 'gender': 'male'}
    r = client_for(world.doctor).post(reverse('referrals'), payload, format='json')
    assert r.status_code == 201
    assert r.data['data']['patient']['fullName'] == 'Walk In'
    assert Patient.objects.filter(full_name='Walk In', current_hospital=world.general).count() == 1

    # a failing referral leaves no orphan patient behind
    payload['patient'] = {'fullName': 'Orphan', 'dateOfBirth': '1999-09-09', 'gender': 'male'}
    payload['targetDepartmentId'] = str(world.medicine.pk)
    r = client_for(world.doctor).post(reverse('referrals'), payload, format='json')
    assert r.status_code == 400
    assert not Patient.objects.filter(full_name='Orphan').exists()


def test_referral_needs_exactly_one_patient_source(world):
    payload = referral_payload(world)
    payload['patient'] = {'fullName': 'Both', 'dateOfBirth': '1999-09-09', 'gender': 'male'}
    r = client_for(world.doctor).post(reverse('referrals'), payload, format='json')
    assert r.status_code == 400


def test_referral_list_scopes(world):
    world.r2.target_specialist_id = world.specialist.pk
    world.r2.save()
    client = client_for(world.specialist)
    all_ids = {r['id'] for r in client.get(reverse('referrals')).data['data']}
    assert all_ids == {world.r1.pk, world.r2.pk}
    assigned = client.get(reverse('referrals'), {'scope': 'assigned'}).data['data']
    assert [r['id'] for r in assigned] == [world.r2.pk]
    incoming = client.get(reverse('referrals'), {'scope': 'incoming'}).data['data']
    assert [r['id'] for r in incoming] == [world.r1.pk]
    high = client.get(reverse('referrals'), {'urgency': 'high'}).data['data']
    assert [r['id'] for r in high] == [world.r1.pk]


def test_referral_detail_hidden_from_unrelated_doctor(world):
    r = client_for(world.doctor2).get(reverse('referral-detail', args=[world.r1.pk]))
    assert r.status_code == 404


def test_affiliated_specialist_moves_status(world):
    client = client_for(world.specialist)
    url = reverse('referral-detail', args=[world.r1.pk])
    r = client.patch(url, {'status': 'in_progress', 'specialistNotes': 'seen'}, format='json')
    assert r.status_code == 200
    r = client.patch(url, {'status': 'completed'}, format='json')
    assert r.status_code == 200
    world.r1.refresh_from_db()
    assert world.r1.status == 'completed'
    # completing without a date stamps the appointment
    assert world.r1.appointment_date is not None
    steps = list(ReferralTransition.objects.filter(referral=world.r1)
                 .order_by('timestamp', 'id').values_list('from_status', 'to_status'))
    assert steps == [('pending', 'in_progress'), ('in_progress', 'completed')]


def test_unaffiliated_specialist_cannot_update(world):
    r = client_for(world.specialist_general).patch(
        reverse('referral-detail', args=[world.r1.pk]), {'status': 'in_progress'}, format='json'
    )
    # not readable either, so it is reported as missing
    assert r.status_code == 404
    world.r1.refresh_from_db()
    assert world.r1.status == 'pending'


def test_assigned_specialist_from_other_hospital_can_update(world):
    world.r1.target_specialist_id = world.specialist_general.pk
    world.r1.save()
    r = client_for(world.specialist_general).patch(
        reverse('referral-detail', args=[world.r1.pk]), {'status': 'in_progress'}, format='json'
    )
    assert r.status_code == 200


def test_referring_doctor_cannot_change_status(world):
    r = client_for(world.doctor).patch(
        reverse('referral-detail', args=[world.r1.pk]), {'status': 'cancelled'}, format='json'
    )
    assert r.status_code == 403
    assert r.data['error']['code'] == 'policy_violation'


def test_invalid_transition_is_rejected(world):
    client = client_for(world.specialist)
    url = reverse('referral-detail', args=[world.r1.pk])
    assert client.patch(url, {'status': 'cancelled'}, format='json').status_code == 200
    r = client.patch(url, {'status': 'in_progress'}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_error'


def test_specialist_cannot_rewrite_reason(world):
    r = client_for(world.specialist).patch(
        reverse('referral-detail', args=[world.r1.pk]), {'reason': 'something else'}, format='json'
    )
    assert r.status_code == 403


def test_status_change_is_broadcast_after_commit(world, django_capture_on_commit_callbacks, monkeypatch):
    sent = []
    monkeypatch.setattr('referrals.services.referrals.broadcast_referral_update',
                        lambda groups, payload: sent.append((groups, payload)))
    with django_capture_on_commit_callbacks(execute=True):
        client_for(world.specialist).patch(
            reverse('referral-detail', args=[world.r1.pk]), {'status': 'in_progress'}, format='json'
        )
    assert len(sent) == 1
    groups, payload = sent[0]
    assert payload == {'id': str(world.r1.pk), 'referralId': world.r1.referral_id, 'status': 'in_progress'}
    assert groups == [
        f'referrals.profile.{world.doctor.pk}',
        f'referrals.hospital.{world.heart.pk}.specialists',
        'referrals.admins',
    ]


def test_target_specialist_must_have_specialist_role(world):
    admin = client_for(world.admin)
    url = reverse('referral-detail', args=[world.r1.pk])
    r = admin.patch(url, {'targetSpecialistId': world.patient_user.pk}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_error'
    world.r1.refresh_from_db()
    assert world.r1.target_specialist_id is None
    # the rejected account gained no access
    assert client_for(world.patient_user).get(url).status_code == 404

    r = admin.patch(url, {'targetSpecialistId': world.specialist.pk}, format='json')
    assert r.status_code == 200
    assert r.data['data']['targetSpecialistId'] == world.specialist.pk


def test_new_referral_rejects_non_specialist_target(world):
    r = client_for(world.doctor).post(
        reverse('referrals'), referral_payload(world, targetSpecialistId=world.doctor2.pk), format='json'
    )
    assert r.status_code == 400
    assert not Referral.objects.filter(target_specialist_id=world.doctor2.pk).exists()


# ---------------------------------------------------------------------
# assignments
# ---------------------------------------------------------------------
def test_admin_assigns_and_doctor_reads_own(world):
    admin = client_for(world.admin)
    r = admin.post(reverse('hospital-assignments'),
                   {'doctorId': world.doctor.pk, 'hospitalId': str(world.heart.pk)}, format='json')
    assert r.status_code == 201
    r = admin.post(reverse('department-assignments'),
                   {'doctorId': world.doctor.pk, 'departmentId': str(world.cardiology.pk)}, format='json')
    assert r.status_code == 201
    assert r.data['data']['hospitalId'] == world.heart.pk

    mine = client_for(world.doctor).get(reverse('hospital-assignments')).data['data']
    assert [a['hospitalId'] for a in mine] == [world.heart.pk]
    assert client_for(world.specialist).get(reverse('hospital-assignments')).data['data'] == []


def test_doctor_cannot_assign_self(world):
    r = client_for(world.doctor).post(reverse('hospital-assignments'),
                                      {'doctorId': world.doctor.pk, 'hospitalId': str(world.heart.pk)},
                                      format='json')
    assert r.status_code == 403
    assert not DoctorHospital.objects.exists()


def test_department_assignment_hospital_must_match(world):
    r = client_for(world.admin).post(reverse('department-assignments'), {
        'doctorId': world.doctor.pk,
        'departmentId': str(world.cardiology.pk),
        'hospitalId': str(world.general.pk),
    }, format='json')
    assert r.status_code == 400
    assert not DoctorDepartment.objects.exists()


def test_duplicate_assignment_is_rejected(world):
    admin = client_for(world.admin)
    payload = {'doctorId': world.doctor.pk, 'hospitalId': str(world.general.pk)}
    assert admin.post(reverse('hospital-assignments'), payload, format='json').status_code == 201
    r = admin.post(reverse('hospital-assignments'), payload, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'integrity_error'


def test_only_doctors_can_be_assigned(world):
    r = client_for(world.admin).post(reverse('hospital-assignments'),
                                     {'doctorId': world.patient_user.pk, 'hospitalId': str(world.general.pk)},
                                     format='json')
    assert r.status_code == 400


def test_replace_assignments_atomically(world):
    DoctorHospital.objects.create(doctor_id=world.doctor.pk, hospital=world.general)
    DoctorDepartment.objects.create(doctor_id=world.doctor.pk, department=world.medicine, hospital=world.general)
    admin = client_for(world.admin)
    url = reverse('doctor-assignments', args=[world.doctor.pk])
    r = admin.put(url, {'hospitalIds': [str(world.heart.pk)], 'departmentIds': [str(world.cardiology.pk)]},
                  format='json')
    assert r.status_code == 200
    assert list(DoctorHospital.objects.values_list('hospital_id', flat=True)) == [world.heart.pk]
    assert list(DoctorDepartment.objects.values_list('department_id', flat=True)) == [world.cardiology.pk]

    # an unknown hospital aborts the whole swap
    r = admin.put(url, {'hospitalIds': ['00000000-0000-0000-0000-000000000000'], 'departmentIds': []},
                  format='json')
    assert r.status_code == 400
    assert list(DoctorHospital.objects.values_list('hospital_id', flat=True)) == [world.heart.pk]


def test_replace_assignments_is_admin_only(world):
    r = client_for(world.doctor).put(reverse('doctor-assignments', args=[world.doctor.pk]),
                                     {'hospitalIds': [], 'departmentIds': []}, format='json')
    assert r.status_code == 403


def test_delete_assignment(world):
    row = DoctorHospital.objects.create(doctor_id=world.doctor.pk, hospital=world.general)
    r = client_for(world.doctor).delete(reverse('hospital-assignment-detail', args=[row.pk]))
    assert r.status_code == 403
    r = client_for(world.admin).delete(reverse('hospital-assignment-detail', args=[row.pk]))
    assert r.status_code == 200
    assert not DoctorHospital.objects.exists()


# ---------------------------------------------------------------------
# dashboard & health
# ---------------------------------------------------------------------
def test_dashboard_is_role_shaped(world):
    admin = client_for(world.admin).get(reverse('dashboard')).data['data']
    assert admin['referralCount'] == 2
    assert admin['hospitalCount'] == 2
    doctor = client_for(world.doctor).get(reverse('dashboard')).data['data']
    assert doctor['totalReferrals'] == 1
    assert doctor['patientCount'] == 1
    patient = client_for(world.patient_user).get(reverse('dashboard')).data['data']
    assert patient == {'role': 'patient'}


def test_healthz(db):
    r = APIClient().get(reverse('healthz'))
    assert r.status_code == 200
    assert r.json()['ok'] is True


def test_identity_without_profile_may_only_browse_directory(world):
    from django.contrib.auth import get_user_model
    user = get_user_model().objects.create_user(username='ghost', password=PASSWORD)
    Profile.objects.filter(pk=user.pk).delete()
    client = client_for(user)

    r = client.get(reverse('hospitals'))
    assert r.status_code == 200
    assert [h['name'] for h in r.data['data']] == ['General', 'Heart Center']
    r = client.get(reverse('departments'), {'hospitalId': str(world.heart.pk)})
    assert [d['name'] for d in r.data['data']] == ['Cardiology']
    assert client.get(reverse('department-detail', args=[world.medicine.pk])).status_code == 200

    r = client.post(reverse('hospitals'), {'name': 'Ghost Clinic', 'address': 'x', 'city': 'x',
                                           'state': 'x', 'phone': '1'}, format='json')
    assert r.status_code == 403
    assert r.data['error']['code'] == 'policy_violation'
    r = client.patch(reverse('department-detail', args=[world.medicine.pk]), {'name': 'Renamed'}, format='json')
    assert r.status_code == 403
    assert client.get(reverse('patients')).status_code == 403
    assert client.get(reverse('referrals')).status_code == 403
