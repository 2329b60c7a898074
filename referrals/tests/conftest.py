import datetime

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from referrals.identity import resolve_caller
from referrals.models import (
    Department, Hospital, Patient, Profile, Referral,
    ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, ROLE_SPECIALIST,
)

PASSWORD = 'Str0ng-pass!42'


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle counters live in the cache
    cache.clear()
    yield
    cache.clear()


def make_user(username, role, hospital=None, department=None, **extra):
    user = get_user_model()(username=username, email=f'{username}@example.org')
    user.set_password(PASSWORD)
    user.profile_metadata = {
        'role': role,
        'full_name': extra.pop('full_name', username.title()),
        'hospital_id': hospital.pk if hospital else None,
        'department_id': department.pk if department else None,
        **extra,
    }
    user.save()
    return user


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def world(db):
    """Two hospitals, one department each, one account per role and a referral each way."""
    class World:
        pass

    w = World()
    w.general = Hospital.objects.create(name='General', address='1 Main St', city='Springfield',
                                        state='IL', phone='555-0100')
    w.heart = Hospital.objects.create(name='Heart Center', address='9 Oak Ave', city='Shelbyville',
                                      state='IL', phone='555-0200')
    w.medicine = Department.objects.create(name='Internal Medicine', hospital=w.general)
    w.cardiology = Department.objects.create(name='Cardiology', hospital=w.heart,
                                             description='Heart and vessels')

    w.admin = make_user('admin1', ROLE_ADMIN)
    w.doctor = make_user('doctor1', ROLE_DOCTOR, w.general, w.medicine)
    w.doctor2 = make_user('doctor2', ROLE_DOCTOR, w.heart)
    w.specialist = make_user('specialist1', ROLE_SPECIALIST, w.heart, w.cardiology)
    w.specialist_general = make_user('specialist2', ROLE_SPECIALIST, w.general)
    w.patient_user = make_user('patient1', ROLE_PATIENT)

    w.p1 = Patient.objects.create(full_name='John Smith', date_of_birth=datetime.date(1970, 1, 2),
                                  gender='male', current_hospital=w.general, medical_history='hypertension')
    w.p2 = Patient.objects.create(full_name='Mary Jones', date_of_birth=datetime.date(1985, 5, 6),
                                  gender='female', current_hospital=w.heart)

    # General -> Heart Center, written by doctor1
    w.r1 = Referral.objects.create(
        patient=w.p1, referring_doctor_id=w.doctor.pk, origin_hospital=w.general,
        target_hospital=w.heart, target_department=w.cardiology, reason='chest pain', urgency='high',
        specialist_notes='internal only',
    )
    # Heart Center -> General, written by doctor2
    w.r2 = Referral.objects.create(
        patient=w.p2, referring_doctor_id=w.doctor2.pk, origin_hospital=w.heart,
        target_hospital=w.general, target_department=w.medicine, reason='follow-up',
    )
    return w


@pytest.fixture
def caller_of():
    def _caller(user):
        return resolve_caller(user)
    return _caller


@pytest.fixture
def profile_of():
    def _profile(user):
        return Profile.objects.get(pk=user.pk)
    return _profile
