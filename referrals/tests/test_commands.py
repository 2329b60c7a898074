import json
from io import StringIO

import pytest
from django.contrib.auth import authenticate
from django.core.management import call_command

from referrals.management.commands.seed_demo import DEMO_PASSWORD
from referrals.models import Department, DoctorHospital, Hospital, Profile
from referrals.policy import POLICY_VERSION

pytestmark = pytest.mark.django_db


def test_seed_demo_is_idempotent():
    call_command('seed_demo', stdout=StringIO())
    call_command('seed_demo', stdout=StringIO())
    assert Hospital.objects.count() == 2
    assert Department.objects.count() == 4
    roles = dict(Profile.objects.values_list('user__username', 'role'))
    assert roles == {'admin1': 'admin', 'doctor1': 'doctor', 'specialist1': 'specialist', 'patient1': 'patient'}
    assert DoctorHospital.objects.count() == 2
    assert authenticate(username='specialist1', password=DEMO_PASSWORD) is not None


def test_seed_demo_restores_tampered_role():
    call_command('seed_demo', stdout=StringIO())
    Profile.objects.filter(user__username='doctor1').update(role='patient')
    call_command('seed_demo', stdout=StringIO())
    assert Profile.objects.get(user__username='doctor1').role == 'doctor'


def test_policy_matrix_table():
    out = StringIO()
    call_command('policy_matrix', stdout=out)
    text = out.getvalue()
    assert text.startswith(f'policy version {POLICY_VERSION}')
    assert 'referrals_insert_as_self' in text
    assert 'columns=email,full_name,license_number,phone,specialization' in text


def test_policy_matrix_json_filtered():
    out = StringIO()
    call_command('policy_matrix', '--json', '--entity', 'profiles', stdout=out)
    data = json.loads(out.getvalue())
    assert data['version'] == POLICY_VERSION
    assert {r['entity'] for r in data['rules']} == {'profiles'}
    own = [r for r in data['rules'] if r['rule'] == 'profiles_update_own']
    assert own[0]['columns'] == ['email', 'full_name', 'license_number', 'phone', 'specialization']
    assert 'delete' not in {r['action'] for r in data['rules']}
