"""
Create a small demo dataset: two hospitals with departments and one
account per role.  Safe to run repeatedly; existing rows are corrected
rather than duplicated and every demo password is reset.
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from referrals.models import (
    Department, DoctorDepartment, DoctorHospital, Hospital, Profile,
    ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, ROLE_SPECIALIST,
)

DEMO_PASSWORD = "referral-demo-2024"

HOSPITALS = [
    {"name": "General Hospital", "address": "1 Main St", "city": "Springfield", "state": "IL",
     "phone": "555-0100", "email": "info@general.example"},
    {"name": "Heart Center", "address": "9 Oak Ave", "city": "Shelbyville", "state": "IL",
     "phone": "555-0200", "email": "info@heart.example"},
]

DEPARTMENTS = [
    ("General Hospital", "Internal Medicine", "Adult general medicine"),
    ("General Hospital", "Emergency", "24h emergency care"),
    ("Heart Center", "Cardiology", "Heart and vessel disorders"),
    ("Heart Center", "Cardiac Surgery", "Surgical cardiology"),
]

# username, role, full name, hospital, department
ACCOUNTS = [
    ("admin1", ROLE_ADMIN, "Ada Admin", None, None),
    ("doctor1", ROLE_DOCTOR, "Dana Doctor", "General Hospital", "Internal Medicine"),
    ("specialist1", ROLE_SPECIALIST, "Sam Specialist", "Heart Center", "Cardiology"),
    ("patient1", ROLE_PATIENT, "Pat Patient", None, None),
]


class Command(BaseCommand):
    help = "Ensure demo hospitals, departments and one account per role exist (idempotent)."

    @transaction.atomic
    def handle(self, *args, **opts):
        hospitals = {}
        for data in HOSPITALS:
            h, _ = Hospital.objects.update_or_create(name=data["name"], defaults=data)
            hospitals[h.name] = h
        departments = {}
        for hospital_name, name, description in DEPARTMENTS:
            d, _ = Department.objects.update_or_create(
                hospital=hospitals[hospital_name], name=name, defaults={"description": description}
            )
            departments[name] = d

        User = get_user_model()
        for username, role, full_name, hospital_name, department_name in ACCOUNTS:
            hospital = hospitals.get(hospital_name)
            department = departments.get(department_name)
            user = User.objects.filter(username=username).first()
            if user is None:
                user = User(username=username, email=f"{username}@referrals.example")
                user.profile_metadata = {"role": role, "full_name": full_name}
            user.set_password(DEMO_PASSWORD)
            user.is_active = True
            user.save()
            Profile.objects.filter(pk=user.pk).update(
                role=role,
                full_name=full_name,
                hospital=hospital,
                department=department,
            )
            if hospital is not None and role in (ROLE_DOCTOR, ROLE_SPECIALIST):
                DoctorHospital.objects.get_or_create(doctor_id=user.pk, hospital=hospital)
                if department is not None:
                    DoctorDepartment.objects.get_or_create(
                        doctor_id=user.pk, department=department, hospital=hospital
                    )
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS(f"Demo data ensured; password for every account: {DEMO_PASSWORD}"))
