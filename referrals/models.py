"""
Database models for the referral coordination backend.

The tables mirror the relational schema the front-end was built
against: hospitals with their departments, one profile per identity
carrying the caller's role, patients, cross-hospital referrals and the
doctor-to-hospital/department assignment junctions.  Table names are
fixed explicitly so that the policy table in :mod:`referrals.policy`
can refer to them by the same names used in the API contract.

Patients and referrals carry a human-facing business identifier
(``PAT-YYYY-NNNNNN`` / ``REF-YYYY-NNNNNN``) which is assigned once, at
insert time, by :mod:`referrals.identifiers` and is backed by a unique
constraint in storage.
"""
from __future__ import annotations

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from .identifiers import BusinessIdentifierMixin, PATIENT_PREFIX, REFERRAL_PREFIX


ROLE_ADMIN = 'admin'
ROLE_DOCTOR = 'doctor'
ROLE_SPECIALIST = 'specialist'
ROLE_PATIENT = 'patient'
ROLE_CHOICES = [
    (ROLE_ADMIN, 'Administrator'),
    (ROLE_DOCTOR, 'Doctor'),
    (ROLE_SPECIALIST, 'Specialist'),
    (ROLE_PATIENT, 'Patient'),
]

GENDER_CHOICES = [
    ('male', 'Male'),
    ('female', 'Female'),
    ('other', 'Other'),
]

URGENCY_CHOICES = [
    ('low', 'Low'),
    ('medium', 'Medium'),
    ('high', 'High'),
    ('critical', 'Critical'),
]


class Hospital(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255)
    city = models.CharField(max_length=120)
    state = models.CharField(max_length=120)
    phone = models.CharField(max_length=32)
    email = models.EmailField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'hospitals'
        ordering = ['name']

    def __str__(self) -> str:
        return f"{self.name} ({self.city})"


class Department(models.Model):
    """A department inside exactly one hospital.

    ``head_doctor`` is a weak reference: storage only guarantees that the
    profile exists, not that it carries a doctor role.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='departments')
    head_doctor = models.ForeignKey(
        'Profile', null=True, blank=True, on_delete=models.SET_NULL, related_name='headed_departments'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'departments'
        ordering = ['name']

    def __str__(self) -> str:
        return f"{self.name} @ {self.hospital_id}"


class Profile(models.Model):
    """One profile per authenticated identity.

    The primary key *is* the identity's key, so resolving the caller's
    profile is a single primary-key lookup (see :mod:`referrals.identity`).
    Profiles are created by the identity-creation signal in
    :mod:`referrals.signals`.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, primary_key=True, on_delete=models.CASCADE, related_name='profile'
    )
    full_name = models.CharField(max_length=255, blank=True, default='')
    # NULL rather than '' for missing addresses so the unique index
    # does not collide on identities created without an email.
    email = models.EmailField(unique=True, blank=True, null=True)
    phone = models.CharField(max_length=32, blank=True, null=True)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='staff'
    )
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='staff'
    )
    license_number = models.CharField(max_length=64, blank=True, null=True)
    specialization = models.CharField(max_length=255, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'profiles'

    @property
    def id(self):
        return self.user_id

    def __str__(self) -> str:
        return f"{self.full_name or self.user_id} ({self.role})"


class Patient(BusinessIdentifierMixin, models.Model):
    business_id_field = 'patient_id'
    business_id_prefix = PATIENT_PREFIX

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient_id = models.CharField(max_length=32, unique=True, editable=False)
    full_name = models.CharField(max_length=255)
    date_of_birth = models.DateField()
    gender = models.CharField(max_length=8, choices=GENDER_CHOICES)
    phone = models.CharField(max_length=32, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    emergency_contact_name = models.CharField(max_length=255, blank=True, null=True)
    emergency_contact_phone = models.CharField(max_length=32, blank=True, null=True)
    medical_history = models.TextField(blank=True, null=True)
    current_hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='patients', db_index=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patients'
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"{self.full_name} ({self.patient_id})"


class Referral(BusinessIdentifierMixin, models.Model):
    """A request to move a patient's care to a target hospital/department.

    Status moves pending -> in_progress -> completed, and either open
    state may be cancelled.  Referrals are never hard-deleted in normal
    operation.
    """
    business_id_field = 'referral_id'
    business_id_prefix = REFERRAL_PREFIX

    STATUS_PENDING = 'pending'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    TRANSITIONS = {
        STATUS_PENDING: {STATUS_IN_PROGRESS, STATUS_CANCELLED},
        STATUS_IN_PROGRESS: {STATUS_COMPLETED, STATUS_CANCELLED},
        STATUS_COMPLETED: set(),
        STATUS_CANCELLED: set(),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    referral_id = models.CharField(max_length=32, unique=True, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='referrals')
    referring_doctor = models.ForeignKey(Profile, on_delete=models.PROTECT, related_name='referrals_sent')
    target_specialist = models.ForeignKey(
        Profile, null=True, blank=True, on_delete=models.SET_NULL, related_name='referrals_assigned'
    )
    origin_hospital = models.ForeignKey(Hospital, on_delete=models.PROTECT, related_name='referrals_out')
    target_hospital = models.ForeignKey(Hospital, on_delete=models.PROTECT, related_name='referrals_in')
    target_department = models.ForeignKey(Department, on_delete=models.PROTECT, related_name='referrals')
    reason = models.TextField()
    urgency = models.CharField(max_length=10, choices=URGENCY_CHOICES, default='medium', db_index=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    notes = models.TextField(blank=True, null=True)
    specialist_notes = models.TextField(blank=True, null=True)
    appointment_date = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'referrals'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['target_hospital', 'status']),
            models.Index(fields=['referring_doctor', 'created_at']),
        ]

    def clean(self):
        if self.target_department_id and self.target_hospital_id:
            dept_hospital = (
                Department.objects.filter(pk=self.target_department_id)
                .values_list('hospital_id', flat=True).first()
            )
            if dept_hospital != self.target_hospital_id:
                raise ValidationError({'target_department': 'department does not belong to the target hospital'})
        if self.target_specialist_id is not None:
            role = Profile.objects.filter(pk=self.target_specialist_id).values_list('role', flat=True).first()
            if role != ROLE_SPECIALIST:
                raise ValidationError({'target_specialist': 'target specialist must have the specialist role'})

    def can_transition(self, new_status: str) -> bool:
        return new_status == self.status or new_status in self.TRANSITIONS.get(self.status, set())

    def __str__(self) -> str:
        return f"{self.referral_id} ({self.status})"


class ReferralTransition(models.Model):
    """Records a status change of a referral."""
    referral = models.ForeignKey(Referral, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=16, null=True, blank=True)
    to_status = models.CharField(max_length=16)
    operator = models.ForeignKey(
        Profile, null=True, blank=True, on_delete=models.SET_NULL, related_name='referral_transitions'
    )
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'referral_transitions'
        ordering = ['timestamp', 'id']

    def __str__(self) -> str:
        return f"{self.referral_id}: {self.from_status} → {self.to_status}"


class DoctorHospital(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    doctor = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='hospital_assignments')
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='doctor_assignments')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'doctor_hospitals'
        constraints = [
            models.UniqueConstraint(fields=['doctor', 'hospital'], name='uniq_doctor_hospital'),
        ]

    def __str__(self) -> str:
        return f"{self.doctor_id} @ {self.hospital_id}"


class DoctorDepartment(models.Model):
    """Assigns a doctor to a department of a given hospital.

    The paired hospital must be the department's own hospital; this is
    checked in :meth:`clean`, which the assignment service runs inside
    the same transaction as the insert.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    doctor = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='department_assignments')
    department = models.ForeignKey(Department, on_delete=models.CASCADE, related_name='doctor_assignments')
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='doctor_department_assignments')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'doctor_departments'
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'department', 'hospital'], name='uniq_doctor_department_hospital'
            ),
        ]

    def clean(self):
        if self.department_id and self.hospital_id:
            dept_hospital = (
                Department.objects.filter(pk=self.department_id)
                .values_list('hospital_id', flat=True).first()
            )
            if dept_hospital != self.hospital_id:
                raise ValidationError({'department': 'department does not belong to the assigned hospital'})

    def __str__(self) -> str:
        return f"{self.doctor_id} @ {self.department_id}/{self.hospital_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_events'
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['object_type', 'object_id', 'created_at']),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
