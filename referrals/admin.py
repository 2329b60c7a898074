"""
Django admin registrations.

The admin site bypasses the row-level policy entirely; it is meant for
superusers inspecting data during development and support.
"""
from django.contrib import admin

from .models import (
    AuditEvent,
    Department,
    DoctorDepartment,
    DoctorHospital,
    Hospital,
    Patient,
    Profile,
    Referral,
    ReferralTransition,
)


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ('name', 'city', 'state', 'phone', 'created_at')
    search_fields = ('name', 'city', 'state')


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('name', 'hospital', 'head_doctor')
    list_filter = ('hospital',)
    search_fields = ('name', 'hospital__name')


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'full_name', 'role', 'hospital', 'department')
    list_filter = ('role', 'hospital')
    search_fields = ('full_name', 'email', 'user__username')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('patient_id', 'full_name', 'gender', 'date_of_birth', 'current_hospital')
    list_filter = ('gender', 'current_hospital')
    search_fields = ('patient_id', 'full_name')
    readonly_fields = ('patient_id',)


class ReferralTransitionInline(admin.TabularInline):
    model = ReferralTransition
    extra = 0
    readonly_fields = ('from_status', 'to_status', 'operator', 'timestamp')


@admin.register(Referral)
class ReferralAdmin(admin.ModelAdmin):
    list_display = ('referral_id', 'patient', 'status', 'urgency', 'origin_hospital', 'target_hospital',
                    'created_at')
    list_filter = ('status', 'urgency', 'target_hospital')
    search_fields = ('referral_id', 'patient__full_name', 'patient__patient_id')
    readonly_fields = ('referral_id',)
    inlines = [ReferralTransitionInline]


@admin.register(DoctorHospital)
class DoctorHospitalAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'hospital', 'created_at')
    list_filter = ('hospital',)


@admin.register(DoctorDepartment)
class DoctorDepartmentAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'department', 'hospital', 'created_at')
    list_filter = ('hospital',)


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user', 'action', 'object_type', 'object_id')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id',)
