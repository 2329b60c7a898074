from rest_framework import serializers

from referrals.models import Department, Hospital, Patient, Profile, Referral, URGENCY_CHOICES
from referrals.services.referrals import SCOPES

from .fields import CleanCharField
from .patients import PatientSerializer


class ReferralCreateSerializer(serializers.Serializer):
    patientId = serializers.PrimaryKeyRelatedField(
        queryset=Patient.objects.all(), source='patient', required=False
    )
    patient = PatientSerializer(required=False, source='new_patient')
    # defaults to the caller; anything else is refused by the policy
    referringDoctorId = serializers.IntegerField(source='referring_doctor_id', required=False)
    targetSpecialistId = serializers.PrimaryKeyRelatedField(
        queryset=Profile.objects.all(), source='target_specialist', required=False, allow_null=True
    )
    originHospitalId = serializers.PrimaryKeyRelatedField(
        queryset=Hospital.objects.all(), source='origin_hospital', required=False
    )
    targetHospitalId = serializers.PrimaryKeyRelatedField(queryset=Hospital.objects.all(), source='target_hospital')
    targetDepartmentId = serializers.PrimaryKeyRelatedField(
        queryset=Department.objects.all(), source='target_department'
    )
    reason = CleanCharField()
    urgency = serializers.ChoiceField(choices=URGENCY_CHOICES, required=False, default='medium')
    notes = CleanCharField(required=False, allow_null=True, allow_blank=True)

    def validate(self, attrs):
        has_ref = 'patientId' in self.initial_data
        has_inline = 'patient' in self.initial_data
        if has_ref == has_inline:
            raise serializers.ValidationError('provide exactly one of patientId or patient')
        return attrs


class ReferralUpdateSerializer(serializers.Serializer):
    """Every mutable referral column; the policy decides which ones apply."""
    status = serializers.ChoiceField(choices=Referral.STATUS_CHOICES, required=False)
    specialistNotes = CleanCharField(source='specialist_notes', required=False, allow_null=True, allow_blank=True)
    appointmentDate = serializers.DateTimeField(source='appointment_date', required=False, allow_null=True)
    targetSpecialistId = serializers.PrimaryKeyRelatedField(
        queryset=Profile.objects.all(), source='target_specialist', required=False, allow_null=True
    )
    urgency = serializers.ChoiceField(choices=URGENCY_CHOICES, required=False)
    notes = CleanCharField(required=False, allow_null=True, allow_blank=True)
    reason = CleanCharField(required=False)


class ReferralListQuerySerializer(serializers.Serializer):
    scope = serializers.ChoiceField(choices=SCOPES, required=False)
    status = serializers.ChoiceField(choices=Referral.STATUS_CHOICES, required=False)
    urgency = serializers.ChoiceField(choices=URGENCY_CHOICES, required=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)
