from rest_framework import serializers

from referrals.identifiers import BUSINESS_ID_RE
from referrals.models import GENDER_CHOICES, Hospital

from .fields import CleanCharField


class PatientSerializer(serializers.Serializer):
    fullName = CleanCharField(max_length=255, source='full_name')
    dateOfBirth = serializers.DateField(source='date_of_birth')
    gender = serializers.ChoiceField(choices=GENDER_CHOICES)
    phone = serializers.CharField(max_length=32, required=False, allow_null=True, allow_blank=True)
    email = serializers.EmailField(required=False, allow_null=True, allow_blank=True)
    address = CleanCharField(required=False, allow_null=True, allow_blank=True)
    emergencyContactName = CleanCharField(
        max_length=255, source='emergency_contact_name', required=False, allow_null=True, allow_blank=True
    )
    emergencyContactPhone = serializers.CharField(
        max_length=32, source='emergency_contact_phone', required=False, allow_null=True, allow_blank=True
    )
    medicalHistory = CleanCharField(source='medical_history', required=False, allow_null=True, allow_blank=True)
    currentHospitalId = serializers.PrimaryKeyRelatedField(
        queryset=Hospital.objects.all(), source='current_hospital', required=False, allow_null=True
    )


class PatientCreateSerializer(PatientSerializer):
    # an explicit identifier is accepted on create only, e.g. for imports
    patientId = serializers.CharField(source='patient_id', required=False, max_length=32)

    def validate_patientId(self, v):
        v = v.strip().upper()
        if not BUSINESS_ID_RE.match(v) or not v.startswith('PAT-'):
            raise serializers.ValidationError('expected PAT-YYYY-NNNNNN')
        return v


class PatientListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=64, required=False)
    hospitalId = serializers.UUIDField(required=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)
