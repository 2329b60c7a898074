from rest_framework import serializers

from referrals.models import Hospital, Profile

from .fields import CleanCharField


class HospitalSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255)
    address = CleanCharField(max_length=255)
    city = CleanCharField(max_length=120)
    state = CleanCharField(max_length=120)
    phone = serializers.CharField(max_length=32)
    email = serializers.EmailField(required=False, allow_null=True, allow_blank=True)


class DepartmentSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255)
    description = CleanCharField(required=False, allow_null=True, allow_blank=True)
    hospitalId = serializers.PrimaryKeyRelatedField(queryset=Hospital.objects.all(), source='hospital')
    headDoctorId = serializers.PrimaryKeyRelatedField(
        queryset=Profile.objects.all(), source='head_doctor', required=False, allow_null=True
    )


class DepartmentListQuerySerializer(serializers.Serializer):
    hospitalId = serializers.UUIDField(required=False)
