from rest_framework import serializers

from referrals.models import Department, Hospital, ROLE_CHOICES

from .fields import CleanCharField


class ProfileUpdateSerializer(serializers.Serializer):
    """Any profile column.  Which ones a caller may change is up to the policy."""
    fullName = CleanCharField(max_length=255, source='full_name', required=False)
    email = serializers.EmailField(required=False, allow_null=True)
    phone = serializers.CharField(max_length=32, required=False, allow_null=True, allow_blank=True)
    licenseNumber = serializers.CharField(max_length=64, source='license_number', required=False, allow_null=True)
    specialization = CleanCharField(max_length=255, required=False, allow_null=True)
    role = serializers.ChoiceField(choices=ROLE_CHOICES, required=False)
    hospitalId = serializers.PrimaryKeyRelatedField(
        queryset=Hospital.objects.all(), source='hospital', required=False, allow_null=True
    )
    departmentId = serializers.PrimaryKeyRelatedField(
        queryset=Department.objects.all(), source='department', required=False, allow_null=True
    )

    def validate_email(self, v):
        return v or None


class ProfileCreateSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(write_only=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    fullName = CleanCharField(max_length=255, source='full_name')
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    role = serializers.ChoiceField(choices=ROLE_CHOICES)
    hospitalId = serializers.PrimaryKeyRelatedField(
        queryset=Hospital.objects.all(), source='hospital', required=False, allow_null=True
    )
    departmentId = serializers.PrimaryKeyRelatedField(
        queryset=Department.objects.all(), source='department', required=False, allow_null=True
    )
    licenseNumber = serializers.CharField(max_length=64, source='license_number', required=False, allow_blank=True)
    specialization = CleanCharField(max_length=255, required=False, allow_blank=True)

    def validate_username(self, v):
        from django.contrib.auth import get_user_model
        v = v.strip()
        if get_user_model().objects.filter(username__iexact=v).exists():
            raise serializers.ValidationError('username already taken')
        return v


class ProfileListQuerySerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=ROLE_CHOICES, required=False)
    hospitalId = serializers.UUIDField(required=False)
