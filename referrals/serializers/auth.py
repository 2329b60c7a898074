from rest_framework import serializers

from referrals.models import ROLE_DOCTOR, ROLE_PATIENT, ROLE_SPECIALIST

from .fields import CleanCharField

# admin profiles are only created by another admin
SIGNUP_ROLES = [ROLE_PATIENT, ROLE_DOCTOR, ROLE_SPECIALIST]


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField()

    def validate_username(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('username is required')
        return v

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('password is required')
        return v


class SignupSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(write_only=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    fullName = CleanCharField(max_length=255, source='full_name')
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    role = serializers.ChoiceField(choices=SIGNUP_ROLES, required=False, default=ROLE_PATIENT)

    def validate_username(self, v):
        from django.contrib.auth import get_user_model
        v = v.strip()
        if get_user_model().objects.filter(username__iexact=v).exists():
            raise serializers.ValidationError('username already taken')
        return v

    def validate_email(self, v):
        from referrals.models import Profile
        if v and Profile.objects.filter(email__iexact=v).exists():
            raise serializers.ValidationError('email already registered')
        return v
