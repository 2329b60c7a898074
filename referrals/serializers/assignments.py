from rest_framework import serializers

from referrals.models import Department, Hospital, Profile


class HospitalAssignmentSerializer(serializers.Serializer):
    doctorId = serializers.PrimaryKeyRelatedField(queryset=Profile.objects.all(), source='doctor')
    hospitalId = serializers.PrimaryKeyRelatedField(queryset=Hospital.objects.all(), source='hospital')


class DepartmentAssignmentSerializer(serializers.Serializer):
    doctorId = serializers.PrimaryKeyRelatedField(queryset=Profile.objects.all(), source='doctor')
    departmentId = serializers.PrimaryKeyRelatedField(queryset=Department.objects.all(), source='department')
    hospitalId = serializers.PrimaryKeyRelatedField(
        queryset=Hospital.objects.all(), source='hospital', required=False
    )


class AssignmentReplaceSerializer(serializers.Serializer):
    hospitalIds = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)
    departmentIds = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)
