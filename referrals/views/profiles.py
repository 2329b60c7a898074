"""
Profile endpoints.

``/api/profile`` is the caller's own row.  The collection endpoints are
mostly used by administrators; other callers simply see their own
profile in the list because that is all the policy lets them read.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..identity import require_caller
from ..models import Profile
from ..permissions import HasProfile
from ..serializers.profiles import ProfileCreateSerializer, ProfileListQuerySerializer, ProfileUpdateSerializer
from ..services.profiles import create_profile_as_admin, list_profiles, update_profile
from ..services.records import get_visible
from .common import ok


def serialize_profile(p: Profile) -> dict:
    return {
        'id': p.pk,
        'fullName': p.full_name,
        'email': p.email,
        'phone': p.phone,
        'role': p.role,
        'hospitalId': p.hospital_id,
        'departmentId': p.department_id,
        'licenseNumber': p.license_number,
        'specialization': p.specialization,
        'createdAt': p.created_at,
        'updatedAt': p.updated_at,
    }


def _validated_changes(request) -> dict:
    s = ProfileUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    return dict(s.validated_data)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, HasProfile])
def my_profile(request):
    caller = require_caller(request)
    if request.method == 'GET':
        return ok(serialize_profile(get_visible(caller, Profile, caller.profile_id)))
    profile = update_profile(caller, caller.profile_id, _validated_changes(request))
    return ok(serialize_profile(profile))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasProfile])
def profiles(request):
    caller = require_caller(request)
    if request.method == 'GET':
        q = ProfileListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        qs = list_profiles(caller, role=q.validated_data.get('role'), hospital_id=q.validated_data.get('hospitalId'))
        return ok([serialize_profile(p) for p in qs])

    # only the admin insert rule admits this
    s = ProfileCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    hospital = vd.get('hospital')
    department = vd.get('department')
    metadata = {
        'role': vd['role'],
        'full_name': vd['full_name'],
        'phone': vd.get('phone') or None,
        'hospital_id': hospital.pk if hospital else None,
        'department_id': department.pk if department else None,
        'license_number': vd.get('license_number') or None,
        'specialization': vd.get('specialization') or None,
    }
    profile = create_profile_as_admin(
        caller, username=vd['username'], password=vd['password'], email=vd.get('email', ''), metadata=metadata
    )
    return ok(serialize_profile(profile), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, HasProfile])
def profile_detail(request, pk):
    caller = require_caller(request)
    if request.method == 'GET':
        return ok(serialize_profile(get_visible(caller, Profile, pk)))
    profile = update_profile(caller, pk, _validated_changes(request))
    return ok(serialize_profile(profile))
