"""
URL mappings for the referral API.

Trailing slashes are omitted, matching ``APPEND_SLASH = False``.
"""
from django.urls import include, path

from .auth_views import jwt_logout_view, jwt_refresh_view, login_view, signup_view
from .views import assignments, dashboard, directory, patients, profiles, public, referrals
from .views.health import healthz

urlpatterns = [
    # auth
    path('api/auth/login', login_view, name='auth-login'),
    path('api/auth/signup', signup_view, name='auth-signup'),
    path('api/auth/refresh', jwt_refresh_view, name='auth-refresh'),
    path('api/auth/logout', jwt_logout_view, name='auth-logout'),

    # hospitals & departments
    path('api/hospitals', directory.hospitals, name='hospitals'),
    path('api/hospitals/<uuid:pk>', directory.hospital_detail, name='hospital-detail'),
    path('api/departments', directory.departments, name='departments'),
    path('api/departments/<uuid:pk>', directory.department_detail, name='department-detail'),

    # profiles
    path('api/profile', profiles.my_profile, name='my-profile'),
    path('api/profiles', profiles.profiles, name='profiles'),
    path('api/profiles/<int:pk>', profiles.profile_detail, name='profile-detail'),

    # patients
    path('api/patients', patients.patients, name='patients'),
    path('api/patients/<uuid:pk>', patients.patient_detail, name='patient-detail'),

    # referrals
    path('api/referrals', referrals.referrals, name='referrals'),
    path('api/referrals/<uuid:pk>', referrals.referral_detail, name='referral-detail'),

    # doctor assignments
    path('api/assignments/hospitals', assignments.hospital_assignments, name='hospital-assignments'),
    path('api/assignments/hospitals/<uuid:pk>', assignments.hospital_assignment_detail,
         name='hospital-assignment-detail'),
    path('api/assignments/departments', assignments.department_assignments, name='department-assignments'),
    path('api/assignments/departments/<uuid:pk>', assignments.department_assignment_detail,
         name='department-assignment-detail'),
    path('api/doctors/<int:pk>/assignments', assignments.doctor_assignments, name='doctor-assignments'),

    path('api/dashboard', dashboard.dashboard, name='dashboard'),

    # anonymous tracking
    path('api/public/referrals/<str:referral_id>', public.track_referral, name='public-referral'),

    # health & metrics
    path('healthz', healthz, name='healthz'),
    path('', include('django_prometheus.urls')),
]
