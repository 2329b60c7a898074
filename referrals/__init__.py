"""Referral coordination application.

This package holds the models, access policy, identifier generation,
public tracking gateway, services, serializers, views and route
registrations of the hospital referral backend.
"""
