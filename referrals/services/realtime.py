"""
Refresh events for connected dashboards.

A referral change is sent only to the channel groups whose members can
already read that referral, mirroring the referral read rules:

* ``referrals.profile.<id>``: the referring doctor and the assigned
  target specialist;
* ``referrals.hospital.<id>.specialists``: specialists whose home
  hospital is the target hospital;
* ``referrals.admins``: administrators.

A socket joins the groups :func:`groups_for` gives its caller, so a
caller no read rule admits receives nothing.
"""
from __future__ import annotations

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

from referrals.identity import Caller
from referrals.models import ROLE_SPECIALIST

ADMINS_GROUP = 'referrals.admins'


def profile_group(profile_id) -> str:
    return f'referrals.profile.{profile_id}'


def hospital_specialists_group(hospital_id) -> str:
    return f'referrals.hospital.{hospital_id}.specialists'


def groups_for(caller: Caller) -> list[str]:
    """Groups a socket opened by ``caller`` subscribes to."""
    if caller.is_admin:
        return [ADMINS_GROUP]
    groups = [profile_group(caller.profile_id)]
    if caller.role == ROLE_SPECIALIST and caller.hospital_id is not None:
        groups.append(hospital_specialists_group(caller.hospital_id))
    return groups


def referral_audience(referral) -> list[str]:
    groups = [profile_group(referral.referring_doctor_id)]
    if referral.target_specialist_id is not None:
        groups.append(profile_group(referral.target_specialist_id))
    groups.append(hospital_specialists_group(referral.target_hospital_id))
    groups.append(ADMINS_GROUP)
    return list(dict.fromkeys(groups))


def broadcast_referral_update(groups: list[str], payload: dict) -> None:
    """Send a ``referral.updated`` event to each of ``groups``.

    A socket subscribed to several of them gets the event once per group.
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    event = {'type': 'referral.updated', **payload, 'ts': timezone.now().isoformat()}
    send = async_to_sync(channel_layer.group_send)
    for group in groups:
        send(group, event)
