"""
Row-level visibility and mutation policy.

All access rules live in one table, :data:`POLICIES`.  A rule names the
table it protects, the actions it grants, the roles it can ever admit
and two predicates over a resolved :class:`~referrals.identity.Caller`:

``using``
    builds a ``Q`` filter selecting the existing rows the rule admits.
    It scopes reads and decides which rows may be updated or deleted.

``check``
    inspects a new or modified row before it is written.

Rules are permissive: a caller may act on a row when *any* applicable
rule admits it, and a table or action without a matching rule admits
nothing.  Update rules may additionally restrict the columns they allow
to change; the caller may write the union of the columns allowed by the
rules that matched the existing row.

Reads that no rule admits come back as empty querysets, never as
errors.  Writes that no rule admits raise :class:`PolicyViolation`.
Predicates only use the caller snapshot and the row itself; they never
query ``profiles`` again.
"""
from __future__ import annotations

import logging
import operator
from collections import defaultdict
from dataclasses import dataclass
from functools import reduce
from typing import Any, Callable, Iterable, Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.db.models import Q

from .identity import Caller, ROLE_AUTHENTICATED
from .models import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, ROLE_SPECIALIST

logger = logging.getLogger(__name__)

# Bump whenever a rule in POLICIES changes.
POLICY_VERSION = 7

READ = 'read'
INSERT = 'insert'
UPDATE = 'update'
DELETE = 'delete'
WRITE_ACTIONS = frozenset({INSERT, UPDATE, DELETE})
ALL_ACTIONS = frozenset({READ}) | WRITE_ACTIONS

ANY_ROLE = frozenset({ROLE_ADMIN, ROLE_DOCTOR, ROLE_SPECIALIST, ROLE_PATIENT})
CLINICAL_STAFF = frozenset({ROLE_ADMIN, ROLE_DOCTOR, ROLE_SPECIALIST})
# Any signed-in identity, with or without a profile.
ANY_IDENTITY = ANY_ROLE | {ROLE_AUTHENTICATED}

ALL_ROWS = Q(pk__isnull=False)
NO_ROWS = Q(pk__in=[])

# Columns no rule may ever change.
IMMUTABLE_COLUMNS = frozenset({'id', 'patient_id', 'referral_id', 'created_at', 'user'})

PROFILE_SELF_COLUMNS = frozenset({'full_name', 'email', 'phone', 'license_number', 'specialization'})
REFERRAL_SPECIALIST_COLUMNS = frozenset({'status', 'specialist_notes', 'appointment_date', 'target_specialist'})
REFERRAL_ADMIN_COLUMNS = REFERRAL_SPECIALIST_COLUMNS | {'urgency', 'notes', 'reason'}


class PolicyViolation(IntegrityError):
    """A write was rejected by the row-level policy."""

    def __init__(self, entity: str, action: str, message: str = ''):
        self.entity = entity
        self.action = action
        super().__init__(message or f'{action} on {entity} violates row-level policy')


@dataclass(frozen=True)
class Rule:
    name: str
    entity: str
    actions: frozenset
    roles: frozenset
    using: Callable[[Caller], Q] = lambda caller: NO_ROWS
    check: Callable[[Caller, Any], bool] = lambda caller, row: False
    columns: Optional[frozenset] = None


def _everything(caller: Caller) -> Q:
    return ALL_ROWS


def _always(caller: Caller, row) -> bool:
    return True


def _own_row(caller: Caller) -> Q:
    return Q(pk=caller.profile_id)


def _own_assignments(caller: Caller) -> Q:
    return Q(doctor_id=caller.profile_id)


def _patients_at_home_hospital(caller: Caller) -> Q:
    if caller.is_admin:
        return ALL_ROWS
    if caller.hospital_id is None:
        return NO_ROWS
    return Q(current_hospital_id=caller.hospital_id)


def _referrals_at_home_hospital(caller: Caller) -> Q:
    if caller.hospital_id is None:
        return NO_ROWS
    return Q(target_hospital_id=caller.hospital_id)


POLICIES = (
    # hospitals
    Rule('hospitals_read_authenticated', 'hospitals', frozenset({READ}), ANY_IDENTITY, using=_everything),
    Rule('hospitals_admin_manage', 'hospitals', WRITE_ACTIONS, frozenset({ROLE_ADMIN}),
         using=_everything, check=_always),

    # departments; doctors may manage them as well as admins
    Rule('departments_read_authenticated', 'departments', frozenset({READ}), ANY_IDENTITY, using=_everything),
    Rule('departments_staff_manage', 'departments', WRITE_ACTIONS, frozenset({ROLE_ADMIN, ROLE_DOCTOR}),
         using=_everything, check=_always),

    # profiles
    Rule('profiles_read_own', 'profiles', frozenset({READ}), ANY_ROLE, using=_own_row),
    Rule('profiles_update_own', 'profiles', frozenset({UPDATE}), ANY_ROLE,
         using=_own_row,
         check=lambda caller, row: row.pk == caller.profile_id,
         columns=PROFILE_SELF_COLUMNS),
    Rule('profiles_admin_read', 'profiles', frozenset({READ}), frozenset({ROLE_ADMIN}), using=_everything),
    Rule('profiles_admin_insert', 'profiles', frozenset({INSERT}), frozenset({ROLE_ADMIN}), check=_always),
    Rule('profiles_admin_update', 'profiles', frozenset({UPDATE}), frozenset({ROLE_ADMIN}),
         using=_everything, check=_always),

    # patients
    Rule('patients_read_clinical_staff', 'patients', frozenset({READ}), CLINICAL_STAFF,
         using=_patients_at_home_hospital),
    Rule('patients_manage_doctors', 'patients', WRITE_ACTIONS, frozenset({ROLE_ADMIN, ROLE_DOCTOR}),
         using=_patients_at_home_hospital, check=_always),

    # referrals
    Rule('referrals_read_referring_doctor', 'referrals', frozenset({READ}), ANY_ROLE,
         using=lambda caller: Q(referring_doctor_id=caller.profile_id)),
    Rule('referrals_read_assigned_specialist', 'referrals', frozenset({READ}), ANY_ROLE,
         using=lambda caller: Q(target_specialist_id=caller.profile_id)),
    Rule('referrals_read_target_hospital_specialists', 'referrals', frozenset({READ}),
         frozenset({ROLE_SPECIALIST}), using=_referrals_at_home_hospital),
    Rule('referrals_read_admin', 'referrals', frozenset({READ}), frozenset({ROLE_ADMIN}), using=_everything),
    Rule('referrals_insert_as_self', 'referrals', frozenset({INSERT}), CLINICAL_STAFF,
         check=lambda caller, row: row.referring_doctor_id == caller.profile_id),
    Rule('referrals_update_assigned_specialist', 'referrals', frozenset({UPDATE}), ANY_ROLE,
         using=lambda caller: Q(target_specialist_id=caller.profile_id),
         check=lambda caller, row: row.target_specialist_id == caller.profile_id,
         columns=REFERRAL_SPECIALIST_COLUMNS),
    Rule('referrals_update_target_hospital_specialists', 'referrals', frozenset({UPDATE}),
         frozenset({ROLE_SPECIALIST}),
         using=_referrals_at_home_hospital,
         check=lambda caller, row: caller.hospital_id is not None and row.target_hospital_id == caller.hospital_id,
         columns=REFERRAL_SPECIALIST_COLUMNS),
    Rule('referrals_update_admin', 'referrals', frozenset({UPDATE}), frozenset({ROLE_ADMIN}),
         using=_everything, check=_always, columns=REFERRAL_ADMIN_COLUMNS),

    # doctor assignment junctions
    Rule('doctor_hospitals_read_own', 'doctor_hospitals', frozenset({READ}), ANY_ROLE, using=_own_assignments),
    Rule('doctor_hospitals_admin_manage', 'doctor_hospitals', ALL_ACTIONS, frozenset({ROLE_ADMIN}),
         using=_everything, check=_always),
    Rule('doctor_departments_read_own', 'doctor_departments', frozenset({READ}), ANY_ROLE,
         using=_own_assignments),
    Rule('doctor_departments_admin_manage', 'doctor_departments', ALL_ACTIONS, frozenset({ROLE_ADMIN}),
         using=_everything, check=_always),
)


class PolicyEngine:
    """Evaluates a rule table against callers and rows."""

    def __init__(self, rules: Iterable[Rule], version: int):
        self.rules = tuple(rules)
        self.version = version
        self._by_entity: dict[str, list[Rule]] = defaultdict(list)
        for rule in self.rules:
            self._by_entity[rule.entity].append(rule)

    def rules_for(self, entity: str, action: str, caller: Optional[Caller]) -> list[Rule]:
        if caller is None:
            return []
        return [
            r for r in self._by_entity.get(entity, ())
            if action in r.actions and caller.role in r.roles
        ]

    def scope(self, caller: Optional[Caller], model, action: str = READ):
        """Return the queryset of ``model`` rows ``caller`` may act on."""
        entity = model._meta.db_table
        qs = model._default_manager.all()
        rules = self.rules_for(entity, action, caller)
        if not rules:
            return qs.none()
        return qs.filter(reduce(operator.or_, (r.using(caller) for r in rules)))

    def can_read(self, caller: Optional[Caller], obj) -> bool:
        return self.scope(caller, type(obj)).filter(pk=obj.pk).exists()

    def authorize_insert(self, caller: Optional[Caller], obj) -> None:
        entity = obj._meta.db_table
        rules = self.rules_for(entity, INSERT, caller)
        if not any(r.check(caller, obj) for r in rules):
            self._deny(caller, entity, INSERT)

    def authorize_update(self, caller: Optional[Caller], obj, fields: Iterable[str]) -> None:
        """Authorize writing ``fields`` of ``obj``.

        ``obj`` carries the new values in memory; the stored row still
        holds the old ones, which is what the ``using`` filters test.
        """
        model = type(obj)
        entity = model._meta.db_table
        fields = set(fields)
        frozen = fields & IMMUTABLE_COLUMNS
        if frozen:
            raise ValidationError({f: 'this field cannot be changed' for f in sorted(frozen)})
        rules = self.rules_for(entity, UPDATE, caller)
        stored = model._default_manager.filter(pk=obj.pk)
        matched = [r for r in rules if stored.filter(r.using(caller)).exists()]
        if not matched or not any(r.check(caller, obj) for r in rules):
            self._deny(caller, entity, UPDATE)
        if any(r.columns is None for r in matched):
            return
        allowed = reduce(operator.or_, (r.columns for r in matched))
        forbidden = fields - allowed
        if forbidden:
            self._deny(caller, entity, UPDATE, f"columns not writable: {', '.join(sorted(forbidden))}")

    def authorize_delete(self, caller: Optional[Caller], obj) -> None:
        entity = obj._meta.db_table
        if not self.scope(caller, type(obj), DELETE).filter(pk=obj.pk).exists():
            self._deny(caller, entity, DELETE)

    def matrix(self) -> list[dict]:
        """Flatten the table for audits: one entry per rule and action."""
        rows = []
        for rule in self.rules:
            for action in sorted(rule.actions):
                rows.append({
                    'entity': rule.entity,
                    'action': action,
                    'rule': rule.name,
                    'roles': sorted(rule.roles),
                    'columns': sorted(rule.columns) if rule.columns is not None and action == UPDATE else None,
                })
        return sorted(rows, key=lambda r: (r['entity'], r['action'], r['rule']))

    def _deny(self, caller: Optional[Caller], entity: str, action: str, message: str = '') -> None:
        logger.warning(
            "policy denied %s on %s for caller %s (%s)",
            action, entity,
            getattr(caller, 'profile_id', None), getattr(caller, 'role', 'anonymous'),
        )
        raise PolicyViolation(entity, action, message)


engine = PolicyEngine(POLICIES, POLICY_VERSION)
