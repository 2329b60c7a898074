"""
Policy-checked writes.

Each helper runs one write inside a single transaction: the policy
check, the model invariants (``clean``), the save and the audit event
either all happen or none do.  Rows the caller cannot read are reported
as missing (404) rather than forbidden so that hidden rows stay hidden.
"""
from __future__ import annotations

from typing import Any, Callable, Optional

from django.db import transaction
from django.http import Http404

from referrals.identity import Caller
from referrals.policy import engine
from referrals.services.audit import log_action


def _has_field(model, name: str) -> bool:
    return any(f.name == name for f in model._meta.concrete_fields)


def get_visible(caller: Caller, model, pk):
    obj = engine.scope(caller, model).filter(pk=pk).first()
    if obj is None:
        raise Http404(f'{model._meta.db_table} not found')
    return obj


def create_record(caller: Caller, obj, *, detail: Optional[dict] = None):
    entity = obj._meta.db_table
    with transaction.atomic():
        engine.authorize_insert(caller, obj)
        obj.clean()
        obj.save()
        log_action(user=caller, action=f'{entity}.create', object_type=entity, object_id=obj.pk, detail=detail)
    return obj


def update_record(
    caller: Caller,
    model,
    pk,
    changes: dict[str, Any],
    *,
    prepare: Optional[Callable[[Any, dict], dict]] = None,
    after: Optional[Callable[[Any, dict], None]] = None,
):
    """Apply ``changes`` to one row.

    ``prepare(obj, changes)`` may inspect the stored row and return an
    adjusted change set before anything is authorized; ``after(obj,
    previous)`` runs after the save, in the same transaction, with the
    previous values of the changed fields.
    """
    entity = model._meta.db_table
    with transaction.atomic():
        get_visible(caller, model, pk)
        obj = model._default_manager.select_for_update().get(pk=pk)
        if prepare is not None:
            changes = prepare(obj, dict(changes))
        fields = [name for name, value in changes.items() if getattr(obj, name) != value]
        previous = {name: getattr(obj, name) for name in fields}
        for name in fields:
            setattr(obj, name, changes[name])
        engine.authorize_update(caller, obj, fields)
        obj.clean()
        if fields:
            update_fields = list(fields)
            if _has_field(model, 'updated_at'):
                update_fields.append('updated_at')
            obj.save(update_fields=update_fields)
            log_action(
                user=caller, action=f'{entity}.update', object_type=entity, object_id=obj.pk,
                detail={'fields': sorted(fields)},
            )
        if after is not None:
            after(obj, previous)
    return obj


def delete_record(caller: Caller, model, pk) -> None:
    entity = model._meta.db_table
    with transaction.atomic():
        obj = get_visible(caller, model, pk)
        engine.authorize_delete(caller, obj)
        obj.delete()
        log_action(user=caller, action=f'{entity}.delete', object_type=entity, object_id=pk)
