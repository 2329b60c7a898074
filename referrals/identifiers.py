"""
Business identifier generation for patients and referrals.

Identifiers look like ``PAT-2025-004211`` / ``REF-2025-000937``: a fixed
prefix, the four digit creation year and a zero padded random six digit
suffix.  A candidate is checked against the table first, but the check
is only an optimisation: the unique index on the identifier column is
what keeps identifiers unique.  Every insert attempt runs in its own
savepoint so a uniqueness violation on the identifier can be rolled back
and retried with a fresh candidate, while any other integrity error is
re-raised unchanged.
"""
from __future__ import annotations

import logging
import re
import secrets
from typing import Callable

from django.db import IntegrityError, transaction
from django.db import models
from django.utils import timezone

logger = logging.getLogger(__name__)

PATIENT_PREFIX = 'PAT'
REFERRAL_PREFIX = 'REF'
SUFFIX_SPACE = 1_000_000

BUSINESS_ID_RE = re.compile(r'^(PAT|REF)-\d{4}-\d{6}$')


def random_suffix() -> int:
    return secrets.randbelow(SUFFIX_SPACE)


def current_year() -> int:
    return timezone.localtime(timezone.now()).year


def generate_candidate(prefix: str) -> str:
    return f"{prefix}-{current_year():04d}-{random_suffix():06d}"


def is_taken(model, field: str, candidate: str) -> bool:
    return model._base_manager.filter(**{field: candidate}).exists()


def insert_with_business_id(instance: models.Model, field: str, prefix: str, do_insert: Callable[[], None]) -> None:
    """Assign ``instance.<field>`` and run ``do_insert`` until it sticks.

    Retries are unbounded; the loop only spins on real collisions.
    """
    model = type(instance)
    attempt = 0
    while True:
        attempt += 1
        candidate = generate_candidate(prefix)
        if is_taken(model, field, candidate):
            logger.info("%s collision on %s (attempt %d)", model.__name__, candidate, attempt)
            continue
        setattr(instance, field, candidate)
        try:
            with transaction.atomic():
                do_insert()
            return
        except IntegrityError:
            if not is_taken(model, field, candidate):
                setattr(instance, field, '')
                raise
            logger.info("%s lost insert race on %s (attempt %d)", model.__name__, candidate, attempt)
            instance._state.adding = True


class BusinessIdentifierMixin(models.Model):
    """Assigns the business identifier on insert when none was supplied."""
    business_id_field: str = ''
    business_id_prefix: str = ''

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if self._state.adding and not getattr(self, self.business_id_field):
            insert_with_business_id(
                self,
                self.business_id_field,
                self.business_id_prefix,
                lambda: super(BusinessIdentifierMixin, self).save(*args, **kwargs),
            )
            return
        super().save(*args, **kwargs)
