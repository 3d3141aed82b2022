"""
core.domain.transactions: helpers for safe state transitions.

Wraps ``select_for_update`` and the optimistic ``version`` column into
reusable patterns so every service that mutates a versioned row follows
the same approach. Both helpers expect an enclosing ``transaction.atomic()``.

Two layers protect a transition:

* a **row lock** taken with ``select_for_update(nowait=True)``; a second
  writer fails fast with ``Conflict`` instead of queueing;
* a **conditional write** ``UPDATE ... WHERE version = <read version>``;
  zero affected rows means someone else won and yields ``Conflict``.

Backends without row locks (SQLite) rely on the conditional write alone.

Usage::

    from core.domain.transactions import lock_for_update, versioned_update

    with transaction.atomic():
        report = lock_for_update(Report, report_id)
        ...
        versioned_update(report, status=target, assignee=assignee)
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from django.db import DatabaseError, connection, models
from django.db.models import F
from django.utils import timezone

from core.domain.exceptions import Conflict, NotFound

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=models.Model)


def lock_for_update(model_class: type[M], pk: Any, *, nowait: bool = True) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Must be called inside an ``atomic()`` block.

    Parameters
    ----------
    model_class : type[Model]
        The Django model class.
    pk : Any
        Primary key value.
    nowait : bool
        Fail immediately when another transaction holds the lock.

    Returns
    -------
    Model
        The locked model instance.

    Raises
    ------
    NotFound
        If no row with that PK exists.
    Conflict
        If the row is locked by a concurrent transaction.
    """
    qs = model_class.objects.all()
    if connection.features.has_select_for_update:
        use_nowait = nowait and connection.features.has_select_for_update_nowait
        qs = qs.select_for_update(nowait=use_nowait)
    try:
        return qs.get(pk=pk)
    except model_class.DoesNotExist:
        raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")
    except DatabaseError as exc:
        logger.info("Row lock busy on %s pk=%s: %s", model_class.__name__, pk, exc)
        raise Conflict(
            f"{model_class.__name__} {pk} is being modified by another request."
        ) from exc


def versioned_update(
    instance: M,
    *,
    version_field: str = "version",
    **changes: Any,
) -> M:
    """
    Persist ``changes`` only if ``version_field`` still holds the value read
    into ``instance``; bump the version in the same statement.

    ``updated_at`` is refreshed automatically when the model has one.

    Returns
    -------
    Model
        ``instance`` reloaded from the database.

    Raises
    ------
    Conflict
        If the stored version moved since ``instance`` was read.
    """
    model_class = type(instance)
    expected = getattr(instance, version_field)

    values = dict(changes)
    values[version_field] = F(version_field) + 1
    if any(f.name == "updated_at" for f in model_class._meta.concrete_fields):
        values["updated_at"] = timezone.now()

    updated = (
        model_class.objects
        .filter(pk=instance.pk, **{version_field: expected})
        .update(**values)
    )
    if updated == 0:
        raise Conflict(
            f"{model_class.__name__} {instance.pk} was modified concurrently; "
            f"reload and retry."
        )

    instance.refresh_from_db()
    return instance
