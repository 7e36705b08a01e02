"""
Clamped value changes for counters.

``apply_value`` is the only place a counter's value is written. It expects
the counter row to be locked by the caller (see ``lock_counter``) and the
call to sit inside ``transaction.atomic``, so that reading the old value,
writing the new one and appending history cannot interleave with another
writer.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.http import Http404

from rowkeeper.core.models.counter import Counter, CounterHistory, CounterLink

logger = logging.getLogger(__name__)


class StaleCounterError(Exception):
    """Raised when a counter changed since the version the caller last saw."""

    def __init__(self, counter_id, expected_version: int, actual_version: int):
        self.counter_id = counter_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Counter {counter_id} is at version {actual_version}, "
            f"expected {expected_version}"
        )


@dataclass
class ApplyResult:
    """Outcome of applying a requested value to a counter."""

    counter: Counter
    old_value: int
    new_value: int
    changed: bool
    history_entry: Optional[CounterHistory] = None


def lock_counter(counter_id, project=None, *, with_link_targets=False) -> Counter:
    """
    Re-read a counter with a row lock held until the transaction ends.

    With ``with_link_targets`` the targets of the counter's active outgoing
    links are locked too, together with the counter and in primary key order.
    Two writers whose counters link to each other then queue behind one
    another instead of deadlocking. Links created after the lock is taken
    are not covered; ``propagate`` still locks each target it touches.

    Raises Http404 if the counter does not exist or is outside ``project``.
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("lock_counter must be called inside transaction.atomic")

    queryset = Counter.objects.all()
    if project is not None:
        queryset = queryset.filter(project=project)
    try:
        if not with_link_targets:
            return queryset.select_for_update().get(pk=counter_id)
        counter_id = queryset.values_list("pk", flat=True).get(pk=counter_id)
    except (Counter.DoesNotExist, ValidationError):
        raise Http404("Counter not found")

    target_ids = (
        CounterLink.objects.active()
        .filter(source_counter_id=counter_id)
        .values_list("target_counter_id", flat=True)
    )
    locked = lock_counters([counter_id, *target_ids])
    if counter_id not in locked:
        raise Http404("Counter not found")
    return locked[counter_id]


def lock_counters(counter_ids) -> dict:
    """Lock counters in primary key order. Ids that no longer exist are left out."""
    counters = (
        Counter.objects.select_for_update()
        .filter(pk__in=set(counter_ids))
        .order_by("pk")
    )
    return {counter.pk: counter for counter in counters}


def check_version(counter: Counter, expected_version: Optional[int]) -> None:
    if expected_version is not None and expected_version != counter.version:
        raise StaleCounterError(counter.id, expected_version, counter.version)


def apply_value(
    counter: Counter,
    requested_value: int,
    *,
    action: str = CounterHistory.UPDATED,
    note: Optional[str] = None,
    user=None,
    always_record: bool = False,
) -> ApplyResult:
    """
    Clamp ``requested_value`` into the counter's bounds and store it.

    When the clamped value equals the current one the counter row is not
    written and the version stays put. No history entry is appended either,
    unless ``always_record`` is set. Otherwise the value, version and
    modified timestamp are saved and one history entry is appended.
    """
    old_value = counter.current_value
    new_value = counter.clamp(int(requested_value))

    if new_value != requested_value:
        logger.debug(
            "Clamped counter %s from %s to %s", counter.id, requested_value, new_value
        )

    if new_value == old_value:
        entry = None
        if always_record:
            entry = CounterHistory.objects.append(
                counter, old_value, new_value, action, note=note, user=user
            )
        return ApplyResult(
            counter=counter,
            old_value=old_value,
            new_value=new_value,
            changed=False,
            history_entry=entry,
        )

    counter.current_value = new_value
    counter.version += 1
    counter.save(update_fields=["current_value", "version", "modified"])

    entry = CounterHistory.objects.append(
        counter, old_value, new_value, action, note=note, user=user
    )

    return ApplyResult(
        counter=counter,
        old_value=old_value,
        new_value=new_value,
        changed=True,
        history_entry=entry,
    )
