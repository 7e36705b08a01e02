"""Handlers for changing a counter's value and metadata."""

from dataclasses import dataclass, field
from typing import Any, Optional

from django.core.exceptions import ValidationError
from django.db import transaction

from rowkeeper.core.counters.policy import Direction, evaluate
from rowkeeper.core.counters.propagation import (
    LinkedUpdate,
    PropagationResult,
    propagate,
)
from rowkeeper.core.counters.store import apply_value, check_version, lock_counter
from rowkeeper.core.models.counter import Counter, CounterHistory
from rowkeeper.core.models.events import EventNoun, EventVerb, log_event
from rowkeeper.core.signals import notify_counter_changed
from rowkeeper.tracing import traced

# Everything a counter update may change besides current_value
COUNTER_METADATA_FIELDS = (
    "name",
    "type",
    "target_value",
    "increment_by",
    "min_value",
    "max_value",
    "increment_pattern",
    "sort_order",
    "is_visible",
    "is_active",
    "display_color",
    "notes",
    "parent_counter",
    "auto_reset",
)


@dataclass
class CounterValueResult:
    """Result of a value change, including any linked counters it moved."""

    counter: Counter
    old_value: int
    new_value: int
    changed: bool
    history_entry: Optional[CounterHistory] = None
    propagation: Optional[PropagationResult] = None

    @property
    def linked_updates(self) -> list[LinkedUpdate]:
        if self.propagation is None:
            return []
        return self.propagation.updates


@dataclass
class CounterUpdateResult:
    """Result of updating a counter's metadata and/or value."""

    counter: Counter
    value: CounterValueResult
    changed_fields: list[str] = field(default_factory=list)


def _commit_value(
    counter: Counter,
    requested_value: int,
    *,
    user,
    request,
    action: str,
    note: Optional[str],
) -> CounterValueResult:
    applied = apply_value(
        counter, requested_value, action=action, note=note, user=user
    )
    result = CounterValueResult(
        counter=counter,
        old_value=applied.old_value,
        new_value=applied.new_value,
        changed=applied.changed,
        history_entry=applied.history_entry,
    )
    if applied.changed:
        notify_counter_changed(counter)
        result.propagation = propagate(
            counter, applied.new_value, user=user, request=request
        )
    return result


def _audit_value_change(user, request, result: CounterValueResult, action: str):
    log_event(
        user=user,
        noun=EventNoun.COUNTER,
        verb=EventVerb.UPDATE,
        object=result.counter,
        request=request,
        old_values={"current_value": result.old_value},
        new_values={"current_value": result.new_value},
        action=action,
        counter_name=result.counter.name,
        linked_updates=len(result.linked_updates),
    )


@traced("handle_counter_value_change")
@transaction.atomic
def handle_counter_value_change(
    *,
    user,
    project,
    counter: Counter,
    value: int,
    action: str = CounterHistory.UPDATED,
    note: Optional[str] = None,
    expected_version: Optional[int] = None,
    request=None,
) -> CounterValueResult:
    """
    Set a counter to ``value``.

    This handler performs the following operations atomically:
    1. Re-reads the counter under a row lock
    2. Checks ``expected_version`` if one was given
    3. Clamps the value into the counter's bounds
    4. If the value changed: saves it, appends a history entry, applies
       linked counters (one hop) and records an audit event

    Args:
        user: User making the change
        project: Project the counter must belong to
        counter: Counter to change
        value: Requested value (clamped, never rejected)
        action: History label for the change
        note: Optional note stored on the history entry
        expected_version: Version the caller last saw, if any

    Returns:
        CounterValueResult; ``changed`` is False when clamping left the
        value where it was

    Raises:
        Http404: If the counter is not in the project
        StaleCounterError: If ``expected_version`` is stale
    """
    counter = lock_counter(counter.pk, project, with_link_targets=True)
    check_version(counter, expected_version)

    result = _commit_value(
        counter, value, user=user, request=request, action=action, note=note
    )
    if result.changed:
        _audit_value_change(user, request, result, action)
    return result


@traced("handle_counter_step")
@transaction.atomic
def handle_counter_step(
    *,
    user,
    project,
    counter: Counter,
    direction: Direction,
    click_count: Optional[int] = None,
    note: Optional[str] = None,
    expected_version: Optional[int] = None,
    request=None,
) -> CounterValueResult:
    """
    Move a counter one gesture up or down according to its increment pattern.

    The step comes from the counter's ``increment_pattern``; ``click_count``
    is only consulted by ``every_n`` patterns. A step of zero leaves the
    counter untouched.

    Raises:
        ValueError: If ``direction`` is not "increment" or "decrement"
    """
    if direction not in ("increment", "decrement"):
        raise ValueError(f"Invalid direction: {direction}")

    counter = lock_counter(counter.pk, project, with_link_targets=True)
    check_version(counter, expected_version)

    delta = evaluate(counter, direction, click_count)
    result = _commit_value(
        counter,
        counter.current_value + delta,
        user=user,
        request=request,
        action=direction,
        note=note,
    )
    if result.changed:
        _audit_value_change(user, request, result, direction)
    return result


@traced("handle_counter_update")
@transaction.atomic
def handle_counter_update(
    *,
    user,
    project,
    counter: Counter,
    changes: Optional[dict[str, Any]] = None,
    value: Optional[int] = None,
    action: Optional[str] = None,
    note: Optional[str] = None,
    expected_version: Optional[int] = None,
    request=None,
) -> CounterUpdateResult:
    """
    Update a counter's metadata and, optionally, its value in one transaction.

    Metadata is applied first, so a new value is clamped against the new
    bounds. When the bounds move and no value is given, the current value is
    clamped into them; if that moves it, the change is recorded and
    propagated like any other value change.

    Raises:
        ValueError: If ``changes`` names a field that cannot be updated
        ValidationError: If the resulting counter is invalid
        Http404: If the counter is not in the project
        StaleCounterError: If ``expected_version`` is stale
    """
    changes = changes or {}
    unknown = set(changes) - set(COUNTER_METADATA_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update counter fields: {', '.join(sorted(unknown))}")

    counter = lock_counter(counter.pk, project, with_link_targets=True)
    check_version(counter, expected_version)

    old_values = {}
    for name, new_value in changes.items():
        old_value = getattr(counter, name)
        if old_value != new_value:
            old_values[name] = old_value
            setattr(counter, name, new_value)

    if "name" in old_values:
        counter.name = (counter.name or "").strip()
        if not counter.name:
            raise ValidationError({"name": "Name is required."})

    if old_values:
        counter.clean()
        counter.save(update_fields=[*old_values, "modified"])

    action = action or CounterHistory.UPDATED
    requested = counter.current_value if value is None else value
    value_result = _commit_value(
        counter, requested, user=user, request=request, action=action, note=note
    )

    if old_values or value_result.changed:
        new_values = {name: getattr(counter, name) for name in old_values}
        if value_result.changed:
            old_values["current_value"] = value_result.old_value
            new_values["current_value"] = value_result.new_value
        log_event(
            user=user,
            noun=EventNoun.COUNTER,
            verb=EventVerb.UPDATE,
            object=counter,
            request=request,
            old_values=old_values,
            new_values=new_values,
            action=action,
            counter_name=counter.name,
            linked_updates=len(value_result.linked_updates),
        )

    return CounterUpdateResult(
        counter=counter,
        value=value_result,
        changed_fields=[name for name in old_values if name != "current_value"],
    )
