"""Handlers for creating, deleting and reordering counters."""

import uuid
from dataclasses import dataclass
from typing import Iterable

from django.core.exceptions import ValidationError
from django.db import transaction
from django.http import Http404

from rowkeeper.core.counters.store import lock_counter
from rowkeeper.core.handlers.counter.value import COUNTER_METADATA_FIELDS
from rowkeeper.core.models.counter import Counter, CounterHistory, CounterLink
from rowkeeper.core.models.events import EventNoun, EventVerb, log_event, snapshot
from rowkeeper.tracing import traced
from rowkeeper.tracker import track

COUNTER_CREATE_FIELDS = COUNTER_METADATA_FIELDS + ("current_value",)


@dataclass
class CounterCreateResult:
    """Result of creating a counter."""

    counter: Counter
    history_entry: CounterHistory


@dataclass
class CounterDeletionResult:
    """Result of deleting a counter."""

    counter_id: uuid.UUID
    name: str
    links_removed: int
    history_removed: int


@dataclass
class CounterReorderResult:
    """Result of reordering a project's counters."""

    counters: list[Counter]
    moved: int


@traced("handle_counter_create")
@transaction.atomic
def handle_counter_create(
    *,
    user,
    project,
    name: str,
    request=None,
    **fields,
) -> CounterCreateResult:
    """
    Create a counter in ``project``.

    This handler performs the following operations atomically:
    1. Validates the name and the counter's bounds
    2. Places the counter after the project's existing counters unless a
       ``sort_order`` is given
    3. Clamps the starting value into the bounds
    4. Appends the initial ``created`` history entry (0 to starting value)
    5. Records an audit event

    Raises:
        ValueError: If ``fields`` names something that is not a counter field
        ValidationError: If the name is blank or the counter is invalid
    """
    unknown = set(fields) - set(COUNTER_CREATE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot set counter fields: {', '.join(sorted(unknown))}")

    name = (name or "").strip()
    if not name:
        raise ValidationError({"name": "Name is required."})

    if fields.get("sort_order") is None:
        fields["sort_order"] = Counter.objects.next_sort_order(project)

    counter = Counter(project=project, owner=project.owner, name=name, **fields)
    counter.clean()
    counter.current_value = counter.clamp(counter.current_value)
    counter.save_with_user(user=user)

    entry = CounterHistory.objects.append(
        counter, 0, counter.current_value, CounterHistory.CREATED, user=user
    )

    log_event(
        user=user,
        noun=EventNoun.COUNTER,
        verb=EventVerb.CREATE,
        object=counter,
        request=request,
        new_values=snapshot(counter),
        counter_name=counter.name,
        project_id=project.id,
    )
    track("counter_created", counter_id=counter.id, project_id=project.id)

    return CounterCreateResult(counter=counter, history_entry=entry)


@traced("handle_counter_delete")
@transaction.atomic
def handle_counter_delete(
    *,
    user,
    project,
    counter: Counter,
    request=None,
) -> CounterDeletionResult:
    """
    Delete a counter together with its history and every link touching it.

    Child counters are kept; their ``parent_counter`` is cleared.
    """
    counter = lock_counter(counter.pk, project)

    result = CounterDeletionResult(
        counter_id=counter.id,
        name=counter.name,
        links_removed=CounterLink.objects.touching(counter).count(),
        history_removed=counter.history_entries.count(),
    )

    log_event(
        user=user,
        noun=EventNoun.COUNTER,
        verb=EventVerb.DELETE,
        object=counter,
        request=request,
        old_values=snapshot(counter),
        counter_name=counter.name,
        links_removed=result.links_removed,
        history_removed=result.history_removed,
    )

    counter.delete()
    return result


def _normalise_order(order) -> list[tuple[uuid.UUID, int]]:
    if not isinstance(order, (list, tuple)):
        raise ValidationError("Counters must be a list.")

    pairs = []
    for item in order:
        try:
            counter_id, sort_order = item
            pairs.append((uuid.UUID(str(counter_id)), int(sort_order)))
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid reorder entry: {item!r}")

    ids = [counter_id for counter_id, _ in pairs]
    if len(set(ids)) != len(ids):
        raise ValidationError("Each counter may only appear once.")
    return pairs


@traced("handle_counter_reorder")
@transaction.atomic
def handle_counter_reorder(
    *,
    user,
    project,
    order: Iterable[tuple],
    request=None,
) -> CounterReorderResult:
    """
    Set the sort order of several counters at once.

    ``order`` is a list of ``(counter_id, sort_order)`` pairs. Either every
    counter is reordered or, if anything fails, none is.

    Raises:
        ValidationError: If ``order`` is not a list of pairs
        Http404: If any counter is not in the project
    """
    pairs = _normalise_order(order)

    counters = {
        counter.id: counter
        for counter in Counter.objects.select_for_update().filter(
            project=project, id__in=[counter_id for counter_id, _ in pairs]
        )
    }
    missing = [str(counter_id) for counter_id, _ in pairs if counter_id not in counters]
    if missing:
        raise Http404(f"Counter not found: {', '.join(missing)}")

    old_values = {}
    new_values = {}
    for counter_id, sort_order in pairs:
        counter = counters[counter_id]
        if counter.sort_order == sort_order:
            continue
        old_values[str(counter_id)] = counter.sort_order
        new_values[str(counter_id)] = sort_order
        counter.sort_order = sort_order
        counter.save(update_fields=["sort_order", "modified"])

    if new_values:
        log_event(
            user=user,
            noun=EventNoun.COUNTER,
            verb=EventVerb.REORDER,
            object=project,
            request=request,
            old_values=old_values,
            new_values=new_values,
        )

    return CounterReorderResult(
        counters=list(Counter.objects.for_project(project).ordered()),
        moved=len(new_values),
    )


def get_project_counter(project, counter_id) -> Counter:
    """A counter of ``project`` without locking it; 404 if it is elsewhere."""
    try:
        return Counter.objects.get(pk=counter_id, project=project)
    except (Counter.DoesNotExist, ValidationError, ValueError):
        raise Http404("Counter not found")


def list_project_counters(project) -> list[Counter]:
    return list(Counter.objects.for_project(project).ordered())
