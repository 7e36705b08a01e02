"""Handler for undoing a counter to an earlier point in its history."""

import uuid
from dataclasses import dataclass

from django.db import transaction

from rowkeeper.core.counters.store import lock_counter
from rowkeeper.core.models.counter import Counter, CounterHistory, get_history_entry
from rowkeeper.core.models.events import EventNoun, EventVerb, log_event
from rowkeeper.core.signals import notify_counter_changed
from rowkeeper.tracing import traced


@dataclass
class CounterUndoResult:
    """Result of undoing a counter to a history entry."""

    counter: Counter
    target_entry: CounterHistory
    undo_entry: CounterHistory
    old_value: int
    new_value: int

    @property
    def changed(self) -> bool:
        return self.old_value != self.new_value


@traced("handle_counter_undo")
@transaction.atomic
def handle_counter_undo(
    *,
    user,
    project,
    counter: Counter,
    history_id: uuid.UUID,
    request=None,
) -> CounterUndoResult:
    """
    Restore a counter to the value it had before a history entry was made.

    This handler performs the following operations atomically:
    1. Re-reads the counter under a row lock
    2. Finds ``history_id`` among this counter's entries
    3. Sets the counter to that entry's ``old_value``, clamped to the
       counter's current bounds
    4. Appends exactly one ``undo`` history entry, even if the value did
       not move
    5. Records an audit event

    Linked counters are not touched: an undo never propagates.

    Raises:
        Http404: If the counter is not in the project, or the history entry
            does not exist or belongs to another counter
    """
    counter = lock_counter(counter.pk, project)
    target_entry = get_history_entry(counter, history_id)

    old_value = counter.current_value
    new_value = counter.clamp(target_entry.old_value)

    if new_value != old_value:
        counter.current_value = new_value
        counter.version += 1
        counter.save(update_fields=["current_value", "version", "modified"])
        notify_counter_changed(counter)

    undo_entry = CounterHistory.objects.append(
        counter,
        old_value,
        new_value,
        CounterHistory.UNDO,
        note=f"Undo to history entry {target_entry.id}",
        user=user,
    )

    log_event(
        user=user,
        noun=EventNoun.COUNTER,
        verb=EventVerb.UNDO,
        object=counter,
        request=request,
        old_values={"current_value": old_value},
        new_values={"current_value": new_value},
        history_id=target_entry.id,
        counter_name=counter.name,
    )

    return CounterUndoResult(
        counter=counter,
        target_entry=target_entry,
        undo_entry=undo_entry,
        old_value=old_value,
        new_value=new_value,
    )
