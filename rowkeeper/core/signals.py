"""
Counter change notifications.

``counter_changed`` is the hook for anything that publishes counter values to
other connected clients of the same project (e.g. a WebSocket fan-out). It is
sent only after the transaction that changed the counter has committed, once
per counter whose value changed, with these keyword arguments:

    counter_id   UUID of the counter
    project_id   UUID of the owning project
    new_value    the committed value
    linked_from  UUID of the source counter for propagated changes, else None
"""

import logging

from django.db import transaction
from django.dispatch import Signal, receiver

from rowkeeper.tracker import track

logger = logging.getLogger(__name__)

counter_changed = Signal()


def notify_counter_changed(counter, linked_from=None):
    """Queue ``counter_changed`` for ``counter`` to fire on commit."""
    payload = {
        "counter_id": counter.id,
        "project_id": counter.project_id,
        "new_value": counter.current_value,
        "linked_from": getattr(linked_from, "id", linked_from),
    }

    def send():
        for receiver_fn, response in counter_changed.send_robust(
            sender=counter.__class__, **payload
        ):
            if isinstance(response, Exception):
                logger.error(
                    "counter_changed receiver %r failed for counter %s",
                    receiver_fn,
                    payload["counter_id"],
                    exc_info=response,
                )

    transaction.on_commit(send)


@receiver(counter_changed)
def track_counter_changed(
    sender, counter_id, project_id, new_value, linked_from=None, **kwargs
):
    track(
        "counter_changed",
        counter_id=counter_id,
        project_id=project_id,
        new_value=new_value,
        linked=linked_from is not None,
    )
