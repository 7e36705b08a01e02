"""Linked counter propagation: one hop from a changed source counter."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from django.db import transaction

from rowkeeper.core.counters.rules import UnknownAction
from rowkeeper.core.counters.store import apply_value
from rowkeeper.core.models.counter import Counter, CounterHistory, CounterLink
from rowkeeper.core.models.events import EventNoun, EventVerb, log_event
from rowkeeper.core.signals import notify_counter_changed
from rowkeeper.tracing import traced
from rowkeeper.tracker import track

logger = logging.getLogger(__name__)


class TargetMissing(Exception):
    """The link's target counter no longer exists."""


@dataclass
class LinkedUpdate:
    """A target counter that moved because one of its incoming links fired."""

    link: CounterLink
    target: Counter
    old_value: int
    new_value: int
    history_entry: Optional[CounterHistory]


@dataclass
class LinkError:
    link_id: object
    error: str


@dataclass
class PropagationResult:
    """What happened to each active outgoing link of ``source``."""

    source: Counter
    new_value: int
    updates: list[LinkedUpdate] = field(default_factory=list)
    skipped: list[CounterLink] = field(default_factory=list)
    errors: list[LinkError] = field(default_factory=list)


def _lock_target(link: CounterLink) -> Counter:
    target = (
        Counter.objects.select_for_update().filter(pk=link.target_counter_id).first()
    )
    if target is None:
        raise TargetMissing(link.target_counter_id)
    return target


def _apply_link(
    link: CounterLink, source: Counter, user, request
) -> Optional[LinkedUpdate]:
    """
    Apply one fired link to its target.

    A recognised action is always recorded on the target's history and in
    the audit log, even when clamping leaves the value where it was. Only a
    real change bumps the version, notifies listeners and is returned.
    """
    effect = link.effect
    if isinstance(effect, UnknownAction):
        logger.debug("Counter link %s has an unrecognised action", link.id)
        return None

    target = _lock_target(link)
    applied = apply_value(
        target,
        effect.apply(target.current_value),
        action=CounterHistory.LINKED_UPDATE,
        note=f"Auto-updated by linked counter: {source.id}",
        user=user,
        always_record=True,
    )

    log_event(
        user=user,
        noun=EventNoun.COUNTER,
        verb=EventVerb.LINKED_UPDATE,
        object=target,
        request=request,
        old_values={"current_value": applied.old_value},
        new_values={"current_value": applied.new_value},
        counter_name=target.name,
        link_id=link.id,
        source_counter_id=source.id,
    )
    if not applied.changed:
        return None

    notify_counter_changed(target, linked_from=source)

    return LinkedUpdate(
        link=link,
        target=target,
        old_value=applied.old_value,
        new_value=applied.new_value,
        history_entry=applied.history_entry,
    )


@traced("propagate_counter_change")
def propagate(
    source: Counter, new_value: int, *, user=None, request=None
) -> PropagationResult:
    """
    Apply every active outgoing link of ``source`` whose trigger matches.

    Must run inside the transaction that changed ``source``. Each link is
    applied in its own savepoint: a failure rolls back that link alone, is
    logged and recorded on the result, and the remaining links still run.
    Updated targets do not propagate further, so cycles between counters
    cannot loop.
    """
    result = PropagationResult(source=source, new_value=new_value)

    links = list(
        CounterLink.objects.active().from_counter(source).order_by("created", "id")
    )
    if not links:
        return result

    logger.debug(
        "Checking %d link(s) from counter %s at value %s",
        len(links),
        source.id,
        new_value,
    )

    for link in links:
        if not link.trigger.matches(new_value):
            continue

        try:
            with transaction.atomic():
                update = _apply_link(link, source, user, request)
        except TargetMissing:
            logger.warning(
                "Skipping counter link %s: target counter %s is gone",
                link.id,
                link.target_counter_id,
            )
            track("counter_link_target_missing", link_id=link.id)
            result.skipped.append(link)
            continue
        except Exception as e:
            logger.error(
                "Failed to apply counter link %s from counter %s",
                link.id,
                source.id,
                exc_info=True,
            )
            track("counter_propagation_error", link_id=link.id)
            result.errors.append(LinkError(link_id=link.id, error=str(e)))
            continue

        if update is not None:
            result.updates.append(update)

    if result.updates:
        track(
            "counter_links_fired",
            n=len(result.updates),
            counter_id=source.id,
        )

    return result
