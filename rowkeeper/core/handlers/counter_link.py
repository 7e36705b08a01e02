"""Handlers for counter links: the rules that move one counter when another changes."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import IntegrityError, transaction
from django.http import Http404

from rowkeeper.core.models.counter import Counter, CounterLink, CounterLinkType
from rowkeeper.core.models.events import EventNoun, EventVerb, log_event, snapshot
from rowkeeper.tracing import traced

logger = logging.getLogger(__name__)

LINK_UPDATE_FIELDS = ("link_type", "trigger_condition", "action", "is_active")
LINK_SNAPSHOT_FIELDS = (
    "source_counter",
    "target_counter",
    *LINK_UPDATE_FIELDS,
)


@dataclass
class CounterLinkResult:
    """Result of creating, updating or toggling a counter link."""

    link: CounterLink
    changed_fields: list[str] = field(default_factory=list)


@dataclass
class CounterLinkDeletionResult:
    link_id: Any
    source_counter_id: Any
    target_counter_id: Any


def _json_object(value, field_name: str) -> dict:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            raise ValidationError({field_name: "Must be valid JSON."})
    if not isinstance(value, dict):
        raise ValidationError({field_name: "Must be a JSON object."})
    return value


def _link_type(value) -> str:
    if value not in CounterLinkType.values:
        raise ValidationError(
            {"link_type": f"Unknown link type: {value}"},
        )
    return value


def _project_counter(project, counter_id, label: str) -> Counter:
    try:
        return Counter.objects.get(pk=counter_id, project=project)
    except (Counter.DoesNotExist, ValidationError, ValueError):
        raise Http404(f"{label} counter not found")


def get_project_link(project, link_id, lock: bool = False) -> CounterLink:
    """
    The link ``link_id``, provided its source counter belongs to ``project``.

    Raises:
        Http404: If the link does not exist
        PermissionDenied: If the link belongs to another project
    """
    queryset = CounterLink.objects.all()
    if lock:
        queryset = queryset.select_for_update()
    try:
        link = queryset.get(pk=link_id)
    except (CounterLink.DoesNotExist, ValidationError, ValueError):
        raise Http404("Counter link not found")

    if not Counter.objects.filter(pk=link.source_counter_id, project=project).exists():
        raise PermissionDenied("Link does not belong to this project")
    return link


def list_counter_links(counter: Counter) -> list[CounterLink]:
    """Links where ``counter`` is the source or the target, newest first."""
    return list(
        CounterLink.objects.touching(counter)
        .select_related("source_counter", "target_counter")
        .order_by("-created")
    )


def list_project_links(project) -> list[CounterLink]:
    """Every link whose source counter belongs to ``project``, newest first."""
    return list(
        CounterLink.objects.for_project(project)
        .select_related("source_counter", "target_counter")
        .order_by("-created")
    )


@traced("handle_counter_link_create")
@transaction.atomic
def handle_counter_link_create(
    *,
    user,
    project,
    source_counter_id,
    target_counter_id,
    trigger_condition,
    action,
    link_type: str = CounterLinkType.CONDITIONAL,
    is_active: bool = True,
    request=None,
) -> CounterLinkResult:
    """
    Link two counters of ``project``.

    Trigger and action payloads are stored as given (JSON strings are
    decoded first); payloads the propagation engine does not understand are
    kept but never fire.

    Raises:
        ValidationError: If a required value is missing, the counters are
            the same, or the pair is already linked
        Http404: If either counter is not in the project
    """
    missing = {
        name: "This field is required."
        for name, value in (
            ("source_counter_id", source_counter_id),
            ("target_counter_id", target_counter_id),
            ("trigger_condition", trigger_condition),
            ("action", action),
        )
        if value in (None, "")
    }
    if missing:
        raise ValidationError(missing)

    if str(source_counter_id) == str(target_counter_id):
        raise ValidationError("Source and target counters cannot be the same.")

    trigger_condition = _json_object(trigger_condition, "trigger_condition")
    action = _json_object(action, "action")
    link_type = _link_type(link_type or CounterLinkType.CONDITIONAL)

    source = _project_counter(project, source_counter_id, "Source")
    target = _project_counter(project, target_counter_id, "Target")

    duplicate = CounterLink.objects.filter(source_counter=source, target_counter=target)
    if duplicate.exists():
        raise ValidationError("These counters are already linked.")

    link = CounterLink(
        source_counter=source,
        target_counter=target,
        link_type=link_type,
        trigger_condition=trigger_condition,
        action=action,
        is_active=is_active,
    )
    link.clean()
    try:
        with transaction.atomic():
            link.save_with_user(user=user)
    except IntegrityError:
        raise ValidationError("These counters are already linked.")

    log_event(
        user=user,
        noun=EventNoun.COUNTER_LINK,
        verb=EventVerb.CREATE,
        object=link,
        request=request,
        new_values=snapshot(link, fields=LINK_SNAPSHOT_FIELDS),
    )
    logger.debug("Linked counter %s to counter %s", source.id, target.id)

    return CounterLinkResult(link=link, changed_fields=list(LINK_SNAPSHOT_FIELDS))


@traced("handle_counter_link_update")
@transaction.atomic
def handle_counter_link_update(
    *,
    user,
    project,
    link: CounterLink,
    changes: dict[str, Any],
    request=None,
) -> CounterLinkResult:
    """
    Change a link's type, trigger, action or active flag.

    The linked counters themselves cannot be changed; delete the link and
    create a new one instead.

    Raises:
        ValueError: If ``changes`` names a field that cannot be updated
        ValidationError: If a payload is not a JSON object
        Http404: If the link does not exist
        PermissionDenied: If the link belongs to another project
    """
    unknown = set(changes) - set(LINK_UPDATE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update link fields: {', '.join(sorted(unknown))}")

    link = get_project_link(project, link.pk, lock=True)

    cleaned = {}
    for name, value in changes.items():
        if name in ("trigger_condition", "action"):
            value = _json_object(value, name)
        elif name == "link_type":
            value = _link_type(value)
        elif name == "is_active":
            value = bool(value)
        cleaned[name] = value

    old_values = snapshot(link, fields=LINK_SNAPSHOT_FIELDS)
    changed_fields = []
    for name, value in cleaned.items():
        if getattr(link, name) != value:
            setattr(link, name, value)
            changed_fields.append(name)

    if changed_fields:
        link.save_with_user(user=user)
        log_event(
            user=user,
            noun=EventNoun.COUNTER_LINK,
            verb=EventVerb.UPDATE,
            object=link,
            request=request,
            old_values=old_values,
            new_values=snapshot(link, fields=LINK_SNAPSHOT_FIELDS),
            changed_fields=changed_fields,
        )

    return CounterLinkResult(link=link, changed_fields=changed_fields)


@traced("handle_counter_link_toggle")
@transaction.atomic
def handle_counter_link_toggle(
    *,
    user,
    project,
    link: CounterLink,
    request=None,
) -> CounterLinkResult:
    """Flip a link between active and inactive without deleting it."""
    link = get_project_link(project, link.pk, lock=True)

    link.is_active = not link.is_active
    link.save_with_user(user=user)

    log_event(
        user=user,
        noun=EventNoun.COUNTER_LINK,
        verb=EventVerb.ACTIVATE if link.is_active else EventVerb.DEACTIVATE,
        object=link,
        request=request,
        old_values={"is_active": not link.is_active},
        new_values={"is_active": link.is_active},
    )

    return CounterLinkResult(link=link, changed_fields=["is_active"])


@traced("handle_counter_link_delete")
@transaction.atomic
def handle_counter_link_delete(
    *,
    user,
    project,
    link: CounterLink,
    request=None,
) -> CounterLinkDeletionResult:
    """Remove a link. Neither counter is changed."""
    link = get_project_link(project, link.pk, lock=True)

    result = CounterLinkDeletionResult(
        link_id=link.id,
        source_counter_id=link.source_counter_id,
        target_counter_id=link.target_counter_id,
    )

    log_event(
        user=user,
        noun=EventNoun.COUNTER_LINK,
        verb=EventVerb.DELETE,
        object=link,
        request=request,
        old_values=snapshot(link, fields=LINK_SNAPSHOT_FIELDS),
    )
    link.delete_with_user(user=user)

    return result
