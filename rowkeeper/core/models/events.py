import json
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models, transaction
from django.forms.models import model_to_dict

from rowkeeper.core.models.base import AppBase

logger = logging.getLogger(__name__)


class EventNoun(models.TextChoices):
    """Nouns representing objects that can be acted upon."""

    PROJECT = "project", "Project"
    COUNTER = "counter", "Counter"
    COUNTER_LINK = "counter_link", "Counter Link"


class EventVerb(models.TextChoices):
    """Verbs representing actions that can be taken."""

    # CRUD
    CREATE = "create", "Create"
    UPDATE = "update", "Update"
    DELETE = "delete", "Delete"

    # Counter values
    UNDO = "undo", "Undo"
    LINKED_UPDATE = "linked_update", "Linked Update"
    REORDER = "reorder", "Reorder"

    # Activation
    ACTIVATE = "activate", "Activate"
    DEACTIVATE = "deactivate", "Deactivate"


class Event(AppBase):
    """
    Audit record of one mutating operation.

    ``owner`` is the actor. ``context`` carries ``old_values`` and
    ``new_values`` snapshots plus any extra detail the caller supplies.
    """

    noun = models.CharField(
        max_length=50,
        choices=EventNoun.choices,
        help_text="The type of object being acted upon",
    )
    verb = models.CharField(
        max_length=50, choices=EventVerb.choices, help_text="The action being performed"
    )

    object_id = models.UUIDField(
        null=True, blank=True, help_text="UUID of the object being acted upon"
    )
    object_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        help_text="Type of the object for generic relations",
    )
    object = GenericForeignKey("object_type", "object_id")

    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        help_text="IP address of the user when the action was taken",
    )
    user_agent = models.TextField(blank=True)

    context = models.JSONField(
        default=dict, blank=True, help_text="Additional context data in JSON format"
    )

    class Meta:
        verbose_name = "event"
        verbose_name_plural = "events"
        ordering = ["-created"]
        indexes = [
            models.Index(fields=["-created"], name="event_created_idx"),
            models.Index(fields=["noun", "verb"], name="event_noun_verb_idx"),
            models.Index(fields=["owner"], name="event_owner_idx"),
            models.Index(
                fields=["object_type", "object_id"], name="event_object_idx"
            ),
        ]

    def __str__(self):
        return f"{self.owner} {self.verb} {self.noun} at {self.created}"

    def save(self, *args, **kwargs):
        """Also write the event to the log stream."""
        super().save(*args, **kwargs)

        try:
            event_data = {
                "id": str(self.id),
                "timestamp": self.created.isoformat(),
                "user_id": str(self.owner_id) if self.owner_id else None,
                "noun": self.noun,
                "verb": self.verb,
                "object_id": str(self.object_id) if self.object_id else None,
                "ip_address": self.ip_address,
                "context": self.context,
            }
            logger.info(
                f"USER_EVENT: {self.verb} {self.noun}",
                extra={"event_data": json.dumps(event_data)},
            )
        except Exception:
            logger.exception("Failed to log event to stream")


def ensure_json_serializable(data):
    """Recursively convert ``data`` into JSON-safe types."""
    if isinstance(data, dict):
        return {str(k): ensure_json_serializable(v) for k, v in data.items()}
    elif isinstance(data, (list, tuple)):
        return [ensure_json_serializable(item) for item in data]
    elif isinstance(data, (str, int, float, bool, type(None))):
        return data
    elif isinstance(data, Enum):
        return data.value
    elif isinstance(data, (UUID, Decimal)):
        return str(data)
    elif isinstance(data, (datetime, date)):
        return data.isoformat()
    elif isinstance(data, models.Model):
        return str(data.pk)
    return str(data)


def snapshot(instance, fields=None) -> dict:
    """A JSON-safe dict of a model instance, for old/new values in events."""
    return ensure_json_serializable(model_to_dict(instance, fields=fields))


def get_client_ip(request):
    """The client's IP, honouring X-Forwarded-For when behind a proxy."""
    if not request:
        return None

    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()

    return request.META.get("REMOTE_ADDR")


def log_event(
    user,
    noun,
    verb,
    object=None,
    request=None,
    old_values=None,
    new_values=None,
    **context,
):
    """
    Record an audit event for a mutating operation.

    Audit failures never abort the operation being audited: the insert runs in
    its own savepoint, so a failed write is rolled back on its own and logged.

    Args:
        user: The User performing the action
        noun: EventNoun choice representing what's being acted upon
        verb: EventVerb choice representing the action
        object: Optional model instance being acted upon
        request: Optional HttpRequest to extract IP address and user agent
        old_values: Optional snapshot of the object before the change
        new_values: Optional snapshot of the object after the change
        **context: Additional context data to store in the JSON field

    Returns:
        Event: The created Event instance, or None if an error occurred

    Example:
        log_event(
            user=request.user,
            noun=EventNoun.COUNTER,
            verb=EventVerb.UNDO,
            object=counter,
            request=request,
            old_values={"current_value": 7},
            new_values={"current_value": 5},
        )
    """
    if old_values is not None:
        context["old_values"] = old_values
    if new_values is not None:
        context["new_values"] = new_values

    try:
        event_data = {
            "owner": user if user is not None and user.is_authenticated else None,
            "noun": noun,
            "verb": verb,
            "ip_address": get_client_ip(request),
            "user_agent": request.META.get("HTTP_USER_AGENT", "") if request else "",
            "context": ensure_json_serializable(context),
        }

        if object is not None:
            event_data["object_id"] = object.pk
            event_data["object_type"] = ContentType.objects.get_for_model(object)

        with transaction.atomic():
            return Event.objects.create(**event_data)
    except Exception as e:
        logger.error(
            f"Failed to log event: {noun} {verb}",
            exc_info=True,
            extra={
                "user_id": getattr(user, "id", None),
                "noun": noun,
                "verb": verb,
                "error": str(e),
            },
        )
        return None
