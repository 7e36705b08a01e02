"""
Counter models.

This module contains:
- Counter: a bounded integer owned by a project (rows, stitches, repeats)
- CounterHistory: the append-only ledger of value changes, used for undo
- CounterLink: a directed rule applying an action to a target counter when
  the source counter's new value satisfies a trigger
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Max, Q
from django.http import Http404
from django.utils import timezone
from simple_history.models import HistoricalRecords

from rowkeeper.core.counters.rules import (
    CounterAction,
    TriggerCondition,
    parse_action,
    parse_trigger,
)
from rowkeeper.models import Base

from .base import AppBase
from .history_mixin import HistoryAwareManager, HistoryMixin

logger = logging.getLogger(__name__)
User = get_user_model()


class CounterType(models.TextChoices):
    ROW = "row", "Row"
    STITCH = "stitch", "Stitch"
    REPEAT = "repeat", "Repeat"
    CUSTOM = "custom", "Custom"


class CounterQuerySet(models.QuerySet):
    def for_project(self, project):
        return self.filter(project=project)

    def ordered(self):
        return self.order_by("sort_order", "created")

    def next_sort_order(self, project) -> int:
        """One past the highest sort order in the project, or 0."""
        result = self.filter(project=project).aggregate(max_order=Max("sort_order"))
        max_order = result["max_order"]
        return 0 if max_order is None else max_order + 1


class Counter(AppBase):
    """
    A bounded integer counter.

    Whenever ``min_value`` is set, ``current_value >= min_value``; whenever
    ``max_value`` is set, ``current_value <= max_value``. Out of range values
    are clamped, never rejected. ``version`` increases on every value change
    and lets callers detect that someone else moved the counter first.
    """

    project = models.ForeignKey(
        "core.Project",
        on_delete=models.CASCADE,
        related_name="counters",
    )
    name = models.CharField(max_length=255)
    type = models.CharField(
        max_length=50, choices=CounterType.choices, default=CounterType.ROW
    )

    current_value = models.IntegerField(default=0)
    target_value = models.IntegerField(null=True, blank=True)
    increment_by = models.IntegerField(default=1)
    min_value = models.IntegerField(default=0, null=True, blank=True)
    max_value = models.IntegerField(null=True, blank=True)
    increment_pattern = models.JSONField(
        null=True,
        blank=True,
        help_text='How a single click moves the counter, e.g. {"type": "every_n", "n": 2, "increment": 1}.',
    )

    sort_order = models.IntegerField(default=0, db_index=True)
    is_visible = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    display_color = models.CharField(max_length=7, default="#3B82F6")
    notes = models.TextField(blank=True)

    # Informational only: neither field takes part in propagation
    parent_counter = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="child_counters",
    )
    auto_reset = models.BooleanField(default=False)

    version = models.PositiveIntegerField(default=0)

    objects = HistoryAwareManager.from_queryset(CounterQuerySet)()

    class Meta:
        verbose_name = "counter"
        verbose_name_plural = "counters"
        ordering = ["sort_order", "created"]
        indexes = [
            models.Index(
                fields=["project", "sort_order"], name="counter_project_order_idx"
            ),
            models.Index(
                fields=["project", "is_active"], name="counter_project_active_idx"
            ),
        ]

    def __str__(self):
        return f"{self.name}: {self.current_value}"

    def clamp(self, value: int) -> int:
        """Pull ``value`` into ``[min_value, max_value]`` where those are set."""
        if self.min_value is not None and value < self.min_value:
            return self.min_value
        if self.max_value is not None and value > self.max_value:
            return self.max_value
        return value

    def clean(self):
        if (
            self.min_value is not None
            and self.max_value is not None
            and self.min_value > self.max_value
        ):
            raise ValidationError(
                {"max_value": "Maximum value cannot be lower than the minimum value."}
            )
        if self.parent_counter_id is not None:
            if self.parent_counter_id == self.id:
                raise ValidationError(
                    {"parent_counter": "A counter cannot be its own parent."}
                )
            if self.parent_counter.project_id != self.project_id:
                raise ValidationError(
                    {"parent_counter": "Parent counter must be in the same project."}
                )

    @property
    def is_complete(self) -> bool:
        return self.target_value is not None and self.current_value >= self.target_value


@dataclass
class HistoryPage:
    """A page of history entries, newest first, with the unpaginated total."""

    entries: list
    limit: int
    offset: int
    total: int


class CounterHistoryQuerySet(models.QuerySet):
    def for_counter(self, counter):
        return self.filter(counter=counter)

    def newest_first(self):
        return self.order_by("-created")

    def page(self, limit: int, offset: int = 0) -> HistoryPage:
        total = self.count()
        entries = list(self.newest_first()[offset : offset + limit])
        return HistoryPage(entries=entries, limit=limit, offset=offset, total=total)

    def append(
        self,
        counter,
        old_value: int,
        new_value: int,
        action: str,
        note: Optional[str] = None,
        user=None,
    ):
        return self.create(
            counter=counter,
            old_value=old_value,
            new_value=new_value,
            action=action,
            user_note=note or None,
            user=user if user is not None and user.is_authenticated else None,
        )


class CounterHistory(models.Model):
    """
    One value transition of a counter.

    Entries are append-only: they are created, read and removed together with
    their counter, but never edited.
    """

    CREATED = "created"
    UPDATED = "updated"
    INCREMENT = "increment"
    DECREMENT = "decrement"
    UNDO = "undo"
    LINKED_UPDATE = "linked_update"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    counter = models.ForeignKey(
        Counter,
        on_delete=models.CASCADE,
        related_name="history_entries",
    )
    old_value = models.IntegerField()
    new_value = models.IntegerField()
    action = models.CharField(max_length=50, blank=True)
    user_note = models.TextField(null=True, blank=True)
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="counter_history",
        help_text="The user whose request produced this change",
    )
    created = models.DateTimeField(default=timezone.now, db_index=True)

    objects = CounterHistoryQuerySet.as_manager()

    class Meta:
        verbose_name = "counter history entry"
        verbose_name_plural = "counter history"
        ordering = ["-created"]
        indexes = [
            models.Index(
                fields=["counter", "-created"], name="counter_history_created_idx"
            ),
        ]

    def __str__(self):
        return (
            f"{self.counter_id}: {self.old_value} → {self.new_value} ({self.action})"
        )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Counter history entries cannot be modified")
        super().save(*args, **kwargs)

    @property
    def delta(self) -> int:
        return self.new_value - self.old_value


def get_history_entry(counter, history_id) -> CounterHistory:
    """The history entry ``history_id`` of ``counter``; 404 if it belongs elsewhere."""
    try:
        return CounterHistory.objects.get(id=history_id, counter=counter)
    except (CounterHistory.DoesNotExist, ValidationError):
        raise Http404("History entry not found")


class CounterLinkType(models.TextChoices):
    CONDITIONAL = "conditional", "Conditional"
    RESET_ON_TARGET = "reset_on_target", "Reset on target"
    ADVANCE_TOGETHER = "advance_together", "Advance together"


class CounterLinkQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def from_counter(self, counter):
        return self.filter(source_counter=counter)

    def touching(self, counter):
        """Links where ``counter`` is the source or the target."""
        return self.filter(Q(source_counter=counter) | Q(target_counter=counter))

    def for_project(self, project):
        return self.filter(source_counter__project=project)


class CounterLink(HistoryMixin, Base):
    """
    A directed rule between two counters of the same project.

    When the source counter's value changes and the new value satisfies
    ``trigger_condition``, ``action`` is applied to the target counter. Links
    may form cycles; propagation only ever follows one hop.
    """

    source_counter = models.ForeignKey(
        Counter,
        on_delete=models.CASCADE,
        related_name="outgoing_links",
    )
    target_counter = models.ForeignKey(
        Counter,
        on_delete=models.CASCADE,
        related_name="incoming_links",
    )
    link_type = models.CharField(
        max_length=50,
        choices=CounterLinkType.choices,
        default=CounterLinkType.CONDITIONAL,
    )
    trigger_condition = models.JSONField(
        help_text='e.g. {"type": "multiple_of", "value": 3}',
    )
    action = models.JSONField(
        help_text='e.g. {"type": "increment", "value": 1}',
    )
    is_active = models.BooleanField(default=True, db_index=True)

    history = HistoricalRecords()

    objects = HistoryAwareManager.from_queryset(CounterLinkQuerySet)()

    class Meta:
        verbose_name = "counter link"
        verbose_name_plural = "counter links"
        ordering = ["-created"]
        constraints = [
            models.UniqueConstraint(
                fields=["source_counter", "target_counter"],
                name="unique_counter_link_pair",
            ),
            models.CheckConstraint(
                condition=~Q(source_counter=F("target_counter")),
                name="counter_link_not_self",
            ),
        ]

    def __str__(self):
        return f"{self.source_counter_id} → {self.target_counter_id}"

    def clean(self):
        if (
            self.source_counter_id is not None
            and self.source_counter_id == self.target_counter_id
        ):
            raise ValidationError("Source and target counters cannot be the same.")

    @property
    def trigger(self) -> TriggerCondition:
        return parse_trigger(self.trigger_condition)

    @property
    def effect(self) -> CounterAction:
        return parse_action(self.action)
