from django.db import models
from simple_history.models import HistoricalRecords

from rowkeeper.models import Archived

from .base import AppBase
from .history_mixin import HistoryAwareManager


class ProjectQuerySet(models.QuerySet):
    def owned_by(self, user):
        """Live (not archived) projects belonging to ``user``."""
        return self.filter(owner=user, archived=False)


class Project(AppBase, Archived):
    """
    A knitting project. Projects own counters and scope every counter
    operation: a counter, link or history entry outside the caller's project
    is treated as absent.
    """

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)

    history = HistoricalRecords()

    objects = HistoryAwareManager.from_queryset(ProjectQuerySet)()

    class Meta:
        verbose_name = "project"
        verbose_name_plural = "projects"
        ordering = ["-created"]

    def __str__(self):
        return self.name
