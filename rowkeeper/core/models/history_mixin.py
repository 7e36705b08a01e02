"""
SimpleHistory helpers that make sure the acting user is recorded on
historical rows, including when saving outside of a request.
"""

from django.db import models


class HistoryMixin(models.Model):
    """
    Mixin for models carrying ``history = HistoricalRecords()``.

    ``save_with_user`` records who made the change. When no user is given the
    owner of the object is used, if it has one.
    """

    class Meta:
        abstract = True

    def save_with_user(self, user=None, **kwargs):
        if user is None and getattr(self, "owner", None) is not None:
            user = self.owner

        if user is not None and hasattr(self, "history"):
            self._history_user = user

        super().save(**kwargs)

    def delete_with_user(self, user=None, **kwargs):
        if user is not None and hasattr(self, "history"):
            self._history_user = user
        return super().delete(**kwargs)


class HistoryAwareManager(models.Manager):
    """Manager whose ``create_with_user`` routes through ``save_with_user``."""

    def create_with_user(self, user=None, **kwargs):
        obj = self.model(**kwargs)

        if hasattr(obj, "save_with_user"):
            obj.save_with_user(user=user, force_insert=True)
        else:
            obj.save(force_insert=True)

        return obj
