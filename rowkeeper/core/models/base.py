from rowkeeper.models import Base, Owned

from .history_mixin import HistoryAwareManager, HistoryMixin


class AppBase(HistoryMixin, Base, Owned):
    """An AppBase object is a base class for user-owned application models.

    This base class provides:
    - UUID primary key and created/modified timestamps (from Base)
    - Owner tracking (from Owned)
    - History user tracking helpers (from HistoryMixin)
    """

    objects = HistoryAwareManager()

    class Meta:
        abstract = True
