from .counter import (
    Counter,
    CounterHistory,
    CounterLink,
    CounterLinkType,
    CounterType,
    HistoryPage,
    get_history_entry,
)
from .events import Event, EventNoun, EventVerb, log_event
from .project import Project

__all__ = [
    "Counter",
    "CounterHistory",
    "CounterLink",
    "CounterLinkType",
    "CounterType",
    "Event",
    "EventNoun",
    "EventVerb",
    "HistoryPage",
    "Project",
    "get_history_entry",
    "log_event",
]
