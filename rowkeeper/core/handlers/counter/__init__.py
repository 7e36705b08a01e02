"""Counter operation handlers."""

from rowkeeper.core.handlers.counter.crud import (
    CounterCreateResult,
    CounterDeletionResult,
    CounterReorderResult,
    get_project_counter,
    handle_counter_create,
    handle_counter_delete,
    handle_counter_reorder,
    list_project_counters,
)
from rowkeeper.core.handlers.counter.undo import (
    CounterUndoResult,
    handle_counter_undo,
)
from rowkeeper.core.handlers.counter.value import (
    CounterUpdateResult,
    CounterValueResult,
    handle_counter_step,
    handle_counter_update,
    handle_counter_value_change,
)

__all__ = [
    "CounterCreateResult",
    "CounterDeletionResult",
    "CounterReorderResult",
    "CounterUndoResult",
    "CounterUpdateResult",
    "CounterValueResult",
    "get_project_counter",
    "handle_counter_create",
    "handle_counter_delete",
    "handle_counter_reorder",
    "handle_counter_step",
    "handle_counter_undo",
    "handle_counter_update",
    "handle_counter_value_change",
    "list_project_counters",
]
