import json
import logging
from typing import Any, Optional
from uuid import UUID

logger = logging.getLogger("rowkeeper.tracker")


def _label_value(val: Any) -> Any:
    """Coerce a label into something json.dumps accepts, or None to drop it."""
    if isinstance(val, UUID):
        return str(val)
    try:
        json.dumps(val)
        return val
    except (TypeError, ValueError):
        pass
    # Model instances are labelled by their primary key
    if hasattr(val, "pk"):
        return str(val.pk)
    return None


def track(event: str, n: int = 1, value: Optional[float] = None, **labels: Any) -> None:
    """
    Emit a structured log event.

    In production, StructuredLogHandler formats this as JSON for Cloud Logging.
    In development, logs as JSON string to console.

    Example:
        track("counter_link_target_missing", link_id=link.id, source_id=counter.id)
    """
    payload = {
        "event": event,
        "n": n,
    }
    if value is not None:
        payload["value"] = value

    if labels:
        filtered_labels = {}
        for key, val in labels.items():
            coerced = _label_value(val)
            if coerced is None and val is not None:
                logger.debug(
                    "Dropping non-serializable label '%s' with type %s for event '%s'",
                    key,
                    type(val).__name__,
                    event,
                )
                continue
            filtered_labels[key] = coerced
        payload["labels"] = filtered_labels

    logger.info(json.dumps(payload))
