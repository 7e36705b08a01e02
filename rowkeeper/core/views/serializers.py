"""Plain-dict renderings of counters, history and links for JSON responses."""


def _iso(value):
    return value.isoformat() if value is not None else None


def counter_data(counter) -> dict:
    return {
        "id": str(counter.id),
        "project_id": str(counter.project_id),
        "name": counter.name,
        "type": counter.type,
        "current_value": counter.current_value,
        "target_value": counter.target_value,
        "increment_by": counter.increment_by,
        "min_value": counter.min_value,
        "max_value": counter.max_value,
        "increment_pattern": counter.increment_pattern,
        "sort_order": counter.sort_order,
        "is_visible": counter.is_visible,
        "is_active": counter.is_active,
        "display_color": counter.display_color,
        "notes": counter.notes,
        "parent_counter_id": (
            str(counter.parent_counter_id) if counter.parent_counter_id else None
        ),
        "auto_reset": counter.auto_reset,
        "is_complete": counter.is_complete,
        "version": counter.version,
        "created": _iso(counter.created),
        "modified": _iso(counter.modified),
    }


def history_entry_data(entry) -> dict:
    return {
        "id": str(entry.id),
        "counter_id": str(entry.counter_id),
        "old_value": entry.old_value,
        "new_value": entry.new_value,
        "action": entry.action,
        "user_note": entry.user_note,
        "created": _iso(entry.created),
    }


def link_data(link) -> dict:
    return {
        "id": str(link.id),
        "source_counter_id": str(link.source_counter_id),
        "target_counter_id": str(link.target_counter_id),
        "link_type": link.link_type,
        "trigger_condition": link.trigger_condition,
        "action": link.action,
        "is_active": link.is_active,
        "source_counter_name": link.source_counter.name,
        "target_counter_name": link.target_counter.name,
        "created": _iso(link.created),
        "modified": _iso(link.modified),
    }


def value_result_data(result) -> dict:
    """A counter plus the counters its change moved through links."""
    data = counter_data(result.counter)
    data["changed"] = result.changed
    data["linked_updates"] = [
        {
            "counter_id": str(update.target.id),
            "link_id": str(update.link.id),
            "old_value": update.old_value,
            "new_value": update.new_value,
        }
        for update in result.linked_updates
    ]
    if result.propagation is not None and result.propagation.errors:
        data["link_errors"] = [
            str(error.link_id) for error in result.propagation.errors
        ]
    return data
