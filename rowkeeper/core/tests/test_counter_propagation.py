"""
Tests for linked counter propagation.

Propagation is driven through handle_counter_value_change, the way real
value changes reach it, except where the engine itself is under test.
"""

from unittest.mock import patch

import pytest
from django.db import connection, transaction

from rowkeeper.core.counters import propagation
from rowkeeper.core.counters.propagation import propagate
from rowkeeper.core.handlers.counter import handle_counter_value_change
from rowkeeper.core.models import (
    Counter,
    CounterHistory,
    CounterLink,
    Event,
    EventVerb,
)

MULTIPLE_OF_3 = {"type": "multiple_of", "value": 3}
INCREMENT = {"type": "increment", "value": 1}


def _set(user, counter, value):
    return handle_counter_value_change(
        user=user, project=counter.project, counter=counter, value=value
    )


@pytest.mark.django_db
def test_scenario_rows_increment_appends_updated_history(rows, user):
    result = _set(user, rows, 6)

    assert result.changed
    rows.refresh_from_db()
    assert rows.current_value == 6

    entry = CounterHistory.objects.for_counter(rows).get()
    assert (entry.old_value, entry.new_value, entry.action) == (5, 6, "updated")


@pytest.mark.django_db
def test_scenario_linked_counter_advances_on_multiple(
    rows, color_change, make_link, user
):
    link = make_link(rows, color_change, MULTIPLE_OF_3, INCREMENT)

    result = _set(user, rows, 6)

    color_change.refresh_from_db()
    assert color_change.current_value == 1

    assert len(result.linked_updates) == 1
    update = result.linked_updates[0]
    assert update.link == link
    assert (update.old_value, update.new_value) == (0, 1)

    entry = CounterHistory.objects.for_counter(color_change).get()
    assert entry.action == CounterHistory.LINKED_UPDATE
    assert (entry.old_value, entry.new_value) == (0, 1)
    assert entry.user_note == f"Auto-updated by linked counter: {rows.id}"


@pytest.mark.django_db
def test_scenario_decrement_at_minimum_changes_nothing(make_counter, make_link, user):
    rows = make_counter("Rows", current_value=0, min_value=0)
    target = make_counter("Target", current_value=5)
    make_link(rows, target, {"type": "equals", "value": 0}, INCREMENT)

    result = _set(user, rows, -1)

    assert not result.changed
    assert result.propagation is None
    assert not CounterHistory.objects.for_counter(rows).exists()

    target.refresh_from_db()
    assert target.current_value == 5


@pytest.mark.django_db
def test_trigger_not_matching_leaves_target(rows, color_change, make_link, user):
    make_link(rows, color_change, MULTIPLE_OF_3, INCREMENT)

    result = _set(user, rows, 7)

    assert result.linked_updates == []
    color_change.refresh_from_db()
    assert color_change.current_value == 0


@pytest.mark.django_db
def test_inactive_links_are_ignored(rows, color_change, make_link, user):
    make_link(rows, color_change, MULTIPLE_OF_3, INCREMENT, is_active=False)

    _set(user, rows, 6)

    color_change.refresh_from_db()
    assert color_change.current_value == 0


@pytest.mark.django_db
def test_linked_update_is_clamped_to_target_bounds(
    rows, make_counter, make_link, user
):
    target = make_counter("Repeats", current_value=2, min_value=0, max_value=3)
    make_link(rows, target, MULTIPLE_OF_3, {"type": "increment", "value": 5})

    _set(user, rows, 6)

    target.refresh_from_db()
    assert target.current_value == 3


@pytest.mark.django_db
def test_linked_update_without_change_is_still_recorded(
    rows, make_counter, make_link, user
):
    target = make_counter("Repeats", current_value=3, max_value=3)
    link = make_link(rows, target, MULTIPLE_OF_3, INCREMENT)

    with patch.object(propagation, "notify_counter_changed") as notify:
        result = _set(user, rows, 6)

    assert result.linked_updates == []
    notify.assert_not_called()

    target.refresh_from_db()
    assert target.current_value == 3
    assert target.version == 0

    entry = CounterHistory.objects.for_counter(target).get()
    assert entry.action == CounterHistory.LINKED_UPDATE
    assert (entry.old_value, entry.new_value) == (3, 3)

    event = Event.objects.get(verb=EventVerb.LINKED_UPDATE)
    assert event.object_id == target.id
    assert event.context["old_values"] == {"current_value": 3}
    assert event.context["new_values"] == {"current_value": 3}
    assert event.context["link_id"] == str(link.id)


@pytest.mark.django_db
def test_lenient_rule_keys_propagate(rows, color_change, make_link, user):
    make_link(
        rows,
        color_change,
        {"when": "modulo", "value": 3},
        {"action": "increment", "by_value": 2},
    )

    result = _set(user, rows, 6)

    color_change.refresh_from_db()
    assert color_change.current_value == 2
    assert [(u.old_value, u.new_value) for u in result.linked_updates] == [(0, 2)]


@pytest.mark.django_db
def test_set_and_reset_actions(rows, make_counter, make_link, user):
    set_target = make_counter("Set", current_value=0)
    reset_target = make_counter("Reset", current_value=8)
    make_link(
        rows, set_target, {"type": "equals", "value": 10}, {"type": "set", "value": 4}
    )
    make_link(
        rows, reset_target, {"type": "greater_than", "value": 9}, {"type": "reset"}
    )

    _set(user, rows, 10)

    set_target.refresh_from_db()
    reset_target.refresh_from_db()
    assert set_target.current_value == 4
    assert reset_target.current_value == 0


@pytest.mark.django_db
def test_propagation_is_single_hop(make_counter, make_link, user):
    a = make_counter("A", current_value=0)
    b = make_counter("B", current_value=0)
    c = make_counter("C", current_value=0)
    make_link(a, b, {"type": "greater_than", "value": 0}, INCREMENT)
    make_link(b, c, {"type": "greater_than", "value": 0}, INCREMENT)

    _set(user, a, 1)

    b.refresh_from_db()
    c.refresh_from_db()
    assert b.current_value == 1
    assert c.current_value == 0


@pytest.mark.django_db
def test_cycles_are_inert(make_counter, make_link, user):
    a = make_counter("A", current_value=0)
    b = make_counter("B", current_value=0)
    make_link(a, b, {"type": "greater_than", "value": 0}, INCREMENT)
    make_link(b, a, {"type": "greater_than", "value": 0}, INCREMENT)

    _set(user, a, 1)

    a.refresh_from_db()
    b.refresh_from_db()
    assert a.current_value == 1
    assert b.current_value == 1


@pytest.mark.django_db
def test_unknown_trigger_and_action_do_nothing(rows, color_change, make_link, user):
    other = Counter.objects.create(
        project=rows.project, owner=rows.owner, name="Other", current_value=0
    )
    make_link(rows, color_change, {"type": "sometimes", "value": 1}, INCREMENT)
    make_link(rows, other, MULTIPLE_OF_3, {"type": "double"})

    result = _set(user, rows, 6)

    assert result.linked_updates == []
    color_change.refresh_from_db()
    other.refresh_from_db()
    assert color_change.current_value == 0
    assert other.current_value == 0
    assert not CounterHistory.objects.for_counter(other).exists()


@pytest.mark.django_db
def test_missing_target_is_skipped(rows, make_counter, make_link, user):
    gone = make_counter("Gone", current_value=0)
    kept = make_counter("Kept", current_value=0)
    make_link(rows, gone, MULTIPLE_OF_3, INCREMENT)
    make_link(rows, kept, MULTIPLE_OF_3, INCREMENT)

    # Simulate a target removed by a concurrent request: the row disappears
    # without Django's cascade removing the link
    with connection.cursor() as cursor:
        cursor.execute(
            f"DELETE FROM {Counter._meta.db_table} WHERE id = %s", [gone.id.hex]
        )

    with transaction.atomic():
        rows.current_value = 6
        result = propagate(rows, 6, user=user)

    assert [link.target_counter_id for link in result.skipped] == [gone.id]
    assert [update.target.id for update in result.updates] == [kept.id]
    assert result.errors == []

    # Leave no dangling rows for the end-of-test constraint check
    CounterLink.objects.filter(target_counter_id=gone.id).delete()


@pytest.mark.django_db
def test_failing_link_is_isolated(rows, make_counter, make_link, user):
    broken = make_counter("Broken", current_value=0)
    fine = make_counter("Fine", current_value=0)
    broken_link = make_link(rows, broken, MULTIPLE_OF_3, INCREMENT)
    make_link(rows, fine, MULTIPLE_OF_3, INCREMENT)

    real_apply_value = propagation.apply_value

    def apply_value(counter, *args, **kwargs):
        if counter.id == broken.id:
            raise RuntimeError("boom")
        return real_apply_value(counter, *args, **kwargs)

    with patch.object(propagation, "apply_value", side_effect=apply_value):
        result = _set(user, rows, 6)

    assert [error.link_id for error in result.propagation.errors] == [broken_link.id]
    assert "boom" in result.propagation.errors[0].error
    assert [update.target.id for update in result.linked_updates] == [fine.id]

    rows.refresh_from_db()
    broken.refresh_from_db()
    fine.refresh_from_db()
    assert rows.current_value == 6
    assert broken.current_value == 0
    assert fine.current_value == 1


@pytest.mark.django_db
def test_linked_update_is_audited(rows, color_change, make_link, user):
    link = make_link(rows, color_change, MULTIPLE_OF_3, INCREMENT)

    _set(user, rows, 6)

    event = Event.objects.get(verb=EventVerb.LINKED_UPDATE)
    assert event.object_id == color_change.id
    assert event.owner == user
    assert event.context["old_values"] == {"current_value": 0}
    assert event.context["new_values"] == {"current_value": 1}
    assert event.context["link_id"] == str(link.id)
    assert event.context["source_counter_id"] == str(rows.id)


@pytest.mark.django_db
def test_deleting_a_counter_removes_its_links(rows, color_change, make_link):
    make_link(rows, color_change, MULTIPLE_OF_3, INCREMENT)
    make_link(color_change, rows, MULTIPLE_OF_3, INCREMENT)

    color_change.delete()

    assert not rows.outgoing_links.exists()
    assert not rows.incoming_links.exists()
