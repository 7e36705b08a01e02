"""
Tests for counter create, update, step, delete and reorder handlers.
"""

from unittest.mock import patch

import pytest
from django.core.exceptions import ValidationError
from django.db.models.signals import pre_save
from django.http import Http404

from rowkeeper.core.counters.store import StaleCounterError
from rowkeeper.core.handlers.counter import (
    handle_counter_create,
    handle_counter_delete,
    handle_counter_reorder,
    handle_counter_step,
    handle_counter_update,
    handle_counter_value_change,
    list_project_counters,
)
from rowkeeper.core.models import (
    Counter,
    CounterHistory,
    CounterLink,
    Event,
    EventNoun,
    EventVerb,
)

# ===== Listing =====


@pytest.mark.django_db
def test_list_project_counters(make_counter, project, other_project):
    second = make_counter("Second", sort_order=1)
    first = make_counter("First", sort_order=0)
    make_counter("Elsewhere", project=other_project)

    assert list_project_counters(project) == [first, second]


# ===== Create =====


@pytest.mark.django_db
def test_create_counter_records_initial_history(project, user):
    result = handle_counter_create(
        user=user, project=project, name="  Rows  ", current_value=3
    )

    counter = result.counter
    assert counter.name == "Rows"
    assert counter.current_value == 3
    assert counter.owner == project.owner
    assert counter.type == "row"
    assert counter.display_color == "#3B82F6"

    entry = result.history_entry
    assert (entry.old_value, entry.new_value, entry.action) == (0, 3, "created")

    event = Event.objects.get(noun=EventNoun.COUNTER, verb=EventVerb.CREATE)
    assert event.object_id == counter.id
    assert event.context["new_values"]["name"] == "Rows"


@pytest.mark.django_db
def test_create_counter_clamps_starting_value(project, user):
    result = handle_counter_create(
        user=user, project=project, name="Rows", current_value=-4, min_value=0
    )

    assert result.counter.current_value == 0
    assert result.history_entry.new_value == 0


@pytest.mark.django_db
def test_create_counter_appends_to_sort_order(project, user, make_counter):
    make_counter("First", sort_order=0)
    make_counter("Second", sort_order=4)

    result = handle_counter_create(user=user, project=project, name="Third")

    assert result.counter.sort_order == 5


@pytest.mark.django_db
def test_create_counter_requires_name(project, user):
    with pytest.raises(ValidationError):
        handle_counter_create(user=user, project=project, name="   ")

    assert not Counter.objects.exists()


@pytest.mark.django_db
def test_create_counter_rejects_inverted_bounds(project, user):
    with pytest.raises(ValidationError):
        handle_counter_create(
            user=user, project=project, name="Rows", min_value=10, max_value=5
        )


@pytest.mark.django_db
def test_create_counter_rejects_unknown_fields(project, user):
    with pytest.raises(ValueError):
        handle_counter_create(user=user, project=project, name="Rows", colour="red")


# ===== Update =====


@pytest.mark.django_db
def test_update_metadata_without_value(rows, user):
    result = handle_counter_update(
        user=user,
        project=rows.project,
        counter=rows,
        changes={"name": "Body rows", "notes": "Switch needles at 40"},
    )

    assert set(result.changed_fields) == {"name", "notes"}
    assert not result.value.changed

    rows.refresh_from_db()
    assert rows.name == "Body rows"
    assert rows.current_value == 5
    assert not CounterHistory.objects.for_counter(rows).exists()

    event = Event.objects.get(verb=EventVerb.UPDATE)
    assert event.context["old_values"]["name"] == "Rows"
    assert event.context["new_values"]["name"] == "Body rows"


@pytest.mark.django_db
def test_update_value_with_action_label_and_note(rows, user):
    result = handle_counter_update(
        user=user,
        project=rows.project,
        counter=rows,
        value=7,
        action="increment",
        note="two rows",
    )

    assert result.value.changed
    entry = result.value.history_entry
    assert (entry.old_value, entry.new_value) == (5, 7)
    assert entry.action == "increment"
    assert entry.user_note == "two rows"


@pytest.mark.django_db
def test_update_that_lowers_max_reclamps_value(rows, user):
    result = handle_counter_update(
        user=user, project=rows.project, counter=rows, changes={"max_value": 3}
    )

    assert result.value.changed
    rows.refresh_from_db()
    assert rows.current_value == 3
    entry = CounterHistory.objects.for_counter(rows).get()
    assert (entry.old_value, entry.new_value) == (5, 3)


@pytest.mark.django_db
def test_update_value_is_clamped_against_new_bounds(rows, user):
    handle_counter_update(
        user=user,
        project=rows.project,
        counter=rows,
        changes={"max_value": 20},
        value=15,
    )

    rows.refresh_from_db()
    assert rows.max_value == 20
    assert rows.current_value == 15


@pytest.mark.django_db
def test_update_with_stale_version_changes_nothing(rows, user):
    handle_counter_value_change(
        user=user, project=rows.project, counter=rows, value=6
    )

    with pytest.raises(StaleCounterError):
        handle_counter_update(
            user=user,
            project=rows.project,
            counter=rows,
            changes={"name": "Renamed"},
            value=9,
            expected_version=0,
        )

    rows.refresh_from_db()
    assert rows.name == "Rows"
    assert rows.current_value == 6
    assert rows.version == 1


@pytest.mark.django_db
def test_update_with_current_version_succeeds(rows, user):
    result = handle_counter_value_change(
        user=user, project=rows.project, counter=rows, value=8, expected_version=0
    )

    assert result.counter.version == 1


@pytest.mark.django_db
def test_update_counter_of_another_project_is_not_found(rows, user, other_project):
    with pytest.raises(Http404):
        handle_counter_update(
            user=user, project=other_project, counter=rows, value=9
        )


@pytest.mark.django_db
def test_update_rejects_parent_in_another_project(
    rows, user, make_counter, other_project
):
    stranger = make_counter("Stranger", project=other_project)

    with pytest.raises(ValidationError):
        handle_counter_update(
            user=user,
            project=rows.project,
            counter=rows,
            changes={"parent_counter": stranger},
        )


# ===== Step =====


@pytest.mark.django_db
def test_step_uses_increment_pattern(make_counter, user):
    counter = make_counter(
        "Stitches",
        current_value=10,
        increment_pattern={"type": "custom_fixed", "increment": 4},
    )

    up = handle_counter_step(
        user=user, project=counter.project, counter=counter, direction="increment"
    )
    assert up.new_value == 14
    assert up.history_entry.action == "increment"

    down = handle_counter_step(
        user=user, project=counter.project, counter=counter, direction="decrement"
    )
    assert down.new_value == 10
    assert down.history_entry.action == "decrement"


@pytest.mark.django_db
def test_step_every_n_skips_until_nth_click(make_counter, user):
    counter = make_counter(
        "Decreases",
        current_value=0,
        increment_pattern={"type": "every_n", "n": 2, "increment": 1},
    )

    skipped = handle_counter_step(
        user=user,
        project=counter.project,
        counter=counter,
        direction="increment",
        click_count=1,
    )
    assert not skipped.changed

    fired = handle_counter_step(
        user=user,
        project=counter.project,
        counter=counter,
        direction="increment",
        click_count=2,
    )
    assert fired.changed
    assert fired.new_value == 1


@pytest.mark.django_db
def test_step_rejects_unknown_direction(rows, user):
    with pytest.raises(ValueError):
        handle_counter_step(
            user=user, project=rows.project, counter=rows, direction="sideways"
        )


# ===== Delete =====


@pytest.mark.django_db
def test_delete_counter_cascades(rows, color_change, make_counter, make_link, user):
    bystander = make_counter("Bystander", current_value=1)
    make_link(rows, color_change, {"type": "equals", "value": 6}, {"type": "reset"})
    make_link(bystander, rows, {"type": "equals", "value": 2}, {"type": "reset"})
    make_link(
        bystander, color_change, {"type": "equals", "value": 2}, {"type": "reset"}
    )
    handle_counter_value_change(user=user, project=rows.project, counter=rows, value=7)

    result = handle_counter_delete(user=user, project=rows.project, counter=rows)

    assert result.links_removed == 2
    assert result.history_removed == 1
    assert not Counter.objects.filter(id=rows.id).exists()
    assert not CounterHistory.objects.filter(counter_id=rows.id).exists()
    assert CounterLink.objects.count() == 1
    assert Counter.objects.filter(id=bystander.id).exists()

    event = Event.objects.get(verb=EventVerb.DELETE)
    assert event.object_id == rows.id
    assert event.context["links_removed"] == 2


@pytest.mark.django_db
def test_delete_keeps_children(rows, make_counter, user):
    child = make_counter("Pattern repeat", parent_counter=rows)

    handle_counter_delete(user=user, project=rows.project, counter=rows)

    child.refresh_from_db()
    assert child.parent_counter is None


# ===== Reorder =====


@pytest.mark.django_db
def test_reorder_counters(make_counter, project, user):
    a = make_counter("A", sort_order=0)
    b = make_counter("B", sort_order=1)
    c = make_counter("C", sort_order=2)

    result = handle_counter_reorder(
        user=user,
        project=project,
        order=[(c.id, 0), (a.id, 1), (str(b.id), 2)],
    )

    assert [counter.name for counter in result.counters] == ["C", "A", "B"]
    assert result.moved == 3
    assert Event.objects.filter(verb=EventVerb.REORDER).count() == 1


@pytest.mark.django_db
def test_reorder_with_foreign_counter_changes_nothing(
    make_counter, project, other_project, user
):
    a = make_counter("A", sort_order=0)
    b = make_counter("B", sort_order=1)
    stranger = make_counter("Stranger", project=other_project, sort_order=0)

    with pytest.raises(Http404):
        handle_counter_reorder(
            user=user,
            project=project,
            order=[(b.id, 0), (a.id, 1), (stranger.id, 2)],
        )

    a.refresh_from_db()
    b.refresh_from_db()
    stranger.refresh_from_db()
    assert (a.sort_order, b.sort_order, stranger.sort_order) == (0, 1, 0)


@pytest.mark.django_db
def test_reorder_failure_midway_rolls_back(make_counter, project, user):
    a = make_counter("A", sort_order=0)
    b = make_counter("B", sort_order=1)
    saves = []

    def fail_on_second_save(sender, instance, **kwargs):
        saves.append(instance.id)
        if len(saves) == 2:
            raise RuntimeError("database went away")

    pre_save.connect(fail_on_second_save, sender=Counter)
    try:
        with pytest.raises(RuntimeError):
            handle_counter_reorder(
                user=user, project=project, order=[(b.id, 0), (a.id, 1)]
            )
    finally:
        pre_save.disconnect(fail_on_second_save, sender=Counter)

    a.refresh_from_db()
    b.refresh_from_db()
    assert (a.sort_order, b.sort_order) == (0, 1)


@pytest.mark.parametrize(
    "order",
    [
        {"not": "a list"},
        [("not-a-uuid", 1)],
        [(1, 2, 3)],
    ],
)
@pytest.mark.django_db
def test_reorder_rejects_malformed_payload(project, user, order):
    with pytest.raises(ValidationError):
        handle_counter_reorder(user=user, project=project, order=order)


@pytest.mark.django_db
def test_reorder_rejects_duplicates(rows, user):
    with pytest.raises(ValidationError):
        handle_counter_reorder(
            user=user, project=rows.project, order=[(rows.id, 1), (rows.id, 2)]
        )


@pytest.mark.django_db
def test_reorder_without_changes_is_not_audited(rows, user):
    with patch("rowkeeper.core.handlers.counter.crud.log_event") as log_event:
        handle_counter_reorder(
            user=user, project=rows.project, order=[(rows.id, rows.sort_order)]
        )

    log_event.assert_not_called()
