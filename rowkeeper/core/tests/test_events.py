from unittest.mock import Mock, patch

import pytest
from django.contrib.contenttypes.models import ContentType

from rowkeeper.core.handlers.counter import handle_counter_value_change
from rowkeeper.core.models import Counter, Event, EventNoun, EventVerb, log_event
from rowkeeper.core.models.events import get_client_ip, snapshot


@pytest.mark.django_db
def test_log_event_records_object_and_context(rows, user):
    event = log_event(
        user=user,
        noun=EventNoun.COUNTER,
        verb=EventVerb.UPDATE,
        object=rows,
        old_values={"current_value": 5},
        new_values={"current_value": 6},
        reason="row finished",
    )

    assert event.owner == user
    assert event.object_id == rows.id
    assert event.object_type == ContentType.objects.get_for_model(Counter)
    assert event.object == rows
    assert event.context == {
        "reason": "row finished",
        "old_values": {"current_value": 5},
        "new_values": {"current_value": 6},
    }


@pytest.mark.django_db
def test_log_event_reads_request_metadata(user):
    request = Mock()
    request.META = {
        "HTTP_X_FORWARDED_FOR": "203.0.113.9, 10.0.0.1",
        "REMOTE_ADDR": "10.0.0.1",
        "HTTP_USER_AGENT": "Needles/1.0",
    }

    event = log_event(
        user=user, noun=EventNoun.PROJECT, verb=EventVerb.CREATE, request=request
    )

    assert event.ip_address == "203.0.113.9"
    assert event.user_agent == "Needles/1.0"


def test_get_client_ip_falls_back_to_remote_addr():
    request = Mock()
    request.META = {"REMOTE_ADDR": "192.0.2.4"}

    assert get_client_ip(request) == "192.0.2.4"
    assert get_client_ip(None) is None


@pytest.mark.django_db
def test_log_event_makes_context_json_safe(rows, user):
    event = log_event(
        user=user,
        noun=EventNoun.COUNTER,
        verb=EventVerb.UPDATE,
        counter=rows,
        counter_id=rows.id,
        modified=rows.modified,
    )

    assert event.context["counter"] == str(rows.id)
    assert event.context["counter_id"] == str(rows.id)
    assert event.context["modified"] == rows.modified.isoformat()


@pytest.mark.django_db
def test_snapshot(rows):
    data = snapshot(rows, fields=["name", "current_value", "project"])

    assert data == {
        "name": "Rows",
        "current_value": 5,
        "project": str(rows.project_id),
    }


@pytest.mark.django_db
def test_log_event_failure_returns_none(user):
    with patch.object(Event.objects, "create", side_effect=Exception("db down")):
        event = log_event(user=user, noun=EventNoun.PROJECT, verb=EventVerb.UPDATE)

    assert event is None


@pytest.mark.django_db
def test_audit_failure_does_not_abort_value_change(rows, user):
    with patch.object(Event.objects, "create", side_effect=Exception("db down")):
        result = handle_counter_value_change(
            user=user, project=rows.project, counter=rows, value=6
        )

    assert result.changed
    rows.refresh_from_db()
    assert rows.current_value == 6
    assert not Event.objects.exists()


@pytest.mark.django_db
def test_event_is_written_to_log_stream(user, app_caplog):
    with app_caplog.at_level("INFO", logger="rowkeeper.core.models.events"):
        log_event(user=user, noun=EventNoun.PROJECT, verb=EventVerb.CREATE)

    assert "USER_EVENT: create project" in app_caplog.text
