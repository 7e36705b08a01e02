from unittest.mock import Mock

import pytest
from django.contrib.admin.sites import AdminSite
from django.test import RequestFactory

from rowkeeper.core.admin import CounterAdmin, CounterInline, ProjectAdmin
from rowkeeper.core.models import Counter, CounterHistory, Event, EventVerb, Project

MULTIPLE_OF_3 = {"type": "multiple_of", "value": 3}
INCREMENT = {"type": "increment", "value": 1}


@pytest.fixture
def admin_request(user):
    request = RequestFactory().post("/admin/")
    request.user = user
    return request


@pytest.mark.django_db
def test_counter_admin_saves_through_the_handler(
    rows, color_change, make_link, admin_request
):
    make_link(rows, color_change, MULTIPLE_OF_3, INCREMENT)
    modeladmin = CounterAdmin(Counter, AdminSite())
    form = Mock(
        changed_data=["max_value", "current_value"],
        cleaned_data={"max_value": 3, "current_value": 99},
    )
    rows.max_value = 3

    modeladmin.save_model(admin_request, rows, form, change=True)

    assert rows.max_value == 3
    assert rows.current_value == 3
    assert rows.version == 1

    entry = CounterHistory.objects.for_counter(rows).get()
    assert (entry.old_value, entry.new_value) == (5, 3)

    event = Event.objects.get(object_id=rows.id, verb=EventVerb.UPDATE)
    assert event.context["old_values"] == {"max_value": 10, "current_value": 5}

    color_change.refresh_from_db()
    assert color_change.current_value == 1


@pytest.mark.django_db
def test_counter_values_are_read_only_in_admin(admin_request):
    modeladmin = CounterAdmin(Counter, AdminSite())
    inline = CounterInline(Project, AdminSite())

    assert "current_value" in modeladmin.readonly_fields
    assert "version" in modeladmin.readonly_fields
    assert not modeladmin.has_add_permission(admin_request)

    assert "current_value" in inline.readonly_fields
    assert not inline.has_add_permission(admin_request)
    assert not inline.can_delete


def test_project_admin_uses_read_only_counter_inline():
    assert ProjectAdmin.inlines == [CounterInline]
