"""Counter API views."""

import uuid
from typing import Optional

from django.conf import settings
from django.core.exceptions import BadRequest
from pydantic import BaseModel, Field

from rowkeeper.core.forms.counter import CounterForm
from rowkeeper.core.handlers.counter import (
    get_project_counter,
    handle_counter_create,
    handle_counter_delete,
    handle_counter_reorder,
    handle_counter_step,
    handle_counter_undo,
    handle_counter_update,
    list_project_counters,
)
from rowkeeper.core.models.counter import CounterHistory
from rowkeeper.core.views.common import (
    api_error,
    api_response,
    api_view,
    form_errors,
    get_project,
    parse_json_body,
)
from rowkeeper.core.views.serializers import (
    counter_data,
    history_entry_data,
    value_result_data,
)


class CounterChangeParams(BaseModel):
    """Body keys that steer a value change rather than describe the counter."""

    action: Optional[str] = Field(default=None, max_length=50)
    user_note: Optional[str] = None
    version: Optional[int] = Field(default=None, ge=0)
    click_count: Optional[int] = Field(default=None, ge=0)


class HistoryParams(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


class ReorderItem(BaseModel):
    id: uuid.UUID
    sort_order: int


class ReorderParams(BaseModel):
    counters: list[ReorderItem]


def _json_object_body(request) -> dict:
    payload = parse_json_body(request)
    if not isinstance(payload, dict):
        raise BadRequest("Request body must be a JSON object")
    return payload


@api_view(["GET", "POST"])
def counters(request, project_id):
    """
    List the counters of a project, or create one.

    **GET** returns counters in display order.

    **POST** body: ``name`` (required) and any of the counter fields.
    """
    project = get_project(request, project_id)

    if request.method == "GET":
        return api_response(
            data=[counter_data(counter) for counter in list_project_counters(project)]
        )

    form = CounterForm(_json_object_body(request), project=project)
    if not form.is_valid():
        return api_error("Validation failed", 400, errors=form_errors(form))

    fields = form.submitted()
    result = handle_counter_create(
        user=request.user,
        project=project,
        request=request,
        **fields,
    )
    return api_response(
        data=counter_data(result.counter), message="Counter created", status=201
    )


@api_view(["GET", "PUT", "PATCH", "DELETE"])
def counter_detail(request, project_id, counter_id):
    """
    Read, update or delete a counter.

    **PUT/PATCH** body: any counter fields, plus optionally ``action`` (the
    history label for a value change), ``user_note`` and ``version`` (the
    version the client last saw; a mismatch answers 409). Only the keys
    present are changed.
    """
    project = get_project(request, project_id)
    counter = get_project_counter(project, counter_id)

    if request.method == "GET":
        return api_response(data=counter_data(counter))

    if request.method == "DELETE":
        handle_counter_delete(
            user=request.user, project=project, counter=counter, request=request
        )
        return api_response(message="Counter deleted")

    payload = _json_object_body(request)
    params = CounterChangeParams.model_validate(payload)

    form = CounterForm(payload, partial=True, project=project)
    if not form.is_valid():
        return api_error("Validation failed", 400, errors=form_errors(form))

    changes = form.submitted()
    value = changes.pop("current_value", None)

    result = handle_counter_update(
        user=request.user,
        project=project,
        counter=counter,
        changes=changes,
        value=value,
        action=params.action,
        note=params.user_note,
        expected_version=params.version,
        request=request,
    )
    return api_response(data=value_result_data(result.value))


def _step(request, project_id, counter_id, direction):
    project = get_project(request, project_id)
    counter = get_project_counter(project, counter_id)
    params = CounterChangeParams.model_validate(_json_object_body(request))

    result = handle_counter_step(
        user=request.user,
        project=project,
        counter=counter,
        direction=direction,
        click_count=params.click_count,
        note=params.user_note,
        expected_version=params.version,
        request=request,
    )
    return api_response(data=value_result_data(result))


@api_view(["POST"])
def counter_increment(request, project_id, counter_id):
    """Move a counter up by one step of its increment pattern."""
    return _step(request, project_id, counter_id, "increment")


@api_view(["POST"])
def counter_decrement(request, project_id, counter_id):
    """Move a counter down by one step of its increment pattern."""
    return _step(request, project_id, counter_id, "decrement")


@api_view(["PATCH"])
def counter_reorder(request, project_id):
    """
    Reorder counters in one go.

    Body: ``{"counters": [{"id": ..., "sort_order": ...}, ...]}``. Either
    all counters move or none do.
    """
    project = get_project(request, project_id)
    payload = parse_json_body(request)
    if isinstance(payload, list):
        payload = {"counters": payload}
    params = ReorderParams.model_validate(payload)

    result = handle_counter_reorder(
        user=request.user,
        project=project,
        order=[(item.id, item.sort_order) for item in params.counters],
        request=request,
    )
    return api_response(
        data=[counter_data(counter) for counter in result.counters],
        message="Counters reordered",
    )


@api_view(["GET"])
def counter_history(request, project_id, counter_id):
    """
    A page of a counter's history, newest first.

    **Query Parameters**

    ``limit`` (int)
        Page size, defaults to ``COUNTER_HISTORY_PAGE_SIZE``.
    ``offset`` (int)
        Entries to skip.
    """
    project = get_project(request, project_id)
    counter = get_project_counter(project, counter_id)
    params = HistoryParams.model_validate(request.GET.dict())

    page = CounterHistory.objects.for_counter(counter).page(
        limit=params.limit or settings.COUNTER_HISTORY_PAGE_SIZE,
        offset=params.offset,
    )
    return api_response(
        data={
            "history": [history_entry_data(entry) for entry in page.entries],
            "pagination": {
                "total": page.total,
                "limit": page.limit,
                "offset": page.offset,
            },
        }
    )


@api_view(["POST"])
def counter_undo(request, project_id, counter_id, history_id):
    """Restore a counter to the value it had before ``history_id``."""
    project = get_project(request, project_id)
    counter = get_project_counter(project, counter_id)

    result = handle_counter_undo(
        user=request.user,
        project=project,
        counter=counter,
        history_id=history_id,
        request=request,
    )
    return api_response(
        data={
            "counter": counter_data(result.counter),
            "history_entry": history_entry_data(result.undo_entry),
        },
        message=f"Counter reverted to {result.new_value}",
    )
