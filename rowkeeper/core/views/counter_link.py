"""Counter link API views."""

from rowkeeper.core.forms.counter import CounterLinkForm, CounterLinkUpdateForm
from rowkeeper.core.handlers.counter import get_project_counter
from rowkeeper.core.handlers.counter_link import (
    get_project_link,
    handle_counter_link_create,
    handle_counter_link_delete,
    handle_counter_link_toggle,
    handle_counter_link_update,
    list_counter_links,
    list_project_links,
)
from rowkeeper.core.views.common import (
    api_error,
    api_response,
    api_view,
    form_errors,
    get_project,
    parse_json_body,
)
from rowkeeper.core.views.serializers import link_data


@api_view(["GET", "POST"])
def project_links(request, project_id):
    """
    List the links of a project, or create one.

    **POST** body: ``source_counter_id``, ``target_counter_id``,
    ``trigger_condition`` and ``action`` (required), ``link_type`` and
    ``is_active`` (optional).
    """
    project = get_project(request, project_id)

    if request.method == "GET":
        links = list_project_links(project)
        return api_response(data=[link_data(link) for link in links])

    payload = parse_json_body(request)
    form = CounterLinkForm(payload if isinstance(payload, dict) else {})
    if not form.is_valid():
        return api_error("Validation failed", 400, errors=form_errors(form))

    fields = form.submitted()
    result = handle_counter_link_create(
        user=request.user,
        project=project,
        source_counter_id=fields["source_counter_id"],
        target_counter_id=fields["target_counter_id"],
        trigger_condition=fields["trigger_condition"],
        action=fields["action"],
        link_type=fields.get("link_type") or None,
        is_active=fields.get("is_active", True),
        request=request,
    )
    return api_response(
        data=link_data(result.link), message="Counter link created", status=201
    )


@api_view(["GET"])
def counter_links(request, project_id, counter_id):
    """Links where the counter is the source or the target, newest first."""
    project = get_project(request, project_id)
    counter = get_project_counter(project, counter_id)
    return api_response(data=[link_data(link) for link in list_counter_links(counter)])


@api_view(["PUT", "PATCH", "DELETE"])
def link_detail(request, project_id, link_id):
    """
    Update or delete a link.

    **PUT/PATCH** body: any of ``link_type``, ``trigger_condition``,
    ``action`` and ``is_active``. The linked counters cannot be changed.
    """
    project = get_project(request, project_id)
    link = get_project_link(project, link_id)

    if request.method == "DELETE":
        handle_counter_link_delete(
            user=request.user, project=project, link=link, request=request
        )
        return api_response(message="Counter link deleted")

    payload = parse_json_body(request)
    form = CounterLinkUpdateForm(payload if isinstance(payload, dict) else {})
    if not form.is_valid():
        return api_error("Validation failed", 400, errors=form_errors(form))

    result = handle_counter_link_update(
        user=request.user,
        project=project,
        link=link,
        changes=form.submitted(),
        request=request,
    )
    return api_response(data=link_data(result.link))


@api_view(["PATCH"])
def link_toggle(request, project_id, link_id):
    """Switch a link on or off."""
    project = get_project(request, project_id)
    link = get_project_link(project, link_id)

    result = handle_counter_link_toggle(
        user=request.user, project=project, link=link, request=request
    )
    state = "activated" if result.link.is_active else "deactivated"
    return api_response(data=link_data(result.link), message=f"Counter link {state}")
