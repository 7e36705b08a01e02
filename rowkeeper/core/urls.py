from django.urls import path

from .views import counter, counter_link

# Name new URLs like this:
# * Action endpoints: noun[-noun]-verb
# * Collections should pluralize the noun: noun[-noun]s
# * Detail endpoints should be singular: noun[-noun]

app_name = "core"
urlpatterns = [
    path(
        "projects/<uuid:project_id>/counters",
        counter.counters,
        name="project-counters",
    ),
    path(
        "projects/<uuid:project_id>/counters/reorder",
        counter.counter_reorder,
        name="project-counters-reorder",
    ),
    path(
        "projects/<uuid:project_id>/counters/<uuid:counter_id>",
        counter.counter_detail,
        name="project-counter",
    ),
    path(
        "projects/<uuid:project_id>/counters/<uuid:counter_id>/increment",
        counter.counter_increment,
        name="project-counter-increment",
    ),
    path(
        "projects/<uuid:project_id>/counters/<uuid:counter_id>/decrement",
        counter.counter_decrement,
        name="project-counter-decrement",
    ),
    path(
        "projects/<uuid:project_id>/counters/<uuid:counter_id>/history",
        counter.counter_history,
        name="project-counter-history",
    ),
    path(
        "projects/<uuid:project_id>/counters/<uuid:counter_id>/undo/<uuid:history_id>",
        counter.counter_undo,
        name="project-counter-undo",
    ),
    path(
        "projects/<uuid:project_id>/counters/<uuid:counter_id>/links",
        counter_link.counter_links,
        name="project-counter-links",
    ),
    path(
        "projects/<uuid:project_id>/counter-links",
        counter_link.project_links,
        name="project-links",
    ),
    path(
        "projects/<uuid:project_id>/counter-links/<uuid:link_id>",
        counter_link.link_detail,
        name="project-link",
    ),
    path(
        "projects/<uuid:project_id>/counter-links/<uuid:link_id>/toggle",
        counter_link.link_toggle,
        name="project-link-toggle",
    ),
]
