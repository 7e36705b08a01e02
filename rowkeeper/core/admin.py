from django.contrib import admin, messages
from simple_history.admin import SimpleHistoryAdmin

from .handlers.counter import handle_counter_update
from .handlers.counter.value import COUNTER_METADATA_FIELDS
from .models import Counter, CounterHistory, CounterLink, Event, Project


@admin.action(description="Archive selected projects")
def archive_projects(modeladmin, request, queryset):
    projects = list(queryset.filter(archived=False))
    for project in projects:
        project.archive()
    modeladmin.message_user(
        request, f"Archived {len(projects)} project(s).", messages.SUCCESS
    )


@admin.action(description="Unarchive selected projects")
def unarchive_projects(modeladmin, request, queryset):
    projects = list(queryset.filter(archived=True))
    for project in projects:
        project.unarchive()
    modeladmin.message_user(
        request, f"Unarchived {len(projects)} project(s).", messages.SUCCESS
    )


class CounterInline(admin.TabularInline):
    model = Counter
    extra = 0
    can_delete = False
    fields = ["name", "type", "current_value", "min_value", "max_value", "sort_order"]
    readonly_fields = fields
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Project)
class ProjectAdmin(SimpleHistoryAdmin):
    list_display = ["name", "owner", "archived", "created"]
    list_filter = ["archived"]
    search_fields = ["name", "owner__username"]
    inlines = [CounterInline]
    actions = [archive_projects, unarchive_projects]


class CounterHistoryInline(admin.TabularInline):
    model = CounterHistory
    extra = 0
    can_delete = False
    fields = ["created", "old_value", "new_value", "action", "user_note", "user"]
    readonly_fields = fields
    ordering = ["-created"]

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Counter)
class CounterAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "project",
        "type",
        "current_value",
        "min_value",
        "max_value",
        "is_active",
        "version",
    ]
    list_filter = ["type", "is_active"]
    search_fields = ["name", "project__name"]
    readonly_fields = [
        "project",
        "owner",
        "current_value",
        "version",
        "created",
        "modified",
    ]
    inlines = [CounterHistoryInline]

    def has_add_permission(self, request):
        return False

    def save_model(self, request, obj, form, change):
        """Save through the counter handler so bounds, history and links apply."""
        changes = {
            name: form.cleaned_data[name]
            for name in form.changed_data
            if name in COUNTER_METADATA_FIELDS
        }
        handle_counter_update(
            user=request.user,
            project=obj.project,
            counter=obj,
            changes=changes,
            request=request,
        )
        obj.refresh_from_db()


@admin.register(CounterLink)
class CounterLinkAdmin(SimpleHistoryAdmin):
    list_display = [
        "source_counter",
        "target_counter",
        "link_type",
        "is_active",
        "created",
    ]
    list_filter = ["link_type", "is_active"]
    search_fields = ["source_counter__name", "target_counter__name"]


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    """Admin configuration for Event model."""

    list_display = ["created", "owner", "verb", "noun", "object_type", "object_id"]
    list_filter = ["created", "noun", "verb", "object_type"]
    search_fields = ["owner__username", "ip_address", "object_id"]
    readonly_fields = ["id", "created", "modified", "object"]
    date_hierarchy = "created"
