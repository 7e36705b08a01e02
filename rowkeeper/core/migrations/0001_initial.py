import uuid

import django.db.models.deletion
import django.utils.timezone
import simple_history.models
from django.conf import settings
from django.db import migrations, models

HISTORY_TYPE_CHOICES = [("+", "Created"), ("~", "Changed"), ("-", "Deleted")]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("contenttypes", "0002_remove_content_type_name"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Project",
            fields=[
                ("archived", models.BooleanField(db_index=True, default=False)),
                ("archived_at", models.DateTimeField(blank=True, null=True)),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("created", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("modified", models.DateTimeField(auto_now=True, db_index=True)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                (
                    "owner",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "project",
                "verbose_name_plural": "projects",
                "ordering": ["-created"],
            },
        ),
        migrations.CreateModel(
            name="HistoricalProject",
            fields=[
                ("archived", models.BooleanField(db_index=True, default=False)),
                ("archived_at", models.DateTimeField(blank=True, null=True)),
                (
                    "id",
                    models.UUIDField(db_index=True, default=uuid.uuid4, editable=False),
                ),
                (
                    "created",
                    models.DateTimeField(blank=True, db_index=True, editable=False),
                ),
                (
                    "modified",
                    models.DateTimeField(blank=True, db_index=True, editable=False),
                ),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("history_id", models.AutoField(primary_key=True, serialize=False)),
                ("history_date", models.DateTimeField(db_index=True)),
                ("history_change_reason", models.CharField(max_length=100, null=True)),
                (
                    "history_type",
                    models.CharField(choices=HISTORY_TYPE_CHOICES, max_length=1),
                ),
                (
                    "history_user",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "historical project",
                "verbose_name_plural": "historical projects",
                "ordering": ("-history_date", "-history_id"),
                "get_latest_by": ("history_date", "history_id"),
            },
            bases=(simple_history.models.HistoricalChanges, models.Model),
        ),
        migrations.CreateModel(
            name="Counter",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("created", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("modified", models.DateTimeField(auto_now=True, db_index=True)),
                ("name", models.CharField(max_length=255)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("row", "Row"),
                            ("stitch", "Stitch"),
                            ("repeat", "Repeat"),
                            ("custom", "Custom"),
                        ],
                        default="row",
                        max_length=50,
                    ),
                ),
                ("current_value", models.IntegerField(default=0)),
                ("target_value", models.IntegerField(blank=True, null=True)),
                ("increment_by", models.IntegerField(default=1)),
                ("min_value", models.IntegerField(blank=True, default=0, null=True)),
                ("max_value", models.IntegerField(blank=True, null=True)),
                (
                    "increment_pattern",
                    models.JSONField(
                        blank=True,
                        help_text='How a single click moves the counter, e.g. {"type": "every_n", "n": 2, "increment": 1}.',
                        null=True,
                    ),
                ),
                ("sort_order", models.IntegerField(db_index=True, default=0)),
                ("is_visible", models.BooleanField(default=True)),
                ("is_active", models.BooleanField(default=True)),
                ("display_color", models.CharField(default="#3B82F6", max_length=7)),
                ("notes", models.TextField(blank=True)),
                ("auto_reset", models.BooleanField(default=False)),
                ("version", models.PositiveIntegerField(default=0)),
                (
                    "owner",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "parent_counter",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="child_counters",
                        to="core.counter",
                    ),
                ),
                (
                    "project",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="counters",
                        to="core.project",
                    ),
                ),
            ],
            options={
                "verbose_name": "counter",
                "verbose_name_plural": "counters",
                "ordering": ["sort_order", "created"],
                "indexes": [
                    models.Index(
                        fields=["project", "sort_order"],
                        name="counter_project_order_idx",
                    ),
                    models.Index(
                        fields=["project", "is_active"],
                        name="counter_project_active_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CounterHistory",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("old_value", models.IntegerField()),
                ("new_value", models.IntegerField()),
                ("action", models.CharField(blank=True, max_length=50)),
                ("user_note", models.TextField(blank=True, null=True)),
                (
                    "created",
                    models.DateTimeField(
                        db_index=True, default=django.utils.timezone.now
                    ),
                ),
                (
                    "counter",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history_entries",
                        to="core.counter",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        help_text="The user whose request produced this change",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="counter_history",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "counter history entry",
                "verbose_name_plural": "counter history",
                "ordering": ["-created"],
                "indexes": [
                    models.Index(
                        fields=["counter", "-created"],
                        name="counter_history_created_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CounterLink",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("created", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("modified", models.DateTimeField(auto_now=True, db_index=True)),
                (
                    "link_type",
                    models.CharField(
                        choices=[
                            ("conditional", "Conditional"),
                            ("reset_on_target", "Reset on target"),
                            ("advance_together", "Advance together"),
                        ],
                        default="conditional",
                        max_length=50,
                    ),
                ),
                (
                    "trigger_condition",
                    models.JSONField(
                        help_text='e.g. {"type": "multiple_of", "value": 3}'
                    ),
                ),
                (
                    "action",
                    models.JSONField(help_text='e.g. {"type": "increment", "value": 1}'),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                (
                    "source_counter",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="outgoing_links",
                        to="core.counter",
                    ),
                ),
                (
                    "target_counter",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="incoming_links",
                        to="core.counter",
                    ),
                ),
            ],
            options={
                "verbose_name": "counter link",
                "verbose_name_plural": "counter links",
                "ordering": ["-created"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("source_counter", "target_counter"),
                        name="unique_counter_link_pair",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("source_counter", models.F("target_counter")),
                            _negated=True,
                        ),
                        name="counter_link_not_self",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="HistoricalCounterLink",
            fields=[
                (
                    "id",
                    models.UUIDField(db_index=True, default=uuid.uuid4, editable=False),
                ),
                (
                    "created",
                    models.DateTimeField(blank=True, db_index=True, editable=False),
                ),
                (
                    "modified",
                    models.DateTimeField(blank=True, db_index=True, editable=False),
                ),
                (
                    "link_type",
                    models.CharField(
                        choices=[
                            ("conditional", "Conditional"),
                            ("reset_on_target", "Reset on target"),
                            ("advance_together", "Advance together"),
                        ],
                        default="conditional",
                        max_length=50,
                    ),
                ),
                (
                    "trigger_condition",
                    models.JSONField(
                        help_text='e.g. {"type": "multiple_of", "value": 3}'
                    ),
                ),
                (
                    "action",
                    models.JSONField(help_text='e.g. {"type": "increment", "value": 1}'),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("history_id", models.AutoField(primary_key=True, serialize=False)),
                ("history_date", models.DateTimeField(db_index=True)),
                ("history_change_reason", models.CharField(max_length=100, null=True)),
                (
                    "history_type",
                    models.CharField(choices=HISTORY_TYPE_CHOICES, max_length=1),
                ),
                (
                    "history_user",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "source_counter",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to="core.counter",
                    ),
                ),
                (
                    "target_counter",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to="core.counter",
                    ),
                ),
            ],
            options={
                "verbose_name": "historical counter link",
                "verbose_name_plural": "historical counter links",
                "ordering": ("-history_date", "-history_id"),
                "get_latest_by": ("history_date", "history_id"),
            },
            bases=(simple_history.models.HistoricalChanges, models.Model),
        ),
        migrations.CreateModel(
            name="Event",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("created", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("modified", models.DateTimeField(auto_now=True, db_index=True)),
                (
                    "noun",
                    models.CharField(
                        choices=[
                            ("project", "Project"),
                            ("counter", "Counter"),
                            ("counter_link", "Counter Link"),
                        ],
                        help_text="The type of object being acted upon",
                        max_length=50,
                    ),
                ),
                (
                    "verb",
                    models.CharField(
                        choices=[
                            ("create", "Create"),
                            ("update", "Update"),
                            ("delete", "Delete"),
                            ("undo", "Undo"),
                            ("linked_update", "Linked Update"),
                            ("reorder", "Reorder"),
                            ("activate", "Activate"),
                            ("deactivate", "Deactivate"),
                        ],
                        help_text="The action being performed",
                        max_length=50,
                    ),
                ),
                (
                    "object_id",
                    models.UUIDField(
                        blank=True,
                        help_text="UUID of the object being acted upon",
                        null=True,
                    ),
                ),
                (
                    "ip_address",
                    models.GenericIPAddressField(
                        blank=True,
                        help_text="IP address of the user when the action was taken",
                        null=True,
                    ),
                ),
                ("user_agent", models.TextField(blank=True)),
                (
                    "context",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Additional context data in JSON format",
                    ),
                ),
                (
                    "object_type",
                    models.ForeignKey(
                        blank=True,
                        help_text="Type of the object for generic relations",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to="contenttypes.contenttype",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "event",
                "verbose_name_plural": "events",
                "ordering": ["-created"],
                "indexes": [
                    models.Index(fields=["-created"], name="event_created_idx"),
                    models.Index(fields=["noun", "verb"], name="event_noun_verb_idx"),
                    models.Index(fields=["owner"], name="event_owner_idx"),
                    models.Index(
                        fields=["object_type", "object_id"], name="event_object_idx"
                    ),
                ],
            },
        ),
    ]
