from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Projects, counters, counter history and counter links."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "rowkeeper.core"
    verbose_name = "Rowkeeper"

    def ready(self):
        # Connect signal receivers
        from rowkeeper.core import signals  # noqa: F401
