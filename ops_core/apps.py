# ops_core/apps.py

from django.apps import AppConfig


class OpsCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ops_core"
    verbose_name = "Production tracking"

    def ready(self):
        from . import signals  # noqa
