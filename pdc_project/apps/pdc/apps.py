from django.apps import AppConfig


class PdcConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.pdc'
    verbose_name = 'Post-Dated Cheques'

    def ready(self):
        from . import signals  # noqa: F401
