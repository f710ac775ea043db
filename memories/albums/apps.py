# albums/apps.py
from django.apps import AppConfig

class AlbumsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "albums"
    verbose_name = "Album Pages"

    def ready(self):
        from . import signals  # register signal handlers
