from django.apps import AppConfig


class DisplayConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "display"
    verbose_name = "TV display"
