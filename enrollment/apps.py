from django.apps import AppConfig


class EnrollmentConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'enrollment'

    def ready(self):
        # Connect notification receivers
        from . import signals  # noqa: F401
