from django.apps import AppConfig  # type: ignore


class BookingsConfig(AppConfig):
    name = 'apps.bookings'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self):
        from .handlers import register_handlers

        register_handlers()
