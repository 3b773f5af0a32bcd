from django.apps import AppConfig


class ForwardingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'forwarding'
    verbose_name = 'Package Forwarding'
