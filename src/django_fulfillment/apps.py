"""Django app configuration for django-fulfillment."""

from django.apps import AppConfig


class DjangoFulfillmentConfig(AppConfig):
    """App configuration for django-fulfillment."""

    name = 'django_fulfillment'
    verbose_name = 'Django Fulfillment'
    default_auto_field = 'django.db.models.BigAutoField'
