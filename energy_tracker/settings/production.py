"""
Production settings for energy_tracker project.

Select with DJANGO_SETTINGS_MODULE=energy_tracker.settings.production.
DEBUG is always off and the PostgreSQL database from base is used.
"""

from django.core.exceptions import ImproperlyConfigured

from .base import *  # noqa: F403, F401

DEBUG = False

if not ALLOWED_HOSTS:  # noqa: F405
    raise ImproperlyConfigured("ALLOWED_HOSTS must be set in production")

for _name, _insecure in (
    ("SECRET_KEY", "django-insecure-change-me"),
    ("JWT_SECRET", "change_me_long_random_secret"),
):
    if globals()[_name] == _insecure:
        raise ImproperlyConfigured(f"{_name} must be set in production")
