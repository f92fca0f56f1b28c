"""
Local development settings for energy_tracker project.

DEBUG stays off unless the environment sets DEBUG=1 (the .env.example does).
"""

import os

from .base import *  # noqa: F403, F401

ALLOWED_HOSTS = ALLOWED_HOSTS or ["localhost", "127.0.0.1", "testserver"]  # noqa: F405

# Use SQLite for local development if PostgreSQL is not available
# To use PostgreSQL, set up the database and update .env file
if not os.getenv("DATABASE_PASSWORD"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",  # noqa: F405
        }
    }
