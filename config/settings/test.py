# config/settings/test.py
import os

from .base import *  # noqa

if os.getenv("DB_ENGINE", "sqlite").lower() != "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": ":memory:",
            "TEST": {"NAME": ":memory:"},
        }
    }

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

CASES_WORKLOAD_LIMIT = 5
CASES_NOTIFIER = "cm_core.notifications.services.NotificationService"

LOGGING["root"]["level"] = "WARNING"  # noqa: F405
LOGGING["loggers"]["cm_core"]["level"] = "WARNING"  # noqa: F405
