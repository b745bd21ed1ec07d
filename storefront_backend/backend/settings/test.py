# backend/settings/test.py
"""
PATH: backend/settings/test.py

TEST SETTINGS
- in-memory SQLite, fast hasher, locmem email
- throttles wide open so API tests never trip a rate limit
- fixed PayMongo test credentials (the gateway client is mocked in tests)
"""

from __future__ import annotations

import tempfile

from .base import *  # noqa: F403
from .base import REST_FRAMEWORK

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

MEDIA_ROOT = tempfile.mkdtemp(prefix="storefront-test-media-")

REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    "DEFAULT_THROTTLE_RATES": {
        "anon": "10000/min",
        "user": "10000/min",
        "checkout": "10000/min",
        "payments": "10000/min",
        "webhook": "10000/min",
    },
}

PAYMENTS = {
    "PAYMONGO": {
        "PUBLIC_KEY": "pk_test_storefront",
        "SECRET_KEY": "sk_test_storefront",
        "WEBHOOK_SECRET": "whsk_test_storefront",
        "SOURCE_TYPE": "gcash",
        "WEBHOOK_TOLERANCE_SECONDS": 300,
    }
}

PAYMENT_CURRENCY = "PHP"
PAYMENT_RETRY_LIMIT = 3
FRONTEND_BASE_URL = "http://testserver-frontend"
DEFAULT_FROM_EMAIL = "no-reply@pharmacy.test"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"null": {"class": "logging.NullHandler"}},
    "root": {"handlers": ["null"], "level": "CRITICAL"},
}
