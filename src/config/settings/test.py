"""Test settings - uses SQLite for fast local testing."""
from .base import *  # noqa: F401,F403

DEBUG = True
SECRET_KEY = "test-only-secret-key-not-used-anywhere-near-production-0123456789"

# Use SQLite for tests (no PostgreSQL dependency)
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}
DATABASES["default"]["ATOMIC_REQUESTS"] = False

# Faster password hashing in tests
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Disable Redis cache in tests
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

# Disable Celery in tests
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

# Disable API throttling in tests for deterministic runs
REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []  # noqa: F405
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}  # noqa: F405

# Email
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
COMMISSION_PAYOUT_NOTIFY_EMAILS = ["payouts@test.com"]

# Business defaults pinned for deterministic tests
COMMISSION_OTE_POLICY = "committed"
COMMISSION_DEFAULT_CONFIG = {
    "name": "System default",
    "base_commission_rate": "0.10",
}
COMMISSION_NON_COMMISSIONABLE_REVENUE_TYPES = ["non-recurring", "service"]

# Disable logging noise during tests; let records propagate so caplog sees them
LOGGING["handlers"].pop("file")  # noqa: F405
LOGGING["root"]["level"] = "WARNING"  # noqa: F405
for _name in ("hubpay", "commissions"):
    LOGGING["loggers"][_name]["handlers"] = []  # noqa: F405
    LOGGING["loggers"][_name]["level"] = "DEBUG"  # noqa: F405
    LOGGING["loggers"][_name]["propagate"] = True  # noqa: F405
