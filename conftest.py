# conftest.py

import pytest


@pytest.fixture(autouse=True)
def _test_runtime_settings(settings):
    # Secure cookies come from .env in production; tests talk plain http
    settings.SECURE_SSL_REDIRECT = False
    settings.SESSION_COOKIE_SECURE = False
    settings.CSRF_COOKIE_SECURE = False
    settings.SECURE_HSTS_SECONDS = 0

    # Outbox delivery is driven explicitly by the tests
    settings.CELERY_TASK_ALWAYS_EAGER = False
    settings.OUTBOX_MAX_ATTEMPTS = 3
