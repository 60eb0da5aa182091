import os

os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from backend.celery import app as celery_app


@pytest.fixture(autouse=True)
def _isolated_cache_and_eager_celery():
    cache.clear()
    # Finalize first so loading CELERY_* from settings cannot undo eager mode.
    celery_app.finalize()
    celery_app.conf.update(task_always_eager=True, task_eager_propagates=True)
    # Settings are loaded by pytest-django before the env var above is set, and
    # the CELERY_-namespaced Django settings take precedence over plain keys.
    celery_app.conf.update(CELERY_TASK_ALWAYS_EAGER=True, CELERY_TASK_EAGER_PROPAGATES=True)
    yield
    cache.clear()


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(
        username="alice",
        email="alice@example.com",
        password="pass1234",
    )


@pytest.fixture
def other_user(db):
    return get_user_model().objects.create_user(
        username="bob",
        email="bob@example.com",
        password="pass1234",
    )


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client
