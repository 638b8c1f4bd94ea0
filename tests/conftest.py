"""
Shared fixtures for the marketplace test suite.
"""

import pytest
from rest_framework.test import APIClient

from marketplace.models import Role, VerificationStatus

from helpers import bearer, create_plot, create_user


@pytest.fixture(autouse=True)
def clear_cache():
    """Clear Django cache before each test to reset throttle limits."""
    from django.core.cache import cache
    cache.clear()


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    """Keep uploaded files out of the project's media directory."""
    settings.MEDIA_ROOT = tmp_path / 'media'
    return settings.MEDIA_ROOT


@pytest.fixture
def api_client():
    """Provide API client for testing."""
    return APIClient()


@pytest.fixture
def gardener(db):
    return create_user('gardener@example.com', Role.GARDENER)


@pytest.fixture
def other_gardener(db):
    return create_user('other.gardener@example.com', Role.GARDENER)


@pytest.fixture
def landowner(db):
    return create_user('landowner@example.com', Role.LANDOWNER)


@pytest.fixture
def other_landowner(db):
    return create_user('other.landowner@example.com', Role.LANDOWNER)


@pytest.fixture
def marketplace_admin(db):
    return create_user(
        'admin@example.com',
        Role.ADMIN,
        verification_status=VerificationStatus.APPROVED,
    )


@pytest.fixture
def plot(landowner):
    """An approved, available plot owned by ``landowner``."""
    return create_plot(landowner)


@pytest.fixture
def client_for(api_client):
    """Return the API client authenticated as the given user."""
    def _client_for(user):
        api_client.credentials(HTTP_AUTHORIZATION=bearer(user))
        return api_client
    return _client_for
