"""
Pytest configuration and fixtures.
"""
import pytest


TEST_PASSWORD = 'flight-desk-pass-1'


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def client_user(db):
    """Create a client user in organization 'acme'."""
    from apps.rbac.models import User
    return User.objects.create_user('alice', TEST_PASSWORD, organization='acme')


@pytest.fixture
def other_client_user(db):
    """Create a client user in another organization."""
    from apps.rbac.models import User
    return User.objects.create_user('bob', TEST_PASSWORD, organization='globex')


@pytest.fixture
def admin_user(db):
    """Create an admin user."""
    from apps.rbac.models import User
    return User.objects.create_admin('root', TEST_PASSWORD, organization='flightdesk')


@pytest.fixture
def client_identity(client_user):
    from apps.rbac.identity import identity_for_user
    return identity_for_user(client_user)


@pytest.fixture
def other_client_identity(other_client_user):
    from apps.rbac.identity import identity_for_user
    return identity_for_user(other_client_user)


@pytest.fixture
def admin_identity(admin_user):
    from apps.rbac.identity import identity_for_user
    return identity_for_user(admin_user)


def _token_for(user):
    from apps.rbac.services import AuthService
    token, _ = AuthService.generate_jwt(user)
    return token


@pytest.fixture
def client_token(client_user):
    return _token_for(client_user)


@pytest.fixture
def admin_token(admin_user):
    return _token_for(admin_user)


@pytest.fixture
def client_api(api_client, client_token):
    """API client authenticated as the 'acme/alice' client."""
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {client_token}')
    return api_client


@pytest.fixture
def admin_api(admin_token):
    """API client authenticated as the admin."""
    from rest_framework.test import APIClient
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {admin_token}')
    return client


@pytest.fixture
def flight_request(client_identity):
    """A pending flight request submitted by 'acme/alice'."""
    from apps.flights.services import WorkflowService
    return WorkflowService.submit(
        client_identity,
        date='2024-06-01',
        time='14:00',
        area='Harbor District',
        description='Survey',
    )
