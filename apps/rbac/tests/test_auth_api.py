"""
Tests for the authentication endpoints.
"""
import pytest
from django.core.cache import cache
from rest_framework import status
from rest_framework.test import APIClient

from apps.rbac.models import User

PASSWORD = 'flight-desk-pass-1'


@pytest.mark.django_db
class TestRegistrationAPI:

    def test_register(self, api_client):
        response = api_client.post('/api/auth/register', {
            'username': 'carol',
            'password': PASSWORD,
            'organization': 'acme',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['user']['username'] == 'carol'
        assert response.data['user']['role'] == 'client'
        assert 'password' not in response.data['user']
        assert 'password_hash' not in response.data['user']
        assert User.objects.filter(username='carol').exists()

    def test_register_ignores_role_field(self, api_client):
        response = api_client.post('/api/auth/register', {
            'username': 'mallory',
            'password': PASSWORD,
            'organization': 'acme',
            'role': 'admin',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert User.objects.get(username='mallory').role == User.ROLE_CLIENT

    def test_register_missing_field(self, api_client):
        response = api_client.post('/api/auth/register', {
            'username': 'carol',
            'password': PASSWORD,
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'INVALID_INPUT'
        assert 'organization' in response.data['details']

    def test_register_duplicate(self, api_client, client_user):
        response = api_client.post('/api/auth/register', {
            'username': 'alice',
            'password': PASSWORD,
            'organization': 'acme',
        }, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == 'CONFLICT'

    def test_register_weak_password(self, api_client):
        response = api_client.post('/api/auth/register', {
            'username': 'carol',
            'password': '1234',
            'organization': 'acme',
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'password' in response.data['details']


@pytest.mark.django_db
class TestLoginAPI:

    def test_login(self, api_client, client_user):
        response = api_client.post('/api/auth/login', {
            'username': 'alice',
            'password': PASSWORD,
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['user']['organization'] == 'acme'
        assert response.data['token']

    def test_login_wrong_password(self, api_client, client_user):
        response = api_client.post('/api/auth/login', {
            'username': 'alice',
            'password': 'not-the-password',
        }, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'INVALID_CREDENTIALS'

    def test_login_unknown_user_same_response(self, api_client, client_user):
        wrong_password = api_client.post('/api/auth/login', {
            'username': 'alice', 'password': 'not-the-password',
        }, format='json')
        unknown_user = api_client.post('/api/auth/login', {
            'username': 'nobody', 'password': 'not-the-password',
        }, format='json')

        assert wrong_password.status_code == unknown_user.status_code
        assert wrong_password.data['error'] == unknown_user.data['error']

    def test_token_authenticates_requests(self, api_client, client_user):
        token = api_client.post('/api/auth/login', {
            'username': 'alice', 'password': PASSWORD,
        }, format='json').data['token']

        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = api_client.get('/api/auth/me')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['username'] == 'alice'
        assert response.data['role'] == 'client'


@pytest.mark.django_db
class TestSessionAPI:

    def test_me_requires_token(self, api_client):
        response = api_client.get('/api/auth/me')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'UNAUTHENTICATED'
        assert response['WWW-Authenticate'] == 'Bearer'

    def test_garbled_token(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')
        response = api_client.get('/api/auth/me')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'UNAUTHENTICATED'
        assert response['WWW-Authenticate'] == 'Bearer'

    def test_malformed_header(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer two parts')
        response = api_client.get('/api/auth/me')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_logout_ends_session(self, client_api):
        response = client_api.post('/api/auth/logout')
        assert response.status_code == status.HTTP_200_OK

        response = client_api.get('/api/auth/me')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['error'] == 'Session has ended. Please log in again.'

    def test_logout_requires_token(self, api_client):
        response = api_client.post('/api/auth/logout')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestAuthRateLimits:

    @pytest.fixture(autouse=True)
    def enable_rate_limits(self, settings):
        settings.RATELIMIT_ENABLE = True
        cache.clear()
        yield
        cache.clear()

    def test_registration_rate_limited_per_ip(self):
        client = APIClient()
        for i in range(3):
            response = client.post('/api/auth/register', {
                'username': f'user{i}', 'password': PASSWORD, 'organization': 'acme',
            }, format='json')
            assert response.status_code == status.HTTP_201_CREATED

        response = client.post('/api/auth/register', {
            'username': 'user4', 'password': PASSWORD, 'organization': 'acme',
        }, format='json')

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.data['code'] == 'RATE_LIMIT_EXCEEDED'
        assert 'Retry-After' in response
        assert not User.objects.filter(username='user4').exists()

    def test_login_rate_limited_per_username(self, client_user):
        # Spread attempts over many addresses; the username limit still applies
        for i in range(10):
            response = APIClient(REMOTE_ADDR=f'10.0.0.{i}').post('/api/auth/login', {
                'username': 'alice', 'password': 'not-the-password',
            }, format='json')
            assert response.status_code == status.HTTP_401_UNAUTHORIZED

        response = APIClient(REMOTE_ADDR='10.0.1.1').post('/api/auth/login', {
            'username': 'alice', 'password': PASSWORD,
        }, format='json')

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
