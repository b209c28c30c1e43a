"""
Authentication REST API views.

Implements endpoints for:
- User registration
- Login
- Logout
- Current user
"""
import json

from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django_ratelimit.decorators import ratelimit
from django.utils.decorators import method_decorator
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import RateLimitExceeded
from apps.core.logging import SecurityLogger
from apps.rbac.models import get_client_ip
from apps.rbac.services import AuthService
from apps.rbac.serializers import (
    RegistrationSerializer, LoginSerializer, UserSerializer,
    LoginResponseSerializer, RegistrationResponseSerializer,
)


def username_key(group, request):
    """Rate limit key: the username in a JSON login body."""
    try:
        body = json.loads(request.body or b'{}')
    except ValueError:
        return ''
    username = body.get('username') if isinstance(body, dict) else None
    return str(username).strip().lower() if username else ''


def check_rate_limit(request, endpoint, limit, username=None):
    """Raise RateLimitExceeded if a ratelimit decorator flagged the request."""
    if getattr(request, 'limited', False):
        SecurityLogger.log_rate_limit_exceeded(
            endpoint=endpoint,
            ip_address=get_client_ip(request),
            username=username,
            limit=limit,
        )
        raise RateLimitExceeded()


RATE_LIMIT_EXAMPLE = OpenApiExample(
    'Rate Limit Exceeded',
    value={
        'error': 'Rate limit exceeded. Please try again later.',
        'code': 'RATE_LIMIT_EXCEEDED'
    },
    response_only=True,
    status_codes=['429']
)


@extend_schema(
    tags=['Authentication'],
    summary='Register new client',
    description='''
Register a new client account for an organization.

Accounts created here always have the `client` role. Admin accounts are
provisioned by an operator with `manage.py create_admin`.

**No authentication required** - this is a public endpoint.

**Rate limit**: 3 requests/hour per IP
    ''',
    request=RegistrationSerializer,
    responses={
        201: RegistrationResponseSerializer,
        400: OpenApiTypes.OBJECT,
        409: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Registration Request',
            value={
                'username': 'alice',
                'password': 'correct-horse-battery',
                'organization': 'acme'
            },
            request_only=True
        ),
        OpenApiExample(
            'Username Taken',
            value={
                'error': "Username 'alice' is already taken",
                'code': 'CONFLICT',
                'details': {'username': 'alice'}
            },
            response_only=True,
            status_codes=['409']
        ),
        RATE_LIMIT_EXAMPLE,
    ]
)
@method_decorator(ratelimit(key='ip', rate='3/h', method='POST', block=False), name='dispatch')
class RegistrationView(APIView):
    """
    POST /api/auth/register

    Register a new client user.

    No authentication required.
    Rate limited to 3 requests per hour per IP.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        """Register user."""
        check_rate_limit(request, '/api/auth/register', '3/hour per IP')

        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = AuthService.register(
            username=serializer.validated_data['username'],
            password=serializer.validated_data['password'],
            organization=serializer.validated_data['organization'],
            request=request,
        )

        return Response(
            {
                'user': UserSerializer(user).data,
                'message': 'Registration successful. Please log in.',
            },
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Authentication'],
    summary='Login',
    description='''
Authenticate with username and password and receive a session token.

Send the token as `Authorization: Bearer <token>` on every other call.
Unknown usernames and wrong passwords get the same response.

**No authentication required** - this is a public endpoint.

**Rate limit**: 5 requests/minute per IP, 10 requests/hour per username
    ''',
    request=LoginSerializer,
    responses={
        200: LoginResponseSerializer,
        400: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Login Request',
            value={
                'username': 'alice',
                'password': 'correct-horse-battery'
            },
            request_only=True
        ),
        OpenApiExample(
            'Invalid Credentials',
            value={
                'error': 'Invalid username or password',
                'code': 'INVALID_CREDENTIALS'
            },
            response_only=True,
            status_codes=['401']
        ),
        RATE_LIMIT_EXAMPLE,
    ]
)
@method_decorator(ratelimit(key='ip', rate='5/m', method='POST', block=False), name='dispatch')
@method_decorator(ratelimit(key=username_key, rate='10/h', method='POST', block=False), name='dispatch')
class LoginView(APIView):
    """
    POST /api/auth/login

    Authenticate user and return a session token.

    No authentication required.
    Rate limited to:
    - 5 requests per minute per IP address
    - 10 requests per hour per username
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        """Login user."""
        check_rate_limit(
            request,
            '/api/auth/login',
            '5/min per IP or 10/hour per username',
            username=request.data.get('username') if isinstance(request.data, dict) else None,
        )

        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user, token = AuthService.login(
            username=serializer.validated_data['username'],
            password=serializer.validated_data['password'],
            request=request,
        )

        return Response(
            {
                'user': UserSerializer(user).data,
                'token': token,
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Authentication'],
    summary='Logout',
    description='End the current session. The token stops working immediately.',
    request=None,
    responses={
        200: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
    },
)
class LogoutView(APIView):
    """
    POST /api/auth/logout

    Revoke the session behind the bearer token.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        """Logout user."""
        AuthService.logout(request._request.session_token, request=request)
        return Response({'message': 'Logout successful'}, status=status.HTTP_200_OK)


@extend_schema(
    tags=['Authentication'],
    summary='Current user',
    description='Return the user behind the bearer token.',
    responses={
        200: UserSerializer,
        401: OpenApiTypes.OBJECT,
    },
)
class MeView(APIView):
    """
    GET /api/auth/me
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(UserSerializer(request.user).data)
