"""
Authentication and authorization services.

Implements:
- AuthService: registration, login/logout, JWT session tokens, token resolution
- AuthorizationGate: per-operation role rules and client resource scope
"""
import logging
import uuid
from typing import Optional, Dict, Any, Tuple
from datetime import timedelta
from django.conf import settings
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone
import jwt

from apps.core.db import storage_guard
from apps.core.exceptions import (
    Conflict, Forbidden, InvalidCredentials, InvalidInput, Unauthenticated,
)
from apps.core.logging import SecurityLogger
from apps.core.validators import InputValidator
from apps.rbac.identity import (
    ClientIdentity, Identity, OPERATION_ROLES, identity_for_user,
)
from apps.rbac.models import User, UserSession, AuditLog, get_client_ip

logger = logging.getLogger(__name__)


class AuthService:
    """
    Service for authentication operations: registration, login, logout and
    JWT session tokens.
    """

    @classmethod
    def generate_jwt(cls, user: User, request=None) -> Tuple[str, UserSession]:
        """
        Issue a session token for a user and record its session row.

        Args:
            user: User instance
            request: Django request the session is created from (optional)

        Returns:
            Tuple of (JWT token string, UserSession)
        """
        now = timezone.now()
        expires_at = now + timedelta(hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24))
        jti = uuid.uuid4().hex

        session = UserSession.objects.create(
            user=user,
            jti=jti,
            expires_at=expires_at,
            ip_address=get_client_ip(request) if request is not None else None,
            user_agent=request.META.get('HTTP_USER_AGENT', '') if request is not None else '',
        )

        payload = {
            'user_id': str(user.id),
            'username': user.username,
            'jti': jti,
            'exp': expires_at,
            'iat': now,
        }

        token = jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
        )

        return token, session

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """
        Validate JWT token and return payload.

        Returns:
            Decoded payload dict or None if invalid or expired
        """
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')],
                options={'require': ['exp', 'iat', 'jti']},
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    @storage_guard(read_only=True)
    def resolve_session(cls, token: str, ip_address: Optional[str] = None) -> Tuple[User, UserSession]:
        """
        Resolve a session token to its user and session row.

        A correctly signed token whose ``user_id`` claim names someone other
        than the session owner is reported as suspicious activity.

        Raises:
            Unauthenticated: token missing, garbled, expired or revoked, or
                the user is gone or inactive
        """
        if not token:
            raise Unauthenticated('Authentication credentials were not provided')

        payload = cls.validate_jwt(token)
        if not payload:
            raise Unauthenticated('Invalid or expired session token')

        session = UserSession.objects.get_active(payload['jti'])
        if session is None:
            raise Unauthenticated('Session has ended. Please log in again.')

        user = session.user
        if str(user.id) != payload.get('user_id'):
            SecurityLogger.log_suspicious_activity(
                'session_user_mismatch',
                'Session token names a user other than its session owner',
                ip_address=ip_address,
                session_user_id=str(user.id),
                claimed_user_id=str(payload.get('user_id')),
            )
            raise Unauthenticated('Invalid or expired session token')
        if not user.is_active:
            raise Unauthenticated('Invalid or expired session token')

        return user, session

    @classmethod
    def resolve_identity(cls, token: str) -> Identity:
        """Resolve a session token to a ClientIdentity or AdminIdentity."""
        user, _ = cls.resolve_session(token)
        return identity_for_user(user)

    @classmethod
    @storage_guard()
    def register(cls, username: str, password: str, organization: str, request=None) -> User:
        """
        Register a new client user.

        Registration never creates admins; see the ``create_admin`` command.

        Raises:
            InvalidInput: a field is blank or the password is too weak
            Conflict: the username is taken
        """
        fields = InputValidator.require_fields(username=username, password=password, organization=organization)
        username = fields['username']
        organization = fields['organization']

        try:
            validate_password(password)
        except DjangoValidationError as e:
            raise InvalidInput('Password is too weak', details={'password': list(e.messages)})

        if User.objects.filter(username__iexact=username).exists():
            raise Conflict(f"Username '{username}' is already taken", details={'username': username})

        user = User(username=username, organization=organization, role=User.ROLE_CLIENT)
        user.set_password(password)
        try:
            with transaction.atomic():
                user.save()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same name
            raise Conflict(f"Username '{username}' is already taken", details={'username': username})

        logger.info(
            f"User registered: {username}",
            extra={'user_id': str(user.id), 'organization': organization}
        )

        AuditLog.log_action(
            action='user_registered',
            user=user,
            target_type='User',
            target_id=user.id,
            metadata={'username': username, 'organization': organization},
            request=request,
        )

        return user

    @classmethod
    @storage_guard()
    def login(cls, username: str, password: str, request=None) -> Tuple[User, str]:
        """
        Authenticate a user and open a session.

        Every failure raises the same InvalidCredentials error; the cause is
        only written to the security log.

        Returns:
            Tuple of (User, session token)
        """
        username = (username or '').strip()
        ip_address = get_client_ip(request) if request is not None else None
        user_agent = request.META.get('HTTP_USER_AGENT', '') if request is not None else None

        user = User.objects.by_username(username) if username else None

        if user is None:
            # Run the hasher anyway so response time does not reveal unknown names
            User().set_password(password or '')
            reason = 'unknown_user'
        elif not user.check_password(password or ''):
            reason = 'bad_password'
        elif not user.is_active:
            reason = 'inactive_account'
        else:
            reason = None

        if reason:
            SecurityLogger.log_failed_login(
                username=username,
                ip_address=ip_address,
                user_agent=user_agent,
                reason=reason,
            )
            raise InvalidCredentials()

        token, session = cls.generate_jwt(user, request=request)
        user.update_last_login()

        logger.info(
            f"User logged in: {user.username}",
            extra={'user_id': str(user.id), 'role': user.role}
        )

        AuditLog.log_action(
            action='user_login',
            user=user,
            target_type='User',
            target_id=user.id,
            metadata={'session_id': str(session.id)},
            request=request,
        )

        return user, token

    @classmethod
    @storage_guard()
    def logout(cls, token: str, request=None) -> None:
        """
        End the session behind a token. Later use of the token fails with
        Unauthenticated.
        """
        user, session = cls.resolve_session(token)
        session.revoke()

        logger.info(
            f"User logged out: {user.username}",
            extra={'user_id': str(user.id), 'session_id': str(session.id)}
        )

        AuditLog.log_action(
            action='user_logout',
            user=user,
            target_type='User',
            target_id=user.id,
            metadata={'session_id': str(session.id)},
            request=request,
        )


class AuthorizationGate:
    """
    Enforces which identities may perform which operations.

    Operations are the codes in ``apps.rbac.identity.OPERATION_ROLES``. A
    client may only ever touch flight requests submitted under their own
    organization and username.
    """

    @classmethod
    def authorize(cls, identity: Optional[Identity], operation: str, resource=None, request=None) -> Identity:
        """
        Authorize an operation for an identity.

        Args:
            identity: Identity resolved from the session token
            operation: Operation code
            resource: Flight request the operation targets (optional)
            request: Django request, for the security log (optional)

        Returns:
            The identity, unchanged

        Raises:
            Unauthenticated: no identity
            Forbidden: role not allowed, or resource outside a client's scope
        """
        if identity is None:
            raise Unauthenticated('Authentication credentials were not provided')

        allowed = OPERATION_ROLES.get(operation)
        if allowed is None:
            raise ValueError(f"Unknown operation: {operation}")

        if not isinstance(identity, allowed):
            cls._deny(identity, operation, request=request)
            raise Forbidden(
                f"Role '{identity.role}' may not perform {operation}",
                details={'operation': operation}
            )

        if resource is not None and isinstance(identity, ClientIdentity) and not identity.owns(resource):
            cls._deny(identity, operation, resource=resource, request=request)
            raise Forbidden('This request belongs to another client')

        return identity

    @classmethod
    def authorize_token(cls, token: str, operation: str, resource=None, request=None) -> Identity:
        """Resolve a session token and authorize the operation in one step."""
        identity = AuthService.resolve_identity(token)
        return cls.authorize(identity, operation, resource=resource, request=request)

    @staticmethod
    def _deny(identity, operation, resource=None, request=None):
        SecurityLogger.log_permission_denied(
            user_id=str(identity.user_id),
            role=identity.role,
            operation=operation,
            ip_address=get_client_ip(request) if request is not None else None,
            resource_id=str(resource.id) if resource is not None else None,
        )
