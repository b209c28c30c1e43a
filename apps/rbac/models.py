"""
Identity models for FlightDesk.

Implements:
- User (client or admin identity, one organization each)
- UserSession (one row per issued session token)
- AuditLog (append-only audit trail)
"""
import logging
from django.db import models
from django.db.models.functions import Lower
from django.contrib.auth.hashers import make_password, check_password
from django.utils import timezone
from apps.core.models import BaseModel

logger = logging.getLogger(__name__)


class UserManager(models.Manager):
    """
    Manager for User queries.

    Compatible with Django's authentication system.
    """

    def by_username(self, username):
        """Find user by username, ignoring case."""
        return self.filter(username__iexact=username).first()

    def create_user(self, username, password=None, **extra_fields):
        """
        Create a new client user with hashed password.
        """
        if not username:
            raise ValueError('Username is required')

        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', User.ROLE_CLIENT)

        user = self.model(username=username.strip(), **extra_fields)
        if password:
            user.set_password(password)
        user.save(using=self._db)
        return user

    def create_admin(self, username, password=None, **extra_fields):
        """
        Create an admin user.

        Admins are only ever created here; registration always yields clients.
        """
        extra_fields['role'] = User.ROLE_ADMIN
        return self.create_user(username, password, **extra_fields)

    def get_by_natural_key(self, username):
        return self.get(username__iexact=username)


class User(BaseModel):
    """
    A person who can log in: either a client submitting flight requests for
    their organization, or an admin deciding them.

    This is the AUTH_USER_MODEL for the entire application.
    """

    ROLE_CLIENT = 'client'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_CLIENT, 'Client'),
        (ROLE_ADMIN, 'Admin'),
    ]

    username = models.CharField(
        max_length=150,
        unique=True,
        help_text="Login name (unique, case-insensitive)"
    )
    organization = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Organization the user belongs to"
    )
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=ROLE_CLIENT,
        db_index=True,
        help_text="Client or admin"
    )
    password_hash = models.CharField(
        max_length=255,
        help_text="Hashed password",
        db_column='password_hash'
    )

    # Status
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether user account is active"
    )

    # Activity Tracking
    last_login_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last login timestamp"
    )

    USERNAME_FIELD = 'username'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(Lower('username'), name='users_username_ci_unique'),
        ]
        indexes = [
            models.Index(fields=['organization', 'role'], name='users_org_role_idx'),
        ]

    def __str__(self):
        return f"{self.organization}/{self.username}"

    @property
    def password(self):
        """Alias for password_hash, expected by Django's auth helpers."""
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        """Check if provided password matches stored hash."""
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        """Set user password (hashes automatically)."""
        self.password_hash = make_password(raw_password)

    def update_last_login(self):
        """Update last_login_at to current time."""
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at'])

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN

    @property
    def is_authenticated(self):
        """
        Always return True for User instances.
        This is required for Django authentication compatibility.
        """
        return True

    @property
    def is_anonymous(self):
        return False

    def natural_key(self):
        return (self.username,)


class UserSessionManager(models.Manager):
    """Manager for UserSession queries."""

    def for_user(self, user):
        return self.filter(user=user)

    def active(self):
        """Sessions that are neither revoked nor expired."""
        return self.filter(revoked_at__isnull=True, expires_at__gt=timezone.now())

    def get_active(self, jti):
        """Get an active session by token id, or None."""
        return self.active().select_related('user').filter(jti=jti).first()


class UserSession(BaseModel):
    """
    Server-side record of an issued session token.

    The token itself is never stored; only its ``jti`` claim. A session is
    created at login and invalidated at logout (revoked) or expiry.
    """

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='sessions',
        help_text="User this session belongs to"
    )
    jti = models.CharField(
        max_length=64,
        unique=True,
        help_text="Token id claim of the issued session token"
    )
    expires_at = models.DateTimeField(
        db_index=True,
        help_text="Session expiry"
    )
    revoked_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the session was ended by logout"
    )
    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        help_text="IP address the session was created from"
    )
    user_agent = models.TextField(
        blank=True,
        help_text="User agent string"
    )

    objects = UserSessionManager()

    class Meta:
        db_table = 'user_sessions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'expires_at'], name='user_sessions_user_exp_idx'),
        ]

    def __str__(self):
        return f"Session {self.jti} for {self.user.username}"

    def revoke(self):
        """End the session. Revoking twice keeps the first timestamp."""
        if self.revoked_at is None:
            self.revoked_at = timezone.now()
            self.save(update_fields=['revoked_at'])


class AuditLogManager(models.Manager):
    """Manager for AuditLog queries."""

    def for_user(self, user):
        """Get audit logs for a specific user."""
        return self.filter(user=user)

    def by_action(self, action):
        """Get audit logs for a specific action."""
        return self.filter(action=action)

    def by_target(self, target_type, target_id=None):
        """Get audit logs for a specific target type and optionally target ID."""
        qs = self.filter(target_type=target_type)
        if target_id:
            qs = qs.filter(target_id=target_id)
        return qs


class AuditLog(BaseModel):
    """
    Audit trail for account and flight request operations.

    Entries are written for registration, login, logout, submission and
    decisions. Rows are never updated.
    """

    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="User who performed the action (null for system actions)"
    )

    # Action Details
    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Action performed (e.g., 'user_login', 'flight_request_declined')"
    )
    target_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Type of target entity (e.g., 'User', 'FlightRequest')"
    )
    target_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="ID of target entity"
    )

    # Request Context
    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        help_text="IP address of the request"
    )
    user_agent = models.TextField(
        blank=True,
        help_text="User agent string"
    )
    request_id = models.CharField(
        max_length=64,
        blank=True,
        db_index=True,
        help_text="Request ID for tracing"
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional context metadata"
    )

    objects = AuditLogManager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'created_at'], name='audit_logs_user_created_idx'),
            models.Index(fields=['target_type', 'target_id'], name='audit_logs_target_idx'),
        ]

    def __str__(self):
        user_str = self.user.username if self.user else 'System'
        return f"{user_str} - {self.action}"

    @classmethod
    def log_action(cls, action, user=None, target_type=None, target_id=None,
                   metadata=None, request=None):
        """
        Convenience method to create audit log entry.

        Args:
            action: Action being performed
            user: User performing the action
            target_type: Type of target entity
            target_id: ID of target entity
            metadata: Additional context
            request: Django request object (for IP, user agent, request ID)

        Returns:
            AuditLog instance, or None if the entry could not be written
        """
        if user and not user.is_authenticated:
            user = None

        log_data = {
            'action': action,
            'user': user,
            'target_type': target_type,
            'target_id': target_id,
            'metadata': metadata or {},
        }

        if request is not None:
            log_data['ip_address'] = get_client_ip(request)
            log_data['user_agent'] = request.META.get('HTTP_USER_AGENT', '')
            log_data['request_id'] = getattr(request, 'request_id', None) or ''

        try:
            return cls.objects.create(**log_data)
        except Exception as e:
            # Audit logging must not break the main operation
            logger.error(
                f"Failed to create audit log: {e.__class__.__name__}",
                extra={'action': action, 'target_id': str(target_id) if target_id else None},
                exc_info=True
            )
            return None


def get_client_ip(request):
    """Extract client IP from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')
