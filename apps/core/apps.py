from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging

logger = logging.getLogger(__name__)

KEY_HINT = 'Generate a strong key with: python -c "import secrets; print(secrets.token_urlsafe(32))"'


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Validate the session token signing key before the application starts
        accepting requests.
        """
        import sys
        if 'runserver' not in sys.argv and 'gunicorn' not in sys.argv[0]:
            # Skip validation for management commands other than runserver
            if len(sys.argv) > 1 and sys.argv[1] not in ['runserver', 'test']:
                return

        validate_jwt_configuration(
            getattr(settings, 'JWT_SECRET_KEY', None),
            getattr(settings, 'SECRET_KEY', None),
        )
        logger.info("JWT configuration validated")


def validate_jwt_configuration(jwt_secret, secret_key):
    """
    Raise ImproperlyConfigured unless the JWT key is long, distinct from
    SECRET_KEY, and not a trivial pattern.
    """
    if not jwt_secret:
        raise ImproperlyConfigured(f"JWT_SECRET_KEY must be set in environment variables. {KEY_HINT}")

    if len(jwt_secret) < 32:
        raise ImproperlyConfigured(
            f"JWT_SECRET_KEY must be at least 32 characters long. "
            f"Current length: {len(jwt_secret)}. {KEY_HINT}"
        )

    if jwt_secret == secret_key:
        raise ImproperlyConfigured(f"JWT_SECRET_KEY must be different from SECRET_KEY. {KEY_HINT}")

    unique_chars = len(set(jwt_secret))
    if unique_chars < 16:
        raise ImproperlyConfigured(
            f"JWT_SECRET_KEY has insufficient entropy. "
            f"Found only {unique_chars} unique characters, need at least 16. {KEY_HINT}"
        )
