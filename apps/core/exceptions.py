"""
Error taxonomy and the DRF exception handler.

Every failure the API reports is rendered as a flat JSON body:

    {"error": "<message>", "code": "<CODE>", "details": {...}, "request_id": "..."}

so the presentation client can show a precise message for each kind.
"""
import logging
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class FlightDeskException(Exception):
    """Base exception for FlightDesk-specific errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = 'ERROR'
    default_message = 'Request failed'

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class InvalidInput(FlightDeskException):
    """Raised when fields are missing or malformed."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'INVALID_INPUT'
    default_message = 'Invalid input'


class Unauthenticated(FlightDeskException):
    """Raised when the session token is missing, expired, revoked or garbled."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = 'UNAUTHENTICATED'
    default_message = 'Authentication required'


class InvalidCredentials(FlightDeskException):
    """Raised when login fails. Never says which part was wrong."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = 'INVALID_CREDENTIALS'
    default_message = 'Invalid username or password'


class Forbidden(FlightDeskException):
    """Raised when a valid identity attempts a disallowed operation or resource."""
    status_code = status.HTTP_403_FORBIDDEN
    code = 'FORBIDDEN'
    default_message = 'You do not have permission to perform this action'


class NotFound(FlightDeskException):
    """Raised when a resource id is unknown."""
    status_code = status.HTTP_404_NOT_FOUND
    code = 'NOT_FOUND'
    default_message = 'Not found'


class Conflict(FlightDeskException):
    """Raised on a duplicate unique key."""
    status_code = status.HTTP_409_CONFLICT
    code = 'CONFLICT'
    default_message = 'Resource already exists'


class AlreadyDecided(FlightDeskException):
    """Raised when a decision targets a request in a terminal state."""
    status_code = status.HTTP_409_CONFLICT
    code = 'ALREADY_DECIDED'
    default_message = 'This request has already been decided'


class FeedbackRequired(FlightDeskException):
    """Raised when a request is declined without feedback."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = 'FEEDBACK_REQUIRED'
    default_message = 'Feedback is required when declining a request'


class Unavailable(FlightDeskException):
    """Raised on storage or transport failure. Safe to retry after a read."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = 'UNAVAILABLE'
    default_message = 'Service temporarily unavailable. Please try again.'
    retry_after = 5


class RateLimitExceeded(FlightDeskException):
    """Raised when a public auth endpoint is called too often."""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = 'RATE_LIMIT_EXCEEDED'
    default_message = 'Rate limit exceeded. Please try again later.'

    def __init__(self, message=None, details=None, retry_after=60):
        self.retry_after = retry_after
        super().__init__(message, details)


# DRF's own exceptions mapped onto the FlightDesk codes
DRF_EXCEPTION_CODES = (
    (drf_exceptions.NotAuthenticated, Unauthenticated),
    (drf_exceptions.AuthenticationFailed, Unauthenticated),
    (drf_exceptions.PermissionDenied, Forbidden),
    (drf_exceptions.ValidationError, InvalidInput),
    (drf_exceptions.ParseError, InvalidInput),
    (drf_exceptions.NotFound, NotFound),
)


def _error_body(message, code, request_id, details=None):
    body = {
        'error': message,
        'code': code,
    }
    if details:
        body['details'] = details
    if request_id:
        body['request_id'] = request_id
    return body


def _translate_drf_exception(exc):
    """Convert DRF/Django exceptions into the matching FlightDesk exception."""
    if isinstance(exc, Http404):
        return NotFound()

    for drf_class, flightdesk_class in DRF_EXCEPTION_CODES:
        if isinstance(exc, drf_class):
            if isinstance(exc, drf_exceptions.ValidationError):
                details = exc.detail if isinstance(exc.detail, dict) else {'non_field_errors': exc.detail}
                return flightdesk_class('Validation error', details=details)
            return flightdesk_class(str(exc.detail))

    return None


def custom_exception_handler(exc, context):
    """
    Render every error in the FlightDesk format and log it.

    Domain errors are logged at warning level without traceback.
    Anything DRF cannot handle becomes a generic 500.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None
    # Set by APIView.handle_exception on 401s; lost once the exception is translated
    auth_header = getattr(exc, 'auth_header', None)

    if not isinstance(exc, FlightDeskException):
        translated = _translate_drf_exception(exc)
        if translated is not None:
            exc = translated

    if isinstance(exc, FlightDeskException):
        logger.warning(
            f"API error: {exc.code}",
            extra={
                'error_code': exc.code,
                'error_message': exc.message,
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            }
        )

        response = Response(
            _error_body(exc.message, exc.code, request_id, exc.details),
            status=exc.status_code
        )

        retry_after = getattr(exc, 'retry_after', None)
        if retry_after:
            response['Retry-After'] = str(retry_after)

        if auth_header and exc.status_code == status.HTTP_401_UNAUTHORIZED:
            response['WWW-Authenticate'] = auth_header

        return response

    # Let DRF handle anything else it knows (405, 406, 415, throttling)
    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"Unhandled API exception: {exc.__class__.__name__}",
            extra={
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=exc
        )
        return Response(
            _error_body('Internal server error', 'INTERNAL_ERROR', request_id),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    detail = response.data.get('detail') if isinstance(response.data, dict) else None
    response.data = _error_body(
        str(detail) if detail else 'Request failed',
        getattr(exc, 'default_code', 'ERROR').upper(),
        request_id
    )
    return response
