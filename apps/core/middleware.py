"""
Core middleware for request processing.
"""
import logging
import re
import threading
import uuid
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

# Matches AuditLog.request_id's column width
REQUEST_ID_PATTERN = re.compile(r'[A-Za-z0-9._-]{1,64}')


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing.
    The request_id is added to the request object, to log records and to
    the response headers.

    A caller-supplied X-Request-ID is kept only if it is a short token of
    letters, digits, dots, dashes and underscores; anything else is replaced
    with a fresh UUID.
    """

    def process_request(self, request):
        request_id = self._get_or_generate_request_id(request)
        request.request_id = request_id
        threading.current_thread().request_id = request_id

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id

        thread = threading.current_thread()
        if hasattr(thread, 'request_id'):
            del thread.request_id

        return response

    def _get_or_generate_request_id(self, request):
        request_id = request.META.get('HTTP_X_REQUEST_ID')
        if request_id and REQUEST_ID_PATTERN.fullmatch(request_id):
            return request_id
        if request_id:
            logger.debug("Replacing malformed X-Request-ID", extra={'header_length': len(request_id)})
        return str(uuid.uuid4())


class LoggingFilter(logging.Filter):
    """
    Add request_id to log records from thread-local storage.
    """

    def filter(self, record):
        if not getattr(record, 'request_id', None):
            record.request_id = getattr(threading.current_thread(), 'request_id', None)
        return True
