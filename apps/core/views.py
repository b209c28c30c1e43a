"""
Service health endpoint.

Each check touches one thing the request workflow depends on and raises when
it is not usable. The endpoint reports every check by name so an operator can
tell a dead session table from a dead rate-limit cache.
"""
import logging

from django.core.cache import cache
from django.db import connection
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.log_sanitizer import sanitize_url
from apps.flights.models import FlightRequest
from apps.rbac.models import UserSession

logger = logging.getLogger(__name__)

HEALTH_CACHE_KEY = 'flightdesk:health'


def check_database():
    with connection.cursor() as cursor:
        cursor.execute('SELECT 1')


def check_sessions():
    # Login, logout and every authenticated call resolve through this table
    UserSession.objects.active().exists()


def check_flight_requests():
    FlightRequest.objects.pending().exists()


def check_rate_limit_cache():
    cache.set(HEALTH_CACHE_KEY, 'ok', timeout=10)
    if cache.get(HEALTH_CACHE_KEY) != 'ok':
        raise RuntimeError('Cache did not return the value just written')


HEALTH_CHECKS = (
    ('database', check_database),
    ('sessions', check_sessions),
    ('flight_requests', check_flight_requests),
    ('rate_limit_cache', check_rate_limit_cache),
)

_CHECK_STATES = {'type': 'object', 'additionalProperties': {'type': 'string', 'enum': ['ok', 'failed']}}


class HealthCheckView(APIView):
    """
    GET /api/health

    Unauthenticated. 200 when every check passes, 503 otherwise.
    """
    authentication_classes = []
    permission_classes = []

    @extend_schema(
        tags=['Health'],
        summary="Service health",
        description="Run the database, session store, flight request store and rate-limit cache checks",
        responses={
            200: {
                'type': 'object',
                'properties': {'status': {'type': 'string'}, 'checks': _CHECK_STATES},
            },
            503: {
                'type': 'object',
                'properties': {
                    'status': {'type': 'string'},
                    'checks': _CHECK_STATES,
                    'errors': {'type': 'array', 'items': {'type': 'string'}},
                },
            },
        }
    )
    def get(self, request):
        checks = {}
        errors = []

        for name, check in HEALTH_CHECKS:
            try:
                check()
            except Exception as e:
                checks[name] = 'failed'
                errors.append(f"{name}: {sanitize_url(str(e))}")
                logger.error(
                    f"Health check '{name}' failed",
                    exc_info=True,
                    extra={'check': name},
                )
            else:
                checks[name] = 'ok'

        if errors:
            return Response(
                {'status': 'unhealthy', 'checks': checks, 'errors': errors},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return Response({'status': 'healthy', 'checks': checks}, status=status.HTTP_200_OK)
