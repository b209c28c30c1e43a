"""
Flight request workflow service.

Owns the request state machine:

    pending --accept--> accepted
    pending --decline (feedback required)--> declined

Every operation takes the caller's identity and runs it through the
AuthorizationGate before touching storage.
"""
import logging
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from apps.core.db import storage_guard
from apps.core.exceptions import (
    AlreadyDecided, FeedbackRequired, InvalidInput, NotFound,
)
from apps.core.logging import SecurityLogger
from apps.core.validators import InputValidator
from apps.flights.models import FlightRequest
from apps.rbac import identity as ops
from apps.rbac.identity import AdminIdentity, ClientIdentity, Identity
from apps.rbac.models import AuditLog
from apps.rbac.services import AuthorizationGate

logger = logging.getLogger(__name__)


# Accepted spellings of a decision outcome, mapped to the terminal status
OUTCOMES = {
    'accept': FlightRequest.STATUS_ACCEPTED,
    'accepted': FlightRequest.STATUS_ACCEPTED,
    'decline': FlightRequest.STATUS_DECLINED,
    'declined': FlightRequest.STATUS_DECLINED,
}


def _parse_request_id(request_id) -> UUID:
    if isinstance(request_id, UUID):
        return request_id
    try:
        return UUID(str(request_id))
    except ValueError:
        # Not a request id we could ever have issued
        raise NotFound('Flight request not found', details={'request_id': str(request_id)})


class WorkflowService:
    """
    Service for submitting, listing and deciding flight requests.
    """

    @classmethod
    @storage_guard()
    def submit(cls, identity: Identity, date, time, area: str, description: str,
               organization: Optional[str] = None, request=None) -> FlightRequest:
        """
        Submit a new flight request for the client behind ``identity``.

        Organization and client username come from the identity. A supplied
        ``organization`` is only checked for consistency.

        Raises:
            Forbidden: identity is not a client
            InvalidInput: a field is blank, the date or time is invalid, or
                ``organization`` differs from the client's own
        """
        AuthorizationGate.authorize(identity, ops.CREATE_REQUEST, request=request)

        fields = InputValidator.require_fields(
            date=date, time=time, area=area, description=description,
        )
        flight_date = InputValidator.parse_date(fields['date'])
        flight_time = InputValidator.parse_time(fields['time'])

        if organization is not None and organization.strip() and organization.strip() != identity.organization:
            raise InvalidInput(
                'Organization does not match your account',
                details={'organization': [organization]}
            )

        flight_request = FlightRequest(
            organization=identity.organization,
            client_username=identity.username,
            client_id=identity.user_id,
            date=flight_date,
            time=flight_time,
            area=fields['area'],
            description=fields['description'],
            status=FlightRequest.STATUS_PENDING,
        )
        try:
            flight_request.full_clean(validate_constraints=False)
        except DjangoValidationError as e:
            raise InvalidInput('Validation error', details=e.message_dict)
        flight_request.save()

        logger.info(
            f"Flight request submitted: {flight_request.id}",
            extra={
                'flight_request_id': str(flight_request.id),
                'organization': identity.organization,
                'client_username': identity.username,
            }
        )

        AuditLog.log_action(
            action='flight_request_submitted',
            user=flight_request.client,
            target_type='FlightRequest',
            target_id=flight_request.id,
            metadata={'date': str(flight_date), 'time': str(flight_time), 'area': flight_request.area},
            request=request,
        )

        return flight_request

    @classmethod
    @storage_guard(read_only=True)
    def list_for_client(cls, identity: ClientIdentity, request=None):
        """Requests submitted by this client, newest first."""
        AuthorizationGate.authorize(identity, ops.LIST_OWN_REQUESTS, request=request)
        return list(
            FlightRequest.objects.for_client(identity.organization, identity.username)
            .order_by('-created_at')
        )

    @classmethod
    @storage_guard(read_only=True)
    def list_for_admin(cls, identity: AdminIdentity, status: Optional[str] = None, request=None):
        """
        All requests across organizations, newest first.

        Args:
            status: Only return requests in this status (optional)
        """
        AuthorizationGate.authorize(identity, ops.LIST_ALL_REQUESTS, request=request)

        queryset = FlightRequest.objects.select_related('decided_by').order_by('-created_at')
        if status:
            if status not in dict(FlightRequest.STATUS_CHOICES):
                raise InvalidInput(
                    f"Unknown status '{status}'",
                    details={'status': [s for s, _ in FlightRequest.STATUS_CHOICES]}
                )
            queryset = queryset.with_status(status)
        return list(queryset)

    @classmethod
    def list_for_identity(cls, identity: Identity, status: Optional[str] = None, request=None):
        """Dispatch to the client or admin listing for ``identity``."""
        AuthorizationGate.authorize(identity, ops.LIST_REQUESTS, request=request)
        if isinstance(identity, AdminIdentity):
            return cls.list_for_admin(identity, status=status, request=request)
        return cls.list_for_client(identity, request=request)

    @classmethod
    @storage_guard(read_only=True)
    def get_for_identity(cls, identity: Identity, request_id, request=None) -> FlightRequest:
        """
        Fetch one request the identity may see.

        Raises:
            NotFound: unknown id
            Forbidden: a client asking for another client's request
        """
        request_uuid = _parse_request_id(request_id)
        try:
            flight_request = FlightRequest.objects.get(id=request_uuid)
        except FlightRequest.DoesNotExist:
            raise NotFound('Flight request not found', details={'request_id': str(request_uuid)})

        AuthorizationGate.authorize(identity, ops.VIEW_REQUEST, resource=flight_request, request=request)
        return flight_request

    @classmethod
    @storage_guard(read_only=True)
    def summary(cls, identity: Identity, request=None) -> dict:
        """Counts per status over the requests the identity may see."""
        AuthorizationGate.authorize(identity, ops.LIST_REQUESTS, request=request)

        queryset = FlightRequest.objects.all()
        if isinstance(identity, ClientIdentity):
            queryset = queryset.for_client(identity.organization, identity.username)

        counts = queryset.status_counts()
        counts['total'] = sum(counts.values())
        return counts

    @classmethod
    @storage_guard()
    def decide(cls, identity: AdminIdentity, request_id, outcome: str,
               feedback: Optional[str] = None, request=None) -> FlightRequest:
        """
        Accept or decline a pending request.

        The row is locked for the duration of the check, and the write is a
        compare-and-set on ``status = 'pending'``, so of several concurrent
        decisions exactly one succeeds. This is never retried on failure.

        Args:
            identity: Deciding admin
            request_id: Flight request id
            outcome: ``accept``/``accepted`` or ``decline``/``declined``
            feedback: Required to decline. Defaults to
                ``DEFAULT_ACCEPTANCE_FEEDBACK`` when accepting without one.

        Raises:
            Forbidden: identity is not an admin
            InvalidInput: unknown outcome
            NotFound: unknown request id
            AlreadyDecided: request is no longer pending
            FeedbackRequired: decline without feedback
        """
        AuthorizationGate.authorize(identity, ops.DECIDE_REQUEST, request=request)

        status = OUTCOMES.get((outcome or '').strip().lower())
        if status is None:
            raise InvalidInput(
                f"Unknown decision '{outcome}'",
                details={'status': [FlightRequest.STATUS_ACCEPTED, FlightRequest.STATUS_DECLINED]}
            )

        feedback = (feedback or '').strip()
        request_uuid = _parse_request_id(request_id)

        with transaction.atomic():
            try:
                flight_request = FlightRequest.objects.select_for_update().get(id=request_uuid)
            except FlightRequest.DoesNotExist:
                raise NotFound('Flight request not found', details={'request_id': str(request_uuid)})

            if flight_request.is_terminal:
                cls._already_decided(identity, flight_request)

            if status == FlightRequest.STATUS_DECLINED and not feedback:
                raise FeedbackRequired()

            if status == FlightRequest.STATUS_ACCEPTED and not feedback:
                feedback = getattr(settings, 'DEFAULT_ACCEPTANCE_FEEDBACK', 'Request approved')

            updated = FlightRequest.objects.transition(
                request_uuid, status, feedback, decided_by_id=identity.user_id,
            )
            if updated != 1:
                flight_request.refresh_from_db()
                cls._already_decided(identity, flight_request)

        flight_request.refresh_from_db()

        logger.info(
            f"Flight request {status}: {flight_request.id}",
            extra={
                'flight_request_id': str(flight_request.id),
                'status': status,
                'decided_by': str(identity.user_id),
            }
        )

        AuditLog.log_action(
            action=f'flight_request_{status}',
            user=flight_request.decided_by,
            target_type='FlightRequest',
            target_id=flight_request.id,
            metadata={'status': status, 'feedback': feedback},
            request=request,
        )

        return flight_request

    @staticmethod
    def _already_decided(identity, flight_request):
        SecurityLogger.log_decision_conflict(
            request_id=str(flight_request.id),
            attempted_by=str(identity.user_id),
            current_status=flight_request.status,
        )
        raise AlreadyDecided(
            f"This request has already been {flight_request.status}",
            details={'request_id': str(flight_request.id), 'status': flight_request.status}
        )
