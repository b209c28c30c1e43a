"""
Flight request API views.
"""
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes
import logging

from apps.core.permissions import HasOperationRole, requires_operation
from apps.flights.serializers import (
    FlightRequestSerializer, FlightRequestCreateSerializer,
    DecisionSerializer, StatusSummarySerializer,
)
from apps.flights.services import WorkflowService
from apps.rbac import identity as ops

logger = logging.getLogger(__name__)


class FlightRequestListView(APIView):
    """
    List and submit flight requests.

    GET /api/requests - Own requests (client) or all requests (admin)
    POST /api/requests - Submit a new request (client)
    """
    permission_classes = [HasOperationRole]

    @extend_schema(
        tags=['Flight Requests'],
        summary="List flight requests",
        description=(
            "Clients see the requests they submitted. Admins see every "
            "request, optionally filtered by status. Newest first."
        ),
        parameters=[
            OpenApiParameter(
                name='status',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description='Filter by status (admins only)',
                enum=['pending', 'accepted', 'declined']
            ),
        ],
        responses={
            200: FlightRequestSerializer(many=True),
            401: OpenApiTypes.OBJECT,
        }
    )
    @requires_operation(ops.LIST_REQUESTS)
    def get(self, request):
        flight_requests = WorkflowService.list_for_identity(
            request.auth,
            status=request.query_params.get('status'),
            request=request,
        )
        return Response(FlightRequestSerializer(flight_requests, many=True).data)

    @extend_schema(
        tags=['Flight Requests'],
        summary="Submit flight request",
        description="Submit a request for review. It starts as pending.",
        request=FlightRequestCreateSerializer,
        responses={
            201: FlightRequestSerializer,
            400: OpenApiTypes.OBJECT,
            401: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
        },
        examples=[
            OpenApiExample(
                'Submit Request',
                value={
                    'date': '2024-06-01',
                    'time': '14:00',
                    'area': 'Harbor District',
                    'description': 'Survey'
                },
                request_only=True
            ),
        ]
    )
    @requires_operation(ops.CREATE_REQUEST)
    def post(self, request):
        serializer = FlightRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        flight_request = WorkflowService.submit(
            request.auth,
            date=serializer.validated_data['date'],
            time=serializer.validated_data['time'],
            area=serializer.validated_data['area'],
            description=serializer.validated_data['description'],
            organization=serializer.validated_data.get('organization'),
            request=request,
        )

        return Response(
            FlightRequestSerializer(flight_request).data,
            status=status.HTTP_201_CREATED
        )


class FlightRequestSummaryView(APIView):
    """
    GET /api/requests/summary - Counts per status of visible requests
    """
    permission_classes = [HasOperationRole]

    @extend_schema(
        tags=['Flight Requests'],
        summary="Status summary",
        responses={200: StatusSummarySerializer, 401: OpenApiTypes.OBJECT}
    )
    @requires_operation(ops.LIST_REQUESTS)
    def get(self, request):
        return Response(WorkflowService.summary(request.auth, request=request))


class FlightRequestDetailView(APIView):
    """
    Retrieve or decide a flight request.

    GET /api/requests/{id} - Request details
    PATCH /api/requests/{id} - Accept or decline (admin)
    """
    permission_classes = [HasOperationRole]

    @extend_schema(
        tags=['Flight Requests'],
        summary="Get flight request",
        responses={
            200: FlightRequestSerializer,
            401: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        }
    )
    @requires_operation(ops.VIEW_REQUEST)
    def get(self, request, request_id):
        flight_request = WorkflowService.get_for_identity(request.auth, request_id, request=request)
        return Response(FlightRequestSerializer(flight_request).data)

    @extend_schema(
        tags=['Flight Requests'],
        summary="Decide flight request",
        description=(
            "Accept or decline a pending request. Feedback is required to "
            "decline. A request can only be decided once."
        ),
        request=DecisionSerializer,
        responses={
            200: FlightRequestSerializer,
            400: OpenApiTypes.OBJECT,
            401: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
            422: OpenApiTypes.OBJECT,
        },
        examples=[
            OpenApiExample(
                'Decline',
                value={'status': 'declined', 'feedback': 'Airspace restricted'},
                request_only=True
            ),
            OpenApiExample(
                'Already Decided',
                value={
                    'error': 'This request has already been declined',
                    'code': 'ALREADY_DECIDED',
                    'details': {'status': 'declined'}
                },
                response_only=True,
                status_codes=['409']
            ),
            OpenApiExample(
                'Feedback Required',
                value={
                    'error': 'Feedback is required when declining a request',
                    'code': 'FEEDBACK_REQUIRED'
                },
                response_only=True,
                status_codes=['422']
            ),
        ]
    )
    @requires_operation(ops.DECIDE_REQUEST)
    def patch(self, request, request_id):
        serializer = DecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        flight_request = WorkflowService.decide(
            request.auth,
            request_id,
            outcome=serializer.validated_data['status'],
            feedback=serializer.validated_data.get('feedback'),
            request=request,
        )

        return Response(FlightRequestSerializer(flight_request).data)
