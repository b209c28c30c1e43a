"""
Serializers for flight request API endpoints.
"""
from rest_framework import serializers
from apps.flights.models import FlightRequest


class ClockTimeField(serializers.TimeField):
    """Render ``HH:MM``, keeping seconds only when they were given."""

    def to_representation(self, value):
        if value is None:
            return None
        return value.strftime('%H:%M:%S' if value.second else '%H:%M')


class FlightRequestSerializer(serializers.ModelSerializer):
    """
    Serializer for a flight request as shown to clients and admins.

    ``_id``, ``clientUsername``, ``createdAt``, ``decidedAt`` and ``decidedBy``
    repeat the snake_case fields under the names the web client reads.
    """

    time = ClockTimeField(read_only=True)
    decided_by = serializers.CharField(source='decided_by.username', read_only=True, default=None)

    _id = serializers.UUIDField(source='id', read_only=True)
    clientUsername = serializers.CharField(source='client_username', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    decidedAt = serializers.DateTimeField(source='decided_at', read_only=True)
    decidedBy = serializers.UUIDField(source='decided_by_id', read_only=True)

    class Meta:
        model = FlightRequest
        fields = [
            'id', 'organization', 'client_username', 'date', 'time',
            'area', 'description', 'status', 'feedback',
            'created_at', 'decided_at', 'decided_by',
            '_id', 'clientUsername', 'createdAt', 'decidedAt', 'decidedBy',
        ]
        read_only_fields = fields


class FlightRequestCreateSerializer(serializers.Serializer):
    """
    Serializer for submitting a flight request.

    Date and time are kept as text here; the workflow service parses them so
    every entry point gets the same validation.
    """

    date = serializers.CharField(help_text="YYYY-MM-DD")
    time = serializers.CharField(help_text="HH:MM, 24-hour")
    area = serializers.CharField(max_length=255)
    description = serializers.CharField()
    organization = serializers.CharField(
        required=False,
        allow_blank=True,
        help_text="Must match your own organization if given"
    )


class DecisionSerializer(serializers.Serializer):
    """Serializer for an admin decision."""

    status = serializers.CharField(help_text="accepted or declined")
    feedback = serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        help_text="Required when declining"
    )


class StatusSummarySerializer(serializers.Serializer):
    """Counts of visible requests per status."""

    pending = serializers.IntegerField()
    accepted = serializers.IntegerField()
    declined = serializers.IntegerField()
    total = serializers.IntegerField()
