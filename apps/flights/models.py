"""
Flight request models.
"""
from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from apps.core.models import BaseModel


class FlightRequestQuerySet(models.QuerySet):
    """QuerySet for flight requests with ownership scoping."""

    def for_client(self, organization, client_username):
        """Requests submitted by one client of one organization."""
        return self.filter(organization=organization, client_username=client_username)

    def pending(self):
        return self.filter(status=FlightRequest.STATUS_PENDING)

    def with_status(self, status):
        return self.filter(status=status)

    def status_counts(self):
        """Return ``{status: count}`` with every status present."""
        counts = {status: 0 for status, _ in FlightRequest.STATUS_CHOICES}
        rows = self.order_by().values('status').annotate(total=models.Count('id'))
        for row in rows:
            counts[row['status']] = row['total']
        return counts


class FlightRequestManager(models.Manager.from_queryset(FlightRequestQuerySet)):
    """Manager for FlightRequest with the decision compare-and-set."""

    def transition(self, request_id, status, feedback, decided_by_id):
        """
        Move a pending request to a terminal status in a single UPDATE.

        The ``status = 'pending'`` condition is part of the UPDATE itself,
        so of several concurrent callers only one can match the row.

        Returns:
            Number of rows updated (1 on success, 0 if no longer pending)
        """
        now = timezone.now()
        return self.filter(id=request_id, status=FlightRequest.STATUS_PENDING).update(
            status=status,
            feedback=feedback,
            decided_by_id=decided_by_id,
            decided_at=now,
            updated_at=now,
        )


class FlightRequest(BaseModel):
    """
    A client's request to operate a flight on a date, at a time, over an area.

    Status starts at ``pending`` and moves once to ``accepted`` or
    ``declined``. Terminal requests never change again.
    """

    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_DECLINED = 'declined'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_DECLINED, 'Declined'),
    ]
    TERMINAL_STATUSES = (STATUS_ACCEPTED, STATUS_DECLINED)

    # Ownership, stamped from the submitting identity
    organization = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Organization of the submitting client"
    )
    client_username = models.CharField(
        max_length=150,
        help_text="Username of the submitting client"
    )
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='flight_requests',
        help_text="Client who submitted the request"
    )

    # Flight details
    date = models.DateField(help_text="Date of the flight")
    time = models.TimeField(help_text="Time of the flight")
    area = models.CharField(max_length=255, help_text="Area of operation")
    description = models.TextField(help_text="Purpose of the flight")

    # Decision
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        db_index=True,
        help_text="Review status"
    )
    feedback = models.TextField(
        null=True,
        blank=True,
        help_text="Admin note attached to the decision"
    )
    decided_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the request was accepted or declined"
    )
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='decided_flight_requests',
        help_text="Admin who decided the request"
    )

    objects = FlightRequestManager()

    class Meta:
        db_table = 'flight_requests'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['organization', 'client_username', 'created_at'], name='flight_req_owner_created_idx'),
            models.Index(fields=['status', 'created_at'], name='flight_req_status_created_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(status='pending', decided_at__isnull=True, decided_by__isnull=True)
                    | Q(status__in=['accepted', 'declined'], decided_at__isnull=False, decided_by__isnull=False)
                ),
                name='flight_requests_decision_matches_status',
            ),
            models.CheckConstraint(
                condition=~Q(status='declined') | (Q(feedback__isnull=False) & ~Q(feedback='')),
                name='flight_requests_decline_has_feedback',
            ),
        ]

    def __str__(self):
        return f"{self.organization}/{self.client_username} {self.date} {self.time} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES
