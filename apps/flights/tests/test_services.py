"""
Tests for the flight request workflow.
"""
import uuid
from datetime import date, time, timedelta
from unittest import mock

import pytest
from django.db import OperationalError
from django.test import override_settings

from apps.core.exceptions import (
    AlreadyDecided, FeedbackRequired, Forbidden, InvalidInput, NotFound,
    Unauthenticated, Unavailable,
)
from apps.flights.models import FlightRequest
from apps.flights.services import WorkflowService
from apps.rbac.models import AuditLog


def submit(identity, **kwargs):
    fields = {
        'date': '2024-06-01',
        'time': '14:00',
        'area': 'Harbor District',
        'description': 'Survey',
    }
    fields.update(kwargs)
    return WorkflowService.submit(identity, **fields)


def age(flight_request, minutes):
    """Move a request's creation time into the past."""
    created_at = flight_request.created_at - timedelta(minutes=minutes)
    FlightRequest.objects.filter(id=flight_request.id).update(created_at=created_at)


@pytest.mark.django_db
class TestSubmit:

    def test_submit_creates_pending_request(self, client_identity, client_user):
        flight_request = submit(client_identity)

        assert flight_request.status == FlightRequest.STATUS_PENDING
        assert flight_request.feedback is None
        assert flight_request.organization == 'acme'
        assert flight_request.client_username == 'alice'
        assert flight_request.client == client_user
        assert flight_request.date == date(2024, 6, 1)
        assert flight_request.time == time(14, 0)
        assert flight_request.decided_at is None

    def test_submitted_request_is_listed(self, client_identity):
        flight_request = submit(client_identity)

        listed = WorkflowService.list_for_client(client_identity)

        assert [r.id for r in listed] == [flight_request.id]
        assert listed[0].area == 'Harbor District'
        assert listed[0].description == 'Survey'

    def test_submit_writes_audit_entry(self, client_identity, client_user):
        flight_request = submit(client_identity)

        entry = AuditLog.objects.by_target('FlightRequest', flight_request.id).get()
        assert entry.action == 'flight_request_submitted'
        assert entry.user == client_user

    def test_fields_are_trimmed(self, client_identity):
        flight_request = submit(client_identity, area='  Harbor District  ', description=' Survey ')

        assert flight_request.area == 'Harbor District'
        assert flight_request.description == 'Survey'

    @pytest.mark.parametrize('field', ['date', 'time', 'area', 'description'])
    def test_blank_field_rejected(self, client_identity, field):
        with pytest.raises(InvalidInput) as exc_info:
            submit(client_identity, **{field: '   '})

        assert field in exc_info.value.details
        assert not FlightRequest.objects.exists()

    @pytest.mark.parametrize('field,value', [
        ('date', '2024-02-30'),
        ('date', '06/01/2024'),
        ('time', '25:00'),
        ('time', 'noon'),
    ])
    def test_invalid_date_or_time_rejected(self, client_identity, field, value):
        with pytest.raises(InvalidInput) as exc_info:
            submit(client_identity, **{field: value})

        assert field in exc_info.value.details
        assert not FlightRequest.objects.exists()

    def test_past_date_allowed(self, client_identity):
        flight_request = submit(client_identity, date='2001-01-01')
        assert flight_request.date == date(2001, 1, 1)

    def test_area_too_long_rejected(self, client_identity):
        with pytest.raises(InvalidInput) as exc_info:
            submit(client_identity, area='x' * 256)
        assert 'area' in exc_info.value.details

    def test_matching_organization_accepted(self, client_identity):
        flight_request = submit(client_identity, organization='acme')
        assert flight_request.organization == 'acme'

    def test_other_organization_rejected(self, client_identity):
        with pytest.raises(InvalidInput):
            submit(client_identity, organization='globex')

        assert not FlightRequest.objects.exists()

    def test_admin_cannot_submit(self, admin_identity):
        with pytest.raises(Forbidden):
            submit(admin_identity)

    def test_anonymous_cannot_submit(self, db):
        with pytest.raises(Unauthenticated):
            submit(None)


@pytest.mark.django_db
class TestListing:

    def test_client_sees_only_own_requests(self, client_identity, other_client_identity):
        own = submit(client_identity)
        submit(other_client_identity, area='Old Town')

        assert [r.id for r in WorkflowService.list_for_client(client_identity)] == [own.id]

    def test_client_list_newest_first(self, client_identity):
        older = submit(client_identity, area='First')
        newer = submit(client_identity, area='Second')
        age(older, 10)

        assert [r.id for r in WorkflowService.list_for_client(client_identity)] == [newer.id, older.id]

    def test_client_with_no_requests(self, client_identity):
        assert WorkflowService.list_for_client(client_identity) == []

    def test_admin_cannot_use_client_listing(self, admin_identity):
        with pytest.raises(Forbidden):
            WorkflowService.list_for_client(admin_identity)

    def test_admin_sees_all_requests_newest_first(self, admin_identity, client_identity, other_client_identity):
        first = submit(client_identity)
        second = submit(other_client_identity)
        age(first, 10)

        assert [r.id for r in WorkflowService.list_for_admin(admin_identity)] == [second.id, first.id]

    def test_admin_status_filter(self, admin_identity, client_identity):
        pending = submit(client_identity)
        accepted = submit(client_identity)
        WorkflowService.decide(admin_identity, accepted.id, 'accept')

        assert [r.id for r in WorkflowService.list_for_admin(admin_identity, status='pending')] == [pending.id]
        assert [r.id for r in WorkflowService.list_for_admin(admin_identity, status='accepted')] == [accepted.id]

    def test_admin_unknown_status_filter(self, admin_identity):
        with pytest.raises(InvalidInput):
            WorkflowService.list_for_admin(admin_identity, status='archived')

    def test_client_cannot_use_admin_listing(self, client_identity):
        with pytest.raises(Forbidden):
            WorkflowService.list_for_admin(client_identity)

    def test_list_for_identity_dispatches_on_role(self, client_identity, other_client_identity, admin_identity):
        submit(client_identity)
        submit(other_client_identity)

        assert len(WorkflowService.list_for_identity(client_identity)) == 1
        assert len(WorkflowService.list_for_identity(admin_identity)) == 2

    def test_storage_failure_is_unavailable(self, client_identity):
        with mock.patch.object(
            FlightRequest.objects, 'for_client', side_effect=OperationalError('lock timeout'),
        ), pytest.raises(Unavailable):
            WorkflowService.list_for_client(client_identity)


@pytest.mark.django_db
class TestGet:

    def test_owner_can_get(self, client_identity, flight_request):
        assert WorkflowService.get_for_identity(client_identity, flight_request.id) == flight_request

    def test_admin_can_get(self, admin_identity, flight_request):
        assert WorkflowService.get_for_identity(admin_identity, str(flight_request.id)) == flight_request

    def test_other_client_forbidden(self, other_client_identity, flight_request):
        with pytest.raises(Forbidden):
            WorkflowService.get_for_identity(other_client_identity, flight_request.id)

    def test_unknown_id(self, admin_identity):
        with pytest.raises(NotFound):
            WorkflowService.get_for_identity(admin_identity, uuid.uuid4())

    def test_malformed_id(self, admin_identity):
        with pytest.raises(NotFound):
            WorkflowService.get_for_identity(admin_identity, 'not-a-uuid')


@pytest.mark.django_db
class TestDecide:

    def test_decline_with_feedback(self, admin_identity, admin_user, flight_request):
        decided = WorkflowService.decide(admin_identity, flight_request.id, 'decline', 'Airspace restricted')

        assert decided.status == FlightRequest.STATUS_DECLINED
        assert decided.feedback == 'Airspace restricted'
        assert decided.decided_by == admin_user
        assert decided.decided_at is not None

    def test_accept_with_feedback(self, admin_identity, flight_request):
        decided = WorkflowService.decide(admin_identity, flight_request.id, 'accept', 'Clear skies')

        assert decided.status == FlightRequest.STATUS_ACCEPTED
        assert decided.feedback == 'Clear skies'

    def test_accept_without_feedback_uses_default(self, admin_identity, flight_request):
        decided = WorkflowService.decide(admin_identity, flight_request.id, 'accept')
        assert decided.feedback == 'Request approved'

    @override_settings(DEFAULT_ACCEPTANCE_FEEDBACK='Cleared for operation')
    def test_default_feedback_configurable(self, admin_identity, flight_request):
        decided = WorkflowService.decide(admin_identity, flight_request.id, 'accept', '   ')
        assert decided.feedback == 'Cleared for operation'

    @pytest.mark.parametrize('outcome,expected', [
        ('accept', 'accepted'),
        ('accepted', 'accepted'),
        ('Accepted', 'accepted'),
        ('decline', 'declined'),
        ('declined', 'declined'),
        (' DECLINE ', 'declined'),
    ])
    def test_outcome_spellings(self, admin_identity, flight_request, outcome, expected):
        decided = WorkflowService.decide(admin_identity, flight_request.id, outcome, 'Noted')
        assert decided.status == expected

    @pytest.mark.parametrize('outcome', ['approve', 'pending', '', None])
    def test_unknown_outcome(self, admin_identity, flight_request, outcome):
        with pytest.raises(InvalidInput):
            WorkflowService.decide(admin_identity, flight_request.id, outcome, 'Noted')

        flight_request.refresh_from_db()
        assert flight_request.status == FlightRequest.STATUS_PENDING

    @pytest.mark.parametrize('feedback', [None, '', '   '])
    def test_decline_without_feedback_changes_nothing(self, admin_identity, flight_request, feedback):
        with pytest.raises(FeedbackRequired):
            WorkflowService.decide(admin_identity, flight_request.id, 'decline', feedback)

        flight_request.refresh_from_db()
        assert flight_request.status == FlightRequest.STATUS_PENDING
        assert flight_request.feedback is None
        assert flight_request.decided_by is None

    def test_decided_request_cannot_change(self, admin_identity, flight_request):
        WorkflowService.decide(admin_identity, flight_request.id, 'decline', 'Airspace restricted')

        with pytest.raises(AlreadyDecided) as exc_info:
            WorkflowService.decide(admin_identity, flight_request.id, 'accept', 'Actually fine')

        assert exc_info.value.details['status'] == 'declined'
        flight_request.refresh_from_db()
        assert flight_request.status == FlightRequest.STATUS_DECLINED
        assert flight_request.feedback == 'Airspace restricted'

    def test_already_decided_checked_before_feedback(self, admin_identity, flight_request):
        WorkflowService.decide(admin_identity, flight_request.id, 'accept')

        with pytest.raises(AlreadyDecided):
            WorkflowService.decide(admin_identity, flight_request.id, 'decline', '')

    def test_unknown_request(self, admin_identity):
        with pytest.raises(NotFound):
            WorkflowService.decide(admin_identity, uuid.uuid4(), 'accept')

    def test_client_cannot_decide(self, client_identity, flight_request):
        with pytest.raises(Forbidden):
            WorkflowService.decide(client_identity, flight_request.id, 'accept')

        flight_request.refresh_from_db()
        assert flight_request.status == FlightRequest.STATUS_PENDING

    def test_decision_visible_to_client(self, admin_identity, client_identity, flight_request):
        WorkflowService.decide(admin_identity, flight_request.id, 'decline', 'Airspace restricted')

        listed = WorkflowService.list_for_client(client_identity)

        assert listed[0].status == FlightRequest.STATUS_DECLINED
        assert listed[0].feedback == 'Airspace restricted'

    def test_decision_writes_audit_entry(self, admin_identity, admin_user, flight_request):
        WorkflowService.decide(admin_identity, flight_request.id, 'decline', 'Airspace restricted')

        entry = AuditLog.objects.by_action('flight_request_declined').get()
        assert entry.user == admin_user
        assert entry.target_id == flight_request.id

    def test_storage_failure_leaves_request_pending(self, admin_identity, flight_request):
        with mock.patch.object(
            FlightRequest.objects, 'transition', side_effect=OperationalError('lock timeout'),
        ), pytest.raises(Unavailable):
            WorkflowService.decide(admin_identity, flight_request.id, 'accept')

        flight_request.refresh_from_db()
        assert flight_request.status == FlightRequest.STATUS_PENDING


@pytest.mark.django_db
class TestSummary:

    def test_client_summary_counts_own_requests(self, client_identity, other_client_identity, admin_identity):
        first = submit(client_identity)
        submit(client_identity)
        submit(other_client_identity)
        WorkflowService.decide(admin_identity, first.id, 'decline', 'No')

        assert WorkflowService.summary(client_identity) == {
            'pending': 1, 'accepted': 0, 'declined': 1, 'total': 2,
        }

    def test_admin_summary_counts_everything(self, client_identity, other_client_identity, admin_identity):
        submit(client_identity)
        submit(other_client_identity)

        summary = WorkflowService.summary(admin_identity)

        assert summary['pending'] == 2
        assert summary['total'] == 2
