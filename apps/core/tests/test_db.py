"""
Tests for storage failure handling.
"""
from types import SimpleNamespace
from unittest import mock

import pytest
from django.db import IntegrityError, OperationalError
from django.test import override_settings

from apps.core.db import storage_guard
from apps.core.exceptions import Unavailable


def outside_transaction():
    return mock.patch(
        'apps.core.db.transaction.get_connection',
        return_value=SimpleNamespace(in_atomic_block=False),
    )


@mock.patch('apps.core.db.time.sleep')
class TestStorageGuard:
    """Test translation of storage failures into Unavailable."""

    def test_success_passes_through(self, sleep):
        guarded = storage_guard()(lambda: 'ok')
        assert guarded() == 'ok'

    def test_write_failure_is_unavailable_and_not_retried(self, sleep):
        func = mock.Mock(side_effect=OperationalError('connection refused'), __name__='decide')

        with outside_transaction(), pytest.raises(Unavailable) as exc_info:
            storage_guard()(func)()

        assert func.call_count == 1
        assert exc_info.value.details == {'operation': 'decide'}
        sleep.assert_not_called()

    @override_settings(READ_RETRY_ATTEMPTS=2)
    def test_read_failure_is_retried(self, sleep):
        func = mock.Mock(side_effect=[OperationalError('timeout'), ['row']], __name__='list_for_client')

        with outside_transaction():
            result = storage_guard(read_only=True)(func)()

        assert result == ['row']
        assert func.call_count == 2
        sleep.assert_called_once()

    @override_settings(READ_RETRY_ATTEMPTS=2)
    def test_read_gives_up_after_retries(self, sleep):
        func = mock.Mock(side_effect=OperationalError('timeout'), __name__='list_for_client')

        with outside_transaction(), pytest.raises(Unavailable):
            storage_guard(read_only=True)(func)()

        assert func.call_count == 3

    @override_settings(READ_RETRY_ATTEMPTS=2)
    def test_read_not_retried_inside_atomic_block(self, sleep):
        func = mock.Mock(side_effect=OperationalError('timeout'), __name__='summary')

        with mock.patch(
            'apps.core.db.transaction.get_connection',
            return_value=SimpleNamespace(in_atomic_block=True),
        ), pytest.raises(Unavailable):
            storage_guard(read_only=True)(func)()

        assert func.call_count == 1

    def test_integrity_error_is_not_translated(self, sleep):
        func = mock.Mock(side_effect=IntegrityError('duplicate key'), __name__='register')

        with pytest.raises(IntegrityError):
            storage_guard()(func)()
