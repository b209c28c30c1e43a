"""
Input validation helpers shared by the services.

Each helper raises InvalidInput naming the offending field so API clients
can highlight it.
"""
import re
from datetime import date, time

from apps.core.exceptions import InvalidInput


class InputValidator:
    """
    Validation functions for user-supplied fields.
    """

    # Calendar date: YYYY-MM-DD
    DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')

    # Clock time: HH:MM or HH:MM:SS, 24-hour
    TIME_PATTERN = re.compile(r'^\d{2}:\d{2}(:\d{2})?$')

    @staticmethod
    def require_fields(**fields):
        """
        Strip string values and reject blank ones.

        Returns:
            dict: The stripped values, keyed like the input

        Raises:
            InvalidInput: One or more fields are missing or blank, with
                every blank field listed in ``details``
        """
        cleaned = {}
        missing = {}
        for name, value in fields.items():
            value = value.strip() if isinstance(value, str) else value
            if value is None or value == '':
                missing[name] = ['This field is required.']
            cleaned[name] = value
        if missing:
            raise InvalidInput('Missing required fields', details=missing)
        return cleaned

    @staticmethod
    def parse_date(value, field='date') -> date:
        """
        Parse a ``YYYY-MM-DD`` calendar date.

        Rejects impossible dates such as 2024-02-30.
        """
        if isinstance(value, date):
            return value
        if not isinstance(value, str) or not InputValidator.DATE_PATTERN.match(value):
            raise InvalidInput('Date must be in YYYY-MM-DD format', details={field: [str(value)]})
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise InvalidInput('Date is not a valid calendar date', details={field: [value]})

    @staticmethod
    def parse_time(value, field='time') -> time:
        """
        Parse an ``HH:MM`` or ``HH:MM:SS`` clock time.

        Rejects impossible times such as 25:00.
        """
        if isinstance(value, time):
            return value
        if not isinstance(value, str) or not InputValidator.TIME_PATTERN.match(value):
            raise InvalidInput('Time must be in HH:MM format', details={field: [str(value)]})
        try:
            return time.fromisoformat(value)
        except ValueError:
            raise InvalidInput('Time is not a valid clock time', details={field: [value]})
