# Error types raised by the recurrence and event date handling

from typing import Optional, Any


class AgendaDataError(ValueError):
    """Base class for malformed stored or submitted event data."""

    def __init__(self, message: str, event_id: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.event_id = event_id

    def __str__(self) -> str:
        if self.event_id is not None:
            return f"{self.message} (event {self.event_id})"
        return self.message


class InvalidRecurrenceRule(AgendaDataError):
    """Raised for a non-positive interval, an unknown type or an end date before the event start."""


class InvalidEventDate(AgendaDataError):
    """Raised when an event date cannot be parsed or normalized."""
