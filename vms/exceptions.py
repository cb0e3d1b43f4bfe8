from typing import List, Optional


class VMSError(Exception):
    """Base class for every admission error surfaced to callers."""

    default_message = "Visit request could not be processed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(VMSError):
    default_message = "Invalid input"

    def __init__(self, messages=None, fields: Optional[List[str]] = None):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages or [self.default_message])
        self.fields = list(fields or [])
        super().__init__("; ".join(self.messages))


class MissingFieldsError(ValidationError):
    def __init__(self, fields):
        super().__init__(
            [f"{field.replace('_', ' ').capitalize()} is required" for field in fields],
            fields,
        )


class DuplicateVisit(VMSError):
    default_message = "A visit is already registered for this date"


class PastDate(VMSError):
    default_message = "Visit date cannot be in the past"


class DateMismatch(VMSError):
    default_message = "Sign-in is only allowed on the scheduled visit date"


class NotFound(VMSError):
    default_message = "Record not found"


class InvalidHost(VMSError):
    default_message = "Invalid host member"


class IneligibleStanding(VMSError):
    default_message = "Access is restricted due to standing"


class AlreadySignedIn(VMSError):
    default_message = "Already signed in"


class AlreadySignedOut(VMSError):
    default_message = "Already signed out"


class NotSignedIn(VMSError):
    default_message = "Must be signed in first"


class PersonHasVisits(VMSError):
    default_message = "Cannot delete a person with existing visit records"


class ConcurrencyConflict(VMSError):
    default_message = "The record was modified concurrently, please retry"
