"""Exception types raised by the history site.

Views catch these and turn them into flash messages (HTML) or JSON error
bodies; nothing here is fatal to the process.
"""


class TntHistoryError(Exception):
    """Base class for all application errors."""


class ValidationError(TntHistoryError):
    """A submitted form failed validation. Nothing was written."""


class AltAccountError(ValidationError):
    """An alt-account list was rejected (self-reference, duplicate, unknown)."""


class IdentityLookupError(TntHistoryError):
    """The external name/UUID service could not answer."""


class EventNotFound(TntHistoryError):
    def __init__(self, event_id):
        super().__init__(f"No event with id {event_id!r}")
        self.event_id = event_id


class StoreError(TntHistoryError):
    """Loading or writing the event collection failed."""
