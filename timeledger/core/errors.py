from typing import Optional


class LedgerError(Exception):
    """Base class for errors raised by the clock and reporting core.

    Each subclass carries the HTTP status the API layer answers with.
    """

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message}


class ValidationError(LedgerError):
    status_code = 400


class NotFoundError(LedgerError):
    status_code = 404


class ConflictError(LedgerError):
    status_code = 409

    def __init__(self, message: str, entry: Optional[dict] = None) -> None:
        super().__init__(message)
        # the record the caller collided with, so it can reconcile state
        self.entry = entry

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.entry is not None:
            body["entry"] = self.entry
        return body


class ServerError(LedgerError):
    """The store could not be reached. Safe for an outer layer to retry."""

    status_code = 503
