# app/errors.py
"""
Domain exceptions for the payout engine.

Every error carries the HTTP status the admin API answers with; the
handler registered in app.main renders them as {"detail": ...}.
"""


class PayoutError(Exception):
    """Base exception for payout settlement errors."""

    status_code = 400
    default_detail = "Payout operation failed."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(PayoutError):
    """Malformed or empty input. Raised before any write."""

    status_code = 400
    default_detail = "Invalid payout request."


class NotFoundError(PayoutError):
    """Referenced batch or vendor does not exist."""

    status_code = 404
    default_detail = "Resource not found."


class IllegalStateError(PayoutError):
    """Batch is not in the state the operation requires."""

    status_code = 409
    default_detail = "Payout batch is not in the required state."


class TransactionAbortError(PayoutError):
    """The atomic write was rejected; nothing was changed."""

    status_code = 409
    default_detail = "Payout transaction aborted, reload and retry."
