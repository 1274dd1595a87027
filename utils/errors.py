# utils/errors.py
"""
Domain errors raised by ledger services.

Routes never build error responses for these by hand; the handler registered
in app.py turns them into {"error": message} with the matching status code.
"""


class LedgerError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message}


class ValidationError(LedgerError):
    status_code = 400


class NotFoundError(LedgerError):
    status_code = 404


class ForbiddenError(LedgerError):
    status_code = 403


class ConflictError(LedgerError):
    status_code = 409
