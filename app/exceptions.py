# app/exceptions.py
"""
Error taxonomy shared by every engine operation.
Each error carries a stable `kind` and an HTTP status; the message wording is
part of the contract (dashboards match on substrings like "Already Exists").
"""


class AppError(Exception):
    status_code = 500
    kind = "InternalServerError"

    def __init__(self, message: str = "Internal Server Error"):
        super().__init__(message)
        self.message = message

    @property
    def status(self) -> str:
        return "fail" if self.status_code < 500 else "error"

    def to_dict(self) -> dict:
        return {"status": self.status, "kind": self.kind, "message": self.message}


class BadRequestError(AppError):
    status_code = 400
    kind = "BadRequest"


class UnauthorizedError(AppError):
    status_code = 401
    kind = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    kind = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    kind = "NotFound"


class ConflictError(AppError):
    status_code = 409
    kind = "Conflict"


class InternalServerError(AppError):
    pass
