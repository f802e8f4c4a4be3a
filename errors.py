# errors.py
"""Domain errors raised by AppState; main.py turns them into JSON responses."""


class AppError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str = "", code: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code


class ValidationFailed(AppError):
    status_code = 422
    code = "errorValidation"


class AuthError(AppError):
    status_code = 401
    code = "errorAuth"


class UserNotFound(AuthError):
    code = "errorUserNotFound"


class AdminNotFound(AuthError):
    code = "errorAdminNotFound"


class IncorrectPassword(AuthError):
    code = "errorIncorrectPassword"


class AccountBlocked(AuthError):
    status_code = 403
    code = "errorAccountBlocked"


class EmailNotFound(AppError):
    status_code = 404
    code = "errorEmailNotFound"


class PermissionDenied(AppError):
    status_code = 403
    code = "errorForbidden"


class NotFound(AppError):
    status_code = 404
    code = "errorNotFound"


class Conflict(AppError):
    status_code = 409
    code = "errorConflict"


class InvalidTransition(Conflict):
    code = "errorInvalidTransition"
