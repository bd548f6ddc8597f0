# errors.py


class JobBoardError(Exception):
    """Base class for errors raised by the job board services."""


class NotFoundError(JobBoardError):
    pass


class ValidationError(JobBoardError):
    pass


class PermissionDenied(JobBoardError):
    pass


class AutomationAPIError(JobBoardError):
    """The browser automation API rejected a request or sent back garbage."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class LoginRequired(JobBoardError):
    """Raised by page dependencies when no one is signed in."""
