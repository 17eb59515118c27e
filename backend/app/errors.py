class IntakeError(Exception):
    """Base class for errors raised by the service layer.

    Routers let these propagate; ``app.main`` maps them to a JSON response
    carrying ``status_code`` and the message as ``detail``.
    """

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(IntakeError):
    status_code = 404


class PermissionDeniedError(IntakeError):
    status_code = 403


class ConflictError(IntakeError):
    status_code = 409


class InvalidTransitionError(ConflictError):
    def __init__(self, current: str, target: str, reason: str | None = None):
        message = reason or f"Cannot move a job from '{current}' to '{target}'"
        super().__init__(message)
        self.current = current
        self.target = target


class UploadRejectedError(IntakeError):
    status_code = 400
