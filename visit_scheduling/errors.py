# visit_scheduling/errors.py
"""
Domain errors raised by the scheduling services.

Routers translate them into HTTP responses:

    MissingFieldError / ValidationError -> 400
    NotFoundError                       -> 404
    ConflictError                       -> 409

Anything else is an internal failure and is handled by the global
exception handler in `visit_scheduling.main`.
"""


class SchedulingError(Exception):
    status_code = 500


class ValidationError(SchedulingError, ValueError):
    status_code = 400


class MissingFieldError(ValidationError):
    def __init__(self, *fields: str):
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(fields)}")


class NotFoundError(SchedulingError):
    status_code = 404


class ConflictError(SchedulingError):
    status_code = 409
