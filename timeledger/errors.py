"""Service error taxonomy.

Services raise these; routers translate them to HTTP responses using
``status_code``. All of them subclass ``ValueError`` so callers that only
care about "the request could not be served" can catch one type.
"""


class ServiceError(ValueError):
    """Base class for errors surfaced by the service layer."""

    status_code: int = 500


class ValidationError(ServiceError):
    """Bad input shape: malformed ids, unknown enum values, bad durations."""

    status_code = 400


class AuthorizationError(ServiceError):
    """The caller may not act on the requested resource."""

    status_code = 403


class NotFoundError(ServiceError):
    """Entity absent, or present but not in the required state."""

    status_code = 404


class ConflictError(ServiceError):
    """The write would violate a uniqueness rule (running timer, assignment)."""

    status_code = 409


class InternalError(ServiceError):
    """Unexpected store failure."""

    status_code = 500
