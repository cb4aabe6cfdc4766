"""
Domain errors raised by the services. Classified where they are detected and passed up unchanged;
only the HTTP boundary (app.api.errors) turns them into status codes.
"""


class DomainError(Exception):
    """Base class; `detail` is safe to show to API clients."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class Unauthenticated(DomainError):
    """No caller identity, or one that cannot be verified."""


class InvalidToken(Unauthenticated):
    pass


class TokenExpired(Unauthenticated):
    pass


class Forbidden(DomainError):
    """Authenticated, but lacking the role, membership or ownership the action needs."""


class NotFound(DomainError):
    pass


class InvalidInput(DomainError):
    """Malformed or missing field, bad enum value, bad id."""


class Conflict(DomainError):
    """The action would break a uniqueness or cardinality invariant."""


class AlreadyReviewed(Conflict):
    pass


class LastAdminRemoval(Conflict):
    pass


class EmailAlreadyRegistered(Conflict):
    pass
