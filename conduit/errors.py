"""
Domain error taxonomy.

Every error raised by the service and repository layers derives from
``ConduitError``.  The HTTP layer (``conduit.main``) maps each family to
a status code; anything that is *not* a ``ConduitError`` is treated as
an opaque internal failure.

    ValidationError      422  field-level detail, always user visible
    AuthError            401  deliberately generic
    NotFoundError        404
    UnauthorizedError    403  authenticated, but not allowed to act
    ConflictError        --   storage-level; services translate it
"""


class ConduitError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationError(ConduitError):
    """Bad input.  ``errors`` maps a field name to its messages."""

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        summary = "; ".join(
            f"{field} {', '.join(messages)}" for field, messages in errors.items()
        )
        super().__init__(summary or "invalid input")

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})


class SelfFollowError(ValidationError):
    def __init__(self) -> None:
        super().__init__({"profile": ["cannot follow yourself"]})


class SlugGenerationExhaustedError(ConduitError):
    """No free slug was found within the configured number of attempts."""

    def __init__(self, base_slug: str, attempts: int):
        self.base_slug = base_slug
        self.attempts = attempts
        super().__init__(
            f"could not generate a unique slug from {base_slug!r} "
            f"after {attempts} attempts"
        )


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class AuthError(ConduitError):
    """Authentication failed.  Messages never say which check failed."""

    def __init__(self, message: str = "authentication required"):
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    def __init__(self) -> None:
        super().__init__("invalid username/email or password")


class MissingTokenError(AuthError):
    pass


class InvalidTokenError(AuthError):
    pass


class TokenExpiredError(AuthError):
    pass


class CredentialError(ConduitError):
    """The hashing primitive itself failed (not a bad password)."""


# ---------------------------------------------------------------------------
# Lookup / permission
# ---------------------------------------------------------------------------

class NotFoundError(ConduitError):
    def __init__(self, entity: str, key: object | None = None):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found")


class UnauthorizedError(ConduitError):
    """The actor is authenticated but does not own the resource (HTTP 403)."""

    def __init__(self, message: str = "forbidden"):
        super().__init__(message)


# ---------------------------------------------------------------------------
# Storage conflicts
# ---------------------------------------------------------------------------

class ConflictError(ConduitError):
    """A unique constraint rejected the write."""

    def __init__(self, field: str, value: str | None = None):
        self.field = field
        self.value = value
        super().__init__(f"{field} is already taken")


class SlugConflictError(ConflictError):
    def __init__(self, slug: str):
        super().__init__("slug", slug)
