"""
Injectable system capabilities (time and randomness).

Services receive these as plain callables so tests can pass a fixed
clock or a deterministic suffix sequence instead of patching globals.
"""
import secrets
import string
from datetime import datetime, timezone
from typing import Awaitable, Callable

from conduit.config import settings

Clock = Callable[[], datetime]
SuffixGenerator = Callable[[], str]
# Schedules an async callback to run after the current unit of work commits.
AfterCommit = Callable[[Callable[[], Awaitable[None]]], None]

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def random_slug_suffix(length: int | None = None) -> str:
    """Return a short random ``[a-z0-9]`` string used to disambiguate slugs."""
    length = length or settings.SLUG_SUFFIX_LENGTH
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))
