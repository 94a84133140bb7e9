"""
User service: accounts, authentication and the follow graph.

Design notes
------------
- The service only sees ``UserRepository``; uniqueness is enforced by
  the repository (unique indexes for SQL) and reported back as a
  ``ConflictError``, which is translated here into a field-level
  ``ValidationError``.  There is deliberately no "check then insert"
  pre-query: the constraint is the single source of truth.
- ``login`` raises the same ``InvalidCredentialsError`` for an unknown
  account and a wrong password, and verifies against a dummy hash in
  the first case so both paths cost one bcrypt check.
- bcrypt is CPU bound, so hashing and verification run in a worker
  thread instead of blocking the event loop.
- Time comes from the injected ``clock`` so token expiry is testable.
"""
import asyncio
import logging
import re
from datetime import timedelta

from conduit.config import settings
from conduit.domain import NewUser, Profile, UserPatch, UserRecord
from conduit.errors import (
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    SelfFollowError,
    ValidationError,
)
from conduit.repositories.base import UserRepository
from conduit.security import hash_password, issue_token, validate_token, verify_password
from conduit.system import Clock, utc_now

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_WHITESPACE_RE = re.compile(r"\s")

USERNAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 255


def _check_username(username: str, errors: dict[str, list[str]]) -> None:
    if not username:
        errors.setdefault("username", []).append("can't be blank")
    elif _WHITESPACE_RE.search(username):
        errors.setdefault("username", []).append("may not contain whitespace")
    elif "@" in username:
        # Login treats any identifier containing "@" as an email.
        errors.setdefault("username", []).append("is invalid")
    elif len(username) > USERNAME_MAX_LENGTH:
        errors.setdefault("username", []).append(
            f"is too long (maximum is {USERNAME_MAX_LENGTH} characters)"
        )


def _check_email(email: str, errors: dict[str, list[str]]) -> None:
    if not email:
        errors.setdefault("email", []).append("can't be blank")
    elif len(email) > EMAIL_MAX_LENGTH or not _EMAIL_RE.match(email):
        errors.setdefault("email", []).append("is invalid")


def _check_password(password: str, errors: dict[str, list[str]]) -> None:
    if not password or not password.strip():
        errors.setdefault("password", []).append("can't be blank")


def _taken(exc: ConflictError) -> ValidationError:
    return ValidationError.single(exc.field, "has already been taken")


# Verified in place of a real hash when the account does not exist, so an
# unknown-user login costs exactly one bcrypt check.
_DUMMY_HASH = hash_password("conduit-timing-equaliser")


async def build_profile(
    users: UserRepository, user: UserRecord, viewer_id: int | None
) -> Profile:
    """Public view of *user*, with ``following`` relative to *viewer_id*."""
    following = False
    if viewer_id is not None and viewer_id != user.id:
        following = await users.is_following(viewer_id, user.id)
    return Profile(username=user.username, bio=user.bio, image=user.image, following=following)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class UserService:
    def __init__(
        self,
        users: UserRepository,
        clock: Clock = utc_now,
        token_ttl: timedelta | None = None,
    ):
        self.users = users
        self.clock = clock
        self.token_ttl = token_ttl or timedelta(days=settings.TOKEN_TTL_DAYS)

    # -- accounts ----------------------------------------------------------

    async def register(self, username: str, email: str, password: str) -> UserRecord:
        username = (username or "").strip()
        email = (email or "").strip()
        errors: dict[str, list[str]] = {}
        _check_username(username, errors)
        _check_email(email, errors)
        _check_password(password, errors)
        if errors:
            raise ValidationError(errors)

        password_hash = await asyncio.to_thread(hash_password, password)
        try:
            user = await self.users.create(
                NewUser(username=username, email=email, password_hash=password_hash)
            )
        except ConflictError as exc:
            raise _taken(exc) from exc

        logger.info("Registered user id=%s username=%r", user.id, user.username)
        return user

    async def login(self, username_or_email: str, password: str) -> tuple[UserRecord, str]:
        """
        Authenticate by username or email and return ``(user, token)``.

        Every failure surfaces as ``InvalidCredentialsError``.
        """
        identifier = (username_or_email or "").strip()
        user = None
        if identifier:
            if "@" in identifier:
                user = await self.users.find_by_email(identifier)
            else:
                user = await self.users.find_by_username(identifier)

        stored_hash = user.password_hash if user else _DUMMY_HASH
        matches = await asyncio.to_thread(verify_password, password or "", stored_hash)
        if user is None or not matches:
            raise InvalidCredentialsError()
        return user, self.issue_token_for(user)

    def issue_token_for(self, user: UserRecord) -> str:
        return issue_token(user.id, self.clock(), self.token_ttl)

    def authenticate(self, token: str) -> int:
        """Resolve a token to a user id (``AuthError`` on failure)."""
        return validate_token(token, self.clock())

    async def current_user(self, user_id: int) -> UserRecord:
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    async def update(
        self,
        user_id: int,
        *,
        username: str | None = None,
        email: str | None = None,
        password: str | None = None,
        bio: str | None = None,
        image: str | None = None,
    ) -> UserRecord:
        """
        Update the fields that are not None.  An empty ``image`` clears it.
        """
        errors: dict[str, list[str]] = {}
        changes: dict = {}
        if username is not None:
            changes["username"] = username.strip()
            _check_username(changes["username"], errors)
        if email is not None:
            changes["email"] = email.strip()
            _check_email(changes["email"], errors)
        if password is not None:
            _check_password(password, errors)
        if bio is not None:
            changes["bio"] = bio
        if image is not None:
            changes["image"] = image.strip() or None
        if errors:
            raise ValidationError(errors)

        if password is not None:
            changes["password_hash"] = await asyncio.to_thread(hash_password, password)

        try:
            return await self.users.update(user_id, UserPatch(**changes))
        except ConflictError as exc:
            raise _taken(exc) from exc

    # -- profiles & follows ------------------------------------------------

    async def _find_profile_user(self, username: str) -> UserRecord:
        user = await self.users.find_by_username(username)
        if user is None:
            raise NotFoundError("profile", username)
        return user

    async def get_profile(self, viewer_id: int | None, username: str) -> Profile:
        user = await self._find_profile_user(username)
        return await build_profile(self.users, user, viewer_id)

    async def follow(self, follower_id: int, username: str) -> Profile:
        return await self._set_follow(follower_id, username, True)

    async def unfollow(self, follower_id: int, username: str) -> Profile:
        return await self._set_follow(follower_id, username, False)

    async def _set_follow(self, follower_id: int, username: str, value: bool) -> Profile:
        target = await self._find_profile_user(username)
        if target.id == follower_id:
            raise SelfFollowError()
        await self.users.set_follow(follower_id, target.id, value)
        return await build_profile(self.users, target, follower_id)
