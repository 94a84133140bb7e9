"""SQLAlchemy implementation of ``UserRepository`` (users and follows)."""
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.domain import NewUser, UserPatch, UserRecord
from conduit.errors import ConflictError, NotFoundError, SelfFollowError
from conduit.models import Follow, User
from conduit.repositories.base import UserRepository
from conduit.repositories.utils import insert_ignore_conflict, integrity_message


def _conflict(exc: IntegrityError, username: str | None, email: str | None) -> ConflictError:
    """Name the field whose unique index rejected the write."""
    if "email" in integrity_message(exc):
        return ConflictError("email", email)
    return ConflictError("username", username)


class SqlUserRepository(UserRepository):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, new_user: NewUser) -> UserRecord:
        user = User(
            username=new_user.username,
            email=new_user.email,
            password_hash=new_user.password_hash,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(user)
                await self.db.flush()
        except IntegrityError as exc:
            raise _conflict(exc, new_user.username, new_user.email) from exc

        await self.db.refresh(user)
        return UserRecord.model_validate(user)

    async def find_by_id(self, user_id: int) -> UserRecord | None:
        user = await self.db.get(User, user_id)
        return UserRecord.model_validate(user) if user else None

    async def find_by_username(self, username: str) -> UserRecord | None:
        result = await self.db.execute(
            select(User).where(func.lower(User.username) == username.lower())
        )
        user = result.scalar_one_or_none()
        return UserRecord.model_validate(user) if user else None

    async def find_by_email(self, email: str) -> UserRecord | None:
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        user = result.scalar_one_or_none()
        return UserRecord.model_validate(user) if user else None

    async def update(self, user_id: int, patch: UserPatch) -> UserRecord:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("user", user_id)

        changes = patch.model_dump(exclude_unset=True)
        try:
            async with self.db.begin_nested():
                for field, value in changes.items():
                    setattr(user, field, value)
                await self.db.flush()
        except IntegrityError as exc:
            raise _conflict(exc, changes.get("username"), changes.get("email")) from exc

        # Pick up server-side values (updated_at) set by the flush.
        await self.db.refresh(user)
        return UserRecord.model_validate(user)

    async def set_follow(self, follower_id: int, followed_id: int, value: bool) -> None:
        if follower_id == followed_id:
            raise SelfFollowError()
        for user_id in (follower_id, followed_id):
            if await self.db.get(User, user_id) is None:
                raise NotFoundError("user", user_id)

        if value:
            await insert_ignore_conflict(
                self.db,
                Follow.__table__,
                {"follower_id": follower_id, "followed_id": followed_id},
                index_elements=["follower_id", "followed_id"],
            )
        else:
            await self.db.execute(
                delete(Follow).where(
                    Follow.follower_id == follower_id,
                    Follow.followed_id == followed_id,
                )
            )

    async def is_following(self, follower_id: int, followed_id: int) -> bool:
        result = await self.db.execute(
            select(Follow.follower_id).where(
                Follow.follower_id == follower_id,
                Follow.followed_id == followed_id,
            )
        )
        return result.first() is not None
