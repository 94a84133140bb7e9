"""
Abstract repository contracts, one per aggregate root.

Services depend only on these classes.  A concrete implementation is
chosen at composition time (``conduit.wiring``): SQLAlchemy for the
running application, in-memory for fast service tests.  Every
implementation must honour the same error semantics:

- referencing an entity that does not exist raises ``NotFoundError``;
- a unique-constraint violation raises ``ConflictError`` (or
  ``SlugConflictError``) naming the offending field;
- toggles (follow, favorite) are idempotent and never raise because
  the row already exists / is already gone.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from conduit.domain import (
    ArticleDraft,
    ArticleFilter,
    ArticlePatch,
    ArticleRecord,
    CommentRecord,
    NewUser,
    Page,
    UserPatch,
    UserRecord,
)


class UserRepository(ABC):
    @abstractmethod
    async def create(self, new_user: NewUser) -> UserRecord:
        """Insert a user; username and email are unique ignoring case."""

    @abstractmethod
    async def find_by_id(self, user_id: int) -> UserRecord | None:
        ...

    @abstractmethod
    async def find_by_username(self, username: str) -> UserRecord | None:
        """Case-insensitive lookup."""

    @abstractmethod
    async def find_by_email(self, email: str) -> UserRecord | None:
        """Case-insensitive lookup."""

    @abstractmethod
    async def update(self, user_id: int, patch: UserPatch) -> UserRecord:
        """Apply the fields set on *patch* and return the updated user."""

    @abstractmethod
    async def set_follow(self, follower_id: int, followed_id: int, value: bool) -> None:
        """Add (``value=True``) or remove the follow edge; idempotent."""

    @abstractmethod
    async def is_following(self, follower_id: int, followed_id: int) -> bool:
        ...


class ArticleRepository(ABC):
    @abstractmethod
    async def create(self, draft: ArticleDraft) -> ArticleRecord:
        """Insert an article; raises ``SlugConflictError`` if the slug is taken."""

    @abstractmethod
    async def find_by_id(self, article_id: int) -> ArticleRecord | None:
        ...

    @abstractmethod
    async def find_by_slug(self, slug: str) -> ArticleRecord | None:
        ...

    @abstractmethod
    async def list(self, filter: ArticleFilter, page: Page) -> list[ArticleRecord]:
        """Newest first (``created_at`` desc, then ``id`` desc)."""

    @abstractmethod
    async def count(self, filter: ArticleFilter) -> int:
        ...

    @abstractmethod
    async def update(self, article_id: int, patch: ArticlePatch) -> ArticleRecord:
        """Apply *patch*; the slug and author are never changed here."""

    @abstractmethod
    async def delete(self, article_id: int) -> None:
        """Delete the article together with its comments and favorites."""

    @abstractmethod
    async def set_favorite(self, article_id: int, user_id: int, value: bool) -> None:
        ...

    @abstractmethod
    async def favorites_count(self, article_id: int) -> int:
        ...

    @abstractmethod
    async def is_favorited(self, article_id: int, user_id: int) -> bool:
        ...

    @abstractmethod
    async def list_tags(self) -> list[str]:
        """Every tag name in use, alphabetically."""


class CommentRepository(ABC):
    @abstractmethod
    async def add(self, article_id: int, author_id: int, body: str) -> CommentRecord:
        ...

    @abstractmethod
    async def find_by_id(self, comment_id: int) -> CommentRecord | None:
        ...

    @abstractmethod
    async def list_for_article(self, article_id: int) -> list[CommentRecord]:
        """Oldest first (``created_at`` asc, then ``id`` asc)."""

    @abstractmethod
    async def delete(self, comment_id: int, requester_id: int) -> None:
        """
        Delete a comment owned by *requester_id*.

        Raises ``NotFoundError`` for an unknown id and ``UnauthorizedError``
        when the requester is not the author; nothing is deleted then.
        """
