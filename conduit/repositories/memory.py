"""
In-memory implementations of the repository contracts.

All three repositories share one ``InMemoryStore`` so cascades and
cross-aggregate filters (feed, favorited_by) behave like the SQL
implementation.  No method awaits between its read and its write, so
each call is atomic with respect to the event loop.
"""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime

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
from conduit.errors import (
    ConflictError,
    NotFoundError,
    SelfFollowError,
    SlugConflictError,
    UnauthorizedError,
)
from conduit.repositories.base import ArticleRepository, CommentRepository, UserRepository
from conduit.system import Clock, utc_now


@dataclass
class InMemoryStore:
    clock: Clock = utc_now
    users: dict[int, UserRecord] = field(default_factory=dict)
    articles: dict[int, ArticleRecord] = field(default_factory=dict)
    comments: dict[int, CommentRecord] = field(default_factory=dict)
    follows: set[tuple[int, int]] = field(default_factory=set)
    favorites: set[tuple[int, int]] = field(default_factory=set)
    _ids: dict[str, itertools.count] = field(default_factory=dict)

    def next_id(self, kind: str) -> int:
        return next(self._ids.setdefault(kind, itertools.count(1)))

    def now(self) -> datetime:
        return self.clock()

    def user_by_username(self, username: str) -> UserRecord | None:
        key = username.lower()
        return next((u for u in self.users.values() if u.username.lower() == key), None)


class InMemoryUserRepository(UserRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    def _check_unique(self, username: str | None, email: str | None, exclude: int | None = None) -> None:
        for user in self.store.users.values():
            if user.id == exclude:
                continue
            if username is not None and user.username.lower() == username.lower():
                raise ConflictError("username", username)
            if email is not None and user.email.lower() == email.lower():
                raise ConflictError("email", email)

    async def create(self, new_user: NewUser) -> UserRecord:
        self._check_unique(new_user.username, new_user.email)
        user = UserRecord(
            id=self.store.next_id("user"),
            username=new_user.username,
            email=new_user.email,
            password_hash=new_user.password_hash,
            created_at=self.store.now(),
        )
        self.store.users[user.id] = user
        return user

    async def find_by_id(self, user_id: int) -> UserRecord | None:
        return self.store.users.get(user_id)

    async def find_by_username(self, username: str) -> UserRecord | None:
        return self.store.user_by_username(username)

    async def find_by_email(self, email: str) -> UserRecord | None:
        key = email.lower()
        return next((u for u in self.store.users.values() if u.email.lower() == key), None)

    async def update(self, user_id: int, patch: UserPatch) -> UserRecord:
        user = self.store.users.get(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        changes = patch.model_dump(exclude_unset=True)
        self._check_unique(changes.get("username"), changes.get("email"), exclude=user_id)
        updated = user.model_copy(update={**changes, "updated_at": self.store.now()})
        self.store.users[user_id] = updated
        return updated

    async def set_follow(self, follower_id: int, followed_id: int, value: bool) -> None:
        if follower_id == followed_id:
            raise SelfFollowError()
        for user_id in (follower_id, followed_id):
            if user_id not in self.store.users:
                raise NotFoundError("user", user_id)
        if value:
            self.store.follows.add((follower_id, followed_id))
        else:
            self.store.follows.discard((follower_id, followed_id))

    async def is_following(self, follower_id: int, followed_id: int) -> bool:
        return (follower_id, followed_id) in self.store.follows


class InMemoryArticleRepository(ArticleRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    def _require(self, article_id: int) -> ArticleRecord:
        article = self.store.articles.get(article_id)
        if article is None:
            raise NotFoundError("article", article_id)
        return article

    def _matches(self, article: ArticleRecord, filter: ArticleFilter) -> bool:
        store = self.store
        if filter.tag and filter.tag not in article.tag_list:
            return False
        if filter.author:
            author = store.user_by_username(filter.author)
            if author is None or author.id != article.author_id:
                return False
        if filter.favorited_by:
            fan = store.user_by_username(filter.favorited_by)
            if fan is None or (article.id, fan.id) not in store.favorites:
                return False
        if filter.followed_by is not None:
            if (filter.followed_by, article.author_id) not in store.follows:
                return False
        return True

    async def create(self, draft: ArticleDraft) -> ArticleRecord:
        if draft.author_id not in self.store.users:
            raise NotFoundError("user", draft.author_id)
        if any(a.slug == draft.slug for a in self.store.articles.values()):
            raise SlugConflictError(draft.slug)
        now = self.store.now()
        article = ArticleRecord(
            id=self.store.next_id("article"),
            author_id=draft.author_id,
            slug=draft.slug,
            title=draft.title,
            description=draft.description,
            body=draft.body,
            tag_list=sorted(set(draft.tag_list)),
            created_at=now,
            updated_at=now,
        )
        self.store.articles[article.id] = article
        return article

    async def find_by_id(self, article_id: int) -> ArticleRecord | None:
        return self.store.articles.get(article_id)

    async def find_by_slug(self, slug: str) -> ArticleRecord | None:
        return next((a for a in self.store.articles.values() if a.slug == slug), None)

    async def list(self, filter: ArticleFilter, page: Page) -> list[ArticleRecord]:
        matching = [a for a in self.store.articles.values() if self._matches(a, filter)]
        matching.sort(key=lambda a: (a.created_at, a.id), reverse=True)
        return matching[page.offset:page.offset + page.limit]

    async def count(self, filter: ArticleFilter) -> int:
        return sum(1 for a in self.store.articles.values() if self._matches(a, filter))

    async def update(self, article_id: int, patch: ArticlePatch) -> ArticleRecord:
        article = self._require(article_id)
        changes = patch.model_dump(exclude_none=True)
        if "tag_list" in changes:
            changes["tag_list"] = sorted(set(changes["tag_list"]))
        updated = article.model_copy(update={**changes, "updated_at": self.store.now()})
        self.store.articles[article_id] = updated
        return updated

    async def delete(self, article_id: int) -> None:
        self._require(article_id)
        store = self.store
        del store.articles[article_id]
        store.comments = {k: c for k, c in store.comments.items() if c.article_id != article_id}
        store.favorites = {f for f in store.favorites if f[0] != article_id}

    async def set_favorite(self, article_id: int, user_id: int, value: bool) -> None:
        self._require(article_id)
        if user_id not in self.store.users:
            raise NotFoundError("user", user_id)
        if value:
            self.store.favorites.add((article_id, user_id))
        else:
            self.store.favorites.discard((article_id, user_id))

    async def favorites_count(self, article_id: int) -> int:
        self._require(article_id)
        return sum(1 for f in self.store.favorites if f[0] == article_id)

    async def is_favorited(self, article_id: int, user_id: int) -> bool:
        return (article_id, user_id) in self.store.favorites

    async def list_tags(self) -> list[str]:
        return sorted({t for a in self.store.articles.values() for t in a.tag_list})


class InMemoryCommentRepository(CommentRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def add(self, article_id: int, author_id: int, body: str) -> CommentRecord:
        if article_id not in self.store.articles:
            raise NotFoundError("article", article_id)
        if author_id not in self.store.users:
            raise NotFoundError("user", author_id)
        now = self.store.now()
        comment = CommentRecord(
            id=self.store.next_id("comment"),
            article_id=article_id,
            author_id=author_id,
            body=body,
            created_at=now,
            updated_at=now,
        )
        self.store.comments[comment.id] = comment
        return comment

    async def find_by_id(self, comment_id: int) -> CommentRecord | None:
        return self.store.comments.get(comment_id)

    async def list_for_article(self, article_id: int) -> list[CommentRecord]:
        if article_id not in self.store.articles:
            raise NotFoundError("article", article_id)
        comments = [c for c in self.store.comments.values() if c.article_id == article_id]
        return sorted(comments, key=lambda c: (c.created_at, c.id))

    async def delete(self, comment_id: int, requester_id: int) -> None:
        comment = self.store.comments.get(comment_id)
        if comment is None:
            raise NotFoundError("comment", comment_id)
        if comment.author_id != requester_id:
            raise UnauthorizedError("only the author may delete this comment")
        del self.store.comments[comment_id]
