"""
Composition root: builds the services on top of a concrete storage.

``sql_services`` is what the HTTP layer uses (one set per request,
sharing the request's session); ``in_memory_services`` backs the
service tests and local experiments.
"""
from dataclasses import dataclass
from functools import partial

from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import CacheManager, cache as default_cache
from conduit.database import after_commit
from conduit.repositories import (
    ArticleRepository,
    CommentRepository,
    InMemoryArticleRepository,
    InMemoryCommentRepository,
    InMemoryStore,
    InMemoryUserRepository,
    SqlArticleRepository,
    SqlCommentRepository,
    SqlUserRepository,
    UserRepository,
)
from conduit.services.article_service import ArticleService
from conduit.services.comment_service import CommentService
from conduit.services.user_service import UserService
from conduit.system import AfterCommit, Clock, SuffixGenerator, random_slug_suffix, utc_now


@dataclass(frozen=True)
class Services:
    users: UserService
    articles: ArticleService
    comments: CommentService


def build_services(
    users: UserRepository,
    articles: ArticleRepository,
    comments: CommentRepository,
    *,
    clock: Clock = utc_now,
    suffix_generator: SuffixGenerator = random_slug_suffix,
    cache: CacheManager = default_cache,
    after_commit: AfterCommit | None = None,
) -> Services:
    return Services(
        users=UserService(users, clock=clock),
        articles=ArticleService(
            articles,
            users,
            suffix_generator=suffix_generator,
            cache=cache,
            after_commit=after_commit,
        ),
        comments=CommentService(comments, users),
    )


def sql_services(db: AsyncSession, **kwargs) -> Services:
    return build_services(
        SqlUserRepository(db),
        SqlArticleRepository(db),
        SqlCommentRepository(db),
        after_commit=partial(after_commit, db),
        **kwargs,
    )


def in_memory_services(store: InMemoryStore | None = None, **kwargs) -> Services:
    store = store or InMemoryStore(clock=kwargs.get("clock", utc_now))
    return build_services(
        InMemoryUserRepository(store),
        InMemoryArticleRepository(store),
        InMemoryCommentRepository(store),
        **kwargs,
    )
