"""Repository layer: storage-agnostic contracts plus SQL and in-memory implementations.

Services only ever see the abstract classes from ``base``; which
implementation backs them is decided in ``conduit.wiring``.
"""

from conduit.repositories.article_repository import SqlArticleRepository
from conduit.repositories.base import ArticleRepository, CommentRepository, UserRepository
from conduit.repositories.comment_repository import SqlCommentRepository
from conduit.repositories.memory import (
    InMemoryArticleRepository,
    InMemoryCommentRepository,
    InMemoryStore,
    InMemoryUserRepository,
)
from conduit.repositories.user_repository import SqlUserRepository

__all__ = [
    "ArticleRepository",
    "CommentRepository",
    "UserRepository",
    "SqlArticleRepository",
    "SqlCommentRepository",
    "SqlUserRepository",
    "InMemoryStore",
    "InMemoryArticleRepository",
    "InMemoryCommentRepository",
    "InMemoryUserRepository",
]
