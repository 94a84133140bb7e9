"""
Comment service: comments attached to an Article.

Comments cannot be edited.  Only their author may delete them; the
ownership check happens before the delete so a rejected request never
partially applies.  Comments go away with their article (cascade).
"""
from __future__ import annotations

import logging

from conduit.domain import CommentRecord, CommentView
from conduit.errors import NotFoundError, ValidationError
from conduit.repositories.base import CommentRepository, UserRepository
from conduit.services.user_service import build_profile

logger = logging.getLogger(__name__)


class CommentService:
    def __init__(self, comments: CommentRepository, users: UserRepository):
        self.comments = comments
        self.users = users

    async def add(self, article_id: int, author_id: int, body: str) -> CommentRecord:
        if not body or not body.strip():
            raise ValidationError.single("body", "can't be blank")
        return await self.comments.add(article_id, author_id, body)

    async def list(self, article_id: int) -> list[CommentRecord]:
        """All comments on the article in reading order (oldest first)."""
        return await self.comments.list_for_article(article_id)

    async def delete(
        self, comment_id: int, requester_id: int, article_id: int | None = None
    ) -> None:
        """
        Delete a comment.  When *article_id* is given, a comment that
        belongs to a different article is reported as not found.
        """
        if article_id is not None:
            comment = await self.comments.find_by_id(comment_id)
            if comment is None or comment.article_id != article_id:
                raise NotFoundError("comment", comment_id)
        await self.comments.delete(comment_id, requester_id)
        logger.info("Deleted comment id=%s by user=%s", comment_id, requester_id)

    async def describe(self, comment: CommentRecord, viewer_id: int | None) -> CommentView:
        author = await self.users.find_by_id(comment.author_id)
        if author is None:
            raise NotFoundError("user", comment.author_id)
        return CommentView(
            comment=comment, author=await build_profile(self.users, author, viewer_id)
        )
