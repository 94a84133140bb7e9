"""SQLAlchemy implementation of ``CommentRepository``."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.domain import CommentRecord
from conduit.errors import NotFoundError, UnauthorizedError
from conduit.models import Article, Comment, User
from conduit.repositories.base import CommentRepository


class SqlCommentRepository(CommentRepository):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _require_article(self, article_id: int) -> None:
        result = await self.db.execute(select(Article.id).where(Article.id == article_id))
        if result.first() is None:
            raise NotFoundError("article", article_id)

    async def add(self, article_id: int, author_id: int, body: str) -> CommentRecord:
        await self._require_article(article_id)
        if await self.db.get(User, author_id) is None:
            raise NotFoundError("user", author_id)

        comment = Comment(article_id=article_id, author_id=author_id, body=body)
        self.db.add(comment)
        await self.db.flush()
        await self.db.refresh(comment)
        return CommentRecord.model_validate(comment)

    async def find_by_id(self, comment_id: int) -> CommentRecord | None:
        comment = await self.db.get(Comment, comment_id)
        return CommentRecord.model_validate(comment) if comment else None

    async def list_for_article(self, article_id: int) -> list[CommentRecord]:
        await self._require_article(article_id)
        result = await self.db.execute(
            select(Comment)
            .where(Comment.article_id == article_id)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        )
        return [CommentRecord.model_validate(c) for c in result.scalars().all()]

    async def delete(self, comment_id: int, requester_id: int) -> None:
        comment = await self.db.get(Comment, comment_id)
        if comment is None:
            raise NotFoundError("comment", comment_id)
        if comment.author_id != requester_id:
            raise UnauthorizedError("only the author may delete this comment")

        await self.db.delete(comment)
        await self.db.flush()
