"""SQLAlchemy implementation of ``ArticleRepository`` (articles, tags, favorites)."""
from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from conduit.domain import ArticleDraft, ArticleFilter, ArticlePatch, ArticleRecord, Page
from conduit.errors import NotFoundError, SlugConflictError
from conduit.models import Article, Comment, Favorite, Follow, Tag, User, article_tags
from conduit.repositories.base import ArticleRepository
from conduit.repositories.utils import insert_ignore_conflict, integrity_message

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_record(article: Article) -> ArticleRecord:
    return ArticleRecord(
        id=article.id,
        author_id=article.author_id,
        slug=article.slug,
        title=article.title,
        description=article.description,
        body=article.body,
        tag_list=sorted(t.name for t in article.tags),
        created_at=article.created_at,
        updated_at=article.updated_at,
    )


def _apply_filter(stmt, filter: ArticleFilter):
    """AND together every filter that is set."""
    if filter.tag:
        stmt = stmt.where(Article.tags.any(Tag.name == filter.tag))
    if filter.author:
        stmt = stmt.where(
            Article.author_id.in_(
                select(User.id).where(func.lower(User.username) == filter.author.lower())
            )
        )
    if filter.favorited_by:
        stmt = stmt.where(
            Article.id.in_(
                select(Favorite.article_id)
                .join(User, User.id == Favorite.user_id)
                .where(func.lower(User.username) == filter.favorited_by.lower())
            )
        )
    if filter.followed_by is not None:
        stmt = stmt.where(
            Article.author_id.in_(
                select(Follow.followed_id).where(Follow.follower_id == filter.followed_by)
            )
        )
    return stmt


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SqlArticleRepository(ArticleRepository):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load(self, article_id: int) -> Article | None:
        result = await self.db.execute(
            select(Article)
            .where(Article.id == article_id)
            .options(selectinload(Article.tags))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _require_article(self, article_id: int) -> None:
        result = await self.db.execute(select(Article.id).where(Article.id == article_id))
        if result.first() is None:
            raise NotFoundError("article", article_id)

    async def _resolve_tags(self, tag_names: list[str]) -> list[Tag]:
        """
        Return Tag rows for *tag_names*, creating any that are missing.
        Concurrent creators of the same tag converge on one row.
        """
        if not tag_names:
            return []
        for name in tag_names:
            await insert_ignore_conflict(
                self.db, Tag.__table__, {"name": name}, index_elements=["name"]
            )
        result = await self.db.execute(select(Tag).where(Tag.name.in_(tag_names)))
        return list(result.scalars().all())

    async def create(self, draft: ArticleDraft) -> ArticleRecord:
        if await self.db.get(User, draft.author_id) is None:
            raise NotFoundError("user", draft.author_id)

        tags = await self._resolve_tags(draft.tag_list)
        article = Article(
            author_id=draft.author_id,
            slug=draft.slug,
            title=draft.title,
            description=draft.description,
            body=draft.body,
        )
        article.tags = tags
        try:
            async with self.db.begin_nested():
                self.db.add(article)
                await self.db.flush()
        except IntegrityError as exc:
            if "slug" in integrity_message(exc):
                raise SlugConflictError(draft.slug) from exc
            raise

        return _to_record(await self._load(article.id))

    async def find_by_id(self, article_id: int) -> ArticleRecord | None:
        article = await self._load(article_id)
        return _to_record(article) if article else None

    async def find_by_slug(self, slug: str) -> ArticleRecord | None:
        result = await self.db.execute(
            select(Article).where(Article.slug == slug).options(selectinload(Article.tags))
        )
        article = result.scalar_one_or_none()
        return _to_record(article) if article else None

    async def list(self, filter: ArticleFilter, page: Page) -> list[ArticleRecord]:
        stmt = _apply_filter(
            select(Article).options(selectinload(Article.tags)), filter
        )
        stmt = (
            stmt.order_by(Article.created_at.desc(), Article.id.desc())
            .offset(page.offset)
            .limit(page.limit)
        )
        result = await self.db.execute(stmt)
        return [_to_record(a) for a in result.scalars().all()]

    async def count(self, filter: ArticleFilter) -> int:
        stmt = _apply_filter(select(func.count(Article.id)), filter)
        return (await self.db.execute(stmt)).scalar_one()

    async def update(self, article_id: int, patch: ArticlePatch) -> ArticleRecord:
        article = await self._load(article_id)
        if article is None:
            raise NotFoundError("article", article_id)

        changes = patch.model_dump(exclude_none=True)
        tag_names = changes.pop("tag_list", None)
        for field, value in changes.items():
            setattr(article, field, value)
        if tag_names is not None:
            article.tags = await self._resolve_tags(tag_names)

        # Touch updated_at even when only the tag links changed.
        article.updated_at = func.now()
        await self.db.flush()
        return _to_record(await self._load(article_id))

    async def delete(self, article_id: int) -> None:
        await self._require_article(article_id)
        # Explicit cascade so engines without FK enforcement (SQLite by
        # default) end up in the same state as PostgreSQL.
        await self.db.execute(delete(Comment).where(Comment.article_id == article_id))
        await self.db.execute(delete(Favorite).where(Favorite.article_id == article_id))
        await self.db.execute(delete(article_tags).where(article_tags.c.article_id == article_id))
        await self.db.execute(delete(Article).where(Article.id == article_id))

    async def set_favorite(self, article_id: int, user_id: int, value: bool) -> None:
        await self._require_article(article_id)
        if await self.db.get(User, user_id) is None:
            raise NotFoundError("user", user_id)

        if value:
            await insert_ignore_conflict(
                self.db,
                Favorite.__table__,
                {"article_id": article_id, "user_id": user_id},
                index_elements=["article_id", "user_id"],
            )
        else:
            await self.db.execute(
                delete(Favorite).where(
                    Favorite.article_id == article_id, Favorite.user_id == user_id
                )
            )

    async def favorites_count(self, article_id: int) -> int:
        await self._require_article(article_id)
        result = await self.db.execute(
            select(func.count()).select_from(Favorite).where(Favorite.article_id == article_id)
        )
        return result.scalar_one()

    async def is_favorited(self, article_id: int, user_id: int) -> bool:
        result = await self.db.execute(
            select(Favorite.article_id).where(
                Favorite.article_id == article_id, Favorite.user_id == user_id
            )
        )
        return result.first() is not None

    async def list_tags(self) -> list[str]:
        result = await self.db.execute(
            select(Tag.name)
            .where(Tag.id.in_(select(article_tags.c.tag_id)))
            .order_by(Tag.name)
        )
        return list(result.scalars().all())
