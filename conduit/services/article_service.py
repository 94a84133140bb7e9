"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Slugs are derived from the title once, at publish time, and never
  regenerated: editing a title keeps every existing URL valid.
- Slug uniqueness is enforced by storage.  ``publish`` tries the bare
  slug first and, on ``SlugConflictError``, retries with a short random
  suffix from the injected generator.  The number of attempts is
  bounded by ``settings.SLUG_MAX_ATTEMPTS``; running out raises
  ``SlugGenerationExhaustedError`` for this call only.
- Only the author may update or delete an article.  The ownership check
  runs before any write, so a rejected call changes nothing.
- Favorites are a set-membership toggle; repeating a call is a no-op.
- The tag list is the only cached read (cache-aside, Redis); every
  write that can change it invalidates the entry, once immediately and
  once more after the transaction commits (``after_commit``) so a reader
  that cached the pre-commit list in between cannot pin it until the TTL.
"""
from __future__ import annotations

import logging
import re

from conduit.cache import TAGS_KEY, CacheManager, cache as default_cache
from conduit.config import settings
from conduit.domain import (
    ArticleDraft,
    ArticleFilter,
    ArticlePatch,
    ArticleRecord,
    ArticleView,
    Page,
)
from conduit.errors import (
    NotFoundError,
    SlugConflictError,
    SlugGenerationExhaustedError,
    UnauthorizedError,
    ValidationError,
)
from conduit.repositories.base import ArticleRepository, UserRepository
from conduit.services.user_service import build_profile
from conduit.system import AfterCommit, SuffixGenerator, random_slug_suffix

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")

TITLE_MAX_LENGTH = 300
TAG_MAX_LENGTH = 100


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def normalize_tags(tags: list[str] | None) -> list[str]:
    """Strip, drop blanks and duplicates; tags are kept in alphabetical order."""
    return sorted({t.strip() for t in tags or [] if t and t.strip()})


def _check_text(field: str, value: str, errors: dict[str, list[str]]) -> None:
    if not value:
        errors.setdefault(field, []).append("can't be blank")
    elif field == "title" and len(value) > TITLE_MAX_LENGTH:
        errors.setdefault(field, []).append(
            f"is too long (maximum is {TITLE_MAX_LENGTH} characters)"
        )


def _check_tags(tags: list[str], errors: dict[str, list[str]]) -> None:
    if any(len(t) > TAG_MAX_LENGTH for t in tags):
        errors.setdefault("tagList", []).append(
            f"tags may be at most {TAG_MAX_LENGTH} characters"
        )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ArticleService:
    def __init__(
        self,
        articles: ArticleRepository,
        users: UserRepository,
        *,
        suffix_generator: SuffixGenerator = random_slug_suffix,
        max_slug_attempts: int | None = None,
        cache: CacheManager = default_cache,
        after_commit: AfterCommit | None = None,
    ):
        self.articles = articles
        self.users = users
        self.suffix_generator = suffix_generator
        self.max_slug_attempts = max_slug_attempts or settings.SLUG_MAX_ATTEMPTS
        self.cache = cache
        self.after_commit = after_commit

    # -- writes ------------------------------------------------------------

    async def _invalidate_tags(self) -> None:
        await self.cache.invalidate_tags()
        if self.after_commit is not None:
            self.after_commit(self.cache.invalidate_tags)

    async def publish(
        self,
        author_id: int,
        title: str,
        description: str,
        body: str,
        tags: list[str] | None = None,
    ) -> ArticleRecord:
        title, description, body = (title or "").strip(), (description or "").strip(), body or ""
        tag_list = normalize_tags(tags)
        errors: dict[str, list[str]] = {}
        _check_text("title", title, errors)
        _check_text("description", description, errors)
        _check_text("body", body.strip(), errors)
        _check_tags(tag_list, errors)
        if errors:
            raise ValidationError(errors)

        base_slug = slugify(title)
        if not base_slug:
            raise ValidationError.single("title", "must contain at least one letter or digit")

        for attempt in range(self.max_slug_attempts):
            slug = base_slug if attempt == 0 else f"{base_slug}-{self.suffix_generator()}"
            try:
                article = await self.articles.create(
                    ArticleDraft(
                        author_id=author_id,
                        slug=slug,
                        title=title,
                        description=description,
                        body=body,
                        tag_list=tag_list,
                    )
                )
            except SlugConflictError:
                logger.info(
                    "Slug %r taken (attempt %d/%d)", slug, attempt + 1, self.max_slug_attempts
                )
                continue

            if tag_list:
                await self._invalidate_tags()
            logger.info("Published article id=%s slug=%r author=%s", article.id, slug, author_id)
            return article

        raise SlugGenerationExhaustedError(base_slug, self.max_slug_attempts)

    async def _owned(self, article_id: int, requester_id: int, action: str) -> ArticleRecord:
        article = await self.articles.find_by_id(article_id)
        if article is None:
            raise NotFoundError("article", article_id)
        if article.author_id != requester_id:
            raise UnauthorizedError(f"only the author may {action} this article")
        return article

    async def update(
        self,
        article_id: int,
        requester_id: int,
        *,
        title: str | None = None,
        description: str | None = None,
        body: str | None = None,
        tags: list[str] | None = None,
    ) -> ArticleRecord:
        """Edit an article in place.  The slug is left untouched."""
        await self._owned(article_id, requester_id, "edit")

        errors: dict[str, list[str]] = {}
        if title is not None:
            title = title.strip()
            _check_text("title", title, errors)
        if description is not None:
            description = description.strip()
            _check_text("description", description, errors)
        if body is not None:
            _check_text("body", body.strip(), errors)
        tag_list = normalize_tags(tags) if tags is not None else None
        if tag_list is not None:
            _check_tags(tag_list, errors)
        if errors:
            raise ValidationError(errors)

        updated = await self.articles.update(
            article_id,
            ArticlePatch(title=title, description=description, body=body, tag_list=tag_list),
        )
        if tag_list is not None:
            await self._invalidate_tags()
        return updated

    async def delete(self, article_id: int, requester_id: int) -> None:
        article = await self._owned(article_id, requester_id, "delete")
        await self.articles.delete(article_id)
        await self._invalidate_tags()
        logger.info("Deleted article id=%s slug=%r", article_id, article.slug)

    async def favorite(self, article_id: int, user_id: int, value: bool) -> int:
        """Set the favorite flag and return the article's new favorites count."""
        await self.articles.set_favorite(article_id, user_id, value)
        return await self.articles.favorites_count(article_id)

    # -- reads -------------------------------------------------------------

    async def get(self, slug: str) -> ArticleRecord:
        article = await self.articles.find_by_slug(slug)
        if article is None:
            raise NotFoundError("article", slug)
        return article

    async def list(self, filter: ArticleFilter, page: Page) -> list[ArticleRecord]:
        return await self.articles.list(filter, page)

    async def count(self, filter: ArticleFilter) -> int:
        return await self.articles.count(filter)

    async def feed(self, viewer_id: int, page: Page) -> list[ArticleRecord]:
        """Articles written by users *viewer_id* follows, newest first."""
        return await self.articles.list(ArticleFilter(followed_by=viewer_id), page)

    async def feed_count(self, viewer_id: int) -> int:
        return await self.articles.count(ArticleFilter(followed_by=viewer_id))

    async def tags(self) -> list[str]:
        return await self.cache.get_or_load(
            TAGS_KEY, self.articles.list_tags, ttl=settings.CACHE_TTL_TAGS
        )

    async def describe(self, article: ArticleRecord, viewer_id: int | None) -> ArticleView:
        """Attach the author's profile and favorite state as seen by *viewer_id*."""
        author = await self.users.find_by_id(article.author_id)
        if author is None:
            raise NotFoundError("user", article.author_id)
        favorited = False
        if viewer_id is not None:
            favorited = await self.articles.is_favorited(article.id, viewer_id)
        return ArticleView(
            article=article,
            author=await build_profile(self.users, author, viewer_id),
            favorited=favorited,
            favorites_count=await self.articles.favorites_count(article.id),
        )
