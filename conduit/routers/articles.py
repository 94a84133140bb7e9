from fastapi import APIRouter, Depends, Query, Response

from conduit.dependencies import (
    PaginationParams,
    get_current_user_id,
    get_optional_user_id,
    get_services,
)
from conduit.domain import ArticleFilter, ArticleRecord
from conduit.schemas import (
    ArticleOut,
    ArticleResponse,
    CommentOut,
    CommentResponse,
    MultipleArticlesResponse,
    MultipleCommentsResponse,
    NewArticleRequest,
    NewCommentRequest,
    UpdateArticleRequest,
)
from conduit.wiring import Services

router = APIRouter(prefix="/api/articles", tags=["articles"])


async def _article_out(
    services: Services, article: ArticleRecord, viewer_id: int | None
) -> ArticleOut:
    return ArticleOut.from_view(await services.articles.describe(article, viewer_id))


async def _many(
    services: Services, articles: list[ArticleRecord], total: int, viewer_id: int | None
) -> MultipleArticlesResponse:
    return MultipleArticlesResponse(
        articles=[await _article_out(services, a, viewer_id) for a in articles],
        articles_count=total,
    )


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@router.get("", response_model=MultipleArticlesResponse)
async def list_articles(
    tag: str | None = Query(None),
    author: str | None = Query(None),
    favorited: str | None = Query(None, description="Username who favorited the article."),
    pagination: PaginationParams = Depends(),
    viewer_id: int | None = Depends(get_optional_user_id),
    services: Services = Depends(get_services),
):
    filter = ArticleFilter(tag=tag, author=author, favorited_by=favorited)
    articles = await services.articles.list(filter, pagination.page)
    total = await services.articles.count(filter)
    return await _many(services, articles, total, viewer_id)


@router.get("/feed", response_model=MultipleArticlesResponse)
async def feed(
    pagination: PaginationParams = Depends(),
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    articles = await services.articles.feed(user_id, pagination.page)
    total = await services.articles.feed_count(user_id)
    return await _many(services, articles, total, user_id)


# ---------------------------------------------------------------------------
# Single article
# ---------------------------------------------------------------------------

@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(
    data: NewArticleRequest,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    new = data.article
    article = await services.articles.publish(
        user_id, new.title, new.description, new.body, new.tag_list
    )
    return ArticleResponse(article=await _article_out(services, article, user_id))


@router.get("/{slug}", response_model=ArticleResponse)
async def get_article(
    slug: str,
    viewer_id: int | None = Depends(get_optional_user_id),
    services: Services = Depends(get_services),
):
    article = await services.articles.get(slug)
    return ArticleResponse(article=await _article_out(services, article, viewer_id))


@router.put("/{slug}", response_model=ArticleResponse)
async def update_article(
    slug: str,
    data: UpdateArticleRequest,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    article = await services.articles.get(slug)
    changes = data.article
    updated = await services.articles.update(
        article.id,
        user_id,
        title=changes.title,
        description=changes.description,
        body=changes.body,
        tags=changes.tag_list,
    )
    return ArticleResponse(article=await _article_out(services, updated, user_id))


@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    article = await services.articles.get(slug)
    await services.articles.delete(article.id, user_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

@router.post("/{slug}/favorite", response_model=ArticleResponse)
async def favorite_article(
    slug: str,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    article = await services.articles.get(slug)
    await services.articles.favorite(article.id, user_id, True)
    return ArticleResponse(article=await _article_out(services, article, user_id))


@router.delete("/{slug}/favorite", response_model=ArticleResponse)
async def unfavorite_article(
    slug: str,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    article = await services.articles.get(slug)
    await services.articles.favorite(article.id, user_id, False)
    return ArticleResponse(article=await _article_out(services, article, user_id))


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@router.get("/{slug}/comments", response_model=MultipleCommentsResponse)
async def list_comments(
    slug: str,
    viewer_id: int | None = Depends(get_optional_user_id),
    services: Services = Depends(get_services),
):
    article = await services.articles.get(slug)
    comments = await services.comments.list(article.id)
    return MultipleCommentsResponse(
        comments=[
            CommentOut.from_view(await services.comments.describe(c, viewer_id))
            for c in comments
        ]
    )


@router.post("/{slug}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    slug: str,
    data: NewCommentRequest,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    article = await services.articles.get(slug)
    comment = await services.comments.add(article.id, user_id, data.comment.body)
    view = await services.comments.describe(comment, user_id)
    return CommentResponse(comment=CommentOut.from_view(view))


@router.delete("/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    article = await services.articles.get(slug)
    await services.comments.delete(comment_id, user_id, article_id=article.id)
    return Response(status_code=204)
