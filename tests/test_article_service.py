"""
Article and comment service tests against the in-memory repositories:
slugs, ownership, favorites, listing filters, the feed and cascades.
"""
from datetime import timedelta

import pytest

from conduit.domain import ArticleFilter, Page
from conduit.errors import (
    NotFoundError,
    SlugGenerationExhaustedError,
    UnauthorizedError,
    ValidationError,
)
from conduit.services.article_service import ArticleService, normalize_tags, slugify


async def _users(services, *names):
    return [
        await services.users.register(name, f"{name}@example.com", "secret123")
        for name in names
    ]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("title, slug", [
    ("My First Post", "my-first-post"),
    ("  Hello,   World!  ", "hello-world"),
    ("snake_case and--dashes", "snake-case-and-dashes"),
    ("Ünïcode Títle", "ünïcode-títle"),
])
def test_slugify(title, slug):
    assert slugify(title) == slug


def test_normalize_tags_dedupes_and_sorts():
    assert normalize_tags([" python", "fastapi", "python", "", "  "]) == ["fastapi", "python"]
    assert normalize_tags(None) == []


# ---------------------------------------------------------------------------
# Publish & slugs
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_publish_sets_slug_and_timestamps(services, clock):
    [alice] = await _users(services, "alice")
    article = await services.articles.publish(
        alice.id, "My First Post", "desc", "body", ["b", "a", "a"]
    )
    assert article.slug == "my-first-post"
    assert article.tag_list == ["a", "b"]
    assert article.created_at == article.updated_at == clock()


@pytest.mark.asyncio
async def test_duplicate_titles_get_distinct_slugs(services):
    [alice] = await _users(services, "alice")
    first = await services.articles.publish(alice.id, "Hello World", "d", "b")
    second = await services.articles.publish(alice.id, "Hello World", "d", "b")

    assert first.slug == "hello-world"
    assert second.slug == "hello-world-s1"
    assert (await services.articles.get(first.slug)).id == first.id
    assert (await services.articles.get(second.slug)).id == second.id


@pytest.mark.asyncio
async def test_slug_retries_are_bounded(services):
    [alice] = await _users(services, "alice")
    articles = ArticleService(
        services.articles.articles,
        services.users.users,
        suffix_generator=lambda: "same",
        max_slug_attempts=3,
    )
    await articles.publish(alice.id, "Hello", "d", "b")
    await articles.publish(alice.id, "Hello", "d", "b")  # hello-same

    with pytest.raises(SlugGenerationExhaustedError) as excinfo:
        await articles.publish(alice.id, "Hello", "d", "b")
    assert excinfo.value.attempts == 3

    # The failure is local to that call; other titles still publish.
    other = await articles.publish(alice.id, "Different", "d", "b")
    assert other.slug == "different"


@pytest.mark.asyncio
async def test_publish_validation(services):
    [alice] = await _users(services, "alice")
    with pytest.raises(ValidationError) as excinfo:
        await services.articles.publish(alice.id, "", " ", "")
    assert set(excinfo.value.errors) == {"title", "description", "body"}

    with pytest.raises(ValidationError) as excinfo:
        await services.articles.publish(alice.id, "!!!", "d", "b")
    assert "title" in excinfo.value.errors


@pytest.mark.asyncio
async def test_publish_for_unknown_author(services):
    with pytest.raises(NotFoundError):
        await services.articles.publish(999, "Title", "d", "b")


# ---------------------------------------------------------------------------
# Update & delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_title_update_keeps_slug(services, clock):
    [alice] = await _users(services, "alice")
    article = await services.articles.publish(alice.id, "Original Title", "d", "b", ["x"])
    clock.advance(timedelta(minutes=5))

    updated = await services.articles.update(article.id, alice.id, title="A Brand New Title")
    assert updated.title == "A Brand New Title"
    assert updated.slug == "original-title"
    assert updated.tag_list == ["x"]
    assert updated.updated_at > updated.created_at


@pytest.mark.asyncio
async def test_update_replaces_tags(services):
    [alice] = await _users(services, "alice")
    article = await services.articles.publish(alice.id, "Tagged", "d", "b", ["x", "y"])
    updated = await services.articles.update(article.id, alice.id, tags=["z"])
    assert updated.tag_list == ["z"]
    assert await services.articles.tags() == ["z"]


@pytest.mark.asyncio
async def test_only_author_may_update_or_delete(services):
    alice, bob = await _users(services, "alice", "bob")
    article = await services.articles.publish(alice.id, "Mine", "d", "b")

    with pytest.raises(UnauthorizedError):
        await services.articles.update(article.id, bob.id, title="Stolen")
    with pytest.raises(UnauthorizedError):
        await services.articles.delete(article.id, bob.id)

    unchanged = await services.articles.get("mine")
    assert unchanged.title == "Mine"


@pytest.mark.asyncio
async def test_delete_cascades_to_comments_and_favorites(services, store):
    alice, bob = await _users(services, "alice", "bob")
    article = await services.articles.publish(alice.id, "Doomed", "d", "b", ["gone"])
    await services.articles.favorite(article.id, bob.id, True)
    await services.comments.add(article.id, bob.id, "nice")

    await services.articles.delete(article.id, alice.id)

    assert store.comments == {}
    assert store.favorites == set()
    assert await services.articles.tags() == []
    with pytest.raises(NotFoundError):
        await services.articles.get("doomed")
    with pytest.raises(NotFoundError):
        await services.comments.list(article.id)
    with pytest.raises(NotFoundError):
        await services.articles.articles.favorites_count(article.id)


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favoriting_twice_counts_once(services):
    alice, bob = await _users(services, "alice", "bob")
    article = await services.articles.publish(alice.id, "Popular", "d", "b")

    assert await services.articles.favorite(article.id, bob.id, True) == 1
    assert await services.articles.favorite(article.id, bob.id, True) == 1
    assert await services.articles.favorite(article.id, alice.id, True) == 2
    assert await services.articles.favorite(article.id, bob.id, False) == 1
    assert await services.articles.favorite(article.id, bob.id, False) == 1


@pytest.mark.asyncio
async def test_describe_reflects_viewer(services):
    alice, bob = await _users(services, "alice", "bob")
    article = await services.articles.publish(alice.id, "Viewed", "d", "b")
    await services.articles.favorite(article.id, bob.id, True)
    await services.users.follow(bob.id, "alice")

    as_bob = await services.articles.describe(article, bob.id)
    assert as_bob.favorited is True
    assert as_bob.favorites_count == 1
    assert as_bob.author.username == "alice"
    assert as_bob.author.following is True

    anonymous = await services.articles.describe(article, None)
    assert anonymous.favorited is False
    assert anonymous.author.following is False


# ---------------------------------------------------------------------------
# Listing & feed
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_filters_and_order(services, clock):
    alice, bob, carol = await _users(services, "alice", "bob", "carol")
    a1 = await services.articles.publish(alice.id, "Alpha", "d", "b", ["python"])
    clock.advance(timedelta(minutes=1))
    b1 = await services.articles.publish(bob.id, "Beta", "d", "b", ["python", "web"])
    clock.advance(timedelta(minutes=1))
    a2 = await services.articles.publish(alice.id, "Gamma", "d", "b", ["web"])
    await services.articles.favorite(b1.id, carol.id, True)

    everything = await services.articles.list(ArticleFilter(), Page())
    assert [a.id for a in everything] == [a2.id, b1.id, a1.id]

    by_tag = await services.articles.list(ArticleFilter(tag="python"), Page())
    assert [a.id for a in by_tag] == [b1.id, a1.id]

    by_author = await services.articles.list(ArticleFilter(author="ALICE"), Page())
    assert [a.id for a in by_author] == [a2.id, a1.id]

    favorited = await services.articles.list(ArticleFilter(favorited_by="carol"), Page())
    assert [a.id for a in favorited] == [b1.id]

    combined = ArticleFilter(tag="web", author="alice")
    assert [a.id for a in await services.articles.list(combined, Page())] == [a2.id]
    assert await services.articles.count(combined) == 1

    page = await services.articles.list(ArticleFilter(), Page(limit=1, offset=1))
    assert [a.id for a in page] == [b1.id]
    assert await services.articles.count(ArticleFilter()) == 3


@pytest.mark.asyncio
async def test_feed_only_shows_followed_authors(services, clock):
    alice, bob, carol = await _users(services, "alice", "bob", "carol")
    await services.articles.publish(alice.id, "From Alice", "d", "b")
    clock.advance(timedelta(minutes=1))
    from_bob = await services.articles.publish(bob.id, "From Bob", "d", "b")

    assert await services.articles.feed(carol.id, Page()) == []

    await services.users.follow(carol.id, "bob")
    feed = await services.articles.feed(carol.id, Page())
    assert [a.id for a in feed] == [from_bob.id]
    assert await services.articles.feed_count(carol.id) == 1


@pytest.mark.asyncio
async def test_tags_are_unique_and_sorted(services):
    [alice] = await _users(services, "alice")
    await services.articles.publish(alice.id, "One", "d", "b", ["web", "python"])
    await services.articles.publish(alice.id, "Two", "d", "b", ["python", "async"])
    assert await services.articles.tags() == ["async", "python", "web"]


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_comments_in_reading_order(services, clock):
    alice, bob = await _users(services, "alice", "bob")
    article = await services.articles.publish(alice.id, "Discuss", "d", "b")

    first = await services.comments.add(article.id, bob.id, "first!")
    clock.advance(timedelta(seconds=10))
    second = await services.comments.add(article.id, alice.id, "thanks")

    comments = await services.comments.list(article.id)
    assert [c.id for c in comments] == [first.id, second.id]
    assert first.created_at == first.updated_at


@pytest.mark.asyncio
async def test_blank_comment_rejected(services):
    [alice] = await _users(services, "alice")
    article = await services.articles.publish(alice.id, "Quiet", "d", "b")
    with pytest.raises(ValidationError):
        await services.comments.add(article.id, alice.id, "   ")


@pytest.mark.asyncio
async def test_only_comment_author_may_delete(services):
    alice, bob = await _users(services, "alice", "bob")
    article = await services.articles.publish(alice.id, "Thread", "d", "b")
    comment = await services.comments.add(article.id, bob.id, "hello")

    with pytest.raises(UnauthorizedError):
        await services.comments.delete(comment.id, alice.id)
    assert len(await services.comments.list(article.id)) == 1

    await services.comments.delete(comment.id, bob.id)
    assert await services.comments.list(article.id) == []
    with pytest.raises(NotFoundError):
        await services.comments.delete(comment.id, bob.id)


@pytest.mark.asyncio
async def test_comment_delete_scoped_to_article(services):
    [alice] = await _users(services, "alice")
    first = await services.articles.publish(alice.id, "First", "d", "b")
    other = await services.articles.publish(alice.id, "Other", "d", "b")
    comment = await services.comments.add(first.id, alice.id, "on first")

    with pytest.raises(NotFoundError):
        await services.comments.delete(comment.id, alice.id, article_id=other.id)


@pytest.mark.asyncio
async def test_comment_on_missing_article(services):
    [alice] = await _users(services, "alice")
    with pytest.raises(NotFoundError):
        await services.comments.add(404, alice.id, "hello?")


# ---------------------------------------------------------------------------
# End-to-end scenario
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_alice_and_bob(services, store):
    alice, bob = await _users(services, "alice", "bob")

    post = await services.articles.publish(alice.id, "My First Post", "intro", "hello world")
    assert post.slug == "my-first-post"

    assert await services.articles.favorite(post.id, bob.id, True) == 1
    comment = await services.comments.add(post.id, bob.id, "Welcome!")
    view = await services.comments.describe(comment, alice.id)
    assert view.author.username == "bob"

    await services.articles.delete(post.id, alice.id)
    assert store.comments == {}
    assert store.favorites == set()
    with pytest.raises(NotFoundError):
        await services.articles.get("my-first-post")
