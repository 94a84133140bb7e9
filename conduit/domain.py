"""
Storage-neutral records exchanged between services and repositories.

Repositories build these from whatever they store (ORM rows, dicts);
``from_attributes`` lets the SQLAlchemy implementation validate ORM
instances directly.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from conduit.config import settings


# --- Users ---

class UserRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    username: str
    email: str
    bio: str = ""
    image: str | None = None
    # Never serialised or printed; only the credential check reads it.
    password_hash: str = Field(exclude=True, repr=False)
    created_at: datetime
    updated_at: datetime | None = None


class NewUser(BaseModel):
    username: str
    email: str
    password_hash: str = Field(repr=False)


class UserPatch(BaseModel):
    username: str | None = None
    email: str | None = None
    password_hash: str | None = Field(None, repr=False)
    bio: str | None = None
    image: str | None = None


class Profile(BaseModel):
    username: str
    bio: str
    image: str | None
    following: bool


# --- Articles ---

class ArticleRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    author_id: int
    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str] = []
    created_at: datetime
    updated_at: datetime


class ArticleDraft(BaseModel):
    author_id: int
    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str] = []


class ArticlePatch(BaseModel):
    title: str | None = None
    description: str | None = None
    body: str | None = None
    tag_list: list[str] | None = None


class ArticleFilter(BaseModel):
    """Listing filters; every field that is set narrows the result (AND)."""

    tag: str | None = None
    author: str | None = None
    favorited_by: str | None = None
    followed_by: int | None = None


class Page(BaseModel):
    limit: int = Field(default_factory=lambda: settings.DEFAULT_PAGE_SIZE, ge=0)
    offset: int = Field(0, ge=0)


class ArticleView(BaseModel):
    article: ArticleRecord
    author: Profile
    favorited: bool
    favorites_count: int


# --- Comments ---

class CommentRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    article_id: int
    author_id: int
    body: str
    created_at: datetime
    updated_at: datetime


class CommentView(BaseModel):
    comment: CommentRecord
    author: Profile
