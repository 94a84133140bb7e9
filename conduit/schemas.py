"""
Request and response bodies for the HTTP API.

Every payload is wrapped in a single-key envelope (``{"user": ...}``,
``{"article": ...}``) and uses camelCase keys on the wire.  Services
never see these classes; routers translate to and from the records in
``conduit.domain``.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from conduit.domain import ArticleView, CommentView, Profile, UserRecord


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Users ---

class NewUser(CamelModel):
    username: str
    email: str
    password: str


class NewUserRequest(CamelModel):
    user: NewUser


class LoginUser(CamelModel):
    """Either ``email`` or ``username`` identifies the account."""

    email: str | None = None
    username: str | None = None
    password: str


class LoginRequest(CamelModel):
    user: LoginUser


class UpdateUser(CamelModel):
    username: str | None = None
    email: str | None = None
    password: str | None = None
    bio: str | None = None
    image: str | None = None


class UpdateUserRequest(CamelModel):
    user: UpdateUser


class UserOut(CamelModel):
    email: str
    token: str
    username: str
    bio: str
    image: str | None

    @classmethod
    def from_record(cls, user: UserRecord, token: str) -> "UserOut":
        return cls(
            email=user.email,
            token=token,
            username=user.username,
            bio=user.bio,
            image=user.image,
        )


class UserResponse(CamelModel):
    user: UserOut


# --- Profiles ---

class ProfileOut(CamelModel):
    username: str
    bio: str
    image: str | None
    following: bool

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileOut":
        return cls(**profile.model_dump())


class ProfileResponse(CamelModel):
    profile: ProfileOut


# --- Articles ---

class NewArticle(CamelModel):
    title: str
    description: str
    body: str
    tag_list: list[str] = []


class NewArticleRequest(CamelModel):
    article: NewArticle


class UpdateArticle(CamelModel):
    title: str | None = None
    description: str | None = None
    body: str | None = None
    tag_list: list[str] | None = None


class UpdateArticleRequest(CamelModel):
    article: UpdateArticle


class ArticleOut(CamelModel):
    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str]
    created_at: datetime
    updated_at: datetime
    favorited: bool
    favorites_count: int
    author: ProfileOut

    @classmethod
    def from_view(cls, view: ArticleView) -> "ArticleOut":
        article = view.article
        return cls(
            slug=article.slug,
            title=article.title,
            description=article.description,
            body=article.body,
            tag_list=article.tag_list,
            created_at=article.created_at,
            updated_at=article.updated_at,
            favorited=view.favorited,
            favorites_count=view.favorites_count,
            author=ProfileOut.from_profile(view.author),
        )


class ArticleResponse(CamelModel):
    article: ArticleOut


class MultipleArticlesResponse(CamelModel):
    articles: list[ArticleOut]
    articles_count: int


# --- Comments ---

class NewComment(CamelModel):
    body: str


class NewCommentRequest(CamelModel):
    comment: NewComment


class CommentOut(CamelModel):
    id: int
    created_at: datetime
    updated_at: datetime
    body: str
    author: ProfileOut

    @classmethod
    def from_view(cls, view: CommentView) -> "CommentOut":
        comment = view.comment
        return cls(
            id=comment.id,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
            body=comment.body,
            author=ProfileOut.from_profile(view.author),
        )


class CommentResponse(CamelModel):
    comment: CommentOut


class MultipleCommentsResponse(CamelModel):
    comments: list[CommentOut]


# --- Tags ---

class TagsResponse(CamelModel):
    tags: list[str]
