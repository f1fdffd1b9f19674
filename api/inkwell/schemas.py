from __future__ import annotations

from datetime import datetime
from typing import Generic, Literal, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from . import settings


# ============================================================================
# BASE SCHEMAS
# ============================================================================


T = TypeVar("T")

PostStatus = Literal["draft", "scheduled", "published", "archived"]
Role = Literal["reader", "author", "editor", "admin"]


class Page(BaseModel, Generic[T]):
    """Generic paginated response."""

    items: list[T]
    next_cursor: str | None = None


# ============================================================================
# HEALTH & CONFIG
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


class Config(BaseModel):
    """Public system configuration."""

    site_title: str = settings.SITE_TITLE
    max_comment_depth: int = settings.MAX_COMMENT_DEPTH
    max_comments_per_post: int = settings.MAX_COMMENTS_PER_POST
    max_tags_per_post: int = settings.MAX_TAGS_PER_POST
    media_max_bytes: int = settings.MEDIA_MAX_BYTES
    comments_require_approval: bool = settings.COMMENTS_REQUIRE_APPROVAL


# ============================================================================
# PROFILE SCHEMAS
# ============================================================================


class AuthorSummary(BaseModel):
    """Compact author block embedded in posts."""

    id: UUID
    username: str
    display_name: str | None = None
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ProfilePublic(AuthorSummary):
    """Public profile."""

    bio: str | None = None
    website: str | None = None
    role: Role
    created_at: datetime


class ProfileDetail(ProfilePublic):
    """Public profile with publishing totals."""

    post_count: int = 0


class ProfileUpsert(BaseModel):
    """Create-or-update the caller's profile. ``username`` is required on creation."""

    username: str | None = Field(None, min_length=3, max_length=30)
    display_name: str | None = Field(None, max_length=100)
    bio: str | None = Field(None, max_length=2000)
    avatar_url: str | None = Field(None, max_length=500)
    website: str | None = Field(None, max_length=500)


class RoleUpdate(BaseModel):
    role: Role


# ============================================================================
# TAXONOMY SCHEMAS
# ============================================================================


class Category(BaseModel):
    id: int
    name: str
    slug: str
    color: str
    description: str | None = None

    model_config = ConfigDict(from_attributes=True)


class CategoryWithCount(Category):
    post_count: int = 0


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=60)
    slug: str | None = Field(None, max_length=80)
    color: str = Field("#6b7280", pattern=r"^#[0-9a-fA-F]{6}$")
    description: str | None = Field(None, max_length=1000)


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=60)
    slug: str | None = Field(None, max_length=80)
    color: str | None = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    description: str | None = Field(None, max_length=1000)


class Tag(BaseModel):
    id: int
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class TagWithCount(Tag):
    post_count: int = 0


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


# ============================================================================
# POST SCHEMAS
# ============================================================================


class PostSummary(BaseModel):
    """Post as it appears in listings (no body)."""

    id: int
    public_sqid: str | None = None
    slug: str
    title: str
    excerpt: str | None = None
    cover_image_url: str | None = None
    status: PostStatus
    published_at: datetime | None = None
    reading_time_minutes: int
    view_count: int
    like_count: int
    comment_count: int
    author: AuthorSummary
    category: Category | None = None
    tags: list[Tag] = []
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PostDetail(PostSummary):
    """Full post."""

    content: str
    meta_title: str | None = None
    meta_description: str | None = None


class PostCreate(BaseModel):
    """Create a draft."""

    title: str = Field(..., min_length=1, max_length=200)
    slug: str | None = Field(None, max_length=200)
    content: str = Field("", max_length=settings.MAX_POST_LENGTH)
    excerpt: str | None = Field(None, max_length=500)
    cover_image_url: str | None = Field(None, max_length=500)
    category_id: int | None = None
    tags: list[str] = Field(default_factory=list, max_length=settings.MAX_TAGS_PER_POST)
    meta_title: str | None = Field(None, max_length=200)
    meta_description: str | None = Field(None, max_length=300)


class PostUpdate(BaseModel):
    """Partial update; ``tags`` replaces the whole tag set when given."""

    title: str | None = Field(None, min_length=1, max_length=200)
    slug: str | None = Field(None, max_length=200)
    content: str | None = Field(None, max_length=settings.MAX_POST_LENGTH)
    excerpt: str | None = Field(None, max_length=500)
    cover_image_url: str | None = Field(None, max_length=500)
    category_id: int | None = None
    tags: list[str] | None = Field(None, max_length=settings.MAX_TAGS_PER_POST)
    meta_title: str | None = Field(None, max_length=200)
    meta_description: str | None = Field(None, max_length=300)


class StatusChange(BaseModel):
    """Move a post through its lifecycle."""

    status: PostStatus
    published_at: datetime | None = None  # Required when scheduling


# ============================================================================
# COMMENT SCHEMAS
# ============================================================================


class Comment(BaseModel):
    """Comment on a post."""

    id: UUID
    post_id: int
    parent_id: UUID | None = None
    author_id: UUID | None = None  # None for guest comments
    depth: int
    content: str
    is_approved: bool
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

    _author_label: str | None = None

    @model_validator(mode="wrap")
    @classmethod
    def extract_author_label(cls, data, handler):
        """Resolve the display label from the ORM row during validation."""
        instance = handler(data)

        author = getattr(data, "author", None)
        if author is not None:
            instance._author_label = author.display_name or author.username
        elif getattr(data, "author_name", None):
            instance._author_label = data.author_name

        return instance

    @computed_field
    @property
    def author_label(self) -> str:
        """Display name for the comment author (guest name for anonymous comments)."""
        return self._author_label or "guest"


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=settings.MAX_COMMENT_LENGTH)
    parent_id: UUID | None = None
    author_name: str | None = Field(None, min_length=1, max_length=60)  # Guests only


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=settings.MAX_COMMENT_LENGTH)


# ============================================================================
# LIKE SCHEMAS
# ============================================================================


class LikeStatus(BaseModel):
    post_id: int
    like_count: int
    liked: bool


# ============================================================================
# MEDIA SCHEMAS
# ============================================================================


class Media(BaseModel):
    id: UUID
    uploader_id: UUID
    url: str
    file_path: str
    mime_type: str
    size_bytes: int
    width: int | None = None
    height: int | None = None
    alt_text: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# SEARCH SCHEMAS
# ============================================================================


class SearchHit(BaseModel):
    post: PostSummary
    rank: float


class SearchResults(BaseModel):
    query: str
    items: list[SearchHit]


# ============================================================================
# STATS SCHEMAS
# ============================================================================


class DailyViewCount(BaseModel):
    date: str
    views: int
    unique_viewers: int


class PostStatsResponse(BaseModel):
    post_id: int
    days: int
    total_views: int
    unique_viewers: int
    window_views: int
    views_by_device: dict[str, int]
    top_referrers: dict[str, int]
    daily_views: list[DailyViewCount]
    total_likes: int
    total_comments: int
    computed_at: datetime


class TopPost(BaseModel):
    post_id: int
    slug: str
    title: str
    views: int


class SiteOverview(BaseModel):
    days: int
    published_posts: int
    total_views: int
    window_views: int
    unique_viewers: int
    total_likes: int
    total_comments: int
    pending_comments: int
    top_posts: list[TopPost]
    daily_views: list[DailyViewCount]
    computed_at: datetime


class AuthorPostStats(BaseModel):
    post_id: int
    slug: str
    title: str
    status: PostStatus
    view_count: int
    like_count: int
    comment_count: int
    window_views: int


class AuthorDashboard(BaseModel):
    days: int
    posts: list[AuthorPostStats]
    total_views: int
    total_likes: int
    total_comments: int
