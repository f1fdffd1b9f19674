from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base
from .utils.clock import utcnow


POST_STATUSES = ("draft", "scheduled", "published", "archived")
PROFILE_ROLES = ("reader", "author", "editor", "admin")


# ============================================================================
# PROFILES
# ============================================================================


class Profile(Base):
    """Public profile of an external auth identity (id is the identity's UUID)."""

    __tablename__ = "profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True)
    username = Column(String(30), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=True)
    bio = Column(Text, nullable=True)
    avatar_url = Column(String(500), nullable=True)
    website = Column(String(500), nullable=True)
    role = Column(String(16), nullable=False, default="reader", index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    # Relationships
    posts = relationship("Post", back_populates="author", passive_deletes=True)
    comments = relationship("Comment", back_populates="author")
    media = relationship("Media", back_populates="uploader")

    __table_args__ = (
        CheckConstraint(
            "role IN ('reader', 'author', 'editor', 'admin')", name="ck_profiles_role"
        ),
    )


# ============================================================================
# TAXONOMY
# ============================================================================


class Category(Base):
    """Single-valued post classification with a display color."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(60), unique=True, nullable=False)
    slug = Column(String(80), unique=True, nullable=False, index=True)
    color = Column(String(7), nullable=False, default="#6b7280")
    description = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    posts = relationship("Post", back_populates="category")


class Tag(Base):
    """Free-form label; many:many with posts through post_tags."""

    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False)
    slug = Column(String(60), unique=True, nullable=False, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    posts = relationship("Post", secondary="post_tags", back_populates="tags")


class PostTag(Base):
    """Junction between posts and tags."""

    __tablename__ = "post_tags"

    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id = Column(
        Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True, index=True
    )


# ============================================================================
# POSTS
# ============================================================================


class Post(Base):
    """Markdown blog post with a draft/scheduled/published/archived lifecycle."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    public_sqid = Column(
        String(16), unique=True, nullable=True, index=True
    )  # Sqids-encoded short link id (set after insert)
    slug = Column(String(220), unique=True, nullable=False, index=True)
    author_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Content
    title = Column(String(200), nullable=False)
    excerpt = Column(String(500), nullable=True)
    content = Column(Text, nullable=False, default="")  # Markdown
    cover_image_url = Column(String(500), nullable=True)
    meta_title = Column(String(200), nullable=True)
    meta_description = Column(String(300), nullable=True)
    reading_time_minutes = Column(Integer, nullable=False, default=1)

    # Workflow
    status = Column(String(16), nullable=False, default="draft", index=True)
    published_at = Column(
        DateTime(timezone=True), nullable=True, index=True
    )  # Go-live time for scheduled posts

    # Denormalized counters (kept in sync by services.counters)
    view_count = Column(Integer, nullable=False, default=0)
    like_count = Column(Integer, nullable=False, default=0)
    comment_count = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    # Relationships
    author = relationship("Profile", back_populates="posts")
    category = relationship("Category", back_populates="posts")
    tags = relationship(
        "Tag", secondary="post_tags", back_populates="posts", order_by="Tag.name"
    )
    comments = relationship(
        "Comment", back_populates="post", cascade="all, delete-orphan", passive_deletes=True
    )
    likes = relationship(
        "PostLike", back_populates="post", cascade="all, delete-orphan", passive_deletes=True
    )
    views = relationship(
        "PostView", back_populates="post", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'scheduled', 'published', 'archived')",
            name="ck_posts_status",
        ),
        Index("ix_posts_status_published", status, published_at.desc()),
        Index("ix_posts_author_created", author_id, created_at.desc()),
    )


# ============================================================================
# ENGAGEMENT
# ============================================================================


class Comment(Base):
    """Comment on a post; replies reference their parent."""

    __tablename__ = "comments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    author_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    author_name = Column(String(60), nullable=True)  # For guests
    author_ip = Column(String(45), nullable=True, index=True)  # For guests

    depth = Column(Integer, nullable=False, default=0)  # 0 = top-level
    content = Column(Text, nullable=False)
    is_approved = Column(Boolean, nullable=False, default=False, index=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    # Relationships
    post = relationship("Post", back_populates="comments")
    author = relationship("Profile", back_populates="comments")
    parent = relationship(
        "Comment", remote_side=[id], back_populates="replies"
    )
    replies = relationship(
        "Comment", back_populates="parent", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (Index("ix_comments_post_created", post_id, created_at),)


class PostLike(Base):
    """One like per (post, profile)."""

    __tablename__ = "post_likes"

    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    post = relationship("Post", back_populates="likes")


class PostView(Base):
    """Append-only view log for a post."""

    __tablename__ = "post_views"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    viewer_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Viewer identification (for unique viewer counts)
    viewer_ip_hash = Column(String(64), nullable=False)  # SHA256 of IP address
    user_agent_hash = Column(String(64), nullable=True)

    device_type = Column(String(20), nullable=False, default="desktop")
    referrer_domain = Column(String(255), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )

    post = relationship("Post", back_populates="views")

    __table_args__ = (Index("ix_post_views_post_created", post_id, created_at),)


# ============================================================================
# MEDIA & AUDIT
# ============================================================================


class Media(Base):
    """Uploaded image stored in the media vault."""

    __tablename__ = "media"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    uploader_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_path = Column(String(500), unique=True, nullable=False)  # Relative to MEDIA_LOCATION
    url = Column(String(500), nullable=False)
    mime_type = Column(String(50), nullable=False)
    size_bytes = Column(Integer, nullable=False)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    alt_text = Column(String(300), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )

    uploader = relationship("Profile", back_populates="media")


class AuditLog(Base):
    """Moderation and publishing actions taken by editors and admins."""

    __tablename__ = "audit_log"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action = Column(String(50), nullable=False, index=True)
    target_type = Column(String(20), nullable=True)
    target_id = Column(String(64), nullable=True, index=True)
    note = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
