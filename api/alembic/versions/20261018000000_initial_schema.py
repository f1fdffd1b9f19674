"""initial schema - profiles, taxonomy, posts, engagement, media, audit

Revision ID: 20261018000000
Revises:
Create Date: 2026-10-18 00:00:00.000000

On PostgreSQL this also installs:
- a weighted full-text GIN index used by /search
- row-level security policies that expose only published, due posts
  (and approved comments on them) to roles that do not own the tables.
  The API connects as the owner and applies the same rules itself.
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20261018000000"
down_revision = None
branch_labels = None
depends_on = None

SEARCH_VECTOR = (
    "setweight(to_tsvector('english', coalesce(title, '')), 'A') || "
    "setweight(to_tsvector('english', coalesce(excerpt, '')), 'B') || "
    "setweight(to_tsvector('english', coalesce(content, '')), 'C')"
)

# Session setting carrying the caller's profile id for RLS policies:
#   SET LOCAL inkwell.profile_id = '<uuid>'
PROFILE_SETTING = "nullif(current_setting('inkwell.profile_id', true), '')::uuid"

RLS_POLICIES = [
    ("posts", "posts_public_read", "FOR SELECT USING (status = 'published' AND published_at <= now())"),
    ("posts", "posts_author_all", f"FOR ALL USING (author_id = {PROFILE_SETTING})"),
    (
        "comments",
        "comments_public_read",
        "FOR SELECT USING (is_approved AND EXISTS (SELECT 1 FROM posts p WHERE p.id = post_id "
        "AND p.status = 'published' AND p.published_at <= now()))",
    ),
    ("comments", "comments_author_all", f"FOR ALL USING (author_id = {PROFILE_SETTING})"),
    ("post_likes", "post_likes_public_read", "FOR SELECT USING (true)"),
    ("post_likes", "post_likes_owner_write", f"FOR ALL USING (user_id = {PROFILE_SETTING})"),
    ("post_views", "post_views_insert", "FOR INSERT WITH CHECK (true)"),
    ("media", "media_public_read", "FOR SELECT USING (true)"),
    ("media", "media_uploader_write", f"FOR ALL USING (uploader_id = {PROFILE_SETTING})"),
]


def _timestamps(with_updated: bool = False) -> list[sa.Column]:
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        )
    ]
    if with_updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return columns


def upgrade() -> None:
    # ========================================================================
    # PROFILES
    # ========================================================================

    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("username", sa.String(30), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("role", sa.String(16), nullable=False, server_default="reader"),
        *_timestamps(with_updated=True),
        sa.CheckConstraint(
            "role IN ('reader', 'author', 'editor', 'admin')", name="ck_profiles_role"
        ),
    )
    op.create_index("ix_profiles_username", "profiles", ["username"], unique=True)
    op.create_index("ix_profiles_role", "profiles", ["role"])
    op.create_index("ix_profiles_created_at", "profiles", ["created_at"])

    # ========================================================================
    # TAXONOMY
    # ========================================================================

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(60), nullable=False, unique=True),
        sa.Column("slug", sa.String(80), nullable=False),
        sa.Column("color", sa.String(7), nullable=False, server_default="#6b7280"),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_categories_slug", "categories", ["slug"], unique=True)

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("slug", sa.String(60), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_tags_slug", "tags", ["slug"], unique=True)

    # ========================================================================
    # POSTS
    # ========================================================================

    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("public_sqid", sa.String(16), nullable=True),
        sa.Column("slug", sa.String(220), nullable=False),
        sa.Column(
            "author_id",
            sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("excerpt", sa.String(500), nullable=True),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("cover_image_url", sa.String(500), nullable=True),
        sa.Column("meta_title", sa.String(200), nullable=True),
        sa.Column("meta_description", sa.String(300), nullable=True),
        sa.Column("reading_time_minutes", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("like_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comment_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(with_updated=True),
        sa.CheckConstraint(
            "status IN ('draft', 'scheduled', 'published', 'archived')",
            name="ck_posts_status",
        ),
    )
    op.create_index("ix_posts_id", "posts", ["id"])
    op.create_index("ix_posts_public_sqid", "posts", ["public_sqid"], unique=True)
    op.create_index("ix_posts_slug", "posts", ["slug"], unique=True)
    op.create_index("ix_posts_author_id", "posts", ["author_id"])
    op.create_index("ix_posts_category_id", "posts", ["category_id"])
    op.create_index("ix_posts_status", "posts", ["status"])
    op.create_index("ix_posts_published_at", "posts", ["published_at"])
    op.create_index("ix_posts_created_at", "posts", ["created_at"])
    op.create_index(
        "ix_posts_status_published", "posts", ["status", sa.text("published_at DESC")]
    )
    op.create_index(
        "ix_posts_author_created", "posts", ["author_id", sa.text("created_at DESC")]
    )

    op.create_table(
        "post_tags",
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "tag_id",
            sa.Integer(),
            sa.ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_index("ix_post_tags_tag_id", "post_tags", ["tag_id"])

    # ========================================================================
    # ENGAGEMENT
    # ========================================================================

    op.create_table(
        "comments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "parent_id",
            sa.Uuid(),
            sa.ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "author_id",
            sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("author_name", sa.String(60), nullable=True),
        sa.Column("author_ip", sa.String(45), nullable=True),
        sa.Column("depth", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(with_updated=True),
    )
    op.create_index("ix_comments_id", "comments", ["id"])
    op.create_index("ix_comments_post_id", "comments", ["post_id"])
    op.create_index("ix_comments_parent_id", "comments", ["parent_id"])
    op.create_index("ix_comments_author_id", "comments", ["author_id"])
    op.create_index("ix_comments_author_ip", "comments", ["author_ip"])
    op.create_index("ix_comments_is_approved", "comments", ["is_approved"])
    op.create_index("ix_comments_created_at", "comments", ["created_at"])
    op.create_index("ix_comments_post_created", "comments", ["post_id", "created_at"])

    op.create_table(
        "post_likes",
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_post_likes_user_id", "post_likes", ["user_id"])

    op.create_table(
        "post_views",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "viewer_id",
            sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("viewer_ip_hash", sa.String(64), nullable=False),
        sa.Column("user_agent_hash", sa.String(64), nullable=True),
        sa.Column("device_type", sa.String(20), nullable=False, server_default="desktop"),
        sa.Column("referrer_domain", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_post_views_post_id", "post_views", ["post_id"])
    op.create_index("ix_post_views_viewer_id", "post_views", ["viewer_id"])
    op.create_index("ix_post_views_created_at", "post_views", ["created_at"])
    op.create_index("ix_post_views_post_created", "post_views", ["post_id", "created_at"])

    # ========================================================================
    # MEDIA & AUDIT
    # ========================================================================

    op.create_table(
        "media",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "uploader_id",
            sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("file_path", sa.String(500), nullable=False, unique=True),
        sa.Column("url", sa.String(500), nullable=False),
        sa.Column("mime_type", sa.String(50), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("alt_text", sa.String(300), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_media_uploader_id", "media", ["uploader_id"])
    op.create_index("ix_media_created_at", "media", ["created_at"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "actor_id",
            sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("target_type", sa.String(20), nullable=True),
        sa.Column("target_id", sa.String(64), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"])
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_target_id", "audit_log", ["target_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])

    # ========================================================================
    # POSTGRESQL ONLY: FULL-TEXT INDEX & ROW LEVEL SECURITY
    # ========================================================================

    if op.get_bind().dialect.name != "postgresql":
        return

    op.execute(f"CREATE INDEX ix_posts_search ON posts USING GIN (({SEARCH_VECTOR}))")

    for table in sorted({table for table, _, _ in RLS_POLICIES}):
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
    for table, name, body in RLS_POLICIES:
        op.execute(f"CREATE POLICY {name} ON {table} {body}")


def downgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        for table, name, _ in reversed(RLS_POLICIES):
            op.execute(f"DROP POLICY IF EXISTS {name} ON {table}")
        op.execute("DROP INDEX IF EXISTS ix_posts_search")

    for table in (
        "audit_log",
        "media",
        "post_views",
        "post_likes",
        "comments",
        "post_tags",
        "posts",
        "tags",
        "categories",
        "profiles",
    ):
        op.drop_table(table)
