"""initial schema

Revision ID: 5b2c1e7a9d40
Revises:
Create Date: 2026-10-17 09:12:41.522310

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5b2c1e7a9d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

VISIBILITY = sa.Enum(
    "PUBLIC", "UNLISTED", "FOLLOWERS", "DIRECT", "NONE",
    name="postvisibility",
    native_enum=False,
    length=16,
)
POST_TYPE = sa.Enum("NOTE", "ARTICLE", name="posttype", native_enum=False, length=16)


def upgrade() -> None:
    """Create accounts, actors, note sources, posts and timelines."""
    op.create_table(
        "account",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("old_username", sa.Text(), nullable=True),
        sa.Column("username_changed", sa.DateTime(timezone=True), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("bio", sa.Text(), nullable=False),
        sa.Column("locales", sa.JSON(), nullable=True),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )
    op.create_index("ix_account_old_username", "account", ["old_username"])

    op.create_table(
        "instance",
        sa.Column("host", sa.Text(), nullable=False),
        sa.Column("software", sa.Text(), nullable=True),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("host"),
    )

    op.create_table(
        "actor",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("iri", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("instance_host", sa.Text(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("bio_html", sa.Text(), nullable=True),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("inbox_url", sa.Text(), nullable=False),
        sa.Column("shared_inbox_url", sa.Text(), nullable=True),
        sa.Column("followers_url", sa.Text(), nullable=True),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["instance_host"], ["instance.host"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("iri"),
        sa.UniqueConstraint("account_id"),
        sa.UniqueConstraint("username", "instance_host"),
    )

    op.create_table(
        "following",
        sa.Column("iri", sa.Text(), nullable=False),
        sa.Column("follower_id", sa.Uuid(), nullable=False),
        sa.Column("followee_id", sa.Uuid(), nullable=False),
        sa.Column("accepted", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["follower_id"], ["actor.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["followee_id"], ["actor.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("iri"),
        sa.UniqueConstraint("follower_id", "followee_id"),
    )
    op.create_index("ix_following_follower_id", "following", ["follower_id"])
    op.create_index("ix_following_followee_id", "following", ["followee_id"])

    op.create_table(
        "note_source",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("visibility", VISIBILITY, nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("language", sa.Text(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("published", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_note_source_account_id", "note_source", ["account_id"])

    op.create_table(
        "note_medium",
        sa.Column("source_id", sa.Uuid(), nullable=False),
        sa.Column("index", sa.Integer(), nullable=False),
        sa.Column("key", sa.Text(), nullable=False),
        sa.Column("alt", sa.Text(), nullable=False),
        sa.Column("width", sa.Integer(), nullable=False),
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["source_id"], ["note_source.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("source_id", "index"),
        sa.UniqueConstraint("key"),
    )

    op.create_table(
        "post",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("iri", sa.Text(), nullable=False),
        sa.Column("type", POST_TYPE, nullable=False),
        sa.Column("visibility", VISIBILITY, nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("note_source_id", sa.Uuid(), nullable=True),
        sa.Column("shared_post_id", sa.Uuid(), nullable=True),
        sa.Column("reply_target_id", sa.Uuid(), nullable=True),
        sa.Column("quoted_post_id", sa.Uuid(), nullable=True),
        sa.Column("language", sa.Text(), nullable=True),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("content_html", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("sensitive", sa.Boolean(), nullable=False),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("replies_count", sa.Integer(), nullable=False),
        sa.Column("shares_count", sa.Integer(), nullable=False),
        sa.Column("published", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["actor_id"], ["actor.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["note_source_id"], ["note_source.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["shared_post_id"], ["post.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["reply_target_id"], ["post.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["quoted_post_id"], ["post.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("iri"),
        sa.UniqueConstraint("note_source_id"),
    )
    op.create_index("ix_post_actor_id", "post", ["actor_id"])
    op.create_index("ix_post_shared_post_id", "post", ["shared_post_id"])
    op.create_index("ix_post_reply_target_id", "post", ["reply_target_id"])
    op.create_index("ix_post_published", "post", ["published"])

    op.create_table(
        "post_medium",
        sa.Column("post_id", sa.Uuid(), nullable=False),
        sa.Column("index", sa.Integer(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("alt", sa.Text(), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("post_id", "index"),
    )

    op.create_table(
        "mention",
        sa.Column("post_id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["actor_id"], ["actor.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("post_id", "actor_id"),
    )

    op.create_table(
        "timeline_item",
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("post_id", sa.Uuid(), nullable=False),
        sa.Column("original_author_id", sa.Uuid(), nullable=True),
        sa.Column("last_sharer_id", sa.Uuid(), nullable=True),
        sa.Column("sharers_count", sa.Integer(), nullable=False),
        sa.Column("added", sa.DateTime(timezone=True), nullable=False),
        sa.Column("appended", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["original_author_id"], ["actor.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["last_sharer_id"], ["actor.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("account_id", "post_id"),
    )
    op.create_index("ix_timeline_item_added", "timeline_item", ["added"])
    op.create_index("ix_timeline_item_appended", "timeline_item", ["appended"])


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    op.drop_index("ix_timeline_item_appended", table_name="timeline_item")
    op.drop_index("ix_timeline_item_added", table_name="timeline_item")
    op.drop_table("timeline_item")
    op.drop_table("mention")
    op.drop_table("post_medium")
    op.drop_index("ix_post_published", table_name="post")
    op.drop_index("ix_post_reply_target_id", table_name="post")
    op.drop_index("ix_post_shared_post_id", table_name="post")
    op.drop_index("ix_post_actor_id", table_name="post")
    op.drop_table("post")
    op.drop_table("note_medium")
    op.drop_index("ix_note_source_account_id", table_name="note_source")
    op.drop_table("note_source")
    op.drop_index("ix_following_followee_id", table_name="following")
    op.drop_index("ix_following_follower_id", table_name="following")
    op.drop_table("following")
    op.drop_table("actor")
    op.drop_table("instance")
    op.drop_index("ix_account_old_username", table_name="account")
    op.drop_table("account")
