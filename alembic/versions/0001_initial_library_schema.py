"""initial library schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 12:00:00.000000

Hey future me - this creates the whole library index in one go:

- directories: scanned folders, parent -> directories.id (NULL = root), mtime checkpoint
- urls: scanned files, directory -> directories.id, mtime checkpoint
- artists / albums: shared by name (UNIQUE), albums.image -> images.id
- tracks: one row per playable track, url -> urls.id
- images: cover art files, url -> urls.id, album -> albums.id
- lyrics: one row per track id, NO foreign key (survives url clearing)

albums.image and images.album point at each other. SQLite doesn't check that a
referenced table exists at CREATE time, so both FKs are created inline.
Deletes never cascade in the schema - the repositories cascade by hand.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the library tables and indexes."""
    op.create_table(
        "directories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("path", sa.String(), nullable=False),
        sa.Column("parent", sa.Integer(), sa.ForeignKey("directories.id"), nullable=True),
        sa.Column("mtime", sa.Integer(), nullable=True),
        sa.UniqueConstraint("path"),
    )
    op.create_index("ix_directories_parent", "directories", ["parent"])

    op.create_table(
        "urls",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("path", sa.String(), nullable=False),
        sa.Column("directory", sa.Integer(), sa.ForeignKey("directories.id"), nullable=True),
        sa.Column("mtime", sa.Integer(), nullable=True),
        sa.UniqueConstraint("path"),
    )
    op.create_index("ix_urls_directory", "urls", ["directory"])

    op.create_table(
        "artists",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "albums",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column(
            "image",
            sa.Integer(),
            sa.ForeignKey("images.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "images",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("url", sa.Integer(), sa.ForeignKey("urls.id"), nullable=False),
        sa.Column(
            "album",
            sa.Integer(),
            sa.ForeignKey("albums.id", ondelete="SET NULL", name="fk_images_album"),
            nullable=True,
        ),
    )
    op.create_index("ix_images_url", "images", ["url"])
    op.create_index("ix_images_album", "images", ["album"])

    op.create_table(
        "tracks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("url", sa.Integer(), sa.ForeignKey("urls.id"), nullable=False),
        sa.Column("track", sa.Integer(), nullable=True),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("artist", sa.Integer(), sa.ForeignKey("artists.id"), nullable=True),
        sa.Column("album", sa.Integer(), sa.ForeignKey("albums.id"), nullable=True),
        sa.Column("start", sa.Integer(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
    )
    op.create_index("ix_tracks_url", "tracks", ["url"])
    op.create_index("ix_tracks_artist", "tracks", ["artist"])
    op.create_index("ix_tracks_album", "tracks", ["album"])

    op.create_table(
        "lyrics",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("track", sa.Integer(), nullable=False),
        sa.Column("lyrics", sa.Text(), nullable=True),
        sa.Column("mtime", sa.Integer(), nullable=True),
        sa.UniqueConstraint("track"),
    )


def downgrade() -> None:
    """Drop the library tables."""
    op.drop_table("lyrics")
    op.drop_index("ix_tracks_album", table_name="tracks")
    op.drop_index("ix_tracks_artist", table_name="tracks")
    op.drop_index("ix_tracks_url", table_name="tracks")
    op.drop_table("tracks")
    op.drop_index("ix_images_album", table_name="images")
    op.drop_index("ix_images_url", table_name="images")
    op.drop_table("images")
    op.drop_table("albums")
    op.drop_table("artists")
    op.drop_index("ix_urls_directory", table_name="urls")
    op.drop_table("urls")
    op.drop_index("ix_directories_parent", table_name="directories")
    op.drop_table("directories")
