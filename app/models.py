from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

STATE_DISABLED = 0
STATE_ENABLED = 1


# ---------------------------------------------------------------------------
# Audit columns shared by every table
# ---------------------------------------------------------------------------
class AuditMixin:
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )
    # Non-null marks the row as soft-deleted; rows are never physically removed.
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
class User(AuditMixin, Base):
    __tablename__ = "user"

    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships: lazy="noload" enforces explicit eager loading in services
    articles: Mapped[List["Article"]] = relationship(
        "Article", back_populates="author", lazy="noload"
    )


# ---------------------------------------------------------------------------
# Tag
# ---------------------------------------------------------------------------
class Tag(AuditMixin, Base):
    __tablename__ = "tag"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    status: Mapped[int] = mapped_column(SmallInteger, default=STATE_DISABLED, nullable=False)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(100), nullable=False)

    article_links: Mapped[List["ArticleTag"]] = relationship(
        "ArticleTag", back_populates="tag", lazy="noload"
    )


# ---------------------------------------------------------------------------
# Article
# ---------------------------------------------------------------------------
class Article(AuditMixin, Base):
    __tablename__ = "article"

    __table_args__ = (
        # Author feed ordered by date
        Index("ix_article_user_id_created_at", "user_id", "created_at"),
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    desc: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    cover_image_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    state: Mapped[int] = mapped_column(SmallInteger, default=STATE_ENABLED, nullable=False)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    updated_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("user.id", ondelete="SET NULL"), nullable=True
    )

    # Relationships: all lazy="noload" to prevent N+1; use selectinload/joinedload in services
    author: Mapped[Optional["User"]] = relationship(
        "User", back_populates="articles", lazy="noload"
    )
    tag_links: Mapped[List["ArticleTag"]] = relationship(
        "ArticleTag", back_populates="article", lazy="noload"
    )

    @property
    def active_tags(self) -> list[Tag]:
        """Tags reachable through active links, skipping soft-deleted tags."""
        return [
            link.tag
            for link in self.tag_links
            if link.state == STATE_ENABLED and link.tag is not None and not link.tag.is_deleted
        ]


# ---------------------------------------------------------------------------
# ArticleTag: join entity for Article <-> Tag
# ---------------------------------------------------------------------------
class ArticleTag(AuditMixin, Base):
    __tablename__ = "article_tag"

    __table_args__ = (
        # One row per pair; detaching flips state instead of deleting the row.
        UniqueConstraint("article_id", "tag_id", name="uq_article_tag_article_id_tag_id"),
    )

    article_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("article.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tag_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tag.id", ondelete="CASCADE"), nullable=False, index=True
    )
    state: Mapped[int] = mapped_column(SmallInteger, default=STATE_ENABLED, nullable=False)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    # Numeric, unlike the string audit columns elsewhere; see DESIGN.md.
    updated_by: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    article: Mapped["Article"] = relationship(
        "Article", back_populates="tag_links", lazy="noload"
    )
    tag: Mapped["Tag"] = relationship("Tag", back_populates="article_links", lazy="noload")
