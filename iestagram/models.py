"""
SQLAlchemy models for the IEstagram relational store.

These models only exist to create the schema of the SQL backend; the query
layer itself reads and writes plain row dicts. Ids are opaque strings and
timestamps are ISO-8601 text, the same representation the in-memory
backend holds, so both backends return identical rows.
"""
from typing import Optional
from sqlalchemy import (
    CheckConstraint, ForeignKey, Index, String, Text
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class User(Base):
    """
    User account.

    Attributes:
        id: Primary key (opaque string, generated on insert)
        username: Unique handle
        email: Unique email address
        password_hash: bcrypt hash (or legacy plaintext)
        avatar_url: Public URL of the profile picture
        created_at: ISO-8601 creation time
        updated_at: ISO-8601 last update time
    """
    __tablename__ = 'users'

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    updated_at: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"


class Post(Base):
    """Text, photo or video post."""
    __tablename__ = 'posts'

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey('users.id', ondelete='CASCADE'), nullable=True
    )
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    video_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    created_at: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    updated_at: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    __table_args__ = (
        CheckConstraint("type IS NULL OR type IN ('photo', 'video', 'text')", name='ck_posts_type'),
        Index('idx_posts_user_id', 'user_id'),
        Index('idx_posts_created_at', 'created_at'),
    )

    def __repr__(self):
        return f"<Post(id={self.id}, title='{(self.title or '')[:50]}')>"


class Follow(Base):
    """Follower -> followed edge, keyed by the pair."""
    __tablename__ = 'follows'

    follower_id: Mapped[str] = mapped_column(
        String(64), ForeignKey('users.id', ondelete='CASCADE'), primary_key=True
    )
    following_id: Mapped[str] = mapped_column(
        String(64), ForeignKey('users.id', ondelete='CASCADE'), primary_key=True
    )
    created_at: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    __table_args__ = (
        CheckConstraint('follower_id != following_id', name='ck_follows_not_self'),
        Index('idx_follows_follower', 'follower_id'),
        Index('idx_follows_following', 'following_id'),
    )

    def __repr__(self):
        return f"<Follow({self.follower_id} -> {self.following_id})>"


class Like(Base):
    """A user's like of a post, keyed by the pair."""
    __tablename__ = 'likes'

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey('users.id', ondelete='CASCADE'), primary_key=True
    )
    post_id: Mapped[str] = mapped_column(
        String(64), ForeignKey('posts.id', ondelete='CASCADE'), primary_key=True
    )
    created_at: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    __table_args__ = (
        Index('idx_likes_post_id', 'post_id'),
        Index('idx_likes_user_id', 'user_id'),
    )

    def __repr__(self):
        return f"<Like(user={self.user_id}, post={self.post_id})>"


class Comment(Base):
    """Comment on a post."""
    __tablename__ = 'comments'

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    post_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey('posts.id', ondelete='CASCADE'), nullable=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey('users.id', ondelete='CASCADE'), nullable=True
    )
    text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    __table_args__ = (
        Index('idx_comments_post_id', 'post_id'),
        Index('idx_comments_user_id', 'user_id'),
    )

    def __repr__(self):
        return f"<Comment(id={self.id}, post={self.post_id})>"
