"""
Database models for the WagerLoop social feed
SQLAlchemy ORM (SQLite by default, PostgreSQL in production)
"""

from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    JSON,
    Text,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from datetime import datetime, timezone
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./wagerloop.db")

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, echo=False, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class Profile(Base):
    """Public profile for an authenticated user id"""

    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)  # auth provider user id
    username = Column(String(50), unique=True, nullable=False, index=True)
    display_name = Column(String(100))
    avatar_url = Column(String)
    bio = Column(Text)

    posts = relationship("Post", back_populates="author")

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Post(Base):
    """Feed post; pick posts carry their legs in picks_data"""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    content = Column(Text, nullable=False, default="")
    post_type = Column(String(10), nullable=False, default="text")  # text | pick
    picks_data = Column(JSON)  # list of Pick.to_dict()

    author = relationship("Profile", back_populates="posts")
    likes = relationship("Like", back_populates="post")
    reposts = relationship("Repost", back_populates="post")
    comments = relationship("Comment", back_populates="post")

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Comment(Base):
    """Comment on a post; parent_id set for replies"""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("comments.id"), index=True)
    content = Column(Text, nullable=False)

    post = relationship("Post", back_populates="comments")
    author = relationship("Profile")

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)


class Like(Base):
    __tablename__ = "likes"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)

    post = relationship("Post", back_populates="likes")

    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (UniqueConstraint('post_id', 'user_id', name='_like_post_user_uc'),)


class Repost(Base):
    __tablename__ = "reposts"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)

    post = relationship("Post", back_populates="reposts")

    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (UniqueConstraint('post_id', 'user_id', name='_repost_post_user_uc'),)


class Follow(Base):
    __tablename__ = "follows"

    id = Column(Integer, primary_key=True, index=True)
    follower_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    following_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (UniqueConstraint('follower_id', 'following_id', name='_follow_pair_uc'),)


class Notification(Base):
    """Activity notice for user_id; read_at stays NULL until read"""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # comment | like | follow | general
    title = Column(String(120), nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSON)
    read_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)


class DataFetch(Base):
    """Track provider fetches for monitoring ESPN / Odds API health"""

    __tablename__ = "data_fetches"

    id = Column(Integer, primary_key=True, index=True)
    fetch_time = Column(DateTime(timezone=True), default=utcnow, index=True)
    data_source = Column(String, nullable=False, index=True)  # "espn", "odds_api"
    success = Column(Boolean, nullable=False)
    records_fetched = Column(Integer)
    error_message = Column(Text)
    response_time_ms = Column(Integer)

    created_at = Column(DateTime(timezone=True), default=utcnow)


def init_db(bind=None):
    """Initialize database tables"""
    Base.metadata.create_all(bind=bind or engine)
