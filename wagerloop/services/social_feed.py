"""
Social feed data layer: posts, pick posts, comments, likes, reposts,
follows and the notifications they generate.

Liking, commenting on or following someone else's content writes a
notification for its owner in the same transaction as the activity.

Every operation takes the SQLAlchemy ``Session`` to use as its first
argument; nothing here opens its own session or reads a global client.
Operations acting on behalf of a user take that user's id and raise
:class:`NotAuthenticated` when it is missing.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from wagerloop.core.picks import Pick
from wagerloop.core.posts import FeedPost, PostKind
from wagerloop.models import Comment, Follow, Like, Notification, Post, Profile, Repost

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
NOTIFICATION_PAGE_SIZE = 50
ANONYMOUS = "Anonymous"
POST_EXCERPT_LENGTH = 100


class SocialFeedError(Exception):
    """Base class for feed errors surfaced to API callers."""


class NotAuthenticated(SocialFeedError):
    pass


class NotFound(SocialFeedError):
    pass


class PermissionDenied(SocialFeedError):
    pass


class InvalidPost(SocialFeedError, ValueError):
    pass


@dataclass
class FeedComment:
    id: str
    post_id: str
    user_id: str
    username: str
    content: str
    timestamp: datetime
    avatar_url: Optional[str] = None
    parent_id: Optional[str] = None
    replies: List["FeedComment"] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "post_id": self.post_id,
            "user_id": self.user_id,
            "username": self.username,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "avatar_url": self.avatar_url,
            "parent_id": self.parent_id,
        }


@dataclass
class ToggleResult:
    active: bool
    count: int


@dataclass
class FeedNotification:
    id: str
    type: str
    title: str
    body: str
    timestamp: datetime
    data: Dict = field(default_factory=dict)
    read_at: Optional[datetime] = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "is_read": self.is_read,
        }


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise NotAuthenticated("User not authenticated")
    return user_id


def _aware(dt: datetime) -> datetime:
    # SQLite drops tzinfo on round trip
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _get_post(db: Session, post_id) -> Post:
    post = db.get(Post, int(post_id))
    if post is None:
        raise NotFound(f"Post {post_id} not found")
    return post


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def get_or_create_profile(db: Session, user_id: str, username: Optional[str] = None) -> Profile:
    _require_user(user_id)
    profile = db.get(Profile, user_id)
    if profile is None:
        profile = Profile(id=user_id, username=(username or user_id)[:50])
        db.add(profile)
        db.flush()
        logger.info("Created profile for user %s", user_id)
    return profile


def search_users(db: Session, query: str, limit: int = DEFAULT_PAGE_SIZE) -> List[Profile]:
    query = (query or "").strip()
    if not query:
        return []
    return (
        db.query(Profile)
        .filter(Profile.username.ilike(f"%{query}%"))
        .order_by(Profile.username)
        .limit(limit)
        .all()
    )


# ---------------------------------------------------------------------------
# Reading the feed
# ---------------------------------------------------------------------------

def _count_by_post(db: Session, model, post_ids: Sequence[int]) -> Dict[int, int]:
    if not post_ids:
        return {}
    rows = (
        db.query(model.post_id, func.count(model.id))
        .filter(model.post_id.in_(post_ids))
        .group_by(model.post_id)
        .all()
    )
    return {post_id: count for post_id, count in rows}


def _viewer_flags(db: Session, model, post_ids: Sequence[int], viewer_id: Optional[str]) -> set:
    if not viewer_id or not post_ids:
        return set()
    rows = (
        db.query(model.post_id)
        .filter(model.post_id.in_(post_ids), model.user_id == viewer_id)
        .all()
    )
    return {row[0] for row in rows}


def _decode_picks(post: Post) -> List[Pick]:
    picks = []
    for raw in post.picks_data or []:
        try:
            picks.append(Pick.from_dict(raw))
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Corrupt picks_data on post %s: %s", post.id, e)
            return []
    return picks


def _to_feed_posts(db: Session, posts: List[Post], viewer_id: Optional[str]) -> List[FeedPost]:
    ids = [p.id for p in posts]
    like_counts = _count_by_post(db, Like, ids)
    repost_counts = _count_by_post(db, Repost, ids)
    comment_counts = _count_by_post(db, Comment, ids)
    liked = _viewer_flags(db, Like, ids, viewer_id)
    reposted = _viewer_flags(db, Repost, ids, viewer_id)

    result = []
    for post in posts:
        author = post.author
        kind = PostKind.PICK if post.post_type == PostKind.PICK.value else PostKind.TEXT
        result.append(FeedPost(
            id=str(post.id),
            user_id=post.user_id,
            username=(author.username if author else None) or ANONYMOUS,
            content=post.content or "",
            timestamp=_aware(post.created_at),
            kind=kind,
            likes=like_counts.get(post.id, 0),
            reposts=repost_counts.get(post.id, 0),
            comment_count=comment_counts.get(post.id, 0),
            is_liked=post.id in liked,
            is_reposted=post.id in reposted,
            avatar_url=author.avatar_url if author else None,
            picks=_decode_picks(post) if kind is PostKind.PICK else [],
        ))
    return result


def fetch_posts(
    db: Session,
    viewer_id: Optional[str] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> List[FeedPost]:
    """Newest posts first with counts and the viewer's like/repost flags."""
    posts = (
        db.query(Post)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return _to_feed_posts(db, posts, viewer_id)


def fetch_user_posts(
    db: Session,
    user_id: str,
    viewer_id: Optional[str] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> List[FeedPost]:
    posts = (
        db.query(Post)
        .filter(Post.user_id == user_id)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return _to_feed_posts(db, posts, viewer_id)


def get_post(db: Session, post_id, viewer_id: Optional[str] = None) -> FeedPost:
    return _to_feed_posts(db, [_get_post(db, post_id)], viewer_id)[0]


# ---------------------------------------------------------------------------
# Writing posts
# ---------------------------------------------------------------------------

def create_post(db: Session, user_id: Optional[str], content: str) -> FeedPost:
    user_id = _require_user(user_id)
    content = (content or "").strip()
    if not content:
        raise InvalidPost("Post content cannot be empty")

    get_or_create_profile(db, user_id)
    post = Post(user_id=user_id, content=content, post_type=PostKind.TEXT.value)
    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info("User %s created post %s", user_id, post.id)
    return _to_feed_posts(db, [post], user_id)[0]


def default_pick_content(picks: Sequence[Pick]) -> str:
    return "My pick: " + "; ".join(p.display_text for p in picks)


def create_pick_post(
    db: Session,
    user_id: Optional[str],
    content: Optional[str],
    picks: Sequence[Pick],
) -> FeedPost:
    """Publish one or more picks; two or more legs form a parlay."""
    user_id = _require_user(user_id)
    if not picks:
        raise InvalidPost("A pick post needs at least one pick")

    content = (content or "").strip() or default_pick_content(picks)
    get_or_create_profile(db, user_id)
    post = Post(
        user_id=user_id,
        content=content,
        post_type=PostKind.PICK.value,
        picks_data=[p.to_dict() for p in picks],
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info("User %s created pick post %s with %d picks", user_id, post.id, len(picks))
    return _to_feed_posts(db, [post], user_id)[0]


def delete_post(db: Session, user_id: Optional[str], post_id) -> None:
    """Owner-only delete; dependents are removed before the post."""
    user_id = _require_user(user_id)
    post = _get_post(db, post_id)
    if post.user_id != user_id:
        raise PermissionDenied("You can only delete your own posts")

    db.query(Like).filter(Like.post_id == post.id).delete(synchronize_session=False)
    db.query(Comment).filter(Comment.post_id == post.id).delete(synchronize_session=False)
    db.query(Repost).filter(Repost.post_id == post.id).delete(synchronize_session=False)
    db.delete(post)
    db.commit()
    logger.info("User %s deleted post %s", user_id, post_id)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

def _to_feed_comment(comment: Comment) -> FeedComment:
    author = comment.author
    return FeedComment(
        id=str(comment.id),
        post_id=str(comment.post_id),
        user_id=comment.user_id,
        username=(author.username if author else None) or ANONYMOUS,
        content=comment.content,
        timestamp=_aware(comment.created_at),
        avatar_url=author.avatar_url if author else None,
        parent_id=str(comment.parent_id) if comment.parent_id is not None else None,
    )


def add_comment(
    db: Session,
    user_id: Optional[str],
    post_id,
    content: str,
    parent_id=None,
) -> FeedComment:
    user_id = _require_user(user_id)
    post = _get_post(db, post_id)
    content = (content or "").strip()
    if not content:
        raise InvalidPost("Comment cannot be empty")

    if parent_id is not None:
        parent = db.get(Comment, int(parent_id))
        if parent is None or parent.post_id != post.id:
            raise NotFound(f"Comment {parent_id} not found on post {post_id}")
        if parent.parent_id is not None:
            raise InvalidPost("Replies can only be made to top-level comments")

    profile = get_or_create_profile(db, user_id)
    comment = Comment(
        post_id=post.id,
        user_id=user_id,
        content=content,
        parent_id=int(parent_id) if parent_id is not None else None,
    )
    db.add(comment)
    db.flush()
    if post.user_id != user_id:
        _notify(
            db,
            post.user_id,
            "comment",
            "New Comment",
            f"{profile.username} commented on your post",
            {
                "post_id": str(post.id),
                "comment_id": str(comment.id),
                "commenter_id": user_id,
                "commenter_username": profile.username,
                "comment_content": content,
                "post_content": (post.content or "")[:POST_EXCERPT_LENGTH],
            },
        )
    db.commit()
    db.refresh(comment)
    return _to_feed_comment(comment)


def fetch_comments(db: Session, post_id) -> List[FeedComment]:
    """Comments oldest first."""
    post = _get_post(db, post_id)
    comments = (
        db.query(Comment)
        .filter(Comment.post_id == post.id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )
    return [_to_feed_comment(c) for c in comments]


def comment_threads(comments: List[FeedComment]) -> List[FeedComment]:
    """Nest replies under their parents; top-level comments keep their order."""
    by_id = {c.id: c for c in comments}
    roots = []
    for comment in comments:
        parent = by_id.get(comment.parent_id) if comment.parent_id else None
        if parent is None:
            roots.append(comment)
        else:
            parent.replies.append(comment)
    return roots


# ---------------------------------------------------------------------------
# Likes / reposts
# ---------------------------------------------------------------------------

def _toggle(db: Session, model, user_id: Optional[str], post_id) -> ToggleResult:
    user_id = _require_user(user_id)
    post = _get_post(db, post_id)
    existing = (
        db.query(model)
        .filter(model.post_id == post.id, model.user_id == user_id)
        .first()
    )
    if existing is not None:
        db.delete(existing)
        active = False
    else:
        profile = get_or_create_profile(db, user_id)
        db.add(model(post_id=post.id, user_id=user_id))
        active = True
        # Reposts do not notify
        if model is Like and post.user_id != user_id:
            _notify(
                db,
                post.user_id,
                "like",
                "New Like",
                f"{profile.username} liked your post",
                {
                    "post_id": str(post.id),
                    "liker_id": user_id,
                    "liker_username": profile.username,
                    "post_content": (post.content or "")[:POST_EXCERPT_LENGTH],
                },
            )
    db.commit()

    count = db.query(func.count(model.id)).filter(model.post_id == post.id).scalar()
    return ToggleResult(active=active, count=count or 0)


def toggle_like(db: Session, user_id: Optional[str], post_id) -> ToggleResult:
    return _toggle(db, Like, user_id, post_id)


def toggle_repost(db: Session, user_id: Optional[str], post_id) -> ToggleResult:
    return _toggle(db, Repost, user_id, post_id)


# ---------------------------------------------------------------------------
# Follows
# ---------------------------------------------------------------------------

def is_following(db: Session, follower_id: str, following_id: str) -> bool:
    return (
        db.query(Follow)
        .filter(Follow.follower_id == follower_id, Follow.following_id == following_id)
        .first()
        is not None
    )


def follow(db: Session, user_id: Optional[str], target_id: str) -> bool:
    """Follow ``target_id``; returns False if already following."""
    user_id = _require_user(user_id)
    if user_id == target_id:
        raise InvalidPost("You cannot follow yourself")
    if db.get(Profile, target_id) is None:
        raise NotFound(f"User {target_id} not found")
    if is_following(db, user_id, target_id):
        return False
    profile = get_or_create_profile(db, user_id)
    db.add(Follow(follower_id=user_id, following_id=target_id))
    _notify(
        db,
        target_id,
        "follow",
        "New Follower",
        f"{profile.username} started following you",
        {"follower_id": user_id, "follower_username": profile.username},
    )
    db.commit()
    return True


def unfollow(db: Session, user_id: Optional[str], target_id: str) -> bool:
    user_id = _require_user(user_id)
    deleted = (
        db.query(Follow)
        .filter(Follow.follower_id == user_id, Follow.following_id == target_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted > 0


def list_followers(db: Session, user_id: str) -> List[Profile]:
    return (
        db.query(Profile)
        .join(Follow, Follow.follower_id == Profile.id)
        .filter(Follow.following_id == user_id)
        .order_by(Profile.username)
        .all()
    )


def list_following(db: Session, user_id: str) -> List[Profile]:
    return (
        db.query(Profile)
        .join(Follow, Follow.following_id == Profile.id)
        .filter(Follow.follower_id == user_id)
        .order_by(Profile.username)
        .all()
    )


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

def _notify(db: Session, recipient_id: str, kind: str, title: str, body: str, data: Dict) -> None:
    # Added to the caller's transaction; committed with the activity itself
    db.add(Notification(user_id=recipient_id, type=kind, title=title, body=body, data=data))


def _to_feed_notification(row: Notification) -> FeedNotification:
    return FeedNotification(
        id=str(row.id),
        type=row.type,
        title=row.title,
        body=row.body,
        timestamp=_aware(row.created_at),
        data=dict(row.data or {}),
        read_at=_aware(row.read_at) if row.read_at else None,
    )


def fetch_notifications(
    db: Session,
    user_id: Optional[str],
    limit: int = NOTIFICATION_PAGE_SIZE,
    offset: int = 0,
    unread_only: bool = False,
) -> List[FeedNotification]:
    """The user's notifications, newest first."""
    user_id = _require_user(user_id)
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read_at.is_(None))
    rows = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return [_to_feed_notification(r) for r in rows]


def unread_notification_count(db: Session, user_id: Optional[str]) -> int:
    user_id = _require_user(user_id)
    count = (
        db.query(func.count(Notification.id))
        .filter(Notification.user_id == user_id, Notification.read_at.is_(None))
        .scalar()
    )
    return count or 0


def mark_notifications_read(
    db: Session,
    user_id: Optional[str],
    notification_ids: Optional[Sequence] = None,
) -> int:
    """
    Mark the user's unread notifications as read.

    With ``notification_ids`` only those are marked; ids belonging to other
    users are ignored.  Returns the number of notifications changed.
    """
    user_id = _require_user(user_id)
    query = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read_at.is_(None),
    )
    if notification_ids:
        query = query.filter(Notification.id.in_([int(i) for i in notification_ids]))
    updated = query.update({Notification.read_at: datetime.now(timezone.utc)}, synchronize_session=False)
    db.commit()
    return updated


def delete_notification(db: Session, user_id: Optional[str], notification_id) -> None:
    user_id = _require_user(user_id)
    deleted = (
        db.query(Notification)
        .filter(Notification.id == int(notification_id), Notification.user_id == user_id)
        .delete(synchronize_session=False)
    )
    if not deleted:
        db.rollback()
        raise NotFound(f"Notification {notification_id} not found")
    db.commit()


def delete_all_notifications(db: Session, user_id: Optional[str]) -> int:
    user_id = _require_user(user_id)
    deleted = (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("Cleared %d notifications for user %s", deleted, user_id)
    return deleted
