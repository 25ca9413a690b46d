"""Feed post variant.

The feed mixes plain text posts and pick posts that share every base field.
:class:`FeedPost` carries a :class:`PostKind` discriminant instead of two
near-identical classes, so callers branch on ``post.kind`` rather than on
runtime type checks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from wagerloop.core.odds_math import combined_parlay_odds
from wagerloop.core.picks import Pick


class PostKind(str, Enum):
    TEXT = "text"
    PICK = "pick"


@dataclass
class FeedPost:
    id: str
    user_id: str
    username: str
    content: str
    timestamp: datetime
    kind: PostKind = PostKind.TEXT
    likes: int = 0
    reposts: int = 0
    comment_count: int = 0
    is_liked: bool = False
    is_reposted: bool = False
    avatar_url: Optional[str] = None
    picks: list[Pick] = field(default_factory=list)

    @property
    def pick_count(self) -> int:
        return len(self.picks)

    @property
    def is_parlay(self) -> bool:
        return self.kind is PostKind.PICK and len(self.picks) > 1

    @property
    def total_stake(self) -> float:
        return sum(p.stake or 0.0 for p in self.picks)

    @property
    def parlay_odds(self) -> Optional[int]:
        """Combined American odds for a parlay post, ``None`` otherwise."""
        if not self.is_parlay:
            return None
        return combined_parlay_odds(self.picks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.username,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "likes": self.likes,
            "reposts": self.reposts,
            "comment_count": self.comment_count,
            "is_liked": self.is_liked,
            "is_reposted": self.is_reposted,
            "avatar_url": self.avatar_url,
            "picks": [p.to_dict() for p in self.picks],
        }
