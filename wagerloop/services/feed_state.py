"""
In-memory feed state for one screen.

Holds the posts currently shown, newest first, with offset pagination,
optimistic like/repost toggles and de-duplicated merging of realtime
batches.  The fetch and remote callables are injected so the same state
works against the HTTP API or directly against
:mod:`wagerloop.services.social_feed`.
"""

import logging
from typing import Callable, Iterable, List, Optional

from wagerloop.core.posts import FeedPost
from wagerloop.services.optimistic import optimistic_update

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20

# fetch(limit, offset) -> posts
FetchPage = Callable[[int, int], List[FeedPost]]


class FeedState:
    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE):
        self.page_size = page_size
        self.posts: List[FeedPost] = []
        self.has_more = True
        self.loading = False
        self._offset = 0

    def __len__(self) -> int:
        return len(self.posts)

    def _ids(self) -> set:
        return {p.id for p in self.posts}

    def get(self, post_id: str) -> Optional[FeedPost]:
        for post in self.posts:
            if post.id == post_id:
                return post
        return None

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    def load_page(self, fetch: FetchPage, limit: Optional[int] = None) -> List[FeedPost]:
        """Fetch the next page and append posts not already shown."""
        if self.loading or not self.has_more:
            return []
        limit = limit or self.page_size
        self.loading = True
        try:
            page = fetch(limit, self._offset)
        finally:
            self.loading = False

        self._offset += len(page)
        if len(page) < limit:
            self.has_more = False

        known = self._ids()
        added = []
        for post in page:
            if post.id in known:
                continue
            known.add(post.id)
            added.append(post)
        self.posts.extend(added)
        return added

    def refresh(self, fetch: FetchPage) -> List[FeedPost]:
        self.posts = []
        self._offset = 0
        self.has_more = True
        return self.load_page(fetch)

    # ------------------------------------------------------------------
    # Optimistic toggles
    # ------------------------------------------------------------------

    def toggle_like(self, post_id: str, remote: Callable[[], object]):
        """Flip the like locally, confirm with ``remote``; roll back on failure."""
        return self._toggle(post_id, remote, "is_liked", "likes")

    def toggle_repost(self, post_id: str, remote: Callable[[], object]):
        return self._toggle(post_id, remote, "is_reposted", "reposts")

    def _toggle(self, post_id: str, remote: Callable[[], object], flag: str, counter: str):
        post = self.get(post_id)
        if post is None:
            raise KeyError(post_id)
        before = (getattr(post, flag), getattr(post, counter))

        def apply():
            now_on = not before[0]
            setattr(post, flag, now_on)
            setattr(post, counter, max(0, before[1] + (1 if now_on else -1)))

        def rollback():
            setattr(post, flag, before[0])
            setattr(post, counter, before[1])

        return optimistic_update(apply, remote, rollback)

    # ------------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------------

    def merge_realtime(self, batch: Iterable[FeedPost]) -> List[FeedPost]:
        """
        Splice newly arrived posts at the head of the feed.

        Posts already shown, and repeats within the batch, are dropped.
        Returns the posts actually inserted, newest first.
        """
        known = self._ids()
        fresh = []
        for post in batch:
            if post.id in known:
                continue
            known.add(post.id)
            fresh.append(post)
        if not fresh:
            return []

        fresh.sort(key=lambda p: p.timestamp, reverse=True)
        self.posts[:0] = fresh
        self._offset += len(fresh)
        logger.debug("Merged %d realtime posts", len(fresh))
        return fresh

    def remove(self, post_id: str) -> Optional[FeedPost]:
        for i, post in enumerate(self.posts):
            if post.id == post_id:
                self._offset = max(0, self._offset - 1)
                return self.posts.pop(i)
        return None
