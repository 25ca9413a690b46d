"""
Tests for in-memory feed state and optimistic updates.
"""

from datetime import datetime, timedelta, timezone

import pytest

from wagerloop.core.posts import FeedPost
from wagerloop.services.feed_state import FeedState
from wagerloop.services.optimistic import optimistic_update

T0 = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def _post(post_id, minutes=0, likes=0, liked=False):
    return FeedPost(
        id=str(post_id),
        user_id="u1",
        username="sharp",
        content=f"post {post_id}",
        timestamp=T0 + timedelta(minutes=minutes),
        likes=likes,
        is_liked=liked,
    )


class FakeFeed:
    """Server-side feed: posts newest first, paged by offset."""

    def __init__(self, count):
        self.posts = [_post(i, minutes=-i) for i in range(count)]
        self.calls = []

    def __call__(self, limit, offset):
        self.calls.append((limit, offset))
        return self.posts[offset:offset + limit]


# ---------------------------------------------------------------------------
# optimistic_update
# ---------------------------------------------------------------------------

def test_optimistic_success_keeps_change():
    state = {"n": 0}

    def apply():
        state["n"] += 1

    def rollback():
        state["n"] -= 1

    assert optimistic_update(apply, lambda: "ok", rollback) == "ok"
    assert state["n"] == 1


def test_optimistic_failure_rolls_back_and_reraises():
    state = {"n": 0}

    def apply():
        state["n"] += 1

    def rollback():
        state["n"] -= 1

    def remote():
        raise ConnectionError("offline")

    with pytest.raises(ConnectionError):
        optimistic_update(apply, remote, rollback)
    assert state["n"] == 0


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

class TestPagination:
    def test_pages_by_offset(self):
        feed = FakeFeed(25)
        state = FeedState(page_size=10)

        state.load_page(feed)
        state.load_page(feed)
        state.load_page(feed)

        assert feed.calls == [(10, 0), (10, 10), (10, 20)]
        assert len(state) == 25
        assert state.has_more is False

    def test_no_fetch_after_last_page(self):
        feed = FakeFeed(3)
        state = FeedState(page_size=10)
        state.load_page(feed)
        assert state.load_page(feed) == []
        assert len(feed.calls) == 1

    def test_duplicate_ids_skipped(self):
        state = FeedState(page_size=2)
        state.load_page(lambda limit, offset: [_post(1), _post(2)])
        added = state.load_page(lambda limit, offset: [_post(2), _post(3)])
        assert [p.id for p in added] == ["3"]
        assert [p.id for p in state.posts] == ["1", "2", "3"]

    def test_refresh_resets(self):
        feed = FakeFeed(5)
        state = FeedState(page_size=2)
        state.load_page(feed)
        state.load_page(feed)
        state.refresh(feed)
        assert [p.id for p in state.posts] == ["0", "1"]
        assert feed.calls[-1] == (2, 0)
        assert state.has_more is True

    def test_failed_fetch_clears_loading(self):
        state = FeedState()

        def boom(limit, offset):
            raise ConnectionError("offline")

        with pytest.raises(ConnectionError):
            state.load_page(boom)
        assert state.loading is False


# ---------------------------------------------------------------------------
# Toggles
# ---------------------------------------------------------------------------

class TestToggles:
    def test_like_applies_immediately(self):
        state = FeedState()
        state.posts = [_post(1, likes=4)]
        seen = {}

        def remote():
            post = state.get("1")
            seen["during"] = (post.is_liked, post.likes)

        state.toggle_like("1", remote)

        assert seen["during"] == (True, 5)
        assert (state.get("1").is_liked, state.get("1").likes) == (True, 5)

    def test_unlike(self):
        state = FeedState()
        state.posts = [_post(1, likes=5, liked=True)]
        state.toggle_like("1", lambda: None)
        assert (state.get("1").is_liked, state.get("1").likes) == (False, 4)

    def test_like_rolls_back_on_failure(self):
        state = FeedState()
        state.posts = [_post(1, likes=4)]

        def remote():
            raise ConnectionError("offline")

        with pytest.raises(ConnectionError):
            state.toggle_like("1", remote)
        assert (state.get("1").is_liked, state.get("1").likes) == (False, 4)

    def test_repost_rolls_back_on_failure(self):
        state = FeedState()
        state.posts = [_post(1)]

        def remote():
            raise RuntimeError("500")

        with pytest.raises(RuntimeError):
            state.toggle_repost("1", remote)
        post = state.get("1")
        assert (post.is_reposted, post.reposts) == (False, 0)

    def test_unknown_post(self):
        with pytest.raises(KeyError):
            FeedState().toggle_like("missing", lambda: None)


# ---------------------------------------------------------------------------
# Realtime merge
# ---------------------------------------------------------------------------

class TestRealtimeMerge:
    def test_new_posts_spliced_at_head_newest_first(self):
        state = FeedState()
        state.posts = [_post("a", minutes=0)]

        inserted = state.merge_realtime([_post("b", minutes=5), _post("c", minutes=10)])

        assert [p.id for p in inserted] == ["c", "b"]
        assert [p.id for p in state.posts] == ["c", "b", "a"]

    def test_known_and_repeated_ids_dropped(self):
        state = FeedState()
        state.posts = [_post("a")]

        inserted = state.merge_realtime([_post("a"), _post("b", 1), _post("b", 1)])

        assert [p.id for p in inserted] == ["b"]
        assert [p.id for p in state.posts] == ["b", "a"]

    def test_empty_batch(self):
        state = FeedState()
        assert state.merge_realtime([]) == []

    def test_remove(self):
        state = FeedState()
        state.posts = [_post("a"), _post("b")]
        assert state.remove("a").id == "a"
        assert state.remove("zzz") is None
        assert [p.id for p in state.posts] == ["b"]
