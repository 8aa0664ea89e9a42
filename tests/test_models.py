import dataclasses
import uuid
from datetime import datetime, timezone

import pytest

from gatorfeed.models import Feed, FeedFollow, FeedFollowRow, Post, PostWithFeed, User

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_user_equality_by_value():
    uid = uuid.uuid4()
    assert User(uid, NOW, NOW, "alice") == User(uid, NOW, NOW, "alice")
    assert User(uid, NOW, NOW, "alice") != User(uid, NOW, NOW, "bob")


def test_user_is_frozen():
    user = User(uuid.uuid4(), NOW, NOW, "alice")
    with pytest.raises(dataclasses.FrozenInstanceError):
        user.name = "bob"
    assert user.name == "alice"


def test_feed_last_fetched_defaults_to_none():
    feed = Feed(uuid.uuid4(), NOW, NOW, "news", "https://example.com/rss", uuid.uuid4())
    assert feed.last_fetched_at is None


def test_post_optional_fields_default_to_none():
    post = Post(uuid.uuid4(), NOW, NOW, "t", "https://example.com/p", uuid.uuid4())
    assert post.description is None
    assert post.published_at is None


def test_post_with_feed_keeps_feed_name():
    fid = uuid.uuid4()
    post = PostWithFeed(uuid.uuid4(), NOW, NOW, "t", "u", fid, "news", "d", NOW)
    assert post.feed_name == "news"
    assert post.feed_id == fid
    assert post.published_at == NOW


def test_feed_follow_row_replace():
    row = FeedFollowRow(uuid.uuid4(), NOW, NOW, uuid.uuid4(), uuid.uuid4(), "news", "alice")
    changed = dataclasses.replace(row, user_name="bob")
    assert changed.user_name == "bob"
    assert changed.feed_name == row.feed_name
    assert row.user_name == "alice"


def test_feed_follow_fields():
    uid, fid = uuid.uuid4(), uuid.uuid4()
    follow = FeedFollow(uuid.uuid4(), NOW, NOW, uid, fid)
    assert (follow.user_id, follow.feed_id) == (uid, fid)