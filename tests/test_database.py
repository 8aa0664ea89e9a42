import uuid
from datetime import datetime, timedelta, timezone

import pytest

from gatorfeed.database import Database, DatabaseError, NotFoundError, UniqueViolationError


@pytest.fixture
def db():
    with Database(":memory:") as database:
        yield database


@pytest.fixture
def alice(db):
    return db.create_user("alice")


@pytest.fixture
def feed(db, alice):
    return db.create_feed("News", "https://example.com/rss", alice.id)


def test_create_and_get_user(db):
    created = db.create_user("alice")
    assert db.get_user("alice") == created
    assert db.get_user_by_id(created.id) == created
    assert created.created_at.tzinfo is not None
    assert created.created_at.utcoffset() == timedelta(0)


def test_get_missing_user_raises(db):
    with pytest.raises(NotFoundError):
        db.get_user("nobody")
    with pytest.raises(NotFoundError):
        db.get_user_by_id(uuid.uuid4())


def test_duplicate_user_raises(db, alice):
    with pytest.raises(UniqueViolationError) as info:
        db.create_user("alice")
    assert "duplicate key value violates unique constraint" in str(info.value)
    assert isinstance(info.value, DatabaseError)


def test_get_users_in_creation_order(db):
    names = ["a", "b", "c"]
    for name in names:
        db.create_user(name)
    assert [user.name for user in db.get_users()] == names


def test_reset_users_cascades(db, alice, feed):
    db.create_feed_follow(alice.id, feed.id)
    db.reset_users()
    assert db.get_users() == []
    assert db.get_feeds() == []
    assert db.get_feed_follows_for_user(alice.id) == []


def test_create_and_get_feed(db, alice, feed):
    assert feed.user_id == alice.id
    assert feed.last_fetched_at is None
    assert db.get_feed_by_url("https://example.com/rss") == feed
    assert db.get_feeds() == [feed]


def test_duplicate_feed_url_raises(db, alice, feed):
    with pytest.raises(UniqueViolationError):
        db.create_feed("Other", "https://example.com/rss", alice.id)


def test_feed_for_unknown_user_raises(db):
    with pytest.raises(DatabaseError):
        db.create_feed("x", "https://example.com/x", uuid.uuid4())


def test_get_feed_by_missing_url_raises(db):
    with pytest.raises(NotFoundError):
        db.get_feed_by_url("https://example.com/none")


def test_next_feed_with_no_feeds_raises(db):
    with pytest.raises(NotFoundError):
        db.get_next_feed_to_fetch()


def test_next_feed_prefers_unfetched_then_oldest(db, alice):
    first = db.create_feed("one", "https://example.com/1", alice.id)
    second = db.create_feed("two", "https://example.com/2", alice.id)
    db.mark_feed_fetched(first.id)
    assert db.get_next_feed_to_fetch().id == second.id
    db.mark_feed_fetched(second.id)
    assert db.get_next_feed_to_fetch().id == first.id


def test_mark_feed_fetched_sets_timestamps(db, feed):
    marked = db.mark_feed_fetched(feed.id)
    assert marked.last_fetched_at is not None
    assert marked.last_fetched_at >= feed.created_at
    assert marked.updated_at == marked.last_fetched_at
    assert marked.created_at == feed.created_at


def test_mark_missing_feed_raises(db):
    with pytest.raises(NotFoundError):
        db.mark_feed_fetched(uuid.uuid4())


def test_create_feed_follow_row(db, alice, feed):
    row = db.create_feed_follow(alice.id, feed.id)
    assert (row.user_name, row.feed_name) == ("alice", "News")
    assert (row.user_id, row.feed_id) == (alice.id, feed.id)
    assert db.get_feed_follows_for_user(alice.id) == [row]


def test_duplicate_follow_raises(db, alice, feed):
    db.create_feed_follow(alice.id, feed.id)
    with pytest.raises(UniqueViolationError):
        db.create_feed_follow(alice.id, feed.id)


def test_follow_unknown_feed_raises(db, alice):
    with pytest.raises(DatabaseError):
        db.create_feed_follow(alice.id, uuid.uuid4())


def test_delete_feed_follow(db, alice, feed):
    bob = db.create_user("bob")
    db.create_feed_follow(alice.id, feed.id)
    db.create_feed_follow(bob.id, feed.id)
    db.delete_feed_follow(feed.id, alice.id)
    assert db.get_feed_follows_for_user(alice.id) == []
    assert [r.user_name for r in db.get_feed_follows_for_user(bob.id)] == ["bob"]


def test_create_post_round_trip(db, feed):
    when = datetime(2024, 1, 2, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    post = db.create_post("Title", "https://example.com/p1", "desc", when, feed.id)
    assert post.title == "Title"
    assert post.description == "desc"
    assert post.published_at == when
    assert post.feed_id == feed.id


def test_create_post_without_optional_fields(db, feed):
    post = db.create_post("T", "https://example.com/p", None, None, feed.id)
    assert post.description is None
    assert post.published_at is None


def test_duplicate_post_url_raises(db, feed):
    db.create_post("A", "https://example.com/p", "", None, feed.id)
    with pytest.raises(UniqueViolationError) as info:
        db.create_post("B", "https://example.com/p", "", None, feed.id)
    assert "duplicate key value violates unique constraint" in str(info.value)


def test_posts_for_user_order_limit_and_scope(db, alice, feed):
    other = db.create_feed("Other", "https://example.com/other", alice.id)
    db.create_feed_follow(alice.id, feed.id)
    base = datetime(2024, 3, 1, tzinfo=timezone.utc)
    db.create_post("old", "https://example.com/old", "", base, feed.id)
    db.create_post("new", "https://example.com/new", "", base + timedelta(days=1), feed.id)
    db.create_post("undated", "https://example.com/undated", "", None, feed.id)
    db.create_post("unfollowed", "https://example.com/u", "", base, other.id)

    posts = db.get_posts_for_user(alice.id, 10)
    assert [p.title for p in posts] == ["undated", "new", "old"]
    assert {p.feed_name for p in posts} == {"News"}
    assert [p.title for p in db.get_posts_for_user(alice.id, 2)] == ["undated", "new"]


def test_posts_negative_limit_raises(db, alice):
    with pytest.raises(DatabaseError):
        db.get_posts_for_user(alice.id, -1)


def test_closed_database_raises(tmp_path):
    path = tmp_path / "feeds.db"
    with Database(path) as database:
        database.create_user("alice")
    with pytest.raises(DatabaseError):
        database.get_users()
    with Database(path) as reopened:
        assert [u.name for u in reopened.get_users()] == ["alice"]