"""SQLite storage for users, feeds, feed follows and posts."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .models import Feed, FeedFollowRow, Post, PostWithFeed, User

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    description TEXT,
    published_at TEXT,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE
);
"""

_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"
_USER_COLUMNS = "id, created_at, updated_at, name"
_FOLLOW_JOIN = """
SELECT feed_follows.id, feed_follows.created_at, feed_follows.updated_at,
       feed_follows.user_id, feed_follows.feed_id,
       feeds.name AS feed_name, users.name AS user_name
FROM feed_follows
INNER JOIN feeds ON feed_follows.feed_id = feeds.id
INNER JOIN users ON feed_follows.user_id = users.id
"""


class DatabaseError(Exception):
    """A query failed."""


class NotFoundError(DatabaseError):
    """A query that must return one row returned none."""


class UniqueViolationError(DatabaseError):
    """An insert would duplicate a value that must be unique."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_db(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db(text: str | None) -> datetime | None:
    return None if text is None else datetime.fromisoformat(text)


def _user(row: sqlite3.Row) -> User:
    return User(
        id=uuid.UUID(row["id"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        name=row["name"],
    )


def _feed(row: sqlite3.Row) -> Feed:
    return Feed(
        id=uuid.UUID(row["id"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        name=row["name"],
        url=row["url"],
        user_id=uuid.UUID(row["user_id"]),
        last_fetched_at=_from_db(row["last_fetched_at"]),
    )


def _follow(row: sqlite3.Row) -> FeedFollowRow:
    return FeedFollowRow(
        id=uuid.UUID(row["id"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        user_id=uuid.UUID(row["user_id"]),
        feed_id=uuid.UUID(row["feed_id"]),
        feed_name=row["feed_name"],
        user_name=row["user_name"],
    )


def _post_fields(row: sqlite3.Row) -> dict:
    return {
        "id": uuid.UUID(row["id"]),
        "created_at": _from_db(row["created_at"]),
        "updated_at": _from_db(row["updated_at"]),
        "title": row["title"],
        "url": row["url"],
        "feed_id": uuid.UUID(row["feed_id"]),
        "description": row["description"],
        "published_at": _from_db(row["published_at"]),
    }


class Database:
    """Queries over a SQLite database file (or ``":memory:"``)."""

    def __init__(self, path: str | Path) -> None:
        try:
            self._conn = sqlite3.connect(str(path))
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc
        self._conn.row_factory = sqlite3.Row
        with self._errors():
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @contextmanager
    def _errors(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc):
                raise UniqueViolationError(
                    f"duplicate key value violates unique constraint: {exc}"
                ) from exc
            raise DatabaseError(str(exc)) from exc
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def _write(self, sql: str, params: tuple = ()) -> int:
        with self._errors():
            with self._conn:
                return self._conn.execute(sql, params).rowcount

    def _all(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._errors():
            return self._conn.execute(sql, params).fetchall()

    def _one(self, sql: str, params: tuple, what: str) -> sqlite3.Row:
        with self._errors():
            row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise NotFoundError(f"no {what} found")
        return row

    # users

    def create_user(self, name: str) -> User:
        user_id, now = str(uuid.uuid4()), _to_db(_now())
        self._write(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (user_id, now, now, name),
        )
        return self.get_user_by_id(uuid.UUID(user_id))

    def get_user(self, name: str) -> User:
        return _user(
            self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE name = ?", (name,), "user")
        )

    def get_user_by_id(self, user_id: uuid.UUID) -> User:
        return _user(
            self._one(
                f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (str(user_id),), "user"
            )
        )

    def get_users(self) -> list[User]:
        return [_user(row) for row in self._all(f"SELECT {_USER_COLUMNS} FROM users")]

    def reset_users(self) -> None:
        self._write("DELETE FROM users")

    # feeds

    def create_feed(self, name: str, url: str, user_id: uuid.UUID) -> Feed:
        feed_id, now = str(uuid.uuid4()), _to_db(_now())
        self._write(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (feed_id, now, now, name, url, str(user_id)),
        )
        return self._get_feed_by_id(feed_id)

    def _get_feed_by_id(self, feed_id: str) -> Feed:
        return _feed(
            self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (feed_id,), "feed")
        )

    def get_feed_by_url(self, url: str) -> Feed:
        return _feed(
            self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?", (url,), "feed")
        )

    def get_feeds(self) -> list[Feed]:
        return [_feed(row) for row in self._all(f"SELECT {_FEED_COLUMNS} FROM feeds")]

    def get_next_feed_to_fetch(self) -> Feed:
        """Return the feed fetched longest ago, never-fetched feeds first."""
        return _feed(
            self._one(
                f"SELECT {_FEED_COLUMNS} FROM feeds "
                "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC LIMIT 1",
                (),
                "feed",
            )
        )

    def mark_feed_fetched(self, feed_id: uuid.UUID) -> Feed:
        now = _to_db(_now())
        changed = self._write(
            "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (now, now, str(feed_id)),
        )
        if changed == 0:
            raise NotFoundError("no feed found")
        return self._get_feed_by_id(str(feed_id))

    # feed follows

    def create_feed_follow(self, user_id: uuid.UUID, feed_id: uuid.UUID) -> FeedFollowRow:
        follow_id, now = str(uuid.uuid4()), _to_db(_now())
        self._write(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (follow_id, now, now, str(user_id), str(feed_id)),
        )
        return _follow(
            self._one(f"{_FOLLOW_JOIN} WHERE feed_follows.id = ?", (follow_id,), "feed follow")
        )

    def delete_feed_follow(self, feed_id: uuid.UUID, user_id: uuid.UUID) -> None:
        self._write(
            "DELETE FROM feed_follows WHERE feed_id = ? AND user_id = ?",
            (str(feed_id), str(user_id)),
        )

    def get_feed_follows_for_user(self, user_id: uuid.UUID) -> list[FeedFollowRow]:
        rows = self._all(
            f"{_FOLLOW_JOIN} WHERE feed_follows.user_id = ? ORDER BY feed_follows.rowid",
            (str(user_id),),
        )
        return [_follow(row) for row in rows]

    # posts

    def create_post(
        self,
        title: str,
        url: str,
        description: str | None,
        published_at: datetime | None,
        feed_id: uuid.UUID,
    ) -> Post:
        post_id, now = str(uuid.uuid4()), _to_db(_now())
        self._write(
            "INSERT INTO posts (id, created_at, updated_at, title, url, description, "
            "published_at, feed_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (post_id, now, now, title, url, description, _to_db(published_at), str(feed_id)),
        )
        row = self._one(
            "SELECT id, created_at, updated_at, title, url, description, published_at, "
            "feed_id FROM posts WHERE id = ?",
            (post_id,),
            "post",
        )
        return Post(**_post_fields(row))

    def get_posts_for_user(self, user_id: uuid.UUID, limit: int) -> list[PostWithFeed]:
        """Return the newest posts from feeds the user follows, undated posts first."""
        if limit < 0:
            raise DatabaseError("LIMIT must not be negative")
        rows = self._all(
            "SELECT posts.id, posts.created_at, posts.updated_at, posts.title, posts.url, "
            "posts.description, posts.published_at, posts.feed_id, feeds.name AS feed_name "
            "FROM posts "
            "JOIN feed_follows ON feed_follows.feed_id = posts.feed_id "
            "JOIN feeds ON posts.feed_id = feeds.id "
            "WHERE feed_follows.user_id = ? "
            "ORDER BY posts.published_at IS NULL DESC, posts.published_at DESC "
            "LIMIT ?",
            (str(user_id), limit),
        )
        return [PostWithFeed(feed_name=row["feed_name"], **_post_fields(row)) for row in rows]