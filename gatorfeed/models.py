"""Records stored in and returned by the database."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class User:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str


@dataclass(frozen=True)
class Feed:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str
    url: str
    user_id: uuid.UUID
    last_fetched_at: datetime | None = None


@dataclass(frozen=True)
class FeedFollow:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    feed_id: uuid.UUID


@dataclass(frozen=True)
class FeedFollowRow:
    """A feed follow together with the names of its feed and user."""

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    feed_id: uuid.UUID
    feed_name: str
    user_name: str


@dataclass(frozen=True)
class Post:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    feed_id: uuid.UUID
    description: str | None = None
    published_at: datetime | None = None


@dataclass(frozen=True)
class PostWithFeed:
    """A post together with the name of the feed it came from."""

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    feed_id: uuid.UUID
    feed_name: str
    description: str | None = None
    published_at: datetime | None = None