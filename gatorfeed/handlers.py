"""The handlers behind each command."""

from __future__ import annotations

import http.client
import logging
import re
import time
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from typing import Callable

from .commands import Command, CommandError, State
from .database import DatabaseError, UniqueViolationError
from .models import Feed, User
from .rss import RSSFeed, fetch_feed

logger = logging.getLogger(__name__)

_UNIT_MICROS = {
    "ns": Fraction(1, 1000),
    "us": Fraction(1),
    "µs": Fraction(1),
    "μs": Fraction(1),
    "ms": Fraction(1000),
    "s": Fraction(10**6),
    "m": Fraction(60 * 10**6),
    "h": Fraction(3600 * 10**6),
}
_COMPONENT = re.compile(r"([0-9]*)(\.([0-9]*))?([^0-9.]*)")
_MAX_NANOS = 2**63 - 1

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_RFC1123Z = re.compile(
    r"(?:%s), (\d{2}) (%s) (\d{4}) (\d{1,2}):(\d{2}):(\d{2})(?:[.,](\d+))? ([+-])(\d{2})(\d{2})"
    % ("|".join(_WEEKDAYS), "|".join(_MONTHS)),
    re.IGNORECASE,
)
_INTEGER = re.compile(r"[+-]?[0-9]+")

DEFAULT_BROWSE_LIMIT = 2
_SEPARATOR = "====================================="


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1m30s"`` or ``"500ms"``."""
    invalid = ValueError(f'time: invalid duration "{text}"')
    rest, negative = text, False
    if rest[:1] in ("-", "+"):
        negative, rest = rest[0] == "-", rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise invalid

    total = Fraction(0)
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        whole, _, fraction, unit = match.groups()
        if not whole and not fraction:
            raise invalid
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        if unit not in _UNIT_MICROS:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        value = Fraction(int(whole or "0"))
        if fraction:
            value += Fraction(int(fraction), 10 ** len(fraction))
        total += value * _UNIT_MICROS[unit]
        pos = match.end()

    if total * 1000 > _MAX_NANOS + (1 if negative else 0):
        raise invalid
    micros = int(total)
    return timedelta(microseconds=-micros if negative else micros)


def _decimal(value: int, scale: int) -> str:
    whole, fraction = divmod(value, scale)
    if not fraction:
        return str(whole)
    digits = str(fraction).rjust(len(str(scale)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}"


def _format_duration(delta: timedelta) -> str:
    micros = delta // timedelta(microseconds=1)
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if micros == 0:
        return "0s"
    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_decimal(micros, 1000)}ms"
    minutes, rest = divmod(micros, 60_000_000)
    hours, minutes = divmod(minutes, 60)
    text = f"{_decimal(rest, 1_000_000)}s"
    if hours:
        text = f"{hours}h{minutes}m{text}"
    elif minutes:
        text = f"{minutes}m{text}"
    return sign + text


def parse_pub_date(text: str) -> datetime | None:
    """Parse an RFC 1123 date with a numeric zone; ``None`` if it does not parse."""
    match = _RFC1123Z.fullmatch(text)
    if match is None:
        return None
    day, month, year, hour, minute, second, fraction, sign, off_h, off_m = match.groups()
    micro = int(fraction[:6].ljust(6, "0")) if fraction else 0
    offset = timedelta(hours=int(off_h), minutes=int(off_m))
    if sign == "-":
        offset = -offset
    month_number = [m.lower() for m in _MONTHS].index(month.lower()) + 1
    try:
        return datetime(
            int(year), month_number, int(day), int(hour), int(minute), int(second), micro,
            tzinfo=timezone(offset),
        )
    except ValueError:
        return None


def _go_date(moment: datetime | None) -> str:
    """Format like ``Mon Jan 2``; a missing date shows as the zero date."""
    if moment is None:
        return "Mon Jan 1"
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return f"{_WEEKDAYS[moment.weekday()]} {_MONTHS[moment.month - 1]} {moment.day}"


def _go_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.strftime("%Y-%m-%d %H:%M:%S")
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    zone = moment.strftime("%z")
    name = "UTC" if moment.utcoffset() == timedelta(0) else zone
    return f"{text} {zone} {name}"


def scrape_feeds(state: State, fetch: Callable[[str], RSSFeed] = fetch_feed) -> None:
    """Fetch the feed due next and store its posts, skipping ones already stored."""
    try:
        feed = state.db.get_next_feed_to_fetch()
    except DatabaseError as exc:
        logger.warning("cannot get next feed: %s", exc)
        return
    try:
        feed = state.db.mark_feed_fetched(feed.id)
    except DatabaseError as exc:
        logger.warning("cannot mark feed as fetched: %s", exc)
        return
    try:
        data = fetch(feed.url)
    except (OSError, ValueError, http.client.HTTPException) as exc:
        logger.warning("cannot fetch feed: %s", exc)
        return

    for item in data.items:
        try:
            state.db.create_post(
                title=item.title,
                url=item.link,
                description=item.description,
                published_at=parse_pub_date(item.pub_date),
                feed_id=feed.id,
            )
        except UniqueViolationError:
            continue
        except DatabaseError as exc:
            logger.warning("couldn't create post: %s", exc)


def handler_agg(state: State, cmd: Command) -> None:
    """Scrape feeds forever, one every given interval."""
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <time_between_reqs>")
    try:
        interval = parse_duration(cmd.args[0])
    except ValueError as exc:
        raise CommandError(f"invalid duration: {exc}") from exc
    if interval <= timedelta(0):
        raise CommandError("invalid duration: interval must be positive")

    logger.info("Collecting feeds every %s...", _format_duration(interval))
    seconds = interval.total_seconds()
    next_tick = time.monotonic()
    while True:
        scrape_feeds(state)
        next_tick += seconds
        now = time.monotonic()
        if next_tick < now:
            next_tick = now
        time.sleep(next_tick - now)


def _parse_limit(text: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise CommandError(f"invalid limit: {text!r} is not an integer")
    value = int(text)
    if not -(2**63) <= value < 2**63:
        raise CommandError(f"invalid limit: {text!r} is out of range")
    return value


def handler_browse(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) > 1:
        raise CommandError(f"usage: {cmd.name} [limit]")
    limit = _parse_limit(cmd.args[0]) if cmd.args else DEFAULT_BROWSE_LIMIT
    try:
        posts = state.db.get_posts_for_user(user.id, limit)
    except DatabaseError as exc:
        raise CommandError(f"couldn't get posts for user: {exc}") from exc

    for post in posts:
        print(f"{_go_date(post.published_at)} from {post.feed_name}")
        print(f"--- {post.title} ---")
        print(f"    {post.description or ''}")
        print(f"Link: {post.url}")
        print(_SEPARATOR)


def _print_feed(feed: Feed) -> None:
    print(f"* ID:          {feed.id}")
    print(f"* Created:     {_go_time(feed.created_at)}")
    print(f"* Updated:     {_go_time(feed.updated_at)}")
    print(f"* Name:        {feed.name}")
    print(f"* URL:         {feed.url}")
    print(f"* UserID:      {feed.user_id}")


def _print_feed_follow(username: str, feed_name: str) -> None:
    print(f"Username:     {username}")
    print(f"Feed Name:    {feed_name}")


def handler_add_feed(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 2:
        raise CommandError(f"usage: {cmd.name} <name> <url>")
    name, url = cmd.args
    feed = state.db.create_feed(name, url, user.id)
    try:
        follow = state.db.create_feed_follow(user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError("couldn't create feed follow") from exc
    _print_feed(feed)
    _print_feed_follow(follow.user_name, follow.feed_name)


def handler_list_feeds(state: State, cmd: Command) -> None:
    feeds = state.db.get_feeds()
    if not feeds:
        raise CommandError("no feeds found")
    for feed in feeds:
        print(f"Feed Name:     {feed.name}")
        print(f"Feed URL:      {feed.url}")
        try:
            owner = state.db.get_user_by_id(feed.user_id)
        except DatabaseError as exc:
            raise CommandError(f"no user with given ID: {exc}") from exc
        print(f"User:          {owner.name}")


def handler_follow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <url>")
    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"cannot retrieve feed: {exc}") from exc
    try:
        follow = state.db.create_feed_follow(user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't create feed follow row: {exc}") from exc
    _print_feed_follow(follow.user_name, follow.feed_name)


def handler_unfollow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <url>")
    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"cannot retrieve feed: {exc}") from exc
    try:
        state.db.delete_feed_follow(feed.id, user.id)
    except DatabaseError as exc:
        raise CommandError(f"cannot delete feed follow: {exc}") from exc


def handler_following(state: State, cmd: Command, user: User) -> None:
    try:
        follows = state.db.get_feed_follows_for_user(user.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't get feed follow for user: {exc}") from exc
    print("Followed feeds for current user:")
    for follow in follows:
        print(follow.feed_name)


def handler_reset(state: State, cmd: Command) -> None:
    try:
        state.db.reset_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't delete users: {exc}") from exc
    print("Database reset successfully")


def handler_login(state: State, cmd: Command) -> None:
    if not cmd.args:
        raise CommandError("the login handler expects a single argument")
    name = cmd.args[0]
    try:
        state.db.get_user(name)
    except DatabaseError as exc:
        raise CommandError(f"couldn't find user: {exc}") from exc
    state.config.set_user(name)
    print("User has been set.")


def handler_register(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    try:
        user = state.db.create_user(cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"couldn't create user: {exc}") from exc
    try:
        state.config.set_user(user.name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print("User created successfully!")
    print(f" * ID:      {user.id}")
    print(f" * Name:    {user.name}")


def handler_list_users(state: State, cmd: Command) -> None:
    try:
        users = state.db.get_users()
    except DatabaseError as exc:
        raise CommandError("unable to get users") from exc
    for user in users:
        if user.name == state.config.current_user:
            print(f"* {user.name} (current)")
        else:
            print(f"* {user.name}")