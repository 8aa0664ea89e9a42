"""Command-line entry point."""

from __future__ import annotations

import logging
import sys

from .commands import Command, CommandError, CommandRegistry, State, logged_in
from .config import read
from .database import Database, DatabaseError
from .handlers import (
    handler_add_feed,
    handler_agg,
    handler_browse,
    handler_follow,
    handler_following,
    handler_list_feeds,
    handler_list_users,
    handler_login,
    handler_register,
    handler_reset,
    handler_unfollow,
)


def build_registry() -> CommandRegistry:
    """Return a registry holding every command."""
    registry = CommandRegistry()
    registry.register("login", handler_login)
    registry.register("register", handler_register)
    registry.register("reset", handler_reset)
    registry.register("users", handler_list_users)
    registry.register("agg", handler_agg)
    registry.register("addfeed", logged_in(handler_add_feed))
    registry.register("feeds", handler_list_feeds)
    registry.register("follow", logged_in(handler_follow))
    registry.register("following", logged_in(handler_following))
    registry.register("unfollow", logged_in(handler_unfollow))
    registry.register("browse", logged_in(handler_browse))
    return registry


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    """Run one command; return the process exit status."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(message)s", datefmt="%Y/%m/%d %H:%M:%S"
    )
    args = sys.argv[1:] if argv is None else list(argv)

    try:
        config = read()
    except (OSError, ValueError) as exc:
        return _fail(f"error reading config: {exc}")

    try:
        db = Database(config.db_url)
    except DatabaseError as exc:
        return _fail(f"error connecting to db: {exc}")

    with db:
        if not args:
            return _fail("Usage: cli <command> [args...]")
        state = State(db=db, config=config)
        try:
            build_registry().run(state, Command(args[0], args[1:]))
        except (CommandError, DatabaseError, OSError) as exc:
            return _fail(str(exc))
        except KeyboardInterrupt:
            return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())