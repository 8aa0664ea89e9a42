# gatorfeed

A small command-line RSS aggregator. It keeps users, feeds, feed follows and
posts in a SQLite database, collects new posts from the feeds it knows about
at a fixed interval, and lets the current user browse the latest posts from
the feeds they follow.

## Installation

```
pip install .
```

This installs the `gatorfeed` command. There are no dependencies outside the
standard library.

## Configuration

Settings are read from `.gatorconfig.json` in your home directory. The file
must exist before any command is run; no command creates it from nothing.

```json
{
  "db_url": "gator.db"
}
```

`db_url` is the path of the SQLite database file (a relative path is taken
from the current directory; `":memory:"` gives a throwaway database). The
tables are created on first use. The name of the logged-in user is stored in
the same file under `current_user_name`; `register` and `login` rewrite the
file to set it.

## Usage

```
gatorfeed <command> [args...]
```

User commands:

- `gatorfeed register <name>` – create a user and make it the current user.
  User names are unique.
- `gatorfeed login <name>` – switch to an existing user.
- `gatorfeed users` – list all users, marking the current one with `(current)`.
- `gatorfeed reset` – delete all users, together with their feeds, follows
  and those feeds' posts.

Feed commands (those marked * need a current user):

- `gatorfeed addfeed <name> <url>` * – add a feed and follow it. Feed URLs are
  unique.
- `gatorfeed feeds` – list every feed with the user who added it; it is an
  error if there are none.
- `gatorfeed follow <url>` * – follow a feed that has already been added.
- `gatorfeed unfollow <url>` * – stop following a feed.
- `gatorfeed following` * – list the feeds the current user follows.

Reading:

- `gatorfeed agg <interval>` – run until interrupted, each interval fetching
  the feed that has gone longest without a fetch (never-fetched feeds first)
  and storing its items as posts. The interval is a positive duration made of
  numbers with units `ns`, `us` (or `µs`), `ms`, `s`, `m` and `h`, such as
  `30s`, `1m` or `1h30m`. Posts whose link is already stored are skipped;
  fetch and storage failures are logged and the loop carries on. Stop it with
  Ctrl-C.
- `gatorfeed browse [limit]` * – show the newest posts from followed feeds,
  two by default. Posts without a parseable publication date are listed
  first. Publication dates are read in the RFC 1123 form with a numeric zone,
  e.g. `Mon, 02 Jan 2006 15:04:05 -0700`.

A typical session:

```
gatorfeed register alice
gatorfeed addfeed "Example Blog" https://example.com/index.xml
gatorfeed agg 1m
gatorfeed browse 10
```

Errors (an unknown command, wrong arguments, a missing user or feed, an
unreadable config file) are printed on standard error and the command exits
with status 1. Interrupting a command with Ctrl-C exits with status 130.

## Using it as a library

- `gatorfeed.config` – `read(path)` and `write(config, path)` load and save a
  `Config` (`db_url`, `current_user`); both default to the file in the home
  directory given by `config_file_path()`. `Config.set_user(username)` sets
  the current user and saves the file.
- `gatorfeed.database.Database(path)` – a context manager over a SQLite file
  with methods such as `create_user`, `get_user`, `create_feed`,
  `get_next_feed_to_fetch`, `mark_feed_fetched`, `create_feed_follow`,
  `create_post` and `get_posts_for_user`. Failures raise `DatabaseError`;
  missing rows raise `NotFoundError` and duplicates `UniqueViolationError`.
  Records come back as the frozen dataclasses in `gatorfeed.models`.
- `gatorfeed.rss` – `parse_feed(data)` turns RSS XML into an `RSSFeed` with
  its `RSSItem` entries, unescaping HTML entities in titles and descriptions;
  `fetch_feed(url, timeout)` downloads and parses a feed (10 second timeout by
  default).
- `gatorfeed.commands` – `CommandRegistry`, `Command`, `State` and the
  `logged_in` wrapper; `gatorfeed.handlers` holds the command handlers and
  the helpers `parse_duration` and `parse_pub_date`;
  `gatorfeed.cli.build_registry()` returns a registry with every command.

## What it does not do

Data is kept only in a local SQLite file; it does not connect to a database
server. There is no command to create the configuration file, to log out, or
to delete a single user or feed, and no support for Atom feeds.

## Running the tests

```
pip install ".[test]"
pytest
```