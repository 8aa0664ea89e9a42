"""Command dispatch and the state that commands work on."""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Callable

from .config import Config
from .database import Database
from .models import User


class CommandError(Exception):
    """A command was misused or could not do its work."""


@dataclass(frozen=True)
class Command:
    """A command name and its arguments."""

    name: str
    args: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


@dataclass
class State:
    """The database and configuration shared by every command."""

    db: Database
    config: Config


Handler = Callable[[State, Command], None]
UserHandler = Callable[[State, Command, User], None]


@dataclass
class CommandRegistry:
    """Maps command names to their handlers."""

    handlers: dict[str, Handler] = field(default_factory=dict)

    def register(self, name: str, handler: Handler) -> None:
        self.handlers[name] = handler

    def run(self, state: State, cmd: Command) -> None:
        try:
            handler = self.handlers[cmd.name]
        except KeyError:
            raise CommandError(f"unknown command: {cmd.name}") from None
        handler(state, cmd)


def logged_in(handler: UserHandler) -> Handler:
    """Wrap ``handler`` so it receives the current user, looked up by name."""

    @functools.wraps(handler)
    def wrapper(state: State, cmd: Command) -> None:
        user = state.db.get_user(state.config.current_user)
        handler(state, cmd, user)

    return wrapper