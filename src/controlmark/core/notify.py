"""User-facing notifications."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Protocol, runtime_checkable

from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape

from .errors import ControlmarkError


class Level(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class Notification(BaseModel):
    title: str
    message: str
    level: Level = Level.SUCCESS
    retryable: bool = False

    @classmethod
    def from_error(cls, error: ControlmarkError) -> "Notification":
        return cls(
            title=error.title,
            message=error.message,
            level=Level.ERROR,
            retryable=error.retryable,
        )


@runtime_checkable
class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...


class ConsoleNotifier:
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def notify(self, notification: Notification) -> None:
        if notification.level == Level.ERROR:
            hint = " [dim](you can try again)[/dim]" if notification.retryable else ""
            self.console.print(f"  [red]{escape(notification.title)}[/red] {escape(notification.message)}{hint}")
        else:
            self.console.print(f"  [green]{escape(notification.title)}[/green] {escape(notification.message)}")


class RecordingNotifier:
    """Keeps notifications in memory."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    @property
    def errors(self) -> list[Notification]:
        return [n for n in self.notifications if n.level == Level.ERROR]
