"""
Notification sinks for notebase.

The core reports user-facing outcomes ("3 links updated", "No backlinks found")
through a Notifier; how they are shown is up to the host.
"""

from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)

INFO = "info"
WARNING = "warning"
ERROR = "error"


class Notifier(Protocol):
    def notify(self, message: str, level: str = INFO) -> None:
        ...


class LogNotifier:
    """Send notifications to the structlog logger."""

    def notify(self, message: str, level: str = INFO) -> None:
        log = getattr(logger, level, logger.info)
        log("notification", message=message)


class CollectingNotifier:
    """Keep notifications in memory so a host can return them to its caller."""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def notify(self, message: str, level: str = INFO) -> None:
        self.messages.append((level, message))

    def text(self) -> str:
        return "\n".join(message for _level, message in self.messages)
