from typing import Protocol

from loguru import logger


class Notifier(Protocol):
    """Anything that can show a user-facing alert."""

    def show_alert(self, message: str) -> None: ...


class LogNotifier:
    """Default notifier: alerts go to the log."""

    def show_alert(self, message: str) -> None:
        logger.warning(f"[alert] {message}")
