"""Process-wide diagnostics for storage bootstrap.

Events are appended, never overwritten, so a fallback recorded during startup
is still visible after later attempts. `reset_diagnostics` exists for tests.
"""

from datetime import datetime, timezone
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

EventType = Literal["attempt", "success", "error", "timeout", "fallback", "teardown-error"]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DiagnosticEvent(BaseModel):
    """One recorded bootstrap event.

    Serializes with the camelCase keys used by the diagnostics view
    (`from`, `elapsedMs`).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    stage: str
    type: EventType
    backend: str | None = None
    from_: str | None = Field(default=None, alias="from")
    to: str | None = None
    reason: str | None = None
    elapsed_ms: float | None = Field(default=None, alias="elapsedMs")
    timestamp: str = Field(default_factory=_now_iso)
    detail: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


_events: list[DiagnosticEvent] = []


def record_event(stage: str, type: EventType, **fields: Any) -> DiagnosticEvent:
    """Append an event to the process-wide diagnostics log."""
    event = DiagnosticEvent(stage=stage, type=type, **fields)
    _events.append(event)
    logger.debug("diagnostics: Event recorded", **event.as_dict())
    return event


def get_events(stage: str | None = None) -> list[DiagnosticEvent]:
    """Return a copy of the recorded events, optionally for one stage."""
    if stage is None:
        return list(_events)
    return [event for event in _events if event.stage == stage]


def reset_diagnostics() -> None:
    """Clear all recorded events."""
    _events.clear()
    logger.debug("diagnostics: Events cleared")
