"""Sync events, the event handler interface and sync results."""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class SyncTransferEvent:
    """A file was (or, in dry run, would be) transferred."""

    direction: str
    local_path: str
    remote_path: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction,
            "local_path": self.local_path,
            "remote_path": self.remote_path,
        }


@dataclass(frozen=True)
class SyncSkipEvent:
    """A file was not transferred.

    ``reason`` is the compare strategy name when the file was up to date,
    ``"conflictRules skip"`` when a conflict rule excluded it, or ``"error"``
    when the transfer failed (``error`` then holds the exception).
    """

    direction: str
    local_path: str
    remote_path: str
    reason: str
    error: Optional[BaseException] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "direction": self.direction,
            "local_path": self.local_path,
            "remote_path": self.remote_path,
            "reason": self.reason,
        }
        if self.error is not None:
            data["error"] = str(self.error)
        return data


class SyncEventHandler:
    """Receives sync events as they happen.

    Subclass and override the hooks you care about; the defaults do nothing.
    """

    def on_transfer(self, event: SyncTransferEvent) -> None:
        pass

    def on_skip(self, event: SyncSkipEvent) -> None:
        pass

    def on_delete(self, path: str) -> None:
        pass


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one sync call."""

    transferred: tuple[SyncTransferEvent, ...] = ()
    skipped: tuple[SyncSkipEvent, ...] = ()
    deleted: tuple[str, ...] = ()

    @property
    def errors(self) -> tuple[SyncSkipEvent, ...]:
        """Skip events caused by failed transfers."""
        return tuple(event for event in self.skipped if event.error is not None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "transferred": [event.to_dict() for event in self.transferred],
            "skipped": [event.to_dict() for event in self.skipped],
            "deleted": list(self.deleted),
        }


@dataclass
class SyncResultCollector(SyncEventHandler):
    """Accumulates the events of one sync call and forwards them.

    Appends happen on the event loop thread only, so no locking is needed.
    """

    handler: Optional[SyncEventHandler] = None
    transferred: list[SyncTransferEvent] = field(default_factory=list)
    skipped: list[SyncSkipEvent] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    def on_transfer(self, event: SyncTransferEvent) -> None:
        self.transferred.append(event)
        if self.handler is not None:
            self.handler.on_transfer(event)

    def on_skip(self, event: SyncSkipEvent) -> None:
        self.skipped.append(event)
        if self.handler is not None:
            self.handler.on_skip(event)

    def on_delete(self, path: str) -> None:
        self.deleted.append(path)
        if self.handler is not None:
            self.handler.on_delete(path)

    def snapshot(self) -> SyncResult:
        return SyncResult(
            transferred=tuple(self.transferred),
            skipped=tuple(self.skipped),
            deleted=tuple(self.deleted),
        )
