"""Roster service: load, apply a command, persist.

The service owns no state besides the adapter; every call reads the current
document from storage, so several services over one adapter see each other's
writes (last writer wins). A storage failure propagates to the caller and the
mutation is treated as not having happened.
"""

from collections.abc import Callable
from typing import Any

from loguru import logger

from roster.bootstrap.notifier import LogNotifier, Notifier
from roster.documents import commands
from roster.documents.commands import CommandResult
from roster.documents.snapshot import WeekView, create_new_week, get_week_view, next_week_view, previous_week_view
from roster.documents.transfer import export_document, export_filename, merge_imported_week, parse_import
from roster.documents.types import PlayerInput, PlayerUpdate, RootDocument
from roster.storage.base import StorageAdapter


class RosterService:
    """Roster operations over a storage adapter."""

    def __init__(self, adapter: StorageAdapter, notifier: Notifier | None = None) -> None:
        self.adapter = adapter
        self.notifier = notifier or LogNotifier()

    async def load(self) -> RootDocument:
        return await self.adapter.get_root_data()

    async def _apply(self, name: str, command: Callable[[RootDocument], CommandResult]) -> CommandResult:
        document = await self.load()
        result = command(document)
        if not result.applied:
            self.notifier.show_alert(result.reason or f"{name} was rejected")
            return result
        stored = await self.adapter.set_root_data(result.document)
        logger.bind(command=name, week=stored["currentWeek"], backend=self.adapter.backend).debug("Command persisted")
        return CommandResult(document=stored, applied=True)

    async def add_player(self, data: PlayerInput | dict[str, Any]) -> CommandResult:
        return await self._apply("add_player", lambda doc: commands.add_player(doc, data))

    async def update_player(self, player_id: str, changes: PlayerUpdate | dict[str, Any]) -> CommandResult:
        return await self._apply("update_player", lambda doc: commands.update_player(doc, player_id, changes))

    async def delete_player(self, player_id: str) -> CommandResult:
        return await self._apply("delete_player", lambda doc: commands.delete_player(doc, player_id))

    async def toggle_have(self, player_id: str) -> CommandResult:
        return await self._apply("toggle_have", lambda doc: commands.toggle_have(doc, player_id))

    async def set_captain(self, player_id: str) -> CommandResult:
        return await self._apply("set_captain", lambda doc: commands.set_captain(doc, player_id))

    async def set_vice_captain(self, player_id: str) -> CommandResult:
        return await self._apply("set_vice_captain", lambda doc: commands.set_vice_captain(doc, player_id))

    async def create_new_week(self) -> RootDocument:
        """Freeze the current week and continue in the next one."""
        document = await self.load()
        stored = await self.adapter.set_root_data(create_new_week(document))
        logger.info(f"Advanced to week {stored['currentWeek']}")
        return stored

    async def view_week(self, week_number: int) -> WeekView | None:
        """Read-only view of a week; the current week does not change."""
        return get_week_view(await self.load(), week_number)

    async def next_week(self, from_week: int) -> WeekView | None:
        return next_week_view(await self.load(), from_week)

    async def previous_week(self, from_week: int) -> WeekView | None:
        return previous_week_view(await self.load(), from_week)

    async def import_week(self, text: str) -> tuple[RootDocument, int]:
        """Import a JSON export as a week and make it current.

        Raises:
            ValueError: If the text is not JSON or carries no week
        """
        imported = parse_import(text)
        merged, week_number = merge_imported_week(await self.load(), imported)
        stored = await self.adapter.set_root_data(merged)
        return stored, week_number

    async def export(self) -> tuple[str, str]:
        """Return (filename, JSON text) for the current document."""
        document = await self.load()
        return export_filename(document["currentWeek"]), export_document(document)
