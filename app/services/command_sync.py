"""Keep Discord's registered slash commands in line with ``CATALOGUE``.

Commands are matched by name only; a changed description on an existing name
is left alone. Each failed remote call is logged and skipped, the next
scheduled run picks it up again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from app.errors import UpstreamFailure
from app.types.commands import CATALOGUE, CommandDefinition

_LOGGER = logging.getLogger(__name__)


@dataclass
class SyncReport:
    deleted: List[str] = field(default_factory=list)
    registered: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def summary(self) -> dict:
        return {
            "deleted": list(self.deleted),
            "registered": list(self.registered),
            "failed": list(self.failed),
        }


class CommandSetSyncer:
    def __init__(self, client, catalogue: Sequence[CommandDefinition] = CATALOGUE):
        self.client = client
        self.catalogue = list(catalogue)

    async def run(self) -> SyncReport:
        # Without the remote list there is nothing to diff against: let it raise.
        registered = await self.client.list_commands()
        declared = {c.name for c in self.catalogue}
        remote = {c.name for c in registered}

        to_delete = [c for c in registered if c.name not in declared]
        to_register = [c for c in self.catalogue if c.name not in remote]

        report = SyncReport()
        for command in to_delete:
            try:
                await self.client.delete_command(command.id)
            except UpstreamFailure as exc:
                _LOGGER.error("Command %s not deleted: %s", command.name, exc)
                report.failed.append(command.name)
            else:
                _LOGGER.info("Command %s deleted", command.name)
                report.deleted.append(command.name)

        for command in to_register:
            try:
                await self.client.register_command(command)
            except UpstreamFailure as exc:
                _LOGGER.error("Couldn't register command %s: %s", command.name, exc)
                report.failed.append(command.name)
            else:
                _LOGGER.info("Command %s registered", command.name)
                report.registered.append(command.name)

        return report
