"""Handlers behind the interaction dispatcher.

Upstream failures inside a handler become an ephemeral "try again" reply so
the webhook always answers with a well-formed interaction response.
"""

from __future__ import annotations

import logging
from typing import Sequence

from app.errors import ContractViolation, UpstreamFailure
from app.services import messages
from app.services.journal import JournalStore
from app.services.pending_ops import PendingOpLog
from app.services.reconciler import load_registry
from app.types.commands import CATALOGUE, ENTRY_OPTION, CommandDefinition
from app.types.interactions import (
    GRATEFUL_INPUT,
    GRATEFUL_MODAL,
    ChatMessage,
    CommandInteraction,
    ComponentInteraction,
    FormInteraction,
    InteractionResponse,
)
from app.types.registry import Subscriber

_LOGGER = logging.getLogger(__name__)


class CommandHandler:
    def __init__(
        self,
        client,
        pending: PendingOpLog,
        users_store,
        journal: JournalStore,
        catalogue: Sequence[CommandDefinition] = CATALOGUE,
    ):
        self.client = client
        self.pending = pending
        self.users_store = users_store
        self.journal = journal
        self.catalogue = catalogue

    async def resolve_channel(self, interaction: CommandInteraction) -> str:
        """DM channel for the invoker, creating one when the command came from a server."""
        if interaction.dm_channel_id:
            return interaction.dm_channel_id
        return await self.client.create_dm_channel(interaction.user_id)

    async def is_registered(self, uid: str) -> bool:
        return uid in await load_registry(self.users_store)

    async def notify(self, channel_id: str, uid: str, message: ChatMessage) -> bool:
        try:
            await self.client.send_message(channel_id, message)
        except UpstreamFailure as exc:
            _LOGGER.error("Error sending message to user %s: %s", uid, exc)
            return False
        return True

    # ------------------------------------------------------------------
    # /start
    # ------------------------------------------------------------------
    async def handle_start(self, interaction: CommandInteraction) -> InteractionResponse:
        uid = interaction.user_id
        _LOGGER.info("Handling start for %s", uid)
        try:
            channel_id = await self.resolve_channel(interaction)
        except UpstreamFailure as exc:
            _LOGGER.error("Couldn't open a DM channel with %s: %s", uid, exc)
            return messages.dms_closed()

        subscriber = Subscriber(uid=uid, channel_id=channel_id)
        try:
            if await self.pending.has_delete(uid):
                return messages.still_leaving()
            if await self.pending.has_add(subscriber) or await self.is_registered(uid):
                return messages.already_active()
            await self.pending.record_add(subscriber)
        except UpstreamFailure as exc:
            _LOGGER.error("Couldn't add user %s to list: %s", uid, exc)
            return messages.error()

        if not await self.notify(channel_id, uid, messages.welcome()):
            return messages.dms_closed()
        _LOGGER.info("New user: %s", uid)
        return messages.success()

    # ------------------------------------------------------------------
    # /stop
    # ------------------------------------------------------------------
    async def handle_stop(self, interaction: CommandInteraction) -> InteractionResponse:
        uid = interaction.user_id
        _LOGGER.info("Handling stop for %s", uid)
        try:
            channel_id = await self.resolve_channel(interaction)
        except UpstreamFailure as exc:
            _LOGGER.error("Couldn't open a DM channel with %s: %s", uid, exc)
            return messages.dms_closed()

        subscriber = Subscriber(uid=uid, channel_id=channel_id)
        try:
            if await self.pending.has_delete(uid):
                return messages.not_active()
            active = await self.is_registered(uid) or await self.pending.has_add(subscriber)
            if not active:
                return messages.not_active()
            # a pending ADD for the same user loses to this DELETE at reconcile time
            await self.pending.record_delete(uid)
        except UpstreamFailure as exc:
            _LOGGER.error("Couldn't remove user %s from list: %s", uid, exc)
            return messages.error()

        if not await self.notify(channel_id, uid, messages.goodbye()):
            return messages.dms_closed()
        _LOGGER.info("User removed: %s", uid)
        return messages.success()

    # ------------------------------------------------------------------
    # /entry
    # ------------------------------------------------------------------
    async def handle_entry(self, interaction: CommandInteraction) -> InteractionResponse:
        uid = interaction.user_id
        entry = interaction.data.option(ENTRY_OPTION)
        if entry is None:
            raise ContractViolation("/entry invoked without its 'entry' option")
        entry = entry.strip()
        if not entry:
            return messages.empty_entry()

        try:
            await self.journal.append(uid, entry)
        except UpstreamFailure as exc:
            _LOGGER.error("Couldn't store entry for %s: %s", uid, exc)
            return messages.error()

        try:
            channel_id = await self.resolve_channel(interaction)
        except UpstreamFailure as exc:
            _LOGGER.error("Couldn't open a DM channel with %s: %s", uid, exc)
            return messages.dms_closed()
        if not await self.notify(channel_id, uid, messages.entry_saved(entry)):
            return messages.dms_closed()
        return messages.success()

    # ------------------------------------------------------------------
    # /help
    # ------------------------------------------------------------------
    async def handle_help(self, interaction: CommandInteraction) -> InteractionResponse:
        return messages.help_message(self.catalogue)


class ComponentHandler:
    def __init__(self, client, journal: JournalStore):
        self.client = client
        self.journal = journal

    async def present_entry_form(self, interaction: ComponentInteraction) -> InteractionResponse:
        return InteractionResponse.form(messages.entry_form())

    async def submit_entry_form(self, interaction: FormInteraction) -> InteractionResponse:
        form = interaction.data
        if form.custom_id != GRATEFUL_MODAL:
            raise ContractViolation(f"Unknown form {form.custom_id!r}")
        if len(form.fields) != 1 or form.fields[0].custom_id != GRATEFUL_INPUT:
            raise ContractViolation(
                f"Form {form.custom_id!r} should carry exactly one {GRATEFUL_INPUT!r} field"
            )

        uid = interaction.user_id
        entry = form.fields[0].value.strip()
        if not entry:
            return messages.empty_entry()
        try:
            await self.journal.append(uid, entry)
        except UpstreamFailure as exc:
            _LOGGER.error("Couldn't store entry for %s: %s", uid, exc)
            return messages.error()

        await self._disable_prompt(interaction)
        return messages.entry_thanks()

    async def _disable_prompt(self, interaction: FormInteraction) -> None:
        message = interaction.message
        if message is None:
            return
        channel_id = message.channel_id or interaction.channel_id
        if channel_id is None:
            _LOGGER.warning("Prompt %s has no channel; leaving its button enabled", message.id)
            return
        try:
            await self.client.edit_message(
                channel_id, message.id, messages.disabled_prompt_components()
            )
        except UpstreamFailure as exc:
            # disabling again later, or never, is harmless
            _LOGGER.warning("Couldn't disable prompt %s: %s", message.id, exc)
