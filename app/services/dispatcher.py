"""Authenticate, parse and route inbound interactions.

    Ping               -> pong, nothing else
    ApplicationCommand -> /start, /stop, /entry, /help
    MessageComponent   -> grateful button -> entry form
    ModalSubmit        -> store entry, disable the prompt's button

Anything outside that table is a ``ContractViolation``: Discord sent
something we never registered for.
"""

from __future__ import annotations

import json
import logging
from typing import Awaitable, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

from app.errors import ContractViolation, HeaderNotFound, InvalidPayload
from app.services.handlers import CommandHandler, ComponentHandler
from app.services.journal import JournalStore
from app.services.pending_ops import PendingOpLog
from app.services.verification import SIGNATURE_HEADER, TIMESTAMP_HEADER, verify_signature
from app.types.commands import CommandName
from app.types.interactions import (
    GRATEFUL_BUTTON,
    INTERACTION_ADAPTER,
    CommandInteraction,
    ComponentInteraction,
    FormInteraction,
    Interaction,
    InteractionResponse,
    InteractionType,
    PingInteraction,
)

_LOGGER = logging.getLogger(__name__)

_KNOWN_TYPES = {t.value for t in InteractionType}


def parse_interaction(body: bytes | str) -> Interaction:
    """Deserialise a verified body into one of the interaction models."""
    try:
        raw = json.loads(body)
    except ValueError as exc:
        raise InvalidPayload("body is not JSON") from exc
    if not isinstance(raw, dict) or not isinstance(raw.get("type"), int):
        raise InvalidPayload("missing interaction type")
    if raw["type"] not in _KNOWN_TYPES:
        raise ContractViolation(f"Unrecognised interaction type {raw['type']}")
    try:
        return INTERACTION_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        raise InvalidPayload(
            f"interaction type {raw['type']} failed validation ({exc.error_count()} errors)"
        ) from exc


class EventDispatcher:
    def __init__(
        self,
        public_key: str,
        client,
        users_store,
        entries_store,
        journal: Optional[JournalStore] = None,
    ):
        self.public_key = public_key
        self.journal = journal or JournalStore(entries_store)
        self.commands = CommandHandler(
            client=client,
            pending=PendingOpLog(users_store),
            users_store=users_store,
            journal=self.journal,
        )
        self.components = ComponentHandler(client=client, journal=self.journal)
        self._command_routes: Dict[str, Callable[[CommandInteraction], Awaitable[InteractionResponse]]] = {
            CommandName.START.value: self.commands.handle_start,
            CommandName.STOP.value: self.commands.handle_stop,
            CommandName.ENTRY.value: self.commands.handle_entry,
            CommandName.HELP.value: self.commands.handle_help,
        }
        self._component_routes: Dict[str, Callable[[ComponentInteraction], Awaitable[InteractionResponse]]] = {
            GRATEFUL_BUTTON: self.components.present_entry_form,
        }

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    async def handle(self, headers: Mapping[str, str], body: bytes) -> InteractionResponse:
        self.authenticate(headers, body)
        interaction = parse_interaction(body)
        return await self.dispatch(interaction)

    def authenticate(self, headers: Mapping[str, str], body: bytes) -> None:
        signature = headers.get(SIGNATURE_HEADER)
        if signature is None:
            raise HeaderNotFound(SIGNATURE_HEADER)
        timestamp = headers.get(TIMESTAMP_HEADER)
        if timestamp is None:
            raise HeaderNotFound(TIMESTAMP_HEADER)
        verify_signature(self.public_key, signature, timestamp, body)

    async def dispatch(self, interaction: Interaction) -> InteractionResponse:
        if isinstance(interaction, PingInteraction):
            return InteractionResponse.pong()
        if isinstance(interaction, CommandInteraction):
            return await self._route_command(interaction)
        if isinstance(interaction, ComponentInteraction):
            return await self._route_component(interaction)
        if isinstance(interaction, FormInteraction):
            _LOGGER.info("Form %s submitted by %s", interaction.data.custom_id, interaction.user_id)
            return await self.components.submit_entry_form(interaction)
        raise ContractViolation(f"No route for {type(interaction).__name__}")

    async def _route_command(self, interaction: CommandInteraction) -> InteractionResponse:
        name = interaction.data.name
        handler = self._command_routes.get(name)
        if handler is None:
            raise ContractViolation(f"Unknown command {name!r}")
        _LOGGER.info("Command /%s from %s", name, interaction.user_id)
        return await handler(interaction)

    async def _route_component(self, interaction: ComponentInteraction) -> InteractionResponse:
        custom_id = interaction.data.custom_id
        handler = self._component_routes.get(custom_id)
        if handler is None:
            raise ContractViolation(f"Unknown component {custom_id!r}")
        _LOGGER.info("Component %s activated by %s", custom_id, interaction.user_id)
        return await handler(interaction)
