"""Minimal Discord REST client used by the webhook and the scheduled pass.

Requests are blocking (``requests``); the async wrappers push them onto a
worker thread so the event loop stays free.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from app.errors import DiscordAPIError
from app.types.commands import CommandDefinition, RegisteredCommand
from app.types.interactions import ChatMessage

_LOGGER = logging.getLogger(__name__)

USER_AGENT = "DiscordBot (https://github.com/grateful-bot, 1.0)"


def _is_transient(exc: BaseException) -> bool:
    """Transport errors, rate limits and 5xx are worth another attempt."""
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, DiscordAPIError) and exc.status is not None:
        return exc.status == 429 or exc.status >= 500
    return False


class DiscordClient:
    def __init__(
        self,
        token: Optional[str],
        application_id: Optional[str],
        base_url: str = "https://discord.com/api/v10",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.application_id = application_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._configured = bool(token and application_id)
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT})
        if token:
            self._session.headers["Authorization"] = f"Bot {token}"

    @classmethod
    def from_settings(cls, settings) -> "DiscordClient":
        return cls(
            token=settings.DISCORD_TOKEN,
            application_id=settings.DISCORD_APPLICATION_ID,
            base_url=settings.DISCORD_API_BASE,
            timeout=settings.DISCORD_TIMEOUT,
        )

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    @retry(
        wait=wait_random_exponential(multiplier=1, max=10),
        stop=stop_after_attempt(3),
        retry=retry_if_exception(_is_transient),
        reraise=True,
    )
    def _send(self, method: str, path: str, payload: Any = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        resp = self._session.request(method, url, json=payload, timeout=self.timeout)
        if resp.status_code >= 400:
            raise DiscordAPIError(
                f"{method} {path} failed with {resp.status_code}: {resp.text[:200]}",
                status=resp.status_code,
            )
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise DiscordAPIError(
                f"{method} {path} answered {resp.status_code} with a non-JSON body",
                status=resp.status_code,
            ) from exc

    def _request(self, method: str, path: str, payload: Any = None) -> Any:
        try:
            return self._send(method, path, payload)
        except requests.RequestException as exc:
            raise DiscordAPIError(f"{method} {path} failed: {exc}") from exc

    async def _call(self, method: str, path: str, payload: Any = None) -> Any:
        if not self._configured:
            raise DiscordAPIError("DISCORD_TOKEN and DISCORD_APPLICATION_ID must be set")
        return await asyncio.to_thread(self._request, method, path, payload)

    # ------------------------------------------------------------------
    # Channels & messages
    # ------------------------------------------------------------------
    async def create_dm_channel(self, user_id: str) -> str:
        channel = await self._call("POST", "users/@me/channels", {"recipient_id": user_id})
        try:
            return str(channel["id"])
        except (KeyError, TypeError) as exc:
            raise DiscordAPIError(f"DM channel response had no id: {channel!r}") from exc

    async def send_message(self, channel_id: str, message: ChatMessage) -> Dict[str, Any]:
        return await self._call("POST", f"channels/{channel_id}/messages", message.to_wire())

    async def edit_message(
        self, channel_id: str, message_id: str, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._call(
            "PATCH", f"channels/{channel_id}/messages/{message_id}", payload
        )

    # ------------------------------------------------------------------
    # Application commands
    # ------------------------------------------------------------------
    async def list_commands(self) -> List[RegisteredCommand]:
        data = await self._call("GET", f"applications/{self.application_id}/commands")
        try:
            return [RegisteredCommand.model_validate(c) for c in data or []]
        except ValidationError as exc:
            raise DiscordAPIError(
                f"Unexpected command listing: {exc.error_count()} invalid fields"
            ) from exc

    async def register_command(self, command: CommandDefinition) -> RegisteredCommand:
        data = await self._call(
            "POST", f"applications/{self.application_id}/commands", command.to_register()
        )
        try:
            return RegisteredCommand.model_validate(data)
        except ValidationError as exc:
            raise DiscordAPIError(
                f"Unexpected reply registering /{command.name}: {data!r}"
            ) from exc

    async def delete_command(self, command_id: str) -> None:
        await self._call(
            "DELETE", f"applications/{self.application_id}/commands/{command_id}"
        )
