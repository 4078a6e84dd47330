import json
from typing import Any, Dict, List, Optional

import pytest
from nacl.signing import SigningKey

from app.errors import DiscordAPIError, StoreError
from app.services.dispatcher import EventDispatcher
from app.types.commands import RegisteredCommand
from db import ListResult


class FakeStore:
    """In-memory stand-in for ``db.KvStore`` with failure injection."""

    def __init__(self, page_size: int = 1000):
        self.data: Dict[str, str] = {}
        self.page_size = page_size
        self.fail_put: set[str] = set()
        self.fail_delete: set[str] = set()
        self.deleted: List[str] = []

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def get_json(self, key: str) -> Any:
        raw = await self.get(key)
        return None if raw is None else json.loads(raw)

    async def put(self, key: str, value: str) -> None:
        if key in self.fail_put:
            raise StoreError(f"put {key} refused")
        self.data[key] = value

    async def put_json(self, key: str, value: Any) -> None:
        await self.put(key, json.dumps(value, separators=(",", ":")))

    async def delete(self, key: str) -> None:
        if key in self.fail_delete:
            raise StoreError(f"delete {key} refused")
        self.data.pop(key, None)
        self.deleted.append(key)

    async def list(self, prefix=None, cursor=None, limit=None) -> ListResult:
        limit = limit or self.page_size
        keys = sorted(
            k for k in self.data
            if (prefix is None or k.startswith(prefix)) and (cursor is None or k > cursor)
        )
        if len(keys) > limit:
            page = keys[:limit]
            return ListResult(keys=page, list_complete=False, cursor=page[-1])
        return ListResult(keys=keys, list_complete=True)


class FakeDiscordClient:
    """Records outbound REST calls instead of sending them."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.edits: List[tuple] = []
        self.dm_requests: List[str] = []
        self.commands: List[RegisteredCommand] = []
        self.registered: List[str] = []
        self.deleted: List[str] = []
        self.fail_dm = False
        self.fail_send: set[str] = set()
        self.fail_edit = False
        self.fail_list = False
        self.fail_register: set[str] = set()
        self.fail_delete: set[str] = set()

    async def create_dm_channel(self, user_id: str) -> str:
        self.dm_requests.append(user_id)
        if self.fail_dm:
            raise DiscordAPIError("Cannot send messages to this user", status=403)
        return f"dm-{user_id}"

    async def send_message(self, channel_id, message):
        if channel_id in self.fail_send:
            raise DiscordAPIError("Missing access", status=403)
        self.sent.append((channel_id, message))
        return {"id": f"msg-{len(self.sent)}", "channel_id": channel_id}

    async def edit_message(self, channel_id, message_id, payload):
        if self.fail_edit:
            raise DiscordAPIError("Unknown message", status=404)
        self.edits.append((channel_id, message_id, payload))
        return {"id": message_id}

    async def list_commands(self):
        if self.fail_list:
            raise DiscordAPIError("Service unavailable", status=503)
        return list(self.commands)

    async def register_command(self, command):
        if command.name in self.fail_register:
            raise DiscordAPIError("Invalid form body", status=400)
        registered = RegisteredCommand(id=f"cmd-{command.name}", name=command.name)
        self.commands.append(registered)
        self.registered.append(command.name)
        return registered

    async def delete_command(self, command_id):
        if command_id in self.fail_delete:
            raise DiscordAPIError("Unknown command", status=404)
        self.commands = [c for c in self.commands if c.id != command_id]
        self.deleted.append(command_id)


@pytest.fixture
def users_store():
    return FakeStore()


@pytest.fixture
def entries_store():
    return FakeStore()


@pytest.fixture
def client():
    return FakeDiscordClient()


@pytest.fixture
def signing_key():
    return SigningKey.generate()


@pytest.fixture
def public_key_hex(signing_key):
    return signing_key.verify_key.encode().hex()


@pytest.fixture
def dispatcher(public_key_hex, client, users_store, entries_store):
    return EventDispatcher(
        public_key=public_key_hex,
        client=client,
        users_store=users_store,
        entries_store=entries_store,
    )


@pytest.fixture
def sign(signing_key):
    """Return headers that authenticate *body*."""

    def _sign(body: bytes, timestamp: str = "1700000000") -> Dict[str, str]:
        signature = signing_key.sign(timestamp.encode() + body).signature
        return {
            "x-signature-ed25519": signature.hex(),
            "x-signature-timestamp": timestamp,
        }

    return _sign


# ──────────────────────────────
# Interaction payload builders
# ──────────────────────────────


def _invoker(uid: str, in_dm: bool) -> Dict[str, Any]:
    user = {"id": uid, "username": f"user{uid}", "discriminator": "0"}
    if in_dm:
        return {"user": user, "channel_id": f"dm-{uid}"}
    return {"member": {"user": user, "nick": None}, "guild_id": "guild-1", "channel_id": "general"}


@pytest.fixture
def command_payload():
    def _build(name: str, uid: str = "42", in_dm: bool = False, **options) -> Dict[str, Any]:
        return {
            "type": 2,
            "id": "int-1",
            "application_id": "app-1",
            "token": "tok",
            "data": {
                "id": "cmd",
                "name": name,
                "type": 1,
                "options": [{"name": k, "type": 3, "value": v} for k, v in options.items()],
            },
            **_invoker(uid, in_dm),
        }

    return _build


@pytest.fixture
def component_payload():
    def _build(custom_id: str = "grateful_button", uid: str = "42") -> Dict[str, Any]:
        return {
            "type": 3,
            "id": "int-2",
            "token": "tok",
            "data": {"custom_id": custom_id, "component_type": 2},
            "message": {"id": "prompt-1", "channel_id": f"dm-{uid}"},
            **_invoker(uid, in_dm=True),
        }

    return _build


@pytest.fixture
def form_payload():
    def _build(
        value: str = "my dog",
        uid: str = "42",
        custom_id: str = "grateful_modal",
        field_id: str = "grateful_input",
        extra_fields: int = 0,
    ) -> Dict[str, Any]:
        rows = [
            {"type": 1, "components": [{"type": 4, "custom_id": field_id, "value": value}]}
        ]
        for i in range(extra_fields):
            rows.append(
                {"type": 1, "components": [{"type": 4, "custom_id": f"extra{i}", "value": "x"}]}
            )
        return {
            "type": 5,
            "id": "int-3",
            "token": "tok",
            "data": {"custom_id": custom_id, "components": rows},
            "message": {"id": "prompt-1", "channel_id": f"dm-{uid}"},
            **_invoker(uid, in_dm=True),
        }

    return _build
