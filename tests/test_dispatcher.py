import json

import pytest

from app.errors import ContractViolation, HeaderNotFound, VerificationFailed
from app.services import messages
from app.services.pending_ops import add_key, delete_key
from app.services.reconciler import REGISTRY_KEY
from app.types.interactions import ResponseType
from app.types.registry import Subscriber


def _body(payload) -> bytes:
    return json.dumps(payload).encode()


async def _send(dispatcher, sign, payload):
    body = _body(payload)
    return await dispatcher.handle(sign(body), body)


# ──────────────────────────────
# Authentication
# ──────────────────────────────


@pytest.mark.asyncio
async def test_ping_is_acknowledged_without_side_effects(dispatcher, sign, client, users_store):
    response = await _send(dispatcher, sign, {"type": 1})
    assert response.to_wire() == {"type": 1}
    assert client.sent == [] and users_store.data == {}


@pytest.mark.asyncio
async def test_bad_signature_is_rejected_before_parsing(dispatcher, sign):
    headers = sign(b"something else")
    with pytest.raises(VerificationFailed):
        await dispatcher.handle(headers, b"not even json")


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["x-signature-ed25519", "x-signature-timestamp"])
async def test_missing_header(dispatcher, sign, missing):
    body = _body({"type": 1})
    headers = sign(body)
    del headers[missing]
    with pytest.raises(HeaderNotFound):
        await dispatcher.handle(headers, body)


# ──────────────────────────────
# /start and /stop
# ──────────────────────────────


@pytest.mark.asyncio
async def test_start_from_server_opens_dm_and_records_add(
    dispatcher, sign, client, users_store, command_payload
):
    response = await _send(dispatcher, sign, command_payload("start", uid="42"))

    assert response == messages.success()
    assert client.dm_requests == ["42"]
    assert add_key(Subscriber(uid="42", channel_id="dm-42")) in users_store.data
    assert REGISTRY_KEY not in users_store.data
    channel, welcome = client.sent[0]
    assert channel == "dm-42" and welcome == messages.welcome()


@pytest.mark.asyncio
async def test_start_from_dm_reuses_channel(dispatcher, sign, client, command_payload):
    await _send(dispatcher, sign, command_payload("start", uid="42", in_dm=True))
    assert client.dm_requests == []
    assert client.sent[0][0] == "dm-42"


@pytest.mark.asyncio
async def test_start_twice_reports_already_active(dispatcher, sign, users_store, command_payload):
    await _send(dispatcher, sign, command_payload("start"))
    response = await _send(dispatcher, sign, command_payload("start"))
    assert response == messages.already_active()
    assert len(users_store.data) == 1


@pytest.mark.asyncio
async def test_start_when_registered_reports_already_active(
    dispatcher, sign, users_store, command_payload
):
    users_store.data[REGISTRY_KEY] = json.dumps([{"uid": "42", "channel_id": "dm-42"}])
    response = await _send(dispatcher, sign, command_payload("start"))
    assert response == messages.already_active()


@pytest.mark.asyncio
async def test_start_while_stop_pending_records_nothing(
    dispatcher, sign, users_store, command_payload
):
    users_store.data[delete_key("42")] = "POOF"
    response = await _send(dispatcher, sign, command_payload("start"))
    assert response == messages.still_leaving()
    assert list(users_store.data) == [delete_key("42")]


@pytest.mark.asyncio
async def test_start_fails_cleanly_when_dm_channel_cannot_be_created(
    dispatcher, sign, client, users_store, command_payload
):
    client.fail_dm = True
    response = await _send(dispatcher, sign, command_payload("start"))
    assert response == messages.dms_closed()
    assert users_store.data == {}


@pytest.mark.asyncio
async def test_start_with_closed_dms(dispatcher, sign, client, command_payload):
    client.fail_send.add("dm-42")
    response = await _send(dispatcher, sign, command_payload("start"))
    assert response == messages.dms_closed()


@pytest.mark.asyncio
async def test_start_store_failure_is_a_try_again_reply(
    dispatcher, sign, users_store, command_payload
):
    users_store.fail_put.add(add_key(Subscriber(uid="42", channel_id="dm-42")))
    response = await _send(dispatcher, sign, command_payload("start"))
    assert response == messages.error()


@pytest.mark.asyncio
async def test_stop_when_not_active(dispatcher, sign, users_store, command_payload):
    response = await _send(dispatcher, sign, command_payload("stop"))
    assert response == messages.not_active()
    assert users_store.data == {}


@pytest.mark.asyncio
async def test_stop_registered_user_records_delete(
    dispatcher, sign, client, users_store, command_payload
):
    users_store.data[REGISTRY_KEY] = json.dumps([{"uid": "42", "channel_id": "dm-42"}])
    response = await _send(dispatcher, sign, command_payload("stop"))

    assert response == messages.success()
    assert delete_key("42") in users_store.data
    assert client.sent[-1] == ("dm-42", messages.goodbye())

    again = await _send(dispatcher, sign, command_payload("stop"))
    assert again == messages.not_active()


@pytest.mark.asyncio
async def test_stop_with_only_pending_add_records_delete(
    dispatcher, sign, users_store, command_payload
):
    await _send(dispatcher, sign, command_payload("start"))
    response = await _send(dispatcher, sign, command_payload("stop"))
    assert response == messages.success()
    assert delete_key("42") in users_store.data


# ──────────────────────────────
# /entry and /help
# ──────────────────────────────


@pytest.mark.asyncio
async def test_entry_is_appended_and_echoed(
    dispatcher, sign, client, entries_store, command_payload
):
    response = await _send(dispatcher, sign, command_payload("entry", entry="  warm socks "))
    assert response == messages.success()
    assert json.loads(entries_store.data["42"]) == ["warm socks"]
    assert client.sent[-1] == ("dm-42", messages.entry_saved("warm socks"))


@pytest.mark.asyncio
async def test_blank_entry_is_not_stored(dispatcher, sign, entries_store, command_payload):
    response = await _send(dispatcher, sign, command_payload("entry", entry="   "))
    assert response == messages.empty_entry()
    assert entries_store.data == {}


@pytest.mark.asyncio
async def test_entry_without_option_is_a_contract_violation(dispatcher, sign, command_payload):
    with pytest.raises(ContractViolation):
        await _send(dispatcher, sign, command_payload("entry"))


@pytest.mark.asyncio
async def test_help_lists_commands(dispatcher, sign, command_payload):
    wire = (await _send(dispatcher, sign, command_payload("help"))).to_wire()
    description = wire["data"]["embeds"][0]["description"]
    for name in ("/start", "/stop", "/entry", "/help"):
        assert name in description
    assert wire["data"]["flags"] == 64


@pytest.mark.asyncio
async def test_unknown_command_is_a_contract_violation(dispatcher, sign, command_payload):
    with pytest.raises(ContractViolation):
        await _send(dispatcher, sign, command_payload("dance"))


# ──────────────────────────────
# Components and forms
# ──────────────────────────────


@pytest.mark.asyncio
async def test_button_presents_the_entry_form(dispatcher, sign, component_payload):
    response = await _send(dispatcher, sign, component_payload())
    assert response.type == ResponseType.MODAL
    assert response.data == messages.entry_form()


@pytest.mark.asyncio
async def test_unknown_component_is_a_contract_violation(dispatcher, sign, component_payload):
    with pytest.raises(ContractViolation):
        await _send(dispatcher, sign, component_payload("mystery"))


@pytest.mark.asyncio
async def test_form_submission_stores_entry_and_disables_prompt(
    dispatcher, sign, client, entries_store, form_payload
):
    response = await _send(dispatcher, sign, form_payload(value="the sea"))

    assert response == messages.entry_thanks()
    assert json.loads(entries_store.data["42"]) == ["the sea"]
    assert client.edits == [("dm-42", "prompt-1", messages.disabled_prompt_components())]


@pytest.mark.asyncio
async def test_failed_disable_is_tolerated(dispatcher, sign, client, entries_store, form_payload):
    client.fail_edit = True
    response = await _send(dispatcher, sign, form_payload(value="the sea"))
    assert response == messages.entry_thanks()
    assert json.loads(entries_store.data["42"]) == ["the sea"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [{"custom_id": "other_modal"}, {"field_id": "other_input"}, {"extra_fields": 1}],
)
async def test_unexpected_form_shape_is_a_contract_violation(
    dispatcher, sign, entries_store, form_payload, kwargs
):
    with pytest.raises(ContractViolation):
        await _send(dispatcher, sign, form_payload(**kwargs))
    assert entries_store.data == {}
