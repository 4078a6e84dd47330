"""User-facing message templates."""

from __future__ import annotations

from typing import Iterable, Optional

from app.types.commands import CommandDefinition
from app.types.interactions import (
    GRATEFUL_BUTTON,
    GRATEFUL_INPUT,
    GRATEFUL_MODAL,
    Button,
    ChatMessage,
    Embed,
    Form,
    InteractionResponse,
    TextField,
)

COLOR = 0xF9C74F
BUTTON_LABEL = "I'm grateful for..."


def _reply(text: str) -> InteractionResponse:
    return InteractionResponse.message(ChatMessage(content=text, ephemeral=True))


# ── Replies to the invoker (ephemeral) ─────────────────────────────────


def success() -> InteractionResponse:
    return _reply("Done! Check your DMs.")


def already_active() -> InteractionResponse:
    return _reply("You're already receiving prompts. Use `/stop` to stop them.")


def not_active() -> InteractionResponse:
    return _reply("You're not receiving prompts right now. Use `/start` to begin.")


def still_leaving() -> InteractionResponse:
    return _reply(
        "You just stopped your prompts and that is still being processed. "
        "Try `/start` again in a few minutes."
    )


def dms_closed() -> InteractionResponse:
    return _reply(
        "I couldn't send you a DM. Please allow direct messages from server "
        "members and try again."
    )


def error() -> InteractionResponse:
    return _reply("Something went wrong and your command didn't take effect. Please try again.")


def empty_entry() -> InteractionResponse:
    return _reply("That entry was empty, so nothing was saved.")


def help_message(catalogue: Iterable[CommandDefinition]) -> InteractionResponse:
    lines = [f"`/{c.name}`: {c.description}" for c in catalogue]
    embed = Embed(
        title="Gratitude journal",
        description=(
            "Every so often I'll DM you one of the things you were grateful for, "
            "and ask what you're grateful for today.\n\n" + "\n".join(lines)
        ),
        color=COLOR,
    )
    return InteractionResponse.message(ChatMessage(embeds=[embed], ephemeral=True))


def entry_thanks() -> InteractionResponse:
    return InteractionResponse.message(
        ChatMessage(content="Thank you! Your entry has been saved.")
    )


# ── Direct messages ────────────────────────────────────────────────────


def welcome() -> ChatMessage:
    return ChatMessage(
        embeds=[
            Embed(
                title="Welcome!",
                description=(
                    "From now on I'll occasionally ask what you're grateful for. "
                    "You can also add an entry any time with `/entry`."
                ),
                color=COLOR,
            )
        ]
    )


def goodbye() -> ChatMessage:
    return ChatMessage(
        embeds=[
            Embed(
                title="Goodbye!",
                description="You won't get any more prompts. Use `/start` to come back.",
                color=COLOR,
            )
        ]
    )


def entry_saved(entry: str) -> ChatMessage:
    return ChatMessage(
        embeds=[Embed(title="New entry", description=entry, color=COLOR, footer="Saved to your journal")]
    )


def grateful_button(disabled: bool = False) -> Button:
    return Button(custom_id=GRATEFUL_BUTTON, label=BUTTON_LABEL, disabled=disabled)


def prompt(entry: Optional[str]) -> ChatMessage:
    if entry is None:
        embed = Embed(title="What are you grateful for today?", color=COLOR)
    else:
        embed = Embed(
            title="Remember when you were grateful for this?",
            description=entry,
            color=COLOR,
            footer="What are you grateful for today?",
        )
    return ChatMessage(embeds=[embed], buttons=[grateful_button()])


def disabled_prompt_components() -> dict:
    """Edit payload that greys out the prompt's button."""
    return ChatMessage(buttons=[grateful_button(disabled=True)]).to_wire()


# ── Forms ──────────────────────────────────────────────────────────────


def entry_form() -> Form:
    return Form(
        custom_id=GRATEFUL_MODAL,
        title="What are you grateful for?",
        field=TextField(
            custom_id=GRATEFUL_INPUT,
            label="What are you grateful for right now?",
            placeholder="Today, I am grateful for...",
        ),
    )
