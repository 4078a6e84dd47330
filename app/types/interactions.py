"""Pydantic models for the interaction webhook contract.

Inbound payloads are parsed into a discriminated union on ``type``; outbound
responses are plain models that serialise themselves to the wire shape with
``to_wire()``. Discord's nesting of components inside action rows only exists
at that edge: the rest of the backend sees flat buttons and single-field forms.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, List, Literal, Optional, Union
from typing_extensions import Annotated

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

# Component ids this backend hands out and expects back.
GRATEFUL_BUTTON = "grateful_button"
GRATEFUL_MODAL = "grateful_modal"
GRATEFUL_INPUT = "grateful_input"

EPHEMERAL = 1 << 6

_ACTION_ROW = 1
_BUTTON = 2
_TEXT_INPUT = 4


class InteractionType(IntEnum):
    PING = 1
    APPLICATION_COMMAND = 2
    MESSAGE_COMPONENT = 3
    MODAL_SUBMIT = 5


class ResponseType(IntEnum):
    PONG = 1
    CHANNEL_MESSAGE_WITH_SOURCE = 4
    MODAL = 9


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ──────────────────────────────
# Who invoked the interaction
# ──────────────────────────────


class User(_Wire):
    id: str
    username: str = ""
    discriminator: Optional[str] = None


class Member(_Wire):
    user: User
    nick: Optional[str] = None


class DirectInvoker(_Wire):
    """Interaction sent from a DM with the bot."""

    kind: Literal["direct"] = "direct"
    user: User

    @property
    def user_id(self) -> str:
        return self.user.id


class GuildInvoker(_Wire):
    """Interaction sent from a server channel."""

    kind: Literal["guild"] = "guild"
    member: Member

    @property
    def user_id(self) -> str:
        return self.member.user.id


Invoker = Annotated[Union[DirectInvoker, GuildInvoker], Field(discriminator="kind")]


def _tag_invoker(data: Any) -> Any:
    """Fold the wire's ``user`` / ``member`` pair into one tagged ``invoker``."""
    if not isinstance(data, dict) or "invoker" in data:
        return data
    user, member = data.get("user"), data.get("member")
    if (user is None) == (member is None):
        raise ValueError("exactly one of 'user' or 'member' must be present")
    data = dict(data)
    if user is not None:
        data["invoker"] = {"kind": "direct", "user": user}
    else:
        data["invoker"] = {"kind": "guild", "member": member}
    return data


# ──────────────────────────────
# Interaction data
# ──────────────────────────────


class OptionData(_Wire):
    name: str
    type: int = 3
    value: Optional[Union[str, int, float, bool]] = None


class CommandData(_Wire):
    id: str = ""
    name: str
    type: int = 1
    options: List[OptionData] = Field(default_factory=list)

    def option(self, name: str) -> Optional[str]:
        for opt in self.options:
            if opt.name == name and opt.value is not None:
                return str(opt.value)
        return None


class ComponentData(_Wire):
    custom_id: str
    component_type: int = _BUTTON


class FormField(_Wire):
    custom_id: str
    value: str = ""


class FormSubmission(_Wire):
    """A submitted form, flattened to its list of fields."""

    custom_id: str
    fields: List[FormField]

    @model_validator(mode="before")
    @classmethod
    def _flatten_rows(cls, data: Any) -> Any:  # noqa: N805
        if not isinstance(data, dict) or "fields" in data:
            return data
        fields: list[Any] = []
        for row in data.get("components") or []:
            if isinstance(row, dict):
                fields.extend(row.get("components") or [])
        return {"custom_id": data.get("custom_id"), "fields": fields}


class MessageRef(_Wire):
    id: str
    channel_id: Optional[str] = None


# ──────────────────────────────
# Inbound interactions
# ──────────────────────────────


class PingInteraction(_Wire):
    type: Literal[1]
    id: str = ""
    token: str = ""


class _UserInteraction(_Wire):
    id: str = ""
    application_id: str = ""
    token: str = ""
    guild_id: Optional[str] = None
    channel_id: Optional[str] = None
    invoker: Invoker

    @model_validator(mode="before")
    @classmethod
    def _wrap_invoker(cls, data: Any) -> Any:  # noqa: N805
        return _tag_invoker(data)

    @property
    def user_id(self) -> str:
        return self.invoker.user_id

    @property
    def dm_channel_id(self) -> Optional[str]:
        """The DM channel id when the interaction already happened in one."""
        if isinstance(self.invoker, DirectInvoker):
            return self.channel_id
        return None


class CommandInteraction(_UserInteraction):
    type: Literal[2]
    data: CommandData


class ComponentInteraction(_UserInteraction):
    type: Literal[3]
    data: ComponentData
    message: MessageRef


class FormInteraction(_UserInteraction):
    type: Literal[5]
    data: FormSubmission
    message: Optional[MessageRef] = None


Interaction = Annotated[
    Union[PingInteraction, CommandInteraction, ComponentInteraction, FormInteraction],
    Field(discriminator="type"),
]

INTERACTION_ADAPTER: TypeAdapter = TypeAdapter(Interaction)


# ──────────────────────────────
# Outbound payloads
# ──────────────────────────────


def _action_row(components: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"type": _ACTION_ROW, "components": components}


class Button(BaseModel):
    custom_id: str
    label: str
    style: int = 1
    disabled: bool = False

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": _BUTTON,
            "style": self.style,
            "label": self.label,
            "custom_id": self.custom_id,
            "disabled": self.disabled,
        }


class TextField(BaseModel):
    custom_id: str
    label: str
    placeholder: str = ""
    style: int = 2  # paragraph
    min_length: int = 1
    max_length: int = 1000

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": _TEXT_INPUT,
            "custom_id": self.custom_id,
            "style": self.style,
            "label": self.label,
            "min_length": self.min_length,
            "max_length": self.max_length,
            "placeholder": self.placeholder,
        }


class Embed(BaseModel):
    title: str
    description: Optional[str] = None
    color: Optional[int] = None
    footer: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        wire: Dict[str, Any] = {"title": self.title}
        if self.description is not None:
            wire["description"] = self.description
        if self.color is not None:
            wire["color"] = self.color
        if self.footer is not None:
            wire["footer"] = {"text": self.footer}
        return wire


class ChatMessage(BaseModel):
    content: Optional[str] = None
    embeds: List[Embed] = Field(default_factory=list)
    buttons: List[Button] = Field(default_factory=list)
    ephemeral: bool = False

    def to_wire(self) -> Dict[str, Any]:
        wire: Dict[str, Any] = {}
        if self.content is not None:
            wire["content"] = self.content
        if self.embeds:
            wire["embeds"] = [e.to_wire() for e in self.embeds]
        if self.buttons:
            wire["components"] = [_action_row([b.to_wire() for b in self.buttons])]
        if self.ephemeral:
            wire["flags"] = EPHEMERAL
        return wire


class Form(BaseModel):
    """A modal with exactly one text field."""

    custom_id: str
    title: str
    field: TextField

    def to_wire(self) -> Dict[str, Any]:
        return {
            "custom_id": self.custom_id,
            "title": self.title,
            "components": [_action_row([self.field.to_wire()])],
        }


class InteractionResponse(BaseModel):
    type: ResponseType
    data: Optional[Union[ChatMessage, Form]] = None

    @classmethod
    def pong(cls) -> "InteractionResponse":
        return cls(type=ResponseType.PONG)

    @classmethod
    def message(cls, message: ChatMessage) -> "InteractionResponse":
        return cls(type=ResponseType.CHANNEL_MESSAGE_WITH_SOURCE, data=message)

    @classmethod
    def form(cls, form: Form) -> "InteractionResponse":
        return cls(type=ResponseType.MODAL, data=form)

    def to_wire(self) -> Dict[str, Any]:
        wire: Dict[str, Any] = {"type": int(self.type)}
        if self.data is not None:
            wire["data"] = self.data.to_wire()
        return wire
