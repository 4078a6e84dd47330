"""Slash-command catalogue: what this backend wants registered with Discord."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CommandName(str, Enum):
    HELP = "help"
    START = "start"
    STOP = "stop"
    ENTRY = "entry"


ENTRY_OPTION = "entry"


class CommandOption(BaseModel):
    type: int = 3  # string
    name: str
    description: str
    required: Optional[bool] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None


class CommandDefinition(BaseModel):
    """A command as declared locally. Compared with the remote set by name only."""

    name: str
    description: str
    options: List[CommandOption] = Field(default_factory=list)
    type: int = 1  # chat input
    dm_permission: Optional[bool] = True

    def to_register(self) -> Dict[str, Any]:
        payload = self.model_dump(exclude_none=True)
        if not self.options:
            payload.pop("options")
        return payload


class RegisteredCommand(BaseModel):
    """A command as Discord reports it back."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: str = ""
    application_id: Optional[str] = None


CATALOGUE: List[CommandDefinition] = [
    CommandDefinition(
        name=CommandName.HELP.value,
        description="Learn what this bot does and how to use it.",
    ),
    CommandDefinition(
        name=CommandName.START.value,
        description="Start receiving occasional gratitude prompts in your DMs.",
    ),
    CommandDefinition(
        name=CommandName.STOP.value,
        description="Stop receiving gratitude prompts.",
    ),
    CommandDefinition(
        name=CommandName.ENTRY.value,
        description="Write down something you are grateful for.",
        options=[
            CommandOption(
                name=ENTRY_OPTION,
                description="What are you grateful for right now?",
                required=True,
                min_length=1,
                max_length=1000,
            )
        ],
    ),
]
