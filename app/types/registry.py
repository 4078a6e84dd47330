"""Subscriber records kept in the registry blob and encoded in pending-op keys."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class Subscriber(BaseModel):
    """A user who receives scheduled prompts, and the DM channel to send them to."""

    model_config = ConfigDict(frozen=True)

    uid: str
    channel_id: str

    @field_validator("uid", "channel_id")
    def _non_empty(cls, v: str):  # noqa: N805
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        return v

    def serialize(self) -> str:
        """Compact, field-ordered JSON; equal subscribers give equal strings."""
        return self.model_dump_json()

    @classmethod
    def deserialize(cls, raw: str) -> "Subscriber":
        return cls.model_validate_json(raw)
