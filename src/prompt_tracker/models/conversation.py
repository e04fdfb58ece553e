"""Conversation state threaded across turns of one interactive session.

Both models are frozen: a state is never edited in place, a new one is
built by prompt_tracker.execution.conversation_state for each turn.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ConversationMessage(BaseModel):
    """One message in a conversation history."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str
    tools_used: list[dict[str, Any]] = Field(default_factory=list)
    created_at: str


class ConversationState(BaseModel):
    """Messages plus the provider continuation token for one session."""

    model_config = ConfigDict(frozen=True)

    messages: tuple[ConversationMessage, ...] = ()
    previous_response_id: str | None = None
    started_at: str | None = None

    @property
    def turn_count(self) -> int:
        return sum(1 for m in self.messages if m.role == "user")
