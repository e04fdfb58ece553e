"""ConversationStateBuilder: folds one turn into a conversation state.

advance() is a pure transform. It never touches the previous state:
callers may keep the old state around for logging or audit.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from prompt_tracker.models.conversation import ConversationMessage, ConversationState
from prompt_tracker.models.response import NormalizedLlmResponse


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConversationStateBuilder:
    """Builds the next ConversationState from a user message and a response.

    Args:
        clock: Returns the current time as an ISO-8601 string.
    """

    def __init__(self, clock: Callable[[], str] = _iso_now) -> None:
        self._clock = clock

    def advance(
        self,
        previous_state: ConversationState | Mapping[str, Any] | None,
        user_message: str,
        response: NormalizedLlmResponse,
    ) -> ConversationState:
        """Return a new state with one user and one assistant message appended.

        Args:
            previous_state: The current state, a serialized state mapping,
                or None for a fresh conversation.
            user_message: What the user said this turn.
            response: The normalized model answer for this turn.

        Returns:
            A new ConversationState. started_at is kept from the previous
            state when set; previous_response_id is always replaced by the
            response's response_id (possibly None).
        """
        previous = self._coerce(previous_state)
        now = self._clock()

        user = ConversationMessage(role="user", content=user_message, created_at=now)
        assistant = ConversationMessage(
            role="assistant",
            content=response.text,
            tools_used=[{"type": call.type} for call in response.tool_calls],
            created_at=now,
        )

        return ConversationState(
            messages=(*previous.messages, user, assistant),
            previous_response_id=response.response_id,
            started_at=previous.started_at or now,
        )

    def _coerce(
        self, previous_state: ConversationState | Mapping[str, Any] | None
    ) -> ConversationState:
        if previous_state is None:
            return ConversationState()
        if isinstance(previous_state, ConversationState):
            return previous_state
        # model_validate builds fresh message objects, so the caller's
        # mapping and lists are never shared with the new state.
        return ConversationState.model_validate(dict(previous_state))


def advance(
    previous_state: ConversationState | Mapping[str, Any] | None,
    user_message: str,
    response: NormalizedLlmResponse,
) -> ConversationState:
    """Module-level shortcut for ConversationStateBuilder().advance()."""
    return ConversationStateBuilder().advance(previous_state, user_message, response)
