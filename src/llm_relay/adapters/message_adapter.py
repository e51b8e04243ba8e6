"""Convert a stored conversation into one provider's turn list.

``adapt`` is a pure function over data: the provider profile decides the
image block shape and whether strict alternation applies.
"""

import logging

from ..models.content import AdaptedTurn
from ..models.turn import ROLE_ASSISTANT, ROLE_SYSTEM, ROLE_USER, ConversationTurn
from ..providers.profile import ProviderProfile
from .alternation import normalize_alternation
from .content import build_user_content, turn_text

logger = logging.getLogger(__name__)

FALLBACK_SYSTEM_PROMPT = "You are a helpful AI assistant."


def drop_empty_turns(history: list[ConversationTurn]) -> list[ConversationTurn]:
    """Remove blank turns, keeping a trailing empty assistant placeholder."""
    last = len(history) - 1
    return [
        turn for i, turn in enumerate(history)
        if not turn.is_blank() or (i == last and turn.role == ROLE_ASSISTANT)
    ]


def latest_exchange(history: list[ConversationTurn]) -> list[ConversationTurn]:
    """System turns plus the most recent user turn (prior conversation omitted)."""
    systems = [turn for turn in history if turn.role == ROLE_SYSTEM]
    last_user = next((turn for turn in reversed(history) if turn.role == ROLE_USER), None)
    return systems + ([last_user] if last_user else [])


def adapt_turn(turn: ConversationTurn, profile: ProviderProfile) -> AdaptedTurn:
    if turn.role == ROLE_USER:
        return AdaptedTurn(ROLE_USER, build_user_content(turn, profile))
    return AdaptedTurn(turn.role, turn_text(turn.content))


def adapt(
    history: list[ConversationTurn],
    profile: ProviderProfile,
    system_prompt: str,
    include_prior_conversation: bool = True,
) -> list[AdaptedTurn]:
    """Adapt ``history`` for ``profile``.

    The result always starts with exactly one system turn. System turns in
    the history are merged into it; when none carry content the current
    ``system_prompt`` is used instead.
    """
    turns = drop_empty_turns(history)
    if not include_prior_conversation:
        turns = latest_exchange(turns)

    system_parts = [turn_text(turn.content) for turn in turns if turn.role == ROLE_SYSTEM]
    system_content = "\n\n".join(part for part in system_parts if part.strip())
    system_turn = AdaptedTurn(ROLE_SYSTEM, system_content or system_prompt or FALLBACK_SYSTEM_PROMPT)

    conversation = [adapt_turn(turn, profile) for turn in turns if turn.role != ROLE_SYSTEM]

    if profile.requires_strict_alternation:
        conversation = normalize_alternation(conversation)
        logger.debug(f"Normalized {len(turns)} stored turn(s) to {len(conversation)} alternating turn(s)")

    return [system_turn, *conversation]
