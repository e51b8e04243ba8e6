"""Strict user/assistant alternation for providers that reject repeated roles.

The normalizer is total and deterministic: it never raises and only
synthesizes filler turns, so the same history always adapts the same way.
"""

from enum import Enum

from ..models.content import AdaptedTurn, stringify_content
from ..models.turn import ROLE_ASSISTANT, ROLE_USER

EMPTY_CONVERSATION_PROMPT = "Please respond."
MISSING_USER_PROMPT = "Please continue with the conversation."
GAP_FILLER_PROMPT = "Continue."
TRAILING_USER_PROMPT = "Please provide your response."


class _Expect(Enum):
    USER = "user"
    ASSISTANT = "assistant"


def merge_same_role(turns: list[AdaptedTurn]) -> list[AdaptedTurn]:
    """Collapse runs of same-role neighbours, joining text with a blank line."""
    merged: list[AdaptedTurn] = []
    for turn in turns:
        if merged and merged[-1].role == turn.role:
            previous = merged[-1]
            content = f"{stringify_content(previous.content)}\n\n{stringify_content(turn.content)}"
            merged[-1] = AdaptedTurn(previous.role, content)
        else:
            merged.append(turn)
    return merged


def _fold_leading_assistant(turns: list[AdaptedTurn]) -> list[AdaptedTurn]:
    """Make the sequence start on a user turn."""
    first_user = next((i for i, turn in enumerate(turns) if turn.role == ROLE_USER), None)

    if first_user is None:
        return [AdaptedTurn(ROLE_USER, MISSING_USER_PROMPT), *turns]
    if first_user == 0:
        return turns

    preamble = "\n\n".join(
        f"[Previous assistant response: {stringify_content(turn.content)}]"
        for turn in turns[:first_user]
    )
    user_turn = turns[first_user]
    folded = AdaptedTurn(ROLE_USER, f"{preamble}\n\n{stringify_content(user_turn.content)}")
    return [folded, *turns[first_user + 1:]]


def normalize_alternation(turns: list[AdaptedTurn]) -> list[AdaptedTurn]:
    """Return non-system turns that alternate strictly and end on a user turn."""
    if not turns:
        return [AdaptedTurn(ROLE_USER, EMPTY_CONVERSATION_PROMPT)]

    sequence = _fold_leading_assistant(merge_same_role(turns))

    result: list[AdaptedTurn] = []
    expecting = _Expect.USER
    for turn in sequence:
        if expecting is _Expect.USER:
            if turn.role == ROLE_ASSISTANT:
                result.append(AdaptedTurn(ROLE_USER, GAP_FILLER_PROMPT))
                result.append(turn)
                expecting = _Expect.USER
                continue
            result.append(turn)
            expecting = _Expect.ASSISTANT
        else:
            result.append(turn)
            expecting = _Expect.USER if turn.role == ROLE_ASSISTANT else _Expect.ASSISTANT

    if result[-1].role != ROLE_USER:
        result.append(AdaptedTurn(ROLE_USER, TRAILING_USER_PROMPT))
    return result
