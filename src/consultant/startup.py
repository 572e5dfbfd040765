"""Startup mode resolution.

Decides, once per chat surface mount, whether anything should be sent
before the user types.
"""

from enum import Enum


class StartupDecision(str, Enum):
    """What to send automatically when a chat surface opens."""

    NONE = "none"
    SEND_INITIAL_MESSAGE = "initial_message"
    SEND_ASSISTANT_STARTER = "assistant_starter"


def resolve_startup_mode(
    *,
    has_access: bool,
    has_user: bool,
    has_session: bool,
    message_count: int,
    has_initial_message: bool,
    proactive_starter_enabled: bool,
    already_triggered: bool,
) -> StartupDecision:
    """Resolve the automatic opening action; first matching rule wins.

    Callers must record `already_triggered` as soon as they act on a
    result other than NONE, before the resulting request completes.
    """
    if already_triggered:
        return StartupDecision.NONE
    if not has_user or not has_access or not has_session:
        return StartupDecision.NONE
    # Never auto-send into a conversation that already has content.
    if message_count > 0:
        return StartupDecision.NONE
    if has_initial_message:
        return StartupDecision.SEND_INITIAL_MESSAGE
    if proactive_starter_enabled:
        return StartupDecision.SEND_ASSISTANT_STARTER
    return StartupDecision.NONE
