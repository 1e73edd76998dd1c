"""
Helpers for function components to read the session they render into.

They only work while a session is rendering (inside a function component);
elsewhere they raise ``NoActiveSessionError``.
"""

from typing import Any

import nextcord

from render_session import RenderSession, current_session


def use_session() -> RenderSession:
    return current_session()


def use_surface() -> Any:
    """Returns the channel the message is posted to"""
    return current_session().surface


def use_guild() -> nextcord.Guild | None:
    """Returns the guild of the channel, or None for direct messages"""
    return getattr(use_surface(), "guild", None)


def use_client() -> nextcord.Client | None:
    """Returns the client the session was rendered for"""
    return current_session().client


def use_message() -> nextcord.Message | None:
    """Returns the posted message, or None while it is still being posted"""
    return current_session().message
