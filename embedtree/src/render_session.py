"""
Render sessions: one render tree bound to one Discord output surface.

A session owns the ``RootNode``, exposes the derived views a synchronization
layer turns into a Discord message, notifies listeners once per commit that
changed the tree, and carries the handoff through which the posted message is
made known after the fact.
"""

import logging
from contextvars import ContextVar
from typing import Any, Callable

import nextcord

from document_nodes import NoActiveSessionError, RootNode
from embed_builder import EmbedPayload, build_embed_payload
from reconciler import Reconciler
from resource_handoff import ResourceHandoff

logger = logging.getLogger(__name__)

# Set at the start of every construction pass and deliberately left in place
# afterwards. Asyncio tasks get their own copy of the context.
_current_session: ContextVar["RenderSession | None"] = ContextVar("current_render_session", default=None)


def current_session() -> "RenderSession":
    """Return the session the current construction pass is building for."""
    session = _current_session.get()
    if session is None:
        raise NoActiveSessionError("No render session is active")
    return session


class RenderSession:
    def __init__(self, surface: Any = None, client: nextcord.Client | None = None) -> None:
        """
        Args:
            surface: Where the rendered message goes, usually a
                ``nextcord.abc.Messageable``. Read by description code through
                ``hooks.use_surface``.
            client: The bot client the message is posted with, if any.
        """
        self.surface = surface
        self.client = client
        self.root = RootNode()
        self.snapshot: RootNode | None = None
        self.resource: ResourceHandoff[nextcord.Message] = ResourceHandoff()
        self._listeners: dict[Callable[[], None], None] = {}
        self._reconciler = Reconciler(self)
        self._element: Any = None

    # views

    @property
    def contents(self) -> list[str]:
        """Text of every message node, in order."""
        return [message.text for message in self.root.messages]

    @property
    def embeds(self) -> list[EmbedPayload]:
        return [build_embed_payload(embed) for embed in self.root.embeds]

    @property
    def reactions(self) -> list[Any]:
        return [reaction.emoji for reaction in self.root.reactions]

    @property
    def message(self) -> nextcord.Message | None:
        """The posted message, once the synchronization layer has provided it."""
        return self.resource.current_resource

    # changes

    def on_change(self, listener: Callable[[], None]) -> None:
        self._listeners[listener] = None

    def off_change(self, listener: Callable[[], None]) -> None:
        self._listeners.pop(listener, None)

    def emit_change(self) -> None:
        """Call every listener registered when dispatch starts, in registration order."""
        listeners = list(self._listeners)
        logger.debug(f"Dispatching change to {len(listeners)} listener(s)")
        for listener in listeners:
            listener()

    # passes

    def activate(self) -> None:
        _current_session.set(self)

    def update(self, element: Any) -> None:
        """Render ``element``, replacing whatever was rendered before."""
        self._element = element
        self._reconciler.render(element)

    def rerender(self) -> None:
        """Render the last element again, e.g. after the message became available."""
        if self._element is not None:
            self._reconciler.render(self._element)

    def unmount(self) -> None:
        """Remove everything rendered so far in a single commit."""
        self._element = None
        self._reconciler.unmount()

    def __repr__(self) -> str:
        return f"RenderSession(surface={self.surface!r}, root={self.root!r})"


def render(element: Any, surface: Any = None, client: nextcord.Client | None = None) -> RenderSession:
    """Create a session for ``surface`` and render ``element`` into it."""
    session = RenderSession(surface, client)
    session.update(element)
    return session
