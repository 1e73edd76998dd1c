"""Post render sessions as Discord messages and keep them in sync."""

import asyncio
import functools
import inspect
import logging
from typing import Any, Awaitable, Callable

import backoff
import nextcord
from opentelemetry.trace import SpanKind

from embed_builder import EmbedPayload
from open_telemetry import Telemetry
from render_session import RenderSession

logger = logging.getLogger(__name__)


def _emoji_key(emoji: Any) -> str:
    return str(emoji)


def _is_permanent_failure(error: Exception) -> bool:
    return isinstance(error, (nextcord.NotFound, nextcord.Forbidden))


class MessageRenderer:
    """
    Turns render sessions into Discord messages.

    The first render is posted with ``send``; every later change of the
    session edits that message in place. Each reaction is added or removed on
    its own, so one failing call never blocks the others.
    """

    def __init__(
        self,
        telemetry: Telemetry,
        content_separator: str = "\n",
        max_tries: int = 3,
    ) -> None:
        self.telemetry = telemetry
        self.content_separator = content_separator
        self.max_tries = max_tries
        self._bot: nextcord.Client | None = None
        self._sessions: dict[int, RenderSession] = {}
        self._listeners: dict[RenderSession, Callable[[], None]] = {}
        self._locks: dict[RenderSession, asyncio.Lock] = {}
        self._reacted: dict[RenderSession, dict[str, Any]] = {}
        self._tasks: dict[asyncio.Task, RenderSession] = {}

    def set_bot_client(self, bot: nextcord.Client) -> None:
        self._bot = bot

    def render_content(self, session: RenderSession) -> str | None:
        """Message texts joined by the separator; None when there is no text."""
        content = self.content_separator.join(session.contents)
        return content or None

    def render_embed(self, session: RenderSession) -> nextcord.Embed | None:
        """The first embed, or None when there is none or it would carry nothing."""
        payload = self._first_embed(session)
        return payload.to_embed() if payload is not None else None

    def session_for(self, message_id: int) -> RenderSession | None:
        return self._sessions.get(message_id)

    def _first_embed(self, session: RenderSession) -> EmbedPayload | None:
        embeds = session.embeds
        if not embeds or embeds[0].is_empty:
            return None
        return embeds[0]

    async def send(self, channel: nextcord.abc.Messageable, element: Any) -> RenderSession:
        """Render ``element`` and post it to ``channel``.

        If posting fails the session is closed before the error propagates.
        """
        session = RenderSession(channel, self._bot)
        session.update(element)

        listener = functools.partial(self._schedule_sync, session)
        session.on_change(listener)
        self._listeners[session] = listener
        self._locks[session] = asyncio.Lock()
        self._reacted[session] = {}

        try:
            async with self.telemetry.async_create_span("send_rendered_message", kind=SpanKind.PRODUCER) as span:
                embeds = session.embeds
                files = await self._collect_files(embeds[0]) if embeds else []

                message = await self._call(
                    "send",
                    channel.send,
                    content=self.render_content(session),
                    embed=self.render_embed(session),
                    files=files or None,
                )
                span.set_attribute("message_id", str(message.id))
        except Exception:
            self.close(session)
            raise

        self._sessions[message.id] = session
        await self._sync_reactions(message, session)

        session.resource.provide_resource(message)
        session.rerender()
        return session

    def close(self, session: RenderSession) -> None:
        """Stop keeping ``session`` in sync and routing its reaction events.

        Syncs still waiting for a message that was never posted are cancelled.
        """
        listener = self._listeners.pop(session, None)
        if listener is not None:
            session.off_change(listener)
        self._locks.pop(session, None)
        self._reacted.pop(session, None)

        if not session.resource.is_provided:
            for task, owner in list(self._tasks.items()):
                if owner is session:
                    task.cancel()

        message = session.message
        if message is not None:
            self._sessions.pop(message.id, None)

    async def handle_message_delete(self, payload: nextcord.RawMessageDeleteEvent) -> None:
        """Close the session of a rendered message that was deleted."""
        session = self._sessions.get(payload.message_id)
        if session is not None:
            logger.info(f"Rendered message {payload.message_id} was deleted, closing its session")
            self.close(session)

    # synchronization

    def _schedule_sync(self, session: RenderSession) -> None:
        self.telemetry.increment_render_changes()
        task = asyncio.create_task(self.sync(session))
        self._tasks[task] = session
        task.add_done_callback(lambda done: self._tasks.pop(done, None))

    async def sync(self, session: RenderSession) -> None:
        """Bring the posted message in line with the session's current views."""
        message = await session.resource.await_resource()
        lock = self._locks.get(session)
        if lock is None:
            logger.info(f"Session for message {message.id} was closed, skipping sync")
            return

        async with lock:
            async with self.telemetry.async_create_span("sync_rendered_message") as span:
                span.set_attribute("message_id", str(message.id))
                try:
                    await self._call(
                        "edit",
                        message.edit,
                        content=self.render_content(session),
                        embed=self.render_embed(session),
                    )
                except Exception as e:
                    span.record_exception(e)
                    logger.error(f"Failed to edit message {message.id}: {e}", exc_info=True)

                await self._sync_reactions(message, session)

    async def _sync_reactions(self, message: nextcord.Message, session: RenderSession) -> None:
        reacted = self._reacted.get(session)
        if reacted is None:
            return

        desired: dict[str, Any] = {}
        for emoji in session.reactions:
            desired.setdefault(_emoji_key(emoji), emoji)

        for key, emoji in desired.items():
            if key in reacted:
                continue
            try:
                await self._call("add_reaction", message.add_reaction, emoji)
                reacted[key] = emoji
            except Exception as e:
                logger.error(f"Failed to add reaction {key} to message {message.id}: {e}", exc_info=True)

        for key in [key for key in reacted if key not in desired]:
            if self._bot is None or self._bot.user is None:
                logger.warning(f"Cannot remove reaction {key} without a logged in bot client")
                continue
            try:
                await self._call("remove_reaction", message.remove_reaction, reacted[key], self._bot.user)
                del reacted[key]
            except Exception as e:
                logger.error(f"Failed to remove reaction {key} from message {message.id}: {e}", exc_info=True)

    async def _collect_files(self, payload: EmbedPayload) -> list[nextcord.File]:
        files = []
        for file in payload.files:
            try:
                if isinstance(file, nextcord.File):
                    files.append(file)
                elif isinstance(file, nextcord.Attachment):
                    files.append(await file.to_file())
                else:
                    files.append(nextcord.File(file))
            except Exception as e:
                logger.error(f"Failed to prepare attachment {file!r}: {e}", exc_info=True)
        return files

    async def _call(self, operation: str, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Call a Discord API coroutine, retrying transient HTTP failures."""
        timer = self.telemetry.metrics.timer()

        @backoff.on_exception(
            backoff.expo,
            nextcord.HTTPException,
            max_tries=self.max_tries,
            giveup=_is_permanent_failure,
        )
        async def attempt():
            return await func(*args, **kwargs)

        try:
            result = await attempt()
        except Exception:
            self.telemetry.record_sync_operation(operation, "error", timer())
            raise
        self.telemetry.record_sync_operation(operation, "success", timer())
        return result

    # reaction events

    async def handle_reaction_event(self, payload: nextcord.RawReactionActionEvent, added: bool) -> None:
        """Route a raw reaction event to the callbacks of matching reaction nodes."""
        session = self._sessions.get(payload.message_id)
        if session is None:
            return

        bot_user = self._bot.user if self._bot is not None else None
        if bot_user is not None and payload.user_id == bot_user.id:
            return

        key = _emoji_key(payload.emoji)
        matching = [reaction for reaction in session.root.reactions if _emoji_key(reaction.emoji) == key]
        if not matching:
            return

        user = await self._resolve_user(payload)
        for reaction in matching:
            for handler in (reaction.on_click, reaction.on_add if added else reaction.on_remove):
                if handler is None:
                    continue
                try:
                    result = handler(user)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(f"Reaction handler for {key} failed: {e}", exc_info=True)

    async def _resolve_user(self, payload: nextcord.RawReactionActionEvent) -> Any:
        if payload.member is not None:
            return payload.member
        if self._bot is None:
            return nextcord.Object(id=payload.user_id)

        user = self._bot.get_user(payload.user_id)
        if user is not None:
            return user
        try:
            return await self._bot.fetch_user(payload.user_id)
        except nextcord.HTTPException as e:
            logger.error(f"Failed to fetch user {payload.user_id}: {e}", exc_info=True)
            return nextcord.Object(id=payload.user_id)
