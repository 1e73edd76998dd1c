import logging
from enum import Enum

import nextcord

from opentelemetry.trace import SpanKind

from container import Container
from elements import Embed, Field, Footer, Message, ProgressBar, Reaction, Title, create_element
from hooks import use_message
from render_session import RenderSession


intents = nextcord.Intents.default()
intents.message_content = True  # MUST have this to receive message content

bot = nextcord.Client(intents=intents)

container = Container()

logger = logging.getLogger(__name__)

COUNTER_LIMIT = 10


class BotCommand(Enum):
    HELP = "help"
    COUNTER = "counter"

    @classmethod
    def from_str(cls, value: str) -> "BotCommand | None":
        try:
            return next(cmd for cmd in cls if cmd.value == value.lower())
        except StopIteration:
            return None


def Counter(count: int, on_decrement, on_increment):
    """A counter message driven by two reactions."""
    message = use_message()
    footer = "Posting..." if message is None else "React to change the count"
    return [
        Message("Current count: ", count),
        Embed(
            Title("Counter"),
            Field("Count", str(count), inline=True),
            ProgressBar("Limit", max(0, min(count, COUNTER_LIMIT)) / COUNTER_LIMIT, length=COUNTER_LIMIT),
            Footer(footer),
            color=0x5865F2,
        ),
        Reaction("⬅️", on_click=on_decrement),
        Reaction("➡️", on_click=on_increment),
    ]


class CounterView:
    """Holds the counter state and re-renders its session when it changes."""

    def __init__(self) -> None:
        self.count = 0
        self.session: RenderSession | None = None

    def element(self):
        return create_element(
            Counter,
            {"count": self.count, "on_decrement": self.decrement, "on_increment": self.increment},
        )

    def decrement(self, user) -> None:
        self._set(self.count - 1)

    def increment(self, user) -> None:
        self._set(self.count + 1)

    def _set(self, count: int) -> None:
        self.count = count
        if self.session is not None:
            self.session.update(self.element())


@bot.event
async def on_ready() -> None:
    logger.info(f"Logged in as {bot.user}")
    container.message_renderer.set_bot_client(bot)


@bot.event
async def on_message(message: nextcord.Message):
    if message.author.bot:
        return

    prefix = container.config.command_prefix
    if not message.content.startswith(prefix):
        return

    command = BotCommand.from_str(message.content[len(prefix):].split(" ", 1)[0])
    if command is None:
        return

    async with container.telemetry.async_create_span("on_message", kind=SpanKind.CONSUMER) as span:
        span.set_attribute("command", command.value)

        if command == BotCommand.HELP:
            await message.reply(f"Available commands:\n`{prefix}counter` - Post a counter driven by reactions")
            return

        if command == BotCommand.COUNTER:
            view = CounterView()
            view.session = await container.message_renderer.send(message.channel, view.element())


@bot.event
async def on_raw_reaction_add(payload: nextcord.RawReactionActionEvent):
    async with container.telemetry.async_create_span("on_raw_reaction_add", kind=SpanKind.CONSUMER) as span:
        span.set_attribute("message_id", str(payload.message_id))
        await container.message_renderer.handle_reaction_event(payload, added=True)


@bot.event
async def on_raw_reaction_remove(payload: nextcord.RawReactionActionEvent):
    async with container.telemetry.async_create_span("on_raw_reaction_remove", kind=SpanKind.CONSUMER) as span:
        span.set_attribute("message_id", str(payload.message_id))
        await container.message_renderer.handle_reaction_event(payload, added=False)


@bot.event
async def on_raw_message_delete(payload: nextcord.RawMessageDeleteEvent):
    await container.message_renderer.handle_message_delete(payload)


if __name__ == "__main__":
    bot.run(container.config.discord_token)
