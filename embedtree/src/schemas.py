"""
Pydantic schemas for the props accepted by each element type.

Props are validated by type only. Platform limits (text length, number of
fields, ...) are left to Discord.
"""

import datetime
from typing import Any, Callable

import nextcord
from pydantic import BaseModel, ConfigDict

from document_nodes import NodeKind


class ElementProps(BaseModel):
    """Common configuration: unknown props are ignored, nextcord types allowed."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    def attributes(self) -> dict[str, Any]:
        """Validated values keyed by node attribute name, without conversion."""
        return {name: getattr(self, name) for name in type(self).model_fields}


class TextProps(ElementProps):
    """Props of text-only elements (description, message, field name/value)."""


class AuthorProps(ElementProps):
    icon_url: str | None = None
    url: str | None = None


class EmbedProps(ElementProps):
    color: int | nextcord.Colour | None = None


class FieldProps(ElementProps):
    inline: bool = False


class FileProps(ElementProps):
    file: str | nextcord.File | nextcord.Attachment


class FooterProps(ElementProps):
    icon_url: str | None = None


class UrlProps(ElementProps):
    """Props of image and thumbnail elements."""

    url: str


class ReactionProps(ElementProps):
    emoji: str | nextcord.PartialEmoji | nextcord.Emoji
    on_click: Callable[..., Any] | None = None
    on_add: Callable[..., Any] | None = None
    on_remove: Callable[..., Any] | None = None


class TimestampProps(ElementProps):
    time: datetime.datetime | int | float | None = None


class TitleProps(ElementProps):
    url: str | None = None


PROPS_SCHEMAS: dict[NodeKind, type[ElementProps]] = {
    NodeKind.AUTHOR: AuthorProps,
    NodeKind.DESCRIPTION: TextProps,
    NodeKind.EMBED: EmbedProps,
    NodeKind.FIELD: FieldProps,
    NodeKind.FIELD_NAME: TextProps,
    NodeKind.FIELD_VALUE: TextProps,
    NodeKind.FILE: FileProps,
    NodeKind.FOOTER: FooterProps,
    NodeKind.MESSAGE: TextProps,
    NodeKind.IMAGE: UrlProps,
    NodeKind.REACTION: ReactionProps,
    NodeKind.THUMBNAIL: UrlProps,
    NodeKind.TIMESTAMP: TimestampProps,
    NodeKind.TITLE: TitleProps,
}
