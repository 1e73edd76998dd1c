"""Fold an embed subtree into an ``EmbedPayload`` and a ``nextcord.Embed``."""

import datetime
import logging
from typing import Any

import nextcord
from pydantic import BaseModel, ConfigDict, Field

from document_nodes import EmbedNode, Node, NodeKind, StructuralValidityError

logger = logging.getLogger(__name__)


class EmbedAuthor(BaseModel):
    name: str
    icon_url: str | None = None
    url: str | None = None


class EmbedField(BaseModel):
    name: str
    value: str
    inline: bool = False


class EmbedFooter(BaseModel):
    text: str
    icon_url: str | None = None


class EmbedPayload(BaseModel):
    """Everything collected from one embed node and its nested embeds."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    author: EmbedAuthor | None = None
    description: str | None = None
    fields: list[EmbedField] = Field(default_factory=list)
    footer: EmbedFooter | None = None
    image_url: str | None = None
    thumbnail_url: str | None = None
    timestamp: datetime.datetime | None = None
    title: str | None = None
    url: str | None = None
    color: Any = None
    files: list[Any] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return (
            self.author is None
            and not self.description
            and not self.fields
            and self.footer is None
            and self.image_url is None
            and self.thumbnail_url is None
            and self.timestamp is None
            and not self.title
        )

    def to_embed(self) -> nextcord.Embed:
        """Build the nextcord embed. Files are not part of it, see ``files``."""
        embed = nextcord.Embed(
            title=self.title,
            description=self.description,
            url=self.url,
            timestamp=self.timestamp,
        )
        if self.color is not None:
            embed.colour = self.color
        if self.author is not None:
            embed.set_author(name=self.author.name, url=self.author.url, icon_url=self.author.icon_url)
        for field in self.fields:
            embed.add_field(name=field.name, value=field.value, inline=field.inline)
        if self.footer is not None:
            embed.set_footer(text=self.footer.text, icon_url=self.footer.icon_url)
        if self.image_url is not None:
            embed.set_image(url=self.image_url)
        if self.thumbnail_url is not None:
            embed.set_thumbnail(url=self.thumbnail_url)
        return embed


def build_embed_payload(embed: EmbedNode) -> EmbedPayload:
    """
    Collect an embed subtree into a single payload.

    Children are visited in order and nested embeds are flattened into the
    same payload. An embed's own color is applied after its children, so the
    last embed node visited that defines a color wins; for a nested embed
    inside a colored outer embed that is the outer one.
    """
    payload = EmbedPayload()
    _collect(embed, payload)
    return payload


def _collect(node: Node, payload: EmbedPayload) -> None:
    kind = node.kind

    if kind is NodeKind.EMBED:
        for child in node.children:
            _collect(child, payload)
        if node.color is not None:
            payload.color = node.color
    elif kind is NodeKind.AUTHOR:
        payload.author = EmbedAuthor(name=node.text, icon_url=node.icon_url, url=node.url)
    elif kind is NodeKind.DESCRIPTION:
        payload.description = node.text
    elif kind is NodeKind.FIELD:
        payload.fields.append(EmbedField(name=node.name, value=node.value, inline=node.inline))
    elif kind is NodeKind.FILE:
        payload.files.append(node.file)
    elif kind is NodeKind.FOOTER:
        payload.footer = EmbedFooter(text=node.text, icon_url=node.icon_url)
    elif kind is NodeKind.IMAGE:
        payload.image_url = node.url
    elif kind is NodeKind.THUMBNAIL:
        payload.thumbnail_url = node.url
    elif kind is NodeKind.TIMESTAMP:
        payload.timestamp = node.timestamp
    elif kind is NodeKind.TITLE:
        payload.title = node.text
        payload.url = node.url
    else:
        raise StructuralValidityError(kind.value, NodeKind.EMBED.value)
