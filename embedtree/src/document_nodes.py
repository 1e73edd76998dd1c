"""
Retained document tree for rendered Discord messages.

Every rendered output is a tree rooted at a ``RootNode`` whose children are
message texts, embeds and reactions. Nodes are created and mutated only by the
mutation protocol (see ``mutation_protocol.HostConfig``); the tree is cloned
and compared at commit boundaries to decide whether the Discord message needs
to be edited.
"""

from __future__ import annotations

import datetime
import logging
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class RenderError(RuntimeError):
    """Base class for errors raised while building or updating a render tree."""


class StructuralValidityError(RenderError):
    """Raised when a node is attached where its parent does not accept it."""

    def __init__(self, child_kind: str, parent_kind: str, reason: str | None = None):
        message = reason or f"'{child_kind}' is not a valid {parent_kind} child"
        super().__init__(message)
        self.child_kind = child_kind
        self.parent_kind = parent_kind


class UnknownElementError(RenderError):
    """Raised when an element type does not name a known node kind."""

    def __init__(self, element_type: Any):
        super().__init__(f"'{element_type}' is not a valid element type")
        self.element_type = element_type


class NoActiveSessionError(RenderError):
    """Raised when session-bound helpers are used outside a render pass."""


class NodeKind(Enum):
    AUTHOR = "author"
    DESCRIPTION = "description"
    EMBED = "embed"
    FIELD = "field"
    FIELD_NAME = "field-name"
    FIELD_VALUE = "field-value"
    FILE = "file"
    FOOTER = "footer"
    MESSAGE = "message"
    IMAGE = "image"
    REACTION = "reaction"
    ROOT = "root"
    TEXT = "text"
    THUMBNAIL = "thumbnail"
    TIMESTAMP = "timestamp"
    TITLE = "title"

    @classmethod
    def from_str(cls, value: str) -> "NodeKind | None":
        try:
            return cls(value)
        except ValueError:
            return None


class Node:
    """Base class of every tree node.

    ``ATTRIBUTES`` lists the kind-specific attributes; they double as the
    constructor keywords, which is what ``clone`` relies on. ``COMPARED`` is
    the subset that takes part in equality.
    """

    KIND: NodeKind
    ATTRIBUTES: tuple[str, ...] = ()
    COMPARED: tuple[str, ...] | None = None

    @property
    def kind(self) -> NodeKind:
        return self.KIND

    def attributes(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.ATTRIBUTES}

    def clone(self) -> "Node":
        """Return a deep copy with the same kind and attributes."""
        return type(self)(**self.attributes())

    def _comparison_key(self) -> tuple:
        names = self.ATTRIBUTES if self.COMPARED is None else self.COMPARED
        return tuple(getattr(self, name) for name in names)

    def _same_content(self, other: "Node") -> bool:
        return True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return (
            type(self) is type(other)
            and self._comparison_key() == other._comparison_key()
            and self._same_content(other)
        )

    __hash__ = None

    def __repr__(self) -> str:
        attrs = ", ".join(f"{name}={value!r}" for name, value in self.attributes().items())
        return f"{type(self).__name__}({attrs})"


class ParentNode(Node):
    """A node owning an ordered list of children.

    ``children`` is owned by the node: ``remove_all_children`` truncates the
    same list object, so anyone holding a reference to it sees the change.
    """

    VALID_CHILDREN: frozenset[NodeKind] = frozenset()

    def __init__(self) -> None:
        self.children: list[Node] = []

    def is_valid_child(self, node: Any) -> bool:
        return isinstance(node, Node) and node.kind in self.VALID_CHILDREN

    def check_child(self, child: Any) -> None:
        """Raise ``StructuralValidityError`` unless ``child`` may be attached here."""
        if not self.is_valid_child(child):
            child_kind = child.kind.value if isinstance(child, Node) else type(child).__name__
            raise StructuralValidityError(child_kind, self.kind.value)

    def _index_of(self, child: Node) -> int:
        for index, existing in enumerate(self.children):
            if existing is child:
                return index
        return -1

    def append_child(self, child: Node, after: Node | None = None) -> None:
        """Append ``child``, or insert it right after ``after`` when given.

        Nothing is inserted when ``after`` is not currently a child.
        """
        self.check_child(child)
        if after is None:
            self.children.append(child)
            return
        index = self._index_of(after)
        if index != -1:
            self.children.insert(index + 1, child)

    def prepend_child(self, child: Node, before: Node | None = None) -> None:
        """Insert ``child`` first, or right before ``before`` when given."""
        self.check_child(child)
        if before is None:
            self.children.insert(0, child)
            return
        index = self._index_of(before)
        if index != -1:
            self.children.insert(index, child)

    def remove_child(self, child: Node) -> None:
        """Remove ``child`` by identity, not by value."""
        index = self._index_of(child)
        if index != -1:
            del self.children[index]

    def remove_all_children(self) -> None:
        self.children.clear()

    def clone(self) -> "ParentNode":
        clone = type(self)(**self.attributes())
        clone.children = [child.clone() for child in self.children]
        return clone

    def _same_content(self, other: "ParentNode") -> bool:
        if len(self.children) != len(other.children):
            return False
        return all(mine == theirs for mine, theirs in zip(self.children, other.children))

    def __repr__(self) -> str:
        base = super().__repr__()[:-1]
        separator = ", " if self.ATTRIBUTES else ""
        return f"{base}{separator}children={self.children!r})"


class TextNode(Node):
    KIND = NodeKind.TEXT
    ATTRIBUTES = ("text",)

    def __init__(self, text: str):
        self.text = text


class TextBearingNode(ParentNode):
    """A parent holding only text leaves; compared by its concatenated text."""

    VALID_CHILDREN = frozenset({NodeKind.TEXT})

    @property
    def text(self) -> str:
        return "".join(child.text for child in self.children)

    @text.setter
    def text(self, text: str) -> None:
        self.remove_all_children()
        self.append_child(TextNode(text))

    def _same_content(self, other: "TextBearingNode") -> bool:
        return self.text == other.text


class AuthorNode(TextBearingNode):
    KIND = NodeKind.AUTHOR
    ATTRIBUTES = ("icon_url", "url")

    def __init__(self, icon_url: str | None = None, url: str | None = None):
        super().__init__()
        self.icon_url = icon_url
        self.url = url


class DescriptionNode(TextBearingNode):
    KIND = NodeKind.DESCRIPTION


class FieldNameNode(TextBearingNode):
    KIND = NodeKind.FIELD_NAME


class FieldValueNode(TextBearingNode):
    KIND = NodeKind.FIELD_VALUE


class FooterNode(TextBearingNode):
    KIND = NodeKind.FOOTER
    ATTRIBUTES = ("icon_url",)

    def __init__(self, icon_url: str | None = None):
        super().__init__()
        self.icon_url = icon_url


class MessageNode(TextBearingNode):
    KIND = NodeKind.MESSAGE


class TitleNode(TextBearingNode):
    KIND = NodeKind.TITLE
    ATTRIBUTES = ("url",)

    def __init__(self, url: str | None = None):
        super().__init__()
        self.url = url


class FieldNode(ParentNode):
    """An embed field: slot 0 holds the name, slot 1 the value."""

    KIND = NodeKind.FIELD
    ATTRIBUTES = ("inline",)
    VALID_CHILDREN = frozenset({NodeKind.FIELD_NAME, NodeKind.FIELD_VALUE})

    def __init__(self, inline: bool = False):
        super().__init__()
        self.inline = inline

    def _slot(self, index: int, kind: NodeKind) -> TextBearingNode | None:
        if index < len(self.children) and self.children[index].kind is kind:
            return self.children[index]
        return None

    def _require_slot(self, index: int, kind: NodeKind) -> TextBearingNode:
        slot = self._slot(index, kind)
        if slot is None:
            raise StructuralValidityError(
                kind.value,
                self.kind.value,
                reason=f"field has no '{kind.value}' child at position {index}",
            )
        return slot

    @property
    def name(self) -> str:
        slot = self._slot(0, NodeKind.FIELD_NAME)
        return slot.text if slot else ""

    @name.setter
    def name(self, name: str) -> None:
        self._require_slot(0, NodeKind.FIELD_NAME).text = name

    @property
    def value(self) -> str:
        slot = self._slot(1, NodeKind.FIELD_VALUE)
        return slot.text if slot else ""

    @value.setter
    def value(self, value: str) -> None:
        self._require_slot(1, NodeKind.FIELD_VALUE).text = value

    def _same_content(self, other: "FieldNode") -> bool:
        return self.name == other.name and self.value == other.value


class EmbedNode(ParentNode):
    """An embed panel. Nested embeds are flattened into the outer payload."""

    KIND = NodeKind.EMBED
    ATTRIBUTES = ("color",)
    VALID_CHILDREN = frozenset({
        NodeKind.AUTHOR,
        NodeKind.DESCRIPTION,
        NodeKind.EMBED,
        NodeKind.FIELD,
        NodeKind.FILE,
        NodeKind.FOOTER,
        NodeKind.IMAGE,
        NodeKind.THUMBNAIL,
        NodeKind.TIMESTAMP,
        NodeKind.TITLE,
    })

    def __init__(self, color: Any = None):
        super().__init__()
        self.color = color


class FileNode(Node):
    KIND = NodeKind.FILE
    ATTRIBUTES = ("file",)

    def __init__(self, file: Any):
        self.file = file


class ImageNode(Node):
    KIND = NodeKind.IMAGE
    ATTRIBUTES = ("url",)

    def __init__(self, url: str):
        self.url = url


class ThumbnailNode(Node):
    KIND = NodeKind.THUMBNAIL
    ATTRIBUTES = ("url",)

    def __init__(self, url: str):
        self.url = url


class ReactionNode(Node):
    """A reaction to add to the message.

    The interaction callbacks travel with the node but are not compared:
    a new callback alone never requires the message to be edited.
    """

    KIND = NodeKind.REACTION
    ATTRIBUTES = ("emoji", "on_click", "on_add", "on_remove")
    COMPARED = ("emoji",)

    def __init__(
        self,
        emoji: Any,
        on_click: Callable | None = None,
        on_add: Callable | None = None,
        on_remove: Callable | None = None,
    ):
        self.emoji = emoji
        self.on_click = on_click
        self.on_add = on_add
        self.on_remove = on_remove


class TimestampNode(Node):
    KIND = NodeKind.TIMESTAMP
    ATTRIBUTES = ("time",)

    def __init__(self, time: datetime.datetime | int | float | None = None):
        if time is None:
            time = datetime.datetime.now(datetime.timezone.utc)
        self.time = time

    @property
    def timestamp(self) -> datetime.datetime:
        """The time as an aware UTC datetime; numbers are POSIX seconds."""
        if isinstance(self.time, datetime.datetime):
            return self.time.astimezone(datetime.timezone.utc)
        return datetime.datetime.fromtimestamp(self.time, tz=datetime.timezone.utc)

    def _comparison_key(self) -> tuple:
        return (self.timestamp,)


class RootNode(ParentNode):
    """Top of a render tree; holds messages, embeds and reactions."""

    KIND = NodeKind.ROOT
    VALID_CHILDREN = frozenset({NodeKind.EMBED, NodeKind.MESSAGE, NodeKind.REACTION})

    @property
    def embeds(self) -> list[EmbedNode]:
        return [child for child in self.children if child.kind is NodeKind.EMBED]

    @property
    def messages(self) -> list[MessageNode]:
        return [child for child in self.children if child.kind is NodeKind.MESSAGE]

    @property
    def reactions(self) -> list[ReactionNode]:
        return [child for child in self.children if child.kind is NodeKind.REACTION]


# Element types that create_instance may build. Text and root are excluded:
# text leaves come from create_text_instance, roots from a RenderSession.
NODE_TYPES: dict[NodeKind, type[Node]] = {
    NodeKind.AUTHOR: AuthorNode,
    NodeKind.DESCRIPTION: DescriptionNode,
    NodeKind.EMBED: EmbedNode,
    NodeKind.FIELD: FieldNode,
    NodeKind.FIELD_NAME: FieldNameNode,
    NodeKind.FIELD_VALUE: FieldValueNode,
    NodeKind.FILE: FileNode,
    NodeKind.FOOTER: FooterNode,
    NodeKind.MESSAGE: MessageNode,
    NodeKind.IMAGE: ImageNode,
    NodeKind.REACTION: ReactionNode,
    NodeKind.THUMBNAIL: ThumbnailNode,
    NodeKind.TIMESTAMP: TimestampNode,
    NodeKind.TITLE: TitleNode,
}
