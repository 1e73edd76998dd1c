"""
Declarative descriptions of rendered messages.

An ``Element`` names a node kind (or a function component) with its props and
children. Nothing here touches the render tree; ``reconciler.Reconciler`` turns
descriptions into mutation operations.

    Embed(
        Title("Build status"),
        Field("Stage", "tests", inline=True),
        ProgressBar("Progress", 0.4),
        color=0x2ECC71,
    )
"""

from dataclasses import dataclass, field
from typing import Any, Callable

FILLED_CELL = "█"
EMPTY_CELL = "░"


@dataclass(frozen=True)
class Element:
    type: str | Callable[..., Any]
    props: dict[str, Any] = field(default_factory=dict)
    children: tuple[Any, ...] = ()


def create_element(type: str | Callable[..., Any], props: dict[str, Any] | None = None, *children: Any) -> Element:
    """Describe a node kind or a function component.

    Children may be elements, strings, numbers, nested lists/tuples, or
    None/True/False, which render nothing.
    """
    return Element(type=type, props=dict(props or {}), children=tuple(children))


def Fragment(*children: Any) -> list[Any]:
    return list(children)


def Author(*children: Any, icon_url: str | None = None, url: str | None = None) -> Element:
    return create_element("author", {"icon_url": icon_url, "url": url}, *children)


def Description(*children: Any) -> Element:
    return create_element("description", None, *children)


def Embed(*children: Any, color: Any = None) -> Element:
    return create_element("embed", {"color": color}, *children)


def FieldName(*children: Any) -> Element:
    return create_element("field-name", None, *children)


def FieldValue(*children: Any) -> Element:
    return create_element("field-value", None, *children)


def _wrap(content: Any, wrapper: Callable[..., Element], element_type: str) -> Element:
    if isinstance(content, Element) and content.type == element_type:
        return content
    return wrapper(content)


def Field(name: Any, value: Any, inline: bool = False) -> Element:
    """A field; plain name/value content is wrapped in FieldName/FieldValue."""
    return create_element(
        "field",
        {"inline": inline},
        _wrap(name, FieldName, "field-name"),
        _wrap(value, FieldValue, "field-value"),
    )


def File(file: Any) -> Element:
    return create_element("file", {"file": file})


def Footer(*children: Any, icon_url: str | None = None) -> Element:
    return create_element("footer", {"icon_url": icon_url}, *children)


def Image(url: str) -> Element:
    return create_element("image", {"url": url})


def Message(*children: Any) -> Element:
    return create_element("message", None, *children)


def Reaction(
    emoji: Any,
    on_click: Callable[..., Any] | None = None,
    on_add: Callable[..., Any] | None = None,
    on_remove: Callable[..., Any] | None = None,
) -> Element:
    """A reaction; ``on_click`` fires on both add and remove."""
    return create_element(
        "reaction",
        {"emoji": emoji, "on_click": on_click, "on_add": on_add, "on_remove": on_remove},
    )


def Thumbnail(url: str) -> Element:
    return create_element("thumbnail", {"url": url})


def Timestamp(time: Any = None) -> Element:
    return create_element("timestamp", {"time": time})


def Title(*children: Any, url: str | None = None) -> Element:
    return create_element("title", {"url": url}, *children)


def ProgressBar(name: Any, percentage: float, length: int = 20, inline: bool = False) -> Element:
    size = round(percentage * length)
    bar = "".join(FILLED_CELL if i < size else EMPTY_CELL for i in range(length))
    return Field(name, f"[{bar}]", inline=inline)
