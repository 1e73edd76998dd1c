"""
Diffing engine driving the mutation protocol.

Each pass expands function components while the session is marked current,
then walks the new description next to the previously rendered one, position
by position: a matching type is updated in place, anything else is created
and inserted where the old entry was, and surplus entries are removed. All
operations of a pass run inside one commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from document_nodes import Node
from elements import Element
from mutation_protocol import HostConfig, resolve_kind

if TYPE_CHECKING:
    from render_session import RenderSession

logger = logging.getLogger(__name__)

TEXT_TYPE = "text"


@dataclass
class Fiber:
    """What was rendered at one position: its description and its node."""
    type: str
    props: dict[str, Any]
    node: Node
    children: list["Fiber"] = field(default_factory=list)


def _type_of(description: Element | str) -> str:
    return TEXT_TYPE if isinstance(description, str) else description.type


class Reconciler:
    def __init__(self, session: RenderSession, host_config: HostConfig | None = None) -> None:
        self.session = session
        self.host = host_config or HostConfig()
        self.fibers: list[Fiber] = []

    def render(self, element: Any) -> None:
        self.host.get_root_host_context(self.session)
        descriptions = self.expand(element)
        fibers: list[Fiber] = []
        try:
            with self.host.commit(self.session):
                self._reconcile(None, self.fibers, descriptions, fibers)
        finally:
            self.fibers = fibers
        logger.debug(f"Rendered {len(self.fibers)} top-level node(s)")

    def unmount(self) -> None:
        with self.host.commit(self.session):
            self.host.clear_container(self.session)
        self.fibers = []

    def expand(self, element: Any) -> list[Element | str]:
        """Flatten ``element`` into host descriptions, calling function components."""
        if element is None or isinstance(element, bool):
            return []
        if isinstance(element, str):
            return [element]
        if isinstance(element, (int, float)):
            return [str(element)]
        if isinstance(element, (list, tuple)):
            return [description for item in element for description in self.expand(item)]
        if isinstance(element, Element):
            if callable(element.type):
                props = dict(element.props)
                if element.children:
                    props["children"] = element.children
                return self.expand(element.type(**props))

            kind = resolve_kind(element.type)
            children = tuple(self.expand(list(element.children)))
            return [Element(type=kind.value, props=element.props, children=children)]

        raise TypeError(f"Cannot render object of type {type(element).__name__}")

    # diffing

    def _reconcile(
        self,
        parent: Node | None,
        old: list[Fiber],
        new: list[Element | str],
        fibers: list[Fiber],
    ) -> None:
        """Place ``new`` under ``parent`` and fill ``fibers`` with what it now holds.

        When an operation raises, ``fibers`` still matches the tree: the
        entries placed so far followed by the old entries not reached yet.
        """
        try:
            for index, description in enumerate(new):
                previous = old[index] if index < len(old) else None

                if previous is not None and previous.type == _type_of(description):
                    self._update(previous, description)
                    fibers.append(previous)
                    continue

                fiber = self._create(description)
                if previous is not None:
                    self._insert_before(parent, fiber.node, previous.node)
                    self._remove(parent, previous.node)
                else:
                    self._append(parent, fiber.node)
                fibers.append(fiber)
        except Exception:
            fibers.extend(old[len(fibers):])
            raise

        stale = old[len(new):]
        for position, fiber in enumerate(stale):
            try:
                self._remove(parent, fiber.node)
            except Exception:
                fibers.extend(stale[position:])
                raise

    def _create(self, description: Element | str) -> Fiber:
        if isinstance(description, str):
            node = self.host.create_text_instance(description)
            return Fiber(type=TEXT_TYPE, props={"text": description}, node=node)

        node = self.host.create_instance(description.type, description.props)
        fiber = Fiber(type=description.type, props=description.props, node=node)
        for child in description.children:
            child_fiber = self._create(child)
            self.host.append_initial_child(node, child_fiber.node)
            fiber.children.append(child_fiber)
        return fiber

    def _update(self, fiber: Fiber, description: Element | str) -> None:
        if isinstance(description, str):
            old_text = fiber.props["text"]
            if old_text != description:
                self.host.commit_text_update(fiber.node, old_text, description)
                fiber.props = {"text": description}
            return

        patch = self.host.prepare_update(description.type, fiber.props, description.props)
        if patch is not None:
            self.host.commit_update(fiber.node, patch)
        fiber.props = description.props
        children: list[Fiber] = []
        try:
            self._reconcile(fiber.node, fiber.children, list(description.children), children)
        finally:
            fiber.children = children

    # placement, container-scoped when there is no parent

    def _append(self, parent: Node | None, node: Node) -> None:
        if parent is None:
            self.host.append_child_to_container(self.session, node)
        else:
            self.host.append_child(parent, node)

    def _insert_before(self, parent: Node | None, node: Node, before: Node) -> None:
        if parent is None:
            self.host.insert_in_container_before(self.session, node, before)
        else:
            self.host.insert_before(parent, node, before)

    def _remove(self, parent: Node | None, node: Node) -> None:
        if parent is None:
            self.host.remove_child_from_container(self.session, node)
        else:
            self.host.remove_child(parent, node)
