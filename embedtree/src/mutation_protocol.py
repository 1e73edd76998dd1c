"""
Mutation protocol between a diffing engine and the render tree.

``HostConfig`` is the only code that creates or restructures nodes. A diffing
engine brackets its operations with ``prepare_for_commit`` /
``reset_after_commit`` (or the ``commit`` context manager); the session is
notified at most once per batch, and only when the tree actually changed.

Batches are not transactional: if an operation raises, the operations already
applied stay applied and no change notification is sent for the batch.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

from document_nodes import (
    NODE_TYPES,
    Node,
    NodeKind,
    ParentNode,
    RenderError,
    StructuralValidityError,
    TextNode,
    UnknownElementError,
)
from schemas import PROPS_SCHEMAS

if TYPE_CHECKING:
    from render_session import RenderSession

logger = logging.getLogger(__name__)


def resolve_kind(element_type: Any) -> NodeKind:
    """Map an element type tag to a node kind that ``create_instance`` can build."""
    if isinstance(element_type, NodeKind):
        kind = element_type
    elif isinstance(element_type, str):
        kind = NodeKind.from_str(element_type)
    else:
        kind = None

    if kind is None or kind not in NODE_TYPES:
        raise UnknownElementError(element_type)
    return kind


def _same_value(old: Any, new: Any) -> bool:
    return old is new or (type(old) is type(new) and old == new)


class HostConfig:
    """Operations that bring a render tree from one description to the next."""

    # create

    def create_instance(self, element_type: str | NodeKind, props: dict[str, Any] | None = None) -> Node:
        kind = resolve_kind(element_type)
        attributes = PROPS_SCHEMAS[kind].model_validate(props or {}).attributes()
        return NODE_TYPES[kind](**attributes)

    def create_text_instance(self, text: str) -> TextNode:
        return TextNode(text)

    # update

    def prepare_update(
        self,
        element_type: str | NodeKind,
        old_props: dict[str, Any],
        new_props: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Return the attributes whose value changed, or None when nothing did."""
        schema = PROPS_SCHEMAS[resolve_kind(element_type)]
        old = schema.model_validate(old_props).attributes()
        new = schema.model_validate(new_props).attributes()

        patch = {name: value for name, value in new.items() if not _same_value(old.get(name), value)}
        return patch or None

    def commit_update(self, instance: Node, patch: dict[str, Any]) -> None:
        for name, value in patch.items():
            if name in instance.ATTRIBUTES:
                setattr(instance, name, value)

    def commit_text_update(self, instance: Node, old_text: str, new_text: str) -> None:
        if not isinstance(instance, TextNode):
            raise StructuralValidityError(
                NodeKind.TEXT.value,
                instance.kind.value,
                reason=f"elements of type '{instance.kind.value}' have no text content",
            )
        instance.text = new_text

    # children

    def _check_parent(self, parent: Node, child: Node) -> ParentNode:
        if not isinstance(parent, ParentNode):
            child_kind = child.kind.value if isinstance(child, Node) else type(child).__name__
            raise StructuralValidityError(
                child_kind,
                parent.kind.value,
                reason=f"elements of type '{parent.kind.value}' can't have children",
            )
        parent.check_child(child)
        return parent

    def append_initial_child(self, parent: Node, child: Node) -> None:
        self._check_parent(parent, child).append_child(child)

    def append_child(self, parent: Node, child: Node) -> None:
        self._check_parent(parent, child).append_child(child)

    def insert_before(self, parent: Node, child: Node, before: Node) -> None:
        self._check_parent(parent, child).prepend_child(child, before)

    def remove_child(self, parent: Node, child: Node) -> None:
        self._check_parent(parent, child).remove_child(child)

    # container

    def append_child_to_container(self, session: RenderSession, child: Node) -> None:
        session.root.check_child(child)
        session.root.append_child(child)

    def insert_in_container_before(self, session: RenderSession, child: Node, before: Node) -> None:
        session.root.check_child(child)
        session.root.check_child(before)
        session.root.prepend_child(child, before)

    def remove_child_from_container(self, session: RenderSession, child: Node) -> None:
        session.root.check_child(child)
        session.root.remove_child(child)

    def clear_container(self, session: RenderSession) -> None:
        session.root.remove_all_children()

    # commit

    def prepare_for_commit(self, session: RenderSession) -> None:
        session.snapshot = session.root.clone()

    def reset_after_commit(self, session: RenderSession) -> None:
        snapshot, session.snapshot = session.snapshot, None
        if snapshot is None:
            raise RenderError("reset_after_commit called without a matching prepare_for_commit")

        if session.root == snapshot:
            logger.debug("Commit produced no change")
            return

        logger.debug("Commit changed the tree, notifying listeners")
        session.emit_change()

    @contextmanager
    def commit(self, session: RenderSession) -> Iterator[None]:
        """Bracket a batch of operations as a single change-detection unit."""
        self.prepare_for_commit(session)
        try:
            yield
        except Exception:
            session.snapshot = None
            raise
        self.reset_after_commit(session)

    # context

    def get_root_host_context(self, session: RenderSession) -> None:
        """Mark ``session`` as the one the current construction pass builds for."""
        session.activate()
