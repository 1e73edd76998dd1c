import datetime
import unittest
from unittest.mock import Mock

import nextcord
from pydantic import ValidationError

from document_nodes import (
    EmbedNode,
    FieldNode,
    ImageNode,
    MessageNode,
    NodeKind,
    ReactionNode,
    RenderError,
    StructuralValidityError,
    TextNode,
    TimestampNode,
    UnknownElementError,
)
from mutation_protocol import HostConfig, resolve_kind
from render_session import RenderSession, current_session


class TestCreateInstance(unittest.TestCase):
    def setUp(self):
        self.host = HostConfig()

    def test_creates_each_kind_with_attributes(self):
        embed = self.host.create_instance("embed", {"color": 0xABCDEF})
        self.assertIsInstance(embed, EmbedNode)
        self.assertEqual(embed.color, 0xABCDEF)

        field = self.host.create_instance("field", {"inline": True})
        self.assertTrue(field.inline)

        reaction = self.host.create_instance(NodeKind.REACTION, {"emoji": "👍"})
        self.assertEqual(reaction.emoji, "👍")

        author = self.host.create_instance("author", {"icon_url": "https://i"})
        self.assertEqual((author.icon_url, author.url), ("https://i", None))

    def test_defaults_and_ignored_props(self):
        field = self.host.create_instance("field", {"children": ["ignored"], "unknown": 1})
        self.assertFalse(field.inline)
        self.assertEqual(field.children, [])

        message = self.host.create_instance("message")
        self.assertIsInstance(message, MessageNode)

    def test_timestamp_accepts_datetime_and_numbers(self):
        moment = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
        self.assertEqual(self.host.create_instance("timestamp", {"time": moment}).time, moment)
        self.assertEqual(self.host.create_instance("timestamp", {"time": 1700000000}).time, 1700000000)
        self.assertIsInstance(self.host.create_instance("timestamp").time, datetime.datetime)

    def test_reaction_accepts_partial_emoji(self):
        emoji = nextcord.PartialEmoji(name="👍")
        self.assertIs(self.host.create_instance("reaction", {"emoji": emoji}).emoji, emoji)

    def test_props_are_validated_by_type(self):
        with self.assertRaises(ValidationError):
            self.host.create_instance("image", {})
        with self.assertRaises(ValidationError):
            self.host.create_instance("reaction", {"emoji": 42})
        with self.assertRaises(ValidationError):
            self.host.create_instance("reaction", {"emoji": "👍", "on_click": "not callable"})

    def test_unknown_element_type(self):
        with self.assertRaises(UnknownElementError) as cm:
            self.host.create_instance("button", {})
        self.assertEqual(cm.exception.element_type, "button")
        self.assertIn("'button' is not a valid element type", str(cm.exception))
        self.assertIsInstance(cm.exception, RenderError)

    def test_text_and_root_are_not_element_types(self):
        with self.assertRaises(UnknownElementError):
            resolve_kind("text")
        with self.assertRaises(UnknownElementError):
            resolve_kind("root")
        with self.assertRaises(UnknownElementError):
            resolve_kind(None)

    def test_create_text_instance(self):
        self.assertEqual(self.host.create_text_instance("hi"), TextNode("hi"))


class TestUpdates(unittest.TestCase):
    def setUp(self):
        self.host = HostConfig()

    def test_prepare_update_returns_changed_attributes(self):
        patch = self.host.prepare_update(
            "author",
            {"icon_url": "a", "url": "u", "children": ["x"]},
            {"icon_url": "b", "url": "u", "children": ["y"]},
        )
        self.assertEqual(patch, {"icon_url": "b"})

    def test_prepare_update_none_when_unchanged(self):
        self.assertIsNone(self.host.prepare_update("embed", {"color": 5}, {"color": 5}))
        self.assertIsNone(self.host.prepare_update("message", {"children": "a"}, {"children": "b"}))

    def test_removed_prop_falls_back_to_default(self):
        self.assertEqual(self.host.prepare_update("field", {"inline": True}, {}), {"inline": False})
        self.assertEqual(self.host.prepare_update("title", {"url": "x"}, {}), {"url": None})

    def test_callbacks_compare_by_identity(self):
        first = lambda user: None
        second = lambda user: None
        self.assertIsNone(self.host.prepare_update("reaction", {"emoji": "a", "on_click": first}, {"emoji": "a", "on_click": first}))
        self.assertEqual(
            self.host.prepare_update("reaction", {"emoji": "a", "on_click": first}, {"emoji": "a", "on_click": second}),
            {"on_click": second},
        )

    def test_commit_update_assigns_in_place(self):
        embed = EmbedNode(color=1)
        self.host.commit_update(embed, {"color": 2, "not_an_attribute": 3})
        self.assertEqual(embed.color, 2)
        self.assertFalse(hasattr(embed, "not_an_attribute"))

    def test_commit_text_update(self):
        leaf = TextNode("old")
        self.host.commit_text_update(leaf, "old", "new")
        self.assertEqual(leaf.text, "new")

    def test_commit_text_update_rejects_non_text(self):
        with self.assertRaises(StructuralValidityError):
            self.host.commit_text_update(MessageNode(), "", "new")


class TestChildOperations(unittest.TestCase):
    def setUp(self):
        self.host = HostConfig()
        self.session = RenderSession()

    def test_parent_operations(self):
        embed = EmbedNode()
        image = ImageNode("https://a")
        field = FieldNode()
        self.host.append_initial_child(embed, image)
        self.host.insert_before(embed, field, image)
        self.assertEqual(embed.children, [field, image])

        self.host.remove_child(embed, field)
        self.assertEqual(embed.children, [image])

    def test_leaf_parent_is_rejected(self):
        with self.assertRaises(StructuralValidityError) as cm:
            self.host.append_child(ImageNode("https://a"), TextNode("x"))
        self.assertIn("can't have children", str(cm.exception))

    def test_invalid_child_is_rejected(self):
        field = FieldNode()
        with self.assertRaises(StructuralValidityError):
            self.host.append_child(field, ReactionNode("👍"))
        with self.assertRaises(StructuralValidityError):
            self.host.remove_child(field, ReactionNode("👍"))
        self.assertEqual(field.children, [])

    def test_container_operations(self):
        first = MessageNode()
        second = ReactionNode("👍")
        self.host.append_child_to_container(self.session, second)
        self.host.insert_in_container_before(self.session, first, second)
        self.assertEqual(self.session.root.children, [first, second])

        self.host.remove_child_from_container(self.session, first)
        self.assertEqual(self.session.root.children, [second])

        self.host.clear_container(self.session)
        self.assertEqual(self.session.root.children, [])

    def test_container_rejects_invalid_children(self):
        with self.assertRaises(StructuralValidityError):
            self.host.append_child_to_container(self.session, ImageNode("https://a"))
        with self.assertRaises(StructuralValidityError):
            self.host.insert_in_container_before(self.session, MessageNode(), TextNode("x"))
        self.assertEqual(self.session.root.children, [])


class TestCommit(unittest.TestCase):
    def setUp(self):
        self.host = HostConfig()
        self.session = RenderSession()
        self.listener = Mock()
        self.session.on_change(self.listener)

        self.message = MessageNode()
        self.leaf = TextNode("count: 0")
        self.message.append_child(self.leaf)
        self.embed = EmbedNode(color=1)
        with self.host.commit(self.session):
            self.host.append_child_to_container(self.session, self.message)
            self.host.append_child_to_container(self.session, self.embed)
        self.listener.reset_mock()

    def test_unchanged_batch_does_not_notify(self):
        with self.host.commit(self.session):
            patch = self.host.prepare_update("embed", {"color": 1}, {"color": 1})
            self.assertIsNone(patch)
            self.host.commit_update(self.embed, {"color": 1})
            self.host.commit_text_update(self.leaf, "count: 0", "count: 0")

        self.listener.assert_not_called()

    def test_changed_batch_notifies_once(self):
        with self.host.commit(self.session):
            self.host.commit_update(self.embed, {"color": 2})
            self.host.commit_text_update(self.leaf, "count: 0", "count: 1")
            self.host.append_child_to_container(self.session, ReactionNode("👍"))

        self.listener.assert_called_once_with()

    def test_change_reverted_within_batch_does_not_notify(self):
        with self.host.commit(self.session):
            self.host.commit_update(self.embed, {"color": 2})
            self.host.commit_update(self.embed, {"color": 1})

        self.listener.assert_not_called()

    def test_resegmented_text_is_not_a_change(self):
        with self.host.commit(self.session):
            self.message.remove_all_children()
            self.message.append_child(TextNode("count: "))
            self.message.append_child(TextNode("0"))

        self.listener.assert_not_called()

    def test_failed_batch_keeps_applied_operations_and_does_not_notify(self):
        with self.assertRaises(StructuralValidityError):
            with self.host.commit(self.session):
                self.host.commit_update(self.embed, {"color": 2})
                self.host.append_child(self.embed, ReactionNode("👍"))

        self.listener.assert_not_called()
        self.assertEqual(self.embed.color, 2)
        self.assertIsNone(self.session.snapshot)

    def test_reset_without_prepare(self):
        with self.assertRaises(RenderError):
            self.host.reset_after_commit(self.session)

    def test_explicit_brackets(self):
        self.host.prepare_for_commit(self.session)
        self.assertEqual(self.session.snapshot, self.session.root)
        self.assertIsNot(self.session.snapshot, self.session.root)

        self.host.commit_text_update(self.leaf, "count: 0", "count: 5")
        self.host.reset_after_commit(self.session)

        self.listener.assert_called_once_with()
        self.assertIsNone(self.session.snapshot)

    def test_root_host_context_marks_session_current(self):
        other = RenderSession()
        self.host.get_root_host_context(other)
        self.assertIs(current_session(), other)


class TestTimestampUpdate(unittest.TestCase):
    def test_equivalent_time_is_not_a_change(self):
        host = HostConfig()
        session = RenderSession()
        listener = Mock()
        session.on_change(listener)
        moment = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
        embed = EmbedNode()
        timestamp = TimestampNode(moment)
        embed.append_child(timestamp)

        with host.commit(session):
            host.append_child_to_container(session, embed)
        listener.reset_mock()

        with host.commit(session):
            host.commit_update(timestamp, {"time": moment.timestamp()})

        listener.assert_not_called()


if __name__ == '__main__':
    unittest.main()
