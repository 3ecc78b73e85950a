import unittest

from echoworld import messages
from echoworld.db import (
    ConversationMemberRow,
    ConversationRow,
    Database,
    MessageReactionRecord,
)
from echoworld.errors import NotFound, PermissionDenied, ValidationFailed
from echoworld.notifications import (
    fetch_notifications,
    fetch_unread_counts,
    fetch_unread_messages_count,
    mark_all_notifications_read,
    mark_notification_read,
)
from echoworld.realtime import InMemoryRealtimeHub
from echoworld.tests.helpers import make_echo, make_user


class DirectConversationTests(unittest.TestCase):
    def setUp(self):
        self.db = Database.in_memory()
        self.alice = make_user(self.db, "alice@example.com")
        self.bob = make_user(self.db, "bob@example.com")
        self.carol = make_user(self.db, "carol@example.com")

    def test_reuses_existing_conversation(self):
        first, created = messages.start_direct_conversation(self.db, self.alice, self.bob)
        self.assertTrue(created)
        again, created_again = messages.start_direct_conversation(self.db, self.bob, self.alice)
        self.assertEqual(again, first)
        self.assertFalse(created_again)

        members = messages.fetch_conversation_members(self.db, first, self.alice)
        self.assertEqual({m.user_id for m in members}, {self.alice, self.bob})

    def test_any_direct_conversation_is_reused_for_a_new_echo(self):
        echo = make_echo(self.db, self.bob)
        plain, _ = messages.start_direct_conversation(self.db, self.alice, self.bob)
        about_echo, created = messages.start_direct_conversation(
            self.db, self.alice, self.bob, echo.id
        )
        self.assertEqual(about_echo, plain)
        self.assertFalse(created)

    def test_prefers_conversation_about_the_same_echo(self):
        echo = make_echo(self.db, self.bob)
        with self.db.Session() as session:
            session.add(
                ConversationRow(
                    id="about-echo", type="direct", echo_id=echo.id,
                    created_by=self.alice, created_at=1.0, updated_at=1.0,
                )
            )
            for member in (self.alice, self.bob):
                session.add(
                    ConversationMemberRow(
                        conversation_id="about-echo", user_id=member,
                        role="member", joined_at=1.0,
                    )
                )
            session.commit()
        plain, created = messages.start_direct_conversation(self.db, self.alice, self.bob)
        self.assertTrue(created)

        found, created = messages.start_direct_conversation(
            self.db, self.alice, self.bob, echo.id
        )
        self.assertEqual(found, "about-echo")
        self.assertFalse(created)
        found, _ = messages.start_direct_conversation(self.db, self.alice, self.bob)
        self.assertEqual(found, plain)

    def test_other_pairs_get_their_own_conversation(self):
        ab, _ = messages.start_direct_conversation(self.db, self.alice, self.bob)
        ac, created = messages.start_direct_conversation(self.db, self.alice, self.carol)
        self.assertTrue(created)
        self.assertNotEqual(ab, ac)
        self.assertEqual(len(messages.fetch_conversations_for_user(self.db, self.alice)), 2)

    def test_rejects_self_and_unknown_users(self):
        with self.assertRaises(ValidationFailed):
            messages.start_direct_conversation(self.db, self.alice, self.alice)
        with self.assertRaises(NotFound):
            messages.start_direct_conversation(self.db, self.alice, "nobody")


class MessageTests(unittest.TestCase):
    def setUp(self):
        self.db = Database.in_memory()
        self.hub = InMemoryRealtimeHub()
        self.alice = make_user(self.db, "alice@example.com")
        self.bob = make_user(self.db, "bob@example.com")
        self.outsider = make_user(self.db, "eve@example.com")
        self.conversation, _ = messages.start_direct_conversation(self.db, self.alice, self.bob)

    def test_send_publishes_to_each_member(self):
        record = messages.send_message(
            self.db, self.conversation, self.alice, "  hello  ", hub=self.hub
        )
        self.assertEqual(record.content, "hello")
        channels = [channel for channel, event in self.hub.published if event["type"] == "message_insert"]
        self.assertEqual(
            sorted(channels), sorted([f"messages:{self.alice}", f"messages:{self.bob}"])
        )
        self.assertNotIn(f"messages:{self.outsider}", channels)
        notes = fetch_notifications(self.db, self.bob)
        self.assertEqual([n.type for n in notes], ["message"])
        self.assertEqual(fetch_notifications(self.db, self.alice), [])

    def test_membership_is_required(self):
        with self.assertRaises(PermissionDenied):
            messages.send_message(self.db, self.conversation, self.outsider, "hi")
        with self.assertRaises(PermissionDenied):
            messages.fetch_messages(self.db, self.conversation, self.outsider)
        with self.assertRaises(NotFound):
            messages.fetch_messages(self.db, "missing", self.alice)

    def test_empty_message_rejected(self):
        with self.assertRaises(ValidationFailed):
            messages.send_message(self.db, self.conversation, self.alice, "   ")

    def test_history_and_unread_counts(self):
        messages.send_message(self.db, self.conversation, self.alice, "one")
        second = messages.send_message(self.db, self.conversation, self.alice, "two")
        messages.send_message(self.db, self.conversation, self.bob, "reply")
        messages.delete_message(self.db, second.id, self.alice)

        history = messages.fetch_messages(self.db, self.conversation, self.bob)
        self.assertEqual([m.content for m in history], ["one", "reply"])

        # Bob replied after Alice's messages, so nothing is unread for him.
        self.assertEqual(fetch_unread_messages_count(self.db, self.bob), 0)
        self.assertEqual(fetch_unread_messages_count(self.db, self.alice), 1)
        messages.mark_conversation_read(self.db, self.conversation, self.alice)
        self.assertEqual(fetch_unread_messages_count(self.db, self.alice), 0)

    def test_only_sender_can_delete(self):
        record = messages.send_message(self.db, self.conversation, self.alice, "mine")
        with self.assertRaises(PermissionDenied):
            messages.delete_message(self.db, record.id, self.bob)


class MessageReactionTests(unittest.TestCase):
    def setUp(self):
        self.db = Database.in_memory()
        self.alice = make_user(self.db, "alice@example.com")
        self.bob = make_user(self.db, "bob@example.com")
        conversation, _ = messages.start_direct_conversation(self.db, self.alice, self.bob)
        self.message = messages.send_message(self.db, conversation, self.alice, "hi")

    def test_toggle(self):
        added, reaction = messages.toggle_message_reaction(self.db, self.message.id, self.bob, "👍")
        self.assertTrue(added)
        self.assertEqual(reaction.emoji, "👍")
        added, reaction = messages.toggle_message_reaction(self.db, self.message.id, self.bob, "👍")
        self.assertFalse(added)
        self.assertIsNone(reaction)
        self.assertEqual(messages.fetch_message_reactions(self.db, self.message.id, self.bob), [])

        with self.assertRaises(ValidationFailed):
            messages.toggle_message_reaction(self.db, self.message.id, self.bob, " ")

    def test_outsider_cannot_react(self):
        eve = make_user(self.db, "eve@example.com")
        with self.assertRaises(PermissionDenied):
            messages.toggle_message_reaction(self.db, self.message.id, eve, "👍")

    def test_batch_fetch(self):
        messages.toggle_message_reaction(self.db, self.message.id, self.bob, "🔥")
        batch = messages.fetch_message_reactions_batch(self.db, [self.message.id, "other"])
        self.assertEqual(list(batch), [self.message.id])
        self.assertEqual(batch[self.message.id][0].emoji, "🔥")

    def test_group_reactions(self):
        reactions = [
            MessageReactionRecord("1", "m", "u1", "🔥", 1.0),
            MessageReactionRecord("2", "m", "u2", "👍", 2.0),
            MessageReactionRecord("3", "m", "u3", "👍", 3.0),
        ]
        groups = messages.group_reactions(reactions, "u2")
        self.assertEqual(
            groups,
            [
                {"emoji": "👍", "count": 2, "user_ids": ["u2", "u3"], "has_current_user": True},
                {"emoji": "🔥", "count": 1, "user_ids": ["u1"], "has_current_user": False},
            ],
        )


class NotificationTests(unittest.TestCase):
    def setUp(self):
        self.db = Database.in_memory()
        self.alice = make_user(self.db, "alice@example.com")
        self.bob = make_user(self.db, "bob@example.com")
        conversation, _ = messages.start_direct_conversation(self.db, self.alice, self.bob)
        messages.send_message(self.db, conversation, self.alice, "one")
        messages.send_message(self.db, conversation, self.alice, "two")

    def test_mark_read(self):
        self.assertEqual(
            fetch_unread_counts(self.db, self.bob),
            {"unread_messages": 2, "unread_notifications": 2},
        )
        newest = fetch_notifications(self.db, self.bob)[0]
        with self.assertRaises(NotFound):
            mark_notification_read(self.db, newest.id, self.alice)
        mark_notification_read(self.db, newest.id, self.bob)
        self.assertEqual(fetch_unread_counts(self.db, self.bob)["unread_notifications"], 1)
        self.assertEqual(mark_all_notifications_read(self.db, self.bob), 1)
        self.assertEqual(fetch_unread_counts(self.db, self.bob)["unread_notifications"], 0)


if __name__ == "__main__":
    unittest.main()
