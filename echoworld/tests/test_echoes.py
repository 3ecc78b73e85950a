import unittest
from unittest.mock import patch

from sqlalchemy.orm import Session

from echoworld import echoes, interactions, profiles
from echoworld.db import Database, EchoTagRow
from echoworld.errors import NotFound, PermissionDenied, ValidationFailed
from echoworld.notifications import fetch_notifications
from echoworld.realtime import InMemoryRealtimeHub
from echoworld.storage import InMemoryStorageClient, UploadedFile
from echoworld.tests.helpers import CONTENT, make_echo, make_user


class CreateEchoTests(unittest.TestCase):
    def setUp(self):
        self.db = Database.in_memory()
        self.user = make_user(self.db)

    def test_defaults_and_tags(self):
        record = make_echo(
            self.db,
            self.user,
            title="  Dawn  ",
            emotion="Hope",
            theme_tags=[" Sea ", "sea", "Dawn"],
            lng=2.35,
            lat=48.85,
        )
        self.assertEqual(record.status, "published")
        self.assertEqual(record.visibility, "world")
        self.assertEqual(record.emotion, "hope")
        self.assertEqual(record.title, "Dawn")
        self.assertEqual(record.theme_tags, ["sea", "dawn"])
        with self.db.Session() as session:
            tags = sorted(t.tag for t in session.query(EchoTagRow).all())
        self.assertEqual(tags, ["dawn", "sea"])

    def test_defaults_follow_user_settings(self):
        profiles.update_user_settings(
            self.db, self.user, default_echo_visibility="local", default_anonymous=True
        )
        record = make_echo(self.db, self.user)
        self.assertEqual(record.visibility, "local")
        self.assertTrue(record.is_anonymous)

    def test_validation(self):
        cases = [
            {"content": "   "},
            {"content": "too short"},
            {"content": "x" * 2201},
            {"emotion": "anger"},
            {"status": "archived"},
            {"visibility": "everyone"},
            {"lng": 10.0},
            {"lng": 200.0, "lat": 10.0},
            {"title": "t" * 121},
            {"theme_tags": [f"tag{i}" for i in range(13)]},
        ]
        for overrides in cases:
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValidationFailed):
                    make_echo(self.db, self.user, **overrides)


class EchoVisibilityTests(unittest.TestCase):
    def setUp(self):
        self.db = Database.in_memory()
        self.owner = make_user(self.db, "owner@example.com")
        self.viewer = make_user(self.db, "viewer@example.com")

    def test_private_and_draft_are_owner_only(self):
        private = make_echo(self.db, self.owner, visibility="private")
        draft = make_echo(self.db, self.owner, status="draft")
        for echo in (private, draft):
            self.assertIsNone(echoes.get_echo_by_id(self.db, echo.id, self.viewer))
            self.assertIsNone(echoes.get_echo_by_id(self.db, echo.id))
            self.assertEqual(echoes.get_echo_by_id(self.db, echo.id, self.owner)["id"], echo.id)

    def test_anonymous_author_is_hidden(self):
        echo = make_echo(self.db, self.owner, is_anonymous=True)
        self.assertIsNone(echoes.get_echo_by_id(self.db, echo.id, self.viewer)["user_id"])
        self.assertEqual(echoes.get_echo_by_id(self.db, echo.id, self.owner)["user_id"], self.owner)

    def test_delete_is_owner_only(self):
        echo = make_echo(self.db, self.owner)
        with self.assertRaises(PermissionDenied):
            echoes.delete_echo(self.db, self.viewer, echo.id)
        echoes.delete_echo(self.db, self.owner, echo.id)
        self.assertIsNone(echoes.get_echo_by_id(self.db, echo.id, self.owner))
        with self.assertRaises(NotFound):
            echoes.delete_echo(self.db, self.owner, echo.id)

    def test_media_upload(self):
        storage = InMemoryStorageClient()
        echo = make_echo(self.db, self.owner)
        files = [UploadedFile(f"p{i}.png", "image/png", b"img") for i in range(4)]
        urls = echoes.upload_echo_media(self.db, storage, self.owner, echo.id, files)
        self.assertEqual(len(urls), 3)
        self.assertTrue(all(f"echo-media/{echo.id}/" in url for url in urls))
        self.assertEqual(echoes.get_echo_by_id(self.db, echo.id)["image_urls"], urls)

        with self.assertRaises(ValidationFailed):
            echoes.upload_echo_media(
                self.db, storage, self.owner, echo.id,
                [UploadedFile("a.gif", "image/gif", b"gif")],
            )
        with self.assertRaises(PermissionDenied):
            echoes.upload_echo_media(
                self.db, storage, self.viewer, echo.id,
                [UploadedFile("a.png", "image/png", b"png")],
            )

    def test_share_url(self):
        self.assertEqual(echoes.share_url("https://echo.world/", "abc"), "https://echo.world/echo/abc")


class InteractionTests(unittest.TestCase):
    def setUp(self):
        self.db = Database.in_memory()
        self.hub = InMemoryRealtimeHub()
        self.owner = make_user(self.db, "owner@example.com")
        self.fan = make_user(self.db, "fan@example.com")
        self.echo = make_echo(self.db, self.owner)

    def test_like_toggle_is_idempotent(self):
        self.assertTrue(interactions.toggle_like(self.db, self.echo.id, self.fan, True, self.hub))
        self.assertTrue(interactions.toggle_like(self.db, self.echo.id, self.fan, True, self.hub))
        meta = interactions.fetch_like_meta(self.db, [self.echo.id], self.fan)
        self.assertEqual(meta["count_by_id"], {self.echo.id: 1})
        self.assertEqual(meta["liked_by_me_by_id"], {self.echo.id: True})

        self.assertFalse(interactions.toggle_like(self.db, self.echo.id, self.fan, False))
        self.assertFalse(interactions.toggle_like(self.db, self.echo.id, self.fan, False))
        self.assertEqual(interactions.fetch_like_meta(self.db, [self.echo.id])["count_by_id"], {})
        self.assertEqual([n.type for n in fetch_notifications(self.db, self.owner)], ["like"])

    def test_own_like_does_not_notify(self):
        interactions.toggle_like(self.db, self.echo.id, self.owner, True, self.hub)
        self.assertEqual(fetch_notifications(self.db, self.owner), [])

    def test_reactions_meta_is_zero_filled(self):
        other = make_echo(self.db, self.owner)
        interactions.toggle_reaction(self.db, self.echo.id, self.fan, "support", True, self.hub)
        meta = interactions.fetch_reactions_meta(self.db, [self.echo.id, other.id], self.fan)
        self.assertEqual(
            meta["counts_by_echo"][self.echo.id], {"understand": 0, "support": 1, "reflect": 0}
        )
        self.assertEqual(
            meta["counts_by_echo"][other.id], {"understand": 0, "support": 0, "reflect": 0}
        )
        self.assertTrue(meta["by_me_by_echo"][self.echo.id]["support"])
        with self.assertRaises(ValidationFailed):
            interactions.toggle_reaction(self.db, self.echo.id, self.fan, "love", True)

    def test_comments(self):
        received = []
        self.hub.subscribe(f"echo-comments:{self.echo.id}", received.append)
        first = interactions.insert_comment(self.db, self.echo.id, self.fan, " first ", self.hub)
        interactions.insert_comment(self.db, self.echo.id, self.owner, "second", self.hub)

        comments = interactions.fetch_comments(self.db, self.echo.id)
        self.assertEqual([c.content for c in comments], ["second", "first"])
        self.assertEqual(comments[1].author["id"], self.fan)
        self.assertEqual(first.content, "first")
        self.assertEqual(
            set(received[0]["record"]), {"id", "echo_id", "user_id", "created_at"}
        )
        self.assertEqual(received[0]["type"], "comment_insert")
        self.assertEqual(
            interactions.fetch_comments_count_meta(self.db, [self.echo.id, "missing"]),
            {self.echo.id: 2, "missing": 0},
        )
        with self.assertRaises(ValidationFailed):
            interactions.insert_comment(self.db, self.echo.id, self.fan, "   ")

        with self.assertRaises(PermissionDenied):
            interactions.delete_comment(self.db, first.id, self.owner)
        interactions.delete_comment(self.db, first.id, self.fan)
        self.assertEqual(len(interactions.fetch_comments(self.db, self.echo.id)), 1)

    def test_comments_respect_allow_responses(self):
        profiles.update_user_settings(self.db, self.owner, allow_responses=False)
        with self.assertRaises(PermissionDenied):
            interactions.insert_comment(self.db, self.echo.id, self.fan, "hello")

    def test_mirrors(self):
        mirror = interactions.send_mirror(self.db, self.fan, self.echo.id, "I felt this too", self.hub)
        self.assertEqual(mirror["to_user_id"], self.owner)
        with self.assertRaises(ValidationFailed):
            interactions.send_mirror(self.db, self.owner, self.echo.id, "me")
        profiles.update_user_settings(self.db, self.owner, allow_mirrors=False)
        with self.assertRaises(PermissionDenied):
            interactions.send_mirror(self.db, self.fan, self.echo.id, "again")

    def test_interactions_need_a_published_echo(self):
        draft = make_echo(self.db, self.owner, status="draft", content=CONTENT)
        with self.assertRaises(NotFound):
            interactions.toggle_like(self.db, draft.id, self.fan, True)

    def test_private_echo_is_owner_only(self):
        hidden = make_echo(self.db, self.owner, visibility="private")
        interactions.insert_comment(self.db, hidden.id, self.owner, "note to self")
        self.assertTrue(interactions.toggle_like(self.db, hidden.id, self.owner, True))

        attempts = {
            "like": lambda: interactions.toggle_like(self.db, hidden.id, self.fan, True),
            "reaction": lambda: interactions.toggle_reaction(
                self.db, hidden.id, self.fan, "support", True
            ),
            "comment": lambda: interactions.insert_comment(
                self.db, hidden.id, self.fan, "I can see you"
            ),
            "mirror": lambda: interactions.send_mirror(self.db, self.fan, hidden.id, "hi"),
            "anonymous read": lambda: interactions.fetch_comments(self.db, hidden.id),
            "stranger read": lambda: interactions.fetch_comments(
                self.db, hidden.id, viewer_id=self.fan
            ),
        }
        for name, attempt in attempts.items():
            with self.subTest(name), self.assertRaises(NotFound):
                attempt()

        own = interactions.fetch_comments(self.db, hidden.id, viewer_id=self.owner)
        self.assertEqual([c.content for c in own], ["note to self"])
        self.assertEqual(interactions.fetch_comments_count_meta(self.db, [hidden.id]), {hidden.id: 1})

    def test_concurrent_duplicate_reaction(self):
        interactions.toggle_reaction(self.db, self.echo.id, self.fan, "support", True)
        # The existence check misses the row a parallel request just wrote.
        with patch.object(Session, "scalar", return_value=None):
            self.assertTrue(
                interactions.toggle_reaction(self.db, self.echo.id, self.fan, "support", True)
            )
        meta = interactions.fetch_reactions_meta(self.db, [self.echo.id])
        self.assertEqual(meta["counts_by_echo"][self.echo.id]["support"], 1)
        self.assertEqual(len(fetch_notifications(self.db, self.owner)), 1)


if __name__ == "__main__":
    unittest.main()
