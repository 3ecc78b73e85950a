import io
import time
import unittest
import zipfile

from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from echoworld.app import create_app
from echoworld.db import Database
from echoworld.dependencies import (
    get_db,
    get_presence_tracker,
    get_realtime_hub,
    get_storage_client,
    get_typing_tracker,
)
from echoworld.presence import PresenceTracker, TypingTracker
from echoworld.realtime import InMemoryRealtimeHub, messages_channel
from echoworld.storage import InMemoryStorageClient
from echoworld.tests.helpers import CONTENT, PASSWORD


class EchoWorldApiTests(unittest.TestCase):
    def setUp(self):
        self.db = Database.in_memory()
        self.storage = InMemoryStorageClient()
        self.hub = InMemoryRealtimeHub()
        self.presence = PresenceTracker()
        self.typing = TypingTracker()
        app = create_app()
        app.dependency_overrides[get_db] = lambda: self.db
        app.dependency_overrides[get_storage_client] = lambda: self.storage
        app.dependency_overrides[get_realtime_hub] = lambda: self.hub
        app.dependency_overrides[get_presence_tracker] = lambda: self.presence
        app.dependency_overrides[get_typing_tracker] = lambda: self.typing
        self.client = TestClient(app)

    def signup(self, email):
        response = self.client.post(
            "/api/auth/signup",
            json={
                "email": email,
                "password": PASSWORD,
                "date_of_birth": "1990-05-01",
                "tos_accepted": True,
            },
        )
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        return payload["user_id"], {"Authorization": f"Bearer {payload['token']}"}

    def test_signup_login_and_me(self):
        user_id, headers = self.signup("me@example.com")
        me = self.client.get("/api/auth/me", headers=headers)
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["user_id"], user_id)
        self.assertEqual(me.json()["email"], "me@example.com")

        login = self.client.post(
            "/api/auth/login", json={"email": "ME@example.com", "password": PASSWORD}
        )
        self.assertEqual(login.status_code, 200)
        self.assertEqual(login.json()["user_id"], user_id)

        self.client.post("/api/auth/logout", headers=headers)
        self.assertEqual(self.client.get("/api/auth/me", headers=headers).status_code, 401)

    def test_error_payloads(self):
        response = self.client.get("/api/auth/me")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(
            response.json(),
            {"ok": False, "error": "UNAUTHENTICATED", "detail": "Authentication required"},
        )

        response = self.client.post(
            "/api/auth/signup",
            json={"email": "kid@example.com", "password": PASSWORD, "tos_accepted": True},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "VALIDATION_FAILED")

        bad_login = self.client.post(
            "/api/auth/login", json={"email": "nobody@example.com", "password": "x" * 8}
        )
        self.assertEqual(bad_login.status_code, 401)
        self.assertEqual(bad_login.json()["error"], "INVALID_CREDENTIALS")

    def test_handles(self):
        _, headers = self.signup("me@example.com")
        _, other_headers = self.signup("other@example.com")
        check = self.client.get("/api/handle/check", params={"handle": "@Sea_Lover"})
        self.assertTrue(check.json()["available"])

        update = self.client.put(
            "/api/profile/handle", json={"handle": "@Sea_Lover"}, headers=headers
        )
        self.assertEqual(update.json()["handle"], "sea_lover")
        self.assertFalse(
            self.client.get("/api/handle/check", params={"handle": "sea_lover"}).json()["available"]
        )

        taken = self.client.put(
            "/api/profile/handle", json={"handle": "sea_lover"}, headers=other_headers
        )
        self.assertEqual(taken.status_code, 409)
        self.assertEqual(taken.json()["error"], "HANDLE_TAKEN")

        profile = self.client.get("/api/profiles/sea_lover")
        self.assertEqual(profile.status_code, 200)

    def test_echo_lifecycle(self):
        _, headers = self.signup("author@example.com")
        _, reader_headers = self.signup("reader@example.com")

        created = self.client.post(
            "/api/echoes",
            json={"content": CONTENT, "emotion": "hope", "lng": 2.35, "lat": 48.85},
            headers=headers,
        )
        self.assertEqual(created.status_code, 201)
        echo_id = created.json()["id"]
        self.assertTrue(created.json()["share_url"].endswith(f"/echo/{echo_id}"))

        short = self.client.post("/api/echoes", json={"content": "tiny"}, headers=headers)
        self.assertEqual(short.status_code, 400)

        like = self.client.put(
            f"/api/echoes/{echo_id}/like", json={"liked": True}, headers=reader_headers
        )
        self.assertEqual(like.json(), {"liked": True})
        comment = self.client.post(
            f"/api/echoes/{echo_id}/comments", json={"content": "Lovely"}, headers=reader_headers
        )
        self.assertEqual(comment.status_code, 201)

        meta = self.client.post(
            "/api/echoes/meta", json={"echo_ids": [echo_id]}, headers=reader_headers
        ).json()
        self.assertEqual(meta["likes"]["count_by_id"][echo_id], 1)
        self.assertTrue(meta["likes"]["liked_by_me_by_id"][echo_id])
        self.assertEqual(meta["comments"][echo_id], 1)

        features = self.client.get(
            "/api/map/echoes", params={"bbox": "0,45,5,50"}
        ).json()["features"]
        self.assertEqual([f["properties"]["id"] for f in features], [echo_id])
        self.assertEqual(
            self.client.get("/api/map/echoes", params={"bbox": "1,2,3"}).status_code, 400
        )

        notifications = self.client.get("/api/notifications", headers=headers).json()
        self.assertEqual(
            sorted(n["type"] for n in notifications["notifications"]), ["comment", "like"]
        )

        forbidden = self.client.delete(f"/api/echoes/{echo_id}", headers=reader_headers)
        self.assertEqual(forbidden.status_code, 403)
        self.assertEqual(
            self.client.delete(f"/api/echoes/{echo_id}", headers=headers).status_code, 200
        )
        self.assertEqual(self.client.get(f"/api/echoes/{echo_id}").status_code, 404)

    def test_private_echo_hides_comments_and_interactions(self):
        _, owner = self.signup("owner@example.com")
        _, stranger = self.signup("stranger@example.com")
        echo_id = self.client.post(
            "/api/echoes", json={"content": CONTENT, "visibility": "private"}, headers=owner
        ).json()["id"]
        self.client.post(
            f"/api/echoes/{echo_id}/comments", json={"content": "note to self"}, headers=owner
        )

        own = self.client.get(f"/api/echoes/{echo_id}/comments", headers=owner)
        self.assertEqual([c["content"] for c in own.json()["comments"]], ["note to self"])
        for headers in ({}, stranger):
            listing = self.client.get(f"/api/echoes/{echo_id}/comments", headers=headers)
            self.assertEqual(listing.status_code, 404)
            self.assertEqual(listing.json()["error"], "NOT_FOUND")

        like = self.client.put(
            f"/api/echoes/{echo_id}/like", json={"liked": True}, headers=stranger
        )
        self.assertEqual(like.status_code, 404)
        comment = self.client.post(
            f"/api/echoes/{echo_id}/comments", json={"content": "hi"}, headers=stranger
        )
        self.assertEqual(comment.status_code, 404)

    def test_direct_messages(self):
        alice_id, alice = self.signup("alice@example.com")
        bob_id, bob = self.signup("bob@example.com")
        _, eve = self.signup("eve@example.com")

        created = self.client.post(
            "/api/conversations/create", json={"other_user_id": bob_id}, headers=alice
        ).json()
        self.assertTrue(created["created"])
        conversation_id = created["conversation_id"]
        again = self.client.post(
            "/api/conversations/create", json={"other_user_id": alice_id}, headers=bob
        ).json()
        self.assertEqual(again["conversation_id"], conversation_id)
        self.assertFalse(again["created"])

        sent = self.client.post(
            f"/api/conversations/{conversation_id}/messages",
            json={"content": "hi bob"},
            headers=alice,
        )
        self.assertEqual(sent.status_code, 201)
        message_id = sent.json()["id"]
        self.assertIn(messages_channel(bob_id), [channel for channel, _ in self.hub.published])

        self.client.post(
            f"/api/messages/{message_id}/reactions", json={"emoji": "👍"}, headers=bob
        )
        history = self.client.get(
            f"/api/conversations/{conversation_id}/messages", headers=bob
        ).json()["messages"]
        self.assertEqual([m["content"] for m in history], ["hi bob"])
        self.assertEqual(history[0]["reactions"][0]["emoji"], "👍")
        self.assertTrue(history[0]["reactions"][0]["has_current_user"])

        unread = self.client.get("/api/notifications/unread", headers=bob).json()
        self.assertEqual(unread, {"unread_messages": 1, "unread_notifications": 1})
        self.client.post(f"/api/conversations/{conversation_id}/read", headers=bob)
        unread = self.client.get("/api/notifications/unread", headers=bob).json()
        self.assertEqual(unread["unread_messages"], 0)

        outsider = self.client.get(
            f"/api/conversations/{conversation_id}/messages", headers=eve
        )
        self.assertEqual(outsider.status_code, 403)

    def test_attachments_upload(self):
        _, headers = self.signup("me@example.com")
        response = self.client.post(
            "/api/messages/attachments",
            files=[("files", ("Scan.pdf", b"%PDF-1.4", "application/pdf"))],
            headers=headers,
        )
        self.assertEqual(response.status_code, 201)
        attachment = response.json()["attachments"][0]
        self.assertEqual(attachment["type"], "application/pdf")
        self.assertIn(attachment["path"], self.storage.stored_objects)

    def test_typing_indicators(self):
        _, alice = self.signup("alice@example.com")
        bob_id, bob = self.signup("bob@example.com")
        conversation_id = self.client.post(
            "/api/conversations/create", json={"other_user_id": bob_id}, headers=alice
        ).json()["conversation_id"]

        self.client.post(
            f"/api/conversations/{conversation_id}/typing",
            json={"typing": True, "display_name": "Alice"},
            headers=alice,
        )
        typing = self.client.get(
            f"/api/conversations/{conversation_id}/typing", headers=bob
        ).json()
        self.assertEqual([u["display_name"] for u in typing["typing"]], ["Alice"])
        mine = self.client.get(
            f"/api/conversations/{conversation_id}/typing", headers=alice
        ).json()
        self.assertEqual(mine["typing"], [])

    def test_export_and_delete_account(self):
        _, headers = self.signup("me@example.com")
        export = self.client.get("/api/account/export", headers=headers)
        self.assertEqual(export.status_code, 200)
        self.assertEqual(export.headers["content-type"], "application/zip")
        self.assertIn("attachment;", export.headers["content-disposition"])
        with zipfile.ZipFile(io.BytesIO(export.content)) as archive:
            self.assertIn("data.json", archive.namelist())

        wrong = self.client.post(
            "/api/account/delete", json={"password": "not-my-password"}, headers=headers
        )
        self.assertEqual(wrong.json()["error"], "INVALID_PASSWORD")
        deleted = self.client.post(
            "/api/account/delete", json={"password": PASSWORD}, headers=headers
        )
        self.assertEqual(deleted.json(), {"ok": True})
        self.assertEqual(self.client.get("/api/auth/me", headers=headers).status_code, 401)

    def test_websocket_requires_session(self):
        with self.assertRaises(WebSocketDisconnect) as ctx:
            with self.client.websocket_connect("/api/realtime/ws?token=bogus"):
                pass
        self.assertEqual(ctx.exception.code, 4401)

    def test_websocket_streams_inserts(self):
        user_id, headers = self.signup("me@example.com")
        token = headers["Authorization"].split(" ", 1)[1]
        channel = messages_channel(user_id)
        with self.client.websocket_connect(f"/api/realtime/ws?token={token}") as socket:
            deadline = time.time() + 5
            while not self.presence.is_online(user_id) and time.time() < deadline:
                time.sleep(0.01)
            self.assertIn(channel, self.hub.listeners)
            self.hub.publish(channel, {"type": "message_insert", "record": {"id": "m1"}})
            self.assertEqual(socket.receive_json()["record"], {"id": "m1"})
        self.assertNotIn(channel, self.hub.listeners)


if __name__ == "__main__":
    unittest.main()
