"""
Shared fixtures for the EchoWorld tests.
"""

from __future__ import annotations

from echoworld import accounts
from echoworld.echoes import create_echo

PASSWORD = "correct-horse"
CONTENT = "A long enough story about the sea at dawn."


def make_user(db, email: str = "user@example.com", password: str = PASSWORD) -> str:
    info = accounts.signup(db, email, password, "1990-05-01", True)
    return info.user_id


def make_echo(db, user_id: str, **overrides):
    values = {"content": CONTENT}
    values.update(overrides)
    return create_echo(db, user_id, **values)
