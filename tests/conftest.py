"""Shared fixtures: in-memory database, recording transport, bot wiring."""

import os

# settings are read at import time
os.environ.setdefault("TELEGRAM_TOKEN", "123456:test-token")
os.environ.setdefault("ADMIN_SECRET", "s3cret")
os.environ["DATABASE_URL"] = "sqlite://"

import itertools
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from civicbot.bot.handler import Bot
from civicbot.core.config import settings
from civicbot.core.errors import DeliveryError
from civicbot.db import crud
from civicbot.db.session import init_db
from civicbot.services.notify import Broadcaster

ADMIN_SECRET = "s3cret"


class FakeTransport:
    """Records every outbound call; chats in ``fail_chats`` raise DeliveryError."""

    def __init__(self):
        self.sent = []
        self.attempts = []
        self.deleted = []
        self.answers = []
        self.documents = []
        self.webhooks = []
        self.fail_chats = set()
        self.fail_downloads = False
        self._ids = itertools.count(1000)

    def _record(self, kind, chat_id, **payload):
        self.attempts.append((kind, chat_id))
        if chat_id in self.fail_chats:
            raise DeliveryError(f"chat {chat_id} unreachable")
        mid = next(self._ids)
        self.sent.append({"kind": kind, "chat_id": chat_id, "message_id": mid, **payload})
        return mid

    def send_message(self, chat_id, text, reply_markup=None):
        return self._record("text", chat_id, text=text, reply_markup=reply_markup)

    def send_photo(self, chat_id, photo, caption=None, reply_markup=None):
        return self._record("photo", chat_id, media=photo, caption=caption, reply_markup=reply_markup)

    def send_video(self, chat_id, video, caption=None):
        return self._record("video", chat_id, media=video, caption=caption)

    def send_document(self, chat_id, document, caption=None):
        return self._record("document", chat_id, media=document, caption=caption)

    def send_document_bytes(self, chat_id, filename, content, caption=None):
        self.documents.append({"chat_id": chat_id, "filename": filename, "content": content})
        return self._record("document", chat_id, media=filename, caption=caption)

    def delete_message(self, chat_id, message_id):
        self.deleted.append((chat_id, message_id))

    def answer_callback(self, callback_id, text=None):
        self.answers.append((callback_id, text))

    def download_file(self, file_id, dest: Path):
        if self.fail_downloads:
            raise DeliveryError("download failed")
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(b"fake:" + file_id.encode())
        return dest

    def get_updates(self, offset=None, timeout=60):
        return []

    def set_webhook(self, url):
        self.webhooks.append(url)

    def delete_webhook(self):
        self.webhooks.append(None)

    # ---- helpers for assertions

    def texts(self, chat_id=None):
        return [m.get("text") or m.get("caption") for m in self.sent
                if chat_id is None or m["chat_id"] == chat_id]

    def last_text(self, chat_id=None):
        texts = self.texts(chat_id)
        return texts[-1] if texts else None

    def reset(self):
        self.sent.clear()
        self.attempts.clear()
        self.deleted.clear()
        self.answers.clear()


class StubGuard:
    """Quarter-hour guard whose answer the test decides."""

    def __init__(self, fire=False):
        self.fire = fire
        self.calls = 0

    def check_and_fire(self, minute=None):
        self.calls += 1
        return self.fire


class Tg:
    """Builds raw Telegram update payloads."""

    def __init__(self):
        self._ids = itertools.count(1)

    def message(self, user_id, text=None, chat_id=None, chat_type="private", **extra):
        msg = {
            "message_id": next(self._ids),
            "from": {"id": user_id, "is_bot": False, "first_name": f"User{user_id}", "username": f"u{user_id}"},
            "chat": {"id": chat_id if chat_id is not None else user_id, "type": chat_type},
        }
        if text is not None:
            msg["text"] = text
        msg.update(extra)
        return {"update_id": next(self._ids), "message": msg}

    def location(self, user_id, lat, lon, chat_id=None):
        return self.message(user_id, chat_id=chat_id, location={"latitude": lat, "longitude": lon})

    def callback(self, user_id, data, chat_id=None):
        chat = chat_id if chat_id is not None else user_id
        return {
            "update_id": next(self._ids),
            "callback_query": {
                "id": f"cb{next(self._ids)}",
                "from": {"id": user_id, "is_bot": False, "first_name": f"User{user_id}"},
                "data": data,
                "message": {"message_id": next(self._ids), "chat": {"id": chat, "type": "private"}},
            },
        }


@pytest.fixture(autouse=True)
def uploads_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "uploads_dir", str(path))
    return path


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def guard():
    return StubGuard()


@pytest.fixture
def broadcaster(session_factory, transport):
    # run the fanout inline so tests can assert on its result
    return Broadcaster(session_factory, transport, delay=0, spawn=lambda target: target())


@pytest.fixture
def bot(transport, session_factory, guard, broadcaster):
    return Bot(transport, session_factory, guard=guard, broadcaster=broadcaster, admin_secret=ADMIN_SECRET)


@pytest.fixture
def tg():
    return Tg()


@pytest.fixture
def citizen(db):
    user = crud.upsert_user(db, 501, "citizen", "Ivan", None)
    crud.upsert_chat(db, 501, "private")
    return user


@pytest.fixture
def admin(db):
    user = crud.upsert_user(db, 900, "moder", "Olga", None)
    crud.upsert_chat(db, 900, "private")
    crud.promote_to_admin(db, 900)
    db.refresh(user)
    return user
