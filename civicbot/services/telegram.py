# civicbot/services/telegram.py
"""
Thin Telegram Bot API client over ``requests``.

Every call is a single attempt. Anything other than an ``ok`` response
raises ``DeliveryError``; callers decide whether that matters.
"""
import json
import logging
from pathlib import Path
from typing import Optional, Union

import requests

from civicbot.core.errors import DeliveryError

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"
TIMEOUT = 30

# a file_id already known to Telegram, or a file on local disk to upload
MediaSource = Union[str, Path]


class TelegramClient:
    def __init__(self, token: str, base_url: str = API_BASE, timeout: int = TIMEOUT):
        self._token = token
        self._base = base_url.rstrip("/")
        self._timeout = timeout
        self._http = requests.Session()

    def _url(self, method: str) -> str:
        return f"{self._base}/bot{self._token}/{method}"

    def _call(self, method: str, data: Optional[dict] = None, files: Optional[dict] = None, timeout: Optional[int] = None):
        payload = {}
        for key, value in (data or {}).items():
            if value is None:
                continue
            payload[key] = json.dumps(value, ensure_ascii=False) if isinstance(value, (dict, list)) else value
        try:
            r = self._http.post(self._url(method), data=payload, files=files, timeout=timeout or self._timeout)
            body = r.json()
        except (requests.RequestException, ValueError) as e:
            # the request URL carries the token, keep it out of the log
            raise DeliveryError(f"{method} failed: {type(e).__name__}") from None
        if not body.get("ok"):
            raise DeliveryError(f"{method} failed: {body.get('description', r.status_code)}")
        return body.get("result")

    def _send_media(self, method: str, field: str, chat_id: int, media: MediaSource,
                    caption: Optional[str] = None, reply_markup: Optional[dict] = None) -> int:
        data = {"chat_id": chat_id, "caption": caption, "reply_markup": reply_markup}
        if isinstance(media, Path):
            try:
                with media.open("rb") as fh:
                    result = self._call(method, data, files={field: (media.name, fh)})
            except OSError as e:
                raise DeliveryError(f"{method} failed: cannot read {media.name}: {e.strerror}") from e
        else:
            data[field] = media
            result = self._call(method, data)
        return result["message_id"]

    # ---- outbound

    def send_message(self, chat_id: int, text: str, reply_markup: Optional[dict] = None) -> int:
        result = self._call("sendMessage", {"chat_id": chat_id, "text": text, "reply_markup": reply_markup})
        return result["message_id"]

    def send_photo(self, chat_id: int, photo: MediaSource, caption: Optional[str] = None,
                   reply_markup: Optional[dict] = None) -> int:
        return self._send_media("sendPhoto", "photo", chat_id, photo, caption, reply_markup)

    def send_video(self, chat_id: int, video: MediaSource, caption: Optional[str] = None) -> int:
        return self._send_media("sendVideo", "video", chat_id, video, caption)

    def send_document(self, chat_id: int, document: MediaSource, caption: Optional[str] = None) -> int:
        return self._send_media("sendDocument", "document", chat_id, document, caption)

    def send_document_bytes(self, chat_id: int, filename: str, content: bytes, caption: Optional[str] = None) -> int:
        result = self._call("sendDocument", {"chat_id": chat_id, "caption": caption},
                            files={"document": (filename, content)})
        return result["message_id"]

    def delete_message(self, chat_id: int, message_id: int) -> None:
        self._call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})

    def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        self._call("answerCallbackQuery", {"callback_query_id": callback_id, "text": text})

    # ---- files

    def download_file(self, file_id: str, dest: Path) -> Path:
        info = self._call("getFile", {"file_id": file_id})
        file_path = info.get("file_path") if info else None
        if not file_path:
            raise DeliveryError("getFile returned no file_path")
        try:
            r = self._http.get(f"{self._base}/file/bot{self._token}/{file_path}", timeout=self._timeout, stream=True)
            r.raise_for_status()
            dest.parent.mkdir(parents=True, exist_ok=True)
            with dest.open("wb") as out:
                for chunk in r.iter_content(chunk_size=64 * 1024):
                    out.write(chunk)
        except requests.RequestException as e:
            raise DeliveryError(f"file download failed: {type(e).__name__}") from None
        return dest

    # ---- inbound delivery

    def get_updates(self, offset: Optional[int] = None, timeout: int = 60) -> list[dict]:
        return self._call("getUpdates", {"offset": offset, "timeout": timeout}, timeout=timeout + 10) or []

    def set_webhook(self, url: str) -> None:
        self._call("setWebhook", {"url": url})

    def delete_webhook(self) -> None:
        self._call("deleteWebhook", {})
