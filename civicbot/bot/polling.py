# File: civicbot/bot/polling.py
# Project: civic-report-bot
"""Pull delivery: long-poll getUpdates and hand every update to a worker pool."""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from civicbot.core.errors import DeliveryError

logger = logging.getLogger(__name__)

RETRY_PAUSE = 3.0


class LongPoller:
    def __init__(self, transport, handle: Callable[[dict], None], workers: int = 16, timeout: int = 60):
        self.transport = transport
        self.handle = handle
        self.timeout = timeout
        self.stop_event = threading.Event()
        self._pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="update")
        self._offset: Optional[int] = None

    def poll_once(self) -> int:
        """One getUpdates round; returns how many updates were dispatched."""
        updates = self.transport.get_updates(offset=self._offset, timeout=self.timeout)
        for u in updates:
            self._offset = u["update_id"] + 1
            self._pool.submit(self.handle, u)
        return len(updates)

    def run(self) -> None:
        logger.info("long polling started")
        while not self.stop_event.is_set():
            try:
                self.poll_once()
            except DeliveryError as e:
                logger.warning("getUpdates failed: %s", e)
                self.stop_event.wait(RETRY_PAUSE)
        self._pool.shutdown(wait=False)
        logger.info("long polling stopped")

    def start(self) -> threading.Thread:
        t = threading.Thread(target=self.run, name="long-polling", daemon=True)
        t.start()
        return t

    def stop(self) -> None:
        self.stop_event.set()
