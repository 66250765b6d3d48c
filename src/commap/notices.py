"""NoticeBus — thread-safe pub/sub for user-visible notices.

Every recoverable failure (bad upload, refused export, failed render) ends
up here as a notice instead of an exception. The web layer or a test drains
a subscriber queue to show them.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import asdict, dataclass


@dataclass
class Notice:
    """A toast-style message.

    Attributes:
        title: Short headline ("CSV loaded").
        description: Detail line ("3 points added.").
        kind: "info", "error" or "upgrade".
    """

    title: str
    description: str = ""
    kind: str = "info"

    def to_dict(self) -> dict:
        return asdict(self)


class NoticeBus:
    """Simple thread-safe pub/sub for notices."""

    def __init__(self, maxsize: int = 100) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[queue.Queue] = []
        self._maxsize = maxsize

    def subscribe(self) -> queue.Queue:
        q: queue.Queue = queue.Queue(maxsize=self._maxsize)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            try:
                self._subscribers.remove(q)
            except ValueError:
                pass

    def publish(self, title: str, description: str = "", kind: str = "info") -> Notice:
        notice = Notice(title=title, description=description, kind=kind)
        with self._lock:
            for q in self._subscribers:
                try:
                    q.put_nowait(notice)
                except queue.Full:
                    # Drop oldest so the newest notice is always delivered
                    try:
                        q.get_nowait()
                    except queue.Empty:
                        pass
                    try:
                        q.put_nowait(notice)
                    except queue.Full:
                        pass
        return notice


def drain(q: queue.Queue) -> list[Notice]:
    """Pop every pending notice from a subscriber queue."""
    notices: list[Notice] = []
    while True:
        try:
            notices.append(q.get_nowait())
        except queue.Empty:
            return notices
