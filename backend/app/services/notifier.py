"""Side-channel for user-facing status changes."""

import logging
from collections import deque
from enum import Enum

from pydantic import BaseModel

logger = logging.getLogger(__name__)

MAX_PENDING = 50


class NoticeKind(str, Enum):
    INSTRUCTIONS = "instructions"
    OUTPUT = "output"
    ALERT = "alert"
    SPEECH = "speech"


class Notice(BaseModel):
    """One status change for the client to render or speak."""
    kind: NoticeKind
    message: str


class Notifier:
    """Collects notices until the API hands them to the client."""

    def __init__(self, maxlen: int = MAX_PENDING):
        self._pending: deque[Notice] = deque(maxlen=maxlen)

    def notify(self, kind: NoticeKind, message: str) -> None:
        logger.info("notice kind=%s message=%r", kind.value, message)
        self._pending.append(Notice(kind=kind, message=message))

    def speak(self, message: str) -> None:
        self.notify(NoticeKind.SPEECH, message)

    def pending(self) -> list[Notice]:
        return list(self._pending)

    def drain(self) -> list[Notice]:
        notices = list(self._pending)
        self._pending.clear()
        return notices
