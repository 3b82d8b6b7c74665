import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional
from urllib.parse import urlsplit
from uuid import uuid4

logger = logging.getLogger(__name__)

POP = "POP"
PUSH = "PUSH"
REPLACE = "REPLACE"


def _new_key() -> str:
    return uuid4().hex[:8]


@dataclass(frozen=True)
class Location:
    pathname: str = "/"
    search: str = ""
    hash: str = ""
    state: Any = None
    key: str = field(default_factory=_new_key)

    def to_dict(self) -> dict:
        return {
            "pathname": self.pathname,
            "search": self.search,
            "hash": self.hash,
            "state": self.state,
            "key": self.key,
        }

    @property
    def href(self) -> str:
        return f"{self.pathname}{self.search}{self.hash}"


def parse_path(path: str, state: Any = None) -> Location:
    parts = urlsplit(path or "/")
    pathname = parts.path or "/"
    if not pathname.startswith("/"):
        pathname = "/" + pathname
    return Location(
        pathname=pathname,
        search=f"?{parts.query}" if parts.query else "",
        hash=f"#{parts.fragment}" if parts.fragment else "",
        state=state,
    )


Listener = Callable[[Location, str], None]


class History:
    """
    Session history for the console process.

    Holds an ordered stack of locations with a cursor, like a browser tab.
    Listeners are notified with ``(location, action)`` after every change.
    """

    def __init__(self, initial_path: str = "/"):
        self._entries: List[Location] = [parse_path(initial_path)]
        self._index = 0
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()
        self.action = POP

    @property
    def location(self) -> Location:
        return self._entries[self._index]

    @property
    def length(self) -> int:
        return len(self._entries)

    @property
    def index(self) -> int:
        return self._index

    def listen(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unlisten() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unlisten

    def _notify(self) -> None:
        location, action = self.location, self.action
        for listener in list(self._listeners):
            listener(location, action)

    def push(self, path: str, state: Any = None) -> None:
        with self._lock:
            # Pushing drops any forward entries.
            del self._entries[self._index + 1 :]
            self._entries.append(parse_path(path, state))
            self._index = len(self._entries) - 1
            self.action = PUSH
        logger.debug("History push %s", path)
        self._notify()

    def replace(self, path: str, state: Any = None) -> None:
        with self._lock:
            self._entries[self._index] = parse_path(path, state)
            self.action = REPLACE
        logger.debug("History replace %s", path)
        self._notify()

    def go(self, delta: int) -> None:
        with self._lock:
            target = self._index + int(delta)
            if target < 0 or target >= len(self._entries) or target == self._index:
                return
            self._index = target
            self.action = POP
        self._notify()

    def back(self) -> None:
        self.go(-1)

    def forward(self) -> None:
        self.go(1)


def create_history(initial_path: Optional[str] = None) -> History:
    return History(initial_path or "/")
