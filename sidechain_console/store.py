import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

Action = Dict[str, Any]
Reducer = Callable[[Any, Action], Any]
Dispatch = Callable[[Action], Any]
Middleware = Callable[["MiddlewareAPI"], Callable[[Dispatch], Dispatch]]

INIT = "@@console/INIT"


class MiddlewareAPI:
    def __init__(self, store: "Store"):
        self._store = store

    def get_state(self):
        return self._store.get_state()

    def dispatch(self, action: Action):
        return self._store.dispatch(action)


class Store:
    """Single read/dispatch state container."""

    def __init__(self, reducer: Reducer, preloaded_state: Any = None):
        self._reducer = reducer
        self._state = preloaded_state
        self._listeners: List[Callable[[], None]] = []
        self._lock = threading.RLock()
        self._dispatching = False
        self._dispatch: Dispatch = self._base_dispatch

    def get_state(self):
        return self._state

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        if not callable(listener):
            raise TypeError("listener must be callable")
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: Action):
        return self._dispatch(action)

    def _base_dispatch(self, action: Action):
        if not isinstance(action, Mapping) or "type" not in action:
            raise TypeError(f"actions must be mappings with a 'type' key, got {action!r}")
        with self._lock:
            if self._dispatching:
                raise RuntimeError("reducers may not dispatch actions")
            try:
                self._dispatching = True
                self._state = self._reducer(self._state, action)
            finally:
                self._dispatching = False
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Store listener failed action=%s", action.get("type"))
        return action


def combine_reducers(reducers: Mapping[str, Reducer]) -> Reducer:
    reducers = dict(reducers)

    def combination(state, action):
        state = state or {}
        next_state = {}
        changed = False
        for key, reducer in reducers.items():
            previous = state.get(key)
            next_state[key] = reducer(previous, action)
            changed = changed or next_state[key] is not previous
        return next_state if changed or len(state) != len(next_state) else state

    return combination


def create_store(
    reducer: Reducer,
    preloaded_state: Any = None,
    middleware: Optional[Sequence[Middleware]] = None,
) -> Store:
    """
    Build a store and chain ``middleware`` around its dispatch.

    The first middleware in the list sees every action first.
    """
    store = Store(reducer, preloaded_state)
    api = MiddlewareAPI(store)
    dispatch = store._base_dispatch
    for factory in reversed(list(middleware or [])):
        dispatch = factory(api)(dispatch)
    store._dispatch = dispatch
    store.dispatch({"type": INIT})
    return store
