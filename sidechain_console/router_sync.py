import logging

from sidechain_console.history import History, Location

logger = logging.getLogger(__name__)

LOCATION_CHANGE = "@@router/LOCATION_CHANGE"
CALL_HISTORY_METHOD = "@@router/CALL_HISTORY_METHOD"

_HISTORY_METHODS = {
    "push": "push",
    "replace": "replace",
    "go": "go",
    "go_back": "back",
    "go_forward": "forward",
}


def _history_call(method: str, *args) -> dict:
    return {"type": CALL_HISTORY_METHOD, "payload": {"method": method, "args": list(args)}}


def push(path: str, state=None) -> dict:
    return _history_call("push", path, state)


def replace(path: str, state=None) -> dict:
    return _history_call("replace", path, state)


def go(delta: int) -> dict:
    return _history_call("go", delta)


def go_back() -> dict:
    return _history_call("go_back")


def go_forward() -> dict:
    return _history_call("go_forward")


def location_changed(location: Location, action: str) -> dict:
    return {
        "type": LOCATION_CHANGE,
        "payload": {"location": location.to_dict(), "action": action},
    }


def router_reducer(history: History):
    initial = {"location": history.location.to_dict(), "action": history.action}

    def reducer(state, action):
        if state is None:
            state = initial
        if action.get("type") == LOCATION_CHANGE:
            payload = action.get("payload") or {}
            return {"location": payload.get("location"), "action": payload.get("action")}
        return state

    return reducer


def router_middleware(history: History):
    """Apply history method calls to ``history`` instead of the reducer."""

    def middleware(api):
        def wrap(next_dispatch):
            def dispatch(action):
                if action.get("type") != CALL_HISTORY_METHOD:
                    return next_dispatch(action)
                payload = action.get("payload") or {}
                method = payload.get("method")
                if method not in _HISTORY_METHODS:
                    raise ValueError(f"unknown history method {method!r}")
                args = payload.get("args") or []
                if method in ("push", "replace") and len(args) > 1 and args[1] is None:
                    args = args[:1]
                logger.debug("Router: history.%s%r", method, tuple(args))
                getattr(history, _HISTORY_METHODS[method])(*args)
                return action

            return dispatch

        return wrap

    return middleware


def sync_history_with_store(history: History, store):
    """Dispatch LOCATION_CHANGE for every history change; returns the unlisten call."""

    def on_change(location: Location, action: str) -> None:
        current = (store.get_state() or {}).get("router", {}).get("location") or {}
        if current.get("key") == location.key:
            return
        store.dispatch(location_changed(location, action))

    return history.listen(on_change)
