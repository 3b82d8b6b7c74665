from sidechain_console import actions
from sidechain_console.history import History
from sidechain_console.router_sync import router_reducer
from sidechain_console.store import combine_reducers

AUTH_INITIAL = {"email": None, "status": "anonymous", "error": None, "user_id": None}
SETUP_INITIAL = {"config": {}, "completed": [], "pending": None, "error": None}


def auth_reducer(state, action):
    state = state if state is not None else AUTH_INITIAL
    kind = action.get("type")
    payload = action.get("payload") or {}

    if kind == actions.LOGIN_REQUESTED:
        return {**state, "email": payload.get("email"), "status": "requesting", "error": None}
    if kind == actions.LOGIN_CODE_SENT:
        return {**state, "status": "code_sent", "error": None}
    if kind == actions.LOGIN_FAILED:
        return {**state, "status": "anonymous", "error": payload.get("message")}
    if kind == actions.VERIFICATION_REQUESTED:
        return {**state, "status": "verifying", "error": None}
    if kind == actions.VERIFICATION_FAILED:
        return {**state, "status": "code_sent", "error": payload.get("message")}
    if kind == actions.LOGIN_SUCCEEDED:
        return {
            "email": payload.get("email"),
            "status": "authenticated",
            "error": None,
            "user_id": payload.get("user_id"),
        }
    if kind == actions.LOGOUT:
        return AUTH_INITIAL
    return state


def setup_reducer(state, action):
    state = state if state is not None else SETUP_INITIAL
    kind = action.get("type")
    payload = action.get("payload") or {}

    if kind == actions.SETUP_STEP_SUBMITTED:
        return {**state, "pending": payload.get("step"), "error": None}
    if kind == actions.SETUP_STEP_SAVED:
        step = payload.get("step")
        completed = list(state["completed"])
        if step not in completed:
            completed.append(step)
        return {
            "config": {**state["config"], step: payload.get("config")},
            "completed": completed,
            "pending": None,
            "error": None,
        }
    if kind == actions.SETUP_STEP_FAILED:
        return {
            **state,
            "pending": None,
            "error": {"step": payload.get("step"), "message": payload.get("message")},
        }
    return state


def root_reducer(history: History):
    return combine_reducers(
        {
            "router": router_reducer(history),
            "auth": auth_reducer,
            "setup": setup_reducer,
        }
    )
