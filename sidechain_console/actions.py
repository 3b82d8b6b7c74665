from sidechain_console.router_sync import CALL_HISTORY_METHOD

LOGIN_REQUESTED = "auth/LOGIN_REQUESTED"
LOGIN_CODE_SENT = "auth/LOGIN_CODE_SENT"
LOGIN_FAILED = "auth/LOGIN_FAILED"
VERIFICATION_REQUESTED = "auth/VERIFICATION_REQUESTED"
VERIFICATION_FAILED = "auth/VERIFICATION_FAILED"
LOGIN_SUCCEEDED = "auth/LOGIN_SUCCEEDED"
LOGOUT = "auth/LOGOUT"

SETUP_STEP_SUBMITTED = "setup/STEP_SUBMITTED"
SETUP_STEP_SAVED = "setup/STEP_SAVED"
SETUP_STEP_FAILED = "setup/STEP_FAILED"

FAILURES = (LOGIN_FAILED, VERIFICATION_FAILED, SETUP_STEP_FAILED)
# Flows end with a failure or a history call; both carry the request meta.
SETTLING = FAILURES + (CALL_HISTORY_METHOD,)


def login_requested(email: str) -> dict:
    return {"type": LOGIN_REQUESTED, "payload": {"email": email}}


def login_code_sent(email: str) -> dict:
    return {"type": LOGIN_CODE_SENT, "payload": {"email": email}}


def login_failed(message: str) -> dict:
    return {"type": LOGIN_FAILED, "payload": {"message": message}, "error": True}


def verification_requested(code: str) -> dict:
    return {"type": VERIFICATION_REQUESTED, "payload": {"code": code}}


def verification_failed(message: str) -> dict:
    return {"type": VERIFICATION_FAILED, "payload": {"message": message}, "error": True}


def login_succeeded(email: str, user_id: int) -> dict:
    return {"type": LOGIN_SUCCEEDED, "payload": {"email": email, "user_id": user_id}}


def logout() -> dict:
    return {"type": LOGOUT}


def setup_step_submitted(step: str, config: dict) -> dict:
    return {"type": SETUP_STEP_SUBMITTED, "payload": {"step": step, "config": config}}


def setup_step_saved(step: str, config: dict) -> dict:
    return {"type": SETUP_STEP_SAVED, "payload": {"step": step, "config": config}}


def setup_step_failed(step: str, message: str) -> dict:
    return {
        "type": SETUP_STEP_FAILED,
        "payload": {"step": step, "message": message},
        "error": True,
    }


def with_meta(action: dict, meta) -> dict:
    if not meta:
        return action
    return {**action, "meta": dict(meta)}


def correlation_id(action: dict):
    return (action.get("meta") or {}).get("id")


def settled_by(cid: str):
    """Pattern matching the failure or navigation a flow emits for request ``cid``."""

    def pattern(action: dict) -> bool:
        return correlation_id(action) == cid and action.get("type") in SETTLING

    return pattern
