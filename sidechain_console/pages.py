import html
import json
from typing import Any, Callable, Dict, Literal, get_args, get_origin

from sidechain_console.paths import Routes
from sidechain_console.wizard import SETUP_STEPS, SetupStep

Page = Callable[[Dict[str, Any]], str]


def _e(value: Any) -> str:
    return html.escape("" if value is None else str(value))


def _layout(title: str, body: str, state: Dict[str, Any]) -> str:
    auth = state.get("auth") or {}
    if auth.get("status") == "authenticated":
        session = (
            f"<span class='muted'>{_e(auth.get('email'))}</span> "
            f"<form method='post' action='/logout' style='display:inline'>"
            f"<button type='submit'>Log out</button></form>"
        )
    else:
        session = f"<a href='{Routes.LOGIN}'>Log in</a>"

    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>{_e(title)} - Sidechain Console</title>
  <style>
    body {{ font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial; margin: 18px; }}
    header {{ display: flex; justify-content: space-between; align-items: center; margin-bottom: 18px; }}
    .card {{ border: 1px solid #ddd; border-radius: 10px; padding: 14px 16px; max-width: 720px; }}
    .error {{ color: #b00020; }}
    .muted {{ color: #666; }}
    label {{ display: block; margin: 10px 0 4px; font-weight: 600; }}
    input, select {{ width: 100%; padding: 6px; }}
    table {{ width: 100%; border-collapse: collapse; }}
    th, td {{ border-bottom: 1px solid #eee; text-align: left; padding: 4px 10px 4px 0; }}
  </style>
</head>
<body>
  <header><strong>Sidechain Console</strong><nav>{session}</nav></header>
  <main class="card" data-page="{_e(title)}">
    <h2>{_e(title)}</h2>
    {body}
  </main>
</body>
</html>"""


def _error(message: Any) -> str:
    return f"<p class='error'>{_e(message)}</p>" if message else ""


def welcome(state: Dict[str, Any]) -> str:
    body = (
        "<p>Configure a sidechain, its signing authority, treasury and mainnet access.</p>"
        f"<p><a href='{Routes.LOGIN}'>Log in</a> to continue, or go to the "
        f"<a href='{Routes.DASHBOARD}'>dashboard</a>.</p>"
    )
    return _layout("Welcome", body, state)


def dashboard(state: Dict[str, Any]) -> str:
    setup = state.get("setup") or {}
    completed = set(setup.get("completed") or [])
    configs = setup.get("config") or {}

    rows = []
    for step in SETUP_STEPS:
        done = step.key in completed
        summary = json.dumps(configs.get(step.key), sort_keys=True) if done else "-"
        rows.append(
            "<tr>"
            f"<th><a href='{step.path}'>{_e(step.title)}</a></th>"
            f"<td>{'done' if done else 'pending'}</td>"
            f"<td class='muted'>{_e(summary)}</td>"
            "</tr>"
        )
    body = f"<table>{''.join(rows)}</table>"
    if len(completed) < len(SETUP_STEPS):
        body += f"<p><a href='{Routes.SETUP}'>Continue setup</a></p>"
    return _layout("Dashboard", body, state)


def login(state: Dict[str, Any]) -> str:
    auth = state.get("auth") or {}
    body = (
        _error(auth.get("error"))
        + f"<form method='post' action='{Routes.LOGIN}'>"
        "<label for='email'>Email</label>"
        f"<input id='email' name='email' type='email' value='{_e(auth.get('email'))}' required>"
        "<p><button type='submit'>Send login code</button></p>"
        "</form>"
    )
    return _layout("Login", body, state)


def login_verification(state: Dict[str, Any]) -> str:
    auth = state.get("auth") or {}
    email = auth.get("email")
    if not email:
        body = f"<p>No login in progress. <a href='{Routes.LOGIN}'>Start again</a>.</p>"
        return _layout("Login verification", body, state)

    body = (
        f"<p class='muted'>A code was sent to {_e(email)}.</p>"
        + _error(auth.get("error"))
        + f"<form method='post' action='{Routes.LOGIN_VERIFICATION}'>"
        "<label for='code'>Verification code</label>"
        "<input id='code' name='code' autocomplete='one-time-code' required>"
        "<p><button type='submit'>Verify</button></p>"
        "</form>"
    )
    return _layout("Login verification", body, state)


def _field_input(name: str, field, value: Any) -> str:
    annotation = field.annotation
    if get_origin(annotation) is Literal:
        options = "".join(
            f"<option value='{_e(option)}'{' selected' if option == value else ''}>{_e(option)}</option>"
            for option in get_args(annotation)
        )
        return f"<select id='{name}' name='{name}'>{options}</select>"

    kind = "number" if annotation in (int, float) else "text"
    step = " step='any'" if annotation is float else ""
    required = " required" if field.is_required() else ""
    if value is None and not field.is_required():
        value = field.get_default()
    return f"<input id='{name}' name='{name}' type='{kind}'{step} value='{_e(value)}'{required}>"


def _setup_page(step: SetupStep) -> Page:
    def render(state: Dict[str, Any]) -> str:
        setup = state.get("setup") or {}
        saved = (setup.get("config") or {}).get(step.key) or {}
        error = setup.get("error") or {}

        position = [s.key for s in SETUP_STEPS].index(step.key) + 1
        fields = "".join(
            f"<label for='{name}'>{_e(name.replace('_', ' ').capitalize())}</label>"
            + _field_input(name, field, saved.get(name))
            for name, field in step.schema.model_fields.items()
        )
        body = (
            f"<p class='muted'>Step {position} of {len(SETUP_STEPS)}. {_e(step.description)}</p>"
            + (_error(error.get("message")) if error.get("step") == step.key else "")
            + f"<form method='post' action='{step.path}'>"
            + fields
            + "<p><button type='submit'>Save and continue</button></p></form>"
        )
        return _layout(f"Setup: {step.title}", body, state)

    render.__name__ = f"setup_{step.key}"
    return render


setup_sidechain, setup_signing_authority, setup_treasury, setup_mainnet, setup_infura = (
    _setup_page(step) for step in SETUP_STEPS
)
