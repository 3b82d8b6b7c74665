import threading
import time

import pytest
from fastapi.testclient import TestClient

from sidechain_console.app_store import configure_store
from sidechain_console.main import create_app
from sidechain_console.paths import Routes

PAGE_TITLES = {
    Routes.ROOT: "Welcome",
    Routes.DASHBOARD: "Dashboard",
    Routes.LOGIN: "Login",
    Routes.LOGIN_VERIFICATION: "Login verification",
    Routes.SETUP: "Setup: Sidechain",
    Routes.SETUP_SIDECHAIN: "Setup: Sidechain",
    Routes.SETUP_SIGNING_AUTHORITY: "Setup: Signing authority",
    Routes.SETUP_TREASURE: "Setup: Treasury",
    Routes.SETUP_MAINNET: "Setup: Mainnet",
    Routes.SETUP_INFURA: "Setup: Infura",
}


@pytest.fixture
def console(db_engine, session_factory, api_client):
    app_store = configure_store()
    app = create_app(
        app_store,
        api_client=api_client,
        session_factory=session_factory,
        bind=db_engine,
        test_mode=False,
        flow_wait_seconds=5,
    )
    with TestClient(app) as client:
        yield client, app_store


@pytest.mark.parametrize("path,title", list(PAGE_TITLES.items()))
def test_every_route_renders_its_page(console, path, title):
    client, _ = console
    response = client.get(path)
    assert response.status_code == 200
    assert f'data-page="{title}"' in response.text
    assert response.text.count("data-page=") == 1


def test_unknown_path_renders_nothing(console):
    client, _ = console
    response = client.get("/does/not/exist")
    assert response.status_code == 404
    assert response.content == b""


def test_browser_navigation_moves_store_history(console):
    client, app_store = console
    client.get(Routes.SETUP_MAINNET)
    assert app_store.state()["router"]["location"]["pathname"] == Routes.SETUP_MAINNET


def test_health_and_state(console):
    client, _ = console
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["sagas_running"] is True

    state = client.get("/api/state").json()
    assert set(state) == {"router", "auth", "setup"}


def test_request_id_is_echoed(console):
    client, _ = console
    response = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"


def test_login_flow_over_http(console, api_client):
    client, app_store = console

    response = client.post(Routes.LOGIN, data={"email": "Ops@Example.org"})
    assert response.status_code == 200
    assert str(response.url).endswith(Routes.LOGIN_VERIFICATION)
    assert "A code was sent to ops@example.org" in response.text

    response = client.post(Routes.LOGIN_VERIFICATION, data={"code": "123456"})
    assert str(response.url).endswith(Routes.SETUP_SIDECHAIN)
    assert "ops@example.org" in response.text
    assert app_store.state()["auth"]["status"] == "authenticated"

    response = client.post("/logout")
    assert str(response.url).endswith(Routes.LOGIN)
    assert app_store.state()["auth"]["status"] == "anonymous"


def test_invalid_email_shows_error(console, api_client):
    client, _ = console
    response = client.post(Routes.LOGIN, data={"email": "nobody"})
    assert str(response.url).endswith(Routes.LOGIN)
    assert "not a valid email address" in response.text
    api_client.request_login_code.assert_not_called()


def test_setup_wizard_over_http(console, api_client, step_configs, monkeypatch):
    monkeypatch.setattr("sidechain_console.flows.fetch_chain_id", lambda url: 1)
    client, app_store = console

    paths = [
        Routes.SETUP_SIDECHAIN,
        Routes.SETUP_SIGNING_AUTHORITY,
        Routes.SETUP_TREASURE,
        Routes.SETUP_MAINNET,
        Routes.SETUP_INFURA,
    ]
    expected_next = paths[1:] + [Routes.DASHBOARD]
    for path, config, next_path in zip(paths, step_configs.values(), expected_next):
        response = client.post(path, data=config)
        assert response.status_code == 200
        assert str(response.url).endswith(next_path)

    dashboard = client.get(Routes.DASHBOARD).text
    assert dashboard.count("<td>done</td>") == 5
    assert "Continue setup" not in dashboard
    assert api_client.submit_setup_step.call_count == 5


def test_setup_error_is_shown_on_the_step(console, api_client):
    client, app_store = console
    response = client.post(Routes.SETUP_TREASURE, data={"address": "nope"})
    assert str(response.url).endswith(Routes.SETUP_TREASURE)
    assert "class='error'" in response.text
    assert app_store.state()["setup"]["completed"] == []


def test_unknown_setup_step_is_404(console):
    client, _ = console
    response = client.post("/setup/bridge", data={})
    assert response.status_code == 404


def test_concurrent_navigation_does_not_settle_a_pending_login(console, api_client):
    client, _ = console

    def slow_login(email):
        time.sleep(0.5)
        return {"status": "sent"}

    api_client.request_login_code.side_effect = slow_login
    responses = {}

    def post_login():
        responses["login"] = client.post(
            Routes.LOGIN, data={"email": "ops@example.org"}, follow_redirects=False
        )

    worker = threading.Thread(target=post_login)
    worker.start()
    time.sleep(0.2)
    assert client.get(Routes.DASHBOARD).status_code == 200
    worker.join(timeout=10)

    response = responses["login"]
    assert response.status_code == 303
    assert response.headers["location"] == Routes.LOGIN_VERIFICATION


def test_current_user_after_login(console, api_client):
    client, _ = console
    assert client.get("/api/users/me").status_code == 404

    client.post(Routes.LOGIN, data={"email": "ops@example.org"})
    assert client.get("/api/users/me").status_code == 404

    client.post(Routes.LOGIN_VERIFICATION, data={"code": "123456"})
    user = client.get("/api/users/me").json()
    assert user["email"] == "ops@example.org"
    assert user["verified"] is True
    assert user["last_login_at"]
