import asyncio
from unittest.mock import MagicMock

import pytest

from conftest import INFURA_ID, SIGNER_CHECKSUM
from sidechain_console import actions
from sidechain_console.api_client import ApiError
from sidechain_console.app_store import configure_store
from sidechain_console.flows import BACKEND_MISSING, build_root_saga
from sidechain_console.models import User
from sidechain_console.paths import Routes
from sidechain_console.router_sync import CALL_HISTORY_METHOD, push


def run_flow(app_store, saga, steps):
    """Start ``saga`` and dispatch each action, collecting the action that settles it."""

    async def scenario():
        app_store.sagas.run(saga)
        await asyncio.sleep(0.01)
        outcomes = []
        for action in steps:
            settled = app_store.sagas.expect(actions.SETTLING)
            app_store.dispatch(action)
            outcomes.append(await asyncio.wait_for(settled, timeout=5))
        await app_store.sagas.cancel()
        return outcomes

    return asyncio.run(scenario())


@pytest.fixture
def app_store():
    return configure_store()


def test_login_and_verification_store_user(app_store, api_client, session_factory):
    saga = build_root_saga(api_client, session_factory)

    outcomes = run_flow(
        app_store,
        saga,
        [actions.login_requested("ops@example.org"), actions.verification_requested("123456")],
    )

    assert [o["type"] for o in outcomes] == [CALL_HISTORY_METHOD, CALL_HISTORY_METHOD]
    api_client.request_login_code.assert_called_once_with("ops@example.org")
    api_client.verify_login_code.assert_called_once_with("ops@example.org", "123456")

    auth = app_store.state()["auth"]
    assert auth["status"] == "authenticated"
    assert app_store.history.location.pathname == Routes.SETUP_SIDECHAIN

    db = session_factory()
    try:
        user = db.query(User).one()
        assert user.email == "ops@example.org"
        assert user.verified is True
        assert auth["user_id"] == user.id
    finally:
        db.close()


def test_login_failure_keeps_user_on_login(app_store, api_client, session_factory):
    api_client.request_login_code.side_effect = ApiError("Unknown operator", status_code=404)
    saga = build_root_saga(api_client, session_factory)

    outcomes = run_flow(app_store, saga, [actions.login_requested("x@example.org")])

    assert outcomes[0]["type"] == actions.LOGIN_FAILED
    assert app_store.state()["auth"]["error"] == "Unknown operator"
    assert app_store.history.location.pathname == Routes.ROOT


def test_verification_without_login_fails(app_store, api_client, session_factory):
    saga = build_root_saga(api_client, session_factory)
    outcomes = run_flow(app_store, saga, [actions.verification_requested("123456")])
    assert outcomes[0]["payload"]["message"] == "Request a login code first"
    api_client.verify_login_code.assert_not_called()


def test_test_mode_checks_the_configured_code(app_store, session_factory):
    saga = build_root_saga(None, session_factory, test_mode=True, test_code="424242")

    outcomes = run_flow(
        app_store,
        saga,
        [
            actions.login_requested("ops@example.org"),
            actions.verification_requested("000000"),
            actions.verification_requested("424242"),
        ],
    )

    assert [o["type"] for o in outcomes] == [
        CALL_HISTORY_METHOD,
        actions.VERIFICATION_FAILED,
        CALL_HISTORY_METHOD,
    ]
    assert app_store.state()["auth"]["status"] == "authenticated"


def test_missing_backend_is_reported(app_store, session_factory):
    saga = build_root_saga(None, session_factory)
    outcomes = run_flow(app_store, saga, [actions.login_requested("ops@example.org")])
    assert outcomes[0]["payload"]["message"] == BACKEND_MISSING


def test_setup_wizard_walks_every_step(app_store, api_client, session_factory, step_configs):
    lookup = MagicMock(return_value=1)
    saga = build_root_saga(api_client, session_factory, chain_id_lookup=lookup)

    steps = [actions.setup_step_submitted(key, config) for key, config in step_configs.items()]
    outcomes = run_flow(app_store, saga, steps)

    assert all(o["type"] == CALL_HISTORY_METHOD for o in outcomes)
    setup = app_store.state()["setup"]
    assert setup["completed"] == list(step_configs)
    assert setup["config"]["signing_authority"]["address"] == SIGNER_CHECKSUM
    assert setup["config"]["sidechain"]["chain_id"] == 4242
    assert app_store.history.location.pathname == Routes.DASHBOARD
    lookup.assert_called_once_with("https://mainnet.example.org")
    assert api_client.submit_setup_step.call_count == 5


def test_invalid_step_config_is_rejected(app_store, api_client, session_factory):
    saga = build_root_saga(api_client, session_factory)
    outcomes = run_flow(
        app_store,
        saga,
        [actions.setup_step_submitted("treasury", {"address": "nope"})],
    )

    assert outcomes[0]["type"] == actions.SETUP_STEP_FAILED
    error = app_store.state()["setup"]["error"]
    assert error["step"] == "treasury"
    assert "address" in error["message"]
    api_client.submit_setup_step.assert_not_called()


def test_mainnet_chain_id_mismatch(app_store, api_client, session_factory, step_configs):
    saga = build_root_saga(api_client, session_factory, chain_id_lookup=MagicMock(return_value=5))
    outcomes = run_flow(
        app_store,
        saga,
        [actions.setup_step_submitted("mainnet", step_configs["mainnet"])],
    )

    assert outcomes[0]["type"] == actions.SETUP_STEP_FAILED
    assert "chain id 5" in outcomes[0]["payload"]["message"]
    api_client.submit_setup_step.assert_not_called()


def test_unknown_step(app_store, api_client, session_factory):
    saga = build_root_saga(api_client, session_factory)
    outcomes = run_flow(app_store, saga, [actions.setup_step_submitted("bridge", {})])
    assert outcomes[0]["type"] == actions.SETUP_STEP_FAILED


def test_logout_returns_to_login(app_store, api_client, session_factory):
    saga = build_root_saga(api_client, session_factory)
    run_flow(app_store, saga, [actions.logout()])
    assert app_store.history.location.pathname == Routes.LOGIN
    assert app_store.state()["auth"]["status"] == "anonymous"


def test_flow_replies_carry_the_request_meta(app_store, api_client, session_factory):
    api_client.request_login_code.side_effect = [ApiError("Unknown operator"), {"status": "sent"}]
    saga = build_root_saga(api_client, session_factory)

    async def scenario():
        app_store.sagas.run(saga)
        await asyncio.sleep(0)
        failed = app_store.sagas.expect(actions.settled_by("first"))
        app_store.dispatch(actions.with_meta(actions.login_requested("x@example.org"), {"id": "first"}))
        failed = await asyncio.wait_for(failed, timeout=5)

        pushed = app_store.sagas.expect(actions.settled_by("second"))
        app_store.dispatch(push(Routes.DASHBOARD))
        await asyncio.sleep(0.01)
        untagged_settled = pushed.done()
        app_store.dispatch(actions.with_meta(actions.login_requested("ops@example.org"), {"id": "second"}))
        pushed = await asyncio.wait_for(pushed, timeout=5)
        await app_store.sagas.cancel()
        return failed, pushed, untagged_settled

    failed, pushed, untagged_settled = asyncio.run(scenario())

    assert failed["type"] == actions.LOGIN_FAILED
    assert failed["meta"] == {"id": "first"}
    assert pushed["type"] == CALL_HISTORY_METHOD
    assert pushed["payload"]["args"][0] == Routes.LOGIN_VERIFICATION
    assert pushed["meta"] == {"id": "second"}
    assert untagged_settled is False


def test_infura_endpoint_is_saved_and_submitted(app_store, api_client, session_factory, step_configs):
    saga = build_root_saga(api_client, session_factory)
    run_flow(app_store, saga, [actions.setup_step_submitted("infura", step_configs["infura"])])

    endpoint = f"https://mainnet.infura.io/v3/{INFURA_ID}"
    assert app_store.state()["setup"]["config"]["infura"]["endpoint"] == endpoint
    api_client.submit_setup_step.assert_called_once_with(
        "infura", {"project_id": INFURA_ID, "network": "mainnet", "endpoint": endpoint}
    )
