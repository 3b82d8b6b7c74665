import asyncio
import logging

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from sidechain_console import actions
from sidechain_console.api_client import ApiError, fetch_chain_id
from sidechain_console.paths import Routes
from sidechain_console.router_sync import push
from sidechain_console.schemas import format_validation_error
from sidechain_console.users import upsert_verified_user
from sidechain_console.wizard import first_incomplete_path, get_step, next_step_path

logger = logging.getLogger(__name__)

BACKEND_MISSING = "Sidechain backend is not configured (set CONSOLE_API_URL)"


def _reply_to(effects, action):
    """Put actions tagged with the meta of the action that started the flow."""
    meta = action.get("meta")

    async def reply(out: dict) -> dict:
        return await effects.put(actions.with_meta(out, meta))

    return reply


def build_root_saga(
    client,
    session_factory,
    *,
    test_mode: bool = False,
    test_code: str = "000000",
    chain_id_lookup=None,
):
    """
    Build the root sequence for the console store.

    ``client`` is a ConsoleApiClient or None. ``chain_id_lookup`` defaults to
    ``fetch_chain_id``. In test mode backend calls and RPC lookups are skipped
    and ``test_code`` is the only accepted login code.
    """

    def save_user(email: str) -> int:
        db = session_factory()
        try:
            return upsert_verified_user(db, email).id
        finally:
            db.close()

    async def login_flow(effects, action):
        reply = _reply_to(effects, action)
        email = (action.get("payload") or {}).get("email")
        if not test_mode:
            if client is None:
                await reply(actions.login_failed(BACKEND_MISSING))
                return
            try:
                await effects.call(client.request_login_code, email)
            except ApiError as e:
                await reply(actions.login_failed(str(e)))
                return
        logger.info("Login code requested email=%s", email)
        await reply(actions.login_code_sent(email))
        await reply(push(Routes.LOGIN_VERIFICATION))

    async def verification_flow(effects, action):
        reply = _reply_to(effects, action)
        code = (action.get("payload") or {}).get("code") or ""
        email = effects.select(lambda state: state["auth"]["email"])
        if not email:
            await reply(actions.verification_failed("Request a login code first"))
            return

        if test_mode:
            if code != test_code:
                await reply(actions.verification_failed("Invalid verification code"))
                return
        elif client is None:
            await reply(actions.verification_failed(BACKEND_MISSING))
            return
        else:
            try:
                await effects.call(client.verify_login_code, email, code)
            except ApiError as e:
                await reply(actions.verification_failed(str(e)))
                return

        try:
            user_id = await effects.call(save_user, email)
        except SQLAlchemyError:
            logger.exception("Failed to store verified user email=%s", email)
            await reply(actions.verification_failed("Could not store user record"))
            return

        logger.info("Login verified email=%s user_id=%s", email, user_id)
        await reply(actions.login_succeeded(email, user_id))
        completed = effects.select(lambda state: state["setup"]["completed"])
        await reply(push(first_incomplete_path(completed)))

    async def setup_flow(effects, action):
        reply = _reply_to(effects, action)
        payload = action.get("payload") or {}
        key = payload.get("step")
        step = get_step(key)
        if step is None:
            await reply(actions.setup_step_failed(key, f"Unknown setup step {key!r}"))
            return

        try:
            config = step.schema.model_validate(payload.get("config") or {})
        except ValidationError as e:
            await reply(actions.setup_step_failed(key, format_validation_error(e)))
            return
        data = config.model_dump()

        if not test_mode:
            if client is None:
                await reply(actions.setup_step_failed(key, BACKEND_MISSING))
                return
            try:
                if key == "mainnet":
                    chain_id = await effects.call(chain_id_lookup or fetch_chain_id, data["rpc_url"])
                    if chain_id != data["chain_id"]:
                        await reply(
                            actions.setup_step_failed(
                                key,
                                f"RPC endpoint reports chain id {chain_id}, expected {data['chain_id']}",
                            )
                        )
                        return
                await effects.call(client.submit_setup_step, key, data)
            except ApiError as e:
                await reply(actions.setup_step_failed(key, str(e)))
                return

        logger.info("Setup step saved step=%s", key)
        await reply(actions.setup_step_saved(key, data))
        await reply(push(next_step_path(key)))

    async def logout_flow(effects, action):
        reply = _reply_to(effects, action)
        await reply(push(Routes.LOGIN))

    async def root_saga(effects):
        await asyncio.gather(
            effects.take_every(actions.LOGIN_REQUESTED, login_flow),
            effects.take_every(actions.VERIFICATION_REQUESTED, verification_flow),
            effects.take_every(actions.SETUP_STEP_SUBMITTED, setup_flow),
            effects.take_every(actions.LOGOUT, logout_flow),
        )

    return root_saga
