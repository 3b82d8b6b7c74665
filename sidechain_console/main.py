import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import Optional
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.orm import Session

from sidechain_console import actions
from sidechain_console.api_client import ConsoleApiClient
from sidechain_console.app_store import AppStore, configure_store
from sidechain_console.config import (
    API_TIMEOUT,
    API_URL,
    FLOW_WAIT_SECONDS,
    SessionLocal,
    TEST_MODE,
    TEST_VERIFICATION_CODE,
    engine,
)
from sidechain_console.database import sync_user_table
from sidechain_console.flows import build_root_saga
from sidechain_console.paths import Routes
from sidechain_console.router_sync import CALL_HISTORY_METHOD, push
from sidechain_console.routes import match_route, normalize_path
from sidechain_console.schemas import LoginForm, VerificationForm, format_validation_error
from sidechain_console.users import get_user_by_email
from sidechain_console.wizard import get_step_by_path


def _setup_console_logging() -> None:
    console_logger = logging.getLogger("sidechain_console")
    if getattr(console_logger, "_configured", False):
        return

    level_name = (os.getenv("CONSOLE_LOG_LEVEL") or os.getenv("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    console_logger.setLevel(level)
    console_logger.propagate = False

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    console_logger.addHandler(stream_handler)

    log_file = os.getenv("CONSOLE_LOG_FILE", "").strip()
    if log_file:
        try:
            os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=int(os.getenv("CONSOLE_LOG_MAX_BYTES", str(10 * 1024 * 1024))),
                backupCount=int(os.getenv("CONSOLE_LOG_BACKUP_COUNT", "5")),
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            console_logger.addHandler(file_handler)
        except Exception:
            console_logger.exception("Failed to configure CONSOLE_LOG_FILE=%r", log_file)

    console_logger._configured = True


_setup_console_logging()
logger = logging.getLogger(__name__)


def _default_api_client() -> Optional[ConsoleApiClient]:
    if not API_URL:
        if not TEST_MODE:
            logger.warning("CONSOLE_API_URL is not set; login and setup submissions will fail")
        return None
    return ConsoleApiClient(API_URL, timeout=API_TIMEOUT)


def create_app(
    app_store: Optional[AppStore] = None,
    api_client: Optional[ConsoleApiClient] = None,
    session_factory=SessionLocal,
    bind=None,
    test_mode: bool = TEST_MODE,
    test_code: str = TEST_VERIFICATION_CODE,
    flow_wait_seconds: float = FLOW_WAIT_SECONDS,
) -> FastAPI:
    app_store = app_store or configure_store()
    bind = bind if bind is not None else engine
    if api_client is None:
        api_client = _default_api_client()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Initializing Sidechain Console")
        sync_user_table(bind)
        if not app_store.sagas.running:
            app_store.sagas.run(
                build_root_saga(
                    api_client,
                    session_factory,
                    test_mode=test_mode,
                    test_code=test_code,
                )
            )
        # One yield lets the root saga run up to its first await; its
        # take_every channels are subscribed synchronously before that.
        await asyncio.sleep(0)
        yield
        await app_store.sagas.cancel()
        logger.info("Sidechain Console stopped")

    app = FastAPI(
        title="Sidechain Console",
        description="Setup and onboarding console for a sidechain deployment",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.store = app_store

    def get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled exception method=%s path=%s request_id=%s",
                request.method,
                str(request.url),
                request_id,
            )
            response = JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error", "request_id": request_id},
            )
        duration_ms = (time.perf_counter() - start) * 1000.0

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "HTTP %s %s status=%s ms=%.1f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        request_id = getattr(getattr(request, "state", None), "request_id", None)
        logger.exception(
            "Unhandled exception (handler) method=%s path=%s request_id=%s",
            request.method,
            str(request.url),
            request_id,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal Server Error", "request_id": request_id},
        )

    async def dispatch_and_redirect(action: dict, fallback: str) -> RedirectResponse:
        """
        Dispatch a form action and redirect once its flow fails or navigates.

        Failed flows send the browser back to ``fallback``; successful flows
        follow the store's history.
        """
        cid = uuid4().hex
        settled = app_store.sagas.expect(actions.settled_by(cid))
        app_store.dispatch(actions.with_meta(action, {"id": cid}))
        try:
            outcome = await asyncio.wait_for(settled, timeout=flow_wait_seconds)
        except asyncio.TimeoutError:
            logger.warning("Flow did not settle action=%s after %ss", action["type"], flow_wait_seconds)
            return RedirectResponse(fallback, status_code=303)

        if outcome.get("type") != CALL_HISTORY_METHOD:
            return RedirectResponse(fallback, status_code=303)
        # Other requests may move the shared history meanwhile; follow this flow's own target.
        payload = outcome.get("payload") or {}
        if payload.get("method") in ("push", "replace") and payload.get("args"):
            return RedirectResponse(payload["args"][0], status_code=303)
        return RedirectResponse(app_store.history.location.href, status_code=303)

    @app.get("/health")
    async def health_check():
        db_ok = True
        db_error = None
        try:
            with bind.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            db_ok = False
            db_error = f"{type(e).__name__}: {e}"
        return {
            "status": "healthy" if db_ok else "unhealthy",
            "db_ok": db_ok,
            "db_error": db_error,
            "sagas_running": app_store.sagas.running,
            "timestamp": datetime.now(UTC),
        }

    @app.get("/api/state")
    async def get_state():
        return app_store.state()

    @app.get("/api/users/me")
    def get_current_user(db: Session = Depends(get_db)):
        auth = app_store.state()["auth"]
        user = None
        if auth.get("status") == "authenticated" and auth.get("email"):
            user = get_user_by_email(db, auth["email"])
        if user is None or not user.verified:
            raise HTTPException(status_code=404, detail="No verified user is logged in")
        return {
            "id": user.id,
            "email": user.email,
            "verified": user.verified,
            "last_login_at": user.last_login_at,
        }

    @app.post(Routes.LOGIN)
    async def submit_login(request: Request):
        form = await request.form()
        try:
            data = LoginForm(email=str(form.get("email") or ""))
        except ValidationError as e:
            app_store.dispatch(actions.login_failed(format_validation_error(e)))
            return RedirectResponse(Routes.LOGIN, status_code=303)
        return await dispatch_and_redirect(actions.login_requested(data.email), Routes.LOGIN)

    @app.post(Routes.LOGIN_VERIFICATION)
    async def submit_verification(request: Request):
        form = await request.form()
        try:
            data = VerificationForm(code=str(form.get("code") or "").strip())
        except ValidationError as e:
            app_store.dispatch(actions.verification_failed(format_validation_error(e)))
            return RedirectResponse(Routes.LOGIN_VERIFICATION, status_code=303)
        return await dispatch_and_redirect(
            actions.verification_requested(data.code), Routes.LOGIN_VERIFICATION
        )

    @app.post("/logout")
    async def submit_logout():
        return await dispatch_and_redirect(actions.logout(), Routes.LOGIN)

    @app.post("/setup/{slug}")
    async def submit_setup_step(slug: str, request: Request):
        step = get_step_by_path(f"/setup/{slug}")
        if step is None:
            raise HTTPException(status_code=404, detail="Unknown setup step")
        form = await request.form()
        config = {key: value for key, value in form.items() if str(value).strip() != ""}
        return await dispatch_and_redirect(
            actions.setup_step_submitted(step.key, config), step.path
        )

    @app.get("/{full_path:path}", response_class=HTMLResponse)
    async def render_page(full_path: str, request: Request):
        path = normalize_path(request.url.path)
        rule = match_route(path)
        if rule is None:
            # Nothing matches, so nothing is rendered.
            return Response(status_code=404)

        if app_store.history.location.pathname != path:
            app_store.dispatch(push(path))
        return HTMLResponse(content=rule.page(app_store.state()))

    return app


app_store = configure_store()
app = create_app(app_store)
