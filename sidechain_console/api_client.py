import logging
from typing import Any, Dict, Optional

import requests
from web3 import Web3

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A backend call failed; ``str(exc)`` is safe to show to the operator."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason or "request failed"
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("message") or body)
    return str(body)


class ConsoleApiClient:
    """
    Client for the sidechain backend that owns authentication and setup state.
    """

    def __init__(self, api_url: str, timeout: int = 15, session: Optional[requests.Session] = None):
        if not api_url:
            raise ValueError("API URL cannot be empty")
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        endpoint = f"{self.api_url}{path}"
        try:
            response = self.session.post(endpoint, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error("Backend request failed path=%s error=%s", path, e)
            raise ApiError("Sidechain backend unavailable") from e

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.warning(
                "Backend rejected request path=%s status=%s detail=%s",
                path,
                response.status_code,
                detail,
            )
            raise ApiError(detail, status_code=response.status_code)

        logger.debug("Backend request ok path=%s status=%s", path, response.status_code)
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"data": data}

    def request_login_code(self, email: str) -> Dict[str, Any]:
        """Ask the auth backend to send a one-time code to ``email``."""
        return self._post("/login", {"email": email})

    def verify_login_code(self, email: str, code: str) -> Dict[str, Any]:
        return self._post("/login/verify", {"email": email, "code": code})

    def submit_setup_step(self, step: str, config: Dict[str, Any]) -> Dict[str, Any]:
        return self._post(f"/setup/{step}", config)


def fetch_chain_id(rpc_url: str, timeout: int = 10) -> int:
    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
    try:
        return int(w3.eth.chain_id)
    except Exception as e:
        logger.warning("Chain id lookup failed rpc_url=%s error=%s", rpc_url, e)
        raise ApiError(f"Could not reach RPC endpoint {rpc_url}") from e
