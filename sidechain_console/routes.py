from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from sidechain_console import pages
from sidechain_console.pages import Page
from sidechain_console.paths import Routes


@dataclass(frozen=True)
class RouteRule:
    paths: Tuple[str, ...]
    page: Page
    exact: bool = True

    def matches(self, path: str) -> bool:
        if self.exact:
            return path in self.paths
        return any(
            path == prefix or path.startswith(prefix.rstrip("/") + "/") for prefix in self.paths
        )


# First match wins. There is no catch-all rule, so unknown paths render nothing.
ROUTE_TABLE: Tuple[RouteRule, ...] = (
    RouteRule((Routes.ROOT,), pages.welcome),
    RouteRule((Routes.DASHBOARD,), pages.dashboard),
    RouteRule((Routes.LOGIN,), pages.login),
    RouteRule((Routes.LOGIN_VERIFICATION,), pages.login_verification),
    RouteRule((Routes.SETUP, Routes.SETUP_SIDECHAIN), pages.setup_sidechain),
    RouteRule((Routes.SETUP_SIGNING_AUTHORITY,), pages.setup_signing_authority),
    RouteRule((Routes.SETUP_TREASURE,), pages.setup_treasury),
    RouteRule((Routes.SETUP_MAINNET,), pages.setup_mainnet),
    RouteRule((Routes.SETUP_INFURA,), pages.setup_infura),
)


def normalize_path(path: str) -> str:
    path = (path or "/").split("?", 1)[0].split("#", 1)[0] or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return path


def match_route(path: str) -> Optional[RouteRule]:
    path = normalize_path(path)
    for rule in ROUTE_TABLE:
        if rule.matches(path):
            return rule
    return None


def render_route(path: str, state: Dict[str, Any]) -> Optional[str]:
    rule = match_route(path)
    if rule is None:
        return None
    return rule.page(state)
