from dataclasses import dataclass
from typing import Optional

from sidechain_console.history import History, create_history
from sidechain_console.reducers import root_reducer
from sidechain_console.router_sync import router_middleware, sync_history_with_store
from sidechain_console.sagas import SagaMiddleware, create_saga_middleware
from sidechain_console.store import Store, create_store


@dataclass
class AppStore:
    store: Store
    history: History
    sagas: SagaMiddleware

    def state(self) -> dict:
        return self.store.get_state()

    def dispatch(self, action: dict):
        return self.store.dispatch(action)


def configure_store(history: Optional[History] = None) -> AppStore:
    """Wire the root reducer, the saga runner and history sync into one store."""
    history = history or create_history()
    sagas = create_saga_middleware()
    store = create_store(
        root_reducer(history),
        middleware=[sagas, router_middleware(history)],
    )
    sync_history_with_store(history, store)
    return AppStore(store=store, history=history, sagas=sagas)
