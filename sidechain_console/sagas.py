import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

Pattern = Union[str, Tuple[str, ...], List[str], Callable[[dict], bool], None]


def matches(pattern: Pattern, action: dict) -> bool:
    if pattern is None or pattern == "*":
        return True
    if isinstance(pattern, str):
        return action.get("type") == pattern
    if isinstance(pattern, (tuple, list, set, frozenset)):
        return action.get("type") in pattern
    if callable(pattern):
        return bool(pattern(action))
    raise TypeError(f"unsupported take pattern {pattern!r}")


class SagaContext:
    """Effects available to a running sequence."""

    def __init__(self, middleware: "SagaMiddleware"):
        self._middleware = middleware

    async def take(self, pattern: Pattern = None) -> dict:
        return await self._middleware.expect(pattern)

    async def put(self, action: dict) -> dict:
        # Let the current dispatch finish before the next one begins.
        await asyncio.sleep(0)
        return self._middleware.dispatch(action)

    async def call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        if inspect.iscoroutinefunction(fn):
            return await fn(*args, **kwargs)
        return await asyncio.to_thread(fn, *args, **kwargs)

    def select(self, selector: Optional[Callable[[Any], Any]] = None, *args) -> Any:
        state = self._middleware.get_state()
        return selector(state, *args) if selector else state

    def fork(self, saga: Callable[..., Awaitable[Any]], *args) -> asyncio.Task:
        return self._middleware._spawn(saga, *args)

    def take_every(self, pattern: Pattern, worker: Callable[..., Awaitable[Any]], *args) -> asyncio.Task:
        """
        Fork ``worker`` for every matching action.

        The channel is subscribed before this returns; the returned task drains it.
        Buffered, so actions dispatched back to back each get a worker.
        """
        channel = (pattern, asyncio.Queue(), asyncio.get_running_loop())
        self._middleware._channels.append(channel)
        task = self._middleware._spawn(_drain, channel, worker, args)
        task.add_done_callback(lambda _: self._middleware._channels.remove(channel))
        return task


class SagaMiddleware:
    """
    Runs background side-effect sequences next to the store.

    Each sequence is an ``async def saga(effects, *args)`` coroutine. Actions
    reach a sequence after the reducers have seen them. ``run`` may be called
    once; the root sequence lives until ``cancel``.
    """

    def __init__(self):
        self._api = None
        self._takers: List[Tuple[Pattern, asyncio.Future]] = []
        self._channels: List[Tuple[Pattern, asyncio.Queue, asyncio.AbstractEventLoop]] = []
        self._tasks: "set[asyncio.Task]" = set()
        self._root: Optional[asyncio.Task] = None
        self.effects = SagaContext(self)

    def __call__(self, api):
        self._api = api

        def wrap(next_dispatch):
            def dispatch(action):
                result = next_dispatch(action)
                self._emit(action)
                return result

            return dispatch

        return wrap

    @property
    def running(self) -> bool:
        return self._root is not None and not self._root.done()

    def get_state(self):
        self._require_store()
        return self._api.get_state()

    def dispatch(self, action: dict):
        self._require_store()
        return self._api.dispatch(action)

    def _require_store(self) -> None:
        if self._api is None:
            raise RuntimeError("saga middleware is not attached to a store")

    def expect(self, pattern: Pattern) -> asyncio.Future:
        """Return a future for the next matching action, registered immediately."""
        future = asyncio.get_running_loop().create_future()
        self._takers.append((pattern, future))
        future.add_done_callback(self._drop_taker)
        return future

    def _emit(self, action: dict) -> None:
        for pattern, future in list(self._takers):
            if future.done():
                continue
            if matches(pattern, action):
                self._drop_taker(future)
                future.get_loop().call_soon_threadsafe(_resolve, future, action)
        for pattern, queue, loop in list(self._channels):
            if matches(pattern, action):
                loop.call_soon_threadsafe(queue.put_nowait, action)

    def _drop_taker(self, future: asyncio.Future) -> None:
        self._takers = [(p, f) for p, f in self._takers if f is not future]

    def _spawn(self, saga, *args) -> asyncio.Task:
        name = getattr(saga, "__name__", "saga")
        task = asyncio.get_running_loop().create_task(saga(self.effects, *args), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Saga %s failed: %s",
                task.get_name(),
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    def run(self, saga, *args) -> asyncio.Task:
        self._require_store()
        if self._root is not None:
            raise RuntimeError("saga middleware is already running")
        self._root = self._spawn(saga, *args)
        logger.info("Saga runner started root=%s", self._root.get_name())
        return self._root

    async def cancel(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Saga runner stopped tasks=%s", len(tasks))


def _resolve(future: asyncio.Future, action: dict) -> None:
    if not future.done():
        future.set_result(action)


def create_saga_middleware() -> SagaMiddleware:
    return SagaMiddleware()


async def _drain(effects: SagaContext, channel, worker, args) -> None:
    _, queue, _ = channel
    while True:
        action = await queue.get()
        effects.fork(worker, *args, action)
