from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable, DefaultDict, List

from orderflow.core.config import NOTIFICATION_WORKERS, NOTIFICATIONS_ASYNC
from orderflow.core.request_context import bind_current_context


Handler = Callable[[dict[str, Any]], None]


class EventBus:
    """In-process pub/sub. Handler failures are logged, never raised to the emitter.

    With ``asynchronous=True`` each emit is handed to a worker pool and the
    emitter returns immediately (fire-and-forget).
    """

    def __init__(self, *, asynchronous: bool = False, max_workers: int = NOTIFICATION_WORKERS) -> None:
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)
        self._logger = logging.getLogger(__name__)
        self.asynchronous = asynchronous
        self._max_workers = max(1, int(max_workers))
        self._executor: Executor | None = None
        self._executor_lock = Lock()

    def _get_executor(self) -> Executor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="event-bus",
                )
            return self._executor

    def _dispatch(self, event_name: str, handlers: list[Handler], payload: dict[str, Any]) -> None:
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                self._logger.exception("EventBus handler failed for %s", event_name)

    def emit(self, event_name: str, payload: dict[str, Any]) -> Future | None:
        handlers = list(self._handlers.get(event_name, []))
        if not handlers:
            self._logger.debug("EventBus: no handlers for %s", event_name)
            return None
        if not self.asynchronous:
            self._dispatch(event_name, handlers, payload)
            return None
        try:
            return self._get_executor().submit(
                bind_current_context(self._dispatch), event_name, handlers, dict(payload)
            )
        except RuntimeError:
            # pool already shut down
            self._logger.exception("EventBus could not schedule %s", event_name)
            return None

    def subscribe(self, event_name: str, handler: Handler) -> None:
        self._handlers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: Handler) -> None:
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, event_name: str) -> list[Handler]:
        return list(self._handlers.get(event_name, []))

    def shutdown(self, wait: bool = True) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)


event_bus = EventBus(asynchronous=NOTIFICATIONS_ASYNC)
