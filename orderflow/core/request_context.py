from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, copy_context
from typing import Any, Callable, Iterator


_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("request_id", default=None)
_TENANT_ID_CTX: ContextVar[str | None] = ContextVar("tenant_id", default=None)
_USER_ID_CTX: ContextVar[str | None] = ContextVar("user_id", default=None)


def set_request_context(
    *, request_id: str | None = None, tenant_id: Any = None, user_id: Any = None
) -> None:
    if request_id is not None:
        _REQUEST_ID_CTX.set(request_id)
    if tenant_id is not None:
        _TENANT_ID_CTX.set(str(tenant_id))
    if user_id is not None:
        _USER_ID_CTX.set(str(user_id))


def get_request_id() -> str | None:
    return _REQUEST_ID_CTX.get()


def get_tenant_id() -> str | None:
    return _TENANT_ID_CTX.get()


def get_user_id() -> str | None:
    return _USER_ID_CTX.get()


def clear_request_context() -> None:
    _REQUEST_ID_CTX.set(None)
    _TENANT_ID_CTX.set(None)
    _USER_ID_CTX.set(None)


@contextmanager
def tenant_log_context(tenant_id: Any) -> Iterator[None]:
    token = _TENANT_ID_CTX.set(str(tenant_id) if tenant_id is not None else None)
    try:
        yield
    finally:
        _TENANT_ID_CTX.reset(token)


def bind_current_context(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap ``fn`` so it runs inside a copy of the caller's context.

    Worker threads do not inherit contextvars; handlers dispatched off the
    request thread keep the request id / tenant id in their log lines.
    """
    ctx = copy_context()

    def _runner(*args: Any, **kwargs: Any) -> Any:
        return ctx.run(fn, *args, **kwargs)

    return _runner
