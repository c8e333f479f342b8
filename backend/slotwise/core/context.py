"""Per-request and per-job context for log correlation."""
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    return request_id_ctx_var.get()


@contextmanager
def bind_request_id(request_id: str) -> Iterator[str]:
    """Make ``request_id`` visible to log records for the duration of the block.

    HTTP requests bind the X-Request-Id value; background jobs bind a
    synthetic id so a whole weekly run can be grepped as one unit.
    """
    token = request_id_ctx_var.set(request_id)
    try:
        yield request_id
    finally:
        request_id_ctx_var.reset(token)
