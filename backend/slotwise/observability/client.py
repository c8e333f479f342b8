"""Opik SDK client helpers."""
from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Dict, Optional

from slotwise.core.config import settings

try:
    from opik import Opik
except ImportError:  # pragma: no cover
    Opik = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

_client: Optional["Opik"] = None
_client_lock = Lock()
_init_attempted = False


def init_opik() -> Optional["Opik"]:
    """Create the process-wide Opik client on first use.

    Returns None when the SDK is missing, tracing is switched off or no API
    key is configured. Initialization is attempted at most once per process;
    call ``reset_opik_client`` to try again after changing settings.
    """
    global _client, _init_attempted

    if Opik is None:
        return None

    with _client_lock:
        if _client is not None or _init_attempted:
            return _client
        _init_attempted = True

        if not settings.opik_enabled:
            return None

        if not settings.opik_api_key:
            logger.warning("OPIK_ENABLED is true but OPIK_API_KEY is missing; scheduler traces are off.")
            return None

        kwargs: Dict[str, Any] = {"project_name": settings.opik_project, "api_key": settings.opik_api_key}
        if settings.opik_workspace:
            kwargs["workspace"] = settings.opik_workspace
        try:
            client = Opik(**kwargs)
        except Exception as exc:  # pragma: no cover - network/config failure
            logger.warning("Failed to initialize Opik, scheduler traces are off: %s", exc)
            return None

        logger.info("Opik enabled (project=%s).", settings.opik_project)
        _client = client
        return _client


def get_opik_client() -> Optional["Opik"]:
    if _client is not None:
        return _client
    return init_opik()


def reset_opik_client() -> None:
    """Forget the cached client so the next call re-reads settings."""
    global _client, _init_attempted
    with _client_lock:
        _client = None
        _init_attempted = False
