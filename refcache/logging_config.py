"""
logging_config.py
------------------

Shared logging configuration for the reference-data cache service.
It uses Python's built‑in ``logging`` module rather than ``print`` so
that log output can be captured by standard handlers or shipped to an
external system. Messages are serialised as JSON strings carrying an
``event`` field, which makes them easy to filter downstream.

Import ``logger`` from here instead of calling ``logging.info``
directly. The ``log_call`` decorator records entry and exit of service
functions at DEBUG level without leaking tokens or passwords.
"""

from __future__ import annotations

import inspect
import json
import logging
import sys
from functools import wraps
from typing import Any, Callable, Dict

# -----------------------------------------------------------------------------
# Configure global logging
# -----------------------------------------------------------------------------

# Set up the root logger once.  Output goes to stdout with a timestamp and
# level; the message itself is a JSON string.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger("refcache")

_SECRET_MARKERS = ("token", "password", "secret")


def _sanitize(obj: Any) -> Any:
    """Recursively sanitise objects for logging.

    Dictionaries lose any key containing 'token', 'password' or
    'secret'. Lists and tuples are processed element‑wise. Pydantic
    models are dumped first. Anything that is not JSON serialisable is
    replaced by its ``str``.

    Parameters
    ----------
    obj : Any
        Arbitrary Python object to sanitise.

    Returns
    -------
    Any
        A sanitised representation suitable for ``json.dumps``.
    """
    if isinstance(obj, (bytes, bytearray)):
        return f"<binary {len(obj)} bytes>"
    if isinstance(obj, dict):
        clean: Dict[str, Any] = {}
        for k, v in obj.items():
            if any(marker in str(k).lower() for marker in _SECRET_MARKERS):
                continue
            clean[str(k)] = _sanitize(v)
        return clean
    if isinstance(obj, (list, tuple)):
        return [_sanitize(i) for i in obj]
    if hasattr(obj, "model_dump"):
        try:
            return _sanitize(obj.model_dump(mode="json"))
        except Exception:
            return str(obj)
    try:
        return json.loads(json.dumps(obj))
    except (TypeError, ValueError):
        return str(obj)


def log_event(event: str, level: int = logging.INFO, **fields: Any) -> None:
    """Emit one structured log line ``{"event": event, **fields}``."""
    if not logger.isEnabledFor(level):
        return
    payload = {"event": event}
    payload.update(_sanitize(fields))
    logger.log(level, json.dumps(payload))


def log_call(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator to log entry and exit of functions.

    A ``call_start`` event is logged at DEBUG before the function runs
    and a ``call_end`` event after it returns. Coroutine functions are
    wrapped with an async wrapper so the end event is written once the
    coroutine has actually finished. Arguments and return values pass
    through ``_sanitize``.

    Examples
    --------

    >>> @log_call
    ... async def list_warehouses(self):
    ...     ...
    """

    def _start(args: Any, kwargs: Any) -> None:
        try:
            log_event("call_start", logging.DEBUG, function=func.__qualname__,
                      args=args, kwargs=kwargs)
        except Exception:
            logger.debug(json.dumps({"event": "call_start", "function": func.__qualname__}))

    def _end(result: Any) -> None:
        try:
            log_event("call_end", logging.DEBUG, function=func.__qualname__, result=result)
        except Exception:
            logger.debug(json.dumps({"event": "call_end", "function": func.__qualname__}))

    if inspect.iscoroutinefunction(func):
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            _start(args, kwargs)
            result = await func(*args, **kwargs)
            _end(result)
            return result

        async_wrapper.__signature__ = inspect.signature(func)  # type: ignore[attr-defined]
        return async_wrapper

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        _start(args, kwargs)
        result = func(*args, **kwargs)
        _end(result)
        return result

    wrapper.__signature__ = inspect.signature(func)  # type: ignore[attr-defined]
    return wrapper


def log_http_request(method: str, url: str, *, headers: Dict[str, Any] | None = None,
                     params: Dict[str, Any] | None = None, json_body: Any = None,
                     status: int | None = None, duration_ms: float | None = None) -> None:
    """Log an outbound HTTP request at DEBUG level.

    The ``Authorization`` and ``Cookie`` headers are dropped so that
    only high‑level information (method, URL, status and duration) is
    recorded. Call it before sending and again once the response (or
    error) is known.

    Parameters
    ----------
    method : str
        The HTTP method (GET, POST, etc.)
    url : str
        The URL being requested.
    headers : dict, optional
        Request headers.  Sensitive keys are removed.
    params : dict, optional
        Query parameters.
    json_body : Any, optional
        JSON payload for non‑GET requests.
    status : int, optional
        Response status code (log end only).
    duration_ms : float, optional
        Time taken in milliseconds (log end only).
    """
    if not logger.isEnabledFor(logging.DEBUG):
        return
    data: Dict[str, Any] = {
        "event": "http_request",
        "method": method,
        "url": url,
    }
    if headers is not None:
        data["headers"] = {k: v for k, v in headers.items() if k.lower() not in {"authorization", "cookie"}}
    if params:
        data["params"] = _sanitize(params)
    if json_body:
        data["json"] = _sanitize(json_body)
    if status is not None:
        data["status"] = status
    if duration_ms is not None:
        data["duration_ms"] = round(duration_ms, 2)
    logger.debug(json.dumps(data))
