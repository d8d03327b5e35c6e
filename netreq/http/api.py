"""Module-level request helpers.

Each helper runs on a default :class:`RequestExecutor` bound to the running
event loop unless ``executor=`` is passed. Options come either as a
:class:`RequestOptions` or as keyword overrides::

    resp = await get("https://example.com/api", response_type="json", timeout=5000)
"""
import asyncio
import dataclasses
import json
import logging
from typing import Any, Dict, Optional, Tuple

from .config import RequestOptions
from .executor import RequestExecutor
from .models import Response

log = logging.getLogger("netreq.api")

_default: Optional[Tuple[asyncio.AbstractEventLoop, RequestExecutor]] = None


def _retire(old_loop: asyncio.AbstractEventLoop, executor: RequestExecutor) -> None:
    if not old_loop.is_closed() and old_loop.is_running():
        log.debug("Event loop changed, closing default executor on its own loop")
        asyncio.run_coroutine_threadsafe(executor.close(), old_loop)
    else:
        log.warning("Event loop changed before aclose() was awaited; the previous default executor was left open")


def default_executor() -> RequestExecutor:
    """Return the default executor of the running loop.

    Await :func:`aclose` before the loop ends; an executor whose loop has
    already stopped cannot close its session anymore.
    """
    global _default
    loop = asyncio.get_running_loop()
    if _default is None or _default[0] is not loop:
        if _default is not None:
            _retire(*_default)
        _default = (loop, RequestExecutor())
    return _default[1]


async def aclose() -> None:
    """Close the default executor of the running loop, if any."""
    global _default
    if _default is None or _default[0] is not asyncio.get_running_loop():
        return
    executor = _default[1]
    _default = None
    await executor.close()


def _build_options(options: Optional[RequestOptions], overrides: Dict[str, Any]) -> RequestOptions:
    base = options if options is not None else RequestOptions()
    if overrides:
        return dataclasses.replace(base, **overrides)
    return base


def _encode_data(data: Any, headers: Dict[str, str]) -> Tuple[Any, Dict[str, str]]:
    if isinstance(data, (str, bytes, bytearray)):
        return data, headers
    body = json.dumps(data, separators=(",", ":"))
    headers = dict(headers)
    if not any(k.lower() == "content-type" for k in headers):
        headers["content-type"] = "application/json"
    return body, headers


async def request(url: str, options: Optional[RequestOptions] = None, *,
                  executor: Optional[RequestExecutor] = None, **overrides) -> Response:
    opts = _build_options(options, overrides)
    return await (executor or default_executor()).execute(url, opts)


async def get(url: str, options: Optional[RequestOptions] = None, *,
              executor: Optional[RequestExecutor] = None, **overrides) -> Response:
    overrides.update(method="GET", body=None)
    return await request(url, options, executor=executor, **overrides)


async def delete(url: str, options: Optional[RequestOptions] = None, *,
                 executor: Optional[RequestExecutor] = None, **overrides) -> Response:
    overrides.update(method="DELETE", body=None)
    return await request(url, options, executor=executor, **overrides)


async def _send(method: str, url: str, data: Any, options: Optional[RequestOptions],
                executor: Optional[RequestExecutor], overrides: Dict[str, Any]) -> Response:
    opts = _build_options(options, overrides)
    body, headers = _encode_data(data, opts.headers)
    opts = dataclasses.replace(opts, method=method, body=body, headers=headers)
    return await request(url, opts, executor=executor)


async def post(url: str, data: Any, options: Optional[RequestOptions] = None, *,
               executor: Optional[RequestExecutor] = None, **overrides) -> Response:
    return await _send("POST", url, data, options, executor, overrides)


async def put(url: str, data: Any, options: Optional[RequestOptions] = None, *,
              executor: Optional[RequestExecutor] = None, **overrides) -> Response:
    return await _send("PUT", url, data, options, executor, overrides)


async def patch(url: str, data: Any, options: Optional[RequestOptions] = None, *,
                executor: Optional[RequestExecutor] = None, **overrides) -> Response:
    return await _send("PATCH", url, data, options, executor, overrides)
