import asyncio
import contextlib
import enum
import json
import logging
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional, Tuple

from aiohttp import ClientError, hdrs
from aiohttp_socks import ProxyError
from yarl import URL

from .config import HTTPOptions, ProxyConfig, RequestOptions
from .exceptions import (
    ProxySetupError,
    RequestAbortedError,
    RequestTimeoutError,
    ResponseParseError,
    TooManyRedirectsError,
    TransportError,
)
from .http import HTTPClient
from .models import Response, fold_headers

log = logging.getLogger("netreq.executor")

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
CHUNK_SIZE = 64 * 1024

# dropped when a redirect turns the request into a bodiless GET
BODY_HEADERS = frozenset({
    "content-type",
    "content-length",
    "content-encoding",
    "content-language",
    "content-location",
})
# dropped when a redirect leaves the original origin
CROSS_ORIGIN_HEADERS = frozenset({"authorization"})

ClientFactory = Callable[[ProxyConfig, HTTPOptions], HTTPClient]


class RequestState(enum.Enum):
    PENDING = "pending"
    HEADERS_RECEIVED = "headers-received"
    STREAMING_BODY = "streaming-body"
    SETTLED = "settled"


class RequestCall:
    """State of a single in-flight request.

    Moves through ``pending -> headers-received -> streaming-body -> settled``.
    Only the first call to :meth:`settle` commits an outcome; anything that
    arrives afterwards is dropped.
    """

    def __init__(self, url: str, options: RequestOptions):
        self.url = url
        self.options = options
        self.state = RequestState.PENDING
        self.redirects = 0
        self.status = 0
        self.status_text = ""
        self.headers = {}
        self.raw_headers = []
        self.buffer = bytearray()
        self.result: Optional[Response] = None
        self.error: Optional[BaseException] = None

    @property
    def settled(self) -> bool:
        return self.state is RequestState.SETTLED

    def redirect(self, location: str) -> None:
        self.redirects += 1
        log.debug("Redirect %d/%d for %s -> %s", self.redirects, self.options.max_redirects, self.url, location)
        if self.redirects > self.options.max_redirects:
            raise TooManyRedirectsError(self.options.max_redirects)

    def receive(self, status: int, status_text: str, raw_headers: Iterable[Tuple[bytes, bytes]]) -> bool:
        if self.settled:
            return False
        self.status = status
        self.status_text = status_text
        self.headers, self.raw_headers = fold_headers(raw_headers)
        self.state = RequestState.HEADERS_RECEIVED
        return True

    def feed(self, chunk: bytes) -> bool:
        if self.settled:
            return False
        self.state = RequestState.STREAMING_BODY
        self.buffer.extend(chunk)
        return True

    def decode(self) -> Any:
        raw = bytes(self.buffer)
        response_type = self.options.response_type
        if response_type == "arraybuffer":
            return raw
        text = raw.decode("utf-8", "replace")
        if response_type == "json":
            try:
                return json.loads(text, parse_constant=_reject_constant)
            except ValueError as e:
                raise ResponseParseError(response_type, e) from e
        return text

    def finish(self) -> Response:
        return Response(
            data=self.decode(),
            status=self.status,
            status_text=self.status_text,
            headers=self.headers,
            url=self.url,
            raw_headers=self.raw_headers,
        )

    def settle(self, result: Optional[Response] = None, error: Optional[BaseException] = None) -> bool:
        if self.settled:
            log.debug("Ignoring late outcome for %s: %r", self.url, error or result)
            return False
        self.state = RequestState.SETTLED
        self.result = result
        self.error = error
        return True

    def outcome(self) -> Response:
        if not self.settled:
            raise RuntimeError("request has not settled")
        if self.error is not None:
            raise self.error
        return self.result


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _without(headers: Dict[str, str], names: FrozenSet[str]) -> Dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in names}


def _rewrite_method(status: int, method: str) -> str:
    if status == 303 and method != "HEAD":
        return "GET"
    if status in (301, 302) and method == "POST":
        return "GET"
    return method


class RequestExecutor:
    """Runs requests against a default network context or per-call proxy contexts.

    ``default_client`` is the shared context for calls without a proxy; when it
    is not given the executor opens its own on first use and closes it in
    :meth:`close`. ``client_factory`` builds the isolated context for calls
    that carry a proxy.
    """

    def __init__(
            self,
            default_client: Optional[HTTPClient] = None,
            *,
            opts: HTTPOptions = HTTPOptions(),
            client_factory: ClientFactory = HTTPClient.isolated,
    ):
        self._default_client = default_client
        self._owns_default = default_client is None
        self._opts = opts
        self._client_factory = client_factory

    async def __aenter__(self) -> "RequestExecutor":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self) -> None:
        if self._default_client is not None and self._owns_default:
            await self._default_client.close()
            self._default_client = None

    async def _default(self) -> HTTPClient:
        if self._default_client is None:
            self._default_client = HTTPClient(opts=self._opts)
        await self._default_client.open()
        return self._default_client

    @contextlib.asynccontextmanager
    async def _network_context(self, proxy: Optional[ProxyConfig]):
        if proxy is None:
            yield await self._default()
            return

        client = None
        try:
            client = self._client_factory(proxy, self._opts)
            await client.open()
        except Exception as e:
            log.warning("Failed to setup proxy %s: %s", proxy.url, e)
            if client is not None:
                await client.close()
            raise ProxySetupError(proxy, e) from e

        try:
            yield client
        finally:
            await client.close()

    async def execute(self, url: str, options: Optional[RequestOptions] = None) -> Response:
        options = options if options is not None else RequestOptions()
        call = RequestCall(url, options)
        log.debug("%s %s", options.method, url)

        async with self._network_context(options.proxy_config) as client:
            await self._drive(call, client)

        if call.error is not None:
            log.debug("%s %s failed: %s", options.method, url, call.error)
        return call.outcome()

    async def _drive(self, call: RequestCall, client: HTTPClient) -> None:
        timeout = call.options.timeout
        work = asyncio.ensure_future(self._perform(call, client))
        waiters = {work}
        aborted = None
        if call.options.abort_signal is not None:
            aborted = asyncio.ensure_future(call.options.abort_signal.wait())
            waiters.add(aborted)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=timeout / 1000 if timeout > 0 else None,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if work in done:
                exc = work.exception()
                if exc is None:
                    call.settle(result=work.result())
                else:
                    call.settle(error=exc)
            elif aborted is not None and aborted in done:
                call.settle(error=RequestAbortedError())
            else:
                call.settle(error=RequestTimeoutError(timeout))
        finally:
            for fut in waiters:
                if not fut.done():
                    fut.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)

    async def _perform(self, call: RequestCall, client: HTTPClient) -> Response:
        opts = call.options
        method = opts.method
        url = call.url
        body = opts.encoded_body()
        headers = dict(opts.headers)

        try:
            while True:
                async with client.request(method, url, headers=headers, data=body) as resp:
                    location = resp.headers.get(hdrs.LOCATION)
                    if opts.follow_redirect and resp.status in REDIRECT_STATUSES and location:
                        call.redirect(location)
                        target = resp.url.join(URL(location))
                        if target.origin() != resp.url.origin():
                            headers = _without(headers, CROSS_ORIGIN_HEADERS)
                        new_method = _rewrite_method(resp.status, method)
                        if new_method != method:
                            method = new_method
                            body = None
                            headers = _without(headers, BODY_HEADERS)
                        url = str(target)
                        continue

                    if not call.receive(resp.status, resp.reason or "", resp.raw_headers):
                        break
                    async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                        if not call.feed(chunk):
                            break
                    break
        except (ClientError, ProxyError, OSError) as e:
            raise TransportError(e) from e

        return call.finish()
