import logging
import socket
import ssl
import time
import uuid
from typing import Any, Dict, Optional

import certifi
from aiohttp import ClientSession, ClientTimeout, CookieJar, TCPConnector
from aiohttp.resolver import AsyncResolver
from aiohttp_socks import ProxyConnector

from .config import HTTPOptions, ProxyConfig

log = logging.getLogger("netreq.http")


def _temp_name() -> str:
    return f"temp-request-{time.time_ns()}-{uuid.uuid4().hex[:8]}"


class HTTPClient:
    """A network context: one aiohttp session with its own connector and cookie jar.

    A plain ``HTTPClient()`` is the shared default context. ``HTTPClient.isolated``
    builds a uniquely named context that keeps no DNS cache, starts with an
    empty cookie jar, ignores proxy environment variables and sends every
    request through ``proxy``.
    """

    def __init__(
            self,
            session: Optional[ClientSession] = None,
            opts: HTTPOptions = HTTPOptions(),
            *,
            proxy: Optional[ProxyConfig] = None,
            name: str = "default",
            use_cache: bool = True,
    ):
        self._external_session = session is not None
        self._session = session
        self._opts = opts
        self._proxy = proxy
        self._name = name
        self._use_cache = use_cache
        self._connector: Optional[TCPConnector] = None

        self._ssl_context = ssl.create_default_context(cafile=certifi.where())

    @classmethod
    def isolated(cls, proxy: ProxyConfig, opts: HTTPOptions = HTTPOptions()) -> "HTTPClient":
        return cls(opts=opts, proxy=proxy, name=_temp_name(), use_cache=False)

    @property
    def name(self) -> str:
        return self._name

    @property
    def proxy(self) -> Optional[ProxyConfig]:
        return self._proxy

    @property
    def closed(self) -> bool:
        return self._session is None or self._session.closed

    async def __aenter__(self) -> "HTTPClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _make_connector(self) -> TCPConnector:
        family = socket.AF_INET if self._opts.prefer_ipv4 else 0
        if self._proxy is not None and self._proxy.protocol == "socks5":
            return ProxyConnector.from_url(
                self._proxy.url,
                ssl=self._ssl_context,
                family=family,
                use_dns_cache=self._use_cache,
                ttl_dns_cache=self._opts.dns_cache_ttl,
            )
        return TCPConnector(
            resolver=AsyncResolver(),
            use_dns_cache=self._use_cache,
            ttl_dns_cache=self._opts.dns_cache_ttl,
            family=family,
            ssl=self._ssl_context,
        )

    async def open(self) -> None:
        if self._session is not None:
            return
        self._connector = self._make_connector()
        timeout = ClientTimeout(total=None, connect=self._opts.connect_timeout)
        self._session = ClientSession(
            timeout=timeout,
            headers=self._opts.headers,
            connector=self._connector,
            cookie_jar=CookieJar(unsafe=self._opts.allow_ip_cookies),
            trust_env=self._proxy is None,
        )
        if self._proxy is not None:
            log.debug("Opened context %s routed through %s", self._name, self._proxy.url)

    async def close(self) -> None:
        if self._session and not self._external_session:
            await self._session.close()
            log.debug("Closed context %s", self._name)
        elif self._connector is not None:
            await self._connector.close()
        self._session = None
        self._connector = None

    def _ensure(self) -> ClientSession:
        if self._session is None:
            raise RuntimeError("HTTP session is not started. Use 'async with HTTPClient(...)'.")
        return self._session

    def _request_kwargs(self) -> Dict[str, Any]:
        if self._proxy is not None and self._proxy.protocol in ("http", "https"):
            return {"proxy": self._proxy.url}
        return {}

    def request(self, method: str, url: str, *, headers: Optional[Dict[str, str]] = None,
                data: Optional[bytes] = None):
        """Start one request hop; redirects are returned to the caller, not followed."""
        sess = self._ensure()
        return sess.request(
            method,
            url,
            headers=headers,
            data=data,
            allow_redirects=False,
            **self._request_kwargs(),
        )
