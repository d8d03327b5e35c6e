from dataclasses import dataclass, field
from typing import Dict, Optional, Union
import asyncio

METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")
RESPONSE_TYPES = ("text", "json", "arraybuffer")
PROXY_PROTOCOLS = ("http", "https", "socks5")

DEFAULT_TIMEOUT_MS = 30000
DEFAULT_MAX_REDIRECTS = 20


@dataclass
class HTTPOptions:
    connect_timeout: Optional[float] = None
    prefer_ipv4: bool = False
    dns_cache_ttl: int = 300
    allow_ip_cookies: bool = False
    headers: Dict[str, str] = field(default_factory=lambda: {
        "User-Agent": "netreq/1.0 (+https://example.com)"
    })


@dataclass
class ProxyConfig:
    protocol: str
    host: str
    port: int

    def __post_init__(self):
        self.protocol = self.protocol.lower()
        if self.protocol not in PROXY_PROTOCOLS:
            raise ValueError(f"Unsupported proxy protocol: {self.protocol!r}")
        if not self.host:
            raise ValueError("proxy host is required")
        self.port = int(self.port)

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"


@dataclass
class RequestOptions:
    """Per-call request settings.

    ``proxy`` accepts a :class:`ProxyConfig`, a mapping with the same keys,
    ``None`` or ``False``; the last two route through the default context.
    ``timeout`` is in milliseconds and a value <= 0 disables it.
    """
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None
    proxy: Union[ProxyConfig, Dict, bool, None] = None
    timeout: int = DEFAULT_TIMEOUT_MS
    response_type: str = "text"
    follow_redirect: bool = True
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    abort_signal: Optional[asyncio.Event] = None

    def __post_init__(self):
        self.method = self.method.upper()
        if self.method not in METHODS:
            raise ValueError(f"Unsupported method: {self.method!r}")
        if self.response_type not in RESPONSE_TYPES:
            raise ValueError(f"Unsupported response type: {self.response_type!r}")
        if self.headers is None:
            self.headers = {}
        if isinstance(self.proxy, dict):
            self.proxy = ProxyConfig(**self.proxy)
        elif self.proxy is True:
            raise ValueError("proxy must be a proxy descriptor, None or False")

    @property
    def proxy_config(self) -> Optional[ProxyConfig]:
        return self.proxy or None

    def encoded_body(self) -> Optional[bytes]:
        if not self.body:
            return None
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return bytes(self.body)
