from .api import aclose, default_executor, delete, get, patch, post, put, request
from .config import HTTPOptions, ProxyConfig, RequestOptions
from .exceptions import (
    RequestError,
    RequestTimeoutError,
    TooManyRedirectsError,
    ResponseParseError,
    TransportError,
    RequestAbortedError,
    ProxySetupError,
)
from .executor import RequestCall, RequestExecutor, RequestState
from .http import HTTPClient
from .models import Response

__all__ = [
    "request",
    "get",
    "post",
    "put",
    "delete",
    "patch",
    "aclose",
    "default_executor",
    "HTTPClient",
    "HTTPOptions",
    "ProxyConfig",
    "RequestOptions",
    "RequestExecutor",
    "RequestCall",
    "RequestState",
    "Response",
    "RequestError",
    "RequestTimeoutError",
    "TooManyRedirectsError",
    "ResponseParseError",
    "TransportError",
    "RequestAbortedError",
    "ProxySetupError",
]
