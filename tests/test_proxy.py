"""Tests for proxy context provisioning and cleanup"""
import pytest

from netreq import (
    HTTPClient,
    HTTPOptions,
    ProxyConfig,
    ProxySetupError,
    RequestExecutor,
    RequestOptions,
    RequestTimeoutError,
)

PROXY = {"protocol": "http", "host": "10.0.0.1", "port": 8080}


class RecordingFactory:
    """Hands out direct contexts and remembers which proxy was asked for."""

    def __init__(self):
        self.clients = []
        self.proxies = []

    def __call__(self, proxy, opts):
        client = HTTPClient(opts=opts, name=f"temp-{len(self.clients)}", use_cache=False)
        self.clients.append(client)
        self.proxies.append(proxy)
        return client


class FailingClient(HTTPClient):
    async def open(self):
        raise OSError("proxy rules rejected")


@pytest.fixture
async def recording():
    factory = RecordingFactory()
    async with RequestExecutor(opts=HTTPOptions(allow_ip_cookies=True), client_factory=factory) as ex:
        yield ex, factory


@pytest.mark.parametrize("proxy", [False, None])
async def test_disabled_proxy_uses_default_context(recording, url, proxy):
    ex, factory = recording
    resp = await ex.execute(url("/text"), RequestOptions(proxy=proxy))

    assert resp.status == 200
    assert factory.clients == []


async def test_proxy_gets_isolated_context_closed_after_success(recording, url):
    ex, factory = recording
    resp = await ex.execute(url("/text"), RequestOptions(proxy=PROXY))

    assert resp.status == 200
    assert len(factory.clients) == 1
    assert factory.proxies[0].url == "http://10.0.0.1:8080"
    assert factory.clients[0].closed


async def test_each_proxied_call_gets_its_own_context(recording, url):
    ex, factory = recording
    await ex.execute(url("/text"), RequestOptions(proxy=PROXY))
    await ex.execute(url("/text"), RequestOptions(proxy=PROXY))

    assert len(factory.clients) == 2
    assert factory.clients[0] is not factory.clients[1]


async def test_proxy_context_closed_after_timeout(recording, url):
    ex, factory = recording
    with pytest.raises(RequestTimeoutError):
        await ex.execute(url("/slow"), RequestOptions(proxy=PROXY, timeout=100))

    assert factory.clients[0].closed


async def test_proxy_context_does_not_share_cookies(recording, url):
    ex, factory = recording
    await ex.execute(url("/set-cookie"))

    shared = await ex.execute(url("/cookie"))
    isolated = await ex.execute(url("/cookie"), RequestOptions(proxy=PROXY))

    assert shared.data == "abc123"
    assert isolated.data == ""


async def test_proxy_setup_failure_is_wrapped(url):
    def factory(proxy, opts):
        return FailingClient(opts=opts, proxy=proxy, name="broken")

    async with RequestExecutor(client_factory=factory) as ex:
        with pytest.raises(ProxySetupError) as info:
            await ex.execute(url("/text"), RequestOptions(proxy=PROXY))

    assert isinstance(info.value.cause, OSError)
    assert info.value.proxy.host == "10.0.0.1"


def test_isolated_contexts_are_uniquely_named():
    proxy = ProxyConfig("http", "127.0.0.1", 3128)
    a = HTTPClient.isolated(proxy)
    b = HTTPClient.isolated(proxy)

    assert a.name.startswith("temp-request-")
    assert a.name != b.name
    assert a.proxy is proxy


async def test_socks5_context_opens_and_closes():
    client = HTTPClient.isolated(ProxyConfig("socks5", "127.0.0.1", 1080))
    async with client:
        assert not client.closed
    assert client.closed


def test_proxy_config_renders_url():
    assert ProxyConfig("SOCKS5", "proxy.local", "1080").url == "socks5://proxy.local:1080"


def test_proxy_config_rejects_unknown_protocol():
    with pytest.raises(ValueError):
        ProxyConfig("ftp", "proxy.local", 21)


def test_options_accept_proxy_mapping():
    opts = RequestOptions(proxy=PROXY)

    assert isinstance(opts.proxy, ProxyConfig)
    assert opts.proxy_config.port == 8080
    assert RequestOptions(proxy=False).proxy_config is None


async def test_http_proxy_receives_absolute_form_request(proxy_server):
    proxy = {"protocol": "http", "host": "127.0.0.1", "port": proxy_server.port}

    async with RequestExecutor() as ex:
        resp = await ex.execute("http://example.test/resource?q=1", RequestOptions(proxy=proxy))

    assert resp.data == "via proxy"
    seen = proxy_server.app["seen"]
    assert len(seen) == 1
    assert seen[0]["method"] == "GET"
    assert seen[0]["target"].startswith("http://example.test/resource")
    assert seen[0]["url"] == "http://example.test/resource?q=1"
    assert seen[0]["host"] == "example.test"
