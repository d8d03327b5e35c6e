import asyncio

import pytest
from aiohttp import web
from multidict import CIMultiDict

from netreq import HTTPOptions, RequestExecutor

BINARY = bytes(range(256)) * 4


async def text(request):
    return web.Response(text="héllo wörld")


async def json_ok(request):
    return web.Response(text='{"a":1}', content_type="application/json")


async def json_bad(request):
    return web.Response(text="{a:", content_type="application/json")


async def binary(request):
    return web.Response(body=BINARY, content_type="application/octet-stream")


async def duplicate_headers(request):
    headers = CIMultiDict([("X-Dup", "one"), ("X-Dup", "two"), ("X-Single", "only")])
    return web.Response(text="ok", headers=headers)


async def status(request):
    return web.Response(status=int(request.match_info["code"]), text="status")


async def redirect(request):
    request.app["hits"].append(request.path)
    n = int(request.match_info["n"])
    if n > 0:
        raise web.HTTPFound(f"/redirect/{n - 1}")
    return web.Response(text="done")


async def post_redirect(request):
    raise web.HTTPFound("/echo")


async def see_other(request):
    raise web.HTTPSeeOther("/echo")


async def away(request):
    raise web.HTTPFound(request.query["to"])


async def json_nan(request):
    return web.Response(text="NaN", content_type="application/json")


async def slow(request):
    await asyncio.sleep(1)
    return web.Response(text="late")


async def echo(request):
    return web.json_response({
        "method": request.method,
        "content_types": request.headers.getall("Content-Type", []),
        "headers": {k.lower(): v for k, v in request.headers.items()},
        "body": (await request.read()).decode("utf-8"),
    })


async def set_cookie(request):
    resp = web.Response(text="set")
    resp.set_cookie("sid", "abc123")
    return resp


async def read_cookie(request):
    return web.Response(text=request.cookies.get("sid", ""))


def make_app() -> web.Application:
    app = web.Application()
    app["hits"] = []
    app.router.add_get("/text", text)
    app.router.add_get("/json", json_ok)
    app.router.add_get("/bad-json", json_bad)
    app.router.add_get("/binary", binary)
    app.router.add_get("/headers", duplicate_headers)
    app.router.add_get("/status/{code}", status)
    app.router.add_get("/redirect/{n}", redirect)
    app.router.add_post("/post-redirect", post_redirect)
    app.router.add_put("/see-other", see_other)
    app.router.add_get("/away", away)
    app.router.add_get("/nan", json_nan)
    app.router.add_get("/slow", slow)
    app.router.add_route("*", "/echo", echo)
    app.router.add_get("/set-cookie", set_cookie)
    app.router.add_get("/cookie", read_cookie)
    return app


@pytest.fixture
async def server(aiohttp_server):
    return await aiohttp_server(make_app())


@pytest.fixture
def url(server):
    def _url(path: str) -> str:
        return str(server.make_url(path))
    return _url


@pytest.fixture
async def executor():
    async with RequestExecutor(opts=HTTPOptions(allow_ip_cookies=True)) as ex:
        yield ex


async def forward_proxy(request):
    request.app["seen"].append({
        "method": request.method,
        "target": request.raw_path,
        "url": str(request.url),
        "host": request.headers.get("Host"),
    })
    return web.Response(text="via proxy")


def make_proxy_app() -> web.Application:
    app = web.Application()
    app["seen"] = []
    app.router.add_route("*", "/{tail:.*}", forward_proxy)
    return app


@pytest.fixture
async def proxy_server(aiohttp_server):
    return await aiohttp_server(make_proxy_app())
