import argparse
import asyncio
import json
import logging
import sys

from netreq import RequestError, RequestOptions, aclose, request

log_executor = logging.getLogger("netreq.executor")
log_http = logging.getLogger("netreq.http")

for logger in (log_executor, log_http):
    logger.addHandler(logging.StreamHandler())
    logger.setLevel(logging.DEBUG)

if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


def _parse_proxy(value: str):
    protocol, _, rest = value.partition("://")
    host, _, port = rest.rpartition(":")
    if not protocol or not host or not port:
        raise argparse.ArgumentTypeError("proxy must look like protocol://host:port")
    return {"protocol": protocol, "host": host, "port": int(port)}


def _parse_header(value: str):
    name, sep, val = value.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError("header must look like 'Name: value'")
    return name.strip(), val.strip()


async def main(args: argparse.Namespace) -> int:
    opts = RequestOptions(
        method=args.method,
        headers=dict(args.header or []),
        body=args.data,
        proxy=args.proxy or False,
        timeout=args.timeout,
        response_type=args.response_type,
        follow_redirect=not args.no_redirect,
        max_redirects=args.max_redirects,
    )
    try:
        resp = await request(args.url, opts)
    except RequestError as e:
        print(f"{e.__class__.__name__}: {e}", file=sys.stderr)
        return 1
    finally:
        await aclose()

    print(f"{resp.status} {resp.status_text}")
    for name, value in resp.headers.items():
        print(f"{name}: {value}")
    print()
    if args.response_type == "json":
        print(json.dumps(resp.data, ensure_ascii=False, indent=2))
    elif args.response_type == "arraybuffer":
        print(f"<{len(resp.data)} bytes>")
    else:
        print(resp.data)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Issue one HTTP request and print the response")
    parser.add_argument("url")
    parser.add_argument("-X", "--method", default="GET")
    parser.add_argument("-H", "--header", action="append", type=_parse_header)
    parser.add_argument("-d", "--data")
    parser.add_argument("--proxy", type=_parse_proxy)
    parser.add_argument("--timeout", type=int, default=30000, help="milliseconds, <= 0 disables")
    parser.add_argument("--response-type", choices=("text", "json", "arraybuffer"), default="text")
    parser.add_argument("--no-redirect", action="store_true")
    parser.add_argument("--max-redirects", type=int, default=20)
    sys.exit(asyncio.run(main(parser.parse_args())))
