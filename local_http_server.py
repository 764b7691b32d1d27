"""
A throwaway HTTP/1.1 server on 127.0.0.1 for tests that need a real socket.

Each route can send its body in pieces with a pause between them, which is
how a server that keeps a connection alive while never finishing looks to
httpx: every read completes quickly, the response never does.

Usage:
    async with serve({"/dns.json": Route(body=b"{}", pieces=5, delay=0.3)}) as (url, hits):
        ...
"""

import asyncio
import contextlib
from collections import Counter
from dataclasses import dataclass

REASONS = {200: "OK", 304: "Not Modified", 404: "Not Found", 503: "Service Unavailable"}

PROXY_VARIABLES = ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy")


@dataclass
class Route:
    status: int = 200
    body: bytes = b""
    pieces: int = 1
    delay: float = 0.0
    content_type: str = "application/json"


async def _send(writer: asyncio.StreamWriter, route: Route) -> None:
    head = (
        f"HTTP/1.1 {route.status} {REASONS.get(route.status, 'Status')}\r\n"
        f"Content-Type: {route.content_type}\r\n"
        f"Content-Length: {len(route.body)}\r\n"
        "Connection: close\r\n\r\n"
    )
    writer.write(head.encode("ascii"))
    await writer.drain()

    size = max(1, -(-len(route.body) // route.pieces))
    for start in range(0, len(route.body), size):
        if route.delay:
            await asyncio.sleep(route.delay)
        writer.write(route.body[start:start + size])
        await writer.drain()


@contextlib.asynccontextmanager
async def serve(routes: dict[str, Route], default: Route | None = None):
    """Yield (base_url, hits); hits counts requests per path."""
    hits = Counter()
    fallback = default or Route(status=404)

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            request = await reader.readuntil(b"\r\n\r\n")
            path = request.split(b" ", 2)[1].decode("ascii").split("?", 1)[0]
            hits[path] += 1
            route = routes.get(path, fallback)
            await _send(writer, route)
        except (ConnectionError, asyncio.IncompleteReadError):
            pass  # client gave up
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        yield f"http://127.0.0.1:{port}", hits
    finally:
        server.close()


def clear_proxy_env(monkeypatch) -> None:
    """Keep httpx from sending 127.0.0.1 traffic through an environment proxy."""
    for name in PROXY_VARIABLES:
        monkeypatch.delenv(name, raising=False)
