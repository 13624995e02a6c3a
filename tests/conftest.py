# File: tests/conftest.py
from collections import Counter
from typing import AsyncIterator, Callable, Dict, Tuple, Union

import pytest
import pytest_asyncio
from aiohttp import web

from docs_archiver.utils.paths import PathMapper, PathMapping


# path -> body, or (body, content_type) or (body, content_type, status)
Routes = Dict[str, Union[str, bytes, Tuple]]


def build_app(routes: Routes) -> Tuple[web.Application, Counter]:
    """
    Build an aiohttp app serving fixed responses.

    Returns the app and a Counter of requests per path.
    """
    hits: Counter = Counter()

    @web.middleware
    async def count_hits(request, handler):
        hits[request.path] += 1
        return await handler(request)

    app = web.Application(middlewares=[count_hits])

    def make_handler(route):
        if not isinstance(route, tuple):
            route = (route,)
        body = route[0]
        content_type = route[1] if len(route) > 1 else "text/html"
        status = route[2] if len(route) > 2 else 200

        async def handler(_):
            if isinstance(body, bytes):
                return web.Response(body=body, content_type=content_type, status=status)
            return web.Response(text=body, content_type=content_type, status=status)

        return handler

    for path, route in routes.items():
        app.router.add_get(path, make_handler(route))

    return app, hits


@pytest.fixture()
def make_app() -> Callable[[Routes], Tuple[web.Application, Counter]]:
    return build_app


@pytest_asyncio.fixture
async def serve(unused_tcp_port_factory) -> AsyncIterator[Callable]:
    """
    Start aiohttp apps on 127.0.0.1 and return their base URLs.

    The host contains dots, so it passes domain validation.
    """
    runners = []

    async def _serve(app: web.Application) -> str:
        port = unused_tcp_port_factory()
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, "127.0.0.1", port)
        await site.start()
        runners.append(runner)
        return f"http://127.0.0.1:{port}"

    yield _serve

    for runner in runners:
        await runner.cleanup()


@pytest.fixture()
def mapper() -> PathMapper:
    return PathMapper("docs.example.com", ["cdn.example.com"])


@pytest.fixture()
def mapping() -> PathMapping:
    """
    A mapping as it looks after a small site was archived.
    """
    table = PathMapping()
    table.add("https://docs.example.com/", "index.html", page=True)
    table.add("https://docs.example.com/guide/intro", "guide/intro/index.html", page=True)
    table.add("https://docs.example.com/styles/main.css", "styles/main.css")
    table.add("https://docs.example.com/fonts/a.woff2", "fonts/a.woff2")
    table.add("https://docs.example.com/_next/static/chunks/a.js", "_next/static/chunks/a.js")
    table.add("https://docs.example.com/_next/static/chunks/b.js", "_next/static/chunks/b.js")
    table.add("https://cdn.example.com/lib/app.js", "assets/cdn.example.com/lib/app.js")
    table.add("https://cdn.example.com/icons/check.svg", "assets/cdn.example.com/icons/check.svg")
    return table
