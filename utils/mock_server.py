#!/usr/bin/env python3
"""
Mock server for trying out endpoint monitoring and API tests.

This server simulates a small API with varying behavior:
- /json/{id}: 200 with a JSON document {"data": {"id": <id>, "name": ...}}
- /text: 200 with a random sequence of lowercase letters
- /flaky: 200 most of the time, 503 otherwise
- /slow: answers after 5-30s, beyond the liveness check timeout
Every response is delayed by 5-500ms.
"""

import asyncio
import random
import string

from aiohttp import web

# Constants
PORT = 8080
HOST = "localhost"
RESPONSE_LENGTH = 100
FLAKY_SUCCESS_PROBABILITY = 0.8
FAST_RESPONSE_MIN_MS = 5
FAST_RESPONSE_MAX_MS = 500
SLOW_RESPONSE_MIN_S = 5
SLOW_RESPONSE_MAX_S = 30


async def _delay() -> None:
    await asyncio.sleep(random.uniform(FAST_RESPONSE_MIN_MS, FAST_RESPONSE_MAX_MS) / 1000)


async def handle_json(request: web.Request) -> web.Response:
    """
    Return a JSON document embedding the requested id.

    Args:
        request: The incoming HTTP request

    Returns:
        A JSON response with the id under data.id
    """
    await _delay()
    item_id = request.match_info["id"]
    return web.json_response(
        {"data": {"id": int(item_id) if item_id.isdigit() else item_id, "name": f"item-{item_id}"}}
    )


async def handle_text(request: web.Request) -> web.Response:
    await _delay()
    response_content = "".join(
        random.choice(string.ascii_lowercase) for _ in range(RESPONSE_LENGTH)
    )
    return web.Response(text=response_content)


async def handle_flaky(request: web.Request) -> web.Response:
    await _delay()
    if random.random() < FLAKY_SUCCESS_PROBABILITY:
        return web.Response(text="ok")
    return web.Response(status=503, text="unavailable")


async def handle_slow(request: web.Request) -> web.Response:
    await asyncio.sleep(random.uniform(SLOW_RESPONSE_MIN_S, SLOW_RESPONSE_MAX_S))
    return web.Response(text="finally")


async def init_app() -> web.Application:
    """
    Initialize the web application.

    Returns:
        Configured aiohttp web Application
    """
    app = web.Application()
    app.add_routes(
        [
            web.route("*", "/json/{id}", handle_json),
            web.route("*", "/text", handle_text),
            web.route("*", "/flaky", handle_flaky),
            web.route("*", "/slow", handle_slow),
        ]
    )
    return app


def run_server() -> None:
    """Run the mock server on HOST:PORT.

    Returns:
        None
    """
    web.run_app(init_app(), host=HOST, port=PORT)


if __name__ == "__main__":
    print(f"Starting mock server at http://{HOST}:{PORT}")
    print(f"- /flaky succeeds {FLAKY_SUCCESS_PROBABILITY * 100}% of the time")
    print(f"- /slow answers after {SLOW_RESPONSE_MIN_S}-{SLOW_RESPONSE_MAX_S}s")
    run_server()
