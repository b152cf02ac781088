"""
Minimal Chrome DevTools Protocol client over aiohttp websockets.

Only what the interceptor needs: discover targets over the HTTP endpoint, connect
to one page, send commands and fan events out to registered handlers.
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

log = logging.getLogger(__name__)

EventHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class CDPError(Exception):
    """The browser answered a command with an error object."""

    def __init__(self, method: str, error: Dict[str, Any]) -> None:
        super().__init__(f"{method}: {error.get('message', error)}")
        self.method = method
        self.error = error


class CDPConnectionClosed(ConnectionError):
    """The websocket went away while a command was pending."""


def http_endpoint(host: str, port: int) -> str:
    return f"http://{host}:{port}"


# --------------------------------------------------------------------------------------
# Target discovery
# --------------------------------------------------------------------------------------
async def wait_for_cdp(host: str, port: int, timeout_sec: float = 20.0) -> bool:
    """Wait for the CDP HTTP endpoint to answer ``/json/version``."""
    deadline = time.monotonic() + timeout_sec
    url = f"{http_endpoint(host, port)}/json/version"
    async with aiohttp.ClientSession() as session:
        while time.monotonic() < deadline:
            try:
                async with session.get(url, timeout=aiohttp.ClientTimeout(total=2)) as r:
                    if r.status == 200:
                        return True
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                log.debug("CDP not reachable yet at %s: %s", url, e)
            await asyncio.sleep(0.25)
    return False


async def list_targets(host: str, port: int) -> List[Dict[str, Any]]:
    async with aiohttp.ClientSession() as s:
        async with s.get(f"{http_endpoint(host, port)}/json") as r:
            r.raise_for_status()
            return await r.json(content_type=None)


def pick_page_target(targets: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """First page target that exposes a websocket URL."""
    for t in targets:
        if t.get("type") == "page" and t.get("webSocketDebuggerUrl"):
            return t
    return None


# --------------------------------------------------------------------------------------
# Client
# --------------------------------------------------------------------------------------
class CDPClient:
    """Small CDP websocket client to send commands and receive events."""

    def __init__(self) -> None:
        self.ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._id = 0
        self._pending: Dict[int, asyncio.Future] = {}
        self._handlers: List[EventHandler] = []
        self._session: Optional[aiohttp.ClientSession] = None
        self._reader_task: Optional[asyncio.Task] = None

    async def connect(self, ws_url: str) -> None:
        self._session = aiohttp.ClientSession()
        self.ws = await self._session.ws_connect(ws_url, heartbeat=30, max_msg_size=0)
        self._reader_task = asyncio.create_task(self._reader())
        log.info("Connected to %s", ws_url)

    def on_event(self, fn: EventHandler) -> None:
        self._handlers.append(fn)

    async def _reader(self) -> None:
        assert self.ws
        try:
            async for msg in self.ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._dispatch(json.loads(msg.data))
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    log.error("CDP websocket error: %s", self.ws.exception())
                    break
        finally:
            self._fail_pending()
            log.info("CDP websocket closed")

    async def _dispatch(self, data: Dict[str, Any]) -> None:
        if "id" in data:
            fut = self._pending.pop(data["id"], None)
            if fut is not None and not fut.done():
                fut.set_result(data)
            return

        if "method" in data:
            for fn in self._handlers:
                try:
                    await fn(data)
                except Exception:
                    log.exception("Event handler failed for %s", data.get("method"))

    def _fail_pending(self) -> None:
        pending, self._pending = self._pending, {}
        for fut in pending.values():
            if not fut.done():
                fut.set_exception(CDPConnectionClosed("CDP websocket closed"))

    async def send(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send a command and return its ``result`` object; raise CDPError on ``error``."""
        if not self.ws or self.ws.closed:
            raise CDPConnectionClosed("CDP websocket not connected")

        self._id += 1
        msg_id = self._id
        payload: Dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            payload["params"] = params

        fut = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = fut
        try:
            await self.ws.send_str(json.dumps(payload))
            data = await fut
        finally:
            self._pending.pop(msg_id, None)

        if "error" in data:
            raise CDPError(method, data["error"])
        return data.get("result", {}) or {}

    async def wait_closed(self) -> None:
        if self._reader_task is not None:
            await self._reader_task

    async def close(self) -> None:
        if self.ws is not None and not self.ws.closed:
            await self.ws.close()
        if self._reader_task is not None:
            await self._reader_task
        if self._session is not None:
            await self._session.close()
