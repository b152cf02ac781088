"""Tests for the CDP client: command correlation, errors, event fan-out."""

import asyncio
import json
from typing import Any, Dict, List

import pytest

from cdp_overlay.cdp import CDPClient, CDPConnectionClosed, CDPError, pick_page_target


class FakeWS:
    """Answers each command through the client's dispatcher with a canned reply."""

    def __init__(self, client: CDPClient, replies: Dict[str, Dict[str, Any]]) -> None:
        self.client = client
        self.replies = replies
        self.closed = False
        self.sent: List[Dict[str, Any]] = []

    async def send_str(self, text: str) -> None:
        msg = json.loads(text)
        self.sent.append(msg)
        reply = dict(self.replies.get(msg["method"], {"result": {}}))
        reply["id"] = msg["id"]
        asyncio.ensure_future(self.client._dispatch(reply))


def test_pick_page_target() -> None:
    targets = [
        {"type": "service_worker", "webSocketDebuggerUrl": "ws://sw"},
        {"type": "page", "url": "about:blank"},
        {"type": "page", "url": "https://a.test", "webSocketDebuggerUrl": "ws://page"},
    ]
    assert pick_page_target(targets)["webSocketDebuggerUrl"] == "ws://page"
    assert pick_page_target([]) is None


@pytest.mark.asyncio
async def test_send_returns_result_and_numbers_commands() -> None:
    client = CDPClient()
    ws = FakeWS(client, {"Network.getResponseBodyForInterception": {"result": {"body": "x", "base64Encoded": False}}})
    client.ws = ws

    result = await client.send("Network.getResponseBodyForInterception", {"interceptionId": "i1"})
    await client.send("Network.enable")

    assert result == {"body": "x", "base64Encoded": False}
    assert ws.sent[0] == {"id": 1, "method": "Network.getResponseBodyForInterception", "params": {"interceptionId": "i1"}}
    assert ws.sent[1] == {"id": 2, "method": "Network.enable"}
    assert client._pending == {}


@pytest.mark.asyncio
async def test_error_reply_raises_cdp_error() -> None:
    client = CDPClient()
    client.ws = FakeWS(client, {"Network.continueInterceptedRequest": {"error": {"code": -32000, "message": "Invalid InterceptionId."}}})
    with pytest.raises(CDPError) as exc:
        await client.send("Network.continueInterceptedRequest", {"interceptionId": "nope"})
    assert exc.value.method == "Network.continueInterceptedRequest"
    assert "Invalid InterceptionId" in str(exc.value)


@pytest.mark.asyncio
async def test_send_without_connection_raises() -> None:
    with pytest.raises(CDPConnectionClosed):
        await CDPClient().send("Network.enable")


@pytest.mark.asyncio
async def test_pending_commands_fail_when_socket_closes() -> None:
    client = CDPClient()
    fut = asyncio.get_running_loop().create_future()
    client._pending[7] = fut
    client._fail_pending()
    with pytest.raises(CDPConnectionClosed):
        await fut


@pytest.mark.asyncio
async def test_events_reach_handlers_and_handler_errors_are_contained() -> None:
    client = CDPClient()
    seen: List[str] = []

    async def broken(evt: Dict[str, Any]) -> None:
        raise RuntimeError("handler bug")

    async def recorder(evt: Dict[str, Any]) -> None:
        seen.append(evt["method"])

    client.on_event(broken)
    client.on_event(recorder)
    await client._dispatch({"method": "Network.requestIntercepted", "params": {}})
    assert seen == ["Network.requestIntercepted"]
