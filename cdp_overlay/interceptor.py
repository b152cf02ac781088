"""
Glue between intercepted-response events and the sync engine.

Each ``Network.requestIntercepted`` event becomes its own task. Whatever happens while
processing it, the exchange is resumed with exactly one
``Network.continueInterceptedRequest`` call: with a rebuilt raw response when a body was
resolved, unmodified otherwise.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set
from urllib.parse import urlsplit

from cdp_overlay.cdp import CDPClient, CDPError
from cdp_overlay.encoding import EncodingError, charset_from_content_type, decode_body
from cdp_overlay.raw_response import build_raw_response, normalize_headers, status_from_headers
from cdp_overlay.sync import SyncEngine

log = logging.getLogger(__name__)

INTERCEPTED_EVENT = "Network.requestIntercepted"
INTERCEPTION_STAGE = "HeadersReceived"
BYPASS_STATUS_CODES = frozenset({301})
CACHEABLE_SCHEMES = frozenset({"http", "https"})


def should_bypass(params: Dict[str, Any]) -> bool:
    """Exchanges that skip caching entirely and are resumed untouched."""
    if params.get("responseErrorReason"):
        return True
    status = params.get("responseStatusCode")
    if not status or status in BYPASS_STATUS_CODES:
        return True
    url = (params.get("request") or {}).get("url", "")
    return urlsplit(url).scheme not in CACHEABLE_SCHEMES


class Interceptor:
    """Drives response interception for one connected page."""

    def __init__(
        self,
        cdp: CDPClient,
        engine: SyncEngine,
        body_timeout: float = 30.0,
        url_pattern: str = "*",
    ) -> None:
        self.cdp = cdp
        self.engine = engine
        self.body_timeout = body_timeout
        self.url_pattern = url_pattern
        self._tasks: Set[asyncio.Task] = set()

    async def enable(self) -> None:
        """Register for events, disable the browser cache and start intercepting."""
        self.cdp.on_event(self.on_event)
        await self.cdp.send("Network.enable")
        await self.cdp.send("Network.setCacheDisabled", {"cacheDisabled": True})
        await self.cdp.send(
            "Network.setRequestInterception",
            {"patterns": [{"urlPattern": self.url_pattern, "interceptionStage": INTERCEPTION_STAGE}]},
        )
        log.info("Intercepting responses matching %r", self.url_pattern)

    async def on_event(self, evt: Dict[str, Any]) -> None:
        if evt.get("method") != INTERCEPTED_EVENT:
            return
        task = asyncio.create_task(self.handle(evt.get("params", {}) or {}))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for every in-flight exchange to be resumed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ----------------------------------------------------------------------------------
    # One exchange
    # ----------------------------------------------------------------------------------
    async def handle(self, params: Dict[str, Any]) -> None:
        interception_id = params.get("interceptionId")
        url = (params.get("request") or {}).get("url", "")
        raw_response: Optional[str] = None
        try:
            raw_response = await self._process(interception_id, url, params)
        except Exception:
            log.exception("Failed to process intercepted response for %s", url)
        await self._resume(interception_id, url, raw_response)

    async def _process(self, interception_id: str, url: str, params: Dict[str, Any]) -> Optional[str]:
        if should_bypass(params):
            log.debug("Passing through %s", url)
            return None

        try:
            result = await asyncio.wait_for(
                self.cdp.send("Network.getResponseBodyForInterception", {"interceptionId": interception_id}),
                timeout=self.body_timeout,
            )
        except asyncio.TimeoutError:
            log.error("Timed out fetching response body for %s", url)
            return None
        except (CDPError, ConnectionError) as e:
            log.error("Failed to fetch response body for %s: %s", url, e)
            return None

        headers = normalize_headers(params.get("responseHeaders"))
        charset = charset_from_content_type(headers.get("content-type"))
        try:
            body = decode_body(result.get("body", ""), bool(result.get("base64Encoded")), charset)
        except EncodingError as e:
            log.warning("%s (%s)", e, url)
            return None

        synced = await self.engine.resolve(url, body)
        if synced.substituted:
            log.debug("Serving local copy of %s (%d bytes, server sent %d)", url, len(synced.body), len(body))
        status = status_from_headers(headers, int(params["responseStatusCode"]))
        return build_raw_response(status, headers, synced.body)

    async def _resume(self, interception_id: str, url: str, raw_response: Optional[str]) -> None:
        args: Dict[str, Any] = {"interceptionId": interception_id}
        if raw_response is not None:
            args["rawResponse"] = raw_response
        try:
            await self.cdp.send("Network.continueInterceptedRequest", args)
        except (CDPError, ConnectionError) as e:
            log.error("Failed to continue intercepted request for %s: %s", url, e)
