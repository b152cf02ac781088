"""
+--------------------------------------------------------------------------------------+
| cdp-overlay                                                                          |
|--------------------------------------------------------------------------------------|
| Summary                                                                              |
|   Attaches to a browser running with --remote-debugging-port and intercepts every    |
|   response of its first page:                                                        |
|   - Saves each body under <output_dir>/<host>/<path> with an .md5 sidecar            |
|   - Serves hand-edited local copies while the server content is unchanged            |
|   - Refreshes unedited copies when the server changes, warns on conflicts            |
|--------------------------------------------------------------------------------------|
| Usage                                                                                |
|   cdp-overlay <output_dir> [host] [port]                                             |
|   chrome --remote-debugging-port=9222 must already be running                        |
+--------------------------------------------------------------------------------------+
"""

import asyncio
import logging
import sys
from typing import List, Optional

from cdp_overlay.cdp import CDPClient, list_targets, pick_page_target, wait_for_cdp
from cdp_overlay.interceptor import Interceptor
from cdp_overlay.settings import Settings, load_settings
from cdp_overlay.sync import SyncEngine

log = logging.getLogger("cdp_overlay")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


async def run(settings: Settings) -> int:
    """Connect -> enable interception -> run until the browser goes away."""
    log.info("Waiting for CDP at %s:%s...", settings.host, settings.port)
    if not await wait_for_cdp(settings.host, settings.port, timeout_sec=settings.connect_timeout):
        log.error("CDP not reachable at %s:%s", settings.host, settings.port)
        return 1

    target = pick_page_target(await list_targets(settings.host, settings.port))
    if target is None:
        log.error("No page target with a websocket URL found")
        return 1
    log.info("Attaching to %s", target.get("url", "(no url)"))

    settings.output_root.mkdir(parents=True, exist_ok=True)
    engine = SyncEngine(
        settings.output_root,
        refresh_unedited=settings.refresh_unedited,
        serialize_per_path=settings.serialize_per_path,
    )

    cdp = CDPClient()
    await cdp.connect(target["webSocketDebuggerUrl"])
    interceptor = Interceptor(cdp, engine, body_timeout=settings.body_timeout, url_pattern=settings.url_pattern)
    try:
        await interceptor.enable()
        log.info("Saving responses under %s", settings.output_root.resolve())
        await cdp.wait_closed()
        await interceptor.drain()
    finally:
        await cdp.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    try:
        settings = load_settings(argv)
    except ValueError as e:
        print(f"cdp-overlay: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    try:
        return asyncio.run(run(settings))
    except KeyboardInterrupt:
        log.info("Shutting down.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
