"""Process configuration: positional arguments plus ``CDP_OVERLAY_*`` environment knobs."""

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

ENV_PREFIX = "CDP_OVERLAY_"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9222

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class Settings:
    output_root: Path

    # Control channel
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    connect_timeout: float = 20.0
    body_timeout: float = 30.0
    url_pattern: str = "*"

    # Sync policy
    refresh_unedited: bool = True  # False keeps the "server changed, local unedited" case a no-op
    serialize_per_path: bool = True

    log_level: str = "INFO"


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}")


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{ENV_PREFIX}{name} must be positive, got {raw!r}")
    return value


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="cdp-overlay",
        description="Save every response of a remotely debugged browser to disk and serve local edits back.",
    )
    p.add_argument("output_dir", help="Directory holding the saved resources")
    p.add_argument("host", nargs="?", default=DEFAULT_HOST, help=f"Remote debugging host (default {DEFAULT_HOST})")
    p.add_argument("port", nargs="?", type=int, default=DEFAULT_PORT, help=f"Remote debugging port (default {DEFAULT_PORT})")
    return p


def load_settings(argv: Optional[List[str]] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    args = build_arg_parser().parse_args(argv)
    env = os.environ if env is None else env
    return Settings(
        output_root=Path(args.output_dir),
        host=args.host,
        port=args.port,
        connect_timeout=_env_float(env, "CONNECT_TIMEOUT", 20.0),
        body_timeout=_env_float(env, "BODY_TIMEOUT", 30.0),
        url_pattern=env.get(ENV_PREFIX + "URL_PATTERN") or "*",
        refresh_unedited=_env_bool(env, "REFRESH_UNEDITED", True),
        serialize_per_path=_env_bool(env, "SERIALIZE_PER_PATH", True),
        log_level=(env.get(ENV_PREFIX + "LOG_LEVEL") or "INFO").upper(),
    )
