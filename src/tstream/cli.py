from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from tstream.auth.bearer import BearerTokenProvider, TokenError
from tstream.config import ConfigError, StreamConfig, load_config_env, load_config_file
from tstream.stream.client import StreamClient
from tstream.stream.events import Closed, Data, ErrorEvent, StreamHandlers

logger = logging.getLogger(__name__)


def _load_config(args: argparse.Namespace) -> StreamConfig:
    if args.config:
        return load_config_file(args.config)
    return load_config_env()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


async def _run_track(args: argparse.Namespace, cfg: StreamConfig) -> int:
    track = args.terms or cfg.track
    if not track:
        raise SystemExit("No track terms given (argument or TSTREAM_TRACK)")

    done = asyncio.Event()
    exit_code = 0
    seen = 0

    def on_data(evt: Data) -> None:
        nonlocal seen
        seen += 1
        print(json.dumps(evt.value, ensure_ascii=False), flush=True)
        if args.max_events and seen >= args.max_events:
            done.set()

    def on_error(evt: ErrorEvent) -> None:
        nonlocal exit_code
        logger.error(
            "Stream error (phase=%s, status=%s): %s", evt.phase, evt.status_code, evt.error
        )
        exit_code = 1
        done.set()

    def on_close(evt: Closed) -> None:
        logger.info("Stream closed: %s", evt.reason)
        done.set()

    handlers = StreamHandlers(on_data=on_data, on_error=on_error, on_close=on_close)
    client = StreamClient(cfg.require_credentials(), config=cfg, handlers=handlers)
    session = await client.start(track)
    try:
        await done.wait()
    finally:
        await session.stop()
    return exit_code


async def _run_token(cfg: StreamConfig) -> int:
    creds = cfg.require_credentials()
    provider = BearerTokenProvider(
        creds.consumer_key, creds.consumer_secret, user_agent=cfg.user_agent
    )
    token = await provider.get_token()
    print(token)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="tstream", description="Signed filter-stream client.")
    p.add_argument("--config", type=str, default=None, help="JSON config file (default: env)")
    p.add_argument("--log-level", type=str, default=None, help="Override log level")

    # Same options after the subcommand; SUPPRESS keeps a top-level value.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config", type=str, default=argparse.SUPPRESS, help="JSON config file (default: env)"
    )
    common.add_argument(
        "--log-level", type=str, default=argparse.SUPPRESS, help="Override log level"
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    t = sub.add_parser("track", parents=[common], help="Stream items matching the given terms")
    t.add_argument("terms", nargs="?", default=None, help='Comma-separated phrases, e.g. "foo,bar"')
    t.add_argument(
        "--max-events",
        type=int,
        default=0,
        help="Exit after this many data events (0 = run until closed)",
    )

    sub.add_parser("token", parents=[common], help="Fetch an app-only bearer token")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = _load_config(args)
    except ConfigError as e:
        raise SystemExit(str(e)) from e
    _setup_logging(args.log_level or cfg.log_level)

    try:
        if args.cmd == "track":
            return asyncio.run(_run_track(args, cfg))
        return asyncio.run(_run_token(cfg))
    except (ConfigError, TokenError) as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
