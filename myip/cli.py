#!/usr/bin/env python3
"""
myip - CLI entry point
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from typing import Optional

import uvicorn

from .composer import handle_request
from .config import Settings, load_settings
from .enrichment.builtins import default_registry
from .logging_config import setup_logging
from .models import Failure, RequestInfo
from .render import format_text
from .web import create_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="myip",
        description="Serve (or run locally) client IP address enrichment",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: MYIP_LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--bind", default=None, help="Address to listen on (default: MYIP_BIND)")
    serve.add_argument("--port", "-p", type=int, default=None, help="Port to listen on (default: MYIP_PORT)")
    serve.add_argument("--debug", action="store_true", help="Enable debug mode (allows ?host= override)")

    lookup = sub.add_parser("lookup", help="Enrich an address and print the report")
    lookup.add_argument("address", help="IPv4 or IPv6 address")
    lookup.add_argument("--user-agent", "-u", default="", help="User-Agent string to parse")
    lookup.add_argument("--json", "-j", action="store_true", help="Output as JSON")
    lookup.add_argument(
        "--timeout", "-t", type=float, default=None, help="Timeout per source in seconds"
    )
    return parser


def serve(settings: Settings) -> None:
    # proxy_headers=False: the scheme must reflect TLS terminated here, never X-Forwarded-Proto.
    uvicorn.run(
        create_app(settings),
        host=settings.bind,
        port=settings.port,
        proxy_headers=False,
        access_log=False,
        log_level=settings.log_level.lower(),
    )


def lookup(settings: Settings, address: str, user_agent: str = "", as_json: bool = False) -> int:
    # Treat the argument as the observed peer; no header or override applies.
    settings = dataclasses.replace(settings, ip_header="", debug=False)
    info = RequestInfo(
        method="GET",
        url="/",
        proto="HTTP/1.1",
        headers=[("User-Agent", user_agent)] if user_agent else [],
        peer_addr=address,
    )
    outcome = handle_request(info, settings, default_registry(settings))

    if isinstance(outcome, Failure):
        if as_json:
            print(json.dumps(outcome.error.to_wire(), indent=2))
        else:
            print(f"error: {outcome.error.message}", file=sys.stderr)
        return 2

    if as_json:
        print(json.dumps(outcome.response.to_wire(), indent=2))
    else:
        sys.stdout.write(format_text(outcome.response))
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    if args.log_level:
        settings = dataclasses.replace(settings, log_level=args.log_level)
    setup_logging(settings.log_level)

    if args.command == "serve":
        overrides = {}
        if args.bind:
            overrides["bind"] = args.bind
        if args.port:
            overrides["port"] = args.port
        if args.debug:
            overrides["debug"] = True
        serve(dataclasses.replace(settings, **overrides))
        return

    if args.timeout is not None:
        settings = dataclasses.replace(settings, lookup_timeout=args.timeout)
    sys.exit(lookup(settings, args.address, user_agent=args.user_agent, as_json=args.json))


if __name__ == "__main__":
    main()
