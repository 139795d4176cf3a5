"""Command-line interface.

    brandscout discover --platform instagram --handle somecreator
    brandscout token --subject dev@example.com
    brandscout serve --port 8000
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from .config import Settings, configure_logging
from .errors import NotFound, RateLimitExceeded, UpstreamTransient
from .schemas import Platform


async def _discover(settings: Settings, platform: Platform, handle: str, requester: str) -> int:
    from .database import create_engine, create_session_factory, create_tables
    from .bootstrap import build_gateways

    engine = create_engine()
    try:
        await create_tables(engine)
        gateway = build_gateways(settings, create_session_factory(engine))[platform]
        try:
            result = await gateway.run_discovery(
                handle, requester, observer=lambda state: print(f"[{state.value}]", file=sys.stderr)
            )
        except (NotFound, RateLimitExceeded, UpstreamTransient) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        print(json.dumps(result.model_dump(mode="json"), indent=2))
        return 0
    finally:
        await engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="brandscout", description="Brand-partnership discovery for creators")
    commands = parser.add_subparsers(dest="command", required=True)

    discover = commands.add_parser("discover", help="Run a discovery and print the JSON result")
    discover.add_argument("--platform", choices=[p.value for p in Platform], default=Platform.instagram.value)
    discover.add_argument("--handle", required=True, help="Seed creator handle, with or without @")
    discover.add_argument("--requester", default="cli", help="Requester id the rate limit applies to")

    token = commands.add_parser("token", help="Print a bearer token for the API")
    token.add_argument("--subject", required=True, help="Requester id to put in the token")

    serve = commands.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    if args.command == "token":
        from .auth import create_access_token

        print(create_access_token(args.subject, settings))
        return 0
    if args.command == "serve":
        import uvicorn

        uvicorn.run("brandscout.main:app", host=args.host, port=args.port)
        return 0
    return asyncio.run(_discover(settings, Platform(args.platform), args.handle, args.requester))


if __name__ == "__main__":
    sys.exit(main())
