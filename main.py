"""
Interactive OAuth completion — command-line entry point.

    python main.py "https://provider.test/authorize?client_id=…&redirect_uri=http://localhost:8000/cb"

Opens the authorization page, waits for the redirect back to the app origin,
and prints the outcome as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from config.settings import config
from connectors.registry import WindowSpawnerRegistry
from core.completion_controller import CompletionController
from utils.schemas import DEFAULT_TIMEOUT_MS, AuthOutcome, AuthRequest

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stderr,
)
for _noisy in ("asyncio", "uvicorn", "uvicorn.error", "uvicorn.access"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run one interactive OAuth authorization.")
    parser.add_argument("auth_url", help="Provider authorization URL")
    parser.add_argument("--redirect-uri", default=None, help="Expected redirect URI (same-origin)")
    parser.add_argument(
        "--backend",
        default=None,
        help=f"Window backend (default: {config.oauth_window_backend})",
    )
    parser.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS)
    parser.add_argument("--width", type=int, default=600)
    parser.add_argument("--height", type=int, default=700)
    return parser


async def run(args: argparse.Namespace) -> AuthOutcome:
    spawner = WindowSpawnerRegistry().create(args.backend)
    controller = CompletionController(spawner)
    request = AuthRequest(
        auth_url=args.auth_url,
        redirect_uri=args.redirect_uri,
        window_width=args.width,
        window_height=args.height,
        timeout_ms=args.timeout_ms,
    )
    logger.info("Starting authorization via %s backend (origin %s)", spawner.backend_name, config.app_origin)
    return await controller.authorize(request)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    outcome = asyncio.run(run(args))
    print(outcome.model_dump_json(indent=2))
    return 0 if outcome.ok else 1


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
