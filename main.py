"""Blog archive collector: entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

import certifi

# Fix SSL cert resolution for curl_cffi (used by Scrapling)
os.environ.setdefault("CURL_CA_BUNDLE", certifi.where())
os.environ.setdefault("SSL_CERT_FILE", certifi.where())

from collectors.orchestrator import CollectionOrchestrator  # noqa: E402
from config.settings import settings  # noqa: E402

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="archive-collect",
        description="Collect the full post history of a blog, newsletter or podcast site",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    collect = sub.add_parser("collect", help="Collect every article the site exposes")
    collect.add_argument("url")
    collect.add_argument(
        "--timeout",
        type=float,
        default=settings.COLLECTION_TIMEOUT,
        help="Overall deadline in seconds (default: %(default)s)",
    )
    collect.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Only print the N newest articles",
    )

    analyze = sub.add_parser("analyze", help="Score collectors for a URL without collecting")
    analyze.add_argument("url")

    sub.add_parser("collectors", help="List the registered collectors")
    return parser


def _dump(data) -> None:
    json.dump(data, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


async def run(args: argparse.Namespace) -> int:
    if args.command == "collectors":
        orchestrator = CollectionOrchestrator()
        _dump([info.to_dict() for info in orchestrator.list_collectors()])
        return 0

    if args.command == "analyze":
        report = await CollectionOrchestrator().analyze_only(args.url)
        _dump(report.to_dict())
        return 0

    orchestrator = CollectionOrchestrator(timeout=args.timeout)
    result = await orchestrator.collect(args.url)
    data = result.to_dict()
    if args.limit is not None:
        data["articles"] = data["articles"][: args.limit]
    _dump(data)
    return 0 if result.success else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )
    log.info("Running %s", args.command)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
