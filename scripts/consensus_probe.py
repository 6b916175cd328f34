#!/usr/bin/env python3
"""Resolve a title across live sources and report the chapter-count consensus."""
import argparse
import asyncio
import json
import os
import sys
import time
from typing import Any, Dict, List, Optional


def _duration_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


async def probe(
    title: str,
    url: Optional[str],
    sources: Optional[List[str]],
    max_sources: int
) -> Dict[str, Any]:
    from sources import get_provider_registry  # pylint: disable=import-outside-toplevel
    from chapterscout_app.consensus import ChapterConsensus  # pylint: disable=import-outside-toplevel
    from chapterscout_app.search import CrossSourceResolver  # pylint: disable=import-outside-toplevel

    registry = get_provider_registry()
    resolver = CrossSourceResolver(registry)

    report: Dict[str, Any] = {
        "title": title,
        "url": url,
        "resolve_ms": None,
        "candidates": [],
        "consensus_ms": None,
        "consensus": None,
        "health": None,
    }

    start = time.time()
    candidates = await resolver.resolve(title, url, sources)
    report["resolve_ms"] = _duration_ms(start)
    report["candidates"] = [
        {
            "provider": c.provider_name,
            "title": c.title,
            "url": c.url,
            "score": round(c.relevance_score, 1),
        }
        for c in candidates
    ]

    start = time.time()
    result = await ChapterConsensus(registry, resolver).consensus(title, url, max_sources)
    report["consensus_ms"] = _duration_ms(start)
    report["consensus"] = result.to_dict()
    report["health"] = registry.get_health_report()
    return report


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe cross-source resolution and chapter consensus.")
    parser.add_argument("title", help="Title of the work to resolve.")
    parser.add_argument("--url", default=None, help="Known URL of the work (e.g. a Comick page).")
    parser.add_argument("--sources", default="", help="Comma-separated provider names to search.")
    parser.add_argument("--max-sources", type=int, default=5, help="Sources sampled for consensus.")
    parser.add_argument("--output", default="", help="Write the JSON report here instead of stdout.")
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

    from dotenv import load_dotenv  # pylint: disable=import-outside-toplevel
    load_dotenv()

    requested = [item.strip() for item in args.sources.split(",") if item.strip()]
    report = asyncio.run(probe(args.title, args.url, requested or None, args.max_sources))

    if not args.output:
        print(json.dumps(report, indent=2))
        return 0

    output_dir = os.path.dirname(args.output)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
    with open(args.output, "w", encoding="utf-8") as handle:
        json.dump(report, handle, indent=2, sort_keys=True)

    print(f"Wrote report to {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
