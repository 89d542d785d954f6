#!/usr/bin/env python3
"""One-shot headline aggregation pass (no web server).

Runs a single pass over the configured sources and prints the same JSON
payload /api/headlines would return, or writes it to --output.

  python headlines_worker.py --sources sources.json --debug
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from vartha.aggregation.aggregator import HeadlineAggregator
from vartha.config.settings import Settings
from vartha.config.sources import SourceRegistry
from vartha.errors import ConfigError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


async def run_once(settings: Settings, include_stats: bool = False) -> Dict[str, Any]:
    registry = SourceRegistry(settings.sources_path)
    aggregator = HeadlineAggregator.from_settings(settings, registry)
    items, stats = await aggregator.run()
    payload: Dict[str, Any] = {
        "version": settings.version,
        "updatedAt": int(time.time() * 1000),
        "items": [it.to_dict() for it in items],
        "cached": False,
    }
    if include_stats:
        payload["stats"] = [s.to_dict() for s in stats]
    return payload


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run one Malayalam headline aggregation pass")
    parser.add_argument("--sources", help="source descriptor JSON (default: $SOURCES_PATH)")
    parser.add_argument("--output", help="write JSON here instead of stdout")
    parser.add_argument("--debug", action="store_true", help="include per-source stats")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.sources:
        settings = replace(settings, sources_path=Path(args.sources))

    try:
        payload = asyncio.run(run_once(settings, include_stats=args.debug))
    except ConfigError as e:
        logger.error(f"Invalid source configuration: {e}")
        return 2

    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        logger.info(f"[headlines] wrote {len(payload['items'])} items to {args.output}")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
