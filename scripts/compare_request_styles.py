#!/usr/bin/env python
"""Fetches the CoinGecko market list once per request style and logs the timing.

This is the headless counterpart of the desktop app: the same fetch service,
once awaited with async/await and once run on a worker thread with a
callback, so the two styles can be compared side by side.

Usage:
    python scripts/compare_request_styles.py [--runs N]
"""

import argparse
import asyncio
import sys
import time
from pathlib import Path

from loguru import logger

# Make `src/` importable when run from a source checkout.
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR / "src") not in sys.path:
    sys.path.insert(0, str(ROOT_DIR / "src"))

from coinlist.errors import FetchError  # noqa: E402
from coinlist.fetch_service import CoinFetchService  # noqa: E402
from coinlist.logging_config import setup_logging  # noqa: E402
from coinlist.models import FetchResult  # noqa: E402


async def run_async_style(service: CoinFetchService) -> FetchResult:
    try:
        return FetchResult.success(await service.fetch_coins())
    except FetchError as e:
        return FetchResult.failure(e)


async def run_callback_style(service: CoinFetchService) -> FetchResult:
    delivered: asyncio.Future[FetchResult] = asyncio.get_running_loop().create_future()
    service.fetch_coins_with_callback(delivered.set_result)
    return await delivered


async def compare(runs: int) -> int:
    failures = 0
    service = CoinFetchService()
    try:
        for run in range(1, runs + 1):
            for style, fetch in (("async", run_async_style), ("callback", run_callback_style)):
                started = time.perf_counter()
                result = await fetch(service)
                elapsed_ms = (time.perf_counter() - started) * 1000
                if result.ok:
                    coins = result.unwrap()
                    top = coins[0].name if coins else "-"
                    logger.success(
                        f"[run {run}] {style:<8} {len(coins)} coins in "
                        f"{elapsed_ms:.0f} ms (top: {top})"
                    )
                else:
                    failures += 1
                    logger.error(
                        f"[run {run}] {style:<8} failed after {elapsed_ms:.0f} ms: "
                        f"{type(result.error).__name__}: {result.error}"
                    )
    finally:
        await service.aclose()
    return 1 if failures else 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--runs", type=int, default=1, help="rounds per style")
    args = parser.parse_args()

    setup_logging(console_level="INFO")
    return asyncio.run(compare(max(1, args.runs)))


if __name__ == "__main__":
    sys.exit(main())
