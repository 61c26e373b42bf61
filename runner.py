import argparse
import asyncio
import logging
import signal
import sys

from harvester.config import HarvestConfig
from harvester.dispatcher import crawl_reviews
from harvester.utils.stream import TerminationReason


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Incremental review harvester")
    p.add_argument("--url", required=True, help="Place/listing URL whose reviews to harvest")
    p.add_argument("--out-json", type=str, default="reviews.json", help="Output JSON path (rewritten atomically)")
    p.add_argument("--batch-save-size", type=int, default=10, help="Checkpoint after this many new reviews")
    p.add_argument("--stale-cycles", type=int, default=3,
                   help="Stop after this many cycles in a row without a new review")
    p.add_argument("--max-cycles", type=int, default=100, help="Hard cap on load-more cycles")
    p.add_argument("--settle-min-ms", type=int, default=800, help="Min pause after each load-more")
    p.add_argument("--settle-max-ms", type=int, default=2300, help="Max pause after each load-more")
    p.add_argument("--fetch-timeout", type=float, default=15.0, help="Seconds allowed per page snapshot")
    p.add_argument("--resume", action="store_true", help="Continue from an existing --out-json file")
    p.add_argument("--headless", action="store_true", help="Run headless browser")
    p.add_argument("--storage-state", type=str, default=None,
                   help="Playwright storage_state json (saved consent/login cookies)")
    p.add_argument("--locale", type=str, default="en-US", help="Browser locale; also selects extractor phrases")
    p.add_argument("--sort-newest", action="store_true", help="Sort reviews by newest before harvesting")
    p.add_argument("--screenshot-dir", type=str, default=None,
                   help="If set, a screenshot is saved here when page preparation fails")
    p.add_argument("--log-level", type=str, default="INFO", help="DEBUG shows every NEW/DUPE/SKIP decision")
    return p.parse_args(argv)


def build_config(args) -> HarvestConfig:
    return HarvestConfig(
        output_path=args.out_json,
        batch_save_size=args.batch_save_size,
        stale_cycle_limit=args.stale_cycles,
        max_cycles=args.max_cycles,
        settle_delay_ms=(args.settle_min_ms, args.settle_max_ms),
        fetch_timeout_s=args.fetch_timeout,
        resume=args.resume,
    )


async def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = build_config(args)

    # Ctrl+C finishes the current cycle, flushes and returns "cancelled"
    cancel = asyncio.Event()
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, cancel.set)
    except NotImplementedError:
        pass  # Windows event loops

    result = await crawl_reviews(
        url=args.url,
        config=config,
        headless=args.headless,
        storage_state=args.storage_state,
        locale=args.locale,
        sort_newest=args.sort_newest,
        screenshot_dir=args.screenshot_dir,
        cancel=cancel,
    )

    print(
        f"[OK] Harvested {len(result.records)} reviews → {config.output_path} "
        f"({result.termination_reason.value}, {result.cycles_run} cycles, "
        f"{result.extraction_failures} skipped, {result.flush_failures} failed saves)"
    )
    return 1 if result.termination_reason is TerminationReason.FAILED else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
