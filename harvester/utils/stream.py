import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from harvester.adapters.base import Record, RenderingSource
from harvester.config import HarvestConfig
from harvester.errors import ExtractionIncomplete, FetchTimeout, SourceUnreachable
from harvester.utils.checkpoint import CheckpointWriter
from harvester.utils.dedup import DedupIndex

logger = logging.getLogger(__name__)


class TerminationReason(str, Enum):
    EXHAUSTED = "exhausted"        # stale_cycle_limit cycles in a row brought nothing new
    CAP_REACHED = "cap_reached"    # max_cycles hit while the source still produced new items
    CANCELLED = "cancelled"
    FAILED = "failed"              # source became unreachable or crashed


@dataclass(frozen=True)
class CycleReport:
    cycle: int
    materialized: int
    accepted: int
    extraction_failures: int
    total: int
    stale_cycles: int


@dataclass
class HarvestResult:
    records: List[Record]
    termination_reason: TerminationReason
    cycles_run: int
    extraction_failures: int = 0
    fetch_timeouts: int = 0
    flushes: int = 0
    flush_failures: int = 0
    resumed: int = 0
    error: Optional[str] = None


OnCycle = Callable[[CycleReport], None]


async def _fetch_batch(source: RenderingSource, timeout_s: float) -> Sequence[Any]:
    try:
        batch = await asyncio.wait_for(source.materialized_batch(), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise FetchTimeout(f"no snapshot within {timeout_s}s") from e
    return list(batch or ())


async def _request_more(source: RenderingSource, timeout_s: float) -> None:
    try:
        await asyncio.wait_for(source.request_more(), timeout=timeout_s)
    except asyncio.TimeoutError:
        # success is only ever observed through the next snapshot
        logger.warning("[MORE] load-more request timed out after %ss", timeout_s)


async def harvest(
    source: RenderingSource,
    extractor,
    config: HarvestConfig,
    *,
    cancel: Optional[asyncio.Event] = None,
    on_cycle: Optional[OnCycle] = None,
    rng: Optional[random.Random] = None,
) -> HarvestResult:
    """
    Scroll/extract/dedup loop over a rendering source.

    Every cycle re-extracts the *whole* materialized batch: virtualized lists
    drop and re-render items, so "new items are appended at the end" does not
    hold. Correctness comes from the identity-key dedup alone.
    """
    rng = rng or random.Random()
    writer = CheckpointWriter(config.output_path, batch_save_size=config.batch_save_size)

    out: List[Record] = []
    index = DedupIndex()
    if config.resume:
        for rec in writer.load():
            if index.accept(rec.identity_key):
                out.append(rec)
        logger.info("[RESUME] %d records loaded from %s", len(out), config.output_path)
    resumed = len(out)

    cycle_count = 0
    stale_cycles = 0
    extraction_failures = 0
    fetch_timeouts = 0
    reason: Optional[TerminationReason] = None
    error: Optional[str] = None

    try:
        while reason is None:
            # 0) Cancellation is only honoured between cycles
            if cancel is not None and cancel.is_set():
                reason = TerminationReason.CANCELLED
                break

            # 1) Fetch the current snapshot, then ask for more and let it render
            if not await source.is_reachable():
                raise SourceUnreachable("rendering source is no longer reachable")
            try:
                batch = await _fetch_batch(source, config.fetch_timeout_s)
            except FetchTimeout as e:
                fetch_timeouts += 1
                logger.warning("[WAIT] Cycle %d: %s, treating as empty batch", cycle_count, e)
                batch = []
            # a source lost while loading more still gets this batch processed and saved
            lost: Optional[Exception] = None
            try:
                await _request_more(source, config.fetch_timeout_s)
            except Exception as e:
                lost = e
            else:
                await asyncio.sleep(config.settle_delay_s(rng))

            # 2) Extract every materialized item, not just the tail
            failed_this_cycle = 0
            records: List[Record] = []
            for i, raw in enumerate(batch):
                try:
                    records.append(extractor.extract(raw))
                except ExtractionIncomplete as e:
                    failed_this_cycle += 1
                    logger.debug("[SKIP] Item %03d: %s", i, e)
                except Exception:
                    failed_this_cycle += 1
                    logger.warning("[ERR ] Item %03d: extraction crashed", i, exc_info=True)
            extraction_failures += failed_this_cycle

            # 3) Dedupe
            accepted = 0
            for rec in records:
                if not index.accept(rec.identity_key):
                    logger.debug("[DUPE] %s already collected", rec.identity_key)
                    continue
                out.append(rec)
                writer.note_accepted()
                accepted += 1
                logger.debug("[NEW ] %s | Saved Total: %d", rec.identity_key, len(out))

            # 4) Checkpoint
            if writer.due:
                writer.flush(out)

            # 5) Decide
            cycle_count += 1
            stale_cycles = stale_cycles + 1 if accepted == 0 else 0
            logger.info(
                "[CYCLE] %d | materialized: %d | new: %d | total: %d | stale: %d/%d",
                cycle_count, len(batch), accepted, len(out), stale_cycles, config.stale_cycle_limit,
            )
            if on_cycle is not None:
                on_cycle(CycleReport(
                    cycle=cycle_count,
                    materialized=len(batch),
                    accepted=accepted,
                    extraction_failures=failed_this_cycle,
                    total=len(out),
                    stale_cycles=stale_cycles,
                ))

            if lost is not None:
                raise lost
            if stale_cycles >= config.stale_cycle_limit:
                reason = TerminationReason.EXHAUSTED
            elif cycle_count >= config.max_cycles:
                reason = TerminationReason.CAP_REACHED

    except SourceUnreachable as e:
        reason = TerminationReason.FAILED
        error = str(e)
        logger.error("[FAIL] Cycle %d: %s", cycle_count, e)

    except Exception as e:
        reason = TerminationReason.FAILED
        error = f"{type(e).__name__}: {e}"
        logger.error("[FAIL] Cycle %d: rendering source crashed", cycle_count, exc_info=True)

    finally:
        # Runs on task cancellation too; the pending CancelledError is re-raised afterwards
        if writer.dirty:
            writer.flush(out)

    logger.info(
        "[DONE] %s after %d cycles: %d records (%d resumed)",
        reason.value, cycle_count, len(out), resumed,
    )
    return HarvestResult(
        records=out,
        termination_reason=reason,
        cycles_run=cycle_count,
        extraction_failures=extraction_failures,
        fetch_timeouts=fetch_timeouts,
        flushes=writer.flushes,
        flush_failures=writer.failures,
        resumed=resumed,
        error=error,
    )
