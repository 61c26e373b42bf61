import asyncio

import pytest

from harvester.adapters.base import RenderingSource
from harvester.config import HarvestConfig


def item(key, **extra):
    raw = {"review_id": key}
    raw.update(extra)
    return raw


class ScriptedSource(RenderingSource):
    """Replays one batch per fetch. ``batches`` is a list (last batch repeats once
    the script runs out) or a callable taking the 0-based fetch number."""

    def __init__(self, batches, *, unreachable_from=None, hang_on=()):
        self.batches = batches
        self.unreachable_from = unreachable_from
        self.hang_on = set(hang_on)
        self.fetches = 0
        self.more_requests = 0

    async def materialized_batch(self):
        n = self.fetches
        self.fetches += 1
        if n in self.hang_on:
            await asyncio.sleep(10)
        if callable(self.batches):
            return self.batches(n)
        if not self.batches:
            return []
        return self.batches[min(n, len(self.batches) - 1)]

    async def request_more(self):
        self.more_requests += 1

    async def is_reachable(self):
        return self.unreachable_from is None or self.fetches < self.unreachable_from


@pytest.fixture
def out_path(tmp_path):
    return tmp_path / "reviews.json"


@pytest.fixture
def make_config(out_path):
    def _make(**overrides):
        overrides.setdefault("output_path", out_path)
        overrides.setdefault("settle_delay_ms", (0, 0))
        return HarvestConfig(**overrides)
    return _make
