import random
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union


@dataclass
class HarvestConfig:
    output_path: Union[str, Path] = "reviews.json"
    batch_save_size: int = 10          # flush once this many new records are unsaved
    stale_cycle_limit: int = 3         # consecutive cycles without a new record -> exhausted
    max_cycles: int = 100              # hard cap on load-more cycles
    settle_delay_ms: Tuple[int, int] = (800, 2300)
    fetch_timeout_s: float = 15.0
    resume: bool = False               # seed the run from an existing output file

    def __post_init__(self):
        self.output_path = Path(self.output_path)
        if self.batch_save_size < 1:
            raise ValueError("batch_save_size must be >= 1")
        if self.stale_cycle_limit < 1:
            raise ValueError("stale_cycle_limit must be >= 1")
        if self.max_cycles < 1:
            raise ValueError("max_cycles must be >= 1")
        if self.fetch_timeout_s <= 0:
            raise ValueError("fetch_timeout_s must be > 0")

        lo, hi = self.settle_delay_ms
        if lo < 0 or hi < lo:
            raise ValueError(f"invalid settle_delay_ms range: {self.settle_delay_ms}")
        self.settle_delay_ms = (int(lo), int(hi))

    def settle_delay_s(self, rng: random.Random) -> float:
        lo, hi = self.settle_delay_ms
        return rng.randint(lo, hi) / 1000
