import random
from pathlib import Path

import pytest

from harvester.config import HarvestConfig
from runner import build_config, parse_args


def test_defaults():
    config = HarvestConfig()
    assert config.batch_save_size == 10
    assert config.stale_cycle_limit == 3
    assert config.max_cycles == 100
    assert config.output_path == Path("reviews.json")
    assert config.resume is False


@pytest.mark.parametrize("overrides", [
    {"batch_save_size": 0},
    {"stale_cycle_limit": 0},
    {"max_cycles": 0},
    {"fetch_timeout_s": 0},
    {"settle_delay_ms": (500, 100)},
    {"settle_delay_ms": (-1, 100)},
])
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValueError):
        HarvestConfig(**overrides)


def test_settle_delay_stays_in_range():
    config = HarvestConfig(settle_delay_ms=(800, 1200))
    rng = random.Random(7)
    delays = [config.settle_delay_s(rng) for _ in range(50)]
    assert all(0.8 <= d <= 1.2 for d in delays)
    assert HarvestConfig(settle_delay_ms=(0, 0)).settle_delay_s(rng) == 0


def test_cli_flags_map_onto_config():
    args = parse_args([
        "--url", "https://www.google.com/maps/place/x",
        "--out-json", "out/reviews.json",
        "--batch-save-size", "25",
        "--stale-cycles", "5",
        "--max-cycles", "40",
        "--settle-min-ms", "100",
        "--settle-max-ms", "200",
        "--fetch-timeout", "3.5",
        "--resume",
    ])
    config = build_config(args)

    assert config.output_path == Path("out/reviews.json")
    assert config.batch_save_size == 25
    assert config.stale_cycle_limit == 5
    assert config.max_cycles == 40
    assert config.settle_delay_ms == (100, 200)
    assert config.fetch_timeout_s == 3.5
    assert config.resume is True
