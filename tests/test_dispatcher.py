import inspect
from pathlib import Path

import pytest

from harvester.adapters.google_maps import GoogleMapsAdapter, PageReviewSource
from harvester.browser import open_page
from harvester.dispatcher import ADAPTERS, crawl_reviews, pick_adapter
from harvester.extract import ReviewExtractor


@pytest.mark.parametrize("url", [
    "https://www.google.com/maps/place/InterContinental+Bali+Resort/@-8.77,115.16,1453m/data=!3m1?hl=en",
    "https://www.google.co.id/maps/place/Some+Place",
    "https://maps.app.goo.gl/AbCdEf123",
])
def test_google_maps_urls(url):
    assert isinstance(pick_adapter(url), GoogleMapsAdapter)


def test_unknown_host_is_rejected():
    with pytest.raises(ValueError, match="No adapter registered for host: www.example.com"):
        pick_adapter("https://www.example.com/reviews")


def test_adapter_builds_locale_aware_extractor():
    adapter = GoogleMapsAdapter()
    extractor = adapter.make_extractor(locale="id-ID")

    assert isinstance(extractor, ReviewExtractor)
    assert "Lainnya" in extractor.phrases.truncated
    assert "More" in extractor.phrases.truncated


def test_adapter_source_wraps_page():
    page = object()
    source = GoogleMapsAdapter().make_source(page)
    assert isinstance(source, PageReviewSource)
    assert source.page is page
    assert source.selectors["card"].endswith("[data-review-id]")


def test_optional_arguments_use_union_hints():
    params = inspect.signature(crawl_reviews).parameters
    assert params["storage_state"].annotation == (str | None)
    assert params["screenshot_dir"].annotation == (str | Path | None)
    assert inspect.signature(open_page).parameters["storage_state"].annotation == (str | None)
    assert all(isinstance(a, GoogleMapsAdapter) for a in ADAPTERS)
