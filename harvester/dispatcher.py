import asyncio
from pathlib import Path
from urllib.parse import urlparse

from harvester.adapters.base import SiteAdapter
from harvester.adapters.google_maps import GoogleMapsAdapter
from harvester.browser import close_page, open_page, save_screenshot
from harvester.config import HarvestConfig
from harvester.utils.stream import HarvestResult, OnCycle, harvest

# Each adapter declares the host fragments it handles.
ADAPTERS: list[SiteAdapter] = [
    GoogleMapsAdapter(),
]


def pick_adapter(url: str) -> SiteAdapter:
    """
    Selects the adapter whose domain fragment appears in the URL's host.
    Example:
        "https://www.google.com/maps/place/..." → GoogleMapsAdapter
    """
    host = urlparse(url).netloc.lower()
    for a in ADAPTERS:
        if any(d in host for d in a.domains):
            return a
    raise ValueError(f"No adapter registered for host: {host}")


async def crawl_reviews(
    url: str,
    config: HarvestConfig,
    *,
    headless: bool = True,
    storage_state: str | None = None,
    locale: str = "en-US",
    sort_newest: bool = False,
    screenshot_dir: str | Path | None = None,
    cancel: asyncio.Event | None = None,
    on_cycle: OnCycle | None = None,
) -> HarvestResult:
    """
    High-level crawl:
        1. Pick the adapter for this URL.
        2. Open a browser page.
        3. Let the adapter navigate, clear consent and open the review list.
        4. Run the harvest loop against the adapter's rendering source.
        5. Close the browser (always, even on error).
    """
    adapter = pick_adapter(url)
    pw, browser, context, page = await open_page(
        headless=headless,
        storage_state=storage_state,
        locale=locale,
    )

    try:
        try:
            await adapter.pre_open(page)
            await adapter.navigate_board(page, url)
            await adapter.prepare_listing(page, sort_newest=sort_newest, screenshot_dir=screenshot_dir)
        except Exception:
            if screenshot_dir:
                await save_screenshot(page, screenshot_dir)
            raise

        return await harvest(
            adapter.make_source(page, locale=locale),
            adapter.make_extractor(locale=locale),
            config,
            cancel=cancel,
            on_cycle=on_cycle,
        )

    finally:
        await close_page(pw, browser, context)
