import logging
import time
from pathlib import Path

from playwright.async_api import async_playwright

logger = logging.getLogger(__name__)


CHROME_ARGS = [
    "--disable-blink-features=AutomationControlled",   # keeps navigator.webdriver from flagging the session
    "--disable-infobars",
    "--no-sandbox",                                     # needed inside Docker / CI
    "--disable-dev-shm-usage",                          # small /dev/shm in containers crashes Chromium
]


UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/133.0.0.0 Safari/537.36"
)


def accept_language(locale: str) -> str:
    """'en-US' -> 'en-US,en;q=0.9'"""
    lang = locale.split("-")[0]
    return locale if lang == locale else f"{locale},{lang};q=0.9"


async def open_page(
    headless: bool = True,
    storage_state: str | None = None,
    locale: str = "en-US",
):
    """
    Starts Playwright, launches Chromium and opens one page in a fresh context.

    The locale is pinned both on the context and in Accept-Language: the
    rendered review markup (button labels, counts) follows it, and the
    extractor's phrase lists are chosen from the same value.

    Returns (pw, browser, context, page); hand the first three to close_page().
    """
    pw = await async_playwright().start()
    browser = await pw.chromium.launch(
        headless=headless,
        args=CHROME_ARGS + [f"--lang={locale}"],
    )
    context = await browser.new_context(
        storage_state=storage_state if storage_state else None,   # saved cookies for consent/login
        user_agent=UA,
        locale=locale,
        extra_http_headers={"Accept-Language": accept_language(locale)},
        viewport={"width": 1366, "height": 900},                 # below ~800px the mobile DOM is served
    )
    page = await context.new_page()
    return pw, browser, context, page


async def close_page(pw, browser, context):
    # context first so storage is finalized, then the Chromium process, then the driver
    await context.close()
    await browser.close()
    await pw.stop()


async def save_screenshot(page, screenshot_dir: str | Path, prefix: str = "debug_error") -> Path | None:
    """Full-page PNG named <prefix>_<epoch ms>.png; None when the page cannot be captured."""
    path = Path(screenshot_dir) / f"{prefix}_{int(time.time() * 1000)}.png"
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        await page.screenshot(path=str(path), full_page=True)
    except Exception as e:
        logger.error("Failed to take screenshot: %s", e)
        return None
    logger.info("Screenshot saved to %s", path)
    return path
