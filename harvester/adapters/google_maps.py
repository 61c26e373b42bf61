import logging
from typing import Any, Dict, List, Optional

from playwright._impl._errors import TargetClosedError, Error as PWError

from harvester.adapters.base import RenderingSource, SiteAdapter
from harvester.browser import save_screenshot
from harvester.errors import FetchTimeout, SourceUnreachable
from harvester.extract import ReviewExtractor, phrases_for

logger = logging.getLogger(__name__)


# Google Maps class names are obfuscated and change over time; keep them in one place.
SELECTORS: Dict[str, str] = {
    "card": "div.jftiEf[data-review-id]",
    "author": "div.d4r55",
    "author_meta": "div.RfnDt",
    "rating": "span.kvMYJc[aria-label], span[role='img'][aria-label]",
    "relative_time": "span.rsqaWe",
    "text": "div.MyEned span.wiI7pd",
    "buttons": "button",
    "badges": "span.fzvQIb, span.DU9Pgb span",
    "owner_response": "div.CDe7pd span.wiI7pd",
    "photos": "button.Tya61d",
    "feed": "div.m6QErb.DxyBCb, div[role='feed']",
}

CONSENT_BUTTONS = [
    "button[aria-label='Accept all']",
    "button[aria-label='Setuju semua']",
    "button[aria-label='Aceptar todo']",
    "form[action*='consent.google.com'] button",
    "div[role='dialog'] button:is([aria-label*='Accept'], [aria-label*='Agree'], [aria-label*='Setuju'])",
]
# Last resort: any dialog button whose text reads like an accept.
CONSENT_DIALOG_BUTTON = "div[role='dialog'] button"
CONSENT_WORDS = ["accept", "agree", "setuju", "aceptar"]

REVIEWS_TAB = (
    "button[role='tab'][aria-label*='Reviews'], "
    "button[role='tab'][aria-label*='Ulasan'], "
    "button[role='tab'][aria-label*='Reseñas']"
)

SORT_BUTTONS = [
    "button[aria-label='Sort reviews']",
    "button[aria-label*='Sort by']",
    "button[aria-label='Most relevant']",
    "button[aria-label='Urutkan ulasan']",
    "button[aria-label='Ordenar reseñas']",
    "button[data-value*='Sort']",
]
SORT_MENU_ITEM = "div[role='menuitemradio']"
NEWEST_LABELS = ["Newest", "Terbaru", "Más recientes"]


# One round-trip per snapshot: every rendered card becomes a plain dict.
_SNAPSHOT_JS = """
(sel) => {
  const txt = (root, s) => {
    const el = root.querySelector(s);
    return el ? el.textContent : null;
  };
  const attr = (root, s, name) => {
    const el = root.querySelector(s);
    return el ? el.getAttribute(name) : null;
  };
  const texts = (root, s) => Array.from(root.querySelectorAll(s))
    .map(el => el.getAttribute('aria-label') || el.textContent || '')
    .filter(t => t.trim().length > 0);
  return Array.from(document.querySelectorAll(sel.card)).map(card => ({
    review_id: card.getAttribute('data-review-id'),
    author: txt(card, sel.author) || card.getAttribute('aria-label'),
    author_meta: txt(card, sel.author_meta),
    rating_label: attr(card, sel.rating, 'aria-label'),
    relative_time: txt(card, sel.relative_time),
    text: txt(card, sel.text),
    buttons: Array.from(card.querySelectorAll(sel.buttons))
      .flatMap(b => [b.getAttribute('aria-label'), b.textContent])
      .filter(t => t && t.trim().length > 0),
    badges: texts(card, sel.badges),
    owner_response: txt(card, sel.owner_response),
    photo_count: card.querySelectorAll(sel.photos).length,
  }));
}
"""

_SCROLL_FEED_JS = """
(feedSel) => {
  const feed = document.querySelector(feedSel);
  if (feed) {
    feed.scrollTop = feed.scrollHeight;
    return true;
  }
  window.scrollTo(0, document.body.scrollHeight);
  return false;
}
"""


class PageReviewSource(RenderingSource):
    """Review cards currently rendered on a live Google Maps page."""

    def __init__(self, page, selectors: Optional[Dict[str, str]] = None):
        self.page = page
        self.selectors = dict(SELECTORS, **(selectors or {}))

    async def materialized_batch(self) -> List[Dict[str, Any]]:
        try:
            return await self.page.evaluate(_SNAPSHOT_JS, self.selectors)
        except TargetClosedError as e:
            raise SourceUnreachable(str(e)) from e
        except PWError as e:
            # e.g. execution context destroyed mid-render; next cycle will try again
            raise FetchTimeout(f"snapshot failed: {e}") from e

    async def request_more(self) -> None:
        try:
            await self.page.evaluate(_SCROLL_FEED_JS, self.selectors["feed"])
        except TargetClosedError as e:
            raise SourceUnreachable(str(e)) from e
        except PWError as e:
            logger.warning("[MORE] scroll failed: %s", e)

    async def is_reachable(self) -> bool:
        if self.page.is_closed():
            return False
        try:
            await self.page.evaluate("() => true")
        except PWError:
            return False
        return True


class GoogleMapsAdapter(SiteAdapter):
    name = "google_maps"
    domains = ["google.", "goo.gl"]

    async def pre_open(self, page):
        await page.goto("about:blank")

    async def navigate_board(self, page, url):
        await page.goto(url, wait_until="domcontentloaded", timeout=120_000)
        if await self._dismiss_consent(page):
            await page.wait_for_load_state("domcontentloaded")

    async def _dismiss_consent(self, page) -> bool:
        for sel in CONSENT_BUTTONS:
            try:
                await page.click(sel, timeout=1500)
                logger.info("Consent dismissed via %s", sel)
                return True
            except PWError:
                pass

        buttons = page.locator(CONSENT_DIALOG_BUTTON)
        try:
            labels = await buttons.all_text_contents()
        except PWError:
            return False
        for i, label in enumerate(labels):
            text = (label or "").strip().lower()
            if any(w in text for w in CONSENT_WORDS):
                try:
                    await buttons.nth(i).click(timeout=1500)
                except PWError:
                    continue
                logger.info("Consent dismissed via dialog button '%s'", label.strip())
                return True
        return False

    async def prepare_listing(self, page, *, sort_newest: bool = False, screenshot_dir=None):
        try:
            await page.click(REVIEWS_TAB, timeout=5000)
        except PWError:
            logger.info("No reviews tab to click; assuming the review list is already open")

        if sort_newest:
            await self._sort_newest(page, screenshot_dir=screenshot_dir)

        try:
            await page.wait_for_selector(SELECTORS["card"], timeout=15000)
        except PWError:
            logger.warning("No review cards rendered yet; harvesting anyway")

    async def _sort_newest(self, page, *, screenshot_dir=None):
        for sel in SORT_BUTTONS:
            try:
                await page.click(sel, timeout=5000)
                break
            except PWError:
                continue
        else:
            logger.warning("Sort button not found; keeping the default order")
            if screenshot_dir:
                await save_screenshot(page, screenshot_dir, prefix="debug_sort_button_not_found")
            return

        await page.wait_for_selector(SORT_MENU_ITEM, state="visible", timeout=10000)
        items = page.locator(SORT_MENU_ITEM)
        options = [(t or "").strip() for t in await items.all_text_contents()]
        for i, label in enumerate(options):
            if label in NEWEST_LABELS:
                await items.nth(i).click()
                await page.wait_for_timeout(1500)
                logger.info("Reviews sorted by '%s'", label)
                return
        logger.warning("No 'newest' option among sort options: %s", options)

    def make_source(self, page, *, locale: Optional[str] = None) -> PageReviewSource:
        return PageReviewSource(page)

    def make_extractor(self, *, locale: Optional[str] = None) -> ReviewExtractor:
        return ReviewExtractor(phrases_for(locale))
