"""
Field extraction: one raw review-card snapshot -> one Record.

A snapshot is the plain dict a rendering source collects from a single review
card (see ``adapters/google_maps.py``):

    {
        "review_id": "ChZDSUhNMG9nS0VJQ0FnSUR...",
        "author": "Jane D.",
        "author_meta": "Local Guide · 1,204 reviews · 3,410 photos",
        "rating_label": "5 stars",
        "relative_time": "2 weeks ago",
        "text": "Lovely stay ...",
        "buttons": ["See more", "Like", "Share"],
        "badges": ["New"],
        "owner_response": "Thank you ...",
        "photo_count": 3,
    }

Any key may be missing. Only ``review_id`` is required.
"""
import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from harvester.adapters.base import Record
from harvester.errors import ExtractionIncomplete


@dataclass(frozen=True)
class ExtractorPhrases:
    """Locale phrases recognized for each derived flag / embedded count."""
    local_guide: Tuple[str, ...] = ("Local Guide",)
    truncated: Tuple[str, ...] = ("More", "See more", "Read more")
    new: Tuple[str, ...] = ("New",)
    review_count: Tuple[str, ...] = ("reviews", "review")
    photo_count: Tuple[str, ...] = ("photos", "photo")

    def merged(self, other: "ExtractorPhrases") -> "ExtractorPhrases":
        def _join(a, b):
            return tuple(dict.fromkeys(a + b))
        return ExtractorPhrases(
            local_guide=_join(self.local_guide, other.local_guide),
            truncated=_join(self.truncated, other.truncated),
            new=_join(self.new, other.new),
            review_count=_join(self.review_count, other.review_count),
            photo_count=_join(self.photo_count, other.photo_count),
        )


LOCALE_PHRASES: Dict[str, ExtractorPhrases] = {
    "en": ExtractorPhrases(),
    "id": ExtractorPhrases(
        local_guide=("Local Guide", "Pemandu Lokal"),
        truncated=("Lainnya", "Selengkapnya", "Lihat lainnya"),
        new=("Baru",),
        review_count=("ulasan",),
        photo_count=("foto",),
    ),
    "es": ExtractorPhrases(
        local_guide=("Local Guide", "Guía local"),
        truncated=("Más", "Ver más", "Leer más"),
        new=("Nuevo", "Nueva"),
        review_count=("reseñas", "reseña", "opiniones", "opinión"),
        photo_count=("fotos", "foto"),
    ),
}


def phrases_for(locale: Optional[str]) -> ExtractorPhrases:
    """English phrases plus the ones for ``locale`` ("id", "es-ES", ...)."""
    base = LOCALE_PHRASES["en"]
    if not locale:
        return base
    lang = locale.replace("_", "-").split("-")[0].lower()
    extra = LOCALE_PHRASES.get(lang)
    return base.merged(extra) if extra and lang != "en" else base


# --- free-text helpers -------------------------------------------------------

# 1,234 / 1.234 / 1 234 (incl. narrow no-break spaces) or a plain digit run
_GROUPED_INT = r"(\d{1,3}(?:[.,\s\u00a0\u202f]\d{3})+|\d+)"
_RATING_RE = re.compile(r"(\d+(?:[.,]\d+)?)")


def clean_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = re.sub(r"\s+", " ", value).strip()
    return cleaned or None


def normalize_text(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value or "")
    normalized = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", normalized).strip().casefold()


def parse_rating(value: Any) -> Optional[float]:
    text = clean_text(value)
    if not text:
        return None
    match = _RATING_RE.search(text)
    if not match:
        return None
    rating = float(match.group(1).replace(",", "."))
    if 0.0 <= rating <= 5.0:
        return rating
    return None


def parse_count(value: Any, words: Iterable[str]) -> Optional[int]:
    """First integer in ``value`` directly followed by one of ``words``.

    >>> parse_count("Local Guide · 1,204 reviews · 87 photos", ["photos"])
    87
    """
    text = clean_text(value)
    words = sorted((w for w in words if w), key=len, reverse=True)
    if not text or not words:
        return None
    alternatives = "|".join(re.escape(w) for w in words)
    match = re.search(_GROUPED_INT + r"\s*(?:" + alternatives + r")\b", text, re.IGNORECASE)
    if not match:
        return None
    return int(re.sub(r"\D", "", match.group(1)))


def _strings(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(s for s in (clean_text(v) for v in value) if s)


def _any_equals(candidates: Iterable[str], phrases: Iterable[str]) -> bool:
    wanted = {normalize_text(p) for p in phrases}
    return any(normalize_text(c) in wanted for c in candidates)


def _any_contains(text: Optional[str], phrases: Iterable[str]) -> bool:
    if not text:
        return False
    haystack = normalize_text(text)
    return any(normalize_text(p) in haystack for p in phrases if p)


class ReviewExtractor:
    """Builds Records from review-card snapshots.

    Missing attributes come out as ``None``; the only hard failure is a card
    without an identity key, which raises ``ExtractionIncomplete``.
    """

    def __init__(self, phrases: Optional[ExtractorPhrases] = None, *, key_field: str = "review_id"):
        self.phrases = phrases or ExtractorPhrases()
        self.key_field = key_field

    def extract(self, raw: Any) -> Record:
        if not isinstance(raw, Mapping):
            raise ExtractionIncomplete(f"unsupported raw item: {type(raw).__name__}")

        key = clean_text(raw.get(self.key_field))
        if not key:
            raise ExtractionIncomplete(f"missing {self.key_field}")

        author_meta = clean_text(raw.get("author_meta"))
        owner_response = clean_text(raw.get("owner_response"))
        buttons = _strings(raw.get("buttons"))
        badges = _strings(raw.get("badges"))

        photo_count = raw.get("photo_count")
        if isinstance(photo_count, bool) or not isinstance(photo_count, int):
            photo_count = None

        fields = {
            "author": clean_text(raw.get("author")),
            "rating": parse_rating(raw.get("rating_label")),
            "relative_time": clean_text(raw.get("relative_time")),
            "text": clean_text(raw.get("text")),
            "reviewer_review_count": parse_count(author_meta, self.phrases.review_count),
            "reviewer_photo_count": parse_count(author_meta, self.phrases.photo_count),
            "owner_response": owner_response,
            "photo_count": photo_count,
        }
        derived_flags = {
            "is_local_guide": _any_contains(author_meta, self.phrases.local_guide),
            "is_truncated": _any_equals(buttons, self.phrases.truncated),
            "is_new": _any_equals(badges, self.phrases.new),
            "has_owner_response": owner_response is not None,
        }
        return Record(identity_key=key, fields=fields, derived_flags=derived_flags)
