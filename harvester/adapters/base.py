from dataclasses import dataclass, field            # frozen dataclass keeps a Record immutable once built
from types import MappingProxyType                   # read-only view over the field dicts
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from harvester.errors import ExtractionIncomplete

Scalar = Union[str, int, float, bool, None]


@dataclass(frozen=True)
class Record:                                        # One harvested review (unified schema)
    identity_key: str                                # Stable id of the source item across cycles
    fields: Mapping[str, Scalar] = field(default_factory=dict)         # Every entry may be None
    derived_flags: Mapping[str, bool] = field(default_factory=dict)    # Computed once at extraction

    def __post_init__(self):
        if not self.identity_key:
            raise ExtractionIncomplete("record has no identity key")
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        object.__setattr__(
            self, "derived_flags",
            MappingProxyType({k: bool(v) for k, v in self.derived_flags.items()}),
        )

    def __hash__(self):
        # field maps are read-only proxies, which do not hash
        return hash(self.identity_key)

    def get(self, name: str) -> Scalar:
        return self.fields.get(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity_key": self.identity_key,
            "fields": dict(self.fields),
            "derived_flags": dict(self.derived_flags),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Record":
        return cls(
            identity_key=data.get("identity_key") or "",
            fields=data.get("fields") or {},
            derived_flags=data.get("derived_flags") or {},
        )


class RenderingSource:                               # What the harvest loop pulls raw items from
    async def materialized_batch(self) -> Sequence[Any]:
        """Snapshot of every item currently rendered. Consecutive snapshots may overlap,
        shrink or reorder."""
        raise NotImplementedError

    async def request_more(self) -> None:            # Fire-and-forget "scroll to bottom"
        raise NotImplementedError

    async def is_reachable(self) -> bool:            # False once the page/browser is gone
        return True


class SiteAdapter:                                   # Base class for all site-specific adapters
    name: str = "base"                               # Human-readable adapter name (override per site)
    domains: List[str] = []                          # Host fragments handled by this adapter

    async def pre_open(self, page): ...              # Runs before navigation

    async def navigate_board(self, page, url): ...   # Loads the page and clears consent dialogs

    async def prepare_listing(self, page, *, sort_newest: bool = False, screenshot_dir=None): ...  # Opens the review list

    def make_source(self, page, *, locale: Optional[str] = None) -> RenderingSource:
        raise NotImplementedError

    def make_extractor(self, *, locale: Optional[str] = None):
        """Returns an object with ``extract(raw) -> Record``."""
        raise NotImplementedError
