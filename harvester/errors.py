class HarvestError(Exception):
    """Base class for everything the harvest loop knows how to handle."""


class ExtractionIncomplete(HarvestError):
    # Raw item has no usable identity key; the item is dropped, the cycle goes on.
    pass


class FetchTimeout(HarvestError):
    # Snapshot took too long; the cycle counts as an empty batch.
    pass


class SourceUnreachable(HarvestError):
    # Page/browser is gone. Fatal to the run.
    pass


class CheckpointWriteFailure(HarvestError):
    pass


class CheckpointReadFailure(HarvestError):
    pass
