"""Error taxonomy for the recommendation pipeline.

None of these are fatal to the process: each one is caught at a known seam
and turned into a narrower, still valid response.
"""

from __future__ import annotations


class SommelierError(Exception):
    """Base class for all errors raised by this package."""


class MalformedUpstreamReply(SommelierError):
    """The model reply carries no usable marker line.

    Handled inside the extractor by falling through to the next layer.
    """


class ServiceUnavailable(SommelierError):
    """No completion credential is configured or the upstream call failed."""


class EmptyCandidateSet(SommelierError):
    """The pre-filter removed every catalog item for this query."""

    def __init__(self, query: str) -> None:
        super().__init__(f"No catalog items left after filtering: {query[:80]!r}")
        self.query = query


class StorageCorrupt(SommelierError):
    """A persisted blob could not be parsed."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Stored blob {key!r} is corrupt: {reason}")
        self.key = key


class CatalogError(SommelierError):
    """A catalog dataset is missing, unreadable or violates id uniqueness."""


class CartFull(SommelierError):
    """The cart already holds the maximum number of distinct entries."""
