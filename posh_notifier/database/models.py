"""Posh Notifier — Data Models.

Dataclasses representing the entities that flow through one run:
the listing extracted from a detail page, the result of visiting a
listing page, per-URL outcomes, and the transient run state.
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional


# ═══════════════════════════════════════════════════════════
# Scraper Models
# ═══════════════════════════════════════════════════════════


REQUIRED_FIELDS = ("title", "price", "size")


@dataclass
class Listing:
    """A marketplace item as extracted from its detail page.

    Every field except ``url`` may be absent (``None``) when the page
    did not expose it. Absence is always tested with ``is None``; an
    empty title is normalized to ``None`` by the extractor.

    Attributes:
        url: Canonical permalink, used as the identity key.
        title: Listing title.
        price: Asking price, non-negative when present.
        size: Size label as shown on the page.
    """

    url: str
    title: Optional[str] = None
    price: Optional[Decimal] = None
    size: Optional[str] = None

    def __post_init__(self) -> None:
        if self.price is not None and self.price < 0:
            raise ValueError(f"Listing price must be non-negative, got {self.price}")

    def missing_fields(self) -> list[str]:
        """Names of required fields that are absent."""
        return [name for name in REQUIRED_FIELDS if getattr(self, name) is None]

    @property
    def is_complete(self) -> bool:
        """Whether title, price and size are all present."""
        return not self.missing_fields()


@dataclass(frozen=True)
class VisitResult:
    """Outcome of loading one listing page: a listing or an error.

    Exactly one of ``listing`` and ``error`` is set.
    """

    url: str
    listing: Optional[Listing] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, listing: Listing) -> "VisitResult":
        return cls(url=listing.url, listing=listing)

    @classmethod
    def failure(cls, url: str, error: str) -> "VisitResult":
        return cls(url=url, error=error)

    @property
    def ok(self) -> bool:
        return self.listing is not None


class ListingOutcome(str, Enum):
    """Terminal outcome of processing one discovered URL."""

    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_INCOMPLETE = "skipped_incomplete"
    SKIPPED_FILTERED = "skipped_filtered"
    NOTIFIED_COMMITTED = "notified_committed"
    NOTIFIED_FAILED_NOT_COMMITTED = "notified_failed_not_committed"
    VISIT_FAILED = "visit_failed"


# ═══════════════════════════════════════════════════════════
# Run State
# ═══════════════════════════════════════════════════════════


@dataclass
class RunState:
    """Transient state of one pipeline invocation.

    Attributes:
        max_matches: Quota of confirmed notifications for this run.
        match_count: Notifications confirmed and committed so far.
        first_match_sent: Whether the header has been attempted.
        discovered: Number of candidate URLs returned by discovery.
        outcomes: Count of terminal outcomes by kind.
    """

    max_matches: int
    match_count: int = 0
    first_match_sent: bool = False
    discovered: int = 0
    outcomes: Counter = field(default_factory=Counter)
    started_at: float = field(default_factory=time.monotonic)
    finished_at: Optional[float] = None

    @property
    def quota_reached(self) -> bool:
        return self.match_count >= self.max_matches

    @property
    def processed(self) -> int:
        return sum(self.outcomes.values())

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return round(end - self.started_at, 1)

    def record(self, outcome: ListingOutcome) -> None:
        self.outcomes[outcome] += 1
        if outcome is ListingOutcome.NOTIFIED_COMMITTED:
            self.match_count += 1

    def finish(self) -> None:
        self.finished_at = time.monotonic()

    def to_dict(self) -> dict[str, object]:
        """Flatten into a stats dict for logging."""
        stats: dict[str, object] = {
            "discovered": self.discovered,
            "processed": self.processed,
            "sent": self.match_count,
            "max_matches": self.max_matches,
            "duration_seconds": self.duration_seconds,
        }
        for outcome in ListingOutcome:
            stats[outcome.value] = self.outcomes.get(outcome, 0)
        return stats
