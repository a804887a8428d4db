"""Posh Notifier — Listing Filter.

Local keyword filter applied to extracted listings. Rejects anything
whose title mentions a condition defect or an excluded category.
"""

from __future__ import annotations

import re
from typing import Iterable

from posh_notifier.config import DEFAULT_DISQUALIFYING_TERMS
from posh_notifier.database.models import Listing
from posh_notifier.utils.logger import get_logger

logger = get_logger(__name__)


def _normalize(text: str) -> str:
    """Lowercase and collapse whitespace for matching."""
    text = text.lower().strip()
    return re.sub(r"\s+", " ", text)


class ListingFilter:
    """Disqualifying-terms predicate over listing titles.

    Attributes:
        terms: Normalized disqualifying terms.
    """

    def __init__(self, terms: Iterable[str] = DEFAULT_DISQUALIFYING_TERMS) -> None:
        self.terms: tuple[str, ...] = tuple(
            t for t in (_normalize(term) for term in terms) if t
        )
        logger.debug("ListingFilter initialized with %d terms", len(self.terms))

    def check(self, listing: Listing) -> tuple[bool, str]:
        """Decide whether a listing qualifies, with a reason.

        Args:
            listing: An extracted listing.

        Returns:
            Tuple of (qualifies, reason_string).
        """
        missing = listing.missing_fields()
        if missing:
            return False, f"Missing fields: {', '.join(missing)}"

        title = _normalize(listing.title)
        for term in self.terms:
            if term in title:
                return False, f"Disqualifying term: {term}"

        return True, "No disqualifying terms"

    def qualifies(self, listing: Listing) -> bool:
        return self.check(listing)[0]
