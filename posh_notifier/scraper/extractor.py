"""Posh Notifier — Listing Page Extractor.

Turns the rendered HTML of one listing page into a Listing. Uses
selectolax (HTMLParser). Each field is read independently; a missing
node or an unparseable price leaves that field as None rather than
raising.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from selectolax.parser import HTMLParser, Node

from posh_notifier.database.models import Listing

TITLE_SELECTOR = "h1.listing__title-container"
PRICE_SELECTOR = "p.h1"
SIZE_SELECTOR = "button.size-selector__size-option"

_PRICE_PATTERN = re.compile(r"\$\s?(\d[\d,]*(?:\.\d{1,2})?)")
# Struck-through previous prices, e.g. "Was $80", "Orig. $80", "Retail $80"
_PREVIOUS_PRICE_PATTERN = re.compile(
    r"\b(?:was|orig(?:inal(?:ly)?)?\.?|retail|msrp)\s*:?\s*\$\s?\d[\d,]*(?:\.\d{1,2})?",
    re.IGNORECASE,
)


def _text(node: Optional[Node]) -> Optional[str]:
    """Stripped text of a node, or None for a missing or blank node."""
    if node is None:
        return None
    text = node.text(strip=True)
    return text or None


def parse_price(text: Optional[str]) -> Optional[Decimal]:
    """Parse the first dollar amount in a blob of price text.

    Amounts labelled as a previous price are skipped, so the current
    price wins even when the page lists the old one first.

    Examples:
        "$45"              → Decimal("45")
        "$45 $80"          → Decimal("45")
        "Was $80 Now $45"  → Decimal("45")
        "$1,200.50"        → Decimal("1200.50")
        "Free"             → None

    Args:
        text: Raw price text, possibly None.

    Returns:
        The parsed amount, or None if no amount is present.
    """
    if not text:
        return None

    cleaned = _PREVIOUS_PRICE_PATTERN.sub(" ", text)
    match = _PRICE_PATTERN.search(cleaned)
    if not match:
        return None

    try:
        return Decimal(match.group(1).replace(",", ""))
    except InvalidOperation:
        return None


def extract_listing(html: str, url: str) -> Listing:
    """Extract a (possibly partial) Listing from a listing page.

    Args:
        html: Rendered page HTML.
        url: Permalink the page was loaded from.

    Returns:
        A Listing whose absent fields are None.
    """
    if not html:
        return Listing(url=url)

    tree = HTMLParser(html)

    # Size buttons can repeat; the first is the listed size
    return Listing(
        url=url,
        title=_text(tree.css_first(TITLE_SELECTOR)),
        price=parse_price(_text(tree.css_first(PRICE_SELECTOR))),
        size=_text(tree.css_first(SIZE_SELECTOR)),
    )
