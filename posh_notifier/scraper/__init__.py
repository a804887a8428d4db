"""Posh Notifier — Scraper Package.

Headless-browser scraping of the marketplace search page. Components:
  - BrowserSession: Playwright Chromium lifecycle
  - ListingDiscovery: scroll-to-exhaustion link harvesting
  - extract_listing: listing page parser
  - ListingFilter: disqualifying-terms predicate
  - ListingPipeline: seen-check → visit → filter → notify → commit
"""

from posh_notifier.scraper.browser import BrowserSession
from posh_notifier.scraper.discovery import DiscoveryError, ListingDiscovery
from posh_notifier.scraper.extractor import extract_listing, parse_price
from posh_notifier.scraper.listing_filter import ListingFilter
from posh_notifier.scraper.pipeline import ListingPipeline

__all__ = [
    "BrowserSession",
    "DiscoveryError",
    "ListingDiscovery",
    "extract_listing",
    "parse_price",
    "ListingFilter",
    "ListingPipeline",
]
