"""
streamfinder
============
Descoberta de manifests HLS (.m3u8) em sites de streaming esportivo.

    import asyncio
    from streamfinder import SiteCrawler, ScraperConfig

    crawler = SiteCrawler(ScraperConfig(use_headless_browser=False))
    results = asyncio.run(crawler.scrape(["example.com"], ["Arsenal"]))
"""

from streamfinder.config import ScraperConfig, load_config
from streamfinder.core.orchestrator import CrawlStage, SiteCrawler, scrape
from streamfinder.core.progress import ProgressChannel
from streamfinder.errors import (
    BrowserInitError,
    FetchError,
    ParseError,
    SiteCrawlError,
    StreamFinderError,
)
from streamfinder.models import ProgressSnapshot, ScrapeResult

__version__ = "0.1.0"

__all__ = [
    "BrowserInitError",
    "CrawlStage",
    "FetchError",
    "ParseError",
    "ProgressChannel",
    "ProgressSnapshot",
    "ScrapeResult",
    "ScraperConfig",
    "SiteCrawlError",
    "SiteCrawler",
    "StreamFinderError",
    "load_config",
    "scrape",
]
