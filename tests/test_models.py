"""
Testes para os objetos de valor (streamfinder.models).
"""

import dataclasses

import pytest

from streamfinder.models import NO_STREAMS_LABEL, ProgressSnapshot, ScrapeResult, count_sources


def test_success_derived_from_sources():
    ok = ScrapeResult(scraped_url="https://e.com/p", source_urls=["https://cdn.e.com/a.m3u8"])
    empty = ScrapeResult(scraped_url="https://e.com/p")
    assert ok.success is True
    assert empty.success is False
    assert isinstance(ok.source_urls, frozenset)


def test_explicit_error_overrides_success():
    result = ScrapeResult(
        scraped_url="https://e.com/p",
        source_urls={"https://cdn.e.com/a.m3u8"},
        error="parcial",
    )
    assert result.success is False


def test_failure_factory():
    result = ScrapeResult.failure("https://e.com/p", "https://e.com")
    assert result.server_label == NO_STREAMS_LABEL
    assert result.success is False
    assert result.source_urls == frozenset()


def test_result_is_immutable():
    result = ScrapeResult(scraped_url="https://e.com/p")
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.success = True


def test_result_to_dict():
    result = ScrapeResult(
        scraped_url="https://e.com/p",
        source_urls={"https://cdn.e.com/b.m3u8", "https://cdn.e.com/a.m3u8"},
        domain_index_url="https://e.com",
        server_label="Link 1",
    )
    data = result.to_dict()
    assert data["scrapedUrl"] == "https://e.com/p"
    assert data["sourceUrls"] == ["https://cdn.e.com/a.m3u8", "https://cdn.e.com/b.m3u8"]
    assert data["domainIndexUrl"] == "https://e.com"
    assert data["serverLabel"] == "Link 1"
    assert data["success"] is True
    assert "error" not in data
    assert data["timestamp"] == result.timestamp.isoformat()


def test_progress_snapshot_to_dict():
    page = ProgressSnapshot(processed=1, total=2, current_domain="e.com", current_page="https://e.com/p", found=3)
    assert page.to_dict() == {
        "processed": 1,
        "total": 2,
        "currentDomain": "e.com",
        "currentPage": "https://e.com/p",
        "found": 3,
    }
    failed = ProgressSnapshot(processed=2, total=2, current_domain="x.com", error="boom")
    assert failed.to_dict() == {"processed": 2, "total": 2, "currentDomain": "x.com", "error": "boom"}


def test_count_sources():
    results = [
        ScrapeResult(scraped_url="a", source_urls={"https://c/1.m3u8", "https://c/2.m3u8"}),
        ScrapeResult(scraped_url="b"),
    ]
    assert count_sources(results) == 2
