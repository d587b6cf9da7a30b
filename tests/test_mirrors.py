"""
Testes para a raspagem de espelhos (MirrorScraper).
"""

import asyncio

from streamfinder.core.mirrors import MirrorScraper
from streamfinder.models import BROWSER_RENDER_LABEL, MAIN_PAGE_LABEL, NO_STREAMS_LABEL

SITE = "https://example.com"
MATCH = "https://example.com/match/team-a-vs-team-b"


def _scrape(fetcher, config, page=MATCH):
    return asyncio.run(MirrorScraper(fetcher, config=config).deep_scrape(page, SITE))


def test_mirror_scenario(make_fetcher, fast_config, match_site):
    results = _scrape(make_fetcher(match_site), fast_config)

    by_label = {r.server_label: r for r in results}
    assert set(by_label) == {"Link 1", "Link 2", "Link 3"}
    assert by_label["Link 1"].source_urls == {"https://cdn.example.com/one/playlist.m3u8"}
    assert by_label["Link 2"].source_urls == {"https://cdn.example.com/two/index.m3u8"}
    assert by_label["Link 3"].success is False
    assert by_label["Link 3"].source_urls == frozenset()
    assert sum(1 for r in results if r.success) == 2
    assert all(r.domain_index_url == SITE for r in results)


def test_never_empty_for_empty_page(make_fetcher, fast_config):
    results = _scrape(make_fetcher({}), fast_config)
    assert len(results) == 1
    assert results[0].scraped_url == MATCH
    assert results[0].server_label == NO_STREAMS_LABEL
    assert results[0].success is False


def test_main_page_result(make_fetcher, fast_config):
    fetcher = make_fetcher({MATCH: '<video src="https://cdn.example.com/main/index.m3u8"></video>'})
    results = _scrape(fetcher, fast_config)
    assert len(results) == 1
    assert results[0].server_label == MAIN_PAGE_LABEL
    assert results[0].scraped_url == MATCH
    assert results[0].success is True


def test_mirror_error_is_recorded(make_fetcher, fast_config, match_site):
    fetcher = make_fetcher(match_site, failing={"https://example.com/stream/3"})
    results = _scrape(fetcher, fast_config)
    failed = next(r for r in results if r.server_label == "Link 3")
    assert failed.success is False
    assert "boom" in failed.error
    assert sum(1 for r in results if r.success) == 2


def test_all_mirrors_empty_adds_page_placeholder(make_fetcher, fast_config):
    fetcher = make_fetcher({MATCH: '<a href="/s/1">Link 1</a><a href="/s/2">Link 2</a>'})
    results = _scrape(fetcher, fast_config)
    assert [(r.scraped_url, r.server_label) for r in results] == [
        ("https://example.com/s/1", "Link 1"),
        ("https://example.com/s/2", "Link 2"),
        (MATCH, NO_STREAMS_LABEL),
    ]
    assert not any(r.success for r in results)


def test_mirror_cap(make_fetcher, fast_config):
    links = "".join(f'<a href="/s/{i}">Link {i}</a>' for i in range(1, 6))
    config = fast_config.model_copy(update={"max_mirrors": 2})
    results = _scrape(make_fetcher({MATCH: links}), config)
    assert [r.server_label for r in results] == ["Link 1", "Link 2", NO_STREAMS_LABEL]


def test_mirrors_sharing_an_iframe_both_find_it(make_fetcher, fast_config):
    shared = "https://example.com/embed/shared"
    fetcher = make_fetcher({
        MATCH: '<a href="/s/1">Link 1</a><a href="/s/2">Link 2</a>',
        "https://example.com/s/1": '<iframe src="/embed/shared"></iframe>',
        "https://example.com/s/2": '<iframe src="/embed/shared"></iframe>',
        shared: '<video src="https://cdn.example.com/shared/index.m3u8"></video>',
    })
    results = _scrape(fetcher, fast_config)
    assert [r.server_label for r in results] == ["Link 1", "Link 2"]
    for result in results:
        assert result.source_urls == {"https://cdn.example.com/shared/index.m3u8"}
    # cada espelho tem o próprio conjunto de visitados
    assert fetcher.calls.count(shared) == 2


def test_browser_render_fallback(make_fetcher, fast_config):
    fetcher = make_fetcher(
        {MATCH: "<div id='player'></div>"},
        rendered={MATCH: '<video src="https://cdn.example.com/dom/index.m3u8"></video>'},
        requests={MATCH: [
            "https://edge.example.net/hls/chunklist.m3u8?t=1",
            "https://analytics.example.com/beacon.m3u8",
        ]},
        browser=True,
    )
    results = _scrape(fetcher, fast_config)
    assert len(results) == 1
    assert results[0].server_label == BROWSER_RENDER_LABEL
    assert results[0].source_urls == {
        "https://cdn.example.com/dom/index.m3u8",
        "https://edge.example.net/hls/chunklist.m3u8?t=1",
    }
    assert fetcher.rendered_calls == [MATCH]


def test_browser_not_used_when_streams_found(make_fetcher, fast_config, match_site):
    fetcher = make_fetcher(match_site, browser=True)
    _scrape(fetcher, fast_config)
    assert fetcher.rendered_calls == []


def test_probe_filters_manifests(make_fetcher, fast_config):
    fetcher = make_fetcher(
        {MATCH: (
            '<video src="https://cdn.example.com/good.m3u8"></video>'
            '<script>var x = "https://cdn.example.com/dead.m3u8";</script>'
        )},
        probes={"https://cdn.example.com/dead.m3u8": False},
    )
    config = fast_config.model_copy(update={"probe_manifests": True})
    results = _scrape(fetcher, config)
    assert results[0].source_urls == {"https://cdn.example.com/good.m3u8"}
