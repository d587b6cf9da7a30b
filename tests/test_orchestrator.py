"""
Testes para o orquestrador (SiteCrawler).
"""

import asyncio

from streamfinder.core.orchestrator import CrawlStage, SiteCrawler, normalize_target
from streamfinder.core.progress import ProgressChannel


def _crawler(fetcher, config, channel=None):
    return SiteCrawler(config, fetcher=fetcher, channel=channel)


# ---------------------------------------------------------------------------
# Utilitários
# ---------------------------------------------------------------------------

def test_normalize_target():
    assert normalize_target("example.com") == "https://example.com"
    assert normalize_target(" http://example.com/ ") == "http://example.com"
    assert normalize_target("HTTPS://Example.com") == "HTTPS://Example.com"


# ---------------------------------------------------------------------------
# Cenário completo
# ---------------------------------------------------------------------------

def test_scrape_match_scenario(make_fetcher, fast_config, match_site):
    fetcher = make_fetcher(match_site)
    snapshots = []
    crawler = _crawler(fetcher, fast_config)

    results = asyncio.run(crawler.scrape(["example.com"], ["Team A vs Team B"], on_progress=snapshots.append))

    labels = sorted(r.server_label for r in results)
    assert labels == ["Link 1", "Link 2", "Link 3"]
    successes = [r for r in results if r.success]
    failures = [r for r in results if not r.success]
    assert len(successes) == 2
    assert all(r.source_urls for r in successes)
    assert len(failures) == 1
    assert failures[0].source_urls == frozenset()

    assert len(snapshots) == 1
    snapshot = snapshots[0]
    assert (snapshot.processed, snapshot.total) == (1, 1)
    assert snapshot.current_domain == "example.com"
    assert snapshot.current_page == "https://example.com/match/team-a-vs-team-b"
    assert snapshot.found == 2

    assert fetcher.closed is True
    assert crawler.stage == CrawlStage.DONE
    # o callback só fica assinado durante a chamada
    assert len(crawler.channel) == 0


def test_site_failure_does_not_abort_batch(make_fetcher, fast_config, match_site):
    fetcher = make_fetcher(match_site, failing={"https://broken.test"})
    snapshots = []

    results = asyncio.run(
        _crawler(fetcher, fast_config).scrape(
            ["broken.test", "example.com"], ["Team A vs Team B"], on_progress=snapshots.append
        )
    )

    assert snapshots[0].current_domain == "broken.test"
    assert "boom" in snapshots[0].error
    assert snapshots[0].to_dict()["error"] == snapshots[0].error
    assert snapshots[1].current_domain == "example.com"
    assert snapshots[1].total == 2
    assert len(results) == 3


def test_stop_between_sites(make_fetcher, fast_config, match_site):
    fetcher = make_fetcher(match_site)
    crawler = _crawler(fetcher, fast_config)

    def stop_after_first(snapshot):
        crawler.stop()

    results = asyncio.run(
        crawler.scrape(["example.com", "other.test"], ["Team A vs Team B"], on_progress=stop_after_first)
    )

    assert crawler.stopped is True
    assert len(results) == 3
    assert not any(url.startswith("https://other.test") for url in fetcher.calls)
    assert fetcher.closed is True


def test_stop_between_pages_of_a_site(make_fetcher, fast_config):
    game_1 = "https://example.com/watch/game-1"
    game_2 = "https://example.com/watch/game-2"
    fetcher = make_fetcher({
        "https://example.com": (
            '<a href="/watch/game-1">Lakers game 1</a>'
            '<a href="/watch/game-2">Lakers game 2</a>'
        ),
        game_1: '<video src="https://cdn.example.com/g1/index.m3u8"></video>',
        game_2: '<video src="https://cdn.example.com/g2/index.m3u8"></video>',
    })
    crawler = _crawler(fetcher, fast_config)

    def stop_after_first(snapshot):
        crawler.stop()

    results = asyncio.run(crawler.scrape(["example.com"], ["Lakers"], on_progress=stop_after_first))

    assert [r.scraped_url for r in results] == [game_1]
    # a segunda página só foi visitada na coleta das agendas, nunca raspada
    assert fetcher.calls.count(game_1) == 2
    assert fetcher.calls.count(game_2) == 1


def test_scrape_again_after_stop(make_fetcher, fast_config, match_site):
    crawler = _crawler(make_fetcher(match_site), fast_config)

    def stop_now(snapshot):
        crawler.stop()

    first = asyncio.run(crawler.scrape(["example.com", "other.test"], ["Team A"], on_progress=stop_now))
    assert crawler.stopped is True

    second = asyncio.run(crawler.scrape(["example.com"], ["Team A"]))
    assert crawler.stopped is False
    assert len(first) == len(second) == 3


def test_progress_queue_subscriber(make_fetcher, fast_config, match_site):
    channel = ProgressChannel()

    async def run():
        queue = channel.subscribe()
        await _crawler(make_fetcher(match_site), fast_config, channel).scrape(["example.com"], ["Team A"])
        return queue

    queue = asyncio.run(run())
    assert queue.qsize() == 1
    assert queue.get_nowait().found == 2


# ---------------------------------------------------------------------------
# Descoberta
# ---------------------------------------------------------------------------

def test_find_all_event_links(make_fetcher, fast_config):
    fetcher = make_fetcher({
        "https://example.com": (
            '<a href="/live">Live</a>'
            '<a href="/event/final-10-00">Final 10:00</a>'
            '<a href="https://other.com/watch/x">Other site</a>'
            '<a href="/about">About</a>'
        ),
        "https://example.com/soccer": '<a href="/game/arsenal-vs-chelsea">Arsenal vs Chelsea</a>',
    })
    pages = asyncio.run(_crawler(fetcher, fast_config).find_all_event_links("https://example.com"))
    assert [p.url for p in pages] == [
        "https://example.com/event/final-10-00",
        "https://example.com/game/arsenal-vs-chelsea",
    ]
    assert "https://example.com/streams/nhl" in fetcher.calls


def test_find_all_event_links_cap(make_fetcher, fast_config):
    anchors = "".join(f'<a href="/watch/{i}">Game {i}</a>' for i in range(10))
    config = fast_config.model_copy(update={"max_event_links": 4})
    fetcher = make_fetcher({"https://example.com": anchors})
    pages = asyncio.run(_crawler(fetcher, config).find_all_event_links("https://example.com"))
    assert len(pages) == 4
    assert fetcher.calls == ["https://example.com"]


def test_find_pages_uses_site_search(make_fetcher, fast_config):
    fetcher = make_fetcher({
        "https://example.com": '<form action="/find"><input type="search" name="term"></form>',
        "https://example.com/find?term=Lakers": '<a href="/watch/lakers-game">Lakers game</a>',
    })
    pages = asyncio.run(_crawler(fetcher, fast_config).find_pages_with_keywords("https://example.com", ["Lakers"]))
    assert [p.url for p in pages] == ["https://example.com/watch/lakers-game"]
    assert fetcher.calls[1] == "https://example.com/find?term=Lakers"
    # parou no primeiro candidato com resultados
    assert "https://example.com/search?q=Lakers" not in fetcher.calls


def test_find_pages_harvests_schedule_pages(make_fetcher, fast_config):
    fetcher = make_fetcher({
        "https://example.com": '<a href="/nba-schedule">Lakers games live</a>',
        "https://example.com/nba-schedule": (
            '<a href="/game/lakers-vs-celtics">Lakers vs Celtics 19:30</a>'
            '<a href="/game/knicks-vs-heat">Knicks vs Heat</a>'
        ),
    })
    pages = asyncio.run(_crawler(fetcher, fast_config).find_pages_with_keywords("https://example.com", ["Lakers"]))
    assert [p.url for p in pages] == [
        "https://example.com/game/lakers-vs-celtics",
        "https://example.com/nba-schedule",
    ]
    assert pages[0].text == "Lakers vs Celtics 19:30"


def test_find_pages_tries_keyword_sport_pages(make_fetcher, fast_config):
    fetcher = make_fetcher({
        "https://example.com/boxing-streams": '<a href="/fight/live-main-event">Main Event Boxing live</a>',
    })
    crawler = _crawler(fetcher, fast_config)
    pages = asyncio.run(crawler.find_pages_with_keywords("https://example.com", ["Boxing"]))
    assert [p.url for p in pages] == ["https://example.com/fight/live-main-event"]
    assert fetcher.calls.index("https://example.com/boxing") < fetcher.calls.index(
        "https://example.com/boxing-streams"
    )


def test_find_pages_without_match(make_fetcher, fast_config):
    fetcher = make_fetcher({"https://example.com": '<a href="/watch/1">Arsenal vs Chelsea</a>'})
    pages = asyncio.run(_crawler(fetcher, fast_config).find_pages_with_keywords("https://example.com", ["Lakers"]))
    assert pages == []


# ---------------------------------------------------------------------------
# Fallback e expansão por times
# ---------------------------------------------------------------------------

def test_homepage_fallback(make_fetcher, fast_config):
    fetcher = make_fetcher({
        "https://example.com": '<script>var src = "https://cdn.example.com/home/index.m3u8";</script>',
    })
    results = asyncio.run(_crawler(fetcher, fast_config).scrape(["example.com"]))
    assert len(results) == 1
    assert results[0].scraped_url == "https://example.com"
    assert results[0].source_urls == {"https://cdn.example.com/home/index.m3u8"}


def test_team_expansion(make_fetcher, fast_config):
    fetcher = make_fetcher({
        "https://example.com": '<a href="/match/arsenal-vs-chelsea-live">Arsenal vs Chelsea</a>',
        "https://example.com/match/arsenal-vs-chelsea-live": (
            '<video src="https://cdn.example.com/match/playlist.m3u8"></video>'
            '<a href="/team/arsenal-live-stream">Arsenal live stream</a>'
            '<a href="/team/chelsea-streams">Chelsea streams</a>'
            '<a href="https://other.test/team/arsenal-live">Arsenal elsewhere</a>'
        ),
        "https://example.com/team/arsenal-live-stream": (
            '<video src="https://cdn.example.com/arsenal/master.m3u8"></video>'
        ),
    })
    snapshots = []
    crawler = _crawler(fetcher, fast_config)
    results = asyncio.run(crawler.scrape(["example.com"], ["Arsenal"], on_progress=snapshots.append))

    scraped = [r.scraped_url for r in results]
    assert scraped == [
        "https://example.com/match/arsenal-vs-chelsea-live",
        "https://example.com/team/arsenal-live-stream",
        "https://example.com/team/chelsea-streams",
    ]
    assert [r.success for r in results] == [True, True, False]
    assert [s.processed for s in snapshots] == [1, 2, 3]
    assert all(s.total == 1 for s in snapshots)
    assert not any(url.startswith("https://other.test") for url in fetcher.calls)
    assert crawler.detected_sports["https://example.com"] == "soccer"
