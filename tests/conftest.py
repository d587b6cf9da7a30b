"""
Fixtures compartilhadas: um fetcher em memória que serve markup fixo por URL
e uma configuração sem pausas nem navegador.
"""

from types import SimpleNamespace

import pytest

from streamfinder.config import ScraperConfig


class FakeFetcher:
    """
    Substituto do ContentFetcher para os testes.

    Parâmetros
    ----------
    pages : dict
        URL -> markup devolvido por ``fetch``. URLs ausentes devolvem "".
    rendered : dict
        URL -> markup devolvido por ``fetch_rendered``.
    requests : dict
        URL -> lista de URLs "requisitadas" pela página durante a renderização.
    browser : bool
        Valor de ``browser_available``.
    failing : set
        URLs cuja busca levanta RuntimeError.
    probes : dict
        URL -> resultado de ``probe_manifest`` (padrão True).
    """

    def __init__(self, pages=None, rendered=None, requests=None, browser=False, failing=(), probes=None):
        self.pages = dict(pages or {})
        self.rendered = dict(rendered or {})
        self.requests = dict(requests or {})
        self.browser = browser
        self.failing = set(failing)
        self.probes = dict(probes or {})
        self.calls = []
        self.rendered_calls = []
        self.closed = False

    @property
    def browser_available(self):
        return self.browser

    async def fetch(self, url):
        self.calls.append(url)
        if url in self.failing:
            raise RuntimeError(f"boom: {url}")
        return self.pages.get(url, "")

    async def fetch_rendered(self, url, capture=None):
        self.rendered_calls.append(url)
        if capture is not None:
            for request_url in self.requests.get(url, []):
                capture.handle_request(SimpleNamespace(url=request_url))
        return self.rendered.get(url, "")

    async def probe_manifest(self, url):
        return self.probes.get(url, True)

    async def close(self):
        self.closed = True


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest.fixture
def fast_config():
    return ScraperConfig(
        request_delay=0,
        frame_delay=0,
        discovery_delay=0,
        render_settle=0,
        use_headless_browser=False,
    )


@pytest.fixture
def match_site():
    """
    Site com uma partida e três espelhos: o 1 tem o manifest num <video>,
    o 2 esconde o manifest em atob() dentro de um iframe, o 3 está vazio.
    """
    return {
        "https://example.com": (
            '<a href="/match/team-a-vs-team-b">Team A vs Team B</a>'
            '<a href="/about">About</a>'
        ),
        "https://example.com/match/team-a-vs-team-b": (
            "<h1>Team A vs Team B</h1>"
            '<a href="/stream/1">Link 1</a>'
            '<a href="/stream/2">Link 2</a>'
            '<a href="/stream/3">Link 3</a>'
        ),
        "https://example.com/stream/1": (
            '<video><source src="https://cdn.example.com/one/playlist.m3u8"></video>'
        ),
        "https://example.com/stream/2": '<iframe src="/embed/2"></iframe>',
        "https://example.com/embed/2": (
            '<script>var s = atob("aHR0cHM6Ly9jZG4uZXhhbXBsZS5jb20vdHdvL2luZGV4Lm0zdTg=");</script>'
        ),
        "https://example.com/stream/3": "<p>Offline</p>",
    }
