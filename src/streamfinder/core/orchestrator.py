"""
orchestrator.py
===============
Pipeline por site alvo: descobre as páginas candidatas, raspa cada uma em
profundidade (espelhos + iframes) e expande para as páginas de tag dos times
encontrados pelo caminho.

Estados de cada site, em sequência::

    Discovering -> Extracting-Teams -> Deep-Scraping -> Team-Expansion -> Done

Os sites são processados um de cada vez. A falha de um site é registrada em
um snapshot de progresso com ``error`` e o lote segue para o próximo. O
sinal de parada (:meth:`SiteCrawler.stop`) é cooperativo: é verificado entre
sites e entre páginas, e o trabalho em andamento termina normalmente.

Exemplo::

    crawler = SiteCrawler(ScraperConfig(request_delay=500))
    results = await crawler.scrape(["example.com"], ["Arsenal", "Chelsea"])
"""

import asyncio
import urllib.parse
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from streamfinder.config import ScraperConfig
from streamfinder.core.fetcher import ContentFetcher
from streamfinder.core.keywords import matches_keywords, normalize_keywords
from streamfinder.core.links import (
    DEFAULT_SPORT,
    SPORT_SLUGS,
    Anchor,
    detect_search_pattern,
    detect_sport,
    extract_team_names,
    is_category_page,
    is_event_link,
    is_scheduled_event_link,
    is_stream_shaped,
    is_team_tag_link,
    iter_anchors,
    looks_like_event_url,
    same_origin,
    sports_in_keywords,
)
from streamfinder.core.mirrors import MirrorScraper
from streamfinder.core.progress import ProgressCallback, ProgressChannel
from streamfinder.errors import SiteCrawlError
from streamfinder.extraction.manager import StrategyManager
from streamfinder.logger import get_logger
from streamfinder.models import CandidatePage, ProgressSnapshot, ScrapeResult, count_sources

logger = get_logger(__name__)

INDEX_PATHS = ("", "/live", "/streams", "/schedule", "/events")
SPORT_PATH_SHAPES = ("/{sport}", "/{sport}-streams", "/streams/{sport}")
SEARCH_URL_SHAPES = (
    "/search?q={query}",
    "/?s={query}",
    "/search?query={query}",
    "/search/{query}",
    "/?search={query}",
)
LENIENT_SELECTOR = 'a[href*="stream"], a[href*="watch"], a[href*="live"]'
SCHEDULE_PAGES_CHECKED = 5


class CrawlStage(str, Enum):
    DISCOVERING = "discovering"
    EXTRACTING_TEAMS = "extracting-teams"
    DEEP_SCRAPING = "deep-scraping"
    TEAM_EXPANSION = "team-expansion"
    DONE = "done"


def normalize_target(target: str) -> str:
    """Prefixa ``https://`` quando o alvo não tem esquema e remove a barra final."""
    target = target.strip()
    if not target.lower().startswith(("http://", "https://")):
        target = f"https://{target}"
    return target.rstrip("/")


def _add(found: Dict[str, CandidatePage], anchor: Anchor) -> None:
    if anchor.url not in found:
        found[anchor.url] = CandidatePage(url=anchor.url, text=anchor.combined_text)


class SiteCrawler:
    """
    Orquestrador da varredura de vários sites alvo.

    Parâmetros
    ----------
    config : ScraperConfig, opcional
        Opções da execução. Padrão: ``ScraperConfig()``.
    fetcher : ContentFetcher, opcional
        Fetcher compartilhado por todo o pipeline. É liberado ao fim de
        :meth:`scrape`.
    strategies : StrategyManager, opcional
        Estratégias de extração. Padrão: as estratégias incluídas no pacote.
    channel : ProgressChannel, opcional
        Canal onde os snapshots de progresso são publicados.
    """

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        fetcher=None,
        strategies: Optional[StrategyManager] = None,
        channel: Optional[ProgressChannel] = None,
    ):
        self.config = config or ScraperConfig()
        self.fetcher = fetcher if fetcher is not None else ContentFetcher(self.config)
        self.strategies = strategies or StrategyManager()
        self.mirrors = MirrorScraper(self.fetcher, self.strategies, self.config)
        self.channel = channel or ProgressChannel()
        self.stage = CrawlStage.DONE
        self.detected_sports: Dict[str, str] = {}
        self._processed = 0
        self._stopped = False

    # -----------------------------------------------------------------------
    # Controle
    # -----------------------------------------------------------------------

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """
        Pede a parada: nenhum site ou página novo é iniciado a partir daqui.
        Vale para a chamada de :meth:`scrape` em andamento; a próxima recomeça.
        """
        if not self._stopped:
            logger.warning("Parada solicitada; aguardando o trabalho em andamento.")
        self._stopped = True

    async def _pause(self, milliseconds: int) -> None:
        if milliseconds > 0:
            await asyncio.sleep(milliseconds / 1000)

    def _report(self, site: str, total: int, page_url: str, page_results: Sequence[ScrapeResult]) -> None:
        self._processed += 1
        self.channel.publish(ProgressSnapshot(
            processed=self._processed,
            total=total,
            current_domain=site,
            current_page=page_url,
            found=count_sources(page_results),
        ))

    # -----------------------------------------------------------------------
    # Descoberta
    # -----------------------------------------------------------------------

    async def find_all_event_links(self, origin: str) -> List[CandidatePage]:
        """
        Descoberta sem palavras-chave: percorre a página inicial, os índices
        comuns e as categorias de esporte, coletando links com cara de evento.
        """
        pages = [origin + path for path in INDEX_PATHS]
        for sport in SPORT_SLUGS:
            pages.extend(origin + shape.format(sport=sport) for shape in SPORT_PATH_SHAPES)

        found: Dict[str, CandidatePage] = {}
        logger.info("Descobrindo links de eventos em %s...", origin)
        for page_url in pages:
            if self.stopped:
                break
            markup = await self.fetcher.fetch(page_url)
            if not markup:
                continue
            for anchor in iter_anchors(markup, page_url):
                if not is_event_link(anchor.href, anchor.combined_text):
                    continue
                if same_origin(anchor.url, origin) and not is_category_page(anchor.url):
                    _add(found, anchor)
            await self._pause(self.config.discovery_delay)
            if len(found) >= self.config.max_event_links:
                logger.info("%d links de eventos encontrados, encerrando a descoberta.", len(found))
                break

        logger.info("✓ %d link(s) de eventos descobertos", len(found))
        return list(found.values())[: self.config.max_event_links]

    def _search_urls(self, origin: str, home_markup: str, keywords: Sequence[str]) -> List[str]:
        urls: List[str] = []
        pattern = detect_search_pattern(home_markup, origin)
        if pattern is not None and pattern.method == "get":
            urls.append(pattern.build(" ".join(keywords)))
            logger.info("Usando a busca do site: %s?%s=...", pattern.url, pattern.param)

        query = "+".join(urllib.parse.quote_plus(k) for k in keywords)
        urls.extend(origin + shape.format(query=query) for shape in SEARCH_URL_SHAPES)

        for sport in sports_in_keywords(keywords):
            urls.extend(origin + shape.format(sport=sport) for shape in SPORT_PATH_SHAPES)

        urls.append(origin)
        return urls

    async def _harvest_schedule_pages(
        self, origin: str, pages: List[CandidatePage], keywords: Sequence[str]
    ) -> Dict[str, CandidatePage]:
        """Coleta links de eventos dentro das primeiras páginas que parecem agendas."""
        events: Dict[str, CandidatePage] = {}
        for page in pages[:SCHEDULE_PAGES_CHECKED]:
            if self.stopped:
                break
            if looks_like_event_url(page.url):
                events.setdefault(page.url, page)
                continue
            logger.debug("Procurando eventos em: %s", page.url)
            markup = await self.fetcher.fetch(page.url)
            if not markup:
                continue
            for anchor in iter_anchors(markup, page.url):
                text = anchor.combined_text
                if (
                    is_scheduled_event_link(anchor.href, text)
                    and same_origin(anchor.url, origin)
                    and matches_keywords(text, keywords)
                ):
                    _add(events, anchor)
            await self._pause(self.config.discovery_delay)
        return events

    async def find_pages_with_keywords(self, origin: str, keywords: Iterable[str]) -> List[CandidatePage]:
        """
        Descoberta guiada por palavras-chave.

        Tenta, em ordem, a busca nativa do site, os formatos comuns de URL de
        busca, as categorias dos esportes citados e a página inicial; para no
        primeiro candidato que render links. Se nada casar, faz uma única
        passada tolerante na página inicial. Por fim, expande as páginas que
        parecem agendas em seus links de eventos.
        """
        keywords = normalize_keywords(keywords)
        found: Dict[str, CandidatePage] = {}

        home_markup = await self.fetcher.fetch(origin)
        for search_url in self._search_urls(origin, home_markup, keywords):
            if self.stopped:
                break
            markup = home_markup if search_url == origin else await self.fetcher.fetch(search_url)
            if not markup:
                continue
            for anchor in iter_anchors(markup, search_url):
                text = anchor.combined_text
                if (
                    matches_keywords(text, keywords)
                    and is_stream_shaped(anchor.href, text)
                    and same_origin(anchor.url, origin)
                ):
                    logger.debug("✓ Link encontrado: %s", anchor.text[:50])
                    _add(found, anchor)
            if found:
                logger.info("%d página(s) com as palavras-chave em %s", len(found), search_url)
                break
            await self._pause(self.config.request_delay)

        if not found and home_markup and not self.stopped:
            logger.info("Nenhum resultado estrito; tentando busca tolerante na página inicial...")
            for anchor in iter_anchors(home_markup, origin, selector=LENIENT_SELECTOR):
                if matches_keywords(anchor.text, keywords) and same_origin(anchor.url, origin):
                    _add(found, anchor)

        if found:
            events = await self._harvest_schedule_pages(origin, list(found.values()), keywords)
            if events:
                logger.info("%d página(s) de evento coletadas das agendas", len(events))
                # eventos primeiro; as páginas de agenda ficam no fim da lista
                for url, page in found.items():
                    events.setdefault(url, page)
                found = events

        pages = list(found.values())[: self.config.max_candidates]
        logger.info("Resultado final: %d página(s) únicas para %s", len(pages), origin)
        return pages

    async def find_team_tag_pages(self, match_page: str, teams: Sequence[str]) -> List[str]:
        """Links de tag de time (mesma origem) presentes em uma página de partida."""
        markup = await self.fetcher.fetch(match_page)
        pages: List[str] = []
        for anchor in iter_anchors(markup, match_page):
            if anchor.url == match_page or not same_origin(anchor.url, match_page):
                continue
            if is_team_tag_link(anchor.href, anchor.combined_text, teams) and anchor.url not in pages:
                pages.append(anchor.url)
        return pages

    # -----------------------------------------------------------------------
    # Pipeline por site
    # -----------------------------------------------------------------------

    async def _crawl_site(
        self,
        site: str,
        origin: str,
        keywords: Sequence[str],
        total: int,
        results: List[ScrapeResult],
    ) -> None:
        self.stage = CrawlStage.DISCOVERING
        if keywords:
            candidates = await self.find_pages_with_keywords(origin, keywords)
        else:
            candidates = await self.find_all_event_links(origin)
        if not candidates:
            logger.info("Nenhuma página encontrada em %s; usando a página inicial.", origin)
            candidates = [CandidatePage(url=origin)]

        self.stage = CrawlStage.EXTRACTING_TEAMS
        selected = candidates[: self.config.pages_per_site]
        teams: List[str] = []
        match_pages: List[str] = []
        sport = DEFAULT_SPORT
        for page in selected:
            names = extract_team_names(page.url, page.text)
            teams.extend(n for n in names if n not in teams)
            if names:
                match_pages.append(page.url)
            sport = detect_sport(page.url) or sport
        self.detected_sports[origin] = sport

        self.stage = CrawlStage.DEEP_SCRAPING
        for page in selected:
            if self.stopped:
                return
            page_results = await self.mirrors.deep_scrape(page.url, origin)
            results.extend(page_results)
            self._report(site, total, page.url, page_results)
            await self._pause(self.config.request_delay)

        if not teams:
            return

        self.stage = CrawlStage.TEAM_EXPANSION
        logger.info("%d time(s) em %d página(s) de partida: %s", len(teams), len(match_pages), ", ".join(teams))
        team_pages: List[str] = []
        for match_page in match_pages:
            if self.stopped:
                return
            for url in await self.find_team_tag_pages(match_page, teams):
                if url not in team_pages:
                    team_pages.append(url)

        scraped = {r.scraped_url for r in results}
        pending = [url for url in team_pages if url not in scraped]
        if pending:
            logger.info("%d página(s) de time para raspar", len(pending))
        for url in pending:
            if self.stopped:
                return
            page_results = await self.mirrors.deep_scrape(url, origin)
            for result in page_results:
                if result.scraped_url not in scraped:
                    scraped.add(result.scraped_url)
                    results.append(result)
            self._report(site, total, url, page_results)
            await self._pause(self.config.request_delay)

    async def crawl_site(
        self,
        site: str,
        keywords: Sequence[str],
        total: int,
        results: List[ScrapeResult],
    ) -> None:
        """Processa um site; qualquer falha sai como SiteCrawlError."""
        origin = normalize_target(site)
        try:
            await self._crawl_site(site, origin, keywords, total, results)
        except Exception as e:
            raise SiteCrawlError(site, e) from e

    async def scrape(
        self,
        targets: Iterable[str],
        keywords: Iterable[str] = (),
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[ScrapeResult]:
        """
        Varre os sites alvo em sequência e retorna todos os resultados.

        Parâmetros
        ----------
        targets : iterável de str
            Sites alvo; entradas sem esquema recebem ``https://``.
        keywords : iterável de str
            Filtro de palavras-chave (OU). Vazio = descoberta completa.
        on_progress : callable, opcional
            Assinado no canal de progresso durante esta chamada.

        Retorna
        -------
        list[ScrapeResult]
            Resultados acumulados (parciais, se a parada for solicitada).
        """
        sites = [t.strip() for t in targets if t and t.strip()]
        keywords = normalize_keywords(keywords)
        results: List[ScrapeResult] = []
        self._processed = 0
        self._stopped = False
        if on_progress is not None:
            self.channel.add_listener(on_progress)

        try:
            for site in sites:
                if self.stopped:
                    logger.warning("Varredura interrompida antes de %s", site)
                    break
                logger.info("Processando site: %s", site)
                try:
                    await self.crawl_site(site, keywords, len(sites), results)
                except SiteCrawlError as e:
                    logger.error("Erro ao processar %s: %s", e.site, e)
                    self._processed += 1
                    self.channel.publish(ProgressSnapshot(
                        processed=self._processed,
                        total=len(sites),
                        current_domain=site,
                        error=str(e),
                    ))
        finally:
            self.stage = CrawlStage.DONE
            if on_progress is not None:
                self.channel.remove_listener(on_progress)
            await self.fetcher.close()

        logger.info(
            "Concluído: %d resultado(s), %d com manifests.",
            len(results), sum(1 for r in results if r.success),
        )
        return results


async def scrape(
    targets: Iterable[str],
    keywords: Iterable[str] = (),
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[ScraperConfig] = None,
) -> List[ScrapeResult]:
    """Atalho: cria um SiteCrawler e executa :meth:`SiteCrawler.scrape`."""
    return await SiteCrawler(config).scrape(targets, keywords, on_progress)
