"""
mirrors.py
==========
Raspagem profunda de uma página de evento e de todos os seus espelhos.

Passos de :meth:`MirrorScraper.deep_scrape`:
1. Busca a página uma vez e extrai manifests diretamente ("Main Page").
2. Encontra os links de espelho/servidor e, para cada um (até o limite),
   em paralelo: desce pelos iframes; se nada for encontrado, tenta uma
   extração simples na URL do espelho. Um resultado por espelho.
3. Se nada foi encontrado e o navegador estiver disponível, renderiza a
   página original ("Browser Render").
4. Se ainda assim nada foi encontrado, emite o marcador "No streams found"
   para a própria página, mantendo os registros dos espelhos que falharam.

O retorno sempre contém ao menos um resultado cujo ``scraped_url`` é a
página pedida.
"""

import asyncio
from typing import List, Optional, Set

from streamfinder.config import ScraperConfig
from streamfinder.core.frames import FrameWalker
from streamfinder.core.links import find_mirror_links
from streamfinder.core.network_capture import NetworkCapture
from streamfinder.extraction.manager import StrategyManager
from streamfinder.logger import get_logger
from streamfinder.models import (
    BROWSER_RENDER_LABEL,
    MAIN_PAGE_LABEL,
    NO_STREAMS_LABEL,
    ScrapeResult,
    StreamLink,
)

logger = get_logger(__name__)


class MirrorScraper:
    def __init__(
        self,
        fetcher,
        strategies: Optional[StrategyManager] = None,
        config: Optional[ScraperConfig] = None,
    ):
        self.fetcher = fetcher
        self.config = config or ScraperConfig()
        self.strategies = strategies or StrategyManager()
        self.walker = FrameWalker(fetcher, self.strategies, self.config)

    async def _finalize(self, urls: Set[str]) -> Set[str]:
        """Aplica a verificação opcional de content-type aos manifests encontrados."""
        if not urls or not self.config.probe_manifests:
            return urls
        ordered = sorted(urls)
        verdicts = await asyncio.gather(*(self.fetcher.probe_manifest(u) for u in ordered))
        return {u for u, ok in zip(ordered, verdicts) if ok}

    async def scrape_mirror(self, link: StreamLink, target_site: str) -> ScrapeResult:
        """Desce pelos iframes de um espelho; cai para extração simples se nada aparecer."""
        try:
            logger.info("-> Raspando: %s", link.label)
            found = await self.walker.walk(link.url, 0, self.config.max_depth, set())
            if not found:
                markup = await self.fetcher.fetch(link.url)
                found = self.strategies.extract_all(markup, link.url)
            found = await self._finalize(found)
        except Exception as e:
            logger.error("Erro ao raspar %s: %s", link.label, e)
            return ScrapeResult(
                scraped_url=link.url,
                domain_index_url=target_site,
                server_label=link.label,
                success=False,
                error=str(e),
            )

        if found:
            logger.info("  ✓ %d manifest(s) em %s", len(found), link.label)
        else:
            logger.info("  ✗ Nenhum manifest em %s", link.label)
        return ScrapeResult(
            scraped_url=link.url,
            source_urls=frozenset(found),
            domain_index_url=target_site,
            server_label=link.label,
        )

    async def _render(self, page_url: str) -> Set[str]:
        capture = NetworkCapture()
        markup = await self.fetcher.fetch_rendered(page_url, capture)
        found = self.strategies.extract_all(markup, page_url) if markup else set()
        found.update(capture.get_urls())
        return found

    async def deep_scrape(self, page_url: str, target_site: str) -> List[ScrapeResult]:
        """
        Raspa ``page_url`` e seus espelhos.

        Quando nenhum manifest é encontrado, o último resultado é o marcador
        "No streams found" com ``scraped_url`` igual a ``page_url``.
        """
        results: List[ScrapeResult] = []
        try:
            logger.info("Raspagem profunda: %s", page_url)
            markup = await self.fetcher.fetch(page_url)

            main = await self._finalize(self.strategies.extract_all(markup, page_url))
            if main:
                results.append(ScrapeResult(
                    scraped_url=page_url,
                    source_urls=frozenset(main),
                    domain_index_url=target_site,
                    server_label=MAIN_PAGE_LABEL,
                ))

            mirrors = find_mirror_links(markup, page_url)[: self.config.max_mirrors]
            if mirrors:
                logger.info("%d link(s) de servidor encontrados, raspando em paralelo...", len(mirrors))
                results.extend(await asyncio.gather(
                    *(self.scrape_mirror(link, target_site) for link in mirrors)
                ))

            if not any(r.success for r in results) and self.fetcher.browser_available:
                logger.info("Tentando navegador headless para: %s", page_url)
                rendered = await self._finalize(await self._render(page_url))
                if rendered:
                    results.append(ScrapeResult(
                        scraped_url=page_url,
                        source_urls=frozenset(rendered),
                        domain_index_url=target_site,
                        server_label=BROWSER_RENDER_LABEL,
                    ))
        except Exception as e:
            logger.error("Erro na raspagem profunda de %s: %s", page_url, e)
            return [ScrapeResult.failure(page_url, target_site, error=str(e))]

        if not any(r.success for r in results):
            results.append(ScrapeResult.failure(page_url, target_site, NO_STREAMS_LABEL))
        return results
