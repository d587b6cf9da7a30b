"""
frames.py
=========
Descida recursiva por iframes aninhados.

Players de streaming costumam ficar vários níveis de iframe abaixo da página
do evento. O FrameWalker busca cada nível, extrai os manifests das duas
passadas e desce nos primeiros iframes encontrados, em paralelo.

A terminação é garantida pelo limite de profundidade e pelo conjunto de
URLs visitadas, passado explicitamente a cada chamada recursiva: cada
invocação de nível superior (um espelho) tem o seu próprio conjunto, e os
ramos concorrentes de uma mesma árvore compartilham o conjunto dessa árvore.
"""

import asyncio
from typing import Optional, Set

from streamfinder.config import ScraperConfig
from streamfinder.core.links import extract_frame_sources
from streamfinder.extraction.manager import StrategyManager
from streamfinder.logger import get_logger

logger = get_logger(__name__)


class FrameWalker:
    def __init__(self, fetcher, strategies: StrategyManager, config: Optional[ScraperConfig] = None):
        self.fetcher = fetcher
        self.strategies = strategies
        self.config = config or ScraperConfig()

    async def walk(
        self,
        url: str,
        depth: int = 0,
        max_depth: Optional[int] = None,
        visited: Optional[Set[str]] = None,
    ) -> Set[str]:
        """
        Retorna os manifests encontrados em ``url`` e nos seus iframes.

        Parâmetros
        ----------
        url : str
            Página (ou iframe) a examinar.
        depth : int
            Nível atual; 0 para a chamada de nível superior.
        max_depth : int, opcional
            Profundidade máxima (padrão: ``config.max_depth``).
        visited : set, opcional
            URLs já examinadas nesta árvore. None cria um conjunto novo.
        """
        if max_depth is None:
            max_depth = self.config.max_depth
        if visited is None:
            visited = set()

        if depth > max_depth or url in visited:
            return set()
        # marcado antes de qualquer await: ramos concorrentes não repetem a URL
        visited.add(url)

        indent = "  " * depth
        logger.debug("%s-> iframe nível %d: %s", indent, depth, url[:80])

        markup = await self.fetcher.fetch(url)
        if not markup:
            return set()

        found = self.strategies.extract_all(markup, url)
        if found:
            logger.info("%s✓ %d manifest(s) no nível %d (%s)", indent, len(found), depth, url[:60])

        frames = [f for f in extract_frame_sources(markup, url) if f not in visited]
        if frames and depth < max_depth:
            frames = frames[: self.config.max_frames]
            logger.debug("%s-> %d iframe(s), descendo...", indent, len(frames))
            nested = await asyncio.gather(
                *(self._walk_child(frame, depth + 1, max_depth, visited) for frame in frames)
            )
            for child in nested:
                found |= child
        return found

    async def _walk_child(self, url: str, depth: int, max_depth: int, visited: Set[str]) -> Set[str]:
        await asyncio.sleep(self.config.frame_delay / 1000)
        return await self.walk(url, depth, max_depth, visited)
