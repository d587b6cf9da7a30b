"""
manager.py
==========
Gerenciador das estratégias de extração de manifests.

Responsável por registrar estratégias e executá-las sobre um markup,
unindo e deduplicando os resultados. Novas técnicas são adicionadas com
:meth:`StrategyManager.register_strategy`, sem tocar na orquestração.
"""

from typing import Iterable, List, Optional, Set

from streamfinder.core.network_capture import clean_all
from streamfinder.extraction.base import ExtractionStrategy, Pass
from streamfinder.extraction.direct import (
    MediaAttributeStrategy,
    RegexScanStrategy,
    ScriptBodyStrategy,
)
from streamfinder.extraction.obfuscated import (
    Base64TokenStrategy,
    DecodeCallStrategy,
    PackedScriptStrategy,
    PercentEncodedStrategy,
    VariableAssignmentStrategy,
)
from streamfinder.logger import get_logger

logger = get_logger(__name__)


class StrategyManager:
    """
    Gerencia o registro e a execução das estratégias de extração.

    Cada passada (direta ou ofuscada) roda todas as estratégias registradas
    para ela; o resultado é o conjunto limpo e deduplicado de URLs absolutas.
    """

    def __init__(self, strategies: Optional[Iterable[ExtractionStrategy]] = None):
        self.strategies: List[ExtractionStrategy] = []
        if strategies is None:
            self._register_defaults()
        else:
            for strategy in strategies:
                self.register_strategy(strategy)

    def _register_defaults(self) -> None:
        """Registra as estratégias incluídas no pacote."""
        for strategy in (
            RegexScanStrategy(),
            MediaAttributeStrategy(),
            ScriptBodyStrategy(),
            Base64TokenStrategy(),
            PercentEncodedStrategy(),
            PackedScriptStrategy(),
            DecodeCallStrategy(),
            VariableAssignmentStrategy(),
        ):
            self.register_strategy(strategy)

    def register_strategy(self, strategy: ExtractionStrategy) -> None:
        self.strategies.append(strategy)

    def strategies_for(self, extraction_pass: Pass) -> List[ExtractionStrategy]:
        return [s for s in self.strategies if s.extraction_pass == extraction_pass]

    def _run(self, strategies: Iterable[ExtractionStrategy], markup: str, page_url: str) -> Set[str]:
        found: Set[str] = set()
        if not markup:
            return found
        for strategy in strategies:
            candidates = strategy.extract(markup, page_url)
            if candidates:
                logger.debug("%s: %d candidato(s) em %s", strategy.name, len(candidates), page_url)
            found.update(clean_all(candidates))
        return found

    def extract_direct(self, markup: str, page_url: str) -> Set[str]:
        """Passada direta: regex global, atributos de mídia e scripts inline."""
        return self._run(self.strategies_for(Pass.DIRECT), markup, page_url)

    def extract_obfuscated(self, markup: str, page_url: str) -> Set[str]:
        """Passada ofuscada: base64, percent-encoding, scripts empacotados, atob e variáveis."""
        return self._run(self.strategies_for(Pass.OBFUSCATED), markup, page_url)

    def extract_all(self, markup: str, page_url: str) -> Set[str]:
        """União das duas passadas."""
        return self.extract_direct(markup, page_url) | self.extract_obfuscated(markup, page_url)
