from abc import ABC, abstractmethod
from enum import Enum
from typing import Set


class Pass(str, Enum):
    """Passada de extração à qual a estratégia pertence."""

    DIRECT = "direct"
    OBFUSCATED = "obfuscated"


class ExtractionStrategy(ABC):
    @property
    @abstractmethod
    def name(self) -> str:
        """Nome da estratégia"""
        pass

    @property
    @abstractmethod
    def extraction_pass(self) -> Pass:
        """Passada (direta ou ofuscada) em que a estratégia roda"""
        pass

    @abstractmethod
    def extract(self, markup: str, page_url: str) -> Set[str]:
        """
        Retorna os candidatos a manifest encontrados em ``markup``.

        Os candidatos ainda passam pela limpeza do StrategyManager; tokens
        malformados devem ser ignorados, nunca propagados.
        """
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"
