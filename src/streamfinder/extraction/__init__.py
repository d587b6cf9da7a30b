"""
streamfinder.extraction
=======================
Estratégias de extração de URLs de manifest a partir de markup.

- base: interface comum ExtractionStrategy.
- direct: regex global, atributos de mídia e scripts inline.
- obfuscated: base64, percent-encoding, scripts empacotados, atob e variáveis.
- manager: StrategyManager, que executa e une as estratégias.
"""

from streamfinder.extraction.base import ExtractionStrategy, Pass
from streamfinder.extraction.manager import StrategyManager

__all__ = ["ExtractionStrategy", "Pass", "StrategyManager"]
