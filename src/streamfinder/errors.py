"""
errors.py
=========
Hierarquia de exceções do streamfinder.

Nenhuma destas exceções é fatal para uma execução completa: cada uma é
capturada na fronteira correspondente do pipeline.

- FetchError: falha de rede/timeout/DNS. Recuperada no fetcher (markup vazio).
- ParseError: token codificado malformado. Recuperada na estratégia (token ignorado).
- BrowserInitError: navegador headless não inicializou. Desativa o modo
  renderizado até o fim da execução.
- SiteCrawlError: qualquer falha ao processar um site alvo. Registrada no
  snapshot de progresso do site; o lote continua.
"""

from typing import Optional


class StreamFinderError(Exception):
    """Base de todas as exceções do streamfinder."""


class FetchError(StreamFinderError):
    """Falha ao obter o conteúdo de uma URL."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class ParseError(StreamFinderError):
    """Token codificado (base64, percent-encoding, script empacotado) inválido."""


class BrowserInitError(StreamFinderError):
    """O navegador headless não pôde ser iniciado."""


class SiteCrawlError(StreamFinderError):
    """Falha não tratada durante o processamento de um site alvo."""

    def __init__(self, site: str, cause: Optional[BaseException] = None):
        message = str(cause) if cause is not None else "erro desconhecido"
        super().__init__(message)
        self.site = site
        self.cause = cause
