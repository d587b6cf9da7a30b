"""
models.py
=========
Objetos de valor trocados entre os componentes do motor de descoberta.

- ScrapeResult: unidade de saída (uma página ou espelho examinado).
- ProgressSnapshot: progresso emitido pelo orquestrador após cada página.
- StreamLink: link de servidor/espelho encontrado em uma página de evento.
- CandidatePage: página descoberta durante a exploração de um site.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional

DEFAULT_SERVER_LABEL = "Main"
MAIN_PAGE_LABEL = "Main Page"
BROWSER_RENDER_LABEL = "Browser Render"
NO_STREAMS_LABEL = "No streams found"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MirrorKind(str, Enum):
    """Heurística que reconheceu um link de espelho."""

    LINK_TEXT = "link-text"      # "Link 1", "Link 2" ...
    DATA_URI = "data-uri"        # <a data-uri="...stream...">
    TEXT_MATCH = "text-match"    # "Stream 2 HD", "Server 1"
    CHANNEL = "channel"          # nomes de emissoras / watch.php?id=N
    ID_BASED = "id-based"        # tabela "ID: 123" + link próximo


@dataclass(frozen=True)
class ScrapeResult:
    """
    Resultado de uma página (ou espelho) examinada.

    ``success`` é derivado de ``source_urls`` quando não informado: verdadeiro
    se houver ao menos um manifest e nenhum ``error`` explícito.
    """

    scraped_url: str
    source_urls: FrozenSet[str] = frozenset()
    domain_index_url: str = ""
    server_label: str = DEFAULT_SERVER_LABEL
    timestamp: datetime = field(default_factory=_utcnow)
    success: Optional[bool] = None
    error: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "source_urls", frozenset(self.source_urls))
        if self.success is None:
            object.__setattr__(self, "success", bool(self.source_urls) and self.error is None)

    @classmethod
    def failure(
        cls,
        scraped_url: str,
        domain_index_url: str,
        server_label: str = NO_STREAMS_LABEL,
        error: Optional[str] = None,
    ) -> "ScrapeResult":
        return cls(
            scraped_url=scraped_url,
            domain_index_url=domain_index_url,
            server_label=server_label,
            success=False,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Registro no formato consumido pela camada de transporte/exportação."""
        data: Dict[str, Any] = {
            "scrapedUrl": self.scraped_url,
            "sourceUrls": sorted(self.source_urls),
            "domainIndexUrl": self.domain_index_url,
            "serverLabel": self.server_label,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class ProgressSnapshot:
    processed: int
    total: int
    current_domain: str
    current_page: Optional[str] = None
    found: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "processed": self.processed,
            "total": self.total,
            "currentDomain": self.current_domain,
        }
        if self.current_page is not None:
            data["currentPage"] = self.current_page
            data["found"] = self.found
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class StreamLink:
    """Link alternativo (servidor/espelho) para o mesmo conteúdo."""

    url: str
    label: str
    kind: MirrorKind
    channel_id: Optional[str] = None


@dataclass(frozen=True)
class CandidatePage:
    url: str
    text: str = ""


def count_sources(results: Iterable[ScrapeResult]) -> int:
    """Total de manifests em uma coleção de resultados."""
    return sum(len(r.source_urls) for r in results)
