"""
network_capture.py
==================
Regras de reconhecimento de URLs de manifest HLS (.m3u8) e captura das
requisições de rede feitas pelo navegador headless durante a renderização.

Funcionalidades:
- Validação do invariante de saída: URL absoluta http(s) cujo caminho
  contém o marcador de manifest.
- Limpeza de candidatos extraídos do markup (entidades HTML, pontuação de
  script no final, URLs embutidas em parâmetros de redirecionamento).
- Filtragem de URLs de rastreamento, analytics e publicidade (blacklist),
  aplicada ao tráfego de rede interceptado.
- Priorização de playlists principais (master, index, playlist).
"""

import html
import re
import urllib.parse
from typing import Iterable, List, Optional, Set

import validators


# ---------------------------------------------------------------------------
# Constantes de filtragem
# ---------------------------------------------------------------------------

MANIFEST_MARKER = ".m3u8"

# Regex global para URLs absolutas que contenham o marcador de manifest.
MANIFEST_URL_RE = re.compile(r"https?://[^\s\"'<>]+\.m3u8[^\s\"'<>]*", re.IGNORECASE)

# Domínios e palavras-chave associados a rastreamento, analytics e publicidade.
BLACKLIST_KEYWORDS: List[str] = [
    # Analytics e rastreamento
    "youbora", "chartbeat", "analytics", "telemetry", "metrics",
    "heartbeat", "omtrdc", "hotjar", "scorecardresearch", "mixpanel",
    "amplitude", "newrelic", "sentry.io", "bugsnag",
    # Publicidade
    "doubleclick", "googleads", "amazon-adsystem", "adnxs", "moatads",
    "fwmrm.net", "pubmatic", "rubiconproject", "spotxchange", "springserve",
    # Logs e diagnóstico
    "/log/", "beacon",
]

# Palavras-chave que indicam que a URL é provavelmente uma playlist principal.
PRIORITY_KEYWORDS: List[str] = [
    "master", "index", "playlist", "chunklist", "manifest",
    "live", "stream", "hls",
]

# Parâmetros de query string que podem conter a URL real do stream embutida.
REDIRECT_PARAMS: List[str] = [
    "ep.URL", "url", "link", "target", "redir", "redirect", "src", "file",
]

# Pontuação que costuma grudar no final de URLs dentro de scripts.
_TRAILING_JUNK = "\\,;)"


# ---------------------------------------------------------------------------
# Funções de reconhecimento e limpeza
# ---------------------------------------------------------------------------

def _is_blacklisted(url: str) -> bool:
    """Retorna True se a URL contiver alguma palavra-chave da blacklist."""
    url_lower = url.lower()
    return any(keyword in url_lower for keyword in BLACKLIST_KEYWORDS)


def _has_marker(url: str) -> bool:
    return MANIFEST_MARKER in url.lower()


def _is_priority(url: str) -> bool:
    """Retorna True se a URL for provavelmente uma playlist principal."""
    url_lower = url.lower()
    return any(kw in url_lower for kw in PRIORITY_KEYWORDS)


def is_manifest_url(url: str) -> bool:
    """
    Retorna True se ``url`` for uma URL absoluta http(s) válida cujo caminho
    contém o marcador de manifest.
    """
    if not url or not url.lower().startswith(("http://", "https://")):
        return False
    try:
        parsed = urllib.parse.urlparse(url)
    except ValueError:
        return False
    if not parsed.netloc or MANIFEST_MARKER not in parsed.path.lower():
        return False
    return bool(validators.url(url, strict_query=False))


def extract_embedded_url(url: str) -> Optional[str]:
    """
    Verifica se a URL contém uma URL de manifest embutida em seus parâmetros
    de query string (ex: player.html?src=https%3A%2F%2F...m3u8).

    Retorna a URL embutida se encontrada, caso contrário None.
    """
    try:
        parsed = urllib.parse.urlparse(url)
        params = urllib.parse.parse_qs(parsed.query)
    except ValueError:
        return None
    for param in REDIRECT_PARAMS:
        if param in params:
            candidate = params[param][0]
            if _has_marker(candidate) and candidate.lower().startswith(("http://", "https://")):
                return candidate
    return None


def clean_manifest_url(raw: str, base_url: Optional[str] = None) -> Optional[str]:
    """
    Normaliza um candidato extraído do markup e retorna a URL de manifest
    final, ou None se o candidato não satisfizer :func:`is_manifest_url`.

    Candidatos relativos só são aceitos quando ``base_url`` é informado.
    """
    if not raw:
        return None
    url = html.unescape(raw.strip()).rstrip(_TRAILING_JUNK)
    if base_url and not url.lower().startswith(("http://", "https://")):
        try:
            url = urllib.parse.urljoin(base_url, url)
        except ValueError:
            return None
    embedded = extract_embedded_url(url)
    if embedded and is_manifest_url(embedded):
        return embedded
    return url if is_manifest_url(url) else None


def clean_all(candidates: Iterable[str], base_url: Optional[str] = None) -> Set[str]:
    """Aplica :func:`clean_manifest_url` a vários candidatos, descartando os inválidos."""
    found: Set[str] = set()
    for raw in candidates:
        url = clean_manifest_url(raw, base_url)
        if url:
            found.add(url)
    return found


def pick_best_url(urls: Iterable[str]) -> Optional[str]:
    """
    Escolhe a melhor URL de uma coleção.

    Prioridade:
    1. Primeira URL que contenha "playlist.m3u8"
    2. Primeira URL prioritária (master/index/etc.)
    3. Primeira URL disponível
    """
    ordered = sorted(urls)
    if not ordered:
        return None
    for url in ordered:
        if "playlist.m3u8" in url.lower():
            return url
    for url in ordered:
        if _is_priority(url):
            return url
    return ordered[0]


# ---------------------------------------------------------------------------
# Classe principal: NetworkCapture
# ---------------------------------------------------------------------------

class NetworkCapture:
    """
    Coleta URLs de manifest requisitadas por uma página renderizada, na ordem
    em que aparecem e sem repetição.

    Uso típico
    ----------
    >>> capture = NetworkCapture()
    >>> page.on("request", capture.handle_request)
    >>> # ... navegar ...
    >>> capture.get_urls()
    """

    def __init__(self):
        self._urls: List[str] = []

    def handle_request(self, request) -> None:
        """
        Callback para o evento 'request' do Playwright.
        Deve ser registrado via: page.on("request", capture.handle_request)
        """
        self._process_url(request.url)

    def _process_url(self, raw_url: str) -> None:
        """Registra a URL (ou a URL embutida nela) se for um manifest válido."""
        url = extract_embedded_url(raw_url) or raw_url
        if not is_manifest_url(url) or _is_blacklisted(url):
            return
        if url not in self._urls:
            self._urls.append(url)

    def get_urls(self) -> List[str]:
        return list(self._urls)
