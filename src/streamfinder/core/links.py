"""
links.py
========
Classificação de links encontrados nas páginas dos sites alvo.

Cada âncora é classificada como:
- página de evento (conteúdo real, candidata a raspagem);
- página de categoria/agenda (índice, expandido em vez de coletado);
- link de espelho/servidor ("Link 1", nomes de emissoras, "ID: 123" ...);
- página de tag de time (descoberta a partir das páginas de partida).

Também concentra as heurísticas de nomes de times, detecção do esporte pela
URL, fontes de iframes aninhados e detecção do formulário de busca do site.
Links que não se encaixam em nenhuma classe são simplesmente descartados.
"""

import re
import urllib.parse
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from bs4 import BeautifulSoup

from streamfinder.models import MirrorKind, StreamLink


# ---------------------------------------------------------------------------
# Constantes
# ---------------------------------------------------------------------------

SPORT_SLUGS: List[str] = [
    "soccer", "football", "basketball", "baseball", "hockey", "mma",
    "boxing", "tennis", "f1", "nfl", "nba", "nhl",
]

# Esportes procurados nas palavras-chave para montar páginas de categoria
KEYWORD_SPORTS: List[str] = [
    "soccer", "football", "basketball", "baseball", "hockey", "mma",
    "boxing", "tennis", "f1", "formula",
]

DEFAULT_SPORT = "soccer"

_SPORTS_ALT = "|".join(SPORT_SLUGS)
CATEGORY_PATTERNS = [
    re.compile(rf"/(?:{_SPORTS_ALT})/?$", re.IGNORECASE),
    re.compile(r"/(?:streams?|live|schedules?|events?)/?$", re.IGNORECASE),
    re.compile(rf"/(?:{_SPORTS_ALT})-streams?/?$", re.IGNORECASE),
    re.compile(rf"/streams?/(?:{_SPORTS_ALT})/?$", re.IGNORECASE),
]

SPORT_IN_URL_RE = re.compile(
    r"/(serie-a|premier-league|la-liga|bundesliga|ligue-1|nba|nfl|nhl|mma|boxing|"
    r"tennis|f1|soccer|football|basketball|baseball|hockey)",
    re.IGNORECASE,
)

EVENT_URL_RE = re.compile(r"\d{4}-\d{2}-\d{2}|vs-|\d+pm|\d+am|live-", re.IGNORECASE)
TIME_RE = re.compile(r"\d{1,2}:\d{2}")
DATE_RE = re.compile(r"\d{2}/\d{2}")

LINK_N_RE = re.compile(r"\blink\s*\d+", re.IGNORECASE)
QUALITY_RE = re.compile(r"\d+|\b(?:hd|sd)\b", re.IGNORECASE)
BROADCASTER_RE = re.compile(r"DAZN|ESPN|SKY|BT SPORT|BEIN|TNT|NBC|FOX|CBS|CHANNEL", re.IGNORECASE)
CHANNEL_HREF_RE = re.compile(r"id=\d+|stream-\d+", re.IGNORECASE)
CHANNEL_ID_RE = re.compile(r"ID:\s*(\d+)", re.IGNORECASE)

URL_TEAMS_RE = re.compile(r"([a-z0-9-]+)-(?:vs?|versus)-([a-z0-9-]+)", re.IGNORECASE)
TITLE_TEAMS_RE = re.compile(
    r"(.+?)\s+(?:vs?\.?|versus|-)\s+(.+?)(?:\s+live|\s+stream|$)", re.IGNORECASE
)
TEAM_PREFIX_RE = re.compile(r"^(?:live-|watch-|stream-)")
TEAM_SUFFIX_RE = re.compile(r"(?:-live-stream|-live|-stream|-watch)$")

_SKIPPED_SCHEMES = ("javascript:", "mailto:", "tel:", "about:", "data:")


# ---------------------------------------------------------------------------
# Estruturas
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Anchor:
    """Âncora de uma página, com a URL já resolvida para absoluta."""
    url: str
    href: str
    text: str
    title: str = ""

    @property
    def combined_text(self) -> str:
        return f"{self.text} {self.title}".strip()


@dataclass(frozen=True)
class SearchPattern:
    """Endpoint de busca nativo de um site."""
    url: str
    param: str
    method: str = "get"

    def build(self, query: str) -> str:
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}{urllib.parse.urlencode({self.param: query})}"


# ---------------------------------------------------------------------------
# Utilitários de URL
# ---------------------------------------------------------------------------

def origin_of(url: str) -> str:
    parsed = urllib.parse.urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def same_origin(url: str, origin: str) -> bool:
    return origin_of(url).lower() == origin_of(origin).lower()


def resolve(href: str, base_url: str) -> Optional[str]:
    """Resolve ``href`` contra ``base_url``; None para links não navegáveis."""
    href = (href or "").strip()
    if not href or href.startswith("#") or href.lower().startswith(_SKIPPED_SCHEMES):
        return None
    try:
        url = urllib.parse.urljoin(base_url, href)
    except ValueError:
        return None
    url = url.split("#", 1)[0]
    if not url.lower().startswith(("http://", "https://")):
        return None
    return url


def iter_anchors(markup: str, base_url: str, selector: str = "a[href]") -> List[Anchor]:
    """Lista as âncoras navegáveis de ``markup`` que casam com ``selector``."""
    if not markup:
        return []
    soup = BeautifulSoup(markup, "html.parser")
    anchors: List[Anchor] = []
    for elem in soup.select(selector):
        href = elem.get("href") or ""
        url = resolve(href, base_url)
        if url is None:
            continue
        anchors.append(Anchor(
            url=url,
            href=href.strip(),
            text=elem.get_text(" ", strip=True),
            title=(elem.get("title") or "").strip(),
        ))
    return anchors


def extract_frame_sources(markup: str, base_url: str) -> List[str]:
    """Fontes dos iframes/frames aninhados, absolutas e sem repetição."""
    if not markup:
        return []
    soup = BeautifulSoup(markup, "html.parser")
    sources: List[str] = []
    for elem in soup.find_all(["iframe", "frame"]):
        src = elem.get("src") or elem.get("data-src")
        url = resolve(src, base_url) if src else None
        if url and url not in sources:
            sources.append(url)
    return sources


# ---------------------------------------------------------------------------
# Heurísticas de classificação
# ---------------------------------------------------------------------------

def is_category_page(url: str) -> bool:
    """True se a URL tiver forma de índice (esporte, /streams, /live, /schedule, /events)."""
    path = urllib.parse.urlparse(url).path
    return any(pattern.search(path) for pattern in CATEGORY_PATTERNS)


def is_event_link(href: str, text: str) -> bool:
    """Link com marcadores de stream/evento na URL ou "vs"/horário/data no texto."""
    href_lower = href.lower()
    text_lower = text.lower()
    return (
        any(marker in href_lower for marker in ("stream", "watch", "live", "event"))
        or "vs" in text_lower
        or "v " in text_lower
        or bool(TIME_RE.search(text_lower))
        or bool(DATE_RE.search(text_lower))
    )


def is_stream_shaped(href: str, text: str) -> bool:
    """Filtro adicional dos links que casaram com as palavras-chave."""
    href_lower = href.lower()
    text_lower = text.lower()
    return (
        any(marker in href_lower for marker in ("stream", "watch", "live", "event"))
        or "vs" in text_lower
        or "live" in text_lower
    )


def is_scheduled_event_link(href: str, text: str) -> bool:
    """Link de evento dentro de uma página de agenda (aceita também am/pm no texto)."""
    return is_stream_shaped(href, text) or bool(re.search(r"\d{1,2}:\d{2}|pm|am", text.lower()))


def looks_like_event_url(url: str) -> bool:
    """URL que já aponta para um evento (data, "vs-", horário ou prefixo live-)."""
    return bool(EVENT_URL_RE.search(url.lower()))


def is_team_tag_link(href: str, text: str, teams: Iterable[str]) -> bool:
    """
    Link para a página de tag de um dos times: cita o time na URL ou no texto,
    tem forma de stream/live e não é a própria página "A vs B".
    """
    href_lower = href.lower()
    text_lower = text.lower()
    if "stream" not in href_lower and "live" not in href_lower:
        return False
    if "-vs-" in href_lower or " vs " in href_lower:
        return False
    for team in teams:
        slug = team.lower()
        if slug in href_lower or slug in text_lower or slug.replace("-", " ") in text_lower:
            return True
    return False


# ---------------------------------------------------------------------------
# Links de espelho/servidor
# ---------------------------------------------------------------------------

def _is_text_mirror(text: str) -> bool:
    text_lower = text.lower()
    has_word = any(w in text_lower for w in ("stream", "server", "watch"))
    return has_word and bool(QUALITY_RE.search(text_lower))


def _is_channel_link(href: str, text: str) -> bool:
    href_lower = href.lower()
    if "watch.php" not in href_lower and "stream" not in href_lower:
        return False
    return bool(BROADCASTER_RE.search(text) or CHANNEL_HREF_RE.search(href))


def find_mirror_links(markup: str, base_url: str) -> List[StreamLink]:
    """
    Encontra links de servidores alternativos para o mesmo conteúdo.

    Padrões reconhecidos, nesta ordem:
    1. Botões/links "Link 1", "Link 2" ... (href, data-url ou data-src).
    2. Âncoras com data-uri apontando para um stream.
    3. Texto com stream/server/watch acompanhado de número ou qualidade (HD/SD).
    4. Links de canal (nome de emissora ou watch.php?id=N / stream-N).
    5. Tabelas "ID: 123" com um link próximo; o número vira ``channel_id``.
    """
    if not markup:
        return []
    soup = BeautifulSoup(markup, "html.parser")
    links: List[StreamLink] = []
    seen: Set[str] = set()

    def add(href: Optional[str], label: str, kind: MirrorKind, channel_id: Optional[str] = None) -> None:
        url = resolve(href, base_url) if href else None
        if url is None or url in seen or url == base_url:
            return
        seen.add(url)
        links.append(StreamLink(url=url, label=label, kind=kind, channel_id=channel_id))

    for elem in soup.find_all(["a", "button"]):
        text = elem.get_text(" ", strip=True)
        if LINK_N_RE.search(text):
            href = elem.get("href") or elem.get("data-url") or elem.get("data-src")
            add(href, text, MirrorKind.LINK_TEXT)

    for i, elem in enumerate(soup.select('a[data-uri*="stream"]')):
        text = elem.get_text(" ", strip=True)
        add(elem.get("data-uri"), text or f"Stream {i + 1}", MirrorKind.DATA_URI)

    for elem in soup.find_all("a", href=True):
        text = elem.get_text(" ", strip=True)
        if _is_text_mirror(text):
            add(elem["href"], text, MirrorKind.TEXT_MATCH)

    for i, elem in enumerate(soup.select('a[href*="watch.php"], a[href*="stream"]')):
        text = elem.get_text(" ", strip=True)
        if _is_channel_link(elem["href"], text):
            add(elem["href"], text or f"Channel {i + 1}", MirrorKind.CHANNEL)

    for node in soup.find_all(string=CHANNEL_ID_RE):
        match = CHANNEL_ID_RE.search(node)
        if not match:
            continue
        channel_id = match.group(1)
        row = node.find_parent(["tr", "li"]) or node.parent
        anchor = row.find("a", href=True) if row is not None else None
        href = anchor["href"] if anchor is not None else f"watch.php?id={channel_id}"
        row_text = row.get_text("\n", strip=True) if row is not None else str(node)
        label = row_text.split("\n")[0].strip() or f"Channel {channel_id}"
        add(href, label, MirrorKind.ID_BASED, channel_id)

    return links


# ---------------------------------------------------------------------------
# Times e esporte
# ---------------------------------------------------------------------------

def _clean_team(team: str) -> str:
    team = TEAM_PREFIX_RE.sub("", team.strip().lower())
    team = TEAM_SUFFIX_RE.sub("", team)
    return team.strip("/").strip()


def extract_team_names(page_url: str, page_title: str = "") -> List[str]:
    """
    Extrai os nomes dos times de uma página de partida.

    Prefere o formato "time-a-vs-time-b" no caminho da URL; caso contrário,
    usa um título "Time A vs/versus/- Time B [live|stream]". Os nomes são
    normalizados em slugs e nomes com até 2 caracteres são descartados.
    """
    teams: List[str] = []
    try:
        path = urllib.parse.urlparse(page_url).path.lower()
    except ValueError:
        path = ""

    match = URL_TEAMS_RE.search(path)
    if match:
        teams.extend([match.group(1), match.group(2)])
    elif page_title:
        title_match = TITLE_TEAMS_RE.search(page_title.strip())
        if title_match:
            for raw in (title_match.group(1), title_match.group(2)):
                teams.append(re.sub(r"\s+", "-", raw.strip().lower()))

    cleaned: List[str] = []
    for team in teams:
        team = _clean_team(team)
        if len(team) > 2 and team not in cleaned:
            cleaned.append(team)
    return cleaned


def detect_sport(url: str) -> Optional[str]:
    match = SPORT_IN_URL_RE.search(url)
    return match.group(1).lower() if match else None


def sports_in_keywords(keywords: Iterable[str]) -> List[str]:
    """Esportes citados nas palavras-chave, na ordem em que aparecem."""
    found: List[str] = []
    for keyword in keywords:
        lower = keyword.lower()
        for sport in KEYWORD_SPORTS:
            if sport in lower and sport not in found:
                found.append(sport)
    return found


# ---------------------------------------------------------------------------
# Busca nativa do site
# ---------------------------------------------------------------------------

def detect_search_pattern(markup: str, origin: str) -> Optional[SearchPattern]:
    """
    Procura o endpoint de busca do site em sua página inicial: primeiro um
    formulário de busca, depois um link de navegação com ?s= ou ?q=.
    """
    if not markup:
        return None
    soup = BeautifulSoup(markup, "html.parser")

    field = soup.select_one('form[action*="search"], form[role="search"], input[type="search"]')
    if field is not None:
        form = field if field.name == "form" else field.find_parent("form")
        if form is not None:
            action = (form.get("action") or "").strip()
            method = (form.get("method") or "get").lower()
            search_input = form.select_one(
                'input[type="search"], input[name*="search"], input[name="q"], input[name="s"]'
            )
            name = search_input.get("name") if search_input is not None else None
            if action and name:
                url = urllib.parse.urljoin(origin + "/", action)
                return SearchPattern(url=url, param=name, method=method)

    link = soup.select_one('a[href*="search"], a[href*="?s="], a[href*="?q="]')
    if link is not None:
        href = link.get("href") or ""
        if "?s=" in href:
            return SearchPattern(url=origin + "/", param="s")
        if "?q=" in href:
            return SearchPattern(url=origin + "/", param="q")
    return None
