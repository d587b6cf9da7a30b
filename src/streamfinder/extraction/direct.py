"""
direct.py
=========
Estratégias da passada direta: o manifest aparece em texto claro no markup.

- RegexScanStrategy: varredura global de URLs absolutas com ".m3u8".
- MediaAttributeStrategy: atributos de <video>/<source> e data-* usados
  para injetar a fonte do player sob demanda.
- ScriptBodyStrategy: corpo dos <script> inline.
"""

import urllib.parse
from typing import Set

from bs4 import BeautifulSoup

from streamfinder.core.network_capture import MANIFEST_MARKER, MANIFEST_URL_RE
from streamfinder.extraction.base import ExtractionStrategy, Pass

# Atributos data-* usados por players para carregar a fonte de forma preguiçosa
DATA_SOURCE_ATTRS = ("data-src", "data-video", "data-stream", "data-file", "data-url", "data-hls")


class RegexScanStrategy(ExtractionStrategy):
    @property
    def name(self) -> str:
        return "regex-scan"

    @property
    def extraction_pass(self) -> Pass:
        return Pass.DIRECT

    def extract(self, markup: str, page_url: str) -> Set[str]:
        return set(MANIFEST_URL_RE.findall(markup))


class MediaAttributeStrategy(ExtractionStrategy):
    @property
    def name(self) -> str:
        return "media-attributes"

    @property
    def extraction_pass(self) -> Pass:
        return Pass.DIRECT

    def extract(self, markup: str, page_url: str) -> Set[str]:
        soup = BeautifulSoup(markup, "html.parser")
        found: Set[str] = set()

        # <video src> e <video><source src>
        for elem in soup.find_all(["video", "source"]):
            if elem.name == "source" and elem.find_parent("video") is None:
                continue
            src = elem.get("src")
            if src and MANIFEST_MARKER in src.lower():
                found.add(urllib.parse.urljoin(page_url, src.strip()))

        for attr in DATA_SOURCE_ATTRS:
            for elem in soup.find_all(attrs={attr: True}):
                value = elem.get(attr)
                if value and MANIFEST_MARKER in value.lower():
                    found.add(urllib.parse.urljoin(page_url, value.strip()))
        return found


class ScriptBodyStrategy(ExtractionStrategy):
    @property
    def name(self) -> str:
        return "script-body"

    @property
    def extraction_pass(self) -> Pass:
        return Pass.DIRECT

    def extract(self, markup: str, page_url: str) -> Set[str]:
        soup = BeautifulSoup(markup, "html.parser")
        found: Set[str] = set()
        for script in soup.find_all("script"):
            body = script.string or script.get_text()
            if body and MANIFEST_MARKER in body.lower():
                found.update(MANIFEST_URL_RE.findall(body))
        return found
