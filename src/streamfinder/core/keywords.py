"""
keywords.py
===========
Filtro de palavras-chave aplicado a textos de links e páginas.

A correspondência é por palavra/frase inteira, sem diferenciar maiúsculas,
com semântica OU: basta uma palavra-chave ocorrer no texto. Isso permite que
o nome de apenas um dos times qualifique a página de uma partida.
"""

import re
from functools import lru_cache
from typing import Iterable, Pattern, Sequence


@lru_cache(maxsize=256)
def _keyword_pattern(keyword: str) -> Pattern[str]:
    return re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)


def normalize_keywords(keywords: Iterable[str]) -> Sequence[str]:
    """Remove espaços e entradas vazias, preservando a ordem."""
    cleaned = []
    for keyword in keywords:
        keyword = (keyword or "").strip()
        if keyword and keyword not in cleaned:
            cleaned.append(keyword)
    return tuple(cleaned)


def matches_keywords(text: str, keywords: Iterable[str]) -> bool:
    """
    Retorna True se alguma palavra-chave ocorrer em ``text`` como palavra inteira.

    >>> matches_keywords("Arsenal vs Chelsea live", ["arsenal"])
    True
    >>> matches_keywords("Arsenalista event", ["arsenal"])
    False
    """
    if not text:
        return False
    for keyword in normalize_keywords(keywords):
        if _keyword_pattern(keyword.lower()).search(text):
            return True
    return False
