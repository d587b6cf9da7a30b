"""
obfuscated.py
=============
Estratégias da passada ofuscada: o manifest está escondido no markup e só
aparece depois de decodificado.

- Base64TokenStrategy: tokens com cara de base64, decodificados e re-varridos.
- PercentEncodedStrategy: URLs percent-encoded (https%3A%2F%2F...m3u8).
- PackedScriptStrategy: scripts compactados com eval(function(p,a,c,k,e,d)...).
- DecodeCallStrategy: chamadas atob("...") com argumento literal.
- VariableAssignmentStrategy: atribuições do tipo source = "...m3u8...".

Cada token malformado (base64 inválido, bytes não UTF-8, percent-encoding
quebrado, payload empacotado inconsistente) é ignorado individualmente.
"""

import base64
import binascii
import re
import urllib.parse
from typing import Dict, Set

from streamfinder.core.network_capture import MANIFEST_MARKER, MANIFEST_URL_RE
from streamfinder.errors import ParseError
from streamfinder.extraction.base import ExtractionStrategy, Pass
from streamfinder.logger import get_logger

logger = get_logger(__name__)

BASE64_TOKEN_RE = re.compile(r"[A-Za-z0-9+/]{20,}={0,2}")
PERCENT_ENCODED_RE = re.compile(
    r"https?%3A%2F%2F[^\"'\s<>]+?(?:\.|%2E)m3u8[^\"'\s<>&]*", re.IGNORECASE
)
PACKED_RE = re.compile(r"eval\(function\(p,a,c,k,e,[dr]\).*?\}\((.*?)\)\)", re.DOTALL)
PACKED_ARGS_RE = re.compile(
    r"\}\s*\(\s*'(?P<payload>(?:\\.|[^'\\])*)'\s*,\s*(?P<radix>\d+|\[\])\s*,"
    r"\s*(?P<count>\d+)\s*,\s*'(?P<words>(?:\\.|[^'\\])*)'\.split\(\s*'\|'\s*\)",
    re.DOTALL,
)
QUOTED_MANIFEST_RE = re.compile(r"['\"](https?://[^'\"]+\.m3u8[^'\"]*)['\"]", re.IGNORECASE)
DECODE_CALL_RE = re.compile(r"atob\s*\(\s*['\"]([^'\"]+)['\"]\s*\)")
VARIABLE_PATTERNS = (
    re.compile(
        r"(?:source|src|stream|url|file|video)\s*[:=]\s*['\"]([^'\"]*\.m3u8[^'\"]*)['\"]",
        re.IGNORECASE,
    ),
    re.compile(
        r"['\"]([^'\"]*\.m3u8[^'\"]*)['\"]\s*[:=]\s*(?:source|src|stream|url|file|video)",
        re.IGNORECASE,
    ),
)

_BASE62 = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


# ---------------------------------------------------------------------------
# Decodificadores (levantam ParseError em entrada malformada)
# ---------------------------------------------------------------------------

def decode_base64_text(token: str) -> str:
    """Decodifica um token base64 para texto UTF-8."""
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.b64decode(padded, validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, ValueError, UnicodeDecodeError) as e:
        raise ParseError(f"token base64 inválido: {e}") from e


def decode_percent(token: str) -> str:
    """Decodifica uma string percent-encoded, exigindo UTF-8 válido."""
    try:
        decoded = urllib.parse.unquote(token, errors="strict")
    except UnicodeDecodeError as e:
        raise ParseError(f"percent-encoding inválido: {e}") from e
    return decoded


def _to_base(value: int, radix: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, radix)
        digits.append(_BASE62[rem])
    return "".join(reversed(digits))


def unpack_packed_script(packed: str) -> str:
    """
    Desempacota um script no formato eval(function(p,a,c,k,e,d){...}('payload',a,c,'k'.split('|'))).
    Retorna o código original com as palavras substituídas.
    """
    match = PACKED_ARGS_RE.search(packed)
    if not match:
        raise ParseError("argumentos do script empacotado não encontrados")

    radix_raw = match.group("radix")
    radix = 62 if radix_raw == "[]" else int(radix_raw)
    count = int(match.group("count"))
    words = match.group("words").split("|")
    if not 2 <= radix <= 62:
        raise ParseError(f"base não suportada: {radix}")
    if len(words) < count:
        raise ParseError(f"tabela de palavras incompleta ({len(words)} < {count})")

    table: Dict[str, str] = {}
    for index in range(count):
        key = _to_base(index, radix)
        table[key] = words[index] or key

    payload = match.group("payload").replace("\\'", "'").replace("\\\\", "\\")
    return re.sub(r"\b\w+\b", lambda m: table.get(m.group(0), m.group(0)), payload)


def _scan(text: str) -> Set[str]:
    return set(MANIFEST_URL_RE.findall(text.replace("\\/", "/")))


# ---------------------------------------------------------------------------
# Estratégias
# ---------------------------------------------------------------------------

class Base64TokenStrategy(ExtractionStrategy):
    @property
    def name(self) -> str:
        return "base64-token"

    @property
    def extraction_pass(self) -> Pass:
        return Pass.OBFUSCATED

    def extract(self, markup: str, page_url: str) -> Set[str]:
        found: Set[str] = set()
        for token in set(BASE64_TOKEN_RE.findall(markup)):
            try:
                decoded = decode_base64_text(token)
            except ParseError:
                continue
            if MANIFEST_MARKER in decoded.lower():
                found.update(_scan(decoded))
        return found


class PercentEncodedStrategy(ExtractionStrategy):
    @property
    def name(self) -> str:
        return "percent-encoded"

    @property
    def extraction_pass(self) -> Pass:
        return Pass.OBFUSCATED

    def extract(self, markup: str, page_url: str) -> Set[str]:
        found: Set[str] = set()
        for token in set(PERCENT_ENCODED_RE.findall(markup)):
            try:
                found.add(decode_percent(token))
            except ParseError:
                continue
        return found


class PackedScriptStrategy(ExtractionStrategy):
    @property
    def name(self) -> str:
        return "packed-script"

    @property
    def extraction_pass(self) -> Pass:
        return Pass.OBFUSCATED

    def extract(self, markup: str, page_url: str) -> Set[str]:
        found: Set[str] = set()
        for match in PACKED_RE.finditer(markup):
            found.update(QUOTED_MANIFEST_RE.findall(match.group(0)))
            try:
                unpacked = unpack_packed_script(markup[match.start():])
            except ParseError as e:
                logger.debug("Script empacotado ignorado em %s: %s", page_url, e)
                continue
            found.update(_scan(unpacked))
        return found


class DecodeCallStrategy(ExtractionStrategy):
    @property
    def name(self) -> str:
        return "decode-call"

    @property
    def extraction_pass(self) -> Pass:
        return Pass.OBFUSCATED

    def extract(self, markup: str, page_url: str) -> Set[str]:
        found: Set[str] = set()
        for token in DECODE_CALL_RE.findall(markup):
            try:
                decoded = decode_base64_text(token)
            except ParseError:
                continue
            found.update(_scan(decoded))
        return found


class VariableAssignmentStrategy(ExtractionStrategy):
    @property
    def name(self) -> str:
        return "variable-assignment"

    @property
    def extraction_pass(self) -> Pass:
        return Pass.OBFUSCATED

    def extract(self, markup: str, page_url: str) -> Set[str]:
        found: Set[str] = set()
        for pattern in VARIABLE_PATTERNS:
            for value in pattern.findall(markup):
                value = value.replace("\\/", "/")
                if value.lower().startswith(("http://", "https://")):
                    found.add(value)
        return found
