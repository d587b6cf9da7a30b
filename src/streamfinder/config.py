"""
config.py
=========
Configuração do motor de descoberta de streams.

Usa Pydantic para descrever e validar as opções. Cada opção aceita tanto o
nome snake_case quanto o nome camelCase usado pela camada de transporte
(``requestDelay``, ``useHeadlessBrowser``, ``proxyList`` ...).
Tempos são expressos em milissegundos.
"""

from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

SUPPORTED_BROWSERS = ("chromium", "chrome", "edge", "firefox")

# Variáveis de ambiente reconhecidas por ScraperConfig.from_env()
_ENV_OPTIONS = {
    "proxy_url": "PROXY_URL",
    "proxy_list": "PROXY_LIST",
    "request_delay": "REQUEST_DELAY_MS",
    "timeout": "TIMEOUT_MS",
}
_INT_OPTIONS = ("request_delay", "timeout")


class ScraperConfig(BaseModel):
    """Opções de uma execução de descoberta."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    request_delay: int = Field(1000, ge=0, description="Pausa entre buscas sequenciais (ms).")
    timeout: int = Field(30000, gt=0, description="Tempo limite por requisição/navegação (ms).")
    use_headless_browser: bool = Field(True, description="Habilita o fallback via navegador headless.")
    proxy_url: Optional[str] = Field(None, description="Proxy único de saída.")
    proxy_list: List[str] = Field(default_factory=list, description="Proxies em rodízio (round-robin).")

    browser: str = Field("chromium", description="chromium, chrome, edge ou firefox.")
    headless: bool = True
    user_agent: str = Field(DEFAULT_USER_AGENT, min_length=1)

    max_depth: int = Field(3, ge=0, description="Profundidade máxima de iframes aninhados.")
    max_frames: int = Field(5, ge=1, description="Iframes irmãos visitados por nível.")
    max_mirrors: int = Field(20, ge=1, description="Espelhos visitados por página.")
    max_candidates: int = Field(20, ge=1, description="Páginas candidatas por site.")
    max_event_links: int = Field(50, ge=1, description="Limite da descoberta sem palavras-chave.")
    pages_per_site: int = Field(5, ge=1, description="Páginas raspadas em profundidade por site.")

    frame_delay: int = Field(200, ge=0)
    discovery_delay: int = Field(500, ge=0)
    render_settle: int = Field(2000, ge=0, description="Espera após o carregamento no navegador (ms).")

    probe_manifests: bool = Field(False, description="Valida manifests via HEAD/content-type.")

    @field_validator("browser", mode="before")
    @classmethod
    def _normalize_browser(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in SUPPORTED_BROWSERS:
                raise ValueError(f"navegador não suportado: {v}")
        return v

    @field_validator("proxy_url", mode="before")
    @classmethod
    def _blank_proxy_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("proxy_list", mode="before")
    @classmethod
    def _split_proxy_list(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000

    @classmethod
    def from_env(cls, **overrides: Any) -> ScraperConfig:
        """
        Monta a configuração a partir das variáveis de ambiente
        PROXY_URL, PROXY_LIST, REQUEST_DELAY_MS e TIMEOUT_MS.
        Valores passados em ``overrides`` (snake_case ou camelCase) têm precedência.
        """
        overrides = _by_field_name(overrides)
        data: Dict[str, Any] = {}
        for field_name, env_name in _ENV_OPTIONS.items():
            value = os.environ.get(env_name, "").strip()
            if not value or field_name in overrides:
                continue
            if field_name in _INT_OPTIONS:
                if not value.isdigit():
                    continue
                data[field_name] = int(value)
            else:
                data[field_name] = value
        data.update(overrides)
        return cls(**data)


def _by_field_name(data: Dict[str, Any]) -> Dict[str, Any]:
    """Troca as chaves camelCase pelos nomes dos campos; as demais ficam como estão."""
    names = {to_camel(name): name for name in ScraperConfig.model_fields}
    return {names.get(key, key): value for key, value in data.items()}


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"YAML inválido em {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"O nível superior do YAML deve ser um mapeamento, obtido {type(data).__name__}")
    return data


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"JSON inválido em {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"O nível superior do JSON deve ser um mapeamento, obtido {type(data).__name__}")
    return data


def load_config(path: Union[str, Path], **overrides: Any) -> ScraperConfig:
    """
    Lê um arquivo YAML ou JSON e retorna um ScraperConfig validado.
    As variáveis de ambiente valem apenas para opções que o arquivo não define.
    """
    path_obj = Path(path).expanduser().resolve()
    if not path_obj.is_file():
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Formato de configuração não suportado: {suffix}")

    data = _by_field_name(data)
    data.update(_by_field_name(overrides))
    return ScraperConfig.from_env(**data)
