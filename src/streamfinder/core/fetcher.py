"""
fetcher.py
==========
Obtenção do markup das páginas, em dois modos:

- ``fetch``: requisição leve via aiohttp, com cabeçalhos de navegador real,
  tempo limite e rodízio de proxies de saída.
- ``fetch_rendered``: renderização com Playwright (executa os scripts da
  página e retorna o DOM serializado). O navegador é criado sob demanda,
  compartilhado por todas as chamadas e liberado explicitamente com
  :meth:`ContentFetcher.close`.

Ambos os modos falham "suave": erros de rede/renderização viram markup vazio,
porque o pipeline precisa continuar com os outros candidatos. Se o navegador
não puder ser iniciado, o modo renderizado é desativado até o fim da execução
(sem novas tentativas) e as chamadas caem para o modo leve.
"""

import asyncio
import itertools
from typing import Any, Dict, Iterator, List, Optional, Sequence

import aiohttp
from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from streamfinder.config import ScraperConfig
from streamfinder.core.network_capture import NetworkCapture
from streamfinder.errors import BrowserInitError, FetchError
from streamfinder.logger import get_logger, redact

logger = get_logger(__name__)

BROWSER_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--mute-audio",
]

# navegador -> (tipo do Playwright, channel)
BROWSER_MAP = {
    "chrome": ("chromium", "chrome"),
    "edge": ("chromium", "msedge"),
    "firefox": ("firefox", None),
    "chromium": ("chromium", None),
}

MANIFEST_CONTENT_TYPES = ("mpegurl", "m3u8")


# ---------------------------------------------------------------------------
# Rodízio de proxies
# ---------------------------------------------------------------------------

class ProxyRotator:
    """
    Rodízio round-robin de proxies de saída.

    ``next_proxy`` é atômico do ponto de vista do event loop (não há await
    entre ler e avançar o índice); chamadas concorrentes recebem proxies
    distintos em ordem não estrita.
    """

    def __init__(self, proxies: Sequence[str] = (), fallback: Optional[str] = None):
        self.proxies: List[str] = [p for p in proxies if p]
        self.fallback = fallback
        self._cycle: Optional[Iterator[str]] = itertools.cycle(self.proxies) if self.proxies else None

    @classmethod
    def from_config(cls, config: ScraperConfig) -> "ProxyRotator":
        return cls(config.proxy_list, config.proxy_url)

    def next_proxy(self) -> Optional[str]:
        if self._cycle is None:
            return self.fallback
        return next(self._cycle)

    def __len__(self) -> int:
        return len(self.proxies)


# ---------------------------------------------------------------------------
# Classe principal: ContentFetcher
# ---------------------------------------------------------------------------

class ContentFetcher:
    """
    Busca o markup das páginas e detém os recursos de rede do processo
    (sessão HTTP, rodízio de proxies e o navegador headless).

    Parâmetros
    ----------
    config : ScraperConfig
        Tempo limite, user agent, proxies e opções do navegador.
    """

    def __init__(self, config: Optional[ScraperConfig] = None):
        self.config = config or ScraperConfig()
        self.proxies = ProxyRotator.from_config(self.config)

        self._session: Optional[aiohttp.ClientSession] = None
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._browser_lock = asyncio.Lock()
        self._browser_disabled = not self.config.use_headless_browser

    # -----------------------------------------------------------------------
    # Estado
    # -----------------------------------------------------------------------

    @property
    def browser_available(self) -> bool:
        """True enquanto o modo renderizado estiver habilitado e não tiver falhado."""
        return not self._browser_disabled

    def default_headers(self, url: str) -> Dict[str, str]:
        return {
            "User-Agent": self.config.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Referer": url,
            "DNT": "1",
            "Upgrade-Insecure-Requests": "1",
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
            )
        return self._session

    # -----------------------------------------------------------------------
    # Modo leve (aiohttp)
    # -----------------------------------------------------------------------

    async def _get(self, url: str, method: str = "GET") -> aiohttp.ClientResponse:
        """Executa a requisição; levanta FetchError em qualquer falha de rede."""
        proxy = self.proxies.next_proxy()
        if proxy:
            logger.debug("Usando proxy %s para %s", redact(proxy), url)
        try:
            response = await self._get_session().request(
                method,
                url,
                headers=self.default_headers(url),
                proxy=proxy,
                allow_redirects=True,
                max_redirects=5,
            )
        except asyncio.TimeoutError as e:
            raise FetchError(url, "tempo limite excedido") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise FetchError(url, redact(str(e)) or type(e).__name__) from e
        if response.status >= 400:
            response.release()
            raise FetchError(url, f"HTTP {response.status}")
        return response

    async def fetch(self, url: str) -> str:
        """
        Retorna o markup de ``url`` ou "" em caso de falha.
        """
        try:
            response = await self._get(url)
            try:
                return await response.text(errors="replace")
            finally:
                response.release()
        except FetchError as e:
            logger.warning("Erro ao buscar %s", e)
            return ""
        except asyncio.TimeoutError:
            logger.warning("Erro ao buscar %s: tempo limite excedido na leitura", url)
            return ""
        except aiohttp.ClientError as e:
            logger.warning("Erro ao ler %s: %s", url, redact(str(e)))
            return ""

    async def probe_manifest(self, url: str) -> bool:
        """
        Verificação leve de um manifest: HEAD e checagem do content-type.
        Qualquer falha conta como negativa.
        """
        try:
            response = await self._get(url, method="HEAD")
        except FetchError as e:
            logger.debug("Manifest rejeitado (%s)", e)
            return False
        content_type = response.headers.get("Content-Type", "").lower()
        response.release()
        return any(t in content_type for t in MANIFEST_CONTENT_TYPES) or url.lower().endswith(".m3u8")

    # -----------------------------------------------------------------------
    # Modo renderizado (Playwright)
    # -----------------------------------------------------------------------

    async def _launch_browser(self) -> None:
        """Inicia Playwright, navegador e contexto. Levanta BrowserInitError."""
        browser_type_name, channel = BROWSER_MAP.get(self.config.browser, ("chromium", None))
        launch_kwargs: Dict[str, Any] = {
            "headless": self.config.headless,
            "args": BROWSER_ARGS,
        }
        if channel:
            launch_kwargs["channel"] = channel
        try:
            self._playwright = await async_playwright().start()
            browser_type = getattr(self._playwright, browser_type_name)
            self._browser = await browser_type.launch(**launch_kwargs)
            self._context = await self._browser.new_context(
                user_agent=self.config.user_agent,
                extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
            )
            # Mascara a propriedade navigator.webdriver
            await self._context.add_init_script(
                "Object.defineProperty(navigator, 'webdriver', {get: () => undefined})"
            )
        except Exception as e:
            await self._shutdown_browser()
            raise BrowserInitError(str(e)) from e

    async def _get_context(self) -> Optional[BrowserContext]:
        """Obtém (criando se preciso) o contexto compartilhado do navegador."""
        async with self._browser_lock:
            if self._browser_disabled:
                return None
            if self._context is None:
                try:
                    await self._launch_browser()
                except BrowserInitError as e:
                    self._browser_disabled = True
                    logger.error("Navegador headless indisponível, usando apenas requisições simples: %s", e)
                    return None
                logger.info("Navegador headless iniciado (%s).", self.config.browser)
            return self._context

    async def fetch_rendered(self, url: str, capture: Optional[NetworkCapture] = None) -> str:
        """
        Renderiza ``url`` no navegador headless e retorna o DOM serializado.

        Se ``capture`` for informado, as requisições de rede da página são
        registradas nele. Com o navegador indisponível, cai para :meth:`fetch`.
        """
        context = await self._get_context()
        if context is None:
            return await self.fetch(url)

        page = None
        try:
            page = await context.new_page()
            if capture is not None:
                page.on("request", capture.handle_request)
            await page.goto(url, wait_until="domcontentloaded", timeout=self.config.timeout)
            try:
                await page.wait_for_load_state("networkidle", timeout=self.config.timeout)
            except Exception:
                # networkidle pode não ocorrer em páginas com requisições contínuas
                pass
            await asyncio.sleep(self.config.render_settle / 1000)
            return await page.content()
        except Exception as e:
            logger.warning("Erro ao renderizar %s: %s", url, e)
            return ""
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.debug("Falha ao fechar aba de %s: %s", url, e)

    # -----------------------------------------------------------------------
    # Liberação de recursos
    # -----------------------------------------------------------------------

    async def _shutdown_browser(self) -> None:
        for resource, closer in (
            (self._context, "close"),
            (self._browser, "close"),
            (self._playwright, "stop"),
        ):
            if resource is None:
                continue
            try:
                await getattr(resource, closer)()
            except Exception as e:
                logger.debug("Falha ao liberar %s: %s", type(resource).__name__, e)
        self._context = None
        self._browser = None
        self._playwright = None

    async def close_browser(self) -> None:
        async with self._browser_lock:
            await self._shutdown_browser()

    async def close(self) -> None:
        """Libera o navegador e a sessão HTTP."""
        await self.close_browser()
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "ContentFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
