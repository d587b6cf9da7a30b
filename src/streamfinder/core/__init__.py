"""
streamfinder.core
=================
Componentes do motor de descoberta:

- fetcher: ContentFetcher (aiohttp + Playwright) e rodízio de proxies.
- network_capture: limpeza de URLs de manifest e captura de requisições.
- links: classificação de links, espelhos, times e busca do site.
- keywords: filtro de palavras-chave.
- frames: FrameWalker, descida recursiva por iframes.
- mirrors: MirrorScraper, raspagem em paralelo dos espelhos de uma página.
- progress: ProgressChannel.
- orchestrator: SiteCrawler, pipeline por site alvo.
"""
