"""
progress.py
===========
Canal de progresso do orquestrador.

O orquestrador publica um ProgressSnapshot após cada página (e um por site
que falhar). Os interessados assinam o canal de duas formas:

- ``add_listener(callback)``: a função é chamada com cada snapshot;
- ``subscribe()``: retorna uma ``asyncio.Queue`` que recebe os snapshots.
"""

import asyncio
from typing import Callable, List

from streamfinder.logger import get_logger
from streamfinder.models import ProgressSnapshot

logger = get_logger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], None]


class ProgressChannel:
    def __init__(self):
        self._listeners: List[ProgressCallback] = []
        self._queues: List[asyncio.Queue] = []
        self.published = 0

    def add_listener(self, callback: ProgressCallback) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: ProgressCallback) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def publish(self, snapshot: ProgressSnapshot) -> None:
        """Entrega ``snapshot`` a todos os assinantes."""
        self.published += 1
        for callback in list(self._listeners):
            try:
                callback(snapshot)
            except Exception as e:
                # um assinante com defeito não interrompe a varredura
                logger.warning("Falha no callback de progresso %r: %s", callback, e)
        for queue in list(self._queues):
            queue.put_nowait(snapshot)

    def __len__(self) -> int:
        return len(self._listeners) + len(self._queues)
