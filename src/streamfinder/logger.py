"""
logger.py
=========
Configuração de logging do streamfinder.

Os módulos obtêm seus loggers com :func:`get_logger` e nunca configuram
handlers ao serem importados; quem configura é a aplicação (ex: a CLI) via
:func:`configure`.

    from streamfinder.logger import configure
    configure(level="DEBUG", log_file="streamfinder.log")
"""

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "streamfinder"

_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_CREDENTIALS_RE = re.compile(r"//[^/@\s]*@")

LevelT = Union[int, str]


def get_logger(name: str) -> logging.Logger:
    """Retorna um logger filho de ``streamfinder`` para o módulo informado."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def redact(url: Optional[str]) -> str:
    """Oculta credenciais embutidas em uma URL (ex: de proxy) antes de logar."""
    if not url:
        return ""
    return _CREDENTIALS_RE.sub("//*****:*****@", url)


def _console_handler(rich_console: bool, console: Optional[Console]) -> logging.Handler:
    if rich_console:
        handler: logging.Handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        return handler
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    return handler


def _file_handler(file: Union[str, Path]) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=str(file),
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    return handler


def configure(
    level: LevelT = "INFO",
    log_file: Union[str, Path, None] = None,
    rich_console: bool = True,
    console: Optional[Console] = None,
) -> logging.Logger:
    """
    (Re)configura o logger raiz do projeto.

    Parâmetros
    ----------
    level : int ou str
        Nível de log (ex: "DEBUG").
    log_file : str ou Path, opcional
        Arquivo de log com rotação (5 MB x 3). None = apenas console.
    rich_console : bool
        Se True (padrão), usa o RichHandler; caso contrário, um StreamHandler simples.
    console : rich.console.Console, opcional
        Console compartilhado com a barra de progresso da CLI.
    """
    lg = logging.getLogger(ROOT_LOGGER_NAME)
    lg.setLevel(level)
    lg.handlers.clear()
    lg.addHandler(_console_handler(rich_console, console))
    if log_file is not None:
        lg.addHandler(_file_handler(log_file))
    lg.propagate = False
    return lg


__all__ = ["ROOT_LOGGER_NAME", "configure", "get_logger", "redact"]
