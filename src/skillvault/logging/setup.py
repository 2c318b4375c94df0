"""
Configuración del sistema de logging estructurado.

Tres pipelines independientes sobre stdlib logging:
1. Archivo (JSON) -- si config.file está configurado. Captura todo (DEBUG+).
2. Human handler (stderr) -- solo eventos HUMAN: progreso del vault.
3. Console técnico (stderr) -- WARNING por defecto, -v añade INFO, -vv DEBUG.

Con --quiet o --json se silencian los pipelines 2 y 3.
"""

import logging
import sys
from pathlib import Path

import structlog

from ..config.schema import LoggingConfig
from .human import HumanLogHandler
from .levels import HUMAN

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "human": HUMAN,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(
    config: LoggingConfig,
    json_output: bool = False,
    quiet: bool = False,
) -> None:
    """Configura structlog y los handlers de stdlib.

    Args:
        config: Configuración de logging (level, file, verbose)
        json_output: Si True, desactiva human y console handlers
        quiet: Si True, desactiva human y console handlers
    """
    logging.root.handlers.clear()
    structlog.reset_defaults()
    logging.root.setLevel(logging.DEBUG)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    interactive = not quiet and not json_output
    threshold = _LEVELS[config.level]

    # ── Pipeline 1: Archivo JSON ─────────────────────────────────────────
    if config.file:
        file_path = Path(config.file).expanduser()
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(file_path), encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=shared_processors,
            )
        )
        logging.root.addHandler(file_handler)

    # ── Pipeline 2: Human handler ────────────────────────────────────────
    if interactive and threshold <= HUMAN:
        human_handler = HumanLogHandler(stream=sys.stderr)
        human_handler.setLevel(HUMAN)
        human_handler.addFilter(lambda record: record.levelno == HUMAN)
        logging.root.addHandler(human_handler)

    # ── Pipeline 3: Console técnico ──────────────────────────────────────
    if interactive:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(_console_level(config))
        console_handler.addFilter(lambda record: record.levelno != HUMAN)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
                foreign_pre_chain=shared_processors,
            )
        )
        logging.root.addHandler(console_handler)

    structlog.configure(
        processors=shared_processors + [
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _verbose_to_level(verbose: int) -> int:
    """Nivel del console handler según el número de -v.

    Sin -v -> WARNING, -v -> INFO, -vv o más -> DEBUG.
    """
    levels = {
        0: logging.WARNING,
        1: logging.INFO,
    }
    return levels.get(verbose, logging.DEBUG)


def _console_level(config: LoggingConfig) -> int:
    """Nivel del console técnico: -v manda, ``level`` lo ajusta en los extremos.

    level=debug/info baja el umbral sin necesidad de -v; level=error lo sube.
    """
    level = _verbose_to_level(config.verbose)
    threshold = _LEVELS[config.level]
    if threshold < HUMAN:
        return min(level, threshold)
    if threshold > logging.WARNING:
        return max(level, threshold)
    return level


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Obtiene un logger estructurado."""
    return structlog.get_logger(name)
