# src/atlas_release/logging_config.py
"""
Configuração de logging técnico do Atlas Release.

O Event Log de cada Run é a trilha de auditoria; este módulo configura apenas
os loggers de módulo (`logging.getLogger(__name__)`), em texto legível ou em
JSON por linha.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """Um objeto JSON por linha: timestamp, level, logger, message (e exception)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def configure_logging(level: str = "INFO", *, json_format: bool = False, stream=None) -> logging.Logger:
    """
    Configura o logger do pacote `atlas_release` e o devolve.

    Apenas o logger do pacote é alterado; o root logger do host não é tocado.

    Args:
        level: Nível (DEBUG, INFO, WARNING, ERROR); tipicamente `EngineSettings.log_level`.
        json_format: Se True, usa JSONFormatter.
        stream: Destino do handler (default: sys.stderr).
    """
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"nível de log inválido: {level!r}")

    logger = logging.getLogger("atlas_release")
    logger.setLevel(resolved)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(handler)

    logger.debug("logging configured with level %s", logging.getLevelName(resolved))
    return logger
