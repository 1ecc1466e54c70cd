# src/atlas_release/core/config/settings.py
"""
Configuração efetiva do engine, tipada.

`DEFAULT_CONFIG` é a base sobre a qual arquivos de defaults e overrides
locais são mesclados; `EngineSettings.from_config` valida o dicionário
resolvido e o converte em uma estrutura imutável consumida por Engine,
Publisher, Ledger e Orchestrator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import InvalidSettingError


DEFAULT_CONFIG: Dict[str, Any] = {
    "engine": {
        "log_level": "INFO",
        "max_workers": 4,
        # Política para triggers sobrepostos da mesma definição.
        "serialize_per_definition": False,
        "workspace_root": None,
        "keep_workspace": False,
        # Trigger sem histórico dispara o último slot perdido (senão apenas o registra).
        "backfill_schedules": False,
    },
    "publish": {
        "allow_empty": False,
        "max_attempts": 3,
        "backoff_initial_s": 0.5,
        "backoff_max_s": 8.0,
    },
    "ledger": {
        "directory": None,
    },
}


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = (config or {}).get(name, {}) or {}
    if not isinstance(value, dict):
        raise InvalidSettingError(f"Seção '{name}' deve ser dict, recebido: {type(value).__name__}")
    return value


def _positive_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidSettingError(f"{section}.{key} deve ser inteiro >= 1, recebido: {value!r}")
    return value


def _non_negative_float(section: str, key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise InvalidSettingError(f"{section}.{key} deve ser número >= 0, recebido: {value!r}")
    return float(value)


def _optional_path(value: Any) -> Optional[Path]:
    if value is None or value == "":
        return None
    return Path(value)


@dataclass(frozen=True)
class EngineSettings:
    """Configuração resolvida e validada do Atlas Release."""

    log_level: str = "INFO"
    max_workers: int = 4
    serialize_per_definition: bool = False
    workspace_root: Optional[Path] = None
    keep_workspace: bool = False
    backfill_schedules: bool = False

    allow_empty_artifacts: bool = False
    publish_max_attempts: int = 3
    publish_backoff_initial_s: float = 0.5
    publish_backoff_max_s: float = 8.0

    ledger_directory: Optional[Path] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "EngineSettings":
        """
        Constrói settings a partir de um dicionário já resolvido por `load_config`.

        Chaves ausentes assumem os valores de `DEFAULT_CONFIG`.

        Raises:
            InvalidSettingError: Valor fora do domínio permitido.
        """
        engine = {**DEFAULT_CONFIG["engine"], **_section(config, "engine")}
        publish = {**DEFAULT_CONFIG["publish"], **_section(config, "publish")}
        ledger = {**DEFAULT_CONFIG["ledger"], **_section(config, "ledger")}

        level = str(engine["log_level"]).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise InvalidSettingError(f"engine.log_level inválido: {engine['log_level']!r}")

        initial = _non_negative_float("publish", "backoff_initial_s", publish["backoff_initial_s"])
        maximum = _non_negative_float("publish", "backoff_max_s", publish["backoff_max_s"])
        if maximum < initial:
            raise InvalidSettingError("publish.backoff_max_s deve ser >= publish.backoff_initial_s")

        return cls(
            log_level=level,
            max_workers=_positive_int("engine", "max_workers", engine["max_workers"]),
            serialize_per_definition=bool(engine["serialize_per_definition"]),
            workspace_root=_optional_path(engine["workspace_root"]),
            keep_workspace=bool(engine["keep_workspace"]),
            backfill_schedules=bool(engine["backfill_schedules"]),
            allow_empty_artifacts=bool(publish["allow_empty"]),
            publish_max_attempts=_positive_int("publish", "max_attempts", publish["max_attempts"]),
            publish_backoff_initial_s=initial,
            publish_backoff_max_s=maximum,
            ledger_directory=_optional_path(ledger["directory"]),
        )
