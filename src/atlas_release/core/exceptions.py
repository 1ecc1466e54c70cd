"""
Atlas Release — Canonical Exceptions (v1)

Este módulo define exceções tipadas de runtime do Atlas Release.

Objetivo:
- Permitir que Engine/Publisher/Ledger levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para AtlasErrorPayload
- Evitar ValueError/RuntimeError genéricos em guardrails críticos

Regras:
- Erros estruturais de configuração vivem em `core.config.errors` (ConfigError)
- Erros de planejamento vivem em `core.engine.planner`
- Exceções devem carregar apenas dados estruturados (serializáveis).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AtlasException(Exception):
    """Base class para exceções internas do Atlas.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---------------------------------------------------------------------------
# Execução
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StepExecutionError(AtlasException):
    """Uma action reportou falha (ou levantou exceção) durante o Step.

    Nunca propaga para fora do Engine: é registrada no StepResult.
    """


@dataclass(frozen=True)
class RunStateError(AtlasException):
    """Operação incompatível com o status atual do Run."""


# ---------------------------------------------------------------------------
# Publicação
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EmptyArtifactError(AtlasException):
    """Nenhum arquivo do Run corresponde ao glob de um artefato (modo estrito)."""


@dataclass(frozen=True)
class StorageError(AtlasException):
    """Falha transitória reportada pelo colaborador de storage."""


@dataclass(frozen=True)
class PublishError(AtlasException):
    """Publicação falhou após esgotar as tentativas."""


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LedgerConflictError(AtlasException):
    """Tentativa de reescrever um Run já registrado no ledger."""
