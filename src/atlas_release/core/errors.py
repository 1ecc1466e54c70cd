"""
Atlas Release — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do Atlas Release.
Erros são artefatos de domínio e fazem parte do contrato operacional
do sistema, devendo ser:

- explícitos
- serializáveis
- rastreáveis
- acionáveis

Falhas de Step e de publicação chegam ao operador pelo Run Ledger,
na forma de AtlasErrorPayload, e não como exceções.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from atlas_release.core.exceptions import AtlasException, EmptyArtifactError


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AtlasErrorPayload:
    """
    Payload canônico de erro do Atlas Release.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Execução de Steps
STEP_ACTION_FAILED = "STEP_ACTION_FAILED"
STEP_ACTION_CRASHED = "STEP_ACTION_CRASHED"
STEP_ACTION_NOT_FOUND = "STEP_ACTION_NOT_FOUND"

# Publicação
ARTIFACT_EMPTY = "ARTIFACT_EMPTY"
ARTIFACT_PUBLISH_FAILED = "ARTIFACT_PUBLISH_FAILED"

# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def step_action_failed(
    *,
    step: str,
    action: str,
    exit_code: Optional[int],
    summary: str = "",
    hint: str = "Inspecione a saída da action e corrija o comando ou o ambiente do Step.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=STEP_ACTION_FAILED,
        message=summary or "Action reportou falha",
        details={"step": step, "action": action, "exit_code": exit_code},
        hint=hint,
    )


def step_action_crashed(
    *,
    step: str,
    action: str,
    exc: BaseException,
    hint: str = "A action levantou uma exceção; verifique o log técnico. Nenhum retry é aplicado automaticamente.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=STEP_ACTION_CRASHED,
        message=str(exc) or "Erro inesperado na action",
        details={"step": step, "action": action, "exc_type": exc.__class__.__name__},
        hint=hint,
    )


def step_action_not_found(
    *,
    step: str,
    action: str,
    available: List[str],
    hint: str = "Registre a action no ActionRegistry ou corrija o nome declarado no Step.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=STEP_ACTION_NOT_FOUND,
        message=f"Action não registrada: {action}",
        details={"step": step, "action": action, "available": sorted(available)},
        hint=hint,
    )


def artifact_publish_failed(*, run_id: str, exc: AtlasException) -> AtlasErrorPayload:
    """Payload de falha de publicação gravado na seção `publish` do ledger."""
    return AtlasErrorPayload(
        type=ARTIFACT_EMPTY if isinstance(exc, EmptyArtifactError) else ARTIFACT_PUBLISH_FAILED,
        message=exc.message,
        details={"run_id": run_id, **dict(exc.details or {})},
        hint=exc.hint,
    )
