# src/atlas_release/core/traceability/events.py
"""
Event Log de Runs do Atlas Release.

Cada Run carrega uma lista ordenada de eventos explícitos, emitidos pelo
Engine e pelo Orchestrator. A ordem da lista é a ordem real de execução.

Tipos de evento emitidos:
    - run_started / run_finished / run_cancelled
    - step_started / step_finished / step_failed / step_skipped
    - artifact_published / publish_failed
    - action_log (emitido por actions via ActionContext.log)

Decisões arquiteturais:
    - UTC é o timezone canônico para todos os timestamps (ISO 8601)
    - Nenhum evento é emitido implicitamente
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


RUN_STARTED = "run_started"
RUN_FINISHED = "run_finished"
RUN_CANCELLED = "run_cancelled"
STEP_STARTED = "step_started"
STEP_FINISHED = "step_finished"
STEP_FAILED = "step_failed"
STEP_SKIPPED = "step_skipped"
ARTIFACT_PUBLISHED = "artifact_published"
PUBLISH_FAILED = "publish_failed"


def ensure_tzaware_utc(dt: datetime) -> datetime:
    """Normaliza um timestamp para timezone-aware em UTC (naive é assumido UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return ensure_tzaware_utc(dt).isoformat()


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return ensure_tzaware_utc(datetime.fromisoformat(value))


def add_event(
    events: List[Dict[str, Any]],
    *,
    event_type: str,
    ts: datetime,
    step_name: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Adiciona um evento explícito ao Event Log, preservando a ordem de chamada.

    Args:
        events: Lista de eventos do Run.
        event_type: Tipo semântico do evento (ex.: step_started).
        ts: Timestamp do evento.
        step_name: Step associado, se aplicável.
        payload: Dados adicionais associados ao evento.

    Returns:
        Dict[str, Any]: O evento adicionado.
    """
    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": iso(ts)}
    if step_name is not None:
        ev["step_name"] = step_name
    if payload is not None:
        ev["payload"] = payload
    events.append(ev)
    return ev
