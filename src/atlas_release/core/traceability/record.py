# src/atlas_release/core/traceability/record.py
"""
Registro serializável de um Run terminal.

Este módulo define a forma canônica com que um `Run` é persistido pelo
Run Ledger: JSON determinístico,
reconstruível (round-trip) e suficiente para inspeção forense.

Estrutura do registro:

    {
      "run_id": "...",
      "definition_id": "...",
      "definition_hash": "<sha256 da definição>",
      "definition": {...},
      "trigger": {"kind": "schedule", "expression": "0 3 * * *"} | null,
      "started_at": "...",
      "finished_at": "...",
      "status": "succeeded",
      "step_results": [...],
      "events": [...],
      "publish": {"status": "published", "artifacts": [...], "error": null}
    }

Decisões arquiteturais:
    - O snapshot da definição é gravado junto com seu hash
    - Timestamps em UTC, ISO 8601
    - O workspace do Run não é persistido (efêmero por natureza)

Limites explícitos:
    - Não realiza migração de versões de schema
    - Não valida semântica de domínio
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict

from atlas_release.core.config.hashing import compute_config_hash, to_jsonable
from atlas_release.core.pipeline.types import (
    Artifact,
    PipelineDefinition,
    PublishStatus,
    Run,
    RunStatus,
    StepResult,
    TriggerSpec,
)

from .events import iso, parse_iso


def run_to_record(run: Run) -> Dict[str, Any]:
    """Converte um Run em registro serializável (cópia profunda)."""
    definition = to_jsonable(run.definition.to_dict())
    return {
        "run_id": run.run_id,
        "definition_id": run.definition_id,
        "definition_hash": compute_config_hash(definition),
        "definition": definition,
        "trigger": run.trigger.to_dict() if run.trigger is not None else None,
        "started_at": iso(run.started_at),
        "finished_at": iso(run.finished_at),
        "status": run.status.value,
        "step_results": [r.to_dict() for r in run.step_results],
        "events": copy.deepcopy(run.events),
        "publish": {
            "status": run.publish_status.value,
            "artifacts": [a.to_dict() for a in run.artifacts],
            "error": copy.deepcopy(run.publish_error),
        },
    }


def record_to_run(record: Dict[str, Any]) -> Run:
    """Reconstrói um Run a partir de `run_to_record`."""
    publish = record.get("publish", {}) or {}
    trigger = record.get("trigger")
    return Run(
        run_id=record["run_id"],
        definition=PipelineDefinition.from_dict(record["definition"]),
        started_at=parse_iso(record["started_at"]),
        trigger=TriggerSpec.from_dict(trigger) if trigger else None,
        status=RunStatus(record["status"]),
        step_results=[StepResult.from_dict(r) for r in record.get("step_results", []) or []],
        events=copy.deepcopy(record.get("events", []) or []),
        finished_at=parse_iso(record.get("finished_at")),
        publish_status=PublishStatus(publish.get("status", PublishStatus.NOT_ATTEMPTED.value)),
        artifacts=[Artifact.from_dict(a) for a in publish.get("artifacts", []) or []],
        publish_error=copy.deepcopy(publish.get("error")),
    )


def save_record(record: Dict[str, Any], path: Path) -> None:
    """Persiste um registro em JSON determinístico (escrita atômica via rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    payload = json.dumps(to_jsonable(record), ensure_ascii=False, indent=2, sort_keys=True)
    tmp.write_text(payload, encoding="utf-8")
    tmp.replace(path)


def load_record(path: Path) -> Dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))
