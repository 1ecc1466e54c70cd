# src/atlas_release/core/pipeline/context.py
"""
Contexto de execução isolado de um Step.

Este módulo define o `ActionContext`, entregue a cada action, e o gerenciador
`step_context`, que adquire o contexto antes do Step e o libera em qualquer
caminho de saída (retorno, falha ou exceção).

O contexto consolida:
    - identidade (run_id, step_name)
    - diretório de trabalho (workspace do Run ou scratch do Step)
    - variáveis de ambiente mescladas (definição → `env` do Step → ATLAS_*)
    - diretório scratch exclusivo do Step, removido ao final
    - log estruturado de eventos

Invariantes:
    - Cada Step recebe um contexto próprio; nada é compartilhado entre Runs
    - O diretório scratch nunca sobrevive ao Step
    - O diretório de trabalho nunca sai do workspace do Run
    - Logs sempre incluem `run_id` e `step_name`
"""

from __future__ import annotations

import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional

from atlas_release.core.config.errors import InvalidDefinitionError

from .types import Run, StepSpec


ENV_PARAMETER = "env"
WORKING_DIRECTORY_PARAMETER = "working-directory"


@dataclass
class ActionContext:
    """Contexto isolado passado a uma action durante um Step."""

    run_id: str
    step_name: str
    working_directory: Path
    environment: Mapping[str, str]
    scratch_dir: Path
    workspace: Optional[Path] = None
    events: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    def log(self, *, level: str, message: str, **extra: Any) -> None:
        event = {
            "event_type": "action_log",
            "run_id": self.run_id,
            "step_name": self.step_name,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        self.events.append(event)


def merge_environment(run: Run, step: StepSpec) -> Dict[str, str]:
    """
    Mescla variáveis de ambiente para um Step.

    Precedência (a última vence):
        1. `PipelineDefinition.environment`
        2. parâmetro `env` do Step (mapping)
        3. variáveis do Run: ATLAS_RUN_ID, ATLAS_STEP_NAME, ATLAS_WORKSPACE
    """
    env: Dict[str, str] = {str(k): str(v) for k, v in run.definition.environment.items()}

    step_env = step.parameters.get(ENV_PARAMETER) or {}
    if not isinstance(step_env, Mapping):
        raise TypeError(f"Step '{step.name}': parâmetro '{ENV_PARAMETER}' deve ser um mapping")
    env.update({str(k): str(v) for k, v in step_env.items()})

    env["ATLAS_RUN_ID"] = run.run_id
    env["ATLAS_STEP_NAME"] = step.name
    if run.workspace is not None:
        env["ATLAS_WORKSPACE"] = str(run.workspace)
    return env


@contextmanager
def step_context(run: Run, step: StepSpec, events: Optional[List[Dict[str, Any]]] = None) -> Iterator[ActionContext]:
    """
    Adquire o contexto isolado de um Step e garante sua liberação.

    O diretório de trabalho é o workspace do Run (opcionalmente um
    subdiretório via parâmetro `working-directory`); sem workspace, a action
    trabalha no próprio scratch.
    """
    scratch = Path(tempfile.mkdtemp(prefix=f"atlas-{run.run_id}-"))
    try:
        if run.workspace is not None:
            working = Path(run.workspace)
            sub = step.parameters.get(WORKING_DIRECTORY_PARAMETER)
            if sub:
                working = working / str(sub)
                if not working.resolve().is_relative_to(Path(run.workspace).resolve()):
                    raise InvalidDefinitionError(
                        f"Step '{step.name}': {WORKING_DIRECTORY_PARAMETER} '{sub}' está fora do workspace do Run"
                    )
                working.mkdir(parents=True, exist_ok=True)
        else:
            working = scratch

        yield ActionContext(
            run_id=run.run_id,
            step_name=step.name,
            working_directory=working,
            environment=MappingProxyType(merge_environment(run, step)),
            scratch_dir=scratch,
            workspace=run.workspace,
            events=events if events is not None else [],
        )
    finally:
        shutil.rmtree(scratch, ignore_errors=True)
