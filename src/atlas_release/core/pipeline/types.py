# src/atlas_release/core/pipeline/types.py
"""
Tipos canônicos do Atlas Release.

Este módulo define as estruturas e enums que padronizam a comunicação entre
Trigger Evaluator, planner, Engine, Publisher e Run Ledger.

Componentes principais:
    - PipelineDefinition → declaração imutável (triggers, steps, environment)
    - TriggerSpec        → variante Schedule | ManualDispatch
    - StepSpec           → declaração de um Step (action + parâmetros)
    - Run                → execução mutável de uma definição
    - StepResult         → resultado imutável de um Step
    - Artifact           → conjunto de arquivos persistido após sucesso

Princípios fundamentais:
    - Declarações são imutáveis (frozen dataclasses)
    - Enums possuem valores textuais canônicos (serialização em JSON)
    - O único objeto mutável é o Run, e apenas o Engine o modifica

Limites explícitos:
    - Não executa Steps
    - Não planeja pipelines
    - Não persiste dados
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from atlas_release.core.exceptions import RunStateError, StepExecutionError


class TriggerKind(str, Enum):
    """Variantes de trigger suportadas."""
    SCHEDULE = "schedule"
    MANUAL_DISPATCH = "manual_dispatch"


class RunStatus(str, Enum):
    """
    Estados de um Run.

    Máquina de estados:
        PENDING -> RUNNING -> {SUCCEEDED, FAILED, CANCELLED}

    Os três últimos são terminais: um Run terminal não muda mais de status.
    """
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.CANCELLED})

_ALLOWED_TRANSITIONS = {
    RunStatus.PENDING: frozenset({RunStatus.RUNNING}),
    RunStatus.RUNNING: _TERMINAL_STATUSES,
}


class StepStatus(str, Enum):
    """Estados finais possíveis de um Step (não existe estado transitório)."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class PublishStatus(str, Enum):
    """
    Resultado da publicação de artefatos, rastreado separadamente do Run.

    Um Run pode ter sucesso no build e falhar na publicação.
    """
    NOT_ATTEMPTED = "not_attempted"
    PUBLISHED = "published"
    FAILED = "failed"


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class TriggerSpec:
    """
    Declaração de um trigger.

    Campos:
        - kind: SCHEDULE ou MANUAL_DISPATCH
        - expression: expressão cron (apenas para SCHEDULE)

    A validade da expressão é verificada no carregamento da definição,
    nunca durante a avaliação.
    """
    kind: TriggerKind
    expression: Optional[str] = None

    @classmethod
    def schedule(cls, expression: str) -> "TriggerSpec":
        return cls(kind=TriggerKind.SCHEDULE, expression=expression)

    @classmethod
    def manual(cls) -> "TriggerSpec":
        return cls(kind=TriggerKind.MANUAL_DISPATCH)

    @property
    def key(self) -> str:
        """Chave estável usada para indexar o estado de avaliação do trigger."""
        if self.kind == TriggerKind.SCHEDULE:
            return f"schedule:{self.expression}"
        return self.kind.value

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind.value}
        if self.expression is not None:
            out["expression"] = self.expression
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TriggerSpec":
        return cls(kind=TriggerKind(data["kind"]), expression=data.get("expression"))


@dataclass(frozen=True)
class StepSpec:
    """
    Declaração de um Step.

    Campos:
        - name: identificador único dentro da definição
        - action: referência opaca a uma capability externa (ex.: "checkout")
        - parameters: parâmetros entregues à action
        - continue_on_error: se True, a falha não interrompe o Run
        - after: nomes de Steps que precisam terminar antes deste
    """
    name: str
    action: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    continue_on_error: bool = False
    after: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", _freeze(self.parameters))
        object.__setattr__(self, "after", tuple(self.after or ()))


@dataclass(frozen=True)
class ArtifactSpec:
    """Artefato declarado: nome estável + glob dos arquivos produzidos."""
    name: str
    path: str


@dataclass(frozen=True)
class PipelineDefinition:
    """
    Definição imutável de um pipeline de build/release.

    Carregada uma vez por Run e somente leitura a partir daí. As invariantes
    (steps não vazio, nomes únicos, schedules válidos) são garantidas pelo
    loader em `atlas_release.core.pipeline.definition`.
    """
    definition_id: str
    steps: Tuple[StepSpec, ...]
    triggers: Tuple[TriggerSpec, ...] = ()
    environment: Mapping[str, str] = field(default_factory=dict)
    artifacts: Tuple[ArtifactSpec, ...] = ()
    name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "triggers", tuple(self.triggers))
        object.__setattr__(self, "artifacts", tuple(self.artifacts))
        object.__setattr__(self, "environment", _freeze(self.environment))

    def step(self, name: str) -> StepSpec:
        for s in self.steps:
            if s.name == name:
                return s
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        """Representação serializável (usada para hashing e ledger)."""
        return {
            "definition_id": self.definition_id,
            "name": self.name,
            "triggers": [t.to_dict() for t in self.triggers],
            "environment": dict(self.environment),
            "steps": [
                {
                    "name": s.name,
                    "action": s.action,
                    "parameters": dict(s.parameters),
                    "continue_on_error": s.continue_on_error,
                    "after": list(s.after),
                }
                for s in self.steps
            ],
            "artifacts": [{"name": a.name, "path": a.path} for a in self.artifacts],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PipelineDefinition":
        """Reconstrói a definição a partir de `to_dict` (snapshot do ledger)."""
        return cls(
            definition_id=data["definition_id"],
            name=data.get("name"),
            triggers=tuple(TriggerSpec.from_dict(t) for t in data.get("triggers", []) or []),
            environment=dict(data.get("environment", {}) or {}),
            steps=tuple(
                StepSpec(
                    name=s["name"],
                    action=s["action"],
                    parameters=dict(s.get("parameters", {}) or {}),
                    continue_on_error=bool(s.get("continue_on_error", False)),
                    after=tuple(s.get("after", []) or []),
                )
                for s in data.get("steps", []) or []
            ),
            artifacts=tuple(ArtifactSpec(name=a["name"], path=a["path"]) for a in data.get("artifacts", []) or []),
        )


@dataclass(frozen=True)
class ManualDispatchEvent:
    """Evento externo de disparo manual ("fire now"), sem payload adicional."""
    requested_at: Optional[datetime] = None
    actor: Optional[str] = None


@dataclass(frozen=True)
class RunRequest:
    """Pedido de execução produzido pelo Trigger Evaluator."""
    definition_id: str
    trigger: TriggerSpec
    requested_at: datetime
    scheduled_for: Optional[datetime] = None


@dataclass(frozen=True)
class ActionOutcome:
    """
    Resultado reportado por uma action externa.

    `status` é SUCCEEDED ou FAILED; `output_paths` são os caminhos
    (relativos ao diretório de trabalho) que a action declara ter produzido.
    """
    status: StepStatus
    exit_code: Optional[int] = 0
    output_paths: Tuple[str, ...] = ()
    summary: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "output_paths", tuple(self.output_paths or ()))

    @property
    def succeeded(self) -> bool:
        return self.status == StepStatus.SUCCEEDED

    @classmethod
    def success(cls, *, output_paths=(), summary: str = "") -> "ActionOutcome":
        return cls(status=StepStatus.SUCCEEDED, exit_code=0, output_paths=tuple(output_paths), summary=summary)

    @classmethod
    def failure(cls, *, exit_code: Optional[int] = 1, summary: str = "") -> "ActionOutcome":
        return cls(status=StepStatus.FAILED, exit_code=exit_code, summary=summary)


@dataclass(frozen=True)
class StepResult:
    """
    Resultado imutável de um Step dentro de um Run.

    Campos:
        - step_name: nome do Step declarado
        - status: SUCCEEDED, FAILED ou SKIPPED
        - exit_code: código de saída da action (None quando não executado)
        - duration_ms: duração em milissegundos (0 para SKIPPED)
        - captured_output_paths: caminhos declarados pela action, ordenados e sem duplicatas
        - summary: resumo textual
        - error: payload de erro serializável (AtlasErrorPayload.to_dict) ou None
    """
    step_name: str
    status: StepStatus
    exit_code: Optional[int] = None
    duration_ms: int = 0
    captured_output_paths: Tuple[str, ...] = ()
    summary: str = ""
    error: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        seen = set()
        ordered: List[str] = []
        for p in self.captured_output_paths or ():
            if p not in seen:
                seen.add(p)
                ordered.append(p)
        object.__setattr__(self, "captured_output_paths", tuple(ordered))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_name": self.step_name,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
            "captured_output_paths": list(self.captured_output_paths),
            "summary": self.summary,
            "error": dict(self.error) if self.error is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StepResult":
        return cls(
            step_name=data["step_name"],
            status=StepStatus(data["status"]),
            exit_code=data.get("exit_code"),
            duration_ms=int(data.get("duration_ms", 0) or 0),
            captured_output_paths=tuple(data.get("captured_output_paths", []) or []),
            summary=data.get("summary", "") or "",
            error=data.get("error"),
        )


@dataclass(frozen=True)
class Artifact:
    """Conjunto nomeado de arquivos persistido a partir de um Run bem-sucedido."""
    name: str
    source_run_id: str
    paths: Tuple[str, ...]
    storage_handle: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "source_run_id": self.source_run_id,
            "paths": list(self.paths),
            "storage_handle": self.storage_handle,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Artifact":
        return cls(
            name=data["name"],
            source_run_id=data["source_run_id"],
            paths=tuple(data.get("paths", []) or []),
            storage_handle=data["storage_handle"],
        )


@dataclass
class Run:
    """
    Execução de uma PipelineDefinition, do trigger ao status terminal.

    O Run é criado no disparo do trigger, mutado exclusivamente pelo Engine
    (e pelo Orchestrator, apenas na seção de publicação) e finalizado quando o
    status atinge um valor terminal.

    Invariantes:
        - Transições de status seguem PENDING -> RUNNING -> terminal
        - `step_results` é preenchido na ordem do plano e nunca reordenado
        - `events` reflete a ordem real de execução
    """
    run_id: str
    definition: PipelineDefinition
    started_at: datetime
    trigger: Optional[TriggerSpec] = None
    status: RunStatus = RunStatus.PENDING
    step_results: List[StepResult] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)
    finished_at: Optional[datetime] = None
    workspace: Optional[Path] = None

    publish_status: PublishStatus = PublishStatus.NOT_ATTEMPTED
    artifacts: List[Artifact] = field(default_factory=list)
    publish_error: Optional[Dict[str, Any]] = None

    @property
    def definition_id(self) -> str:
        return self.definition.definition_id

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition(self, target: RunStatus) -> None:
        """Aplica uma transição de status validada pela máquina de estados."""
        allowed = _ALLOWED_TRANSITIONS.get(self.status, frozenset())
        if target not in allowed:
            raise RunStateError(
                message=f"Transição inválida: {self.status.value} -> {target.value}",
                details={"run_id": self.run_id, "from": self.status.value, "to": target.value},
            )
        self.status = target

    def result_for(self, step_name: str) -> StepResult:
        for r in self.step_results:
            if r.step_name == step_name:
                return r
        raise KeyError(step_name)

    def output_paths(self) -> List[str]:
        """Caminhos produzidos no Run, na ordem dos Steps e sem duplicatas."""
        seen = set()
        out: List[str] = []
        for r in self.step_results:
            for p in r.captured_output_paths:
                if p not in seen:
                    seen.add(p)
                    out.append(p)
        return out

    def raise_for_status(self) -> None:
        """
        Levanta `StepExecutionError` se o Run terminou FAILED.

        Uso opcional pelo host; o Engine em si nunca levanta por falha de Step.
        """
        if self.status != RunStatus.FAILED:
            return
        failed = [r for r in self.step_results if r.status == StepStatus.FAILED]
        blocking = next(
            (r for r in failed if not self.definition.step(r.step_name).continue_on_error),
            failed[-1] if failed else None,
        )
        raise StepExecutionError(
            message=f"Run {self.run_id} falhou no Step '{blocking.step_name}'" if blocking else f"Run {self.run_id} falhou",
            details={
                "run_id": self.run_id,
                "step": blocking.step_name if blocking else None,
                "exit_code": blocking.exit_code if blocking else None,
                "error": blocking.error if blocking else None,
            },
        )
