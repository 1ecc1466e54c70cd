# src/atlas_release/core/orchestrator.py
"""
Orchestrator do Atlas Release.

Conecta os componentes do core no fluxo de um Run:

    trigger → plano → execução → (SUCCEEDED) publicação → ledger

Responsabilidades:
    - validar a definição contra o ActionRegistry e construir o plano uma vez
    - avaliar triggers (`tick`) e criar Runs a partir de RunRequests
    - criar e liberar o workspace de cada Run
    - executar Runs de forma síncrona (`start`) ou em um pool de threads (`submit`)
    - registrar o resultado da publicação separado do status do build
    - gravar todo Run terminal no Run Ledger

Decisões arquiteturais:
    - Um Run ocupa um único worker; Steps são sequenciais
    - Runs da mesma definição podem executar em paralelo, a menos que
      `engine.serialize_per_definition` esteja ativo
    - Falhas de publicação não alteram `run.status`

Limites explícitos:
    - Não agenda ticks (o host decide quando chamar `tick`)
    - Não persiste o estado dos triggers (o host pode serializar `TriggerState`)
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from atlas_release.core.config.errors import MissingActionError
from atlas_release.core.config.settings import EngineSettings
from atlas_release.core.engine.engine import Engine
from atlas_release.core.engine.planner import ExecutionPlan, build_plan
from atlas_release.core.errors import artifact_publish_failed
from atlas_release.core.exceptions import EmptyArtifactError, PublishError, RunStateError
from atlas_release.core.ledger.ledger import RunLedger
from atlas_release.core.pipeline.registry import ActionRegistry
from atlas_release.core.pipeline.types import (
    ManualDispatchEvent,
    PipelineDefinition,
    PublishStatus,
    Run,
    RunRequest,
    RunStatus,
)
from atlas_release.core.publish.publisher import ArtifactPublisher
from atlas_release.core.publish.storage import ArtifactStorage
from atlas_release.core.traceability import events as ev
from atlas_release.core.trigger.evaluator import TriggerEvaluator, TriggerState


LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_run_id() -> str:
    return uuid.uuid4().hex


class Orchestrator:
    """Executa Runs de uma PipelineDefinition, do trigger ao ledger."""

    def __init__(
        self,
        definition: PipelineDefinition,
        actions: ActionRegistry,
        storage: ArtifactStorage,
        settings: Optional[EngineSettings] = None,
        ledger: Optional[RunLedger] = None,
        *,
        trigger_state: Optional[TriggerState] = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.definition = definition
        self.settings = settings if settings is not None else EngineSettings()

        missing = [s for s in definition.steps if s.action not in actions]
        if missing:
            raise MissingActionError(
                f"Definição '{definition.definition_id}' referencia actions não registradas: "
                + ", ".join(f"{s.name} → {s.action}" for s in missing)
            )

        self.plan: ExecutionPlan = build_plan(definition.steps)
        self.evaluator = TriggerEvaluator(
            definition, trigger_state, backfill=self.settings.backfill_schedules
        )
        self.engine = Engine(actions, clock=clock)
        self.publisher = ArtifactPublisher.from_settings(storage, self.settings, sleep=sleep)
        self.ledger = ledger if ledger is not None else RunLedger(self.settings.ledger_directory)

        self._clock = clock
        self._lock = threading.Lock()
        self._definition_lock = threading.Lock()
        self._cancel_events: Dict[str, threading.Event] = {}
        self._executor: Optional[ThreadPoolExecutor] = None

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------
    def tick(self, now: datetime, manual_request: Optional[ManualDispatchEvent] = None) -> Optional[Run]:
        """Avalia os triggers em `now` e, se algum disparar, executa o Run (síncrono)."""
        request = self.evaluator.evaluate(now, manual_request)
        if request is None:
            return None
        return self.start(request)

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------
    def _register(self, run_id: Optional[str]) -> Tuple[str, threading.Event]:
        run_id = run_id or new_run_id()
        with self._lock:
            if run_id in self._cancel_events or run_id in self.ledger:
                raise RunStateError(
                    message=f"run_id '{run_id}' já está em uso",
                    details={"run_id": run_id},
                )
            cancel = threading.Event()
            self._cancel_events[run_id] = cancel
        return run_id, cancel

    def _unregister(self, run_id: str) -> None:
        with self._lock:
            self._cancel_events.pop(run_id, None)

    @contextmanager
    def _workspace(self, run_id: str) -> Iterator[Path]:
        root = self.settings.workspace_root
        if root is not None:
            path = Path(root) / run_id
            path.mkdir(parents=True, exist_ok=False)
        else:
            path = Path(tempfile.mkdtemp(prefix=f"atlas-run-{run_id}-"))
        try:
            yield path
        finally:
            if self.settings.keep_workspace:
                LOGGER.info("workspace kept for run %s: %s", run_id, path)
            else:
                shutil.rmtree(path, ignore_errors=True)

    def _publish(self, run: Run) -> None:
        try:
            artifacts = self.publisher.publish(run)
        except (EmptyArtifactError, PublishError) as exc:
            payload = artifact_publish_failed(run_id=run.run_id, exc=exc).to_dict()
            run.publish_status = PublishStatus.FAILED
            run.publish_error = payload
            ev.add_event(run.events, event_type=ev.PUBLISH_FAILED, ts=self._clock(), payload=payload)
            LOGGER.error("publish failed for run %s: %s", run.run_id, exc.message)
            return

        run.artifacts = list(artifacts)
        run.publish_status = PublishStatus.PUBLISHED
        for artifact in artifacts:
            ev.add_event(run.events, event_type=ev.ARTIFACT_PUBLISHED, ts=self._clock(),
                         payload=artifact.to_dict())

    def _execute(self, request: RunRequest, run_id: str, cancel: threading.Event) -> Run:
        run = Run(
            run_id=run_id,
            definition=self.definition,
            started_at=self._clock(),
            trigger=request.trigger,
        )
        serialize = self._definition_lock if self.settings.serialize_per_definition else nullcontext()
        try:
            with serialize:
                with self._workspace(run_id) as workspace:
                    run.workspace = workspace
                    self.engine.execute(self.plan, run, cancel)
                    if run.status == RunStatus.SUCCEEDED and self.definition.artifacts:
                        self._publish(run)
                if not self.settings.keep_workspace:
                    run.workspace = None
            self.ledger.record(run)
        finally:
            self._unregister(run_id)
        return run

    def start(self, request: RunRequest, *, run_id: Optional[str] = None) -> Run:
        """
        Executa um Run de forma síncrona e o devolve em status terminal.

        Raises:
            RunStateError: Se `run_id` já estiver em uso.
        """
        run_id, cancel = self._register(run_id)
        return self._execute(request, run_id, cancel)

    def submit(self, request: RunRequest, *, run_id: Optional[str] = None) -> "Future[Run]":
        """Agenda o Run no pool de workers; o `run_id` fica cancelável imediatamente."""
        run_id, cancel = self._register(run_id)
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.settings.max_workers,
                    thread_name_prefix=f"atlas-{self.definition.definition_id}",
                )
            executor = self._executor
        return executor.submit(self._execute, request, run_id, cancel)

    def cancel(self, run_id: str) -> bool:
        """
        Solicita o cancelamento cooperativo de um Run em andamento ou agendado.

        Returns:
            bool: False se o Run não estiver ativo.
        """
        with self._lock:
            event = self._cancel_events.get(run_id)
        if event is None:
            return False
        event.set()
        LOGGER.info("cancellation requested for run %s", run_id)
        return True

    def active_runs(self) -> List[str]:
        with self._lock:
            return list(self._cancel_events)

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------
    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def __enter__(self) -> "Orchestrator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown(wait=True)
