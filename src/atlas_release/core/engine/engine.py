# src/atlas_release/core/engine/engine.py
"""
Execution Engine do Atlas Release.

Executa um `ExecutionPlan` sobre um `Run`, mutando-o in-place:

    PENDING -> RUNNING -> {SUCCEEDED, FAILED, CANCELLED}

Para cada Step, na ordem do plano:
    - adquire um contexto isolado (`step_context`), liberado em qualquer saída
    - invoca a action registrada com os parâmetros do Step
    - registra um StepResult (status, exit code, duração, output paths)
    - em falha sem `continue_on_error`, interrompe: os Steps restantes são
      marcados SKIPPED e o Run termina FAILED

Falhas de action (outcome FAILED, exceção, action inexistente) nunca
propagam para fora do Engine: viram StepResult FAILED com payload de erro
serializável, visível ao operador pelo Run Ledger.

Cancelamento é cooperativo e verificado apenas entre Steps; um Step em
andamento sempre termina antes que o cancelamento seja honrado.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from atlas_release.core.errors import (
    AtlasErrorPayload,
    step_action_crashed,
    step_action_failed,
    step_action_not_found,
)
from atlas_release.core.pipeline.context import step_context
from atlas_release.core.pipeline.registry import ActionRegistry
from atlas_release.core.pipeline.types import (
    ActionOutcome,
    Run,
    RunStatus,
    StepResult,
    StepSpec,
    StepStatus,
)
from atlas_release.core.traceability import events as ev

from .planner import ExecutionPlan


LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Engine:
    """Engine canônico do Atlas Release (executor sequencial de um Run)."""

    def __init__(self, actions: ActionRegistry, *, clock: Callable[[], datetime] = _utcnow):
        self.actions = actions
        self._clock = clock

    # ------------------------------------------------------------------
    # Invocação de actions
    # ------------------------------------------------------------------
    def _invoke(self, run: Run, step: StepSpec) -> Tuple[ActionOutcome, Optional[AtlasErrorPayload]]:
        if step.action not in self.actions:
            payload = step_action_not_found(step=step.name, action=step.action, available=self.actions.names())
            return ActionOutcome.failure(exit_code=None, summary=payload.message), payload

        action = self.actions.get(step.action)
        try:
            with step_context(run, step, events=run.events) as ctx:
                outcome = action.run(dict(step.parameters), ctx)
            if not isinstance(outcome, ActionOutcome):
                raise TypeError(
                    f"Action '{step.action}' must return ActionOutcome, got {type(outcome).__name__}"
                )
        except Exception as exc:
            LOGGER.exception("step %s crashed in run %s", step.name, run.run_id)
            payload = step_action_crashed(step=step.name, action=step.action, exc=exc)
            return ActionOutcome.failure(exit_code=None, summary=payload.message), payload

        if outcome.succeeded:
            return outcome, None

        payload = step_action_failed(
            step=step.name,
            action=step.action,
            exit_code=outcome.exit_code,
            summary=outcome.summary,
        )
        return outcome, payload

    def _run_step(self, run: Run, step: StepSpec) -> StepResult:
        ev.add_event(run.events, event_type=ev.STEP_STARTED, ts=self._clock(), step_name=step.name,
                     payload={"action": step.action})
        started = time.monotonic()
        outcome, error = self._invoke(run, step)
        duration_ms = int((time.monotonic() - started) * 1000)

        result = StepResult(
            step_name=step.name,
            status=StepStatus.SUCCEEDED if error is None else StepStatus.FAILED,
            exit_code=outcome.exit_code,
            duration_ms=duration_ms,
            captured_output_paths=outcome.output_paths,
            summary=outcome.summary,
            error=error.to_dict() if error is not None else None,
        )

        if error is None:
            ev.add_event(run.events, event_type=ev.STEP_FINISHED, ts=self._clock(), step_name=step.name,
                         payload={"status": result.status.value, "duration_ms": duration_ms})
        else:
            ev.add_event(run.events, event_type=ev.STEP_FAILED, ts=self._clock(), step_name=step.name,
                         payload={
                             "exit_code": result.exit_code,
                             "duration_ms": duration_ms,
                             "continue_on_error": step.continue_on_error,
                             "error": result.error,
                         })
        return result

    def _skip(self, run: Run, step: StepSpec, reason: str) -> StepResult:
        ev.add_event(run.events, event_type=ev.STEP_SKIPPED, ts=self._clock(), step_name=step.name,
                     payload={"reason": reason})
        return StepResult(step_name=step.name, status=StepStatus.SKIPPED, summary=reason)

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------
    def execute(self, plan: ExecutionPlan, run: Run, cancel: Optional[threading.Event] = None) -> Run:
        """
        Executa o plano sobre o Run (mutação in-place) e o retorna.

        Args:
            plan: Plano produzido por `build_plan`.
            run: Run em status PENDING.
            cancel: Sinal externo de cancelamento, verificado entre Steps.

        Raises:
            RunStateError: Se o Run não estiver PENDING.
        """
        run.transition(RunStatus.RUNNING)
        ev.add_event(run.events, event_type=ev.RUN_STARTED, ts=self._clock(),
                     payload={"definition_id": run.definition_id, "steps": plan.names()})
        LOGGER.info("run %s started (%d steps)", run.run_id, len(plan))

        halted_by: Optional[str] = None
        cancelled = False

        for step in plan:
            if halted_by is not None:
                run.step_results.append(self._skip(run, step, f"skipped after failure of '{halted_by}'"))
                continue

            if cancelled or (cancel is not None and cancel.is_set()):
                if not cancelled:
                    cancelled = True
                    ev.add_event(run.events, event_type=ev.RUN_CANCELLED, ts=self._clock(),
                                 payload={"before_step": step.name})
                    LOGGER.info("run %s cancelled before step %s", run.run_id, step.name)
                run.step_results.append(self._skip(run, step, "skipped due to cancellation"))
                continue

            result = self._run_step(run, step)
            run.step_results.append(result)

            if result.status == StepStatus.FAILED:
                if step.continue_on_error:
                    LOGGER.warning("step %s failed in run %s (continue_on_error)", step.name, run.run_id)
                else:
                    LOGGER.error("step %s failed in run %s; halting", step.name, run.run_id)
                    halted_by = step.name

        if cancelled:
            final = RunStatus.CANCELLED
        elif halted_by is not None:
            final = RunStatus.FAILED
        else:
            final = RunStatus.SUCCEEDED

        run.transition(final)
        run.finished_at = self._clock()
        ev.add_event(run.events, event_type=ev.RUN_FINISHED, ts=run.finished_at,
                     payload={"status": final.value})
        LOGGER.info("run %s finished: %s", run.run_id, final.value)
        return run
