# src/atlas_release/core/trigger/evaluator.py
"""
Trigger Evaluator do Atlas Release.

Decide, dado o instante atual e um eventual evento de disparo manual, se
uma nova execução da definição deve começar.

Semântica:
    - ManualDispatch dispara sse um evento foi fornecido e a definição
      declara um trigger manual.
    - Schedule dispara quando o slot mais recente `<= now` é posterior ao
      último slot já disparado por aquele trigger. Cada slot dispara
      exatamente uma vez, mesmo com múltiplas avaliações dentro da janela
      `[slot, próximo slot)`.
    - Um trigger sem histórico no estado só dispara se o slot mais recente
      tiver menos de `FIRST_SLOT_GRACE`; slots mais antigos apenas semeiam o
      estado, a menos que `backfill=True`.

Decisões arquiteturais:
    - O estado de "último disparo" é explícito (`TriggerState`), passado à
      avaliação; nenhum estado global é mantido
    - A avaliação é determinística para `(definição, estado, now)`
    - Expressões malformadas são rejeitadas na construção (fail fast)
    - Quando manual e schedule coincidem na mesma chamada, o manual vence e
      o slot do schedule permanece disponível para a próxima avaliação
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from atlas_release.core.pipeline.types import (
    ManualDispatchEvent,
    PipelineDefinition,
    RunRequest,
    TriggerKind,
    TriggerSpec,
)

from .cron import CronSchedule, ensure_utc


LOGGER = logging.getLogger(__name__)

# Tolerância para o primeiro slot de um trigger sem histórico.
FIRST_SLOT_GRACE = timedelta(minutes=1)


@dataclass
class TriggerState:
    """
    Estado persistível de avaliação: último slot disparado por trigger.

    Indexado por `TriggerSpec.key`. Serializável via `to_dict`/`from_dict`
    para que o host possa persistir o estado entre reinícios.
    """

    last_fired: Dict[str, datetime] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def get(self, trigger: TriggerSpec) -> Optional[datetime]:
        return self.last_fired.get(trigger.key)

    def advance(self, trigger: TriggerSpec, slot: datetime) -> bool:
        """Avança o último disparo para `slot`; retorna False se o slot já foi consumido."""
        slot = ensure_utc(slot)
        with self._lock:
            previous = self.last_fired.get(trigger.key)
            if previous is not None and previous >= slot:
                return False
            self.last_fired[trigger.key] = slot
            return True

    def seed(self, trigger: TriggerSpec, slot: datetime) -> bool:
        """Registra `slot` como consumido apenas se o trigger ainda não tem histórico."""
        with self._lock:
            if trigger.key in self.last_fired:
                return False
            self.last_fired[trigger.key] = ensure_utc(slot)
            return True

    def to_dict(self) -> Dict[str, Any]:
        return {"last_fired": {k: v.isoformat() for k, v in sorted(self.last_fired.items())}}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TriggerState":
        raw = (data or {}).get("last_fired", {}) or {}
        return cls(last_fired={k: ensure_utc(datetime.fromisoformat(v)) for k, v in raw.items()})


class TriggerEvaluator:
    """Avalia os triggers de uma PipelineDefinition."""

    def __init__(
        self,
        definition: PipelineDefinition,
        state: Optional[TriggerState] = None,
        *,
        backfill: bool = False,
    ):
        self.definition = definition
        self.backfill = backfill
        self.state = state if state is not None else TriggerState()
        self._schedules: List[Tuple[TriggerSpec, CronSchedule]] = [
            (t, CronSchedule.parse(t.expression or ""))
            for t in definition.triggers
            if t.kind == TriggerKind.SCHEDULE
        ]
        self._manual: Optional[TriggerSpec] = next(
            (t for t in definition.triggers if t.kind == TriggerKind.MANUAL_DISPATCH),
            None,
        )

    def evaluate(
        self,
        now: datetime,
        manual_request: Optional[ManualDispatchEvent] = None,
        state: Optional[TriggerState] = None,
    ) -> Optional[RunRequest]:
        """
        Retorna um RunRequest se algum trigger estiver satisfeito, senão None.

        Efeito colateral: avança o último disparo do schedule que disparou.

        Args:
            now: Instante atual (naive é assumido UTC).
            manual_request: Evento externo de disparo manual, se houver.
            state: Estado a usar nesta avaliação (default: o do evaluator).
        """
        now = ensure_utc(now)
        state = state if state is not None else self.state

        if manual_request is not None:
            if self._manual is not None:
                LOGGER.info("manual dispatch accepted for %s", self.definition.definition_id)
                return RunRequest(
                    definition_id=self.definition.definition_id,
                    trigger=self._manual,
                    requested_at=ensure_utc(manual_request.requested_at or now),
                )
            LOGGER.warning(
                "manual dispatch ignored: %s declares no manual trigger",
                self.definition.definition_id,
            )

        for trigger, schedule in self._schedules:
            slot = schedule.latest_at_or_before(now)
            if slot is None:
                continue
            if self._is_stale_first_slot(state, trigger, slot, now):
                if state.seed(trigger, slot):
                    LOGGER.info(
                        "schedule %s for %s: slot %s predates the trigger state; not backfilled",
                        trigger.expression,
                        self.definition.definition_id,
                        slot.isoformat(),
                    )
                continue
            if state.advance(trigger, slot):
                LOGGER.info(
                    "schedule %s fired for %s (slot %s)",
                    trigger.expression,
                    self.definition.definition_id,
                    slot.isoformat(),
                )
                return RunRequest(
                    definition_id=self.definition.definition_id,
                    trigger=trigger,
                    requested_at=now,
                    scheduled_for=slot,
                )

        return None

    def _is_stale_first_slot(
        self, state: TriggerState, trigger: TriggerSpec, slot: datetime, now: datetime
    ) -> bool:
        return not self.backfill and state.get(trigger) is None and now - slot >= FIRST_SLOT_GRACE

    def next_fire_time(self, after: datetime) -> Optional[datetime]:
        """Próximo disparo agendado entre todos os schedules da definição."""
        candidates = [s.next_after(after) for _, s in self._schedules]
        found = [c for c in candidates if c is not None]
        return min(found) if found else None
