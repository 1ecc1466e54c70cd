# src/atlas_release/core/pipeline/action.py
"""
Contrato canônico de Action do Atlas Release.

Uma Action é a capability externa que executa o trabalho de um Step
(checkout, instalação de toolchain, compilação, upload). O core a trata
como opaca e substituível, endereçada por nome no `ActionRegistry`.

Princípios fundamentais:
    - Actions não conhecem o Engine, o planner nem o Run
    - Toda entrada chega por `parameters` e pelo `ActionContext`
    - Conformidade é garantida por duck typing (@runtime_checkable)

Limites explícitos:
    - Não decide políticas de execução (continue_on_error, cancelamento)
    - Não registra eventos no Run diretamente
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from .context import ActionContext
from .types import ActionOutcome


@runtime_checkable
class Action(Protocol):
    """
    Capability com um único método: `run(parameters, context) -> ActionOutcome`.

    Atributos obrigatórios:
        - name: nome estável pelo qual Steps referenciam a action

    Uma action pode sinalizar falha retornando `ActionOutcome.failure(...)`
    ou levantando exceção; o Engine converte ambos em StepResult FAILED.
    """
    name: str

    def run(self, parameters: Mapping[str, Any], context: ActionContext) -> ActionOutcome:
        """Executa a action uma única vez no contexto isolado do Step."""
        ...
