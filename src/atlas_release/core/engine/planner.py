# src/atlas_release/core/engine/planner.py
"""
Step Graph Builder: planejador de execução do Atlas Release.

Converte a sequência declarada de Steps em um `ExecutionPlan` com ordem
explícita de execução.

Sem anotações `after`, o plano é exatamente a ordem de declaração. Com
anotações, o planner executa uma ordenação topológica estável: sempre que
vários Steps estão prontos, vence o declarado primeiro.

Princípios fundamentais:
    - O grafo de Steps deve ser um DAG válido
    - A mesma definição sempre produz o mesmo plano
    - Validação estrutural ocorre antes de qualquer execução

Decisões arquiteturais:
    - Algoritmo de Kahn com fila de prontos ordenada pelo índice de declaração
    - Steps indexados por nome; adjacência derivada dos conjuntos `after`
    - Erros estruturais são fatais e nenhum plano parcial é produzido

Limites explícitos:
    - Não executa Steps
    - Não interage com Run ou actions
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Set, Tuple

from atlas_release.core.config.errors import DuplicateStepNameError, InvalidDefinitionError
from atlas_release.core.pipeline.types import StepSpec


class PlanError(ValueError):
    """Base para falhas de construção do plano."""


class UnknownDependencyError(PlanError):
    """
    Um Step declara em `after` um nome que não existe na definição.

    Dependências devem ser explícitas e resolvíveis; o planner não tenta
    inferir ou criar Steps ausentes.
    """


class CycleError(PlanError):
    """
    As dependências declaradas formam um ciclo.

    `cycle` contém os nomes dos Steps que não puderam ser ordenados.
    """

    def __init__(self, message: str, cycle: Tuple[str, ...] = ()):
        super().__init__(message)
        self.cycle = cycle


@dataclass(frozen=True)
class ExecutionPlan:
    """
    Plano imutável: Steps na ordem em que o Engine deve executá-los.

    A ordem do plano é também a ordem externamente observável dos
    StepResults de um Run.
    """

    steps: Tuple[StepSpec, ...]

    def names(self) -> List[str]:
        return [s.name for s in self.steps]

    def __iter__(self) -> Iterator[StepSpec]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)


def build_plan(steps: Iterable[StepSpec]) -> ExecutionPlan:
    """
    Valida e produz o plano de execução de uma sequência de Steps.

    Args:
        steps (Iterable[StepSpec]): Steps na ordem de declaração.

    Returns:
        ExecutionPlan: Steps em ordem topológica estável.

    Raises:
        InvalidDefinitionError: Se não houver Steps ou algum nome for inválido.
        DuplicateStepNameError: Se houver nomes repetidos.
        UnknownDependencyError: Se um Step declarar dependência inexistente.
        CycleError: Se houver ciclo no grafo de dependências.
    """
    step_list = list(steps)
    if not step_list:
        raise InvalidDefinitionError("Plano requer ao menos um Step")

    index: Dict[str, int] = {}
    for i, s in enumerate(step_list):
        name = getattr(s, "name", None)
        if not isinstance(name, str) or not name.strip():
            raise InvalidDefinitionError("step.name must be a non-empty string")
        if name in index:
            raise DuplicateStepNameError(f"Duplicate step name: {name}")
        index[name] = i

    incoming: Dict[str, int] = {name: 0 for name in index}
    outgoing: Dict[str, Set[str]] = {name: set() for name in index}

    for s in step_list:
        for dep in dict.fromkeys(s.after):
            if dep not in index:
                raise UnknownDependencyError(f"Step '{s.name}' depends on unknown step '{dep}'")
            incoming[s.name] += 1
            outgoing[dep].add(s.name)

    ready: List[int] = [index[name] for name, count in incoming.items() if count == 0]
    heapq.heapify(ready)
    order: List[StepSpec] = []

    while ready:
        current = step_list[heapq.heappop(ready)]
        order.append(current)
        for child in outgoing[current.name]:
            incoming[child] -= 1
            if incoming[child] == 0:
                heapq.heappush(ready, index[child])

    if len(order) != len(step_list):
        stuck = tuple(s.name for s in step_list if incoming[s.name] > 0)
        raise CycleError(f"Cycle detected in step dependency graph: {', '.join(stuck)}", cycle=stuck)

    return ExecutionPlan(steps=tuple(order))
