# src/atlas_release/core/pipeline/registry.py
"""
Registro de Actions disponíveis para o Engine.

O `ActionRegistry` associa nomes (ex.: "checkout", "run-command") a
implementações concretas, preservando a ordem de registro.

Invariantes:
    - Cada action registrada possui um `name` não vazio e único
    - Nenhuma action inválida é aceita no registry

Limites explícitos:
    - Não executa actions
    - Não valida parâmetros de Steps
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .action import Action


class DuplicateActionError(ValueError):
    """Duas actions registradas com o mesmo nome."""


@dataclass
class ActionRegistry:
    """
    Registro canônico de actions, indexado por nome.

    Decisões arquiteturais:
        - A duplicidade é erro fatal no momento do registro
        - `name` explícito em `add` permite registrar a mesma implementação
          sob aliases (ex.: "actions/checkout@v4" e "checkout")
    """

    _actions: Dict[str, Action] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)

    @classmethod
    def of(cls, actions: Iterable[Action]) -> "ActionRegistry":
        registry = cls()
        for action in actions:
            registry.add(action)
        return registry

    def add(self, action: Action, *, name: Optional[str] = None) -> None:
        action_name = name if name is not None else getattr(action, "name", None)
        if not isinstance(action_name, str) or not action_name.strip():
            raise ValueError("action.name must be a non-empty string")

        if not callable(getattr(action, "run", None)):
            raise TypeError(f"Action '{action_name}' must implement run(parameters, context)")

        if action_name in self._actions:
            raise DuplicateActionError(f"Duplicate action name: {action_name}")

        self._actions[action_name] = action
        self._order.append(action_name)

    def get(self, name: str) -> Action:
        return self._actions[name]

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def names(self) -> List[str]:
        return list(self._order)
