# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas Release.

Este módulo define fixtures reutilizáveis que fornecem:
- instantes UTC fixos (nenhum teste depende do relógio real)
- fábrica de PipelineDefinitions mínimas
- actions fake configuráveis (sucesso, falha, exceção, saída declarada)
- storage de artefatos em memória, com falhas transitórias programáveis

O objetivo destas fixtures é permitir testes do core (trigger, planner,
engine, publisher, ledger e orchestrator) sem depender de:
- processos externos
- rede
- actions reais de build

Decisões arquiteturais:
    - Actions fake utilizam duck typing (atributo `name` + método `run`)
    - Fixtures que fornecem classes retornam a *classe*, não uma instância
    - Imports do core são realizados de forma lazy dentro das fixtures

Invariantes:
    - Nenhuma fixture executa subprocessos
    - Dados retornados são determinísticos e isolados por teste

Limites explícitos:
    - Não substituir testes de integração das actions embutidas
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest


# =====================================================
# Tempo
# =====================================================

@pytest.fixture
def fixed_now() -> datetime:
    """Instante fixo em UTC: domingo, 2026-03-01 12:00."""
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def frozen_clock(fixed_now):
    """Relógio injetável que sempre devolve `fixed_now`."""
    return lambda: fixed_now


# =====================================================
# Definições
# =====================================================

@pytest.fixture
def make_definition():
    """
    Fábrica de PipelineDefinitions a partir de dicts simples.

    Cada step é um dict com `name`, `action` e, opcionalmente,
    `parameters`, `continue_on_error` e `after`.
    """
    from atlas_release.core.pipeline.types import (
        ArtifactSpec,
        PipelineDefinition,
        StepSpec,
        TriggerSpec,
    )

    def _make(
        steps: List[Dict[str, Any]],
        *,
        definition_id: str = "demo",
        triggers=(TriggerSpec.manual(),),
        artifacts=(),
        environment=None,
    ) -> PipelineDefinition:
        return PipelineDefinition(
            definition_id=definition_id,
            steps=tuple(
                StepSpec(
                    name=s["name"],
                    action=s.get("action", "ok"),
                    parameters=s.get("parameters", {}),
                    continue_on_error=s.get("continue_on_error", False),
                    after=tuple(s.get("after", ())),
                )
                for s in steps
            ),
            triggers=tuple(triggers),
            artifacts=tuple(ArtifactSpec(name=n, path=p) for n, p in artifacts),
            environment=environment or {},
        )

    return _make


@pytest.fixture
def make_run(fixed_now):
    """Cria um Run PENDING para uma definição."""
    from atlas_release.core.pipeline.types import Run

    def _make(definition, run_id: str = "run-1", workspace=None) -> "Run":
        return Run(run_id=run_id, definition=definition, started_at=fixed_now, workspace=workspace)

    return _make


# =====================================================
# Actions fake
# =====================================================

@pytest.fixture
def ScriptedAction():
    """
    Retorna uma *classe* de action fake com comportamento programado.

    Comportamentos (`behavior`):
        - "ok"    → sucesso, declara `outputs`
        - "fail"  → ActionOutcome FAILED com `exit_code`
        - "raise" → levanta RuntimeError

    Toda chamada é registrada em `calls` (nome do Step, parâmetros, contexto).
    """
    from atlas_release.core.pipeline.types import ActionOutcome

    class _ScriptedAction:
        def __init__(self, name: str, behavior: str = "ok", *, outputs=(), exit_code: int = 2, hook=None):
            self.name = name
            self.behavior = behavior
            self.outputs = tuple(outputs)
            self.exit_code = exit_code
            self.hook = hook
            self.calls: List[Dict[str, Any]] = []

        def run(self, parameters, context):
            self.calls.append({"step": context.step_name, "parameters": dict(parameters), "context": context})
            if self.hook is not None:
                self.hook(parameters, context)
            if self.behavior == "raise":
                raise RuntimeError(f"{self.name} exploded")
            if self.behavior == "fail":
                return ActionOutcome.failure(exit_code=self.exit_code, summary=f"{self.name} failed")
            return ActionOutcome.success(output_paths=self.outputs, summary=f"{self.name} ok")

    return _ScriptedAction


@pytest.fixture
def registry(ScriptedAction):
    """ActionRegistry com as actions fake `ok`, `fail` e `boom`."""
    from atlas_release.core.pipeline.registry import ActionRegistry

    return ActionRegistry.of([
        ScriptedAction("ok"),
        ScriptedAction("fail", "fail"),
        ScriptedAction("boom", "raise"),
    ])


# =====================================================
# Storage fake
# =====================================================

@pytest.fixture
def InMemoryStorage():
    """
    Retorna uma *classe* de storage em memória.

    `failures` define quantas chamadas iniciais a `store` falham com
    StorageError antes de passar a ter sucesso.
    """
    from atlas_release.core.exceptions import StorageError

    class _InMemoryStorage:
        def __init__(self, failures: int = 0):
            self.failures = failures
            self.store_calls: List[Dict[str, Any]] = []
            self.blobs: Dict[str, List[str]] = {}

        def store(self, name, paths):
            self.store_calls.append({"name": name, "paths": [str(p) for p in paths]})
            if self.failures > 0:
                self.failures -= 1
                raise StorageError(message="storage indisponível", details={"name": name})
            handle = f"{name}-{len(self.blobs) + 1}"
            self.blobs[handle] = [str(p) for p in paths]
            return handle

        def fetch(self, storage_handle):
            return list(self.blobs[storage_handle])

    return _InMemoryStorage


@pytest.fixture
def no_sleep():
    """Substituto de `time.sleep` que apenas registra as esperas."""
    waits: List[float] = []

    def _sleep(seconds: float) -> None:
        waits.append(seconds)

    _sleep.waits = waits
    return _sleep
