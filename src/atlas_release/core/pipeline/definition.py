# src/atlas_release/core/pipeline/definition.py
"""
Construção e validação de PipelineDefinitions.

Converte um documento já carregado (dict vindo de YAML/JSON) em uma
`PipelineDefinition` imutável, validando suas invariantes antes que qualquer
Run seja criado.

Formato do documento (v1):

    id: windows-build
    name: Build Windows
    triggers:
      - schedule: "0 23 * * 0"
      - manual
    environment:
      CARGO_TERM_COLOR: always
    steps:
      - name: checkout
        action: checkout
        parameters: {clean: false}
      - name: build
        action: run-command
        parameters: {command: cargo build --release}
        continue_on_error: false
        after: [checkout]
    artifacts:
      - name: release-binary
        path: target/release/*.exe

Invariantes garantidas:
    - `steps` não é vazio e nomes de Steps são únicos
    - toda expressão de schedule é válida e possui disparo futuro
    - nomes de artefatos são únicos

Limites explícitos:
    - Não resolve dependências `after` (responsabilidade do planner)
    - Não verifica se actions existem (responsabilidade do Orchestrator/Engine)
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Any, List, Mapping, Union

from atlas_release.core.config.errors import (
    DuplicateStepNameError,
    InvalidDefinitionError,
)
from atlas_release.core.config.hashing import to_jsonable
from atlas_release.core.config.loader import load_document
from atlas_release.core.trigger.cron import CronSchedule

from .context import WORKING_DIRECTORY_PARAMETER
from .types import ArtifactSpec, PipelineDefinition, StepSpec, TriggerSpec


_MANUAL_ALIASES = {"manual", "manual_dispatch", "workflow_dispatch"}


def _require_str(value: Any, where: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidDefinitionError(f"{where} deve ser uma string não vazia")
    return value


def _check_working_directory(value: Any, where: str) -> None:
    if value is None or value == "":
        return
    label = f"{where}.parameters.{WORKING_DIRECTORY_PARAMETER}"
    if not isinstance(value, str):
        raise InvalidDefinitionError(f"{label} deve ser string")
    posix, windows = PurePosixPath(value), PureWindowsPath(value)
    if posix.is_absolute() or windows.is_absolute() or windows.drive:
        raise InvalidDefinitionError(f"{label} deve ser relativo ao workspace: '{value}'")
    if ".." in windows.parts:
        raise InvalidDefinitionError(f"{label} não pode sair do workspace: '{value}'")


def _parse_trigger(raw: Any, index: int) -> TriggerSpec:
    where = f"triggers[{index}]"
    if isinstance(raw, str):
        if raw.strip().lower() in _MANUAL_ALIASES:
            return TriggerSpec.manual()
        raise InvalidDefinitionError(f"{where}: trigger desconhecido '{raw}'")

    if not isinstance(raw, Mapping) or len(raw) != 1:
        raise InvalidDefinitionError(f"{where} deve ser 'manual' ou um mapping com uma única chave")

    (key, value), = raw.items()
    key = str(key).lower()
    if key in {"schedule", "cron"}:
        expression = _require_str(value, f"{where}.{key}")
        CronSchedule.parse(expression)
        return TriggerSpec.schedule(expression)
    if key in _MANUAL_ALIASES:
        return TriggerSpec.manual()
    raise InvalidDefinitionError(f"{where}: trigger desconhecido '{key}'")


def _parse_step(raw: Any, index: int) -> StepSpec:
    where = f"steps[{index}]"
    if not isinstance(raw, Mapping):
        raise InvalidDefinitionError(f"{where} deve ser um mapping")

    name = _require_str(raw.get("name"), f"{where}.name")
    action = _require_str(raw.get("action"), f"{where}.action")

    parameters = raw.get("parameters", {}) or {}
    if not isinstance(parameters, Mapping):
        raise InvalidDefinitionError(f"{where}.parameters deve ser um mapping")

    _check_working_directory(parameters.get(WORKING_DIRECTORY_PARAMETER), where)

    continue_on_error = raw.get("continue_on_error", False)
    if not isinstance(continue_on_error, bool):
        raise InvalidDefinitionError(f"{where}.continue_on_error deve ser booleano")

    after = raw.get("after", []) or []
    if isinstance(after, str):
        after = [after]
    if not isinstance(after, list) or not all(isinstance(a, str) and a for a in after):
        raise InvalidDefinitionError(f"{where}.after deve ser uma lista de nomes de Steps")

    return StepSpec(
        name=name,
        action=action,
        parameters=to_jsonable(parameters),
        continue_on_error=continue_on_error,
        after=tuple(after),
    )


def _parse_artifact(raw: Any, index: int) -> ArtifactSpec:
    where = f"artifacts[{index}]"
    if not isinstance(raw, Mapping):
        raise InvalidDefinitionError(f"{where} deve ser um mapping")
    return ArtifactSpec(
        name=_require_str(raw.get("name"), f"{where}.name"),
        path=_require_str(raw.get("path"), f"{where}.path"),
    )


def _list_of(data: Mapping[str, Any], key: str) -> List[Any]:
    value = data.get(key, []) or []
    if not isinstance(value, list):
        raise InvalidDefinitionError(f"'{key}' deve ser uma lista")
    return value


def definition_from_dict(data: Mapping[str, Any]) -> PipelineDefinition:
    """
    Constrói uma PipelineDefinition validada a partir de um documento.

    Raises:
        InvalidDefinitionError: Estrutura inválida ou `steps` vazio.
        DuplicateStepNameError: Nomes de Steps repetidos.
        InvalidScheduleError: Expressão de schedule inválida.
    """
    if not isinstance(data, Mapping):
        raise InvalidDefinitionError(f"Definição deve ser um mapping, recebido: {type(data).__name__}")

    definition_id = _require_str(data.get("id", data.get("definition_id")), "id")

    name = data.get("name")
    if name is not None and not isinstance(name, str):
        raise InvalidDefinitionError("name deve ser string")

    environment = data.get("environment", {}) or {}
    if not isinstance(environment, Mapping):
        raise InvalidDefinitionError("environment deve ser um mapping")
    for key, value in environment.items():
        if isinstance(value, (dict, list)):
            raise InvalidDefinitionError(f"environment.{key} deve ser escalar")

    steps = [_parse_step(s, i) for i, s in enumerate(_list_of(data, "steps"))]
    if not steps:
        raise InvalidDefinitionError("Definição deve declarar ao menos um Step")

    seen = set()
    for s in steps:
        if s.name in seen:
            raise DuplicateStepNameError(f"Duplicate step name: {s.name}")
        seen.add(s.name)

    triggers = [_parse_trigger(t, i) for i, t in enumerate(_list_of(data, "triggers"))]

    artifacts = [_parse_artifact(a, i) for i, a in enumerate(_list_of(data, "artifacts"))]
    artifact_names = [a.name for a in artifacts]
    if len(set(artifact_names)) != len(artifact_names):
        raise InvalidDefinitionError("Nomes de artefatos devem ser únicos")

    return PipelineDefinition(
        definition_id=definition_id,
        name=name,
        triggers=tuple(dict.fromkeys(triggers)),
        environment={str(k): str(v) for k, v in environment.items()},
        steps=tuple(steps),
        artifacts=tuple(artifacts),
    )


def load_definition(path: Union[str, Path]) -> PipelineDefinition:
    """Carrega uma PipelineDefinition de um arquivo YAML ou JSON."""
    return definition_from_dict(load_document(path, missing_error=InvalidDefinitionError))

