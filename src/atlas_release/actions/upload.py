# src/atlas_release/actions/upload.py
"""
Action `upload-artifact`: declara arquivos do workspace como saída do Step.

Parâmetros:
    - path (str | list[str], obrigatório): globs relativos ao diretório de trabalho
    - if-no-files-found ("error" | "warn" | "ignore", default "error")

A action não envia nada ao storage: os caminhos declarados entram em
`captured_output_paths` e o Artifact Publisher os publica após o sucesso
do Run.
"""

from __future__ import annotations

from typing import Any, Mapping

from atlas_release.core.pipeline.context import ActionContext
from atlas_release.core.pipeline.types import ActionOutcome

from .outputs import as_patterns, resolve_outputs


_NO_FILES_POLICIES = ("error", "warn", "ignore")


class UploadArtifactAction:
    name = "upload-artifact"

    def run(self, parameters: Mapping[str, Any], context: ActionContext) -> ActionOutcome:
        patterns = as_patterns(parameters.get("path"), parameter="path")
        if not patterns:
            raise ValueError("parâmetro 'path' é obrigatório")

        policy = parameters.get("if-no-files-found", "error")
        if policy not in _NO_FILES_POLICIES:
            raise ValueError(f"'if-no-files-found' deve ser um de {_NO_FILES_POLICIES}, recebido: {policy!r}")

        found = resolve_outputs(context.working_directory, patterns, relative_to=context.workspace)
        if not found:
            message = f"no files found for {patterns}"
            if policy == "error":
                return ActionOutcome.failure(exit_code=1, summary=message)
            if policy == "warn":
                context.log(level="WARNING", message=message)

        return ActionOutcome.success(output_paths=found, summary=f"{len(found)} file(s) declared")
